"""
Runtime object model: user functions (closures), classes and instances.

Native functions live in builtins_handler.py; everything here is created
by evaluating declarations in the interpreter.
"""
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ast_nodes import FunctionStmt
from environment import Environment, InterpreterError
from lexer import Token

if TYPE_CHECKING:
    from interpreter import Interpreter

logger = logging.getLogger(__name__)

INITIALIZER_NAME = "init"


class LoxCallable(ABC):
    """Anything a call expression may invoke."""

    @abstractmethod
    def arity(self) -> int:
        ...

    @abstractmethod
    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        ...


class LoxFunction(LoxCallable):
    def __init__(self, declaration: FunctionStmt, closure: Environment,
                 is_method: bool = False, is_initializer: bool = False):
        self.declaration = declaration
        self.closure = closure
        self.is_method = is_method
        self.is_initializer = is_initializer

    @property
    def name(self) -> str:
        return self.declaration.name.lexeme

    def bind(self, instance: 'LoxInstance') -> 'LoxFunction':
        """Return a copy of this function whose closure has `this` bound to instance."""
        environment = Environment(self.closure)
        environment.define("this", instance)
        return LoxFunction(self.declaration, environment, self.is_method, self.is_initializer)

    def arity(self) -> int:
        return len(self.declaration.params)

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        environment = Environment(self.closure)
        for param, argument in zip(self.declaration.params, arguments):
            environment.define(param.lexeme, argument)

        completion = interpreter.execute_block(self.declaration.body, environment)

        # An initializer always hands back its instance, whatever the body returned.
        if self.is_initializer:
            return self.closure.get_at(0, "this")
        if completion is not None:
            return completion.value
        return None

    def __str__(self):
        return f"<fn {self.name}>"


class LoxClass(LoxCallable):
    def __init__(self, name: str, superclass: Optional['LoxClass'],
                 methods: Dict[str, LoxFunction]):
        self.name = name
        self.superclass = superclass
        self.methods = methods

    def find_method(self, name: str) -> Optional[LoxFunction]:
        """Look in this class, then up the superclass chain."""
        klass = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    def arity(self) -> int:
        initializer = self.find_method(INITIALIZER_NAME)
        if initializer is None:
            return 0
        return initializer.arity()

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        instance = LoxInstance(self)
        logger.debug("Instantiating %s", self.name)
        initializer = self.find_method(INITIALIZER_NAME)
        if initializer is not None:
            initializer.bind(instance).call(interpreter, arguments)
        return instance

    def __str__(self):
        return self.name


class LoxInstance:
    """Runtime representation of a class instance."""

    def __init__(self, klass: LoxClass):
        self.klass = klass
        self.fields: Dict[str, Any] = {}

    def get(self, name: Token) -> Any:
        # Fields shadow methods.
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]

        method = self.klass.find_method(name.lexeme)
        if method is not None:
            return method.bind(self)

        raise InterpreterError(name, f"Undefined property '{name.lexeme}'.")

    def set(self, name: Token, value: Any):
        self.fields[name.lexeme] = value

    def __str__(self):
        return f"{self.klass.name} instance"
