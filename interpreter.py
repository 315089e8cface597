import logging
import math
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TextIO

from ast_nodes import *
from builtins_handler import define_builtins
from environment import Environment, InterpreterError
from lexer import Token, TokenType, format_number
from lox_objects import INITIALIZER_NAME, LoxCallable, LoxClass, LoxFunction, LoxInstance

logger = logging.getLogger(__name__)

# Deepest chain of nested Lox calls before "Stack overflow."
MAX_CALL_DEPTH = 1000
# Python frames needed for MAX_CALL_DEPTH calls, with room for deep expressions
RECURSION_LIMIT = 20000

__all__ = ['Interpreter', 'InterpreterError', 'Return', 'is_truthy', 'is_equal', 'stringify']


@dataclass(frozen=True)
class Return:
    """Completion of a `return` statement, carried back to the enclosing call.

    Statement execution yields None for normal completion or a Return; every
    statement-sequence executor hands a Return straight back to its caller.
    """
    value: Any


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def is_equal(a: Any, b: Any) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    # True == 1.0 in Python; values of different types are never equal here.
    if type(a) is not type(b):
        return False
    if isinstance(a, float):
        # Number equality compares the bits: NaN equals NaN, 0 and -0 differ.
        if math.isnan(a) or math.isnan(b):
            return math.isnan(a) and math.isnan(b)
        return a == b and math.copysign(1.0, a) == math.copysign(1.0, b)
    return a == b


def stringify(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        text = format_number(value)
        if text.endswith(".0"):
            text = text[:-2]
        return text
    return str(value)


def _divide(left: float, right: float) -> float:
    """IEEE-754 division: x/0 is a signed infinity, 0/0 is NaN."""
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


class Interpreter:
    # Arithmetic and comparison operators that require two numbers
    _NUMERIC_OPS = {
        TokenType.MINUS: lambda l, r: l - r,
        TokenType.STAR: lambda l, r: l * r,
        TokenType.SLASH: _divide,
        TokenType.GREATER: lambda l, r: l > r,
        TokenType.GREATER_EQUAL: lambda l, r: l >= r,
        TokenType.LESS: lambda l, r: l < r,
        TokenType.LESS_EQUAL: lambda l, r: l <= r,
    }

    def __init__(self, out: Optional[TextIO] = None):
        # None means "whatever sys.stdout is at print time".
        self.out = out
        self.globals = Environment()
        self.environment = self.globals
        self.locals: Dict[Expr, int] = {}
        self.current_token: Optional[Token] = None
        self.call_depth = 0
        if sys.getrecursionlimit() < RECURSION_LIMIT:
            sys.setrecursionlimit(RECURSION_LIMIT)
        define_builtins(self.globals)
        self._init_dispatch_tables()

    def _init_dispatch_tables(self):
        self._stmt_visitors = {
            BlockStmt: self.visit_BlockStmt,
            ClassStmt: self.visit_ClassStmt,
            ExpressionStmt: self.visit_ExpressionStmt,
            FunctionStmt: self.visit_FunctionStmt,
            IfStmt: self.visit_IfStmt,
            PrintStmt: self.visit_PrintStmt,
            ReturnStmt: self.visit_ReturnStmt,
            VarStmt: self.visit_VarStmt,
            WhileStmt: self.visit_WhileStmt,
        }

        self._expr_evaluators = {
            AssignExpr: self.evaluate_AssignExpr,
            BinaryExpr: self.evaluate_BinaryExpr,
            CallExpr: self.evaluate_CallExpr,
            GetExpr: self.evaluate_GetExpr,
            GroupingExpr: self.evaluate_GroupingExpr,
            LiteralExpr: self.evaluate_LiteralExpr,
            LogicalExpr: self.evaluate_LogicalExpr,
            SetExpr: self.evaluate_SetExpr,
            SuperExpr: self.evaluate_SuperExpr,
            ThisExpr: self.evaluate_ThisExpr,
            UnaryExpr: self.evaluate_UnaryExpr,
            VariableExpr: self.evaluate_VariableExpr,
        }

    # --- Entry points ---

    def load_distances(self, distances: Dict[Expr, int]):
        """Merge a resolver's distance table. Tables accumulate across REPL lines."""
        self.locals.update(distances)

    def resolve(self, expr: Expr, depth: int):
        self.locals[expr] = depth

    def interpret(self, statements: List[Stmt]) -> Optional[InterpreterError]:
        """Run statements against the persistent globals.

        Returns the runtime error that stopped execution, or None. Globals keep
        whatever the statements before the error defined.
        """
        try:
            for stmt in statements:
                self.execute(stmt)
        except InterpreterError as e:
            return self._abort(e)
        except RecursionError:
            return self._abort(self._stack_overflow())
        return None

    def interpret_and_print(self, statements: List[Stmt]) -> Optional[InterpreterError]:
        """Like interpret, but a lone expression statement has its value printed."""
        if len(statements) == 1 and isinstance(statements[0], ExpressionStmt):
            try:
                self._print(stringify(self.evaluate(statements[0].expression)))
            except InterpreterError as e:
                return self._abort(e)
            except RecursionError:
                return self._abort(self._stack_overflow())
            return None
        return self.interpret(statements)

    @property
    def current_line(self) -> int:
        return self.current_token.line if self.current_token is not None else 0

    def _stack_overflow(self) -> InterpreterError:
        # Python ran out of frames before MAX_CALL_DEPTH was reached.
        token = self.current_token or Token(TokenType.EOF, "", None, 0)
        return InterpreterError(token, "Stack overflow.")

    def _abort(self, error: InterpreterError) -> InterpreterError:
        # Unwinding may have skipped frames; start the next call at the top level.
        self.environment = self.globals
        self.call_depth = 0
        logger.debug("Runtime error at line %d: %s", error.line, error.message)
        return error

    def _print(self, text: str):
        print(text, file=self.out)

    # --- Dispatch ---

    def execute(self, stmt: Stmt) -> Optional[Return]:
        visitor = self._stmt_visitors.get(type(stmt))
        if visitor:
            return visitor(stmt)
        return self.no_visit_method(stmt)

    def no_visit_method(self, node):
        raise TypeError(f"No visit method for {type(node).__name__}")

    def evaluate(self, expr: Expr) -> Any:
        evaluator = self._expr_evaluators.get(type(expr))
        if evaluator:
            return evaluator(expr)
        return self.no_eval_method(expr)

    def no_eval_method(self, node):
        raise TypeError(f"No evaluate method for {type(node).__name__}")

    def execute_block(self, statements: List[Stmt], environment: Environment) -> Optional[Return]:
        previous = self.environment
        try:
            self.environment = environment
            for stmt in statements:
                completion = self.execute(stmt)
                if completion is not None:
                    return completion
            return None
        finally:
            self.environment = previous

    # --- Statement Visitors ---

    def visit_BlockStmt(self, stmt: BlockStmt) -> Optional[Return]:
        return self.execute_block(stmt.statements, Environment(self.environment))

    def visit_ClassStmt(self, stmt: ClassStmt):
        superclass = None
        if stmt.superclass is not None:
            superclass = self.evaluate(stmt.superclass)
            if not isinstance(superclass, LoxClass):
                raise InterpreterError(stmt.superclass.name, "Superclass must be a class.")

        # Placeholder first: the real class is assigned once its methods exist.
        self.environment.define(stmt.name.lexeme, None)

        if superclass is not None:
            self.environment = Environment(self.environment)
            self.environment.define("super", superclass)

        methods = {}
        for method in stmt.methods:
            is_initializer = method.name.lexeme == INITIALIZER_NAME
            methods[method.name.lexeme] = LoxFunction(method, self.environment, True, is_initializer)

        klass = LoxClass(stmt.name.lexeme, superclass, methods)

        if superclass is not None:
            self.environment = self.environment.enclosing

        self.environment.assign(stmt.name, klass)
        logger.debug("Defined class %s with %d method(s)", klass.name, len(methods))
        return None

    def visit_ExpressionStmt(self, stmt: ExpressionStmt):
        self.evaluate(stmt.expression)
        return None

    def visit_FunctionStmt(self, stmt: FunctionStmt):
        function = LoxFunction(stmt, self.environment)
        self.environment.define(stmt.name.lexeme, function)
        return None

    def visit_IfStmt(self, stmt: IfStmt) -> Optional[Return]:
        if is_truthy(self.evaluate(stmt.condition)):
            return self.execute(stmt.then_branch)
        if stmt.else_branch is not None:
            return self.execute(stmt.else_branch)
        return None

    def visit_PrintStmt(self, stmt: PrintStmt):
        self._print(stringify(self.evaluate(stmt.expression)))
        return None

    def visit_ReturnStmt(self, stmt: ReturnStmt) -> Return:
        value = self.evaluate(stmt.value) if stmt.value is not None else None
        return Return(value)

    def visit_VarStmt(self, stmt: VarStmt):
        value = None
        if stmt.initializer is not None:
            value = self.evaluate(stmt.initializer)
        self.environment.define(stmt.name.lexeme, value)
        return None

    def visit_WhileStmt(self, stmt: WhileStmt) -> Optional[Return]:
        while is_truthy(self.evaluate(stmt.condition)):
            completion = self.execute(stmt.body)
            if completion is not None:
                return completion
        return None

    # --- Expression Evaluators ---

    def evaluate_AssignExpr(self, expr: AssignExpr):
        value = self.evaluate(expr.value)
        distance = self.locals.get(expr)
        if distance is not None:
            self.environment.assign_at(distance, expr.name, value)
        else:
            self.globals.assign(expr.name, value)
        return value

    def evaluate_BinaryExpr(self, expr: BinaryExpr):
        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)
        op = expr.operator
        self.current_token = op

        if op.type == TokenType.EQUAL_EQUAL:
            return is_equal(left, right)
        if op.type == TokenType.BANG_EQUAL:
            return not is_equal(left, right)

        if op.type == TokenType.PLUS:
            if isinstance(left, float) and isinstance(right, float):
                return left + right
            if isinstance(left, str) and isinstance(right, str):
                return left + right
            raise InterpreterError(op, "Operands must be two numbers or two strings.")

        handler = self._NUMERIC_OPS.get(op.type)
        if handler is None:
            raise InterpreterError(op, f"Unknown operator {op.lexeme}")
        self._check_number_operands(op, left, right)
        return handler(left, right)

    def evaluate_CallExpr(self, expr: CallExpr):
        callee = self.evaluate(expr.callee)
        arguments = [self.evaluate(arg) for arg in expr.arguments]
        self.current_token = expr.paren

        if not isinstance(callee, LoxCallable):
            raise InterpreterError(expr.paren, "Can only call functions and classes.")

        if len(arguments) != callee.arity():
            raise InterpreterError(
                expr.paren,
                f"Expected {callee.arity()} arguments but got {len(arguments)}.")

        if self.call_depth >= MAX_CALL_DEPTH:
            raise InterpreterError(expr.paren, "Stack overflow.")
        self.call_depth += 1
        try:
            return callee.call(self, arguments)
        finally:
            self.call_depth -= 1

    def evaluate_GetExpr(self, expr: GetExpr):
        obj = self.evaluate(expr.object)
        if isinstance(obj, LoxInstance):
            return obj.get(expr.name)
        raise InterpreterError(expr.name, "Only instances have properties.")

    def evaluate_GroupingExpr(self, expr: GroupingExpr):
        return self.evaluate(expr.expression)

    def evaluate_LiteralExpr(self, expr: LiteralExpr):
        return expr.value

    def evaluate_LogicalExpr(self, expr: LogicalExpr):
        left = self.evaluate(expr.left)
        if expr.operator.type == TokenType.OR:
            if is_truthy(left):
                return left
        elif not is_truthy(left):
            return left
        return self.evaluate(expr.right)

    def evaluate_SetExpr(self, expr: SetExpr):
        obj = self.evaluate(expr.object)
        if not isinstance(obj, LoxInstance):
            raise InterpreterError(expr.name, "Only instances have fields.")
        value = self.evaluate(expr.value)
        obj.set(expr.name, value)
        return value

    def evaluate_SuperExpr(self, expr: SuperExpr):
        distance = self.locals[expr]
        superclass = self.environment.get_at(distance, "super")
        # The `this` frame is always the one just inside the `super` frame.
        instance = self.environment.get_at(distance - 1, "this")

        method = superclass.find_method(expr.method.lexeme)
        if method is None:
            raise InterpreterError(expr.method, f"Undefined property '{expr.method.lexeme}'.")
        return method.bind(instance)

    def evaluate_ThisExpr(self, expr: ThisExpr):
        return self._look_up_variable(expr.keyword, expr)

    def evaluate_UnaryExpr(self, expr: UnaryExpr):
        right = self.evaluate(expr.right)
        op = expr.operator
        if op.type == TokenType.BANG:
            return not is_truthy(right)
        if op.type == TokenType.MINUS:
            self._check_number_operand(op, right)
            return -right
        raise InterpreterError(op, f"Unknown unary operator {op.lexeme}")

    def evaluate_VariableExpr(self, expr: VariableExpr):
        return self._look_up_variable(expr.name, expr)

    # --- Helpers ---

    def _look_up_variable(self, name: Token, expr: Expr):
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    @staticmethod
    def _check_number_operand(operator: Token, operand: Any):
        if isinstance(operand, float):
            return
        raise InterpreterError(operator, "Operand must be a number.")

    @staticmethod
    def _check_number_operands(operator: Token, left: Any, right: Any):
        if isinstance(left, float) and isinstance(right, float):
            return
        raise InterpreterError(operator, "Operands must be numbers.")
