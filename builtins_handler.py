"""
Native functions available in the global scope.

Each native is a standalone function that receives the already evaluated
arguments and returns a Lox value. The dispatch table maps the global name
to (arity, handler); define_builtins installs them into a frame.
"""
import time
from typing import Any, Callable, List

from environment import Environment
from lox_objects import LoxCallable


class NativeFunction(LoxCallable):
    def __init__(self, name: str, arity: int, handler: Callable[[List[Any]], Any]):
        self.name = name
        self._arity = arity
        self.handler = handler

    def arity(self) -> int:
        return self._arity

    def call(self, interpreter, arguments: List[Any]) -> Any:
        return self.handler(arguments)

    def __str__(self):
        return "<native fn>"


# ── Individual native implementations ──

def _builtin_clock(args):
    """Seconds since the epoch, as a float."""
    return time.time()


# ── Dispatch table ──

BUILTIN_DISPATCH = {
    'clock': (0, _builtin_clock),
}

BUILTIN_NAMES = frozenset(BUILTIN_DISPATCH)


def define_builtins(environment: Environment):
    for name, (arity, handler) in BUILTIN_DISPATCH.items():
        environment.define(name, NativeFunction(name, arity, handler))
