from typing import Any, Dict, Optional

from lexer import Token


class InterpreterError(Exception):
    """A runtime error, tied to the token where evaluation failed."""

    def __init__(self, token: Token, message: str):
        super().__init__(message)
        self.token = token
        self.message = message

    @property
    def line(self) -> int:
        return self.token.line

    def format_error(self) -> str:
        return f"{self.message}\n[line {self.token.line}]"


class Environment:
    """One frame of variable storage, linked to the frame that lexically encloses it.

    Frames are shared by reference: a block or call owns the frame it creates,
    and every closure declared inside it keeps it alive afterwards.
    """

    def __init__(self, enclosing: Optional['Environment'] = None):
        self.values: Dict[str, Any] = {}
        self.enclosing = enclosing

    def define(self, name: str, value: Any):
        """Bind name in this frame, overwriting any existing binding."""
        self.values[name] = value

    def get(self, name: Token) -> Any:
        """Search this frame, then each enclosing frame in order."""
        env = self
        while env is not None:
            if name.lexeme in env.values:
                return env.values[name.lexeme]
            env = env.enclosing
        raise _undefined(name)

    def assign(self, name: Token, value: Any):
        """Rebind an existing variable in the nearest frame that has it."""
        env = self
        while env is not None:
            if name.lexeme in env.values:
                env.values[name.lexeme] = value
                return
            env = env.enclosing
        raise _undefined(name)

    def ancestor(self, distance: int) -> 'Environment':
        env = self
        for _ in range(distance):
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: str) -> Any:
        return self.ancestor(distance).values.get(name)

    def assign_at(self, distance: int, name: Token, value: Any):
        self.ancestor(distance).values[name.lexeme] = value

    def debug_dump(self) -> str:
        """Render the frame chain innermost first, one frame per line."""
        lines = []
        env, depth = self, 0
        while env is not None:
            names = ", ".join(sorted(env.values))
            lines.append(f"[{depth}] {names}")
            env, depth = env.enclosing, depth + 1
        return "\n".join(lines)


def _undefined(name: Token) -> InterpreterError:
    return InterpreterError(name, f"Undefined variable '{name.lexeme}'.")
