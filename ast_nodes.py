from dataclasses import dataclass
from typing import Any, List, Optional

from lexer import Token

# Nodes compare by identity (eq=False), so each expression node is its own
# key in the resolver's distance table even when structurally equal to another.

@dataclass(frozen=True, eq=False)
class Expr:
    """Base class for all expressions."""
    pass

@dataclass(frozen=True, eq=False)
class AssignExpr(Expr):
    name: Token
    value: Expr

@dataclass(frozen=True, eq=False)
class BinaryExpr(Expr):
    left: Expr
    operator: Token
    right: Expr

@dataclass(frozen=True, eq=False)
class CallExpr(Expr):
    callee: Expr
    paren: Token  # closing paren, used to report call errors
    arguments: List[Expr]

@dataclass(frozen=True, eq=False)
class GetExpr(Expr):
    object: Expr
    name: Token

@dataclass(frozen=True, eq=False)
class GroupingExpr(Expr):
    expression: Expr

@dataclass(frozen=True, eq=False)
class LiteralExpr(Expr):
    value: Any  # None, bool, float or str

@dataclass(frozen=True, eq=False)
class LogicalExpr(Expr):
    left: Expr
    operator: Token
    right: Expr

@dataclass(frozen=True, eq=False)
class SetExpr(Expr):
    object: Expr
    name: Token
    value: Expr

@dataclass(frozen=True, eq=False)
class SuperExpr(Expr):
    """super.method"""
    keyword: Token
    method: Token

@dataclass(frozen=True, eq=False)
class ThisExpr(Expr):
    keyword: Token

@dataclass(frozen=True, eq=False)
class UnaryExpr(Expr):
    operator: Token
    right: Expr

@dataclass(frozen=True, eq=False)
class VariableExpr(Expr):
    name: Token

@dataclass(frozen=True, eq=False)
class Stmt:
    """Base class for all statements."""
    pass

@dataclass(frozen=True, eq=False)
class BlockStmt(Stmt):
    statements: List[Stmt]

@dataclass(frozen=True, eq=False)
class ExpressionStmt(Stmt):
    expression: Expr

@dataclass(frozen=True, eq=False)
class FunctionStmt(Stmt):
    name: Token
    params: List[Token]
    body: List[Stmt]

@dataclass(frozen=True, eq=False)
class ClassStmt(Stmt):
    """
    class <name> [< <superclass>] { <methods> }
    """
    name: Token
    superclass: Optional[VariableExpr]
    methods: List[FunctionStmt]

@dataclass(frozen=True, eq=False)
class IfStmt(Stmt):
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt] = None

@dataclass(frozen=True, eq=False)
class PrintStmt(Stmt):
    expression: Expr

@dataclass(frozen=True, eq=False)
class ReturnStmt(Stmt):
    keyword: Token
    value: Optional[Expr] = None

@dataclass(frozen=True, eq=False)
class VarStmt(Stmt):
    name: Token
    initializer: Optional[Expr] = None

@dataclass(frozen=True, eq=False)
class WhileStmt(Stmt):
    condition: Expr
    body: Stmt
