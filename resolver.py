"""
Static resolution pass.

Walks the whole program once before it runs. For every variable, `this`
and `super` reference it records how many scopes out the binding lives,
and it reports code that can never be legal at runtime (reading a local in
its own initializer, `return` at top level, `this` outside a class, ...).
Errors are collected, never raised, so one pass reports all of them.
"""
import logging
from enum import Enum, auto
from typing import Dict, List, Set

from ast_nodes import *
from lexer import Token, TokenType
from lox_objects import INITIALIZER_NAME

logger = logging.getLogger(__name__)


class FunctionType(Enum):
    NONE = auto()
    FUNCTION = auto()
    METHOD = auto()
    INITIALIZER = auto()

class ClassType(Enum):
    NONE = auto()
    CLASS = auto()
    SUBCLASS = auto()


class ResolverError(Exception):
    def __init__(self, token: Token, message: str):
        super().__init__(message)
        self.token = token
        self.message = message

    def __str__(self):
        if self.token.type == TokenType.EOF:
            where = " at end"
        else:
            where = f" at '{self.token.lexeme}'"
        return f"[line {self.token.line}] Error{where}: {self.message}"


class Resolver:
    def __init__(self):
        # Stack of scopes: name -> True once defined, False while only declared.
        # Globals are never pushed; anything not found here resolves as global.
        self.scopes: List[Dict[str, bool]] = []
        self.distances: Dict[Expr, int] = {}
        self.errors: List[ResolverError] = []
        # Globals whose initializer is being resolved right now.
        self.initializing_globals: Set[str] = set()
        self.current_function = FunctionType.NONE
        self.current_class = ClassType.NONE
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

        self._expr_visitors = {
            AssignExpr: self.visit_AssignExpr,
            BinaryExpr: self.visit_BinaryExpr,
            CallExpr: self.visit_CallExpr,
            GetExpr: self.visit_GetExpr,
            GroupingExpr: self.visit_GroupingExpr,
            LiteralExpr: self.visit_LiteralExpr,
            LogicalExpr: self.visit_LogicalExpr,
            SetExpr: self.visit_SetExpr,
            SuperExpr: self.visit_SuperExpr,
            ThisExpr: self.visit_ThisExpr,
            UnaryExpr: self.visit_UnaryExpr,
            VariableExpr: self.visit_VariableExpr,
        }

    def resolve(self, statements: List[Stmt]) -> List[ResolverError]:
        """Resolve a program. Returns the static errors found (empty when it may run)."""
        for stmt in statements:
            self.resolve_stmt(stmt)
        return self.errors

    def resolve_stmt(self, stmt: Stmt):
        visitor = self._stmt_visitors.get(type(stmt))
        if visitor is None:
            raise TypeError(f"No resolve method for {type(stmt).__name__}")
        visitor(stmt)

    def resolve_expr(self, expr: Expr):
        visitor = self._expr_visitors.get(type(expr))
        if visitor is None:
            raise TypeError(f"No resolve method for {type(expr).__name__}")
        visitor(expr)

    def error(self, token: Token, message: str):
        self.errors.append(ResolverError(token, message))

    # --- Scope bookkeeping ---

    def begin_scope(self):
        self.scopes.append({})

    def end_scope(self):
        self.scopes.pop()

    def declare(self, name: Token):
        if not self.scopes:
            return
        scope = self.scopes[-1]
        if name.lexeme in scope:
            self.error(name, "Already a variable with this name in this scope.")
        scope[name.lexeme] = False

    def define(self, name: Token):
        if not self.scopes:
            return
        self.scopes[-1][name.lexeme] = True

    def resolve_local(self, expr: Expr, name: Token):
        for depth, scope in enumerate(reversed(self.scopes)):
            if name.lexeme in scope:
                self.distances[expr] = depth
                logger.debug("Resolved '%s' (line %d) at distance %d", name.lexeme, name.line, depth)
                return
        # Not found: left unresolved, looked up in globals at runtime.

    def resolve_function(self, function: FunctionStmt, function_type: FunctionType):
        enclosing_function = self.current_function
        self.current_function = function_type

        self.begin_scope()
        for param in function.params:
            self.declare(param)
            self.define(param)
        for stmt in function.body:
            self.resolve_stmt(stmt)
        self.end_scope()

        self.current_function = enclosing_function

    # --- Statement Visitors ---

    def visit_BlockStmt(self, stmt: BlockStmt):
        self.begin_scope()
        for s in stmt.statements:
            self.resolve_stmt(s)
        self.end_scope()

    def visit_ClassStmt(self, stmt: ClassStmt):
        enclosing_class = self.current_class
        self.current_class = ClassType.CLASS

        self.declare(stmt.name)
        self.define(stmt.name)

        if stmt.superclass is not None:
            if stmt.superclass.name.lexeme == stmt.name.lexeme:
                self.error(stmt.superclass.name, "A class can't inherit from itself.")
            self.current_class = ClassType.SUBCLASS
            self.resolve_expr(stmt.superclass)

            self.begin_scope()
            self.scopes[-1]["super"] = True

        self.begin_scope()
        self.scopes[-1]["this"] = True

        for method in stmt.methods:
            declaration = FunctionType.METHOD
            if method.name.lexeme == INITIALIZER_NAME:
                declaration = FunctionType.INITIALIZER
            self.resolve_function(method, declaration)

        self.end_scope()

        if stmt.superclass is not None:
            self.end_scope()

        self.current_class = enclosing_class

    def visit_ExpressionStmt(self, stmt: ExpressionStmt):
        self.resolve_expr(stmt.expression)

    def visit_FunctionStmt(self, stmt: FunctionStmt):
        # Defined before the body so the function can call itself recursively.
        self.declare(stmt.name)
        self.define(stmt.name)
        self.resolve_function(stmt, FunctionType.FUNCTION)

    def visit_IfStmt(self, stmt: IfStmt):
        self.resolve_expr(stmt.condition)
        self.resolve_stmt(stmt.then_branch)
        if stmt.else_branch is not None:
            self.resolve_stmt(stmt.else_branch)

    def visit_PrintStmt(self, stmt: PrintStmt):
        self.resolve_expr(stmt.expression)

    def visit_ReturnStmt(self, stmt: ReturnStmt):
        if self.current_function == FunctionType.NONE:
            self.error(stmt.keyword, "Can't return from top-level code.")

        if stmt.value is not None:
            if self.current_function == FunctionType.INITIALIZER:
                self.error(stmt.keyword, "Can't return a value from an initializer.")
            self.resolve_expr(stmt.value)

    def visit_VarStmt(self, stmt: VarStmt):
        self.declare(stmt.name)
        if stmt.initializer is not None:
            is_global = not self.scopes
            if is_global:
                self.initializing_globals.add(stmt.name.lexeme)
            self.resolve_expr(stmt.initializer)
            if is_global:
                self.initializing_globals.discard(stmt.name.lexeme)
        self.define(stmt.name)

    def visit_WhileStmt(self, stmt: WhileStmt):
        self.resolve_expr(stmt.condition)
        self.resolve_stmt(stmt.body)

    # --- Expression Visitors ---

    def visit_AssignExpr(self, expr: AssignExpr):
        self.resolve_expr(expr.value)
        self.resolve_local(expr, expr.name)

    def visit_BinaryExpr(self, expr: BinaryExpr):
        self.resolve_expr(expr.left)
        self.resolve_expr(expr.right)

    def visit_CallExpr(self, expr: CallExpr):
        self.resolve_expr(expr.callee)
        for argument in expr.arguments:
            self.resolve_expr(argument)

    def visit_GetExpr(self, expr: GetExpr):
        # Property names are looked up dynamically; only the object is resolved.
        self.resolve_expr(expr.object)

    def visit_GroupingExpr(self, expr: GroupingExpr):
        self.resolve_expr(expr.expression)

    def visit_LiteralExpr(self, expr: LiteralExpr):
        pass

    def visit_LogicalExpr(self, expr: LogicalExpr):
        self.resolve_expr(expr.left)
        self.resolve_expr(expr.right)

    def visit_SetExpr(self, expr: SetExpr):
        self.resolve_expr(expr.value)
        self.resolve_expr(expr.object)

    def visit_SuperExpr(self, expr: SuperExpr):
        if self.current_class == ClassType.NONE:
            self.error(expr.keyword, "Can't use 'super' outside of a class.")
        elif self.current_class != ClassType.SUBCLASS:
            self.error(expr.keyword, "Can't use 'super' in a class with no superclass.")
        self.resolve_local(expr, expr.keyword)

    def visit_ThisExpr(self, expr: ThisExpr):
        if self.current_class == ClassType.NONE:
            self.error(expr.keyword, "Can't use 'this' outside of a class.")
            return
        self.resolve_local(expr, expr.keyword)

    def visit_UnaryExpr(self, expr: UnaryExpr):
        self.resolve_expr(expr.right)

    def visit_VariableExpr(self, expr: VariableExpr):
        if self.scopes and self.scopes[-1].get(expr.name.lexeme) is False:
            self.error(expr.name, "Can't read local variable in its own initializer.")
        elif not self.scopes and expr.name.lexeme in self.initializing_globals:
            self.error(expr.name, "Can't read variable in its own initializer.")
        self.resolve_local(expr, expr.name)
