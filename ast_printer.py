"""
Renders statements and expressions as Lisp-like parenthesized text.

Used by the `parse` driver mode. The output shows the tree's grouping, so
`1 + 2 * 3` prints as `(+ 1.0 (* 2.0 3.0))`.
"""
from ast_nodes import *
from lexer import format_number


class AstPrinter:
    def __init__(self):
        self._printers = {
            BlockStmt: self._print_block,
            ClassStmt: lambda s: f"(class {s.name.lexeme})",
            ExpressionStmt: lambda s: self.print(s.expression),
            FunctionStmt: self._print_function,
            IfStmt: self._print_if,
            PrintStmt: lambda s: self.parenthesize("print", s.expression),
            ReturnStmt: self._print_return,
            VarStmt: self._print_var,
            WhileStmt: lambda s: f"(while {self.print(s.condition)} {self.print(s.body)})",

            AssignExpr: lambda e: self.parenthesize("=", VariableExpr(e.name), e.value),
            BinaryExpr: lambda e: self.parenthesize(e.operator.lexeme, e.left, e.right),
            CallExpr: lambda e: self.parenthesize("call", e.callee, *e.arguments),
            GetExpr: lambda e: self.parenthesize("get", e.object) + "." + e.name.lexeme,
            GroupingExpr: lambda e: self.parenthesize("group", e.expression),
            LiteralExpr: self._print_literal,
            LogicalExpr: lambda e: self.parenthesize(e.operator.lexeme, e.left, e.right),
            SetExpr: lambda e: self.parenthesize("set", e.object) + "." + e.name.lexeme,
            SuperExpr: lambda e: f"(super.{e.method.lexeme})",
            ThisExpr: lambda e: "this",
            UnaryExpr: lambda e: self.parenthesize(e.operator.lexeme, e.right),
            VariableExpr: lambda e: e.name.lexeme,
        }

    def print(self, node) -> str:
        printer = self._printers.get(type(node))
        if printer is None:
            raise TypeError(f"No print method for {type(node).__name__}")
        return printer(node)

    def parenthesize(self, name: str, *exprs: Expr) -> str:
        parts = [name] + [self.print(expr) for expr in exprs]
        return "(" + " ".join(parts) + ")"

    def _print_block(self, stmt: BlockStmt) -> str:
        # Every statement is followed by a space, including the last one.
        inner = "".join(self.print(s) + " " for s in stmt.statements)
        return f"(block {inner})"

    def _print_function(self, stmt: FunctionStmt) -> str:
        params = " ".join(p.lexeme for p in stmt.params)
        body = "".join(self.print(s) for s in stmt.body)
        return f"(fun {stmt.name.lexeme}({params}) {body})"

    def _print_if(self, stmt: IfStmt) -> str:
        text = f"(if {self.print(stmt.condition)} {self.print(stmt.then_branch)}"
        if stmt.else_branch is not None:
            text += " " + self.print(stmt.else_branch)
        return text + ")"

    def _print_return(self, stmt: ReturnStmt) -> str:
        if stmt.value is None:
            return "(return)"
        return f"(return {self.print(stmt.value)})"

    def _print_var(self, stmt: VarStmt) -> str:
        if stmt.initializer is None:
            return self.parenthesize("var", VariableExpr(stmt.name))
        return self.parenthesize("var", VariableExpr(stmt.name), stmt.initializer)

    @staticmethod
    def _print_literal(expr: LiteralExpr) -> str:
        value = expr.value
        if value is None:
            return "nil"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            return format_number(value)
        return str(value)
