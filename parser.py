from typing import List, Optional
from lexer import TokenType, Token
from ast_nodes import *

MAX_ARGUMENTS = 255

# Precedence table for binary operators (Higher value = higher precedence)
OPERATOR_PRECEDENCE = {
    TokenType.OR: 10,
    TokenType.AND: 20,
    TokenType.BANG_EQUAL: 30, TokenType.EQUAL_EQUAL: 30,
    TokenType.GREATER: 40, TokenType.GREATER_EQUAL: 40,
    TokenType.LESS: 40, TokenType.LESS_EQUAL: 40,
    TokenType.MINUS: 50, TokenType.PLUS: 50,
    TokenType.SLASH: 60, TokenType.STAR: 60,
}

_LOGICAL_OPERATORS = frozenset({TokenType.AND, TokenType.OR})

# Token types that begin a new statement; error recovery stops in front of them
_STATEMENT_START_TOKENS = frozenset({
    TokenType.CLASS, TokenType.FUN, TokenType.VAR, TokenType.FOR,
    TokenType.IF, TokenType.WHILE, TokenType.PRINT, TokenType.RETURN,
})


class ParserError(Exception):
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

class Parser:
    def __init__(self, tokens: List[Token], expression_mode: bool = False):
        self.tokens = tokens
        self.pos = 0
        self.current = tokens[0]
        # Expression mode lets the final expression statement omit its ';'
        self.expression_mode = expression_mode
        self.errors: List[ParserError] = []

        # Statement dispatch table: TokenType → parse method (keyword already consumed)
        self._stmt_dispatch = {
            TokenType.FOR: self.parse_for,
            TokenType.IF: self.parse_if,
            TokenType.PRINT: self.parse_print,
            TokenType.RETURN: self.parse_return,
            TokenType.WHILE: self.parse_while,
            TokenType.LEFT_BRACE: lambda: BlockStmt(self.parse_block()),
        }

        self._precedence = OPERATOR_PRECEDENCE.copy()

    def peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def previous(self) -> Token:
        return self.tokens[self.pos - 1]

    def advance(self) -> Token:
        old = self.current
        if not self.is_at_end():
            self.pos += 1
            self.current = self.tokens[self.pos]
        return old

    def is_at_end(self) -> bool:
        return self.current.type == TokenType.EOF

    def expect(self, token_type: TokenType, message: str) -> Token:
        if self.check(token_type):
            return self.advance()
        raise self.error(self.current, message)

    def match(self, *token_types: TokenType) -> Optional[Token]:
        if self.check(*token_types):
            return self.advance()
        return None

    def check(self, *token_types: TokenType) -> bool:
        return not self.is_at_end() and self.current.type in token_types

    def error(self, token: Token, message: str) -> ParserError:
        """Record a syntax error and hand it back so the caller can decide whether to unwind."""
        err = ParserError(token, message)
        self.errors.append(err)
        return err

    def synchronize(self):
        """Discard tokens until the start of the next statement."""
        self.advance()
        while not self.is_at_end():
            if self.previous().type == TokenType.SEMICOLON:
                return
            if self.current.type in _STATEMENT_START_TOKENS:
                return
            self.advance()

    # ── Top-level parsing ──

    def parse(self) -> List[Stmt]:
        statements = []
        while not self.is_at_end():
            stmt = self.parse_declaration()
            if stmt is not None:
                statements.append(stmt)
        return statements

    def parse_declaration(self) -> Optional[Stmt]:
        try:
            if self.match(TokenType.CLASS):
                return self.parse_class_decl()
            if self.match(TokenType.FUN):
                return self.parse_function("function")
            if self.match(TokenType.VAR):
                return self.parse_var_decl()
            return self.parse_statement()
        except ParserError:
            self.synchronize()
            return None

    def parse_class_decl(self) -> ClassStmt:
        name = self.expect(TokenType.IDENTIFIER, "Expect class name.")

        superclass = None
        if self.match(TokenType.LESS):
            superclass = VariableExpr(self.expect(TokenType.IDENTIFIER, "Expect superclass name."))

        self.expect(TokenType.LEFT_BRACE, "Expect '{' before class body.")
        methods = []
        while not self.check(TokenType.RIGHT_BRACE) and not self.is_at_end():
            methods.append(self.parse_function("method"))
        self.expect(TokenType.RIGHT_BRACE, "Expect '}' after class body.")
        return ClassStmt(name, superclass, methods)

    def parse_function(self, kind: str) -> FunctionStmt:
        name = self.expect(TokenType.IDENTIFIER, f"Expect {kind} name.")
        self.expect(TokenType.LEFT_PAREN, f"Expect '(' after {kind} name.")
        params = self._parse_params()
        self.expect(TokenType.RIGHT_PAREN, "Expect ')' after parameters.")
        self.expect(TokenType.LEFT_BRACE, f"Expect '{{' before {kind} body.")
        body = self.parse_block()
        return FunctionStmt(name, params, body)

    def _parse_params(self) -> List[Token]:
        params = []
        if self.check(TokenType.RIGHT_PAREN):
            return params
        while True:
            if len(params) >= MAX_ARGUMENTS:
                self.error(self.current, f"Can't have more than {MAX_ARGUMENTS} parameters.")
            params.append(self.expect(TokenType.IDENTIFIER, "Expect parameter name."))
            if not self.match(TokenType.COMMA):
                break
        return params

    def parse_var_decl(self) -> VarStmt:
        name = self.expect(TokenType.IDENTIFIER, "Expect variable name.")
        initializer = None
        if self.match(TokenType.EQUAL):
            initializer = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "Expect ';' after variable declaration.")
        return VarStmt(name, initializer)

    def parse_statement(self) -> Stmt:
        handler = self._stmt_dispatch.get(self.current.type)
        if handler:
            self.advance()
            return handler()
        return self.parse_expression_stmt()

    def parse_for(self) -> Stmt:
        """Desugar `for (init; cond; incr) body` into a while loop inside blocks."""
        self.expect(TokenType.LEFT_PAREN, "Expect '(' after 'for'.")

        if self.match(TokenType.SEMICOLON):
            initializer = None
        elif self.match(TokenType.VAR):
            initializer = self.parse_var_decl()
        else:
            initializer = self.parse_expression_stmt()

        condition = None
        if not self.check(TokenType.SEMICOLON):
            condition = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "Expect ';' after loop condition.")

        increment = None
        if not self.check(TokenType.RIGHT_PAREN):
            increment = self.parse_expression()
        self.expect(TokenType.RIGHT_PAREN, "Expect ')' after for clauses.")

        body = self.parse_statement()

        if increment is not None:
            body = BlockStmt([body, ExpressionStmt(increment)])
        if condition is None:
            condition = LiteralExpr(True)
        body = WhileStmt(condition, body)
        if initializer is not None:
            body = BlockStmt([initializer, body])
        return body

    def parse_if(self) -> IfStmt:
        self.expect(TokenType.LEFT_PAREN, "Expect '(' after 'if'.")
        condition = self.parse_expression()
        self.expect(TokenType.RIGHT_PAREN, "Expect ')' after if condition.")
        then_branch = self.parse_statement()
        else_branch = self.parse_statement() if self.match(TokenType.ELSE) else None
        return IfStmt(condition, then_branch, else_branch)

    def parse_print(self) -> PrintStmt:
        value = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "Expect ';' after value.")
        return PrintStmt(value)

    def parse_return(self) -> ReturnStmt:
        keyword = self.previous()
        value = None
        if not self.check(TokenType.SEMICOLON):
            value = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "Expect ';' after return value.")
        return ReturnStmt(keyword, value)

    def parse_while(self) -> WhileStmt:
        self.expect(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition = self.parse_expression()
        self.expect(TokenType.RIGHT_PAREN, "Expect ')' after condition.")
        return WhileStmt(condition, self.parse_statement())

    def parse_block(self) -> List[Stmt]:
        """Parse declarations up to the closing brace (opening brace already consumed)."""
        statements = []
        while not self.check(TokenType.RIGHT_BRACE) and not self.is_at_end():
            stmt = self.parse_declaration()
            if stmt is not None:
                statements.append(stmt)
        self.expect(TokenType.RIGHT_BRACE, "Expect '}' after block.")
        return statements

    def parse_expression_stmt(self) -> ExpressionStmt:
        expr = self.parse_expression()
        if not (self.expression_mode and self.is_at_end()):
            self.expect(TokenType.SEMICOLON, "Expect ';' after expression.")
        return ExpressionStmt(expr)

    # ── Expressions ──

    def parse_expression(self) -> Expr:
        return self.parse_assignment()

    def parse_assignment(self) -> Expr:
        expr = self.parse_binary()

        if self.match(TokenType.EQUAL):
            equals = self.previous()
            value = self.parse_assignment()

            if isinstance(expr, VariableExpr):
                return AssignExpr(expr.name, value)
            if isinstance(expr, GetExpr):
                return SetExpr(expr.object, expr.name, value)

            # Reported, but the parser is not confused: no need to synchronize.
            self.error(equals, "Invalid assignment target.")

        return expr

    def parse_binary(self, min_prec: int = 0) -> Expr:
        left = self.parse_unary()

        while not self.is_at_end():
            prec = self._get_precedence(self.current.type)
            if prec < min_prec:
                break

            operator = self.advance()
            right = self.parse_binary(prec + 1)
            if operator.type in _LOGICAL_OPERATORS:
                left = LogicalExpr(left, operator, right)
            else:
                left = BinaryExpr(left, operator, right)

        return left

    def _get_precedence(self, type_: TokenType) -> int:
        return self._precedence.get(type_, -1)

    def parse_unary(self) -> Expr:
        if self.match(TokenType.BANG, TokenType.MINUS):
            operator = self.previous()
            return UnaryExpr(operator, self.parse_unary())
        return self.parse_call()

    def parse_call(self) -> Expr:
        expr = self.parse_primary()
        while True:
            if self.match(TokenType.LEFT_PAREN):
                expr = self._finish_call(expr)
            elif self.match(TokenType.DOT):
                name = self.expect(TokenType.IDENTIFIER, "Expect property name after '.'.")
                expr = GetExpr(expr, name)
            else:
                break
        return expr

    def _finish_call(self, callee: Expr) -> CallExpr:
        """Parse the argument list (LEFT_PAREN already consumed)."""
        args = []
        if not self.check(TokenType.RIGHT_PAREN):
            while True:
                if len(args) >= MAX_ARGUMENTS:
                    self.error(self.current, f"Can't have more than {MAX_ARGUMENTS} arguments.")
                args.append(self.parse_expression())
                if not self.match(TokenType.COMMA):
                    break
        paren = self.expect(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        return CallExpr(callee, paren, args)

    def parse_primary(self) -> Expr:
        if self.match(TokenType.FALSE):
            return LiteralExpr(False)
        if self.match(TokenType.TRUE):
            return LiteralExpr(True)
        if self.match(TokenType.NIL):
            return LiteralExpr(None)
        if self.match(TokenType.THIS):
            return ThisExpr(self.previous())

        if self.match(TokenType.SUPER):
            keyword = self.previous()
            self.expect(TokenType.DOT, "Expect '.' after 'super'.")
            method = self.expect(TokenType.IDENTIFIER, "Expect superclass method name.")
            return SuperExpr(keyword, method)

        if self.match(TokenType.NUMBER, TokenType.STRING):
            return LiteralExpr(self.previous().literal)

        if self.match(TokenType.IDENTIFIER):
            return VariableExpr(self.previous())

        if self.match(TokenType.LEFT_PAREN):
            expr = self.parse_expression()
            self.expect(TokenType.RIGHT_PAREN, "Expect ')' after expression.")
            return GroupingExpr(expr)

        raise self.error(self.current, "Expect expression.")
