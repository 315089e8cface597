import re
from decimal import Decimal
from enum import Enum, auto
from typing import Any, List, Optional

class TokenType(Enum):
    # Single-character tokens
    LEFT_PAREN = auto()
    RIGHT_PAREN = auto()
    LEFT_BRACE = auto()
    RIGHT_BRACE = auto()
    COMMA = auto()
    DOT = auto()
    MINUS = auto()
    PLUS = auto()
    SEMICOLON = auto()
    SLASH = auto()
    STAR = auto()

    # One or two character tokens (CRITICAL: two-char forms are matched first)
    BANG = auto()
    BANG_EQUAL = auto()
    EQUAL = auto()
    EQUAL_EQUAL = auto()
    GREATER = auto()
    GREATER_EQUAL = auto()
    LESS = auto()
    LESS_EQUAL = auto()

    # Literals
    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()

    # Keywords
    AND = auto()
    CLASS = auto()
    ELSE = auto()
    FALSE = auto()
    FUN = auto()
    FOR = auto()
    IF = auto()
    NIL = auto()
    OR = auto()
    PRINT = auto()
    RETURN = auto()
    SUPER = auto()
    THIS = auto()
    TRUE = auto()
    VAR = auto()
    WHILE = auto()

    EOF = auto()


# Plain decimal between these bounds, scientific notation outside them
_PLAIN_MIN = 1e-3
_PLAIN_MAX = 1e7

def format_number(value: float) -> str:
    """Render a number the way Java's Double.toString does: `3.0`, `0.5`, `1.0E21`.

    Digits are the shortest that round-trip. Infinities and NaN are the
    caller's business.
    """
    magnitude = abs(value)
    if magnitude == 0 or _PLAIN_MIN <= magnitude < _PLAIN_MAX:
        return repr(value)

    digits, exponent = Decimal(repr(magnitude)).normalize().as_tuple()[1:]
    text = "".join(str(d) for d in digits)
    sci_exponent = len(digits) - 1 + exponent
    mantissa = text[0] + "." + (text[1:] or "0")
    sign = "-" if value < 0 else ""
    return f"{sign}{mantissa}E{sci_exponent}"

class Token:
    def __init__(self, type_: TokenType, lexeme: str, literal: Any, line: int, column: int = 0):
        self.type = type_
        self.lexeme = lexeme
        self.literal = literal
        self.line = line
        self.column = column

    def __str__(self):
        if self.literal is None:
            literal = "null"
        elif isinstance(self.literal, float):
            literal = format_number(self.literal)
        else:
            literal = self.literal
        return f"{self.type.name} {self.lexeme} {literal}"

    def __repr__(self):
        return f"Token({self.type.name}, {self.lexeme!r}, {self.literal!r}, line={self.line})"

class LexerError(Exception):
    def __init__(self, line: int, message: str, column: int = 0):
        super().__init__(message)
        self.line = line
        self.column = column
        self.message = message

    def __str__(self):
        return f"[line {self.line}] Error: {self.message}"

class Lexer:
    # =====================================================================
    # ORDER IS SEMANTIC: earlier patterns have higher priority in alternation
    # =====================================================================
    TOKEN_SPECS = [
        # Whitespace and comments (discarded after position tracking)
        ('WHITESPACE', r'[ \t\r]+'),
        ('NEWLINE', r'\n'),
        ('COMMENT', r'//[^\n]*'),

        # Two-character operators BEFORE their one-character prefixes
        ('BANG_EQUAL', r'!='),
        ('EQUAL_EQUAL', r'=='),
        ('GREATER_EQUAL', r'>='),
        ('LESS_EQUAL', r'<='),
        ('BANG', r'!'),
        ('EQUAL', r'='),
        ('GREATER', r'>'),
        ('LESS', r'<'),

        ('LEFT_PAREN', r'\('),
        ('RIGHT_PAREN', r'\)'),
        ('LEFT_BRACE', r'\{'),
        ('RIGHT_BRACE', r'\}'),
        ('COMMA', r','),
        ('DOT', r'\.'),
        ('MINUS', r'-'),
        ('PLUS', r'\+'),
        ('SEMICOLON', r';'),
        ('STAR', r'\*'),
        ('SLASH', r'/'),

        # Literals. A fractional part needs a digit after the dot.
        ('NUMBER', r'\d+(?:\.\d+)?'),
        ('STRING', r'"[^"]*"'),
        ('UNTERMINATED', r'"[^"]*\Z'),

        ('IDENTIFIER', r'[A-Za-z_][A-Za-z0-9_]*'),
    ]

    KEYWORDS = {
        'and': TokenType.AND,
        'class': TokenType.CLASS,
        'else': TokenType.ELSE,
        'false': TokenType.FALSE,
        'for': TokenType.FOR,
        'fun': TokenType.FUN,
        'if': TokenType.IF,
        'nil': TokenType.NIL,
        'or': TokenType.OR,
        'print': TokenType.PRINT,
        'return': TokenType.RETURN,
        'super': TokenType.SUPER,
        'this': TokenType.THIS,
        'true': TokenType.TRUE,
        'var': TokenType.VAR,
        'while': TokenType.WHILE,
    }

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []
        self.errors: List[LexerError] = []

    @property
    def _regex(self):
        cls = self.__class__
        if '_MASTER_REGEX' not in cls.__dict__:
            pattern_parts = [f'(?P<{name}>{regex})' for name, regex in cls.TOKEN_SPECS]
            cls._MASTER_REGEX = re.compile('|'.join(pattern_parts))
        return cls._MASTER_REGEX

    def _update_position(self, text):
        newlines = text.count('\n')
        if newlines:
            self.line += newlines
            self.column = len(text) - text.rfind('\n')
        else:
            self.column += len(text)

    def error(self, message, line: Optional[int] = None):
        self.errors.append(LexerError(self.line if line is None else line, message, self.column))

    def tokenize(self) -> List[Token]:
        """Scan the whole source. Problems are collected in `errors`; scanning never stops early."""
        while self.pos < len(self.source):
            match = self._regex.match(self.source, self.pos)

            if not match:
                char = self.source[self.pos]
                self.error(f"Unexpected character: {char}")
                self.pos += 1
                self._update_position(char)
                continue

            kind = match.lastgroup
            value = match.group()
            start_line, start_col = self.line, self.column

            self.pos = match.end()
            self._update_position(value)

            if kind in ('WHITESPACE', 'COMMENT', 'NEWLINE'):
                continue
            if kind == 'UNTERMINATED':
                self.error("Unterminated string.")
                continue

            self.tokens.append(self._create_token(kind, value, start_line, start_col))

        self.tokens.append(Token(TokenType.EOF, "", None, self.line, self.column))
        return self.tokens

    def _create_token(self, kind, value, line, col) -> Token:
        if kind == 'IDENTIFIER':
            token_type = self.KEYWORDS.get(value, TokenType.IDENTIFIER)
            return Token(token_type, value, None, line, col)
        if kind == 'NUMBER':
            return Token(TokenType.NUMBER, value, float(value), line, col)
        if kind == 'STRING':
            # Strings may span lines; the token reports the line it ends on.
            return Token(TokenType.STRING, value, value[1:-1], self.line, col)
        return Token(TokenType[kind], value, None, line, col)
