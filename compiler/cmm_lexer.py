#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from enum import Enum, auto
from typing import List


# ==========================
# Tokens and lexer
# ==========================

class TokenKind(Enum):
    # Special
    EOF = auto()

    IDENT = auto()  # identifier, e.g. i, name, etc.
    INT = auto()  # integer literal, e.g. 42
    STRING = auto()  # string literal, e.g. "hello world"

    # Keywords
    INT_KW = auto()
    BOOL_KW = auto()
    VOID_KW = auto()
    STRUCT = auto()
    TRUE = auto()
    FALSE = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    RETURN = auto()
    CIN = auto()
    COUT = auto()

    # Punctuation / operators
    LBRACE = auto()  # {
    RBRACE = auto()  # }
    LPAREN = auto()  # (
    RPAREN = auto()  # )
    COMMA = auto()  # ,
    SEMI = auto()  # ;
    DOT = auto()  # .
    EQ = auto()  # =
    PLUS = auto()  # +
    MINUS = auto()  # -
    PLUSPLUS = auto()  # ++
    MINUSMINUS = auto()  # --
    STAR = auto()  # *
    SLASH = auto()  # /
    LT = auto()  # <
    GT = auto()  # >
    LE = auto()  # <=
    GE = auto()  # >=
    EQEQ = auto()  # ==
    NE = auto()  # !=
    ANDAND = auto()  # &&
    OROR = auto()  # ||
    BANG = auto()  # !
    WRITE = auto()  # <<
    READ = auto()  # >>


KEYWORDS = {
    "int": TokenKind.INT_KW,
    "bool": TokenKind.BOOL_KW,
    "void": TokenKind.VOID_KW,
    "struct": TokenKind.STRUCT,
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
    "if": TokenKind.IF,
    "else": TokenKind.ELSE,
    "while": TokenKind.WHILE,
    "return": TokenKind.RETURN,
    "cin": TokenKind.CIN,
    "cout": TokenKind.COUT,
}

TYPE_KEYWORDS = (TokenKind.INT_KW, TokenKind.BOOL_KW, TokenKind.VOID_KW)

_SINGLE_CHAR_TOKENS = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMI,
    ".": TokenKind.DOT,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
}

# Escapes accepted inside string literals; kept verbatim for `.asciiz`.
STRING_ESCAPES = ("n", "t", "'", '"', "\\")


@dataclass
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"{self.text!r}" if self.kind != TokenKind.EOF else "end-of-file"


# C-- source is ASCII; other letters and digits are unexpected characters.
def _is_digit(c: str) -> bool:
    return c.isascii() and c.isdigit()


def _is_ident_start(c: str) -> bool:
    return c.isascii() and (c.isalpha() or c == "_")


def _is_ident_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == "_")


@dataclass
class LexerError(Exception):
    message: str
    filename: str
    line: int
    column: int


class Lexer:
    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.length = len(source)
        self.index = 0
        self.line = 1
        self.column = 1

    # --- low-level char utilities ---

    def _at_end(self) -> bool:
        return self.index >= self.length

    def _peek(self) -> str:
        if self._at_end():
            return "\0"
        return self.source[self.index]

    def _peek_next(self) -> str:
        if self.index + 1 >= self.length:
            return "\0"
        return self.source[self.index + 1]

    def _advance(self) -> str:
        c = self._peek()
        if not self._at_end():
            self.index += 1
            if c == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return c

    # --- main API ---

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while True:
            tok = self._next_token()
            tokens.append(tok)
            if tok.kind is TokenKind.EOF:
                break
        return tokens

    def _next_token(self) -> Token:
        self._skip_ws_and_comments()
        start_line, start_col = self.line, self.column

        if self._at_end():
            return Token(TokenKind.EOF, "", start_line, start_col)

        c = self._advance()

        # identifiers / keywords
        if _is_ident_start(c):
            ident = [c]
            while _is_ident_char(self._peek()):
                ident.append(self._advance())
            text = "".join(ident)
            return Token(KEYWORDS.get(text, TokenKind.IDENT), text, start_line, start_col)

        if _is_digit(c):
            text = self._read_number(c, start_col, start_line)
            return Token(TokenKind.INT, text, start_line, start_col)

        if c == '"':
            text = self._read_string_literal(start_col, start_line)
            return Token(TokenKind.STRING, text, start_line, start_col)

        if c in _SINGLE_CHAR_TOKENS:
            return Token(_SINGLE_CHAR_TOKENS[c], c, start_line, start_col)

        # punctuation / operators with lookahead

        if c == "+":
            if self._peek() == "+":
                self._advance()
                return Token(TokenKind.PLUSPLUS, "++", start_line, start_col)
            return Token(TokenKind.PLUS, c, start_line, start_col)

        if c == "-":
            if self._peek() == "-":
                self._advance()
                return Token(TokenKind.MINUSMINUS, "--", start_line, start_col)
            return Token(TokenKind.MINUS, c, start_line, start_col)

        if c == "=":
            if self._peek() == "=":
                self._advance()
                return Token(TokenKind.EQEQ, "==", start_line, start_col)
            return Token(TokenKind.EQ, c, start_line, start_col)

        if c == "!":
            if self._peek() == "=":
                self._advance()
                return Token(TokenKind.NE, "!=", start_line, start_col)
            return Token(TokenKind.BANG, c, start_line, start_col)

        if c == "<":
            if self._peek() == "=":
                self._advance()
                return Token(TokenKind.LE, "<=", start_line, start_col)
            if self._peek() == "<":
                self._advance()
                return Token(TokenKind.WRITE, "<<", start_line, start_col)
            return Token(TokenKind.LT, c, start_line, start_col)

        if c == ">":
            if self._peek() == "=":
                self._advance()
                return Token(TokenKind.GE, ">=", start_line, start_col)
            if self._peek() == ">":
                self._advance()
                return Token(TokenKind.READ, ">>", start_line, start_col)
            return Token(TokenKind.GT, c, start_line, start_col)

        if c == "&" and self._peek() == "&":
            self._advance()
            return Token(TokenKind.ANDAND, "&&", start_line, start_col)

        if c == "|" and self._peek() == "|":
            self._advance()
            return Token(TokenKind.OROR, "||", start_line, start_col)

        raise LexerError(f"[LEX-0040] unexpected character {c!r} at {start_line}:{start_col}", self.filename, start_line,
                         start_col)

    def _read_string_literal(self, start_col: int, start_line: int) -> str:
        chars: List[str] = []
        while True:
            ch = self._peek()

            if ch == "\0" or ch == "\n":
                raise LexerError("[LEX-0010] unterminated string literal", self.filename, start_line, start_col)
            if ch == "\\":
                chars.append(self._advance())
                esc = self._peek()
                if esc not in STRING_ESCAPES:
                    raise LexerError(f"[LEX-0059] unknown escape sequence \\{esc}", self.filename, self.line,
                                     self.column)
                chars.append(self._advance())
                continue
            if ch == '"':
                self._advance()
                break

            chars.append(self._advance())

        return "".join(chars)

    def _read_number(self, c: str, start_col: int, start_line: int) -> str:
        digits = [c]
        while _is_digit(self._peek()):
            digits.append(self._advance())
        text = "".join(digits)
        if _is_ident_start(self._peek()):
            raise LexerError(f"[LEX-0061] invalid character '{self._peek()}' after integer literal",
                             self.filename, self.line, self.column)
        value = int(text)
        if value > 2 ** 31 - 1:
            raise LexerError(f"[LEX-0060] integer literal '{value}' exceeds 32-bit signed range",
                             self.filename, start_line, start_col)
        return text

    def _skip_ws_and_comments(self) -> None:
        while True:
            c = self._peek()
            if c in (" ", "\t", "\r", "\n"):
                self._advance()
                continue
            if (c == "/" and self._peek_next() == "/") or c == "#":
                # line comment
                while self._peek() not in ("\n", "\0"):
                    self._advance()
                continue
            break
