#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from typing import List, Optional

from cmm_ast import (
    Span, TypeRef, Decl, VarDecl, FormalDecl, StructDecl, FnDecl, Program, Block, Stmt, AssignStmt, PostIncStmt,
    PostDecStmt, ReadStmt, WriteStmt, IfStmt, WhileStmt, CallStmt, ReturnStmt, Expr, IntLiteral, StringLiteral,
    BoolLiteral, IdExpr, DotAccessExpr, AssignExpr, CallExpr, UnaryOp, BinaryOp)
from cmm_lexer import TokenKind, Token, Lexer, TYPE_KEYWORDS


# ==========================
# Parser
# ==========================

@dataclass
class ParseError(Exception):
    message: str
    token: Optional[Token] = None
    filename: Optional[str] = None


_COMPARISON_OPS = (
    TokenKind.EQEQ, TokenKind.NE, TokenKind.LT, TokenKind.GT, TokenKind.LE, TokenKind.GE,
)


def is_location(expr: Expr) -> bool:
    return isinstance(expr, (IdExpr, DotAccessExpr))


class Parser:
    def __init__(self, tokens: List[Token], filename: Optional[str] = None) -> None:
        self.tokens = tokens
        self.index = 0
        self.filename = filename

    @classmethod
    def from_source(cls, source: str, filename: Optional[str] = None) -> "Parser":
        lexer = Lexer(source, filename or "<input>")
        tokens = lexer.tokenize()
        return cls(tokens, filename)

    # --- token utilities ---

    def _peek(self, offset: int = 0) -> Token:
        idx = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def _last(self) -> Token:
        return self.tokens[self.index - 1 if self.index > 0 else 0]

    def _at_end(self) -> bool:
        return self._peek().kind is TokenKind.EOF

    def _advance(self) -> Token:
        tok = self._peek()
        if not self._at_end():
            self.index += 1
        return tok

    def _check(self, kind: TokenKind) -> bool:
        return self._peek().kind is kind

    def _match(self, *kinds: TokenKind) -> bool:
        if self._peek().kind in kinds:
            self._advance()
            return True
        return False

    def _expect(self, kind: TokenKind, msg: str) -> Token:
        if not self._check(kind):
            raise ParseError(f"{msg}, got {self._peek()} instead", self._peek(), self.filename)
        return self._advance()

    def _span_start(self) -> Span:
        here = self._peek()
        return Span(here.line, here.column, here.line, here.column)

    def _extend_span(self, start: Span) -> Span:
        here = self._last()
        return Span(
            start.start_line,
            start.start_column,
            here.line,
            here.column + len(here.text),
        )

    def _token_span(self, tok: Token) -> Span:
        return Span(tok.line, tok.column, tok.line, tok.column + len(tok.text))

    def _ident(self, tok: Token) -> IdExpr:
        return IdExpr(tok.text, span=self._token_span(tok))

    def _starts_var_decl(self) -> bool:
        if self._peek().kind in TYPE_KEYWORDS:
            return True
        # `struct Name var;` (a struct declaration has '{' after the name instead)
        return self._check(TokenKind.STRUCT) and self._peek(2).kind is TokenKind.IDENT

    # --- entry point ---

    def parse_program(self, filename: Optional[str] = None) -> Program:
        if filename is not None:
            self.filename = filename

        start = self._span_start()
        decls: List[Decl] = []
        while not self._at_end():
            decls.append(self._parse_decl())
        return Program(decls, span=self._extend_span(start), filename=self.filename)

    # --- declarations ---

    def _parse_decl(self) -> Decl:
        if self._check(TokenKind.STRUCT) and self._peek(2).kind is TokenKind.LBRACE:
            return self._parse_struct()
        if self._check(TokenKind.STRUCT):
            return self._parse_var_decl()
        if self._peek().kind in TYPE_KEYWORDS:
            start = self._span_start()
            type_ref = self._parse_type()
            name_tok = self._expect(TokenKind.IDENT, "[PAR-0040] expected identifier after type")
            if self._check(TokenKind.LPAREN):
                return self._parse_function(start, type_ref, name_tok)
            self._expect(TokenKind.SEMI, "[PAR-0041] expected ';' or '(' after declaration name")
            return VarDecl(type_ref, self._ident(name_tok), span=self._extend_span(start))
        raise ParseError(f"[PAR-0020] unexpected token in top level: {self._peek()}", self._peek(), self.filename)

    def _parse_type(self) -> TypeRef:
        tok = self._peek()
        if tok.kind in TYPE_KEYWORDS:
            self._advance()
            return TypeRef(tok.text, span=self._token_span(tok))
        raise ParseError(f"[PAR-0070] expected type, got {tok} instead", tok, self.filename)

    def _parse_var_decl(self) -> VarDecl:
        start = self._span_start()
        if self._match(TokenKind.STRUCT):
            struct_tok = self._expect(TokenKind.IDENT, "[PAR-0050] expected struct name")
            type_ref = TypeRef(struct_tok.text, is_struct=True, span=self._token_span(struct_tok))
        else:
            type_ref = self._parse_type()
        name_tok = self._expect(TokenKind.IDENT, "[PAR-0060] expected variable name")
        self._expect(TokenKind.SEMI, "[PAR-0061] expected ';' after variable declaration")
        return VarDecl(type_ref, self._ident(name_tok), span=self._extend_span(start))

    def _parse_function(self, start: Span, return_type: TypeRef, name_tok: Token) -> FnDecl:
        self._advance()  # '('
        formals: List[FormalDecl] = []
        if not self._check(TokenKind.RPAREN):
            while True:
                formal_start = self._span_start()
                formal_type = self._parse_type()
                formal_name = self._expect(TokenKind.IDENT, "[PAR-0043] expected parameter name")
                formals.append(FormalDecl(formal_type, self._ident(formal_name), span=self._extend_span(formal_start)))
                if not self._match(TokenKind.COMMA):
                    break
        self._expect(TokenKind.RPAREN, "[PAR-0045] expected ')' after parameters")
        body = self._parse_block()
        return FnDecl(return_type, self._ident(name_tok), formals, body, span=self._extend_span(start))

    def _parse_struct(self) -> StructDecl:
        start = self._span_start()
        self._advance()  # 'struct'
        name_tok = self._expect(TokenKind.IDENT, "[PAR-0050] expected struct name")
        self._advance()  # '{'
        fields: List[VarDecl] = []
        while not self._check(TokenKind.RBRACE):
            if not self._starts_var_decl():
                raise ParseError(f"[PAR-0053] expected field declaration, got {self._peek()} instead",
                                 self._peek(), self.filename)
            fields.append(self._parse_var_decl())
        if not fields:
            raise ParseError(f"[PAR-0054] struct '{name_tok.text}' must declare at least one field",
                             self._peek(), self.filename)
        self._advance()  # '}'
        self._expect(TokenKind.SEMI, "[PAR-0057] expected ';' after struct declaration")
        return StructDecl(self._ident(name_tok), fields, span=self._extend_span(start))

    # --- blocks and statements ---

    def _parse_block(self) -> Block:
        start = self._span_start()
        self._expect(TokenKind.LBRACE, "[PAR-0090] expected '{' to start block")
        decls: List[VarDecl] = []
        while self._starts_var_decl():
            decls.append(self._parse_var_decl())
        stmts: List[Stmt] = []
        while not self._check(TokenKind.RBRACE):
            if self._at_end():
                raise ParseError("[PAR-0091] expected '}' after block, got end-of-file instead",
                                 self._peek(), self.filename)
            if self._starts_var_decl():
                raise ParseError("[PAR-0101] declarations must precede statements in a block",
                                 self._peek(), self.filename)
            stmts.append(self._parse_stmt())
        self._expect(TokenKind.RBRACE, "[PAR-0091] expected '}' after block")
        return Block(decls, stmts, span=self._extend_span(start))

    def _parse_stmt(self) -> Stmt:
        if self._check(TokenKind.IF):
            return self._parse_if_stmt()
        if self._check(TokenKind.WHILE):
            return self._parse_while_stmt()

        start = self._span_start()
        if self._match(TokenKind.RETURN):
            value = None if self._check(TokenKind.SEMI) else self._parse_expr()
            stmt: Stmt = ReturnStmt(value)
        elif self._match(TokenKind.CIN):
            self._expect(TokenKind.READ, "[PAR-0160] expected '>>' after 'cin'")
            stmt = ReadStmt(self._parse_location("[PAR-0201] expected location after '>>'"))
        elif self._match(TokenKind.COUT):
            self._expect(TokenKind.WRITE, "[PAR-0161] expected '<<' after 'cout'")
            stmt = WriteStmt(self._parse_expr())
        else:
            expr = self._parse_expr()
            if self._check(TokenKind.PLUSPLUS) or self._check(TokenKind.MINUSMINUS):
                op_tok = self._advance()
                if not is_location(expr):
                    raise ParseError(f"[PAR-0201] operand of '{op_tok.text}' must be a location", op_tok,
                                     self.filename)
                stmt = PostIncStmt(expr) if op_tok.kind is TokenKind.PLUSPLUS else PostDecStmt(expr)
            elif isinstance(expr, AssignExpr):
                stmt = AssignStmt(expr)
            elif isinstance(expr, CallExpr):
                stmt = CallStmt(expr)
            else:
                raise ParseError("[PAR-0102] expression is not a statement", self._peek(), self.filename)

        self._expect(TokenKind.SEMI, "[PAR-0100] expected ';' after statement")
        stmt.span = self._extend_span(start)
        return stmt

    def _parse_if_stmt(self) -> IfStmt:
        start = self._span_start()
        self._advance()  # 'if'
        self._expect(TokenKind.LPAREN, "[PAR-0121] expected '(' after 'if'")
        cond = self._parse_expr()
        self._expect(TokenKind.RPAREN, "[PAR-0122] expected ')' after condition")
        then_block = self._parse_block()
        else_block: Optional[Block] = None
        if self._match(TokenKind.ELSE):
            else_block = self._parse_block()
        return IfStmt(cond, then_block, else_block, span=self._extend_span(start))

    def _parse_while_stmt(self) -> WhileStmt:
        start = self._span_start()
        self._advance()  # 'while'
        self._expect(TokenKind.LPAREN, "[PAR-0131] expected '('")
        cond = self._parse_expr()
        self._expect(TokenKind.RPAREN, "[PAR-0132] expected ')'")

        body = self._parse_block()

        return WhileStmt(cond, body, span=self._extend_span(start))

    # --- expressions ---

    def _parse_expr(self) -> Expr:
        start = self._span_start()
        expr = self._parse_or_expr()
        if self._check(TokenKind.EQ):
            eq_tok = self._advance()
            if not is_location(expr):
                raise ParseError("[PAR-0200] invalid assignment target", eq_tok, self.filename)
            value = self._parse_expr()
            return AssignExpr(expr, value, span=self._extend_span(start))
        return expr

    def _parse_or_expr(self) -> Expr:
        start = self._span_start()
        expr = self._parse_and_expr()
        while self._match(TokenKind.OROR):
            op_tok = self.tokens[self.index - 1]
            right = self._parse_and_expr()
            expr = BinaryOp(op_tok.text, expr, right, span=self._extend_span(start))
        return expr

    def _parse_and_expr(self) -> Expr:
        start = self._span_start()
        expr = self._parse_comparison_expr()
        while self._match(TokenKind.ANDAND):
            op_tok = self.tokens[self.index - 1]
            right = self._parse_comparison_expr()
            expr = BinaryOp(op_tok.text, expr, right, span=self._extend_span(start))
        return expr

    def _parse_comparison_expr(self) -> Expr:
        # equality and relational operators share one non-associative level
        start = self._span_start()
        expr = self._parse_add_expr()
        if self._match(*_COMPARISON_OPS):
            op_tok = self.tokens[self.index - 1]
            right = self._parse_add_expr()
            expr = BinaryOp(op_tok.text, expr, right, span=self._extend_span(start))
            if self._peek().kind in _COMPARISON_OPS:
                raise ParseError(f"[PAR-0202] comparison operators are non-associative, got {self._peek()}",
                                 self._peek(), self.filename)
        return expr

    def _parse_add_expr(self) -> Expr:
        start = self._span_start()
        expr = self._parse_mul_expr()
        while self._match(TokenKind.PLUS, TokenKind.MINUS):
            op_tok = self.tokens[self.index - 1]
            right = self._parse_mul_expr()
            expr = BinaryOp(op_tok.text, expr, right, span=self._extend_span(start))
        return expr

    def _parse_mul_expr(self) -> Expr:
        start = self._span_start()
        expr = self._parse_unary_expr()
        while self._match(TokenKind.STAR, TokenKind.SLASH):
            op_tok = self.tokens[self.index - 1]
            right = self._parse_unary_expr()
            expr = BinaryOp(op_tok.text, expr, right, span=self._extend_span(start))
        return expr

    def _parse_unary_expr(self) -> Expr:
        start = self._span_start()
        if self._match(TokenKind.BANG, TokenKind.MINUS):
            op_tok = self.tokens[self.index - 1]
            operand = self._parse_unary_expr()
            return UnaryOp(op_tok.text, operand, span=self._extend_span(start))
        return self._parse_primary_expr()

    def _parse_location(self, msg: str) -> Expr:
        start = self._span_start()
        name_tok = self._expect(TokenKind.IDENT, msg)
        expr: Expr = self._ident(name_tok)
        while self._match(TokenKind.DOT):
            field_tok = self._expect(TokenKind.IDENT, "[PAR-0212] expected field name after '.'")
            expr = DotAccessExpr(expr, self._ident(field_tok), span=self._extend_span(start))
        return expr

    def _parse_primary_expr(self) -> Expr:
        start = self._span_start()
        tok = self._peek()

        # Literals
        if self._match(TokenKind.INT):
            return IntLiteral(int(tok.text), span=self._extend_span(start))
        if self._match(TokenKind.STRING):
            return StringLiteral(tok.text, span=self._extend_span(start))
        if self._match(TokenKind.TRUE):
            return BoolLiteral(True, span=self._extend_span(start))
        if self._match(TokenKind.FALSE):
            return BoolLiteral(False, span=self._extend_span(start))

        # Call or location
        if self._check(TokenKind.IDENT):
            if self._peek(1).kind is TokenKind.LPAREN:
                callee = self._ident(self._advance())
                self._advance()  # '('
                args: List[Expr] = []
                if not self._check(TokenKind.RPAREN):
                    while True:
                        args.append(self._parse_expr())
                        if not self._match(TokenKind.COMMA):
                            break
                self._expect(TokenKind.RPAREN, "[PAR-0210] expected ')' after arguments")
                return CallExpr(callee, args, span=self._extend_span(start))
            return self._parse_location("[PAR-0225] expected identifier")

        # Parenthesized expression
        if self._match(TokenKind.LPAREN):
            inner = self._parse_expr()
            self._expect(TokenKind.RPAREN, "[PAR-0224] expected ')' after expression")
            return inner

        raise ParseError(f"[PAR-0225] unexpected token in expression: {tok.kind}:'{tok.text}'", tok, self.filename)
