#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Optional, List


# ==========================
# AST definitions
# ==========================


@dataclass
class Span:
    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass
class Node:
    span: Optional[Span] = field(default=None, repr=False, compare=False, kw_only=True)


# --- types ---

@dataclass
class TypeRef(Node):
    name: str  # "int", "bool", "void", or a struct name
    is_struct: bool = False  # written as `struct Name`


# --- expressions ---

class Expr(Node):
    pass


@dataclass
class IntLiteral(Expr):
    value: int


@dataclass
class StringLiteral(Expr):
    value: str  # escapes kept as written


@dataclass
class BoolLiteral(Expr):
    value: bool


@dataclass
class IdExpr(Expr):
    name: str
    # Arena index of the bound entry; set by name analysis (UNRESOLVED on failure).
    symbol: Optional[int] = field(default=None, repr=False, compare=False, kw_only=True)


@dataclass
class DotAccessExpr(Expr):
    obj: Expr  # IdExpr or DotAccessExpr
    field: IdExpr
    # Struct definition reached through this access when the field is itself a struct.
    struct_def: Optional[int] = field(default=None, repr=False, compare=False, kw_only=True)
    bad_access: bool = field(default=False, repr=False, compare=False, kw_only=True)


@dataclass
class AssignExpr(Expr):
    target: Expr  # IdExpr or DotAccessExpr
    value: Expr


@dataclass
class CallExpr(Expr):
    callee: IdExpr
    args: List[Expr]


@dataclass
class UnaryOp(Expr):
    op: str  # "-", "!"
    operand: Expr


@dataclass
class BinaryOp(Expr):
    op: str  # "+", "-", "*", "/", "&&", "||", "==", "!=", "<", ">", "<=", ">="
    left: Expr
    right: Expr


# --- declarations ---

class Decl(Node):
    pass


@dataclass
class VarDecl(Decl):
    type: TypeRef
    name: IdExpr


@dataclass
class FormalDecl(Decl):
    type: TypeRef
    name: IdExpr


@dataclass
class StructDecl(Decl):
    name: IdExpr
    fields: List[VarDecl]


# --- statements ---

@dataclass
class Stmt(Node):
    pass


@dataclass
class Block(Node):
    decls: List[VarDecl]
    stmts: List[Stmt]


@dataclass
class AssignStmt(Stmt):
    assign: AssignExpr


@dataclass
class PostIncStmt(Stmt):
    target: Expr


@dataclass
class PostDecStmt(Stmt):
    target: Expr


@dataclass
class ReadStmt(Stmt):
    target: Expr


@dataclass
class WriteStmt(Stmt):
    value: Expr


@dataclass
class IfStmt(Stmt):
    cond: Expr
    then_block: Block
    else_block: Optional[Block] = None


@dataclass
class WhileStmt(Stmt):
    cond: Expr
    body: Block


@dataclass
class CallStmt(Stmt):
    call: CallExpr


@dataclass
class ReturnStmt(Stmt):
    value: Optional[Expr] = None


@dataclass
class FnDecl(Decl):
    return_type: TypeRef
    name: IdExpr
    formals: List[FormalDecl]
    body: Block


@dataclass
class Program(Node):
    decls: List[Decl]
    filename: Optional[str] = field(default=None, repr=False, compare=False, kw_only=True)
