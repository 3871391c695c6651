#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from cmm_analysis import AnalysisResult
from cmm_ast import (
    Node, Decl, VarDecl, StructDecl, FnDecl, Block, Stmt, AssignStmt, PostIncStmt, PostDecStmt, ReadStmt,
    WriteStmt, IfStmt, WhileStmt, CallStmt, ReturnStmt, Expr, IntLiteral, StringLiteral, BoolLiteral, IdExpr,
    DotAccessExpr, AssignExpr, CallExpr, UnaryOp, BinaryOp)
from cmm_diagnostics import Diagnostic
from cmm_internal_error import InternalCompilerError, ICELocation
from cmm_logger import log_debug
from cmm_symbols import FunctionEntry, UNRESOLVED
from cmm_types import Type, get_builtin_type, get_error_type, format_type


ARITHMETIC_OPS = frozenset({"+", "-", "*", "/"})
LOGICAL_OPS = frozenset({"&&", "||"})
RELATIONAL_OPS = frozenset({"<", ">", "<=", ">="})
EQUALITY_OPS = frozenset({"==", "!="})


# Type checking for C--


@dataclass
class TypeChecker:
    """Type checker for one name-analysed program.

    Implements:
      - Expression typing for literals, identifiers, dot access, operators,
        assignment and calls
      - Statement checking against the enclosing function's return type
      - The error type as an absorbing element: an operand that already
        failed never produces a second diagnostic
      - The program-level check for a proper `main`
      - Warnings for statements that follow a `return` in the same list

    Populates `analysis.expr_types[id(expr)]` and appends diagnostics to `analysis.diagnostics`.
    """
    analysis: AnalysisResult

    def __post_init__(self) -> None:
        if self.analysis.program is None:
            raise InternalCompilerError("[ICE-0200] type checking started without a parsed program")

        self.program = self.analysis.program
        self.arena = self.analysis.symbols
        self.expr_types = self.analysis.expr_types

        # Cached builtin types
        self.int_type: Type = get_builtin_type("int")
        self.bool_type: Type = get_builtin_type("bool")
        self.void_type: Type = get_builtin_type("void")
        self.string_type: Type = get_builtin_type("string")
        self.error_type: Type = get_error_type()

        # Per-function state (set in _check_function)
        self._return_type: Optional[Type] = None

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def check(self) -> None:
        for decl in self.program.decls:
            self._check_decl(decl)
        self._check_main()
        log_debug(self.analysis.context, f"Typed {len(self.expr_types)} expressions")

    def _check_decl(self, decl: Decl) -> None:
        if isinstance(decl, (VarDecl, StructDecl)):
            return
        if isinstance(decl, FnDecl):
            self._check_function(decl)
            return
        raise self._ice(decl, f"[ICE-0201] unexpected declaration kind {type(decl).__name__}")

    def _check_main(self) -> None:
        for decl in self.program.decls:
            if (isinstance(decl, FnDecl) and decl.name.name == "main" and not decl.formals
                    and decl.return_type.name == "void"):
                return
        self.analysis.diagnostics.append(self._program_level_error("[TYP-0100] no main function"))

    def _program_level_error(self, message: str) -> Diagnostic:
        return Diagnostic(kind="error", message=message, filename=self.analysis.filename, line=0, column=0)

    # ------------------------------------------------------------------
    # Function / block / statement traversal
    # ------------------------------------------------------------------

    def _check_function(self, func: FnDecl) -> None:
        self._return_type = get_builtin_type(func.return_type.name)
        self._check_block(func.body)
        self._return_type = None

    def _check_block(self, block: Block) -> None:
        self._check_stmts(block.stmts)

    def _check_stmts(self, stmts: List[Stmt]) -> None:
        returned = False
        for stmt in stmts:
            if returned:
                self._warn(stmt, "[TYP-0200] unreachable code after 'return'")
                returned = False
            self._check_stmt(stmt)
            if isinstance(stmt, ReturnStmt):
                returned = True

    def _check_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, AssignStmt):
            self._infer_expr(stmt.assign)

        elif isinstance(stmt, (PostIncStmt, PostDecStmt)):
            target_ty = self._infer_expr(stmt.target)
            if not target_ty.is_error() and not target_ty.is_int():
                self._error(stmt.target, "[TYP-0010] arithmetic operator applied to non-numeric operand")

        elif isinstance(stmt, ReadStmt):
            target_ty = self._infer_expr(stmt.target)
            if target_ty.is_function():
                self._error(stmt.target, "[TYP-0080] attempt to read a function")
            elif target_ty.is_struct_def():
                self._error(stmt.target, "[TYP-0081] attempt to read a struct name")
            elif target_ty.is_struct():
                self._error(stmt.target, "[TYP-0082] attempt to read a struct variable")

        elif isinstance(stmt, WriteStmt):
            value_ty = self._infer_expr(stmt.value)
            if value_ty.is_function():
                self._error(stmt.value, "[TYP-0090] attempt to write a function")
            elif value_ty.is_struct_def():
                self._error(stmt.value, "[TYP-0091] attempt to write a struct name")
            elif value_ty.is_struct():
                self._error(stmt.value, "[TYP-0092] attempt to write a struct variable")
            elif value_ty.is_void():
                self._error(stmt.value, "[TYP-0093] attempt to write void")

        elif isinstance(stmt, IfStmt):
            cond_ty = self._infer_expr(stmt.cond)
            if not cond_ty.is_error() and not cond_ty.is_bool():
                self._error(stmt.cond, "[TYP-0070] non-bool expression used as an if condition")
            self._check_block(stmt.then_block)
            if stmt.else_block is not None:
                self._check_block(stmt.else_block)

        elif isinstance(stmt, WhileStmt):
            cond_ty = self._infer_expr(stmt.cond)
            if not cond_ty.is_error() and not cond_ty.is_bool():
                self._error(stmt.cond, "[TYP-0071] non-bool expression used as a while condition")
            self._check_block(stmt.body)

        elif isinstance(stmt, CallStmt):
            self._infer_expr(stmt.call)

        elif isinstance(stmt, ReturnStmt):
            self._check_return(stmt)

        else:
            raise self._ice(stmt, f"[ICE-0202] unexpected statement kind {type(stmt).__name__}")

    def _check_return(self, stmt: ReturnStmt) -> None:
        if self._return_type is None:
            raise self._ice(stmt, "[ICE-0203] return statement outside of a function")
        if stmt.value is None:
            if not self._return_type.is_void():
                self._error(stmt, "[TYP-0061] missing return value")
            return
        value_ty = self._infer_expr(stmt.value)
        if self._return_type.is_void():
            self._error(stmt.value, "[TYP-0060] return with a value in a void function")
        elif not value_ty.is_error() and not value_ty.equals(self._return_type):
            self._error(stmt.value, "[TYP-0062] bad return value")

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _infer_expr(self, expr: Expr) -> Type:
        key = id(expr)
        if key in self.expr_types:
            return self.expr_types[key]
        ty = self._infer_expr_uncached(expr)
        self.expr_types[key] = ty
        return ty

    def _infer_expr_uncached(self, expr: Expr) -> Type:
        if isinstance(expr, IntLiteral):
            return self.int_type
        if isinstance(expr, StringLiteral):
            return self.string_type
        if isinstance(expr, BoolLiteral):
            return self.bool_type
        if isinstance(expr, IdExpr):
            return self._infer_id(expr)
        if isinstance(expr, DotAccessExpr):
            return self._infer_dot_access(expr)
        if isinstance(expr, UnaryOp):
            return self._infer_unary(expr)
        if isinstance(expr, BinaryOp):
            return self._infer_binary(expr)
        if isinstance(expr, AssignExpr):
            return self._infer_assign(expr)
        if isinstance(expr, CallExpr):
            return self._infer_call(expr)
        raise self._ice(expr, f"[ICE-0204] unexpected expression kind {type(expr).__name__}")

    def _infer_id(self, expr: IdExpr) -> Type:
        if expr.symbol is None:
            raise self._ice(expr, f"[ICE-0205] identifier '{expr.name}' was never name-analysed")
        if expr.symbol == UNRESOLVED:
            return self.error_type
        return self.arena[expr.symbol].type

    def _infer_dot_access(self, expr: DotAccessExpr) -> Type:
        # the object was already typed as part of the chain; record it for completeness
        self._infer_expr(expr.obj)
        if expr.bad_access:
            return self.error_type
        return self._infer_id(expr.field)

    def _infer_unary(self, expr: UnaryOp) -> Type:
        operand_ty = self._infer_expr(expr.operand)
        if expr.op == "-":
            if operand_ty.is_error():
                return self.error_type
            if not operand_ty.is_int():
                self._error(expr.operand, "[TYP-0010] arithmetic operator applied to non-numeric operand")
                return self.error_type
            return self.int_type
        if expr.op == "!":
            if operand_ty.is_error():
                return self.error_type
            if not operand_ty.is_bool():
                self._error(expr.operand, "[TYP-0020] logical operator applied to non-bool operand")
                return self.error_type
            return self.bool_type
        raise self._ice(expr, f"[ICE-0206] unexpected unary operator '{expr.op}'")

    def _check_operands(self, expr: BinaryOp, wanted: Type, message: str) -> bool:
        """Check both operands against `wanted`, one diagnostic per bad operand."""
        ok = True
        for operand in (expr.left, expr.right):
            ty = self._infer_expr(operand)
            if ty.is_error():
                ok = False
            elif not ty.equals(wanted):
                self._error(operand, message)
                ok = False
        return ok

    def _infer_binary(self, expr: BinaryOp) -> Type:
        op = expr.op
        if op in ARITHMETIC_OPS:
            ok = self._check_operands(expr, self.int_type,
                                      "[TYP-0010] arithmetic operator applied to non-numeric operand")
            return self.int_type if ok else self.error_type
        if op in LOGICAL_OPS:
            ok = self._check_operands(expr, self.bool_type,
                                      "[TYP-0020] logical operator applied to non-bool operand")
            return self.bool_type if ok else self.error_type
        if op in RELATIONAL_OPS:
            ok = self._check_operands(expr, self.int_type,
                                      "[TYP-0011] relational operator applied to non-numeric operand")
            return self.bool_type if ok else self.error_type
        if op in EQUALITY_OPS:
            return self._infer_equality(expr)
        raise self._ice(expr, f"[ICE-0207] unexpected binary operator '{op}'")

    def _infer_equality(self, expr: BinaryOp) -> Type:
        left_ty = self._infer_expr(expr.left)
        right_ty = self._infer_expr(expr.right)
        if left_ty.is_error() or right_ty.is_error():
            return self.error_type

        if left_ty.is_void() and right_ty.is_void():
            self._error(expr, "[TYP-0030] equality operator applied to void functions")
        elif left_ty.is_function() and right_ty.is_function():
            self._error(expr, "[TYP-0031] equality operator applied to functions")
        elif left_ty.is_struct_def() and right_ty.is_struct_def():
            self._error(expr, "[TYP-0032] equality operator applied to struct names")
        elif left_ty.is_struct() and right_ty.is_struct():
            self._error(expr, "[TYP-0033] equality operator applied to struct variables")
        elif not left_ty.equals(right_ty):
            self._error(expr, f"[TYP-0040] type mismatch: '{format_type(left_ty)}' vs '{format_type(right_ty)}'")
        else:
            return self.bool_type
        return self.error_type

    def _infer_assign(self, expr: AssignExpr) -> Type:
        target_ty = self._infer_expr(expr.target)
        value_ty = self._infer_expr(expr.value)
        if target_ty.is_error() or value_ty.is_error():
            return self.error_type

        if target_ty.is_function() and value_ty.is_function():
            self._error(expr, "[TYP-0041] function assignment")
        elif target_ty.is_struct_def() and value_ty.is_struct_def():
            self._error(expr, "[TYP-0042] struct name assignment")
        elif target_ty.is_struct() and value_ty.is_struct():
            self._error(expr, "[TYP-0043] struct variable assignment")
        elif not target_ty.equals(value_ty):
            self._error(expr, f"[TYP-0040] type mismatch: '{format_type(target_ty)}' vs '{format_type(value_ty)}'")
        else:
            return target_ty
        return self.error_type

    def _infer_call(self, expr: CallExpr) -> Type:
        callee_ty = self._infer_id(expr.callee)
        self.expr_types[id(expr.callee)] = callee_ty
        arg_types = [self._infer_expr(arg) for arg in expr.args]

        if callee_ty.is_error():
            return self.error_type
        if not callee_ty.is_function():
            self._error(expr.callee, f"[TYP-0050] attempt to call a non-function '{expr.callee.name}'")
            return self.error_type

        entry = self.arena[expr.callee.symbol]
        if not isinstance(entry, FunctionEntry):
            raise self._ice(expr.callee, f"[ICE-0208] function type without function entry for '{entry.name}'")

        if len(expr.args) != entry.arity:
            self._error(
                expr,
                f"[TYP-0051] function call with wrong number of args: "
                f"'{entry.name}' expects {entry.arity}, got {len(expr.args)}",
            )
            return entry.return_type

        for arg, arg_ty, param_ty in zip(expr.args, arg_types, entry.param_types):
            if arg_ty.is_error() or param_ty.is_error():
                continue
            if not arg_ty.equals(param_ty):
                self._error(arg, "[TYP-0052] type of actual does not match type of formal")
        return entry.return_type

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _error(self, node: Optional[Node], message: str) -> None:
        self.analysis.error(node, message)

    def _warn(self, node: Optional[Node], message: str) -> None:
        self.analysis.warning(node, message)

    def _ice(self, node: Optional[Node], message: str) -> InternalCompilerError:
        return InternalCompilerError(message, ICELocation.of(self.analysis.filename, node))
