#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from typing import List, Optional

from cmm_analysis import AnalysisResult
from cmm_ast import (
    Node, TypeRef, Decl, VarDecl, FormalDecl, StructDecl, FnDecl, Block, Stmt, AssignStmt, PostIncStmt, PostDecStmt,
    ReadStmt, WriteStmt, IfStmt, WhileStmt, CallStmt, ReturnStmt, Expr, IntLiteral, StringLiteral, BoolLiteral,
    IdExpr, DotAccessExpr, AssignExpr, CallExpr, UnaryOp, BinaryOp)
from cmm_internal_error import InternalCompilerError, ICELocation
from cmm_symbols import (
    SymbolEntry, StructDefEntry, FunctionEntry, SymbolTable, DuplicateDeclarationError, UNRESOLVED)
from cmm_types import Type, StructType, get_builtin_type, get_error_type


class NameResolver:
    """
    Name analysis for one program.

    - Walks the AST once, pre-order, keeping a stack of scopes.
    - Creates an entry in the arena for every successful declaration and
      binds the declaring IdExpr to it.
    - Binds every identifier use to the innermost visible declaration, or
      to UNRESOLVED after reporting it.
    - Builds one frozen field table per struct declaration, with field
      offsets and the struct size.
    """

    def __init__(self, analysis: AnalysisResult):
        self.analysis = analysis
        self.arena = analysis.symbols
        self.table = SymbolTable()
        self.global_table = self.table

    def resolve(self) -> SymbolTable:
        program = self.analysis.program
        if program is None:
            raise InternalCompilerError("[ICE-0100] name analysis started without a parsed program")
        for decl in program.decls:
            self._resolve_decl(decl, self.table)
        self.analysis.globals = self.global_table
        return self.global_table

    # --- diagnostics ---

    def _error(self, node: Optional[Node], message: str) -> None:
        self.analysis.error(node, message)

    def _ice(self, node: Node, message: str) -> InternalCompilerError:
        return InternalCompilerError(message, ICELocation.of(self.analysis.filename, node))

    # --- declarations ---

    def _resolve_decl(self, decl: Decl, table: SymbolTable) -> None:
        if isinstance(decl, VarDecl):
            self._resolve_var_decl(decl, table)
        elif isinstance(decl, StructDecl):
            self._resolve_struct_decl(decl, table)
        elif isinstance(decl, FnDecl):
            self._resolve_fn_decl(decl, table)
        else:
            raise self._ice(decl, f"[ICE-0101] unexpected declaration kind {type(decl).__name__}")

    def _declared_type(self, type_ref: TypeRef) -> Optional[Type]:
        """
        Semantic type of a declared variable, or None after reporting a bad struct name.
        """
        if not type_ref.is_struct:
            return get_builtin_type(type_ref.name)
        index = self.global_table.lookup_global(type_ref.name)
        if index is None or not isinstance(self.arena[index], StructDefEntry):
            self._error(type_ref, f"[NAM-0040] invalid name of struct type '{type_ref.name}'")
            return None
        return StructType(type_ref.name)

    def _add_decl(self, table: SymbolTable, name: IdExpr, entry, message_code: str, what: str) -> bool:
        if table.lookup_local(name.name) is not None:
            self._error(name, f"[{message_code}] multiply declared {what} '{name.name}'")
            return False
        index = self.arena.add(entry)
        try:
            table.add_decl(name.name, index)
        except DuplicateDeclarationError as e:
            raise self._ice(name, f"[ICE-0102] {e}") from e
        name.symbol = index
        return True

    def _make_var_entry(self, decl: VarDecl, table: SymbolTable, dup_code: str, what: str) -> Optional[SymbolEntry]:
        bad_decl = False
        if decl.type.name == "void":
            self._error(decl.name, f"[NAM-0030] non-function declared void: '{decl.name.name}'")
            bad_decl = True
        var_type = self._declared_type(decl.type)
        if var_type is None:
            bad_decl = True
        if table.lookup_local(decl.name.name) is not None:
            self._error(decl.name, f"[{dup_code}] multiply declared {what} '{decl.name.name}'")
            bad_decl = True
        if bad_decl:
            return None

        entry = SymbolEntry(decl.name.name, var_type, is_global=table is self.global_table and table.depth == 1)
        if isinstance(var_type, StructType):
            def_index = self.global_table.lookup_global(var_type.name)
            entry.struct_def = def_index
            entry.size = self.arena[def_index].size
        return entry

    def _resolve_var_decl(self, decl: VarDecl, table: SymbolTable) -> None:
        entry = self._make_var_entry(decl, table, "NAM-0010", "identifier")
        if entry is not None:
            self._add_decl(table, decl.name, entry, "NAM-0010", "identifier")

    def _resolve_struct_decl(self, decl: StructDecl, table: SymbolTable) -> None:
        name = decl.name
        is_duplicate = table.lookup_local(name.name) is not None
        if is_duplicate:
            self._error(name, f"[NAM-0010] multiply declared identifier '{name.name}'")

        fields = SymbolTable()
        offset = 0
        for field_decl in decl.fields:
            entry = self._make_var_entry(field_decl, fields, "NAM-0011", "struct field")
            if entry is None:
                continue
            entry.is_global = False
            entry.offset = offset
            offset += entry.size
            self._add_decl(fields, field_decl.name, entry, "NAM-0011", "struct field")
        fields.freeze()

        if not is_duplicate:
            self._add_decl(table, name, StructDefEntry(name.name, fields, offset), "NAM-0010", "identifier")

    def _resolve_fn_decl(self, decl: FnDecl, table: SymbolTable) -> None:
        param_types: List[Type] = []
        for formal in decl.formals:
            if formal.type.name == "void":
                param_types.append(get_error_type())
            else:
                param_types.append(get_builtin_type(formal.type.name))
        entry = FunctionEntry(decl.name.name, param_types, get_builtin_type(decl.return_type.name))
        self._add_decl(table, decl.name, entry, "NAM-0010", "identifier")

        table.add_scope()
        for formal in decl.formals:
            self._resolve_formal(formal, table)
        self._resolve_block_body(decl.body, table)
        table.remove_scope()

    def _resolve_formal(self, formal: FormalDecl, table: SymbolTable) -> None:
        bad_decl = False
        if formal.type.name == "void":
            self._error(formal.name, f"[NAM-0030] non-function declared void: '{formal.name.name}'")
            bad_decl = True
        if table.lookup_local(formal.name.name) is not None:
            self._error(formal.name, f"[NAM-0010] multiply declared identifier '{formal.name.name}'")
            bad_decl = True
        if not bad_decl:
            entry = SymbolEntry(formal.name.name, get_builtin_type(formal.type.name))
            self._add_decl(table, formal.name, entry, "NAM-0010", "identifier")

    # --- blocks and statements ---

    def _resolve_block_body(self, block: Block, table: SymbolTable) -> None:
        for decl in block.decls:
            self._resolve_var_decl(decl, table)
        for stmt in block.stmts:
            self._resolve_stmt(stmt, table)

    def _resolve_nested_block(self, block: Block, table: SymbolTable) -> None:
        table.add_scope()
        self._resolve_block_body(block, table)
        table.remove_scope()

    def _resolve_stmt(self, stmt: Stmt, table: SymbolTable) -> None:
        if isinstance(stmt, AssignStmt):
            self._resolve_expr(stmt.assign, table)
        elif isinstance(stmt, (PostIncStmt, PostDecStmt, ReadStmt)):
            self._resolve_expr(stmt.target, table)
        elif isinstance(stmt, WriteStmt):
            self._resolve_expr(stmt.value, table)
        elif isinstance(stmt, IfStmt):
            self._resolve_expr(stmt.cond, table)
            self._resolve_nested_block(stmt.then_block, table)
            if stmt.else_block is not None:
                self._resolve_nested_block(stmt.else_block, table)
        elif isinstance(stmt, WhileStmt):
            self._resolve_expr(stmt.cond, table)
            self._resolve_nested_block(stmt.body, table)
        elif isinstance(stmt, CallStmt):
            self._resolve_expr(stmt.call, table)
        elif isinstance(stmt, ReturnStmt):
            if stmt.value is not None:
                self._resolve_expr(stmt.value, table)
        else:
            raise self._ice(stmt, f"[ICE-0103] unexpected statement kind {type(stmt).__name__}")

    # --- expressions ---

    def _resolve_expr(self, expr: Expr, table: SymbolTable) -> None:
        if isinstance(expr, (IntLiteral, StringLiteral, BoolLiteral)):
            return
        if isinstance(expr, IdExpr):
            self._resolve_id(expr, table)
        elif isinstance(expr, DotAccessExpr):
            self._resolve_dot_access(expr, table)
        elif isinstance(expr, AssignExpr):
            # value before target
            self._resolve_expr(expr.value, table)
            self._resolve_expr(expr.target, table)
        elif isinstance(expr, CallExpr):
            self._resolve_id(expr.callee, table)
            for arg in expr.args:
                self._resolve_expr(arg, table)
        elif isinstance(expr, UnaryOp):
            self._resolve_expr(expr.operand, table)
        elif isinstance(expr, BinaryOp):
            self._resolve_expr(expr.left, table)
            self._resolve_expr(expr.right, table)
        else:
            raise self._ice(expr, f"[ICE-0104] unexpected expression kind {type(expr).__name__}")

    def _resolve_id(self, expr: IdExpr, table: SymbolTable) -> None:
        index = table.lookup_global(expr.name)
        if index is None:
            self._error(expr, f"[NAM-0020] undeclared identifier '{expr.name}'")
            expr.symbol = UNRESOLVED
        else:
            expr.symbol = index

    def _struct_def_of(self, obj: Expr) -> Optional[int]:
        """
        Arena index of the struct definition whose fields `obj` exposes,
        or None once the chain is poisoned (after reporting where needed).
        """
        if isinstance(obj, IdExpr):
            if obj.symbol == UNRESOLVED:
                return None
            entry = self.arena[obj.symbol]
            if isinstance(entry, SymbolEntry) and entry.struct_def is not None:
                return entry.struct_def
            self._error(obj, "[NAM-0050] dot-access of non-struct type")
            return None
        if isinstance(obj, DotAccessExpr):
            if obj.bad_access:
                return None
            if obj.struct_def is None:
                self._error(obj, "[NAM-0050] dot-access of non-struct type")
                return None
            return obj.struct_def
        raise self._ice(obj, f"[ICE-0105] unexpected dot-access operand {type(obj).__name__}")

    def _resolve_dot_access(self, expr: DotAccessExpr, table: SymbolTable) -> None:
        self._resolve_expr(expr.obj, table)
        def_index = self._struct_def_of(expr.obj)
        if def_index is None:
            expr.field.symbol = UNRESOLVED
            expr.bad_access = True
            return

        struct_def = self.arena[def_index]
        field_index = struct_def.fields.lookup_global(expr.field.name)
        if field_index is None:
            self._error(expr.field, f"[NAM-0051] invalid struct field name '{expr.field.name}'")
            expr.field.symbol = UNRESOLVED
            expr.bad_access = True
            return

        expr.field.symbol = field_index
        field_entry = self.arena[field_index]
        if field_entry.struct_def is not None:
            expr.struct_def = field_entry.struct_def
