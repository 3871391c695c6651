#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

from typing import Dict, Optional

from cmm_analysis import AnalysisResult
from cmm_ast import Node, Decl, VarDecl, StructDecl, FnDecl, Block, Stmt, IfStmt, WhileStmt, IdExpr
from cmm_internal_error import InternalCompilerError, ICELocation
from cmm_symbols import SymbolEntry, UNRESOLVED

# $ra is saved at 0($fp) and the caller's $fp at -4($fp).
FIRST_SLOT_OFFSET = 8


class FrameLayoutResolver:
    """
    Assigns frame offsets to the formals and locals of every function.

    Public API:

        resolver = FrameLayoutResolver(analysis)
        frame_sizes = resolver.resolve()

    Layout rules:

    - Offsets start at 8 and only grow; a slot is never reused, so locals of
      sibling `if`/`else`/`while` blocks get distinct slots.
    - Formals come first, then the body's declarations, then those of nested
      blocks in textual order.
    - A struct local takes its whole size; the next slot starts after it.
    - Globals have no frame offset and are skipped.
    """

    def __init__(self, analysis: AnalysisResult) -> None:
        self.analysis = analysis
        self.arena = analysis.symbols
        self._next_offset = FIRST_SLOT_OFFSET

    # --- public API ---

    def resolve(self) -> Dict[str, int]:
        program = self.analysis.program
        if program is None:
            raise InternalCompilerError("[ICE-0300] frame layout started without a parsed program")
        for decl in program.decls:
            self._visit_decl(decl)
        return self.analysis.frame_sizes

    # --- internal helpers ---

    def _visit_decl(self, decl: Decl) -> None:
        if isinstance(decl, (VarDecl, StructDecl)):
            # globals live in the data segment
            return
        if isinstance(decl, FnDecl):
            self._next_offset = FIRST_SLOT_OFFSET
            for formal in decl.formals:
                self._assign(formal.name)
            self._visit_block(decl.body)
            self.analysis.frame_sizes[decl.name.name] = self._next_offset - FIRST_SLOT_OFFSET
            return
        raise self._ice(decl, f"[ICE-0301] unexpected declaration kind {type(decl).__name__}")

    def _visit_block(self, block: Block) -> None:
        for decl in block.decls:
            self._assign(decl.name)
        for stmt in block.stmts:
            self._visit_stmt(stmt)

    def _visit_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, IfStmt):
            self._visit_block(stmt.then_block)
            if stmt.else_block is not None:
                self._visit_block(stmt.else_block)
        elif isinstance(stmt, WhileStmt):
            self._visit_block(stmt.body)

    def _assign(self, name: IdExpr) -> Optional[int]:
        if name.symbol is None or name.symbol == UNRESOLVED:
            # declaration was rejected by name analysis
            return None
        entry = self.arena[name.symbol]
        if not isinstance(entry, SymbolEntry) or entry.is_global:
            raise self._ice(name, f"[ICE-0302] '{name.name}' is not a frame-allocated variable")
        entry.offset = self._next_offset
        self._next_offset += entry.size
        return entry.offset

    def _ice(self, node: Node, message: str) -> InternalCompilerError:
        return InternalCompilerError(message, ICELocation.of(self.analysis.filename, node))
