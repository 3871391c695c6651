#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from cmm_ast import Program, Node
from cmm_context import CompilationContext
from cmm_diagnostics import Diagnostic, diag_from_node
from cmm_symbols import SymbolArena, SymbolTable, AnyEntry
from cmm_types import Type


@dataclass
class AnalysisResult:
    """
    Full semantic analysis result for one compilation unit.

    Contains:
      - the parsed program (None when parsing failed)
      - compilation context (cross-cutting compiler options)
      - the symbol arena and the persistent global scope
      - expression types
      - frame sizes per function
      - diagnostics accumulated from all passes

    A fresh instance is created per unit, so diagnostics never leak from one
    compilation into the next.
    """
    program: Optional[Program] = None
    filename: Optional[str] = None
    context: CompilationContext = field(default_factory=CompilationContext.default)

    symbols: SymbolArena = field(default_factory=SymbolArena)
    globals: Optional[SymbolTable] = None

    # Expression types keyed by id(expr_node)
    expr_types: Dict[int, Type] = field(default_factory=dict)

    # Frame size in bytes (locals and formals only) keyed by function name
    frame_sizes: Dict[str, int] = field(default_factory=dict)

    diagnostics: List[Diagnostic] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any(d.kind == "error" for d in self.diagnostics)

    def has_warnings(self) -> bool:
        return any(d.kind == "warning" for d in self.diagnostics)

    def entry(self, index: int) -> AnyEntry:
        return self.symbols[index]

    def error(self, node: Optional[Node], message: str) -> None:
        self.diagnostics.append(diag_from_node("error", message, filename=self.filename, node=node))

    def warning(self, node: Optional[Node], message: str) -> None:
        self.diagnostics.append(diag_from_node("warning", message, filename=self.filename, node=node))
