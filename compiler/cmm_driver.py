#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from cmm_analysis import AnalysisResult
from cmm_ast import Program
from cmm_backend import Backend
from cmm_context import CompilationContext
from cmm_diagnostics import Diagnostic, diag_from_token
from cmm_frame_layout import FrameLayoutResolver
from cmm_lexer import LexerError, Lexer, Token
from cmm_logger import log_info, log_debug, log_stage
from cmm_name_resolver import NameResolver
from cmm_parser import Parser, ParseError
from cmm_type_checker import TypeChecker


@dataclass
class CompileOutcome:
    """
    Result of compiling one file.

    output_path is set only when assembly was actually written. `fatal` marks
    failures that must stop the whole program (the input is missing or the
    output could not be written).
    """
    result: AnalysisResult
    output_path: Optional[Path] = None
    fatal: bool = False

    @property
    def ok(self) -> bool:
        return self.output_path is not None


class CmmDriver:
    """
    Compiler driver for one C-- source file at a time:
      - read file
      - tokenize and parse
      - name analysis, type checking, frame layout
      - code generation and output

    Each call starts from a fresh AnalysisResult, so nothing carries over
    between compilation units.
    """

    def __init__(self, context: CompilationContext | None = None):
        self.context = context or CompilationContext.default()

    # --- Public API ---

    def analyze_file(self, path: str | Path) -> AnalysisResult:
        path = Path(path)
        result = AnalysisResult(filename=str(path), context=self.context)
        log_stage(self.context, "Reading", str(path))
        if not path.is_file():
            result.diagnostics.append(
                Diagnostic(kind="error", message=f"file: [DRV-0010] C-- source file not found: {path}")
            )
            return result
        text = path.read_text(encoding="utf-8")
        return self._analyze_text(text, result)

    def analyze_source(self, text: str, filename: str = "<input>") -> AnalysisResult:
        result = AnalysisResult(filename=filename, context=self.context)
        return self._analyze_text(text, result)

    def analyze(self, result: AnalysisResult) -> AnalysisResult:
        """
        Semantic pipeline over an already parsed program:

          1. NameResolver (scopes, symbol arena, struct layouts)
          2. TypeChecker (expression types, statement rules, main)
          3. FrameLayoutResolver (frame offsets and sizes)

        Every pass runs even when an earlier one reported errors, so one
        compilation reports as many problems as possible.
        """
        log_stage(self.context, "Resolving names")
        NameResolver(result).resolve()
        log_debug(self.context, f"Name analysis created {len(result.symbols)} symbol(s)")

        log_stage(self.context, "Type-checking")
        TypeChecker(result).check()

        log_stage(self.context, "Laying out frames")
        FrameLayoutResolver(result).resolve()
        for name, size in result.frame_sizes.items():
            log_debug(self.context, f"Frame of '{name}': {size} byte(s)")

        errors = len([d for d in result.diagnostics if d.kind == "error"])
        log_info(self.context, f"Analysis complete: {len(result.diagnostics)} total diagnostic(s), {errors} error(s)")
        return result

    def generate(self, result: AnalysisResult) -> str:
        return Backend(result).generate()

    def output_path_for(self, source: str | Path) -> Path:
        return Path(source).with_suffix(self.context.output_suffix)

    def compile_file(self, path: str | Path, output: str | Path | None = None) -> CompileOutcome:
        """
        Analyse `path` and, when it is free of errors, write its assembly next
        to it (or to `output`).
        """
        result = self.analyze_file(path)
        outcome = CompileOutcome(result=result)
        if not Path(path).is_file():
            outcome.fatal = True
            return outcome
        if result.program is None or result.has_errors():
            log_info(self.context, f"Not generating code for '{path}': errors found")
            return outcome

        asm = self.generate(result)
        out_path = Path(output) if output is not None else self.output_path_for(path)
        try:
            out_path.write_text(asm, encoding="utf-8")
        except OSError as e:
            result.diagnostics.append(
                Diagnostic(kind="error", message=f"output: [DRV-0020] cannot write '{out_path}': {e.strerror or e}")
            )
            outcome.fatal = True
            return outcome
        log_info(self.context, f"Wrote {out_path}")
        outcome.output_path = out_path
        return outcome

    def tokenize_file(self, path: str | Path) -> List[Token]:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"C-- source file not found: {path}")
        return Lexer(path.read_text(encoding="utf-8"), filename=str(path)).tokenize()

    # --- Internal helpers ---

    def _analyze_text(self, text: str, result: AnalysisResult) -> AnalysisResult:
        try:
            result.program = self._parse_source(text, result.filename or "<input>")
        except LexerError as e:
            # syntax error during lexing
            result.diagnostics.append(
                Diagnostic(
                    kind="error",
                    message=f"syntax: {e.message}",
                    filename=e.filename,
                    line=e.line,
                    column=e.column,
                )
            )
            return result
        except ParseError as e:
            # syntax error during parsing
            result.diagnostics.append(
                diag_from_token(
                    kind="error",
                    message=e.message,
                    token=e.token,
                    filename=e.filename,
                )
            )
            return result
        return self.analyze(result)

    def _parse_source(self, text: str, file_path: str) -> Program:
        log_stage(self.context, "Parsing", file_path)
        tokens = Lexer(text, filename=file_path).tokenize()
        log_debug(self.context, f"Lexed {len(tokens)} token(s) from {file_path}")
        program = Parser(tokens, filename=file_path).parse_program()
        log_debug(self.context, f"Parsed {len(program.decls)} declaration(s) from {file_path}")
        return program
