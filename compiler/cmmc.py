#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import argparse
from pathlib import Path
from typing import Callable, Dict, List

from cmm_analysis import AnalysisResult
from cmm_ast import FnDecl, Block, IfStmt, WhileStmt, IdExpr
from cmm_context import CompilationContext, LogLevel
from cmm_diagnostics import Diagnostic
from cmm_driver import CmmDriver, CompileOutcome
from cmm_internal_error import InternalCompilerError
from cmm_lexer import TokenKind, LexerError
from cmm_logger import log_info, log_error
from cmm_symbols import SymbolEntry, StructDefEntry, FunctionEntry, UNRESOLVED
from cmm_types import format_type

STOP_WORD = "stop"


def _load_file_lines(path: str, cache: Dict[str, List[str]]) -> List[str]:
    if path not in cache:
        text = Path(path).read_text(encoding="utf-8")
        cache[path] = text.splitlines()
    return cache[path]


def print_diagnostics(result: AnalysisResult, context: CompilationContext) -> None:
    file_cache: Dict[str, List[str]] = {}

    for diag in result.diagnostics:
        print_diagnostic_with_snippet(diag, file_cache, context)


def print_diagnostic_with_snippet(diag: Diagnostic, file_cache: Dict[str, List[str]], context: CompilationContext = None) -> None:
    # First line: header
    log_error(context, diag.format())

    if not diag.filename or not diag.line:
        return

    try:
        lines = _load_file_lines(diag.filename, file_cache)
    except OSError:
        # Can't read file; fall back to header only
        return

    line_idx = diag.line - 1
    if not (0 <= line_idx < len(lines)):
        return

    src_line = lines[line_idx]

    # "N | ..." formatting, wide enough for multi-digit line numbers
    width = max(5, len(str(diag.line)))
    gutter = f"{diag.line:>{width}} | "

    log_error(context, gutter + src_line)

    if diag.column is None:
        return

    start_col = max(1, diag.column)
    if diag.end_line is None or diag.end_column is None:
        end_col = start_col
    elif diag.end_line == diag.line:
        end_col = max(start_col, diag.end_column)
    else:
        end_col = len(src_line) + 1

    caret_width = max(1, end_col - start_col)
    caret_prefix = " " * width + " | " + " " * (start_col - 1)
    log_error(context, caret_prefix + "^" * caret_width)


def build_compilation_context(args: argparse.Namespace) -> CompilationContext:
    """Build a CompilationContext from command-line arguments."""
    verbosity = getattr(args, 'verbosity', 0)
    if verbosity >= 3:
        log_level = LogLevel.DEBUG
    elif verbosity >= 1:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.ERROR

    return CompilationContext(
        emit_comments=not getattr(args, 'no_comments', False),
        log_rich_format=getattr(args, 'log', False),
        log_level=log_level,
    )


def _compile_one(driver: CmmDriver, path: str, output: str | None = None) -> CompileOutcome:
    outcome = driver.compile_file(path, output)
    print_diagnostics(outcome.result, context=driver.context)
    return outcome


def cmd_build(args: argparse.Namespace) -> int:
    """Compile each source file to `<base>.asm`."""
    context = build_compilation_context(args)
    if args.output and len(args.files) > 1:
        log_error(context, "error: --output can only be used with a single input file")
        return 1

    driver = CmmDriver(context=context)
    exit_code = 0
    for path in args.files:
        try:
            outcome = _compile_one(driver, path, args.output)
        except InternalCompilerError as e:
            log_error(context, e.format())
            return 1
        if outcome.fatal:
            return 1
        if not outcome.ok:
            exit_code = 1
    return exit_code


def cmd_check(args: argparse.Namespace) -> int:
    context = build_compilation_context(args)
    driver = CmmDriver(context=context)
    exit_code = 0
    for path in args.files:
        try:
            result = driver.analyze_file(path)
        except InternalCompilerError as e:
            log_error(context, e.format())
            return 1
        print_diagnostics(result, context=context)
        if result.program is None or result.has_errors():
            exit_code = 1
        else:
            log_info(context, f"{path}: OK")
    return exit_code


def cmd_tok(args: argparse.Namespace) -> int:
    context = build_compilation_context(args)
    driver = CmmDriver(context=context)
    try:
        tokens = driver.tokenize_file(args.file)
    except FileNotFoundError as e:
        log_error(context, f"error: [DRV-0010] {e}")
        return 1
    except LexerError as e:
        log_error(context, f"{e.filename}:{e.line}:{e.column}: error: {e.message}")
        return 1

    for tok in tokens:
        if not args.include_eof and tok.kind is TokenKind.EOF:
            continue
        # Format: file:line:col: KIND  'text'
        print(f"{args.file}:{tok.line}:{tok.column}:\t{tok.kind.name:<12} {tok.text!r}")
    return 0


def _dump_locals(result: AnalysisResult, block: Block, indent: str) -> None:
    for decl in block.decls:
        _dump_variable(result, decl.name, indent)
    for stmt in block.stmts:
        if isinstance(stmt, IfStmt):
            _dump_locals(result, stmt.then_block, indent)
            if stmt.else_block is not None:
                _dump_locals(result, stmt.else_block, indent)
        elif isinstance(stmt, WhileStmt):
            _dump_locals(result, stmt.body, indent)


def _dump_variable(result: AnalysisResult, name: IdExpr, indent: str) -> None:
    if name.symbol is None or name.symbol == UNRESOLVED:
        return
    entry = result.entry(name.symbol)
    print(f"{indent}{entry.name}[{entry.offset}]: {format_type(entry.type)}")


def cmd_sym(args: argparse.Namespace) -> int:
    """
    Dump the resolved symbols: globals, struct layouts, and the frame offset
    of every formal and local, written as `name[offset]`.
    """
    context = build_compilation_context(args)
    driver = CmmDriver(context=context)
    try:
        result = driver.analyze_file(args.file)
    except InternalCompilerError as e:
        log_error(context, e.format())
        return 1
    print_diagnostics(result, context=context)
    if result.program is None or result.globals is None:
        return 1

    print("=== globals ===")
    for name, index in result.globals.names():
        entry = result.entry(index)
        if isinstance(entry, StructDefEntry):
            print(f"  struct {name} (size {entry.size})")
            for field_name, field_index in entry.fields.names():
                field_entry = result.entry(field_index)
                print(f"    {field_name}[{field_entry.offset}]: {format_type(field_entry.type)}")
        elif isinstance(entry, FunctionEntry):
            print(f"  {name}: {format_type(entry.type)}")
        elif isinstance(entry, SymbolEntry):
            print(f"  {name}: {format_type(entry.type)} (size {entry.size})")

    for decl in result.program.decls:
        if not isinstance(decl, FnDecl):
            continue
        frame = result.frame_sizes.get(decl.name.name, 0)
        print(f"=== function {decl.name.name} (frame {frame}) ===")
        for formal in decl.formals:
            _dump_variable(result, formal.name, "  ")
        _dump_locals(result, decl.body, "  ")

    return 1 if result.has_errors() else 0


def prompt_loop(driver: CmmDriver, read_line: Callable[[str], str] = input) -> int:
    """
    Ask for file names until `stop` (or end of input), compiling each one.

    Only an unwritable output ends the loop early; every other failure is
    reported and the next file name is requested.
    """
    context = driver.context
    while True:
        try:
            name = read_line("file name? ").strip()
        except EOFError:
            return 0
        if name == STOP_WORD:
            return 0
        if not name:
            continue
        if not Path(name).is_file():
            print(f"{name} not found")
            continue

        try:
            outcome = _compile_one(driver, name)
        except InternalCompilerError as e:
            log_error(context, e.format())
            return 1
        if outcome.fatal:
            return 1
        if outcome.result.program is None:
            print("syntax error: parsing aborted")
        elif not outcome.ok:
            print("compilation aborted")
        else:
            print(f"wrote {outcome.output_path}")


def cmd_prompt(args: argparse.Namespace) -> int:
    context = build_compilation_context(args)
    return prompt_loop(CmmDriver(context=context))


def _add_files_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("files", nargs="+", help="C-- source file(s)")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="cmmc", description="C-- to MIPS compiler")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    parser.add_argument("-v", "--verbose",
                        action='count',
                        default=0,
                        dest='verbosity',
                        help="Increase verbosity: -v=INFO, -vvv=DEBUG")
    parser.add_argument("-l", "--log",
                        action='store_true',
                        default=False,
                        help="Enable rich log formatting (timestamps, levels)")
    parser.add_argument("--no-comments",
                        action='store_true',
                        default=False,
                        help="Do not annotate generated assembly with comments")

    ###########################
    # build command
    ###########################
    p_build = subparsers.add_parser("build", help="Compile to MIPS assembly", aliases=["gen"])
    p_build.add_argument("--output", "-o", help="Output assembly path (default: <source>.asm)")
    _add_files_arg(p_build)
    p_build.set_defaults(func=cmd_build)

    ###########################
    # check command
    ###########################
    p_check = subparsers.add_parser("check", help="Parse and analyze only", aliases=["analyze"])
    _add_files_arg(p_check)
    p_check.set_defaults(func=cmd_check)

    ###########################
    # tok command
    ###########################
    p_tok = subparsers.add_parser("tok", help="Dump lexer tokens", aliases=["tokens"])
    p_tok.add_argument("--include-eof", "-I", action="store_true",
                       help="Include the EOF token in the output")
    p_tok.add_argument("file", help="C-- source file")
    p_tok.set_defaults(func=cmd_tok)

    ###########################
    # sym command
    ###########################
    p_sym = subparsers.add_parser("sym", help="Dump symbols and frame offsets", aliases=["symbols"])
    p_sym.add_argument("file", help="C-- source file")
    p_sym.set_defaults(func=cmd_sym)

    ###########################
    # prompt command
    ###########################
    p_prompt = subparsers.add_parser("prompt", help="Interactively compile files until 'stop'")
    p_prompt.set_defaults(func=cmd_prompt)

    args = parser.parse_args(argv)

    rc = args.func(args)
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
