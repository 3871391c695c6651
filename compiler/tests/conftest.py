#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import sys
from pathlib import Path
from textwrap import dedent

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cmm_context import CompilationContext
from cmm_driver import CmmDriver
from mips_sim import run_asm


@pytest.fixture
def write_cmm_file(tmp_path: Path):
    def _write(name: str, content: str) -> Path:
        file_path = tmp_path / name
        file_path.write_text(dedent(content))
        return file_path

    return _write


@pytest.fixture
def analyze_source():
    """Analyze C-- source text.

    Usage:
        def test_something(analyze_source):
            result = analyze_source('''
                void main() { cout << 1; }
            ''')
            assert not result.has_errors()
    """

    def _analyze(src: str, context: CompilationContext | None = None):
        driver = CmmDriver(context=context)
        return driver.analyze_source(dedent(src), "main.cmm")

    return _analyze


@pytest.fixture
def codegen_source(analyze_source):
    """Analyze and generate MIPS assembly for C-- source text.

    Returns (asm, diagnostics) tuple. asm is None if analysis failed.
    """

    def _codegen(src: str, context: CompilationContext | None = None):
        result = analyze_source(src, context)

        if result.program is None or result.has_errors():
            return None, result.diagnostics

        from cmm_backend import Backend

        backend = Backend(result)
        asm = backend.generate()
        return asm, result.diagnostics

    return _codegen


@pytest.fixture
def compile_and_run(codegen_source):
    """Compile C-- source and run it on the test simulator; returns console output."""

    def _compile_and_run(src: str, stdin=None) -> str:
        asm, diags = codegen_source(src)
        assert asm is not None, [d.format() for d in diags]
        output, _ = run_asm(asm, stdin)
        return output

    return _compile_and_run


def has_error_code(diagnostics, code: str) -> bool:
    """Check if any diagnostic contains the given code, e.g. "TYP-0040" or "[TYP-0040]"."""
    if not code.startswith("["):
        code = f"[{code}]"
    return any(code in d.message for d in diagnostics)


def count_code(diagnostics, code: str) -> int:
    if not code.startswith("["):
        code = f"[{code}]"
    return sum(1 for d in diagnostics if code in d.message)


def instructions(asm: str) -> list[str]:
    """Assembly lines with comments dropped and whitespace normalised."""
    lines = []
    for raw in asm.splitlines():
        line = raw.split("#", 1)[0].strip() if '"' not in raw else raw.strip()
        if line:
            lines.append(" ".join(line.split()))
    return lines
