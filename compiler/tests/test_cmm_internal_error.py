#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os

from cmm_ast import IdExpr, Span
from cmm_context import CompilationContext, LogLevel
from cmm_diagnostics import Diagnostic, diag_from_node
from cmm_internal_error import InternalCompilerError, ICELocation
from cmm_logger import log_warning, log_debug


def test_ice_with_span():
    node = IdExpr("x", span=Span(3, 7, 3, 8))
    err = InternalCompilerError("[ICE-0512] bad depth", ICELocation.of("a.cmm", node))
    assert err.format() == "a.cmm:3:7: internal compiler error: [ICE-0512] bad depth"


def test_ice_without_span():
    err = InternalCompilerError("[ICE-0501] errors present", ICELocation("a.cmm", None))
    assert err.format() == "a.cmm: internal compiler error: [ICE-0501] errors present"


def test_ice_without_code_gets_generic_code():
    err = InternalCompilerError("something broke")
    assert err.format() == "internal compiler error: [ICE-9999] something broke"


def test_diagnostic_format():
    diag = Diagnostic(kind="error", message="[NAM-0020] undeclared identifier 'x'", filename="a.cmm", line=2, column=5)
    assert diag.format() == f"{os.path.abspath('a.cmm')}:2:5: error: [NAM-0020] undeclared identifier 'x'"
    assert Diagnostic(kind="warning", message="w").format() == "warning: w"


def test_diag_from_node_copies_the_span():
    node = IdExpr("x", span=Span(1, 2, 1, 3))
    diag = diag_from_node("error", "m", filename="a.cmm", node=node)
    assert (diag.line, diag.column, diag.end_line, diag.end_column) == (1, 2, 1, 3)
    assert diag_from_node("error", "m", filename=None, node=None).line is None


def test_logger_respects_level_and_rich_format(capsys):
    ctx = CompilationContext(log_level=LogLevel.WARNING)
    log_warning(ctx, "shown")
    log_debug(ctx, "hidden")
    assert capsys.readouterr().err == "shown\n"

    rich = CompilationContext(log_level=LogLevel.DEBUG, log_rich_format=True)
    log_debug(rich, "detail")
    assert capsys.readouterr().err.rstrip().endswith("[DEBUG] detail")
