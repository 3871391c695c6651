#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
from dataclasses import dataclass
from typing import Optional

from cmm_ast import Node
from cmm_lexer import Token


DIAGNOSTIC_CODE_FAMILIES = {
    "LEX": [
        "LEX-0010",
        "LEX-0040",
        "LEX-0059",
        "LEX-0060",
        "LEX-0061",
    ],
    "PAR": [
        "PAR-0020",
        "PAR-0040",
        "PAR-0041",
        "PAR-0043",
        "PAR-0045",
        "PAR-0050",
        "PAR-0053",
        "PAR-0054",
        "PAR-0057",
        "PAR-0060",
        "PAR-0061",
        "PAR-0070",
        "PAR-0090",
        "PAR-0091",
        "PAR-0100",
        "PAR-0101",
        "PAR-0102",
        "PAR-0121",
        "PAR-0122",
        "PAR-0131",
        "PAR-0132",
        "PAR-0160",
        "PAR-0161",
        "PAR-0200",
        "PAR-0201",
        "PAR-0202",
        "PAR-0210",
        "PAR-0212",
        "PAR-0224",
        "PAR-0225",
    ],
    "DRV": [
        "DRV-0010",
        "DRV-0020",
    ],
    "NAM": [
        "NAM-0010",  # multiply declared identifier
        "NAM-0011",  # multiply declared struct field
        "NAM-0020",  # undeclared identifier
        "NAM-0030",  # non-function declared void
        "NAM-0040",  # invalid name of struct type
        "NAM-0050",  # dot-access of non-struct type
        "NAM-0051",  # invalid struct field name
    ],
    # ICE codes are internal compiler errors raised as exceptions,
    # not user-facing diagnostics; they are excluded from this registry.
    "TYP": [
        "TYP-0010", "TYP-0011", "TYP-0020", "TYP-0030", "TYP-0031",
        "TYP-0032", "TYP-0033", "TYP-0040", "TYP-0041", "TYP-0042",
        "TYP-0043", "TYP-0050", "TYP-0051", "TYP-0052", "TYP-0060",
        "TYP-0061", "TYP-0062", "TYP-0070", "TYP-0071", "TYP-0080",
        "TYP-0081", "TYP-0082", "TYP-0090", "TYP-0091", "TYP-0092",
        "TYP-0093", "TYP-0100", "TYP-0200",
    ],
}


@dataclass
class Diagnostic:
    kind: str  # "error" or "warning"
    message: str
    filename: Optional[str] = None  # file path

    # Primary location (start of the span)
    line: Optional[int] = None
    column: Optional[int] = None

    # Optional end of span (exclusive)
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    # Return the one-line header; snippets will be printed at the call site
    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc += f"{os.path.abspath(str(self.filename))}"
        if self.line is not None:
            loc += f":{self.line}"
            if self.column is not None:
                loc += f":{self.column}"
        if loc:
            loc += ": "
        return f"{loc}{self.kind}: {self.message}"


def diag_from_node(
        kind: str,
        message: str,
        *,
        filename: Optional[str],
        node: Optional[Node],
) -> Diagnostic:
    line = column = end_line = end_column = None
    if node is not None and node.span is not None:
        s = node.span
        line = s.start_line
        column = s.start_column
        end_line = s.end_line
        end_column = s.end_column
    return Diagnostic(
        kind=kind,
        message=message,
        filename=filename,
        line=line,
        column=column,
        end_line=end_line,
        end_column=end_column,
    )


def diag_from_token(
        kind: str,
        message: str,
        *,
        filename: Optional[str],
        token: Optional[Token],
) -> Diagnostic:
    line = column = None
    if token is not None:
        line = token.line
        column = token.column
    return Diagnostic(
        kind=kind,
        message=message,
        filename=filename,
        line=line,
        column=column,
    )
