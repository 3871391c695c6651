"""
Compilation context for cross-cutting compiler options.

This module defines the CompilationContext dataclass which holds compiler
options that affect multiple stages of compilation (code generation,
diagnostics, logging).
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Hierarchical logging levels for the C-- compiler."""
    SILENT = 0      # No logging
    ERROR = 3       # Error messages only
    WARNING = 6     # Warning messages (default)
    INFO = 10       # Stage progress messages (-v)
    DEBUG = 30      # Detailed diagnostic information (-vvv)


@dataclass
class CompilationContext:
    """
    Holds cross-cutting compiler options that affect multiple compilation stages.

    Attributes:
        emit_comments:      If True, annotate generated assembly with #PUSH, #POP
                            and similar comments.
        output_suffix:      File suffix that replaces the source suffix for the
                            generated assembly file.
        log_rich_format:    If True, emit logs in rich format: timestamps and levels.
        log_level:          Current logging level.
    """
    emit_comments: bool = True
    output_suffix: str = ".asm"
    log_rich_format: bool = False
    log_level: LogLevel = LogLevel.WARNING

    @staticmethod
    def default() -> 'CompilationContext':
        """Create a CompilationContext with default settings."""
        return CompilationContext(log_level=LogLevel.WARNING)
