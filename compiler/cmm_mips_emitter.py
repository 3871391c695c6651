"""
MIPS Code Emitter

Handles MIPS-specific text emission. Knows how to format instructions, labels
and directives, but not why or when. The lowering decisions live in the Backend.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Dict, List

from cmm_context import CompilationContext
from cmm_internal_error import InternalCompilerError

# Registers
FP = "$fp"
SP = "$sp"
RA = "$ra"
V0 = "$v0"
V1 = "$v1"
A0 = "$a0"
T0 = "$t0"
T1 = "$t1"
ZERO = "$zero"

# Truth values
TRUE = "1"
FALSE = "0"

WORD_SIZE = 4

# Opcodes are padded to this width before their operands.
MAXLEN = 4

# SPIM syscall service numbers
SYSCALL_PRINT_INT = 1
SYSCALL_PRINT_STRING = 4
SYSCALL_READ_INT = 5
SYSCALL_EXIT = 10


@dataclass
class AsmBuilder:
    """
    Accumulates the lines of one assembly file.
    """
    lines: List[str] = field(default_factory=list)

    def emit(self, line: str = "") -> None:
        self.lines.append(line)

    def to_string(self) -> str:
        return "\n".join(self.lines) + "\n"


@dataclass
class MipsEmitter:
    """
    MIPS-specific code emitter.

    Responsibilities:
    - Format instructions, indexed loads/stores, labels and directives
    - Push/pop sequences for the evaluation stack
    - Unique label generation, one counter per label kind
    - Tracking the simulated evaluation-stack depth

    Does NOT:
    - Decide what to emit for a construct
    - Look at types or symbols
    """
    context: CompilationContext = field(default_factory=CompilationContext.default)
    out: AsmBuilder = field(default_factory=AsmBuilder)

    # Words currently pushed on the evaluation stack by generated code
    depth: int = 0

    _counters: Dict[str, int] = field(default_factory=dict)

    def get_output(self) -> str:
        return self.out.to_string()

    # ------------------------------------------------------------------
    # Formatting primitives
    # ------------------------------------------------------------------

    def _format(self, opcode: str, operands: str, comment: str) -> str:
        line = f"\t{opcode}"
        if operands:
            space = max(1, MAXLEN - len(opcode) + 2)
            line += " " * space + operands
        if comment and self.context.emit_comments:
            line += f"\t\t#{comment}"
        return line

    def generate(self, opcode: str, *args: object) -> None:
        self.out.emit(self._format(opcode, ", ".join(str(a) for a in args), ""))

    def generate_with_comment(self, opcode: str, comment: str, *args: object) -> None:
        self.out.emit(self._format(opcode, ", ".join(str(a) for a in args), comment))

    def generate_indexed(self, opcode: str, reg1: str, reg2: str, offset: int, comment: str = "") -> None:
        """Emit `opcode reg1, offset(reg2)`."""
        self.out.emit(self._format(opcode, f"{reg1}, {offset}({reg2})", comment))

    def generate_labeled(self, label: str, opcode: str, comment: str = "", arg: str = "") -> None:
        line = f"{label}:\t{opcode}"
        if arg:
            line += f" {arg}"
        if comment and self.context.emit_comments:
            line += f"\t\t#{comment}"
        self.out.emit(line)

    def gen_label(self, label: str, comment: str = "") -> None:
        line = f"{label}:"
        if comment and self.context.emit_comments:
            line += f"\t\t#{comment}"
        self.out.emit(line)

    def gen_directive(self, directive: str, arg: str = "") -> None:
        self.out.emit(f"\t{directive}\t{arg}" if arg else f"\t{directive}")

    def gen_comment(self, text: str) -> None:
        if self.context.emit_comments:
            self.out.emit(f"\t\t# {text}")

    def gen_blank(self) -> None:
        self.out.emit()

    # ------------------------------------------------------------------
    # Evaluation stack
    # ------------------------------------------------------------------

    def gen_push(self, reg: str) -> None:
        self.generate_indexed("sw", reg, SP, 0, "PUSH")
        self.generate("subu", SP, SP, WORD_SIZE)
        self.depth += 1

    def gen_pop(self, reg: str) -> None:
        self.generate_indexed("lw", reg, SP, WORD_SIZE, "POP")
        self.generate("addu", SP, SP, WORD_SIZE)
        self.depth -= 1
        if self.depth < 0:
            raise InternalCompilerError("[ICE-0400] evaluation stack popped below empty")

    def drop_words(self, count: int) -> None:
        """Discard `count` words pushed by generated code (e.g. call arguments)."""
        if count:
            self.generate("addu", SP, SP, WORD_SIZE * count)
            self.depth -= count
            if self.depth < 0:
                raise InternalCompilerError("[ICE-0400] evaluation stack popped below empty")

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def _next(self, kind: str) -> int:
        n = self._counters.get(kind, 0)
        self._counters[kind] = n + 1
        return n

    def next_label(self) -> str:
        return f".L{self._next('L')}"

    def next_else_label(self) -> str:
        return f"ELSE_{self._next('ELSE')}"

    def next_endif_label(self) -> str:
        return f"ENDIF_{self._next('ENDIF')}"

    def next_loop_label(self) -> str:
        return f"LOOP_{self._next('LOOP')}"

    def next_endloop_label(self) -> str:
        return f"ENDLOOP_{self._next('ENDLOOP')}"

    def next_string_label(self) -> str:
        return f"STRING_{self._next('STRING')}"

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    @staticmethod
    def global_label(name: str) -> str:
        return f"_{name}"

    @staticmethod
    def function_label(name: str) -> str:
        return "main" if name == "main" else f"_{name}"

    @staticmethod
    def exit_label(name: str) -> str:
        return f"exit_{name}"
