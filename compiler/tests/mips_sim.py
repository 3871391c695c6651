#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

"""
A small interpreter for the MIPS subset the backend emits.

Only what the generated code needs is implemented: the stack-machine
instructions, the SPIM pseudo-instructions it relies on, the `.data`
directives for globals and strings, and syscalls 1, 4, 5 and 10.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

DATA_BASE = 0x10010000
STACK_TOP = 0x7FFFFFFC

_LABEL_RE = re.compile(r"^\s*([A-Za-z_.$][\w.$]*):\s*(.*)$")
_INDEXED_RE = re.compile(r"^(-?\d+)\((\$\w+)\)$")

_ESCAPES = {"n": "\n", "t": "\t", "'": "'", '"': '"', "\\": "\\"}

_BINARY_OPS = {
    "add": lambda a, b: a + b,
    "addu": lambda a, b: a + b,
    "sub": lambda a, b: a - b,
    "subu": lambda a, b: a - b,
    "mul": lambda a, b: a * b,
    "seq": lambda a, b: int(a == b),
    "sne": lambda a, b: int(a != b),
    "slt": lambda a, b: int(a < b),
    "sgt": lambda a, b: int(a > b),
    "sle": lambda a, b: int(a <= b),
    "sge": lambda a, b: int(a >= b),
    "addi": lambda a, b: a + b,
    "xori": lambda a, b: a ^ b,
}


class SimulationError(Exception):
    pass


def _wrap(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _strip_comment(line: str) -> str:
    in_string = False
    escaped = False
    for i, c in enumerate(line):
        if escaped:
            escaped = False
        elif c == "\\" and in_string:
            escaped = True
        elif c == '"':
            in_string = not in_string
        elif c == "#" and not in_string:
            return line[:i]
    return line


def _decode_asciiz(arg: str) -> str:
    arg = arg.strip()
    if len(arg) < 2 or arg[0] != '"' or arg[-1] != '"':
        raise SimulationError(f"bad .asciiz operand {arg!r}")
    body = arg[1:-1]
    out: List[str] = []
    i = 0
    while i < len(body):
        if body[i] == "\\" and i + 1 < len(body):
            out.append(_ESCAPES.get(body[i + 1], body[i + 1]))
            i += 2
        else:
            out.append(body[i])
            i += 1
    return "".join(out)


@dataclass
class Instruction:
    opcode: str
    operands: List[str]
    line: int


@dataclass
class Machine:
    text: List[Instruction] = field(default_factory=list)
    text_labels: Dict[str, int] = field(default_factory=dict)
    data_labels: Dict[str, int] = field(default_factory=dict)
    memory: Dict[int, int] = field(default_factory=dict)
    strings: Dict[int, str] = field(default_factory=dict)
    regs: Dict[str, int] = field(default_factory=dict)
    output: List[str] = field(default_factory=list)
    data_next: int = DATA_BASE

    # --- loading ---

    def load(self, asm: str) -> None:
        segment = "text"
        for lineno, raw in enumerate(asm.splitlines(), start=1):
            line = _strip_comment(raw).strip()
            if not line:
                continue
            m = _LABEL_RE.match(line)
            if m:
                label, line = m.group(1), m.group(2).strip()
                if segment == "text":
                    self.text_labels[label] = len(self.text)
                else:
                    self.data_labels[label] = self.data_next
                if not line:
                    continue
            parts = line.split(None, 1)
            opcode = parts[0]
            rest = parts[1] if len(parts) > 1 else ""
            if opcode == ".text":
                segment = "text"
            elif opcode == ".data":
                segment = "data"
            elif opcode == ".globl":
                continue
            elif opcode.startswith("."):
                self._directive(opcode, rest)
            else:
                operands = [op.strip() for op in rest.split(",")] if rest else []
                self.text.append(Instruction(opcode, operands, lineno))

    def _directive(self, directive: str, arg: str) -> None:
        if directive == ".align":
            align = 1 << int(arg)
            self.data_next = (self.data_next + align - 1) // align * align
        elif directive == ".space":
            self.data_next += int(arg)
        elif directive == ".word":
            value, _, count = arg.partition(":")
            for _ in range(int(count or "1")):
                self.memory[self.data_next] = int(value)
                self.data_next += 4
        elif directive == ".asciiz":
            text = _decode_asciiz(arg)
            self.strings[self.data_next] = text
            self.data_next += (len(text) + 1 + 3) // 4 * 4
        else:
            raise SimulationError(f"unsupported directive {directive}")

    # --- operands ---

    def _reg(self, name: str) -> int:
        if name == "$zero":
            return 0
        return self.regs.get(name, 0)

    def _set(self, name: str, value: int) -> None:
        if name == "$zero":
            return
        self.regs[name] = _wrap(value)

    def _value(self, operand: str) -> int:
        if operand.startswith("$"):
            return self._reg(operand)
        return int(operand)

    def _address(self, operand: str) -> int:
        m = _INDEXED_RE.match(operand)
        if m:
            return self._reg(m.group(2)) + int(m.group(1))
        if operand in self.data_labels:
            return self.data_labels[operand]
        raise SimulationError(f"bad address operand {operand!r}")

    def _target(self, label: str) -> int:
        if label not in self.text_labels:
            raise SimulationError(f"unknown label {label!r}")
        return self.text_labels[label]

    # --- execution ---

    def run(self, stdin: Sequence[int] = (), max_steps: int = 200_000) -> str:
        inputs = list(stdin)
        self._set("$sp", STACK_TOP)
        self._set("$fp", STACK_TOP)
        pc = self._target("main")
        for _ in range(max_steps):
            if pc < 0 or pc >= len(self.text):
                raise SimulationError(f"pc {pc} outside the program")
            ins = self.text[pc]
            pc += 1
            op, args = ins.opcode, ins.operands

            if op == "li":
                self._set(args[0], int(args[1]))
            elif op == "la":
                self._set(args[0], self._address(args[1]))
            elif op == "lw":
                self._set(args[0], self.memory.get(self._address(args[1]), 0))
            elif op == "sw":
                self.memory[self._address(args[1])] = self._reg(args[0])
            elif op == "move":
                self._set(args[0], self._reg(args[1]))
            elif op == "div":
                a, b = self._reg(args[1]), self._value(args[2])
                if b == 0:
                    raise SimulationError("division by zero")
                q = abs(a) // abs(b)
                self._set(args[0], q if (a < 0) == (b < 0) else -q)
            elif op in _BINARY_OPS:
                self._set(args[0], _BINARY_OPS[op](self._reg(args[1]), self._value(args[2])))
            elif op == "beq":
                if self._reg(args[0]) == self._value(args[1]):
                    pc = self._target(args[2])
            elif op == "bne":
                if self._reg(args[0]) != self._value(args[1]):
                    pc = self._target(args[2])
            elif op in ("b", "j"):
                pc = self._target(args[0])
            elif op == "jal":
                self._set("$ra", pc)
                pc = self._target(args[0])
            elif op == "jr":
                pc = self._reg(args[0])
            elif op == "syscall":
                if self._syscall(inputs):
                    return "".join(self.output)
            else:
                raise SimulationError(f"line {ins.line}: unsupported instruction {op}")
        raise SimulationError("step limit exceeded")

    def _syscall(self, inputs: List[int]) -> bool:
        service = self._reg("$v0")
        if service == 1:
            self.output.append(str(self._reg("$a0")))
        elif service == 4:
            address = self._reg("$a0")
            if address not in self.strings:
                raise SimulationError(f"no string at {address:#x}")
            self.output.append(self.strings[address])
        elif service == 5:
            if not inputs:
                raise SimulationError("read past end of input")
            self._set("$v0", inputs.pop(0))
        elif service == 10:
            return True
        else:
            raise SimulationError(f"unsupported syscall {service}")
        return False


def run_asm(asm: str, stdin: Optional[Sequence[int]] = None) -> Tuple[str, Machine]:
    machine = Machine()
    machine.load(asm)
    return machine.run(stdin or ()), machine
