"""
C-- Code Generation Backend

Lowers a fully-analysed C-- program to MIPS assembly for a stack machine.

The backend decides WHAT to emit and WHEN, and delegates the HOW (instruction
formatting, labels, push/pop sequences) to the MipsEmitter.

Every expression leaves exactly one word on the evaluation stack; every
statement leaves the stack as it found it. The emitter tracks the simulated
depth and the backend checks it after each statement.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import NoReturn, Optional, Tuple

from cmm_analysis import AnalysisResult
from cmm_ast import (
    Decl, VarDecl, StructDecl, FnDecl, Block, Stmt, AssignStmt, PostIncStmt, PostDecStmt, ReadStmt, WriteStmt,
    IfStmt, WhileStmt, CallStmt, ReturnStmt, Expr, IntLiteral, StringLiteral, BoolLiteral, IdExpr, DotAccessExpr,
    AssignExpr, CallExpr, UnaryOp, BinaryOp)
from cmm_internal_error import InternalCompilerError, ICELocation
from cmm_logger import log_debug, log_stage
from cmm_mips_emitter import (
    MipsEmitter, FP, SP, RA, V0, A0, T0, T1, ZERO, TRUE, FALSE, WORD_SIZE,
    SYSCALL_PRINT_INT, SYSCALL_PRINT_STRING, SYSCALL_READ_INT, SYSCALL_EXIT)
from cmm_symbols import SymbolEntry, FunctionEntry, UNRESOLVED
from cmm_types import Type

_BINARY_OPCODES = {
    "+": "add",
    "-": "sub",
    "*": "mul",
    "/": "div",
    "==": "seq",
    "!=": "sne",
    "<": "slt",
    ">": "sgt",
    "<=": "sle",
    ">=": "sge",
}


@dataclass
class Backend:
    """
    Stack-machine code generation backend.

    Expects an AnalysisResult with no errors: names resolved, expression
    types recorded and frame offsets assigned. Anything else is an internal
    compiler error.
    """

    analysis: AnalysisResult

    # Target-specific emitter (handles all text emission)
    emitter: Optional[MipsEmitter] = None

    # Name of the function being lowered
    _current_func: str = field(default="", init=False)

    def __post_init__(self):
        if self.emitter is None:
            self.emitter = MipsEmitter(context=self.analysis.context)

    def generate(self) -> str:
        """
        Main entry point: generate the complete assembly text for the program.
        """
        log_stage(self.analysis.context, "Generating MIPS code", self.analysis.filename)
        if self.analysis.program is None:
            self.ice("[ICE-0500] code generation without a parsed program")
        if self.analysis.has_errors():
            self.ice("[ICE-0501] code generation requested for a program with errors")

        for decl in self.analysis.program.decls:
            self._gen_decl(decl)

        output = self.emitter.get_output()
        log_debug(self.analysis.context, f"Emitted {len(self.emitter.out.lines)} lines of assembly")
        return output

    def ice(self, message: str, *, node=None) -> NoReturn:
        span = getattr(node, "span", None) if node is not None else None
        raise InternalCompilerError(message, ICELocation(filename=self.analysis.filename, span=span))

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _gen_decl(self, decl: Decl) -> None:
        if isinstance(decl, VarDecl):
            self._gen_global(decl)
        elif isinstance(decl, StructDecl):
            # struct declarations only shape the layout
            struct_def = self._entry(decl.name)
            self.emitter.gen_comment(f"struct {struct_def.name}: {struct_def.size} bytes")
        elif isinstance(decl, FnDecl):
            self._gen_function(decl)
        else:
            self.ice(f"[ICE-0502] unexpected declaration kind {type(decl).__name__}", node=decl)

    def _gen_global(self, decl: VarDecl) -> None:
        entry = self._variable_entry(decl.name)
        em = self.emitter
        em.gen_directive(".data")
        em.gen_directive(".align", "2")
        label = em.global_label(entry.name)
        if entry.struct_def is not None:
            em.generate_labeled(label, ".word", arg=f"0:{entry.size // WORD_SIZE}")
        else:
            em.generate_labeled(label, ".space", arg=str(WORD_SIZE))

    def _gen_function(self, decl: FnDecl) -> None:
        name = decl.name.name
        entry = self._entry(decl.name)
        if not isinstance(entry, FunctionEntry):
            self.ice(f"[ICE-0503] '{name}' is not bound to a function", node=decl)
        frame_size = self.analysis.frame_sizes.get(name)
        if frame_size is None:
            self.ice(f"[ICE-0504] no frame layout for function '{name}'", node=decl)

        self._current_func = name
        em = self.emitter
        em.depth = 0

        em.gen_blank()
        em.gen_directive(".text")
        if name == "main":
            em.gen_directive(".globl", "main")
        em.gen_label(em.function_label(name), f"FUNCTION {name}")

        # prologue: save $ra and the caller's $fp, then reserve the frame
        em.generate_indexed("sw", RA, SP, 0, "PUSH")
        em.generate("subu", SP, SP, WORD_SIZE)
        em.generate_indexed("sw", FP, SP, 0, "PUSH")
        em.generate("subu", SP, SP, WORD_SIZE)
        em.generate("addu", FP, SP, 2 * WORD_SIZE)
        if frame_size:
            em.generate_with_comment("subu", "FRAME", SP, SP, frame_size)

        # copy incoming arguments into their formal slots
        count = len(decl.formals)
        for i, formal in enumerate(decl.formals):
            formal_entry = self._variable_entry(formal.name)
            em.generate_indexed("lw", T0, FP, WORD_SIZE * (count - i), f"ARG {formal_entry.name}")
            em.generate_indexed("sw", T0, FP, -formal_entry.offset)

        self._gen_block(decl.body)

        # epilogue
        em.gen_label(em.exit_label(name))
        if name == "main":
            em.generate("li", V0, SYSCALL_EXIT)
            em.generate("syscall")
        else:
            em.generate_indexed("lw", RA, FP, 0, "load return address")
            em.generate("move", T0, FP)
            em.generate_indexed("lw", FP, FP, -WORD_SIZE, "restore FP")
            em.generate("move", SP, T0)
            em.generate("jr", RA)
        self._current_func = ""

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _gen_block(self, block: Block) -> None:
        for stmt in block.stmts:
            self._gen_stmt(stmt)
            if self.emitter.depth != 0:
                self.ice(f"[ICE-0510] evaluation stack unbalanced after statement (depth {self.emitter.depth})",
                         node=stmt)

    def _gen_stmt(self, stmt: Stmt) -> None:
        em = self.emitter
        if isinstance(stmt, AssignStmt):
            self._gen_expr(stmt.assign)
            em.gen_pop(T0)

        elif isinstance(stmt, (PostIncStmt, PostDecStmt)):
            delta = 1 if isinstance(stmt, PostIncStmt) else -1
            self._load_address(stmt.target, T1)
            em.generate_indexed("lw", T0, T1, 0)
            em.generate("addi", T0, T0, delta)
            em.generate_indexed("sw", T0, T1, 0)

        elif isinstance(stmt, ReadStmt):
            em.generate("li", V0, SYSCALL_READ_INT)
            em.generate("syscall")
            self._load_address(stmt.target, T0)
            em.generate_indexed("sw", V0, T0, 0)

        elif isinstance(stmt, WriteStmt):
            self._gen_expr(stmt.value)
            em.gen_pop(A0)
            service = SYSCALL_PRINT_STRING if self._expr_type(stmt.value).is_string() else SYSCALL_PRINT_INT
            em.generate("li", V0, service)
            em.generate("syscall")

        elif isinstance(stmt, IfStmt):
            self._gen_expr(stmt.cond)
            em.gen_pop(T0)
            if stmt.else_block is None:
                endif_label = em.next_endif_label()
                em.generate("beq", T0, ZERO, endif_label)
                self._gen_block(stmt.then_block)
                em.gen_label(endif_label)
            else:
                else_label = em.next_else_label()
                endif_label = em.next_endif_label()
                em.generate("beq", T0, ZERO, else_label)
                self._gen_block(stmt.then_block)
                em.generate("j", endif_label)
                em.gen_label(else_label)
                self._gen_block(stmt.else_block)
                em.gen_label(endif_label)

        elif isinstance(stmt, WhileStmt):
            loop_label = em.next_loop_label()
            end_label = em.next_endloop_label()
            em.gen_label(loop_label)
            self._gen_expr(stmt.cond)
            em.gen_pop(T0)
            em.generate("beq", T0, ZERO, end_label)
            self._gen_block(stmt.body)
            em.generate("j", loop_label)
            em.gen_label(end_label)

        elif isinstance(stmt, CallStmt):
            self._gen_expr(stmt.call)
            em.gen_pop(T0)

        elif isinstance(stmt, ReturnStmt):
            if stmt.value is not None:
                self._gen_expr(stmt.value)
                em.gen_pop(V0)
            em.generate("j", em.exit_label(self._current_func))

        else:
            self.ice(f"[ICE-0511] unexpected statement kind {type(stmt).__name__}", node=stmt)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _gen_expr(self, expr: Expr) -> None:
        before = self.emitter.depth
        self._gen_expr_inner(expr)
        if self.emitter.depth != before + 1:
            self.ice(f"[ICE-0512] expression left {self.emitter.depth - before} words on the stack", node=expr)

    def _gen_expr_inner(self, expr: Expr) -> None:
        em = self.emitter
        if isinstance(expr, IntLiteral):
            em.generate("li", T0, expr.value)
            em.gen_push(T0)

        elif isinstance(expr, BoolLiteral):
            em.generate("li", T0, TRUE if expr.value else FALSE)
            em.gen_push(T0)

        elif isinstance(expr, StringLiteral):
            label = em.next_string_label()
            em.gen_directive(".data")
            em.generate_labeled(label, ".asciiz", arg=f'"{expr.value}"')
            em.gen_directive(".text")
            em.generate("la", T0, label)
            em.gen_push(T0)

        elif isinstance(expr, (IdExpr, DotAccessExpr)):
            self._gen_load(expr)

        elif isinstance(expr, AssignExpr):
            self._gen_expr(expr.value)
            self._load_address(expr.target, T1)
            em.gen_pop(T0)
            em.generate_indexed("sw", T0, T1, 0)
            em.gen_push(T0)

        elif isinstance(expr, CallExpr):
            self._gen_call(expr)

        elif isinstance(expr, UnaryOp):
            self._gen_expr(expr.operand)
            em.gen_pop(T0)
            if expr.op == "-":
                em.generate("sub", T0, ZERO, T0)
            elif expr.op == "!":
                em.generate("xori", T0, T0, 1)
            else:
                self.ice(f"[ICE-0513] unexpected unary operator '{expr.op}'", node=expr)
            em.gen_push(T0)

        elif isinstance(expr, BinaryOp):
            if expr.op in ("&&", "||"):
                self._gen_short_circuit(expr)
                return
            opcode = _BINARY_OPCODES.get(expr.op)
            if opcode is None:
                self.ice(f"[ICE-0514] unexpected binary operator '{expr.op}'", node=expr)
            self._gen_expr(expr.left)
            self._gen_expr(expr.right)
            em.gen_pop(T1)
            em.gen_pop(T0)
            em.generate(opcode, T0, T0, T1)
            em.gen_push(T0)

        else:
            self.ice(f"[ICE-0515] unexpected expression kind {type(expr).__name__}", node=expr)

    def _gen_short_circuit(self, expr: BinaryOp) -> None:
        """
        `a && b`: b runs only when a is true; `a || b`: b runs only when a is false.
        The value of `a` is the result when `b` is skipped.
        """
        em = self.emitter
        rhs_label = em.next_label()
        done_label = em.next_label()

        self._gen_expr(expr.left)
        em.gen_pop(T0)
        branch = "bne" if expr.op == "&&" else "beq"
        em.generate(branch, T0, ZERO, rhs_label)
        em.gen_push(T0)
        em.generate("b", done_label)
        # the right-hand path starts without the pushed left value
        em.depth -= 1
        em.gen_label(rhs_label)
        self._gen_expr(expr.right)
        em.gen_label(done_label)

    def _gen_call(self, expr: CallExpr) -> None:
        em = self.emitter
        entry = self._entry(expr.callee)
        if not isinstance(entry, FunctionEntry):
            self.ice(f"[ICE-0516] call of non-function '{expr.callee.name}'", node=expr)
        for arg in expr.args:
            self._gen_expr(arg)
        em.generate("jal", em.function_label(entry.name))
        em.drop_words(len(expr.args))
        em.gen_push(V0)

    def _gen_load(self, expr: Expr) -> None:
        em = self.emitter
        entry, offset = self._location(expr)
        field_entry = self._variable_entry(expr.field) if isinstance(expr, DotAccessExpr) else entry
        if field_entry.struct_def is not None:
            self.ice(f"[ICE-0517] struct value '{field_entry.name}' used as an operand", node=expr)
        if entry.is_global:
            if offset == 0:
                em.generate("lw", T0, em.global_label(entry.name))
            else:
                self._load_address(expr, T0)
                em.generate_indexed("lw", T0, T0, 0)
        else:
            em.generate_indexed("lw", T0, FP, -(entry.offset + offset))
        em.gen_push(T0)

    def _load_address(self, expr: Expr, reg: str) -> None:
        """Put the address of a location into `reg` without touching the stack."""
        em = self.emitter
        entry, offset = self._location(expr)
        if entry.is_global:
            em.generate("la", reg, em.global_label(entry.name))
            if offset:
                em.generate("addu", reg, reg, offset)
        else:
            em.generate_indexed("la", reg, FP, -(entry.offset + offset))

    def _location(self, expr: Expr) -> Tuple[SymbolEntry, int]:
        """
        Root variable of a location and the byte offset of the accessed field
        inside it. Struct fields are stored inline, so a chain of any depth
        folds into a single static offset.
        """
        if isinstance(expr, IdExpr):
            return self._variable_entry(expr), 0
        if isinstance(expr, DotAccessExpr):
            if expr.bad_access:
                self.ice("[ICE-0518] poisoned dot-access reached code generation", node=expr)
            root, offset = self._location(expr.obj)
            return root, offset + self._variable_entry(expr.field).offset
        self.ice(f"[ICE-0519] '{type(expr).__name__}' is not a location", node=expr)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _entry(self, ident: IdExpr):
        if ident.symbol is None or ident.symbol == UNRESOLVED:
            self.ice(f"[ICE-0520] unresolved identifier '{ident.name}' reached code generation", node=ident)
        return self.analysis.entry(ident.symbol)

    def _variable_entry(self, ident: IdExpr) -> SymbolEntry:
        entry = self._entry(ident)
        if not isinstance(entry, SymbolEntry):
            self.ice(f"[ICE-0521] '{ident.name}' is not a variable", node=ident)
        return entry

    def _expr_type(self, expr: Expr) -> Type:
        ty = self.analysis.expr_types.get(id(expr))
        if ty is None:
            self.ice("[ICE-0522] expression has no recorded type", node=expr)
        if ty.is_error():
            self.ice("[ICE-0523] error type reached code generation", node=expr)
        return ty
