#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import pytest

from cmm_internal_error import InternalCompilerError
from cmm_symbols import (
    SymbolArena, SymbolTable, SymbolEntry, StructDefEntry, FunctionEntry, DuplicateDeclarationError,
    EmptySymbolTableError)
from cmm_types import IntType, BoolType, VoidType, FuncType, StructDefType


def test_arena_hands_out_sequential_indices():
    arena = SymbolArena()
    a = arena.add(SymbolEntry("a", IntType()))
    b = arena.add(SymbolEntry("b", BoolType()))
    assert (a, b) == (0, 1)
    assert arena[b].name == "b"
    assert len(arena) == 2


@pytest.mark.parametrize("index", [-1, 5])
def test_arena_out_of_range_is_internal_error(index):
    arena = SymbolArena()
    arena.add(SymbolEntry("a", IntType()))
    with pytest.raises(InternalCompilerError, match="ICE-0010"):
        arena[index]


def test_lookup_local_sees_only_innermost_scope():
    table = SymbolTable()
    table.add_decl("x", 0)
    table.add_scope()
    assert table.lookup_local("x") is None
    assert table.lookup_global("x") == 0


def test_inner_scope_shadows_outer():
    table = SymbolTable()
    table.add_decl("x", 0)
    table.add_scope()
    table.add_decl("x", 1)
    assert table.lookup_global("x") == 1
    table.remove_scope()
    assert table.lookup_global("x") == 0


def test_duplicate_in_same_scope_raises():
    table = SymbolTable()
    table.add_decl("x", 0)
    with pytest.raises(DuplicateDeclarationError) as exc:
        table.add_decl("x", 1)
    assert exc.value.name == "x"


def test_operations_on_empty_table_raise():
    table = SymbolTable()
    table.remove_scope()
    assert table.depth == 0
    with pytest.raises(EmptySymbolTableError):
        table.lookup_local("x")
    with pytest.raises(EmptySymbolTableError):
        table.lookup_global("x")
    with pytest.raises(EmptySymbolTableError):
        table.add_decl("x", 0)
    with pytest.raises(EmptySymbolTableError):
        table.remove_scope()


def test_frozen_table_rejects_declarations():
    table = SymbolTable()
    table.add_decl("f", 0)
    table.freeze()
    assert table.frozen
    with pytest.raises(InternalCompilerError, match="ICE-0011"):
        table.add_decl("g", 1)
    assert table.lookup_global("f") == 0


def test_names_keep_declaration_order():
    table = SymbolTable()
    for i, name in enumerate(["c", "a", "b"]):
        table.add_decl(name, i)
    assert list(table.names()) == [("c", 0), ("a", 1), ("b", 2)]


def test_entry_types():
    fn = FunctionEntry("f", [IntType(), BoolType()], VoidType())
    assert fn.arity == 2
    assert fn.type == FuncType((IntType(), BoolType()), VoidType())

    struct = StructDefEntry("P", SymbolTable(), 8)
    assert struct.type == StructDefType("P")

    var = SymbolEntry("x", IntType())
    assert (var.offset, var.is_global, var.struct_def, var.size) == (0, False, None, 4)
