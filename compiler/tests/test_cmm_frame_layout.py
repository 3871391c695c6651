#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from cmm_frame_layout import FIRST_SLOT_OFFSET


def _offset(result, ident):
    return result.entry(ident.symbol).offset


def test_formals_then_locals(analyze_source):
    result = analyze_source(
        """
        void f(int a, bool b) {
            int c;
        }
        void main() { }
        """
    )
    assert not result.has_errors()
    f = result.program.decls[0]
    assert [_offset(result, p.name) for p in f.formals] == [8, 12]
    assert _offset(result, f.body.decls[0].name) == 16
    assert result.frame_sizes == {"f": 12, "main": 0}


def test_struct_local_takes_its_whole_size(analyze_source):
    result = analyze_source(
        """
        struct P { int x; int y; int z; };
        void main() {
            struct P p;
            int after;
        }
        """
    )
    assert not result.has_errors()
    main = result.program.decls[1]
    p, after = main.body.decls
    assert _offset(result, p.name) == FIRST_SLOT_OFFSET
    assert _offset(result, after.name) == FIRST_SLOT_OFFSET + 12
    assert result.frame_sizes["main"] == 16


def test_nested_blocks_never_reuse_slots(analyze_source):
    result = analyze_source(
        """
        void main() {
            int a;
            if (true) { int b; } else { int c; }
            while (false) {
                int d;
                if (true) { int e; }
            }
        }
        """
    )
    assert not result.has_errors()
    main = result.program.decls[0]
    if_stmt, while_stmt = main.body.stmts
    offsets = [
        _offset(result, main.body.decls[0].name),
        _offset(result, if_stmt.then_block.decls[0].name),
        _offset(result, if_stmt.else_block.decls[0].name),
        _offset(result, while_stmt.body.decls[0].name),
        _offset(result, while_stmt.body.stmts[0].then_block.decls[0].name),
    ]
    assert offsets == [8, 12, 16, 20, 24]
    assert result.frame_sizes["main"] == 20


def test_globals_have_no_frame_slot(analyze_source):
    result = analyze_source(
        """
        int g;
        void main() { int x; }
        """
    )
    g = result.entry(result.program.decls[0].name.symbol)
    assert g.is_global
    assert g.offset == 0
    assert result.frame_sizes["main"] == 4


def test_rejected_declarations_are_skipped(analyze_source):
    result = analyze_source(
        """
        void main() {
            int x;
            bool x;
            int y;
        }
        """
    )
    assert result.has_errors()
    main = result.program.decls[0]
    x, dup, y = main.body.decls
    assert dup.name.symbol is None
    assert _offset(result, x.name) == 8
    assert _offset(result, y.name) == 12


def test_each_function_starts_a_fresh_frame(analyze_source):
    result = analyze_source(
        """
        void f() { int a; int b; }
        void main() { int c; }
        """
    )
    f, main = result.program.decls
    assert _offset(result, f.body.decls[1].name) == 12
    assert _offset(result, main.body.decls[0].name) == 8
