#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from textwrap import dedent

import pytest

from cmm_ast import (
    TypeRef, VarDecl, StructDecl, FnDecl, FormalDecl, AssignStmt, PostIncStmt, PostDecStmt, ReadStmt, WriteStmt,
    IfStmt, WhileStmt, CallStmt, ReturnStmt, IntLiteral, StringLiteral, BoolLiteral, IdExpr, DotAccessExpr,
    AssignExpr, CallExpr, UnaryOp, BinaryOp)
from cmm_parser import Parser, ParseError


def _parse(src: str):
    return Parser.from_source(dedent(src), "t.cmm").parse_program()


def _main_stmts(src: str):
    program = _parse("void main() {\n" + src + "\n}")
    return program.decls[0].body.stmts


def _expr(src: str):
    stmt = _main_stmts(f"x = {src};")[0]
    assert isinstance(stmt, AssignStmt)
    return stmt.assign.value


def test_top_level_declarations():
    program = _parse(
        """
        int g;
        struct Point { int x; bool y; };
        struct Point p;
        int add(int a, int b) { return a + b; }
        """
    )
    assert program.filename == "t.cmm"
    g, point, p, add = program.decls

    assert g == VarDecl(TypeRef("int"), IdExpr("g"))
    assert isinstance(point, StructDecl)
    assert [f.name.name for f in point.fields] == ["x", "y"]
    assert p == VarDecl(TypeRef("Point", is_struct=True), IdExpr("p"))
    assert isinstance(add, FnDecl)
    assert add.return_type == TypeRef("int")
    assert add.formals == [FormalDecl(TypeRef("int"), IdExpr("a")), FormalDecl(TypeRef("int"), IdExpr("b"))]


def test_block_declarations_precede_statements():
    program = _parse(
        """
        void main() {
            int x;
            struct P p;
            x = 1;
        }
        """
    )
    body = program.decls[0].body
    assert [d.name.name for d in body.decls] == ["x", "p"]
    assert body.decls[1].type.is_struct
    assert len(body.stmts) == 1


def test_statement_forms():
    stmts = _main_stmts(
        """
        x = 1;
        x++;
        s.f--;
        cin >> s.f;
        cout << "hi";
        f(1, x);
        return;
        """
    )
    assert [type(s) for s in stmts] == [
        AssignStmt, PostIncStmt, PostDecStmt, ReadStmt, WriteStmt, CallStmt, ReturnStmt,
    ]
    assert stmts[2].target == DotAccessExpr(IdExpr("s"), IdExpr("f"))
    assert stmts[4].value == StringLiteral("hi")
    assert stmts[5].call == CallExpr(IdExpr("f"), [IntLiteral(1), IdExpr("x")])
    assert stmts[6].value is None


def test_if_else_and_while():
    stmts = _main_stmts(
        """
        if (x < 1) { x = 1; } else { int y; y = 2; }
        if (true) { }
        while (x > 0) { x--; }
        """
    )
    first, second, loop = stmts
    assert isinstance(first, IfStmt)
    assert first.cond == BinaryOp("<", IdExpr("x"), IntLiteral(1))
    assert [d.name.name for d in first.else_block.decls] == ["y"]
    assert isinstance(second, IfStmt) and second.else_block is None
    assert isinstance(loop, WhileStmt)
    assert isinstance(loop.body.stmts[0], PostDecStmt)


def test_multiplication_binds_tighter_than_addition():
    assert _expr("1 + 2 * 3") == BinaryOp("+", IntLiteral(1), BinaryOp("*", IntLiteral(2), IntLiteral(3)))


def test_additive_operators_are_left_associative():
    assert _expr("1 - 2 - 3") == BinaryOp("-", BinaryOp("-", IntLiteral(1), IntLiteral(2)), IntLiteral(3))


def test_logical_precedence():
    expr = _expr("a || b && c == d")
    assert expr == BinaryOp(
        "||",
        IdExpr("a"),
        BinaryOp("&&", IdExpr("b"), BinaryOp("==", IdExpr("c"), IdExpr("d"))),
    )


def test_unary_operators_and_parentheses():
    assert _expr("-(1 + 2)") == UnaryOp("-", BinaryOp("+", IntLiteral(1), IntLiteral(2)))
    assert _expr("!!true") == UnaryOp("!", UnaryOp("!", BoolLiteral(True)))


def test_assignment_is_right_associative():
    stmt = _main_stmts("x = y = 5;")[0]
    assert stmt.assign == AssignExpr(IdExpr("x"), AssignExpr(IdExpr("y"), IntLiteral(5)))


def test_dot_chain_nests_left_to_right():
    expr = _expr("a.b.c")
    assert expr == DotAccessExpr(DotAccessExpr(IdExpr("a"), IdExpr("b")), IdExpr("c"))


def test_spans_cover_the_node():
    stmt = _main_stmts("x = 12;")[0]
    span = stmt.assign.value.span
    assert (span.start_line, span.start_column) == (2, 5)
    assert (span.end_line, span.end_column) == (2, 7)


@pytest.mark.parametrize(
    "src, code",
    [
        ("x;", "PAR-0020"),
        ("int ;", "PAR-0040"),
        ("void main() { x = 1 < 2 < 3; }", "PAR-0202"),
        ("void main() { 1 = 2; }", "PAR-0200"),
        ("void main() { x + 1; }", "PAR-0102"),
        ("void main() { x = 1; int y; }", "PAR-0101"),
        ("void main() { (x)++; x = 1 + ; }", "PAR-0225"),
    ],
)
def test_parse_errors(src, code):
    with pytest.raises(ParseError) as exc:
        _parse(src)
    assert f"[{code}]" in exc.value.message
    assert exc.value.filename == "t.cmm"


def test_parenthesised_location_is_still_a_location():
    stmts = _main_stmts("(x)++;")
    assert stmts[0] == PostIncStmt(IdExpr("x"))
