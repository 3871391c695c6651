#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import pytest

from cmm_lexer import Lexer, LexerError, TokenKind


def _kinds(src: str):
    return [t.kind for t in Lexer(src).tokenize()]


def test_keywords_and_identifiers():
    assert _kinds("int bool void struct true false if else while return cin cout name _x1") == [
        TokenKind.INT_KW,
        TokenKind.BOOL_KW,
        TokenKind.VOID_KW,
        TokenKind.STRUCT,
        TokenKind.TRUE,
        TokenKind.FALSE,
        TokenKind.IF,
        TokenKind.ELSE,
        TokenKind.WHILE,
        TokenKind.RETURN,
        TokenKind.CIN,
        TokenKind.COUT,
        TokenKind.IDENT,
        TokenKind.IDENT,
        TokenKind.EOF,
    ]


def test_two_char_operators_win_over_single_char():
    assert _kinds("<< >> ++ -- && || <= >= == != < > = + - ! * /") == [
        TokenKind.WRITE,
        TokenKind.READ,
        TokenKind.PLUSPLUS,
        TokenKind.MINUSMINUS,
        TokenKind.ANDAND,
        TokenKind.OROR,
        TokenKind.LE,
        TokenKind.GE,
        TokenKind.EQEQ,
        TokenKind.NE,
        TokenKind.LT,
        TokenKind.GT,
        TokenKind.EQ,
        TokenKind.PLUS,
        TokenKind.MINUS,
        TokenKind.BANG,
        TokenKind.STAR,
        TokenKind.SLASH,
        TokenKind.EOF,
    ]


def test_both_comment_styles_are_skipped():
    src = "int x; // trailing\n# whole line\nbool y;"
    assert _kinds(src) == [
        TokenKind.INT_KW, TokenKind.IDENT, TokenKind.SEMI,
        TokenKind.BOOL_KW, TokenKind.IDENT, TokenKind.SEMI,
        TokenKind.EOF,
    ]


def test_positions_are_one_based():
    tokens = Lexer("int x;\n  cout << x;").tokenize()
    cout = tokens[3]
    assert cout.kind is TokenKind.COUT
    assert (cout.line, cout.column) == (2, 3)


def test_string_literal_keeps_escapes_as_written():
    tokens = Lexer(r'"a\tb\n\"q\""').tokenize()
    assert tokens[0].kind is TokenKind.STRING
    assert tokens[0].text == r'a\tb\n\"q\"'


def test_minus_is_never_part_of_an_integer_literal():
    assert _kinds("-5") == [TokenKind.MINUS, TokenKind.INT, TokenKind.EOF]


def test_largest_int_literal_is_accepted():
    tokens = Lexer("2147483647").tokenize()
    assert tokens[0].text == "2147483647"


@pytest.mark.parametrize(
    "src, code, pos",
    [
        ('"abc', "LEX-0010", (1, 1)),
        ('"abc\n"', "LEX-0010", (1, 1)),
        ("@", "LEX-0040", (1, 1)),
        ("a & b", "LEX-0040", (1, 3)),
        (r'"\q"', "LEX-0059", (1, 3)),
        ("2147483648", "LEX-0060", (1, 1)),
        ("12ab", "LEX-0061", (1, 3)),
        ("\u00b2", "LEX-0040", (1, 1)),
        ("1\u00b2", "LEX-0040", (1, 2)),
        ("ab\u00e9", "LEX-0040", (1, 3)),
    ],
)
def test_lexer_errors(src, code, pos):
    with pytest.raises(LexerError) as exc:
        Lexer(src, "t.cmm").tokenize()
    assert f"[{code}]" in exc.value.message
    assert exc.value.filename == "t.cmm"
    assert (exc.value.line, exc.value.column) == pos
