import math

import pytest

import vex
from vex.vex_printer import Printer, to_text
from vex.vex_datatypes import (
    IdentExpr, LitExpr, BinOpExpr, CallExpr, MethodCallExpr, MemberExpr, ItemExpr, ForExpr
)


@pytest.fixture(scope="module")
def printer():
    return Printer()


ROUND_TRIP_SOURCES = [
    "x",
    "42",
    "2.5",
    "1e+20",
    "1e999",
    '"quote \\" and \\\\ backslash"',
    '"tab\\t"',
    "a + b * c",
    "(a + b) * c",
    "a - (b - c)",
    "a / (b * c)",
    "a * b / c",
    "f()",
    'f(1, "two", g(x))',
    "a.b.c",
    "(a + b).c",
    "a.b(c, d)[e + 1]",
    "xs[0].name",
    '"abc".upper()',
    "for x in xs",
    "for i, x in world.items()",
]


@pytest.mark.parametrize("source", ROUND_TRIP_SOURCES)
def test_printed_source_compiles_back_to_same_tree(printer, source):
    ast = vex.compile(source)
    printed = printer.pformat(ast)
    assert vex.compile(printed) == ast


@pytest.mark.parametrize("expr, expected", [
    (BinOpExpr('-', IdentExpr('a'), BinOpExpr('-', IdentExpr('b'), IdentExpr('c'))), "a - (b - c)"),
    (BinOpExpr('-', BinOpExpr('-', IdentExpr('a'), IdentExpr('b')), IdentExpr('c')), "a - b - c"),
    (BinOpExpr('*', BinOpExpr('+', IdentExpr('a'), IdentExpr('b')), LitExpr(2)), "(a + b) * 2"),
    (BinOpExpr('+', IdentExpr('a'), BinOpExpr('*', IdentExpr('b'), LitExpr(2))), "a + b * 2"),
    (MemberExpr(BinOpExpr('+', IdentExpr('a'), IdentExpr('b')), 'c'), "(a + b).c"),
    (ItemExpr(MemberExpr(IdentExpr('a'), 'b'), LitExpr("k")), 'a.b["k"]'),
    (MethodCallExpr(IdentExpr('a'), 'm', (LitExpr(1), LitExpr(2.0))), "a.m(1, 2.0)"),
    (CallExpr('f', ()), "f()"),
    (ForExpr('x', '', IdentExpr('xs')), "for x in xs"),
    (ForExpr('i', 'x', IdentExpr('xs')), "for i, x in xs"),
], ids=["right-grouped", "left-chain", "low-precedence-lhs", "high-precedence-rhs",
        "member-of-binop", "item-of-member", "method-call", "empty-call", "for", "for-pair"])
def test_pformat(printer, expr, expected):
    assert printer.pformat(expr) == expected


def test_pformat_rejects_non_expressions(printer):
    with pytest.raises(TypeError):
        printer.pformat(object())


def test_overflowing_float_literal_prints_as_overflowing_literal(printer):
    ast = vex.compile("x * 1e999")
    assert ast.rhs == LitExpr(math.inf)
    assert printer.pformat(ast) == "x * 1e999"


@pytest.mark.parametrize("value", [-math.inf, math.nan], ids=["neg-inf", "nan"])
def test_unprintable_floats_are_rejected(printer, value):
    with pytest.raises(ValueError):
        printer.pformat(LitExpr(value))


@pytest.mark.parametrize("value, expected", [
    ("text", "text"),
    (True, "true"),
    (False, "false"),
    (None, "none"),
    (3, "3"),
    (1.5, "1.5"),
    (2.0, "2.0"),
    ([1, 2], "[1, 2]"),
])
def test_to_text(value, expected):
    assert to_text(value) == expected
