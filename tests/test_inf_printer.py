import pytest
from inf.inf_printer import Printer, display, to_source
from inf.inf_datatypes import (
    IntegerValue, StringValue, BooleanValue, List, NULL, END_OF_PROGRAM,
    Identifier, LetBinding, IfExpression, While, Block, Program,
    Fn, FnCall, BuiltInFn, U64_MAX
)


@pytest.fixture
def printer():
    return Printer(indent_width=2)

# Test cases: (id, object, expected_string)
DISPLAY_TEST_CASES = [
    ("int", IntegerValue(123), "123"),
    ("int_max", IntegerValue(U64_MAX), "18446744073709551615"),
    ("string", StringValue("hello"), '"hello"'),
    ("empty_string", StringValue(""), '""'),
    ("bool_true", BooleanValue(True), "true"),
    ("bool_false", BooleanValue(False), "false"),
    ("null", NULL, "null"),
    ("empty_list", List([]), "[]"),
    ("nested_list", List([IntegerValue(1), List([StringValue("a"), NULL])]), '[1, ["a", null]]'),
    ("fn", Fn('x', Block([Identifier('x')])), "<fn>"),
    ("builtin", BuiltInFn('+', 2), "<builtin>"),
    ("partial_builtin", BuiltInFn('+', 1, (IntegerValue(1),)), "<builtin>"),
    ("end_of_program", END_OF_PROGRAM, "<end of program>"),
]

@pytest.mark.parametrize("case_id, obj, expected", DISPLAY_TEST_CASES, ids=[c[0] for c in DISPLAY_TEST_CASES])
def test_display(printer, case_id, obj, expected):
    assert printer.pformat(obj) == expected
    assert display(obj) == expected


SOURCE_TEST_CASES = [
    ("identifier", Identifier('x'), "x"),
    ("let", LetBinding('x', IntegerValue(1)), "let x = 1"),
    ("call_no_arg", FnCall(Identifier('f')), "f()"),
    ("call_one_arg", FnCall(Identifier('inc'), IntegerValue(1)), "inc(1)"),
    (
        "curried_call_collapses",
        FnCall(FnCall(Identifier('+'), IntegerValue(2)), IntegerValue(3)),
        "+(2, 3)"
    ),
    (
        "call_result_called",
        FnCall(FnCall(Identifier('make')), IntegerValue(1)),
        "make()(1)"
    ),
    ("thunk", Fn(None, Block([IntegerValue(42)])), "fn() { 42 }"),
    (
        "curried_fn_folds",
        Fn('a', Fn('b', Block([FnCall(FnCall(Identifier('+'), Identifier('a')), Identifier('b'))]))),
        "fn(a, b) { +(a, b) }"
    ),
    (
        "if_else",
        IfExpression(Identifier('c'), Block([IntegerValue(1)]), Block([NULL])),
        "if c { 1 } else { null }"
    ),
    (
        "while",
        While(BooleanValue(True), Block([Identifier('x')])),
        "while true { x }"
    ),
    (
        "multi_line_block",
        Block([LetBinding('x', IntegerValue(1)), Identifier('x')]),
        "{\n  let x = 1;\n  x;\n}"
    ),
    (
        "program",
        Program([LetBinding('x', IntegerValue(2)), Identifier('x')]),
        "let x = 2;\nx;"
    ),
    ("empty_block", Block([]), "{}"),
]

@pytest.mark.parametrize("case_id, obj, expected", SOURCE_TEST_CASES, ids=[c[0] for c in SOURCE_TEST_CASES])
def test_to_source(case_id, obj, expected):
    assert to_source(obj) == expected


def test_nested_block_indentation():
    inner = Block([LetBinding('y', IntegerValue(2)), Identifier('y')])
    outer = Block([LetBinding('x', IntegerValue(1)), inner])
    assert to_source(outer) == "{\n  let x = 1;\n  {\n    let y = 2;\n    y;\n  };\n}"


def test_display_hides_function_bodies_inside_syntax(printer):
    node = LetBinding('f', Fn('x', Block([Identifier('x')])))
    assert printer.pformat(node) == "let f = <fn>"
    assert to_source(node) == "let f = fn(x) { x }"


def test_unknown_object_falls_back_to_repr(printer):
    assert printer.pformat(3.5) == "3.5"
