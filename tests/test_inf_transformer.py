import pytest

from inf.inf_runtime import ScriptRunner
from inf.inf_printer import to_source
from inf.inf_datatypes import (
    Expression, IntegerValue, StringValue, BooleanValue, List, NULL,
    Identifier, LetBinding, IfExpression, While, Block, Program,
    Fn, FnCall, ParseError, U64_MAX
)

# --- Fixtures ---

@pytest.fixture(scope="module")
def runner():
    """A ScriptRunner, used here only for its parser and transformer."""
    return ScriptRunner()

# --- Comparison Helper ---

def compare_asts(actual, expected):
    """Recursively compares two transformed ASTs, including function literals."""
    assert type(actual) == type(expected), f"Type mismatch: {type(actual)} vs {type(expected)}"

    if isinstance(actual, (str, int, bool, type(None))):
        assert actual == expected
    elif isinstance(actual, list):
        assert len(actual) == len(expected), "Sequence length mismatch"
        for a, e in zip(actual, expected):
            compare_asts(a, e)
    elif isinstance(actual, Fn):
        assert actual.param == expected.param
        compare_asts(actual.body, expected.body)
    elif isinstance(actual, Expression):
        for field in actual._fields:
            compare_asts(getattr(actual, field), getattr(expected, field))
    else:
        pytest.fail(f"Cannot compare unknown type: {type(actual)}")


def I(n):
    return IntegerValue(n)


def ident(name):
    return Identifier(name)


def call(callee, *args):
    node = ident(callee) if isinstance(callee, str) else callee
    for arg in args:
        node = FnCall(node, arg)
    return node

# --- Test Cases ---

TRANSFORMER_TEST_CASES = [
    (
        "literals",
        '1 "text" true false null',
        Program([I(1), StringValue("text"), BooleanValue(True), BooleanValue(False), NULL])
    ),
    (
        "string_without_escapes",
        r'"a\n"',
        Program([StringValue("a\\n")])
    ),
    (
        "largest_integer",
        str(U64_MAX),
        Program([I(U64_MAX)])
    ),
    (
        "let_binding",
        "let x = 5;",
        Program([LetBinding('x', I(5))])
    ),
    (
        "symbolic_identifiers",
        "let ok? = is-done!; %",
        Program([LetBinding('ok?', ident('is-done!')), ident('%')])
    ),
    (
        "keyword_prefixed_identifier",
        "letter iffy fnord",
        Program([ident('letter'), ident('iffy'), ident('fnord')])
    ),
    (
        "call_with_two_arguments_curries",
        "+(2, 3)",
        Program([call('+', I(2), I(3))])
    ),
    (
        "call_without_argument",
        "f()",
        Program([FnCall(ident('f'), None)])
    ),
    (
        "chained_calls",
        "f(1)(2)",
        Program([call('f', I(1), I(2))])
    ),
    (
        "call_on_call_without_argument",
        "make()(1)",
        Program([FnCall(FnCall(ident('make'), None), I(1))])
    ),
    (
        "function_with_two_parameters",
        "fn(a, b) { +(a, b) }",
        Program([Fn('a', Fn('b', Block([call('+', ident('a'), ident('b'))])))])
    ),
    (
        "thunk",
        "fn() { 1 }",
        Program([Fn(None, Block([I(1)]))])
    ),
    (
        "if_without_else",
        "if c { 1 }",
        Program([IfExpression(ident('c'), Block([I(1)]), Block([NULL]))])
    ),
    (
        "else_if_chain",
        "if a { 1 } else if b { 2 } else { 3 }",
        Program([IfExpression(
            ident('a'), Block([I(1)]),
            Block([IfExpression(ident('b'), Block([I(2)]), Block([I(3)]))])
        )])
    ),
    (
        "while_loop",
        "while <(i, 5) { let i = inc(i); }",
        Program([While(call('<', ident('i'), I(5)), Block([LetBinding('i', call('inc', ident('i')))]))])
    ),
    (
        "lists",
        "[] [1, [2], ]",
        Program([List([]), List([I(1), List([I(2)])])])
    ),
    (
        "blocks",
        "{ 1; 2 } {}",
        Program([Block([I(1), I(2)]), Block([])])
    ),
    (
        "semicolons_and_comments",
        ";; # leading comment\n1;; # trailing\n;2;",
        Program([I(1), I(2)])
    ),
    (
        "empty_program",
        "  # nothing here\n",
        Program([])
    ),
]

@pytest.mark.parametrize("case_id, source, expected", TRANSFORMER_TEST_CASES, ids=[c[0] for c in TRANSFORMER_TEST_CASES])
def test_transformer(runner, case_id, source, expected):
    compare_asts(runner.parse(source), expected)


def test_expression_start_symbol(runner):
    compare_asts(runner.parse("let x = 1", start="expression"), LetBinding('x', I(1)))
    compare_asts(runner.parse(";+(1, 2);", start="expression"), call('+', I(1), I(2)))


def test_expression_start_rejects_two_expressions(runner):
    with pytest.raises(ParseError):
        runner.parse("1 2", start="expression")


def test_nodes_carry_source_locations(runner):
    program = runner.parse("let a = 1;\n  foo(a)")
    let_node, call_node = program.expressions
    assert let_node.loc == {'line': 1, 'col': 1}
    assert call_node.loc == {'line': 2, 'col': 3}
    assert call_node.callee.loc == {'line': 2, 'col': 3}
    assert call_node.argument.loc == {'line': 2, 'col': 7}

# --- Parse Errors ---

@pytest.mark.parametrize("source, line, col", [
    ("let = 5", 1, 5),
    ("let x = 1;\nlet = 2;", 2, 5),
    ("@", 1, 1),
    ("12abc", 1, 1),
])
def test_parse_error_location(runner, source, line, col):
    with pytest.raises(ParseError) as e:
        runner.parse(source)
    assert (e.value.line, e.value.col) == (line, col)


@pytest.mark.parametrize("source", [
    "f(1",
    '"unterminated',
    "let let = 1",
    "if c",
    "fn(1) { 1 }",
])
def test_parse_errors(runner, source):
    with pytest.raises(ParseError):
        runner.parse(source)


def test_integer_literal_above_u64_is_parse_error(runner):
    with pytest.raises(ParseError) as e:
        runner.parse("let big = " + str(U64_MAX + 1))
    assert "64 bits" in str(e.value)
    assert e.value.line == 1

# --- Round Trip ---

ROUND_TRIP_SOURCES = [
    '1; "two"; true; false; null',
    '[1, ["a", null], []]',
    "let x = 2; let y = 3; +(x, y);",
    "let i = 0; while <(i, 5) { let i = inc(i); print_line(i) }; i",
    "if eq(a, 1) { \"one\" } else if eq(a, 2) { \"two\" } else { \"many\" }",
    "let add = fn(a, b) { +(a, b) }; add(1)(2); add(3, 4)",
    "let t = fn() { 42 }; t()",
    "{ let nested = { 1; 2 }; nested }",
]

@pytest.mark.parametrize("source", ROUND_TRIP_SOURCES)
def test_parse_render_parse_round_trip(runner, source):
    first = runner.parse(source)
    second = runner.parse(to_source(first))
    compare_asts(second, first)
