# inf_runtime.py

import re
import sys
import math
import inspect
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from lark import Lark
from lark.exceptions import UnexpectedInput, VisitError

from inf.inf_transformer import InfTransformer
from inf.inf_interpreter import Evaluator
from inf.inf_datatypes import (
    Expression, IntegerValue, StringValue, BooleanValue, List as InfList,
    Fn, BuiltInFn, NULL, U64_MAX, ScopeStack,
    EvalError, TypeMismatch, IndexOutOfRange, IOFailure, ArithmeticFault, ParseError
)
from inf.inf_printer import display

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "inf_grammar.lark"

_INTEGER_TEXT = re.compile(r"\+?[0-9]+")

# Innermost call frames shown in an error's stacktrace.
MAX_TRACE_FRAMES = 20


# ===================================================================
# 1. Value helpers
# ===================================================================

def _expect(value: Expression, kind: type, what: str, op: str):
    if not isinstance(value, kind):
        raise TypeMismatch(f"{op}: expected {what}, got {display(value)}")
    return value.value if hasattr(value, 'value') else value


def _u64(result: int, op: str) -> IntegerValue:
    if result < 0 or result > U64_MAX:
        raise ArithmeticFault(f"{op}: result {result} is outside the unsigned 64-bit range")
    return IntegerValue(result)


def values_equal(a: Expression, b: Expression) -> bool:
    """Structural equality as seen by `eq`; functions never compare equal."""
    if isinstance(a, (Fn, BuiltInFn)) or isinstance(b, (Fn, BuiltInFn)):
        return False
    if type(a) is not type(b):
        return False
    if isinstance(a, InfList):
        return len(a.items) == len(b.items) and all(
            values_equal(x, y) for x, y in zip(a.items, b.items)
        )
    return a == b


# ===================================================================
# 2. The Standard Library
# ===================================================================

class StdLib:
    """Contains Python implementations for all Inf built-ins.

    Every method named `_name` is exposed as the built-in `name` (or as the
    operator listed in `OPERATORS`); its arity is the method's parameter count.
    """

    OPERATORS = {
        'add': '+',
        'sub': '-',
        'mul': '*',
        'div': '/',
        'lt': '<',
        'gt': '>',
    }

    def __init__(self, stdin=None, stdout=None):
        # None means "the process streams at call time".
        self.stdin = stdin
        self.stdout = stdout
        self._methods = {name: op for op, name in self.OPERATORS.items()}

    @classmethod
    def registry(cls) -> Dict[str, BuiltInFn]:
        """Builds the name -> BuiltInFn mapping installed in the root frame."""
        builtins: Dict[str, BuiltInFn] = {}
        for name, member in inspect.getmembers(cls, inspect.isfunction):
            if name.startswith('_') and not name.startswith('__'):
                op = name[1:]
                arity = len(inspect.signature(member).parameters) - 1
                inf_name = cls.OPERATORS.get(op, op)
                builtins[inf_name] = BuiltInFn(inf_name, arity)
        return builtins

    def invoke(self, func: BuiltInFn) -> Expression:
        """Runs a fully applied built-in against its collected arguments."""
        method = getattr(self, '_' + self._methods.get(func.name, func.name), None)
        if method is None:
            raise EvalError(f"unknown built-in `{func.name}`")
        return method(*func.applied)

    # --- Math and Logic ---
    def _add(self, a, b):
        return _u64(_expect(a, IntegerValue, "integer", "+") + _expect(b, IntegerValue, "integer", "+"), "+")

    def _sub(self, a, b):
        return _u64(_expect(a, IntegerValue, "integer", "-") - _expect(b, IntegerValue, "integer", "-"), "-")

    def _mul(self, a, b):
        return _u64(_expect(a, IntegerValue, "integer", "*") * _expect(b, IntegerValue, "integer", "*"), "*")

    def _div(self, a, b):
        x = _expect(a, IntegerValue, "integer", "/")
        y = _expect(b, IntegerValue, "integer", "/")
        if y == 0:
            raise ArithmeticFault("/: division by zero")
        return IntegerValue(x // y)

    def _mod(self, a, b):
        x = _expect(a, IntegerValue, "integer", "mod")
        y = _expect(b, IntegerValue, "integer", "mod")
        if y == 0:
            raise ArithmeticFault("mod: division by zero")
        return IntegerValue(x % y)

    def _inc(self, a):
        return _u64(_expect(a, IntegerValue, "integer", "inc") + 1, "inc")

    def _sqrt(self, a):
        return IntegerValue(math.isqrt(_expect(a, IntegerValue, "integer", "sqrt")))

    def _lt(self, a, b):
        return BooleanValue(_expect(a, IntegerValue, "integer", "<") < _expect(b, IntegerValue, "integer", "<"))

    def _gt(self, a, b):
        return BooleanValue(_expect(a, IntegerValue, "integer", ">") > _expect(b, IntegerValue, "integer", ">"))

    def _eq(self, a, b):
        return BooleanValue(values_equal(a, b))

    def _not(self, x):
        return BooleanValue(not _expect(x, BooleanValue, "boolean", "not"))

    # --- Strings ---
    def _join_str(self, a, b):
        return StringValue(_expect(a, StringValue, "string", "join_str") + _expect(b, StringValue, "string", "join_str"))

    def _str_to_int(self, s):
        text = _expect(s, StringValue, "string", "str_to_int")
        if not _INTEGER_TEXT.fullmatch(text):
            raise IOFailure(f"str_to_int: invalid digit in {display(s)}")
        number = int(text)
        if number > U64_MAX:
            raise IOFailure(f"str_to_int: {display(s)} is too large for an unsigned 64-bit integer")
        return IntegerValue(number)

    # --- Console ---
    def _get_input_line(self):
        stream = self.stdin if self.stdin is not None else sys.stdin
        try:
            line = stream.readline()
        except (OSError, ValueError) as e:
            raise IOFailure(f"get_input_line: {e}") from e
        if line.endswith('\n'):
            line = line[:-1]
            if line.endswith('\r'):
                line = line[:-1]
        return StringValue(line)

    def write(self, text: str):
        stream = self.stdout if self.stdout is not None else sys.stdout
        try:
            stream.write(text)
            stream.flush()
        except (OSError, ValueError) as e:
            raise IOFailure(f"print: {e}") from e

    def _print(self, value):
        self.write(value.value if isinstance(value, StringValue) else display(value))
        return NULL

    def _print_line(self, value):
        self.write((value.value if isinstance(value, StringValue) else display(value)) + "\n")
        return NULL

    # --- Lists ---
    def _list_len(self, lst):
        return IntegerValue(len(_expect(lst, InfList, "list", "list_len").items))

    def _list_nth(self, index, lst):
        n = _expect(index, IntegerValue, "integer", "list_nth")
        items = _expect(lst, InfList, "list", "list_nth").items
        if n >= len(items):
            raise IndexOutOfRange(n, len(items))
        return items[n]

    def _list_push(self, lst, element):
        items = _expect(lst, InfList, "list", "list_push").items
        return InfList(items + [element])


# ===================================================================
# 3. Front-end entry points
# ===================================================================

def new_context() -> ScopeStack:
    """Creates a scope stack whose root frame holds the built-in registry."""
    return ScopeStack(StdLib.registry())


def evaluate(root: Expression, context: ScopeStack, evaluator: Optional[Evaluator] = None) -> Expression:
    """Evaluates a Program or a single expression against `context`."""
    if evaluator is None:
        evaluator = Evaluator()
    return evaluator.eval(root, context)


# ===================================================================
# 4. Script Execution
# ===================================================================

Token = Dict[str, Any]


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Parses, transforms, and executes Inf code against one persistent context."""

    _parser: Optional[Lark] = None
    _transformer: Optional[InfTransformer] = None

    def __init__(self, stdin=None, stdout=None):
        if ScriptRunner._parser is None:
            ScriptRunner._parser = Lark.open(
                str(GRAMMAR_PATH),
                parser="lalr",
                lexer="basic",
                start=["program", "expression"],
                propagate_positions=True,
            )
        if ScriptRunner._transformer is None:
            ScriptRunner._transformer = InfTransformer()

        self.parser = ScriptRunner._parser
        self.transformer = ScriptRunner._transformer
        self.stdlib = StdLib(stdin=stdin, stdout=stdout)
        self.evaluator = Evaluator(self.stdlib)
        self.context = new_context()

    def parse(self, source: str, start: str = "program") -> Expression:
        """Parses source into an expression tree, raising ParseError on bad input."""
        try:
            tree = self.parser.parse(source, start=start)
        except UnexpectedInput as e:
            line = e.line if isinstance(e.line, int) and e.line > 0 else None
            col = e.column if isinstance(e.column, int) and e.column > 0 else None
            raise ParseError(self._describe_unexpected(e), line, col) from e
        try:
            return self.transformer.transform(tree)
        except VisitError as e:
            if isinstance(e.orig_exc, ParseError):
                raise e.orig_exc from e
            raise

    def _describe_unexpected(self, e: UnexpectedInput) -> str:
        token = getattr(e, 'token', None)
        if token is not None:
            if token.type in ('$END', '<EOF>'):
                return "unexpected end of input"
            return f"unexpected `{token}`"
        char = getattr(e, 'char', None)
        if char is not None:
            return f"unexpected character `{char}`"
        return "unexpected end of input"

    def handle_script(self, source_code: str) -> ExecutionResult:
        """Runs a whole program. A successful run's value is EndOfProgram."""
        return self._run(source_code, "program")

    def handle_line(self, source_code: str) -> ExecutionResult:
        """Runs one REPL line, parsed as a single expression."""
        return self._run(source_code, "expression")

    def _run(self, source_code: str, start: str) -> ExecutionResult:
        self.evaluator.call_stack.clear()
        self.evaluator.let_floors.clear()
        try:
            node = self.parse(source_code, start)
        except ParseError as e:
            msg = self._format_parse_error(e, source_code)
            return ExecutionResult(
                status='error',
                error_message=msg,
                error_token={'line': e.line, 'col': e.col} if e.line is not None else None,
            )

        try:
            result = self.evaluator.eval(node, self.context)
        except Exception as e:
            # Host recursion exhaustion can interrupt frame cleanup itself.
            while self.context.depth > 1:
                self.context.exit()
            err_msg, err_token = self._format_runtime_error(e, source_code)
            return ExecutionResult(status='error', error_message=err_msg, error_token=err_token)

        return ExecutionResult(status='success', value=result)

    def _format_parse_error(self, e: ParseError, source: str) -> str:
        if e.line is not None and e.col is not None:
            return f"ParseError: {e} (line {e.line}, col {e.col})\n{self._source_context(source, e.line, e.col)}"
        return f"ParseError: {e}"

    def _format_runtime_error(self, e: Exception, source: str) -> tuple[str, Optional[dict]]:
        match e:
            case EvalError():
                msg = f"{type(e).__name__}: {e}"
            case RecursionError():
                msg = "RecursionError: maximum recursion depth exceeded"
            case _:
                msg = f"InternalError: {e}"

        token = None
        loc = getattr(getattr(e, 'node', None), 'loc', None)
        if isinstance(loc, dict):
            line = loc.get('line')
            col = loc.get('col')
            token = {'line': line, 'col': col}
            if line is not None and col is not None:
                msg = f"{msg}\n(line {line}, col {col})\n{self._source_context(source, line, col)}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            out.append(f"{prefix} {ln} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""

        def fmt(arg):
            if isinstance(arg, InfList):
                return f"#[{len(arg.items)}]"
            return display(arg)

        frames = []
        if len(stack) > MAX_TRACE_FRAMES:
            frames.append("...")
            stack = stack[-MAX_TRACE_FRAMES:]
        for frame in stack:
            name = frame.get('name') or '<call>'
            arg = frame.get('arg')
            args = arg if isinstance(arg, list) else ([] if arg is None else [arg])
            args_s = " ".join(fmt(a) for a in args)
            frames.append(f"({name} {args_s})" if args_s else f"({name})")
        return "Inf stacktrace: " + " ".join(frames)
