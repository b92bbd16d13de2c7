"""
A pretty-printer for Inf expressions.

Values print in their display form (the form the REPL and `print` use) and
syntax nodes print as Inf source that parses back to an equal tree.
"""

from inf.inf_datatypes import (
    Expression, IntegerValue, StringValue, BooleanValue, Null, List,
    Identifier, LetBinding, IfExpression, While, Block, Program,
    Fn, FnCall, BuiltInFn, EndOfProgram
)


class Printer:
    """Formats Inf objects into display strings or valid Inf source."""

    def __init__(self, indent_width=2, function_source=False):
        self._indent_char = " " * indent_width
        # Function values display as an opaque token unless source is requested.
        self.function_source = function_source
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            IntegerValue: self._pformat_integer,
            StringValue: self._pformat_string,
            BooleanValue: self._pformat_bool,
            Null: self._pformat_null,
            List: self._pformat_list,
            Identifier: self._pformat_identifier,
            LetBinding: self._pformat_let,
            IfExpression: self._pformat_if,
            While: self._pformat_while,
            Block: self._pformat_block,
            Program: self._pformat_program,
            Fn: self._pformat_fn,
            FnCall: self._pformat_call,
            BuiltInFn: self._pformat_builtin,
            EndOfProgram: self._pformat_end_of_program,
        }

    # --- Values ---

    def _pformat_integer(self, obj, level):
        return str(obj.value)

    def _pformat_string(self, obj, level):
        # String literals have no escape sequences.
        return f'"{obj.value}"'

    def _pformat_bool(self, obj, level):
        return 'true' if obj.value else 'false'

    def _pformat_null(self, obj, level):
        return 'null'

    def _pformat_list(self, obj, level):
        return "[" + ", ".join(self.pformat(item, level) for item in obj.items) + "]"

    def _pformat_builtin(self, obj, level):
        return '<builtin>'

    def _pformat_end_of_program(self, obj, level):
        return '<end of program>'

    # --- Syntax ---

    def _pformat_identifier(self, obj, level):
        return obj.name

    def _pformat_let(self, obj, level):
        return f"let {obj.name} = {self.pformat(obj.value, level)}"

    def _pformat_if(self, obj, level):
        cond = self.pformat(obj.condition, level)
        then = self.pformat(obj.then_branch, level)
        other = self.pformat(obj.else_branch, level)
        return f"if {cond} {then} else {other}"

    def _pformat_while(self, obj, level):
        return f"while {self.pformat(obj.condition, level)} {self.pformat(obj.body, level)}"

    def _pformat_block(self, obj, level):
        if not obj.expressions:
            return "{}"
        if len(obj.expressions) == 1:
            inner = self.pformat(obj.expressions[0], level + 1)
            if '\n' not in inner:
                return f"{{ {inner} }}"
        indent = self._indent_char * (level + 1)
        lines = [f"{indent}{self.pformat(e, level + 1)};" for e in obj.expressions]
        closing = self._indent_char * level
        return "{\n" + "\n".join(lines) + f"\n{closing}}}"

    def _pformat_program(self, obj, level):
        return "\n".join(f"{self.pformat(e, level)};" for e in obj.expressions)

    def _pformat_fn(self, obj, level):
        if not self.function_source:
            return '<fn>'
        # Fold curried parameters back into one parameter list.
        params = []
        body = obj
        while isinstance(body, Fn) and body.param is not None:
            params.append(body.param)
            body = body.body
        if isinstance(body, Fn) and not params:
            body = body.body
        head = f"fn({', '.join(params)})"
        if isinstance(body, Block):
            return f"{head} {self.pformat(body, level)}"
        return f"{head} {{ {self.pformat(body, level + 1)} }}"

    def _pformat_call(self, obj, level):
        if obj.argument is None:
            return f"{self.pformat(obj.callee, level)}()"
        # Collapse f(a)(b) into f(a, b); an argument-less call ends the run.
        args = []
        callee = obj
        while isinstance(callee, FnCall) and callee.argument is not None:
            args.append(callee.argument)
            callee = callee.callee
        args.reverse()
        rendered = ", ".join(self.pformat(a, level) for a in args)
        return f"{self.pformat(callee, level)}({rendered})"


_display_printer = Printer()


def display(value: Expression) -> str:
    """Returns the display form of a value, as shown by the REPL."""
    return _display_printer.pformat(value)


def to_source(node: Expression) -> str:
    """Renders a syntax tree as Inf source, spelling out function literals."""
    return Printer(function_source=True).pformat(node)
