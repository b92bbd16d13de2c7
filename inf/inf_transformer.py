"""
Transforms the raw lark parse tree into Inf expressions from inf_datatypes.
"""

from lark import Transformer, v_args

from inf.inf_datatypes import (
    IntegerValue, StringValue, BooleanValue, List, NULL,
    Identifier, LetBinding, IfExpression, While, Block, Program,
    Fn, FnCall, ParseError, U64_MAX
)


def _attach_loc(obj, meta):
    line = getattr(meta, 'line', None)
    col = getattr(meta, 'column', None)
    if line is not None and col is not None:
        obj.loc = {'line': line, 'col': col}
    return obj


@v_args(inline=True)
class InfTransformer(Transformer):
    """Builds the expression tree bottom-up from the `inf_grammar.lark` rules."""

    # --- Structural containers ---

    def program(self, *exprs):
        return Program(list(exprs))

    def expression(self, expr):
        return expr

    def block(self, *exprs):
        return Block(list(exprs))

    def items(self, *exprs):
        return list(exprs)

    def arguments(self, *exprs):
        return list(exprs)

    def parameters(self, *names):
        return [str(n) for n in names]

    # --- Atomics ---

    @v_args(meta=True, inline=True)
    def integer(self, meta, token):
        value = int(token)
        if value > U64_MAX:
            raise ParseError(
                f"integer literal {token} does not fit in 64 bits",
                getattr(meta, 'line', None), getattr(meta, 'column', None)
            )
        return IntegerValue(value)

    def string(self, token):
        return StringValue(str(token)[1:-1])

    def true(self):
        return BooleanValue(True)

    def false(self):
        return BooleanValue(False)

    def null(self):
        return NULL

    @v_args(meta=True, inline=True)
    def identifier(self, meta, token):
        return _attach_loc(Identifier(str(token)), meta)

    def list(self, items):
        return List(items or [])

    # --- Bindings and control flow ---

    @v_args(meta=True, inline=True)
    def let_binding(self, meta, name, value):
        return _attach_loc(LetBinding(str(name), value), meta)

    @v_args(meta=True, inline=True)
    def if_expr(self, meta, condition, then_branch, else_branch):
        if else_branch is None:
            else_branch = Block([NULL])
        elif not isinstance(else_branch, Block):
            # `else if ...` chains nest the inner if inside its own block.
            else_branch = Block([else_branch])
        return _attach_loc(IfExpression(condition, then_branch, else_branch), meta)

    @v_args(meta=True, inline=True)
    def while_loop(self, meta, condition, body):
        return _attach_loc(While(condition, body), meta)

    # --- Functions ---

    def fn(self, params, body):
        # fn(a, b) { ... } curries into Fn(a, Fn(b, { ... })).
        if not params:
            return Fn(None, body)
        for name in reversed(params):
            body = Fn(name, body)
        return body

    @v_args(meta=True, inline=True)
    def fn_call(self, meta, callee, args):
        if args is None:
            return _attach_loc(FnCall(callee, None), meta)
        call = callee
        for arg in args:
            call = _attach_loc(FnCall(call, arg), meta)
        return call
