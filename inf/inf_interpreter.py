"""
The core Inf interpreter: a recursive evaluator over the expression tree.
"""
import os
import sys
from typing import Any, List, Optional

from inf.inf_datatypes import (
    Expression, BooleanValue, List as InfList, NULL, END_OF_PROGRAM,
    Identifier, LetBinding, IfExpression, While, Block, Program,
    Fn, FnCall, BuiltInFn, SELF_EVALUATING, ScopeStack,
    EvalError, UnknownIdentifier, TypeMismatch, ArityMismatch, NotCallable
)
from inf.inf_printer import display, to_source


class Evaluator:
    """The Inf execution engine."""

    def __init__(self, stdlib=None):
        if stdlib is None:
            from inf.inf_runtime import StdLib
            stdlib = StdLib()
        self.stdlib = stdlib
        self.call_stack: List[dict] = []
        # Lowest frame index a `let` may rebind into; one entry per active user call.
        self.let_floors: List[int] = []
        # Value of the most recent top-level expression of a Program.
        self.last_value: Optional[Expression] = None
        self.debug = bool(os.environ.get("INF_DEBUG"))
        max_iters = os.environ.get("INF_MAX_LOOP_ITERS")
        self.max_loop_iters: Optional[int] = int(max_iters) if max_iters else None

    def _push_frame(self, name, func, arg, call_site_node):
        loc = getattr(call_site_node, 'loc', None)
        self.call_stack.append({
            'name': name,
            'func': func,
            'arg': arg,
            'call_site': loc,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if self.debug:
            print("[DBG]", *parts, file=sys.stderr)

    def eval(self, node: Expression, scope: ScopeStack) -> Expression:
        """Evaluates `node` inside a fresh frame, popped again on every exit path."""
        scope.enter()
        try:
            return self._eval(node, scope)
        except EvalError as e:
            if e.node is None and getattr(node, 'loc', None):
                e.node = node
            raise
        finally:
            scope.exit()

    def _eval(self, node: Expression, scope: ScopeStack) -> Expression:
        """Recursive dispatcher for evaluating any expression."""
        match node:
            case Identifier(name=name):
                value = scope.resolve(name)
                if value is None:
                    raise UnknownIdentifier(name)
                return value

            case Block(expressions=expressions):
                result = NULL
                for expr in expressions:
                    result = self.eval(expr, scope)
                return result

            case InfList(items=items):
                return InfList([self.eval(item, scope) for item in items])

            case LetBinding(name=name, value=value_node):
                value = self.eval(value_node, scope)
                if self.debug:
                    self._dbg("let", name, "=", display(value), "depth", scope.depth)
                scope.rebind(name, value, self.let_floors[-1] if self.let_floors else 0)
                return value

            case IfExpression():
                cond = self._eval_condition(node.condition, scope, "if")
                branch = node.then_branch if cond else node.else_branch
                return self.eval(branch, scope)

            case While():
                return self._eval_while(node, scope)

            case FnCall(callee=callee_node, argument=arg_node):
                func = self.eval(callee_node, scope)
                return self.call(func, arg_node, scope, call_site_node=node)

            case Program(expressions=expressions):
                for expr in expressions:
                    self.last_value = self.eval(expr, scope)
                return END_OF_PROGRAM

            case _ if isinstance(node, SELF_EVALUATING):
                return node

            case _:
                raise TypeError(f"cannot evaluate {node!r}")

    def _eval_condition(self, cond_node: Expression, scope: ScopeStack, construct: str) -> bool:
        cond = self.eval(cond_node, scope)
        if not isinstance(cond, BooleanValue):
            raise TypeMismatch(f"{construct}: condition must be a boolean, got {display(cond)}")
        return cond.value

    def _eval_while(self, node: While, scope: ScopeStack) -> Expression:
        last = NULL
        iter_count = 0
        while self._eval_condition(node.condition, scope, "while"):
            # Optional safety cap against runaway loops, configured via env.
            if self.max_loop_iters is not None and iter_count >= self.max_loop_iters:
                raise EvalError("while: iteration limit exceeded")
            last = self.eval(node.body, scope)
            iter_count += 1
        return last

    def call(self, func: Any, arg_node: Optional[Expression], scope: ScopeStack,
             call_site_node: Optional[Expression] = None) -> Expression:
        """Applies a function value to at most one (unevaluated) argument.

        Must run inside the frame pushed for the call expression itself:
        arguments are bound one level below that frame.
        """
        match func:
            case Fn():
                return self._call_fn(func, arg_node, scope, call_site_node)
            case BuiltInFn():
                return self._call_builtin(func, arg_node, scope, call_site_node)
            case _:
                raise NotCallable(f"{display(func)} is not callable", func)

    def _call_fn(self, func: Fn, arg_node, scope, call_site_node):
        name = self._callee_name(call_site_node)
        if func.param is None and arg_node is not None:
            raise ArityMismatch(f"{name} takes no argument, but one was given")
        if func.param is not None and arg_node is None:
            raise ArityMismatch(f"{name} expects an argument for `{func.param}`")

        arg = None
        if arg_node is not None:
            arg = self.eval(arg_node, scope)
            scope.bind_outer(func.param, arg)

        if self.debug:
            self._dbg("call", name, display(arg) if arg is not None else "()")
        self._push_frame(name, func, arg, call_site_node)
        self.let_floors.append(scope.depth)
        try:
            result = self.eval(func.body, scope)
        finally:
            self.let_floors.pop()
        self._pop_frame()
        return result

    def _call_builtin(self, func: BuiltInFn, arg_node, scope, call_site_node):
        if func.arity == 0:
            # Any argument is ignored.
            return self._invoke(func, call_site_node)
        if arg_node is None:
            raise ArityMismatch(f"{func.name} expects an argument")

        applied = func.apply(self.eval(arg_node, scope))
        if applied.arity == 0:
            return self._invoke(applied, call_site_node)
        return applied

    def _invoke(self, func: BuiltInFn, call_site_node):
        if self.debug:
            self._dbg("builtin", func.name, *(display(a) for a in func.applied))
        self._push_frame(func.name, func, list(func.applied), call_site_node)
        result = self.stdlib.invoke(func)
        self._pop_frame()
        return result

    def _callee_name(self, call_site_node) -> str:
        node = call_site_node
        while isinstance(node, FnCall):
            node = node.callee
        if isinstance(node, Identifier):
            return node.name
        if node is None:
            return "<fn>"
        return to_source(node)
