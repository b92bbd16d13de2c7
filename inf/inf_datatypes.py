"""
Defines the core data types for the Inf language runtime.

Every node of the syntax tree is an `Expression`, and the evaluated values
are drawn from the same closed set of variants: an evaluated function literal
is itself a value. This module also provides the scope stack the evaluator
threads through every recursive call, and the error classes it raises.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

U64_MAX = 2 ** 64 - 1


# =================================================================
# Errors
# =================================================================

class EvalError(Exception):
    """Base class for every failure raised while evaluating Inf code."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        # First syntax node carrying a source location seen while unwinding.
        self.node: Optional['Expression'] = None


class UnknownIdentifier(EvalError):
    def __init__(self, name: str):
        super().__init__(f"unknown identifier `{name}`")
        self.name = name


class TypeMismatch(EvalError):
    pass


class ArityMismatch(EvalError):
    pass


class NotCallable(EvalError):
    def __init__(self, message: str, value: 'Expression'):
        super().__init__(message)
        self.value = value


class IndexOutOfRange(EvalError):
    def __init__(self, index: int, length: int):
        super().__init__(
            f"list index {index} out of range for a list of length {length}"
        )
        self.index = index
        self.length = length


class IOFailure(EvalError):
    """Malformed integer text or a console I/O failure."""
    pass


class ArithmeticFault(EvalError):
    """Division by zero, or a result outside the unsigned 64-bit range."""
    pass


class ParseError(Exception):
    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.col = col


class ScopeError(RuntimeError):
    """Raised when the scope stack protocol is violated by the caller."""
    pass


# =================================================================
# Expressions
# =================================================================

class Expression:
    """Base class for all syntax nodes and runtime values."""
    _fields: Tuple[str, ...] = ()

    def __eq__(self, other: Any) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return all(getattr(self, f) == getattr(other, f) for f in self._fields)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        args = ", ".join(repr(getattr(self, f)) for f in self._fields)
        return f"{type(self).__name__}({args})"


class IntegerValue(Expression):
    _fields = ("value",)

    def __init__(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"IntegerValue requires an int, not {type(value).__name__}")
        if value < 0 or value > U64_MAX:
            raise ValueError(f"{value} is outside the unsigned 64-bit range")
        self.value = value


class StringValue(Expression):
    _fields = ("value",)

    def __init__(self, value: str):
        self.value = value


class BooleanValue(Expression):
    _fields = ("value",)

    def __init__(self, value: bool):
        self.value = bool(value)


class Null(Expression):
    """The absence-of-value sentinel. Use the `NULL` instance."""
    def __repr__(self) -> str:
        return "NULL"


class List(Expression):
    """A list literal before evaluation, and a list value after it."""
    _fields = ("items",)

    def __init__(self, items: Sequence[Expression]):
        self.items = list(items)


class Identifier(Expression):
    _fields = ("name",)

    def __init__(self, name: str):
        self.name = name


class LetBinding(Expression):
    _fields = ("name", "value")

    def __init__(self, name: str, value: Expression):
        self.name = name
        self.value = value


class IfExpression(Expression):
    _fields = ("condition", "then_branch", "else_branch")

    def __init__(self, condition: Expression, then_branch: 'Block', else_branch: 'Block'):
        self.condition = condition
        self.then_branch = then_branch
        self.else_branch = else_branch


class While(Expression):
    _fields = ("condition", "body")

    def __init__(self, condition: Expression, body: 'Block'):
        self.condition = condition
        self.body = body


class Block(Expression):
    """A braced sequence of expressions; its value is that of the last one."""
    _fields = ("expressions",)

    def __init__(self, expressions: Sequence[Expression]):
        self.expressions = list(expressions)


class Program(Expression):
    """The root of a whole-file parse."""
    _fields = ("expressions",)

    def __init__(self, expressions: Sequence[Expression]):
        self.expressions = list(expressions)


class Fn(Expression):
    """A user function of at most one parameter.

    `fn(a, b) { ... }` is represented as `Fn('a', Fn('b', Block(...)))`.
    A `Fn` without a parameter is a thunk. Functions carry no captured
    environment and have no structural equality.
    """
    def __init__(self, param: Optional[str], body: Expression):
        self.param = param
        self.body = body

    def __eq__(self, other: Any) -> bool:
        return NotImplemented

    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return f"Fn({self.param!r}, {self.body!r})"


class FnCall(Expression):
    """A call supplying at most one argument; `f(a, b)` nests as `FnCall(FnCall(f, a), b)`."""
    _fields = ("callee", "argument")

    def __init__(self, callee: Expression, argument: Optional[Expression] = None):
        self.callee = callee
        self.argument = argument


class BuiltInFn(Expression):
    """A native operation exposed as a value.

    `name` selects the operation in the built-in library, `arity` is the
    number of arguments still missing and `applied` holds the arguments
    collected so far by partial application.
    """
    def __init__(self, name: str, arity: int, applied: Tuple[Expression, ...] = ()):
        if arity < 0:
            raise ValueError("BuiltInFn arity cannot be negative.")
        self.name = name
        self.arity = arity
        self.applied = tuple(applied)

    def apply(self, argument: Expression) -> 'BuiltInFn':
        """Returns a new built-in with `argument` appended and one less arity."""
        if self.arity == 0:
            raise ValueError(f"built-in `{self.name}` takes no further arguments")
        return BuiltInFn(self.name, self.arity - 1, self.applied + (argument,))

    def __eq__(self, other: Any) -> bool:
        return NotImplemented

    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return f"<BuiltInFn {self.name} arity={self.arity} applied={len(self.applied)}>"


class EndOfProgram(Expression):
    """Returned once a Program has been evaluated. Use the `END_OF_PROGRAM` instance."""
    def __repr__(self) -> str:
        return "END_OF_PROGRAM"


NULL = Null()
END_OF_PROGRAM = EndOfProgram()

# Variants that evaluate to themselves.
SELF_EVALUATING = (IntegerValue, StringValue, BooleanValue, Null, Fn, BuiltInFn, EndOfProgram)


# =================================================================
# Scope Stack
# =================================================================

class ScopeStack:
    """An ordered stack of name-to-value frames.

    The bottom frame holds the built-in registry and is never popped. Lookups
    run from the top frame down; bindings made by `let` and by function
    calls land one level below the top, because every evaluation call
    pushes a fresh frame of its own before it binds anything.
    """
    def __init__(self, root_bindings: Optional[Dict[str, Expression]] = None):
        self._frames: list[Dict[str, Expression]] = [dict(root_bindings or {})]

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def frames(self) -> Tuple[Dict[str, Expression], ...]:
        """A read-only view of the frames, bottom first."""
        return tuple(self._frames)

    @property
    def root(self) -> Dict[str, Expression]:
        return self._frames[0]

    def enter(self):
        self._frames.append({})

    def exit(self):
        if len(self._frames) > 1:
            self._frames.pop()

    def resolve(self, name: str) -> Optional[Expression]:
        for frame in reversed(self._frames):
            if name in frame:
                return frame[name]
        return None

    def bind_outer(self, name: str, value: Expression):
        """Binds `name` in the frame directly below the top frame."""
        if len(self._frames) < 2:
            raise ScopeError(f"cannot bind `{name}`: no frame below the root frame is active")
        self._frames[-2][name] = value

    def rebind(self, name: str, value: Expression, floor: int = 0):
        """Overwrites the nearest existing binding below the top frame, else binds outer.

        Only frames at index `floor` and above are searched; a function call
        sets the floor so its body cannot reach into its callers' frames.
        """
        if len(self._frames) < 2:
            raise ScopeError(f"cannot bind `{name}`: no frame below the root frame is active")
        for frame in reversed(self._frames[floor:-1]):
            if name in frame:
                frame[name] = value
                return
        self._frames[-2][name] = value

    def __repr__(self) -> str:
        sizes = ", ".join(str(len(f)) for f in self._frames)
        return f"<ScopeStack depth={self.depth} frame_sizes=[{sizes}]>"
