"""
Defines the core data types for the VEX expression language.

This module provides the immutable expression nodes produced by the
parser, the wrapper types a host uses to hand values to the evaluator,
and the exception hierarchy raised during compilation and evaluation.
"""

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple, Optional, Tuple


# =================================================================
# Errors
# =================================================================

class VexError(Exception):
    """Base class for every error raised while compiling or evaluating VEX."""
    def __init__(self, message: str, node: Optional['Expr'] = None):
        super().__init__(message)
        self.node = node


class VexSyntaxError(VexError):
    """Malformed source text. Raised by `VM.compile`."""
    def __init__(self, message: str, source: str = "", line: Optional[int] = None,
                 col: Optional[int] = None, expected: Tuple[str, ...] = ()):
        super().__init__(message)
        self.source = source
        self.line = line
        self.col = col
        self.expected = tuple(expected)


class UnboundName(VexError):
    pass


class NotCallable(VexError):
    pass


class MethodNotFound(VexError):
    pass


class MemberNotFound(VexError):
    pass


class VexIndexError(VexError, IndexError):
    """Missing key, out-of-range position or wrong index type for the receiver."""
    pass


class UnsupportedType(VexError):
    pass


class UnsupportedOperator(VexError):
    pass


class UnsupportedExpression(VexError):
    """The node is a parse-only construct (e.g. `ForExpr`) or unknown to the evaluator."""
    pass


class DivisionByZero(VexError, ZeroDivisionError):
    pass


class InvalidArguments(VexError):
    pass


class NilReference(MemberNotFound):
    """Dereferencing reached `None` or a dead weak reference."""
    pass


class HostError(VexError):
    """A host callable returned or raised its own error.

    `cause` is the host's error object and `partial_result` the value the
    host returned alongside it (if any).
    """
    def __init__(self, message: str, node: Optional['Expr'] = None,
                 cause: Any = None, partial_result: Any = None):
        super().__init__(message, node)
        self.cause = cause
        self.partial_result = partial_result


# =================================================================
# Expression nodes
# =================================================================

class Expr(ABC):
    """Abstract base class for all VEX expression nodes."""
    pass


def _loc_field():
    # Source location is informational only: it never affects equality or hashing.
    return field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class IdentExpr(Expr):
    name: str
    loc: Optional[Dict[str, int]] = _loc_field()


@dataclass(frozen=True)
class LitExpr(Expr):
    value: Any
    loc: Optional[Dict[str, int]] = _loc_field()


@dataclass(frozen=True)
class BinOpExpr(Expr):
    op: str
    lhs: Expr
    rhs: Expr
    loc: Optional[Dict[str, int]] = _loc_field()


@dataclass(frozen=True)
class CallExpr(Expr):
    """Call of an environment-bound function: `name(args...)`."""
    name: str
    args: Tuple[Expr, ...] = ()
    loc: Optional[Dict[str, int]] = _loc_field()


@dataclass(frozen=True)
class MethodCallExpr(Expr):
    """Call of a method on the value of `receiver`: `receiver.name(args...)`."""
    receiver: Expr
    name: str
    args: Tuple[Expr, ...] = ()
    loc: Optional[Dict[str, int]] = _loc_field()


@dataclass(frozen=True)
class MemberExpr(Expr):
    receiver: Expr
    name: str
    loc: Optional[Dict[str, int]] = _loc_field()


@dataclass(frozen=True)
class ItemExpr(Expr):
    receiver: Expr
    index: Expr
    loc: Optional[Dict[str, int]] = _loc_field()


@dataclass(frozen=True)
class ForExpr(Expr):
    """The parse result of `for v in body` or `for i, v in body`.

    VEX only parses this form; running the loop is left to the host, which
    receives the variable names and the (unevaluated) body expression.
    `index_var_name` is "" for the single-variable form.
    """
    var_name: str
    index_var_name: str
    body: Expr
    loc: Optional[Dict[str, int]] = _loc_field()


# =================================================================
# Host wrapping types
# =================================================================

# Registry of pointer-form classes keyed by the value type they point to.
POINTER_TYPES: Dict[type, type] = {}


class Ref:
    """A pointer-like box around a host value.

    The evaluator dereferences chains of Refs before member, item and method
    access. A subclass that sets `pointer_of = SomeType` supplies extra
    methods for `SomeType` values: when a method is not found on a value,
    it is looked up on that subclass wrapped around the value.
    """
    pointer_of: Optional[type] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        target = cls.__dict__.get('pointer_of')
        if target is not None:
            POINTER_TYPES[target] = cls

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


def pointer_type_for(value_type: type) -> Optional[type]:
    """Returns the registered pointer-form class for `value_type` (or a base of it)."""
    for klass in value_type.__mro__:
        ptr = POINTER_TYPES.get(klass)
        if ptr is not None:
            return ptr
    return None


class HostResult(NamedTuple):
    """A value/error pair returned by a host callable.

    A non-None `error` is propagated as a HostError whose `partial_result`
    is `value`.
    """
    value: Any
    error: Any = None
