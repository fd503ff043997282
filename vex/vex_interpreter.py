"""
The core VEX interpreter: the VM that compiles source and evaluates
expression trees against an environment of host values.
"""
import inspect
import math
import os
import sys
import typing
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

from vex.vex_datatypes import (
    Expr, IdentExpr, LitExpr, BinOpExpr, CallExpr, MethodCallExpr,
    MemberExpr, ItemExpr, ForExpr, HostResult,
    VexError, VexSyntaxError, UnboundName, NotCallable, MethodNotFound,
    MemberNotFound, VexIndexError, UnsupportedType, UnsupportedOperator,
    UnsupportedExpression, DivisionByZero, InvalidArguments, NilReference, HostError
)
from vex.vex_parser import Parser
from vex.vex_printer import Printer, to_text
from vex.vex_reflect import (
    MISSING, RECORD, MAPPING, SEQUENCE,
    deref, kind_of, read_field, read_key, read_index, find_method
)

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


def _is_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _wrap_int64(n: int) -> int:
    return ((n - INT64_MIN) % (1 << 64)) + INT64_MIN


def _int_div(a: int, b: int) -> int:
    # Truncates toward zero (Python's // floors).
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _float_div(a: float, b: float) -> float:
    if b != 0.0:
        return a / b
    if a == 0.0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


_INT_OPS: Dict[str, Callable[[int, int], int]] = {
    '+': lambda a, b: a + b,
    '-': lambda a, b: a - b,
    '*': lambda a, b: a * b,
    '/': _int_div,
}

_FLOAT_OPS: Dict[str, Callable[[float, float], float]] = {
    '+': lambda a, b: a + b,
    '-': lambda a, b: a - b,
    '*': lambda a, b: a * b,
    '/': _float_div,
}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if _is_int(value):
        return value != 0
    if isinstance(value, str) and value in ('true', 'false'):
        return value == 'true'
    raise ValueError(f"not a boolean: {value!r}")


# Parameter annotations an argument is adapted to before a host call.
_ADAPTERS: Dict[type, Callable[[Any], Any]] = {
    int: int,
    float: float,
    str: to_text,
    bool: _to_bool,
}


class VM:
    """The VEX execution engine.

    Holds the environment (a plain dict of name to host value). Not
    thread-safe: the host serialises `set` against `eval`.
    """
    def __init__(self, env: Optional[Dict[str, Any]] = None):
        self.env: Dict[str, Any] = dict(env or {})
        self.parser = Parser()
        self.call_stack: List[Dict[str, Any]] = []
        self.current_node: Optional[Expr] = None
        self._eval_depth = 0

    # --- Environment ---

    def set(self, name: str, value: Any):
        self.env[name] = value

    def get(self, name: str) -> Tuple[Any, bool]:
        if name in self.env:
            return self.env[name], True
        return None, False

    # --- Compilation ---

    def compile(self, source: str) -> Expr:
        """Compiles source text to an expression tree. Raises VexSyntaxError."""
        out = self.parser.parse(source)
        if out.get('status') != 'success':
            node = out.get('error_node') or {}
            raise VexSyntaxError(
                f"syntax error: {source}\n{out.get('error_message')}",
                source=source,
                line=node.get('line'),
                col=node.get('col'),
                expected=out.get('expected') or (),
            )
        return out['ast']

    def run(self, source: str) -> Any:
        """Compiles and evaluates in one step."""
        return self.eval(self.compile(source))

    # --- Tracing ---

    def _push_frame(self, name, func, args, call_site_node):
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': getattr(call_site_node, 'loc', None),
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if os.environ.get("VEX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    @contextmanager
    def _host_errors(self, node: Expr, what: str):
        """Wraps exceptions escaping host code as HostError."""
        try:
            yield
        except VexError:
            raise
        except Exception as e:
            raise HostError(f"{what}: {type(e).__name__}: {e}", node=node, cause=e) from e

    # --- Evaluation ---

    def eval(self, expr: Expr) -> Any:
        """Public entry point for evaluation.

        The outermost call starts with an empty call stack. A host function
        that evaluates again from inside a call keeps the caller's frames.
        """
        if self._eval_depth == 0:
            self.call_stack.clear()
        self.current_node = expr
        self._eval_depth += 1
        try:
            return self._eval(expr)
        finally:
            self._eval_depth -= 1

    def _eval(self, node: Expr) -> Any:
        """Recursive dispatcher for evaluating any expression node."""
        self.current_node = node
        match node:
            case IdentExpr():
                if node.name in self.env:
                    return self.env[node.name]
                raise UnboundName(f"unbound name: {node.name}", node)
            case LitExpr():
                return node.value
            case BinOpExpr():
                return self._eval_binop(node)
            case CallExpr():
                return self._eval_call(node)
            case MethodCallExpr():
                return self._eval_method_call(node)
            case MemberExpr():
                return self._eval_member(node)
            case ItemExpr():
                return self._eval_item(node)
            case ForExpr():
                raise UnsupportedExpression(
                    "a for statement is not an evaluable expression; the host runs the loop", node)
            case _:
                raise UnsupportedExpression(f"unknown expression node: {type(node).__name__}", node)

    def _eval_deref(self, node: Expr):
        value = self._eval(node)
        try:
            return deref(value)
        except NilReference as e:
            e.node = node
            raise

    # --- Arithmetic ---

    def _eval_binop(self, node: BinOpExpr) -> Any:
        lhs = self._eval(node.lhs)
        rhs = self._eval(node.rhs)
        op = node.op
        self._dbg("binop", op, type(lhs).__name__, type(rhs).__name__)

        if isinstance(lhs, str):
            if op == '+':
                return lhs + to_text(rhs)
            raise UnsupportedOperator(f"operator '{op}' is not defined for strings", node)

        if _is_int(lhs):
            if isinstance(rhs, float):
                return self._float_arith(node, float(self._to_int64(lhs, node)), rhs)
            return self._int_arith(node, self._to_int64(lhs, node), self._to_int64(rhs, node))

        if isinstance(lhs, float):
            if _is_int(rhs):
                rhs = float(self._to_int64(rhs, node))
            elif not isinstance(rhs, float):
                raise UnsupportedType(
                    f"cannot use {type(rhs).__name__} as a float operand of '{op}'", node)
            return self._float_arith(node, lhs, rhs)

        raise UnsupportedType(f"unsupported operand type for '{op}': {type(lhs).__name__}", node)

    def _to_int64(self, value: Any, node: BinOpExpr) -> int:
        if not _is_int(value):
            raise UnsupportedType(
                f"cannot use {type(value).__name__} as an integer operand of '{node.op}'", node)
        if not INT64_MIN <= value <= INT64_MAX:
            raise UnsupportedType(f"integer operand out of 64-bit range: {value}", node)
        return value

    def _int_arith(self, node: BinOpExpr, a: int, b: int) -> int:
        func = _INT_OPS.get(node.op)
        if func is None:
            raise UnsupportedOperator(f"unknown operator '{node.op}'", node)
        if node.op == '/' and b == 0:
            raise DivisionByZero("integer division by zero", node)
        return _wrap_int64(func(a, b))

    def _float_arith(self, node: BinOpExpr, a: float, b: float) -> float:
        func = _FLOAT_OPS.get(node.op)
        if func is None:
            raise UnsupportedOperator(f"unknown operator '{node.op}'", node)
        return func(a, b)

    # --- Calls ---

    def _eval_call(self, node: CallExpr) -> Any:
        if node.name not in self.env:
            raise UnboundName(f"unbound function: {node.name}", node)
        func = self.env[node.name]
        if not callable(func):
            raise NotCallable(f"'{node.name}' is not callable ({type(func).__name__})", node)
        args = [self._eval(arg) for arg in node.args]
        return self._invoke(node.name, func, args, node)

    def _eval_method_call(self, node: MethodCallExpr) -> Any:
        receiver, wrappers = self._eval_deref(node.receiver)
        method = find_method(receiver, node.name, wrappers)
        if method is None:
            raise MethodNotFound(
                f"cannot reference method: {node.name} on {type(receiver).__name__}", node)
        args = [self._eval_deref(arg)[0] for arg in node.args]
        return self._invoke(node.name, method, args, node)

    def _invoke(self, name: str, func: Any, args: List[Any], node: Expr) -> Any:
        args = self._adapt_args(name, func, args, node)
        self._dbg("call", name, "argc", len(args))
        self._push_frame(name, func, args, node)
        _ok = False
        try:
            with self._host_errors(node, name):
                ret = func(*args)
            result = self._unpack_return(name, ret, node)
            _ok = True
        finally:
            # Frames of a failed call stay on the stack for error reporting.
            if _ok:
                self._pop_frame()
        return result

    def _adapt_args(self, name: str, func: Any, args: List[Any], node: Expr) -> List[Any]:
        """Checks arity and converts arguments to annotated int/float/str parameters."""
        try:
            sig = inspect.signature(func)
        except (TypeError, ValueError):
            # Some builtins expose no signature; pass arguments through.
            return args
        try:
            sig.bind(*args)
        except TypeError as e:
            raise InvalidArguments(f"invalid arguments for '{name}': {e}", node) from e

        try:
            hints = typing.get_type_hints(func)
        except Exception:
            hints = {}

        adapted = list(args)
        positional = [
            p for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        for i, param in enumerate(positional[:len(args)]):
            target = hints.get(param.name)
            adapter = _ADAPTERS.get(target)
            if adapter is None or type(args[i]) is target:
                continue
            try:
                adapted[i] = adapter(args[i])
            except (TypeError, ValueError, OverflowError) as e:
                raise InvalidArguments(
                    f"argument {i + 1} of '{name}' cannot be converted to {target.__name__}: {args[i]!r}",
                    node) from e
        return adapted

    def _unpack_return(self, name: str, ret: Any, node: Expr) -> Any:
        """Applies the value/error pair convention to a host return value."""
        if isinstance(ret, tuple) and len(ret) == 2 and (
                isinstance(ret, HostResult) or isinstance(ret[1], BaseException)):
            value, err = ret
            if err is not None:
                raise HostError(f"{name}: {err}", node=node, cause=err, partial_result=value)
            return value
        return ret

    # --- Member and item access ---

    def _eval_member(self, node: MemberExpr) -> Any:
        receiver, _ = self._eval_deref(node.receiver)
        value = MISSING
        kind = kind_of(receiver)
        with self._host_errors(node, f"member {node.name}"):
            if kind == RECORD:
                value = read_field(receiver, node.name)
            elif kind == MAPPING:
                value = read_key(receiver, node.name)
        if value is MISSING:
            raise MemberNotFound(
                f"cannot reference member: {node.name} on {type(receiver).__name__}", node)
        return value

    def _eval_item(self, node: ItemExpr) -> Any:
        receiver, _ = self._eval_deref(node.receiver)
        index = self._eval(node.index)
        value = MISSING
        kind = kind_of(receiver)
        with self._host_errors(node, "item"):
            if kind == RECORD:
                value = read_field(receiver, to_text(index))
            elif kind == MAPPING:
                value = read_key(receiver, index, to_text(index))
            elif kind == SEQUENCE:
                value = read_index(receiver, index)
        if value is MISSING:
            raise VexIndexError(
                f"cannot reference item {Printer().pformat(node.index)} on {type(receiver).__name__}",
                node)
        return value
