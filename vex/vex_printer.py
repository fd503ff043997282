"""
A pretty-printer for VEX expressions and values.
"""
import json
import math

from vex.vex_datatypes import (
    IdentExpr, LitExpr, BinOpExpr, CallExpr, MethodCallExpr,
    MemberExpr, ItemExpr, ForExpr
)


def to_text(value) -> str:
    """The default string form of a runtime value.

    Used for string concatenation and for turning an index into a field or
    key name.
    """
    match value:
        case str():
            return value
        case bool():
            return 'true' if value else 'false'
        case None:
            return 'none'
        case float():
            return repr(value)
        case _:
            return str(value)


class Printer:
    """Formats VEX expression trees as source text that compiles back to the same tree."""

    _PRECEDENCE = {'+': 1, '-': 1, '*': 2, '/': 2}
    # Postfix forms and atoms never need parentheses as operands.
    _TIGHT = 3

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format an expression."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            raise TypeError(f"Cannot format {type(obj).__name__} as VEX source")
        return handler(obj)

    def _create_handlers(self):
        return {
            IdentExpr: self._pformat_ident,
            LitExpr: self._pformat_lit,
            BinOpExpr: self._pformat_binop,
            CallExpr: self._pformat_call,
            MethodCallExpr: self._pformat_method_call,
            MemberExpr: self._pformat_member,
            ItemExpr: self._pformat_item,
            ForExpr: self._pformat_for,
        }

    def _precedence(self, expr) -> int:
        if isinstance(expr, BinOpExpr):
            return self._PRECEDENCE.get(expr.op, 0)
        return self._TIGHT

    def _pformat_ident(self, expr):
        return expr.name

    def _pformat_lit(self, expr):
        value = expr.value
        if isinstance(value, str):
            return json.dumps(value, ensure_ascii=False)
        if isinstance(value, float):
            if math.isinf(value) and value > 0:
                # Parses back as inf (float overflow)
                return "1e999"
            if not math.isfinite(value):
                raise ValueError(f"Cannot format float {value!r} as a VEX literal")
            return repr(value)
        return str(value)

    def _pformat_binop(self, expr):
        prec = self._PRECEDENCE.get(expr.op, 0)
        lhs = self.pformat(expr.lhs)
        rhs = self.pformat(expr.rhs)
        if self._precedence(expr.lhs) < prec:
            lhs = f"({lhs})"
        # Left-associative: an equal-precedence right operand must be grouped.
        if self._precedence(expr.rhs) <= prec:
            rhs = f"({rhs})"
        return f"{lhs} {expr.op} {rhs}"

    def _pformat_receiver(self, expr):
        text = self.pformat(expr)
        if self._precedence(expr) < self._TIGHT:
            return f"({text})"
        return text

    def _pformat_args(self, args):
        return ", ".join(self.pformat(a) for a in args)

    def _pformat_call(self, expr):
        return f"{expr.name}({self._pformat_args(expr.args)})"

    def _pformat_method_call(self, expr):
        return f"{self._pformat_receiver(expr.receiver)}.{expr.name}({self._pformat_args(expr.args)})"

    def _pformat_member(self, expr):
        return f"{self._pformat_receiver(expr.receiver)}.{expr.name}"

    def _pformat_item(self, expr):
        return f"{self._pformat_receiver(expr.receiver)}[{self.pformat(expr.index)}]"

    def _pformat_for(self, expr):
        names = expr.var_name
        if expr.index_var_name:
            names = f"{names}, {expr.index_var_name}"
        return f"for {names} in {self.pformat(expr.body)}"
