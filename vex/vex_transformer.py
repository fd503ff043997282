"""
Transforms the raw lark parse tree into the VEX expression model.
"""

from lark import Token, Tree

from vex.vex_datatypes import (
    Expr, IdentExpr, LitExpr, BinOpExpr, CallExpr, MethodCallExpr,
    MemberExpr, ItemExpr, ForExpr
)
from vex.vex_lexer import literal_value


class VexTransformer:
    def _loc(self, node):
        if isinstance(node, Token):
            line, col = node.line, node.column
        else:
            meta = node.meta
            if getattr(meta, 'empty', True):
                return None
            line, col = meta.line, meta.column
        if line is None or col is None:
            return None
        return {'line': line, 'col': col}

    def transform(self, node: object) -> Expr:
        if not isinstance(node, Tree):
            raise TypeError(f"Unexpected parse node: {node!r}")

        tag = node.data
        children = node.children
        loc = self._loc(node)

        match tag:
            # Top-level statement forms
            case 'for_single':
                names = self._names(children)
                return ForExpr(names[0], "", self.transform(children[-1]), loc=loc)
            case 'for_pair':
                names = self._names(children)
                return ForExpr(names[0], names[1], self.transform(children[-1]), loc=loc)

            # Atomics
            case 'ident':
                return IdentExpr(str(children[0]), loc=loc)
            case 'literal':
                return LitExpr(literal_value(children[0]), loc=loc)

            # Arithmetic
            case 'binop':
                lhs, op, rhs = children
                return BinOpExpr(str(op), self.transform(lhs), self.transform(rhs), loc=loc)

            # Calls and postfix access
            case 'call':
                name, args = children
                return CallExpr(str(name), self._args(args), loc=loc)
            case 'method_call':
                receiver, name, args = children
                return MethodCallExpr(self.transform(receiver), str(name), self._args(args), loc=loc)
            case 'member':
                receiver, name = children
                return MemberExpr(self.transform(receiver), str(name), loc=loc)
            case 'item':
                receiver, index = children
                return ItemExpr(self.transform(receiver), self.transform(index), loc=loc)

            case _:
                raise NotImplementedError(f"No transformer for tag '{tag}'")

    def _args(self, node: Tree) -> tuple:
        return tuple(self.transform(child) for child in node.children)

    def _names(self, children) -> list:
        return [str(c) for c in children if isinstance(c, Token) and c.type == 'NAME']
