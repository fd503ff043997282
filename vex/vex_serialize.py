from __future__ import annotations

import json
from typing import Any, Optional

import yaml

from vex.vex_datatypes import (
    Expr, IdentExpr, LitExpr, BinOpExpr, CallExpr, MethodCallExpr,
    MemberExpr, ItemExpr, ForExpr
)


# --------------------------
# Helpers
# --------------------------

def _with_loc(data: dict, expr: Expr) -> dict:
    loc = getattr(expr, 'loc', None)
    if loc:
        data['line'] = loc.get('line')
        data['col'] = loc.get('col')
    return data


def _loc_of(data: dict) -> Optional[dict]:
    if data.get('line') is None or data.get('col') is None:
        return None
    return {'line': data['line'], 'col': data['col']}


def detect_format(text: str) -> str:
    """Returns 'json' for text that looks like a JSON object, else 'yaml'."""
    s = text.lstrip()
    if s.startswith('{'):
        return 'json'
    return 'yaml'


# --------------------------
# Public API
# --------------------------

def to_data(expr: Expr) -> dict:
    """Convert an expression tree to plain, tagged dicts."""
    match expr:
        case IdentExpr():
            data = {'tag': 'ident', 'text': expr.name}
        case LitExpr():
            data = {'tag': 'literal', 'value': expr.value}
        case BinOpExpr():
            data = {'tag': 'binop', 'op': expr.op, 'children': [to_data(expr.lhs), to_data(expr.rhs)]}
        case CallExpr():
            data = {'tag': 'call', 'text': expr.name, 'children': [to_data(a) for a in expr.args]}
        case MethodCallExpr():
            data = {
                'tag': 'method-call',
                'text': expr.name,
                'children': [to_data(expr.receiver)] + [to_data(a) for a in expr.args],
            }
        case MemberExpr():
            data = {'tag': 'member', 'text': expr.name, 'children': [to_data(expr.receiver)]}
        case ItemExpr():
            data = {'tag': 'item', 'children': [to_data(expr.receiver), to_data(expr.index)]}
        case ForExpr():
            data = {
                'tag': 'for',
                'var': expr.var_name,
                'index-var': expr.index_var_name,
                'children': [to_data(expr.body)],
            }
        case _:
            raise TypeError(f"Cannot serialize {type(expr).__name__}")
    return _with_loc(data, expr)


def from_data(data: Any) -> Expr:
    """Rebuild an expression tree from the output of `to_data`."""
    if not isinstance(data, dict) or 'tag' not in data:
        raise ValueError(f"Not a serialized VEX node: {data!r}")
    tag = data['tag']
    children = [from_data(c) for c in data.get('children', [])]
    loc = _loc_of(data)

    match tag:
        case 'ident':
            return IdentExpr(data['text'], loc=loc)
        case 'literal':
            return LitExpr(data['value'], loc=loc)
        case 'binop':
            lhs, rhs = children
            return BinOpExpr(data['op'], lhs, rhs, loc=loc)
        case 'call':
            return CallExpr(data['text'], tuple(children), loc=loc)
        case 'method-call':
            return MethodCallExpr(children[0], data['text'], tuple(children[1:]), loc=loc)
        case 'member':
            return MemberExpr(children[0], data['text'], loc=loc)
        case 'item':
            receiver, index = children
            return ItemExpr(receiver, index, loc=loc)
        case 'for':
            return ForExpr(data['var'], data.get('index-var') or "", children[0], loc=loc)
    raise ValueError(f"Unknown VEX node tag: {tag!r}")


def serialize(expr: Expr, *, fmt: str = 'json', pretty: bool = True) -> str:
    """
    Convert an expression tree into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = to_data(expr)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def deserialize(text: str, *, fmt: Optional[str] = None) -> Expr:
    """Parse text produced by `serialize`. The format is sniffed when not given."""
    f = (fmt or detect_format(text)).lower()
    if f == 'json':
        data = json.loads(text)
    elif f == 'yaml':
        data = yaml.safe_load(text)
    else:
        raise ValueError(f"Unsupported serialization format: {fmt!r}")
    return from_data(data)


__all__ = [
    "to_data",
    "from_data",
    "serialize",
    "deserialize",
    "detect_format",
]
