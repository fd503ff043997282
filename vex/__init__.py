"""
VEX: an embeddable expression language evaluated against host values.
"""
from vex.vex_datatypes import (
    Expr, IdentExpr, LitExpr, BinOpExpr, CallExpr, MethodCallExpr,
    MemberExpr, ItemExpr, ForExpr, Ref, HostResult,
    VexError, VexSyntaxError, UnboundName, NotCallable, MethodNotFound,
    MemberNotFound, VexIndexError, UnsupportedType, UnsupportedOperator,
    UnsupportedExpression, DivisionByZero, InvalidArguments, NilReference, HostError
)
from vex.vex_lexer import Lexer, Token
from vex.vex_parser import Parser
from vex.vex_interpreter import VM
from vex.vex_printer import Printer, to_text
from vex.vex_reflect import VexHost, vex_api_method
from vex.vex_runtime import ExecutionResult, ExpressionRunner


def compile(source: str) -> Expr:
    """Compiles source text with a throwaway VM. Raises VexSyntaxError."""
    return VM().compile(source)


__all__ = [
    "Expr", "IdentExpr", "LitExpr", "BinOpExpr", "CallExpr", "MethodCallExpr",
    "MemberExpr", "ItemExpr", "ForExpr", "Ref", "HostResult",
    "VexError", "VexSyntaxError", "UnboundName", "NotCallable", "MethodNotFound",
    "MemberNotFound", "VexIndexError", "UnsupportedType", "UnsupportedOperator",
    "UnsupportedExpression", "DivisionByZero", "InvalidArguments", "NilReference", "HostError",
    "Lexer", "Token", "Parser", "VM", "Printer", "to_text",
    "VexHost", "vex_api_method", "ExecutionResult", "ExpressionRunner",
    "compile",
]
