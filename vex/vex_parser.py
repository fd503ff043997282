"""
The VEX parser: source text to expression tree.

`Parser.parse` never raises for malformed input. Like the other stages of
the pipeline it reports failure as data:

    {'status': 'success', 'ast': <Expr>}
    {'status': 'error', 'error_message': str, 'error_node': {...}, 'expected': [...]}
"""
from typing import Any, Dict

from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from vex.vex_lexer import Lexer
from vex.vex_transformer import VexTransformer


class Parser:
    """Parses a single VEX expression or `for` statement."""

    def __init__(self):
        self.lark = Lexer.grammar()
        self.transformer = VexTransformer()

    def parse(self, source: str) -> Dict[str, Any]:
        try:
            tree = self.lark.parse(source)
        except UnexpectedInput as e:
            return self._error_result(e, source)

        try:
            expr = self.transformer.transform(tree)
        except (ValueError, SyntaxError) as e:
            # Only string literals can fail here (bad escape sequences).
            return {
                'status': 'error',
                'error_message': f"invalid literal: {e}",
                'error_node': {'line': None, 'col': None, 'text': None},
                'expected': [],
            }
        return {'status': 'success', 'ast': expr}

    def _error_result(self, e: UnexpectedInput, source: str) -> Dict[str, Any]:
        match e:
            case UnexpectedToken():
                tok = e.token
                expected = sorted(e.expected)
                if tok.type == '$END':
                    text = None
                    msg = "unexpected end of input"
                else:
                    text = str(tok)
                    msg = f"unexpected token {text!r}"
                line, col = e.line, e.column
            case UnexpectedCharacters():
                expected = sorted(e.allowed or [])
                text = e.char
                msg = f"unexpected character {text!r}"
                line, col = e.line, e.column
            case UnexpectedEOF():
                expected = sorted(e.expected)
                text = None
                msg = "unexpected end of input"
                line, col = None, None
            case _:
                expected = []
                text = None
                msg = str(e)
                line, col = getattr(e, 'line', None), getattr(e, 'column', None)

        # lark reports -1 when the position is unknown (end of input)
        if line is not None and line < 1:
            line, col = None, None
        if expected:
            msg = f"{msg}, expected one of: {', '.join(expected)}"
        return {
            'status': 'error',
            'error_message': msg,
            'error_node': {'line': line, 'col': col, 'text': text},
            'expected': expected,
        }
