"""
Lexical analysis for VEX.

The scanner itself is the lark lexer compiled from `vex_grammar.lark`.
This module owns that compiled grammar (shared with the parser) and turns
the raw lark tokens into classified `Token`s with inferred literal values.
"""
import ast
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional

from lark import Lark
from lark.exceptions import UnexpectedCharacters

from vex.vex_datatypes import VexSyntaxError

GRAMMAR_PATH = Path(__file__).with_name("vex_grammar.lark")

LITERAL_TYPES = {'INT', 'FLOAT', 'STRING'}
KEYWORD_TYPES = {'FOR', 'IN'}
OPERATOR_TYPES = {'ADD_OP', 'MUL_OP'}


def literal_value(token) -> Any:
    """Infers the Python value of an INT, FLOAT or STRING lark token."""
    match token.type:
        case 'INT':
            return int(token)
        case 'FLOAT':
            return float(token)
        case 'STRING':
            # Double-quoted with backslash escapes; the Python literal rules decode it.
            return ast.literal_eval(str(token))
    raise ValueError(f"Not a literal token: {token.type}")


@dataclass(frozen=True)
class Token:
    """A classified lexical token."""
    kind: str   # identifier | literal | keyword | operator | punctuation
    text: str
    value: Any
    line: int
    col: int


class Lexer:
    """Produces classified tokens from VEX source text."""

    _lark: Optional[Lark] = None

    @staticmethod
    def grammar() -> Lark:
        """The compiled grammar, built once per process."""
        if Lexer._lark is None:
            Lexer._lark = Lark(
                GRAMMAR_PATH.read_text(encoding="utf-8"),
                parser="lalr",
                lexer="basic",
                propagate_positions=True,
            )
        return Lexer._lark

    def iter_tokens(self, source: str) -> Iterator[Token]:
        """Lazily yields tokens. Raises VexSyntaxError on the first bad character."""
        try:
            for tok in self.grammar().lex(source):
                yield self._classify(tok, source)
        except UnexpectedCharacters as e:
            raise VexSyntaxError(
                f"unexpected character {e.char!r} (line {e.line}, col {e.column})",
                source=source, line=e.line, col=e.column,
            ) from e

    def tokenize(self, source: str) -> List[Token]:
        return list(self.iter_tokens(source))

    def _classify(self, tok, source: str) -> Token:
        if tok.type == 'NAME':
            kind = 'identifier'
        elif tok.type in LITERAL_TYPES:
            kind = 'literal'
        elif tok.type in KEYWORD_TYPES:
            kind = 'keyword'
        elif tok.type in OPERATOR_TYPES:
            kind = 'operator'
        else:
            kind = 'punctuation'

        value: Any = str(tok)
        if kind == 'literal':
            try:
                value = literal_value(tok)
            except (ValueError, SyntaxError) as e:
                raise VexSyntaxError(
                    f"invalid literal {str(tok)} (line {tok.line}, col {tok.column})",
                    source=source, line=tok.line, col=tok.column,
                ) from e
        return Token(kind, str(tok), value, tok.line, tok.column)
