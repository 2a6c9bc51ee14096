"""Parser for environment descriptions.

An environment description is a sequence of ``SYMBOL = VALUE ;``
statements where VALUE is a string literal, a numeric literal or a
bracketed list of values. Blanks and ``#`` comments may appear between
any two tokens.

Parsing happens one statement at a time:

1. **Splitting**: :func:`read_statement` pulls the text of the next
   statement from an :class:`~curly.stream.InputStream`, up to and
   including its terminating ``;``. Strings, escapes and comments are
   respected so that a ``;`` inside them does not end the statement.

2. **Parsing**: the statement text is fed to a Lark parser and the tree
   is turned into a ``(name, Value)`` pair by :class:`EnvironTransformer`.
   String and numeric literals are decoded with the same stream
   primitives the template lexers use.

Working statement by statement lets the loader push each symbol before
the next statement is read, so a failure leaves earlier symbols in place.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput, VisitError

from .errors import CurlyError, CurlySyntaxError
from .stream import EOF, ESCAPE_CHAR, STRING_DELIMITER, InputStream
from .types import Position, Value

COMMENT_CHAR = '#'
STATEMENT_END = ';'


ENVIRON_GRAMMAR = r"""
    start: SYMBOL "=" value ";"

    ?value: string
          | number
          | array

    string: STRING
    number: NUMBER
    array: "[" [value ("," value)*] "]"

    SYMBOL: /[A-Za-z0-9_]+/
    STRING: /"(?:[^"\\]|\\.)*"/s
    NUMBER: /[+-]?(?:0[xX][0-9a-fA-F.]+(?:[pP][+-]?[0-9]+)?|0[bB][01]+|0[oO][0-7]+|[0-9.]+(?:[eE][+-]?[0-9]+)?)/

    COMMENT: /#[^\r\n]*/
    BLANK: /[ \t\v\r\n]+/
    %ignore COMMENT
    %ignore BLANK
"""

ENVIRON_PARSER = Lark(
    ENVIRON_GRAMMAR,
    parser='lalr',
    lexer='contextual',
    propagate_positions=True,
    maybe_placeholders=False,
)


def skip_blank_and_comments(stream: InputStream) -> None:
    while True:
        stream.skip_blank()
        if stream.peek_char() != COMMENT_CHAR:
            return
        while stream.peek_char() not in (EOF, '\n'):
            stream.get_char()


def read_statement(stream: InputStream) -> Optional[Tuple[str, Position]]:
    """Read the raw text of the next statement.

    Returns the text together with the position it starts at, or None
    when only blanks and comments remain. The returned text stops right
    after the first ``;`` found outside strings and comments, or at the
    end of the stream.
    """
    skip_blank_and_comments(stream)
    if stream.eof():
        return None
    start = stream.position
    chars: List[str] = []
    in_string = False
    in_comment = False
    escape = False
    while True:
        c = stream.get_char()
        if c == EOF:
            break
        chars.append(c)
        if in_comment:
            if c == '\n':
                in_comment = False
        elif in_string:
            if escape:
                escape = False
            elif c == ESCAPE_CHAR:
                escape = True
            elif c == STRING_DELIMITER:
                in_string = False
        elif c == STRING_DELIMITER:
            in_string = True
        elif c == COMMENT_CHAR:
            in_comment = True
        elif c == STATEMENT_END:
            break
    if in_string:
        raise stream.error(CurlySyntaxError, "Unexpected EOF inside string constant", 'eof-in-string')
    return ''.join(chars), start


def locate(start: Position, line: Any, column: Any, pos: Any = None) -> Optional[Position]:
    """Translate a position inside a statement into a stream position.

    ``line`` and ``column`` are 1-based, as reported by Lark.
    """
    if not isinstance(line, int) or not isinstance(column, int) or line < 1 or column < 1:
        return None
    offset = start.offset + pos if isinstance(pos, int) and pos >= 0 else start.offset
    if line == 1:
        return Position(start.name, start.line, start.column + column, offset)
    return Position(start.name, start.line + line - 1, column, offset)


def _describe_expected(expected) -> Tuple[str, str]:
    expected = set(expected or ())
    if 'EQUAL' in expected:
        return "Missing '=' separator", 'missing-separator'
    if 'SEMICOLON' in expected:
        return "Missing ';' separator", 'missing-separator'
    if 'COMMA' in expected:
        return "Missing ',' separator between array values", 'missing-separator'
    if 'SYMBOL' in expected:
        return "Missing symbol", 'missing-symbol'
    return "No valid value can be read", 'invalid-value'


class EnvironTransformer(Transformer):
    """Turns a statement parse tree into a ``(name, Value)`` pair."""

    def __init__(self, locate_token: Callable[[Any], Optional[Position]]):
        super().__init__()
        self.locate_token = locate_token

    def start(self, items):
        return str(items[0]), items[1]

    def string(self, items):
        return Value.string(InputStream.from_string(str(items[0])).read_string_literal())

    def number(self, items):
        token = items[0]
        stream = InputStream.from_string(str(token))
        try:
            value = stream.read_number()
        except CurlyError as e:
            raise type(e)(e.err.message, e.code, self.locate_token(token)) from None
        if not stream.eof():
            raise CurlySyntaxError(f"Invalid numeric constant '{token}'", 'invalid-number',
                                   self.locate_token(token))
        return value

    def array(self, items):
        return Value.array(list(items))


def parse_statement(text: str, start: Position, end: Optional[Position] = None) -> Tuple[str, Value]:
    """Parse one statement read by :func:`read_statement`.

    ``end`` is used to locate errors Lark cannot place itself.
    """
    try:
        tree = ENVIRON_PARSER.parse(text)
    except UnexpectedInput as e:
        expected = getattr(e, 'expected', None) or getattr(e, 'allowed', None)
        message, code = _describe_expected(expected)
        position = locate(start, getattr(e, 'line', None), getattr(e, 'column', None),
                          getattr(e, 'pos_in_stream', None)) or end
        raise CurlySyntaxError(message, code, position) from None
    transformer = EnvironTransformer(
        lambda token: locate(start, token.line, token.column, token.start_pos))
    try:
        return transformer.transform(tree)
    except RecursionError:
        raise _too_deep(start) from None
    except VisitError as e:
        if isinstance(e.orig_exc, CurlyError):
            raise e.orig_exc from None
        if isinstance(e.orig_exc, RecursionError):
            raise _too_deep(start) from None
        raise


def _too_deep(start: Position) -> CurlySyntaxError:
    return CurlySyntaxError("Array nested too deeply", 'nesting-too-deep', start)
