"""Character streams.

:class:`InputStream` is a buffered, pull-based reader over any text file
object. It tracks the current line and column so that lexers can report
where a problem was found, and implements the reading primitives shared
by the template lexer, the expression lexer and the environment loader:
blank skipping, words and symbols, string literals and numeric literals.

:class:`OutputStream` is the sink rendered templates are written to.
"""

from __future__ import annotations

import io
import math
import sys
from typing import Optional, TextIO, Type

from .errors import CurlyError, CurlyIOError, CurlyRangeError, CurlySyntaxError
from .types import INT_MAX, INT_MIN, Position, Value

EOF = ''
BLANK_CHARS = frozenset(' \t\v\r\n')
SYMBOL_CHARS = frozenset('abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_')
DECIMAL_DIGITS = frozenset('0123456789')
STRING_DELIMITER = '"'
ESCAPE_CHAR = '\\'

_BASE_DIGITS = {
    2: frozenset('01'),
    8: frozenset('01234567'),
    10: DECIMAL_DIGITS,
    16: frozenset('0123456789abcdefABCDEF'),
}
_BASE_PREFIXES = {'b': 2, 'B': 2, 'o': 8, 'O': 8, 'x': 16, 'X': 16}


class InputStream:
    """Buffered reader over a text source."""

    def __init__(self, source: TextIO, name: Optional[str] = None,
                 buffer_size: int = 4096, close_source: bool = False):
        self.source = source
        self.name = name or '<stream>'
        self.buffer_size = buffer_size
        self.close_source = close_source
        self.line = 1
        self.column = 0
        self.offset = 0
        self._buffer = ''
        self._pos = 0
        self._exhausted = False

    @classmethod
    def from_string(cls, text: str, name: Optional[str] = None) -> 'InputStream':
        return cls(io.StringIO(text), name)

    @classmethod
    def from_path(cls, path, encoding: str = 'utf-8') -> 'InputStream':
        try:
            source = open(path, 'r', encoding=encoding, newline='')
        except (OSError, LookupError) as e:
            raise CurlyIOError(f"Failed to open '{path}': {e}", 'open-failed') from e
        return cls(source, str(path), close_source=True)

    def close(self) -> None:
        if self.close_source:
            self.source.close()

    def __enter__(self) -> 'InputStream':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def position(self) -> Position:
        return Position(self.name, self.line, self.column, self.offset)

    def error(self, cls: Type[CurlyError], message: str, code: str = 'failed') -> CurlyError:
        """Build an exception of ``cls`` located at the current position."""
        return cls(message, code, self.position)

    def _fill(self, count: int) -> None:
        while len(self._buffer) - self._pos < count and not self._exhausted:
            try:
                chunk = self.source.read(self.buffer_size)
            except (OSError, UnicodeDecodeError) as e:
                raise self.error(CurlyIOError, f"Failed to read from stream: {e}", 'read-failed') from e
            if not chunk:
                self._exhausted = True
            else:
                self._buffer = self._buffer[self._pos:] + chunk
                self._pos = 0

    def _advance(self, text: str) -> None:
        for c in text:
            if c == '\n':
                self.line += 1
                self.column = 0
            else:
                self.column += 1
        self.offset += len(text)
        self._pos += len(text)

    # Raw access
    def peek(self, count: int) -> str:
        self._fill(count)
        return self._buffer[self._pos:self._pos + count]

    def read(self, count: int) -> str:
        data = self.peek(count)
        self._advance(data)
        return data

    def peek_char(self) -> str:
        return self.peek(1)

    def get_char(self) -> str:
        return self.read(1)

    def skip(self, count: int) -> int:
        return len(self.read(count))

    def eof(self) -> bool:
        return self.peek(1) == EOF

    # Words
    def skip_blank(self) -> int:
        skipped = 0
        while True:
            c = self.peek_char()
            if c == EOF or c not in BLANK_CHARS:
                return skipped
            self._advance(c)
            skipped += 1

    def peek_word(self, accept, max_len: int = -1) -> str:
        length = 0
        while max_len < 0 or length < max_len:
            buf = self.peek(length + 1)
            if len(buf) <= length or buf[length] not in accept:
                break
            length += 1
        return self.peek(length)

    def read_word(self, accept, max_len: int = -1) -> str:
        word = self.peek_word(accept, max_len)
        self._advance(word)
        return word

    def peek_symbol(self, max_len: int = -1) -> str:
        return self.peek_word(SYMBOL_CHARS, max_len)

    def read_symbol(self, max_len: int = -1) -> str:
        return self.read_word(SYMBOL_CHARS, max_len)

    # Literals
    def read_string_literal(self) -> str:
        """Read a double-quoted string, the backslash escaping any character."""
        if self.peek_char() != STRING_DELIMITER:
            raise self.error(CurlySyntaxError, "Missing string delimiter", 'missing-delimiter')
        self.get_char()
        chars = []
        escaped = False
        while True:
            c = self.get_char()
            if c == EOF:
                raise self.error(CurlySyntaxError, "Unexpected EOF inside string constant",
                                 'eof-in-string')
            if escaped:
                chars.append(c)
                escaped = False
            elif c == ESCAPE_CHAR:
                escaped = True
            elif c == STRING_DELIMITER:
                break
            else:
                chars.append(c)
        return ''.join(chars)

    def read_number(self) -> Value:
        """Read an Integer or Float literal.

        Accepted forms are an optional sign followed by a decimal number
        (with optional fraction and ``e`` exponent), a ``0x`` hexadecimal
        number (with optional fraction and ``p`` binary exponent), or a
        ``0b``/``0o`` binary or octal integer. The result is a Float as
        soon as a dot or an exponent was read.
        """
        text = []
        base = 10
        is_float = False
        have_sign = False
        have_dot = False
        have_mantissa = False
        have_exponent_delim = False
        have_exponent = False
        while True:
            buf = self.peek(3)
            c = buf[:1]
            if c == EOF:
                break
            if c == '.':
                if have_dot or have_exponent_delim or base in (2, 8):
                    break
                have_dot = True
                is_float = True
            elif c in '+-':
                sign_allowed = not have_mantissa or (have_exponent_delim and not have_exponent)
                if have_sign or not sign_allowed or len(buf) < 2 or buf[1] not in DECIMAL_DIGITS:
                    break
                have_sign = True
            elif c in 'eE' and base == 10:
                if not (have_mantissa and not have_exponent_delim and _exponent_follows(buf)):
                    break
                have_exponent_delim = True
                have_sign = False
                is_float = True
            elif c in 'pP' and base == 16:
                if not (have_mantissa and not have_exponent_delim and _exponent_follows(buf)):
                    break
                have_exponent_delim = True
                have_sign = False
                is_float = True
            elif (c == '0' and not have_mantissa and not have_dot and base == 10
                    and len(buf) > 2 and buf[1] in _BASE_PREFIXES
                    and buf[2] in _BASE_DIGITS[_BASE_PREFIXES[buf[1]]]):
                base = _BASE_PREFIXES[buf[1]]
                self.skip(2)
                continue
            elif c in (DECIMAL_DIGITS if have_exponent_delim else _BASE_DIGITS[base]):
                if have_exponent_delim:
                    have_exponent = True
                else:
                    have_mantissa = True
            else:
                break
            text.append(c)
            self.get_char()

        if not have_mantissa:
            raise self.error(CurlySyntaxError, "Missing mantissa in numeric constant",
                             'missing-mantissa')
        literal = ''.join(text)
        if not is_float:
            number = int(literal, base)
            if number < INT_MIN or number > INT_MAX:
                raise self.error(CurlyRangeError, f"Value '{literal}' is out of range",
                                 'out-of-range')
            return Value.integer(number)
        try:
            if base == 16:
                sign = ''
                if literal[0] in '+-':
                    sign, literal = literal[0], literal[1:]
                number = float.fromhex(f"{sign}0x{literal}")
            else:
                number = float(literal)
        except OverflowError:
            number = math.inf
        if math.isinf(number):
            raise self.error(CurlyRangeError, f"Value '{literal}' is out of range",
                             'out-of-range')
        return Value.floating(number)


def _exponent_follows(buf: str) -> bool:
    if len(buf) > 1 and buf[1] in DECIMAL_DIGITS:
        return True
    return len(buf) > 2 and buf[1] in '+-' and buf[2] in DECIMAL_DIGITS


class OutputStream:
    """Text sink receiving rendered output."""

    def __init__(self, sink: TextIO, name: Optional[str] = None, close_sink: bool = False,
                 detach_sink: bool = False):
        self.sink = sink
        self.name = name or '<output>'
        self.close_sink = close_sink
        # wrappers around a borrowed binary buffer are detached, not closed
        self.detach_sink = detach_sink

    @classmethod
    def to_string(cls) -> 'OutputStream':
        return cls(io.StringIO(), '<string>')

    @classmethod
    def from_path(cls, path, encoding: str = 'utf-8') -> 'OutputStream':
        try:
            sink = open(path, 'w', encoding=encoding, newline='')
        except (OSError, LookupError) as e:
            raise CurlyIOError(f"Failed to open '{path}' for writing: {e}", 'open-failed') from e
        return cls(sink, str(path), close_sink=True)

    @classmethod
    def from_stdout(cls, encoding: Optional[str] = None) -> 'OutputStream':
        """Standard output, encoded with ``encoding`` when one is given."""
        if encoding is None or not hasattr(sys.stdout, 'buffer'):
            return cls(sys.stdout, '<stdout>')
        sys.stdout.flush()
        try:
            sink = io.TextIOWrapper(sys.stdout.buffer, encoding=encoding, newline='')
        except LookupError as e:
            raise CurlyIOError(f"Failed to open standard output: {e}", 'open-failed') from e
        return cls(sink, '<stdout>', detach_sink=True)

    def write(self, text: str) -> None:
        try:
            self.sink.write(text)
        except (OSError, UnicodeEncodeError) as e:
            raise CurlyIOError(f"Failed to write to {self.name}: {e}", 'write-failed') from e

    def getvalue(self) -> str:
        return self.sink.getvalue()

    def flush(self) -> None:
        try:
            self.sink.flush()
        except OSError as e:
            raise CurlyIOError(f"Failed to flush {self.name}: {e}", 'write-failed') from e

    def close(self) -> None:
        if self.close_sink:
            self.sink.close()
            return
        self.flush()
        if self.detach_sink:
            self.sink.detach()
            self.detach_sink = False

    def __enter__(self) -> 'OutputStream':
        return self

    def __exit__(self, *exc) -> None:
        self.close()
