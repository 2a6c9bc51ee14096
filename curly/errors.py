from typing import Optional
from curly.types import ErrorVal, Position


class CurlyError(Exception):
    """Base exception for every Curly failure.

    The structured description is available as ``err``; subclasses only
    differ by the kind they record so callers can catch one family.
    """
    kind = 'Error'

    def __init__(self, message: str, code: str = 'failed', position: Optional[Position] = None):
        self.err = ErrorVal(self.kind, message, code, position)
        super().__init__(str(self.err))

    @property
    def code(self) -> str:
        return self.err.code

    @property
    def position(self) -> Optional[Position]:
        return self.err.position


class CurlyIOError(CurlyError):
    """Reading from or writing to a stream failed."""
    kind = 'IOError'


class CurlySyntaxError(CurlyError):
    """Malformed template, expression, number or environment description."""
    kind = 'SyntaxError'


class CurlyEvalError(CurlyError):
    """Evaluation of an expression or rendering of a template failed."""
    kind = 'EvalError'


class CurlyRangeError(CurlyError):
    """A number or a computed length does not fit its representation."""
    kind = 'RangeError'
