"""Value model for Curly templates.

A :class:`Value` is a small tagged union holding exactly one of an
Integer, a Float, a String, an Array of values or a Filter. Values are
mutable containers: the ``set_*`` methods replace whatever the value held
before, and :meth:`Value.convert` changes the held variant in place only
when the conversion loses no information.

This module also hosts the helpers shared by the lexers and the
interpreter: float equality, canonical stringification and the
structured :class:`ErrorVal` payload carried by every Curly exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional
import math
import re


INT = 'Integer'
FLOAT = 'Float'
STRING = 'String'
ARRAY = 'Array'
FILTER = 'Filter'

INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1

# Precision used when formatting floats; enough to survive a round-trip
# through read_number for values that came from a literal.
FLOAT_FORMAT = '%.15g'

_INT_STRING = re.compile(r'\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)\Z')
_FLOAT_STRING = re.compile(
    r'\s*[+-]?(?:[0-9]+\.?[0-9]*(?:[eE][+-]?[0-9]+)?|\.[0-9]+(?:[eE][+-]?[0-9]+)?)\Z'
)
_HEX_FLOAT_STRING = re.compile(
    r'\s*[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?[0-9]+)?\Z'
)


@dataclass(frozen=True)
class Position:
    """A location inside a named character stream."""
    name: str
    line: int
    column: int
    offset: int = 0

    def __str__(self) -> str:
        return f"{self.name}:{self.line}:{self.column}"


@dataclass
class ErrorVal:
    """Structured description of a Curly failure.

    ``name`` is the error kind (``IOError``, ``SyntaxError``, ``EvalError``
    or ``RangeError``), ``code`` a short stable reason such as
    ``symbol-not-found`` and ``position`` the place in the input where the
    failure was detected, when there is one.
    """
    name: str
    message: str
    code: str = 'failed'
    position: Optional[Position] = None

    def __str__(self) -> str:
        if self.position is not None:
            return f"{self.position}: {self.message}"
        return self.message


@dataclass
class FilterFunction:
    """A named callable usable on the right-hand side of ``|``."""
    name: str
    fn: Callable[['Value'], Any]

    def __repr__(self) -> str:
        return f"<filter {self.name}>"


def float_eq(a: float, b: float) -> bool:
    """Compare two floats the way every Curly comparison does.

    The values are equal when their difference is exactly zero, which
    also holds for ``0.0`` and ``-0.0``.
    """
    return a - b == 0.0


def format_float(value: float) -> str:
    return FLOAT_FORMAT % value


def string_to_int(text: str) -> Optional[int]:
    """Parse a whole string as an integer (decimal, ``0x`` hex, ``0`` octal).

    Returns None if anything but leading blanks surrounds the number or
    if the result does not fit a signed 64-bit integer.
    """
    match = _INT_STRING.match(text)
    if match is None:
        return None
    sign, digits = match.groups()
    if digits[:2] in ('0x', '0X'):
        number = int(digits[2:], 16)
    elif len(digits) > 1 and digits[0] == '0':
        number = int(digits[1:], 8)
    else:
        number = int(digits)
    if sign == '-':
        number = -number
    if not int_in_range(number):
        return None
    return number


def int_in_range(number: int) -> bool:
    return INT_MIN <= number <= INT_MAX


def string_to_float(text: str) -> Optional[float]:
    """Parse a whole string as a finite float, decimal or ``0x`` hex."""
    if _FLOAT_STRING.match(text):
        number = float(text)
    elif _HEX_FLOAT_STRING.match(text):
        try:
            number = float.fromhex(text.strip())
        except OverflowError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


@dataclass
class Value:
    """A Curly runtime value.

    ``kind`` is one of :data:`INT`, :data:`FLOAT`, :data:`STRING`,
    :data:`ARRAY` or :data:`FILTER`; ``data`` holds the matching Python
    object (``int``, ``float``, ``str``, ``list`` of :class:`Value` or
    :class:`FilterFunction`).
    """
    kind: str = INT
    data: Any = 0

    # Convenience constructors
    @staticmethod
    def integer(value: int) -> 'Value':
        return Value(INT, int(value))

    @staticmethod
    def floating(value: float) -> 'Value':
        return Value(FLOAT, float(value))

    @staticmethod
    def string(value: str) -> 'Value':
        return Value(STRING, value)

    @staticmethod
    def array(items: Optional[List['Value']] = None) -> 'Value':
        return Value(ARRAY, list(items) if items is not None else [])

    @staticmethod
    def filter(fn: Callable[['Value'], Any], name: Optional[str] = None) -> 'Value':
        if isinstance(fn, FilterFunction):
            return Value(FILTER, fn)
        return Value(FILTER, FilterFunction(name or getattr(fn, '__name__', 'filter'), fn))

    @staticmethod
    def from_python(obj: Any) -> 'Value':
        """Build a value from a plain Python object.

        ``bool`` and ``int`` become Integers, ``float`` a Float, ``str`` a
        String, lists and tuples Arrays (recursively) and callables
        Filters. An existing :class:`Value` is deep-copied. Ints outside
        the signed 64-bit range raise :class:`OverflowError`.
        """
        if isinstance(obj, Value):
            return obj.copy()
        if isinstance(obj, bool):
            return Value.integer(int(obj))
        if isinstance(obj, int):
            if not int_in_range(obj):
                raise OverflowError(f"integer {obj} does not fit 64 bits")
            return Value.integer(obj)
        if isinstance(obj, float):
            return Value.floating(obj)
        if isinstance(obj, str):
            return Value.string(obj)
        if isinstance(obj, (list, tuple)):
            return Value.array([Value.from_python(item) for item in obj])
        if isinstance(obj, FilterFunction) or callable(obj):
            return Value.filter(obj)
        raise TypeError(f"cannot build a Curly value from {type(obj).__name__}")

    def set_int(self, value: int) -> None:
        self.kind, self.data = INT, int(value)

    def set_float(self, value: float) -> None:
        self.kind, self.data = FLOAT, float(value)

    def set_string(self, value: str) -> None:
        self.kind, self.data = STRING, value

    def set_array(self, items: List['Value']) -> None:
        self.kind, self.data = ARRAY, [item.copy() for item in items]

    def set_filter(self, fn: FilterFunction) -> None:
        self.kind, self.data = FILTER, fn

    def copy(self) -> 'Value':
        if self.kind == ARRAY:
            return Value(ARRAY, [item.copy() for item in self.data])
        # filters share their callable, everything else is immutable
        return Value(self.kind, self.data)

    @property
    def is_number(self) -> bool:
        return self.kind in (INT, FLOAT)

    # Array helpers
    def array_append(self, value: 'Value') -> None:
        self.data.append(value.copy())

    def array_prepend(self, value: 'Value') -> None:
        self.data.insert(0, value.copy())

    def array_index(self, index: int) -> Optional['Value']:
        if index < 0 or index >= len(self.data):
            return None
        return self.data[index]

    def array_length(self) -> int:
        return len(self.data)

    def convert(self, target: str) -> bool:
        """Convert this value to ``target`` in place.

        Returns False and leaves the value untouched when the conversion
        would lose information or cannot be done at all.
        """
        if self.kind == target:
            return True
        if target == STRING:
            self.set_string(self.to_string())
            return True
        if target == ARRAY:
            self.kind, self.data = ARRAY, [Value(self.kind, self.data)]
            return True
        if target == INT:
            if self.kind == FLOAT:
                if not math.isfinite(self.data) or not float_eq(self.data, float(int(self.data))):
                    return False
                if not int_in_range(int(self.data)):
                    return False
                self.set_int(int(self.data))
                return True
            if self.kind == STRING:
                number = string_to_int(self.data)
                if number is None:
                    return False
                self.set_int(number)
                return True
            return False
        if target == FLOAT:
            if self.kind == INT:
                try:
                    number = float(self.data)
                except OverflowError:
                    return False
                self.set_float(number)
                return True
            if self.kind == STRING:
                number = string_to_float(self.data)
                if number is None:
                    return False
                self.set_float(number)
                return True
            return False
        return False

    def converted(self, target: str) -> Optional['Value']:
        """Return a converted copy, or None when the conversion fails."""
        result = self.copy()
        if not result.convert(target):
            return None
        return result

    def to_string(self) -> str:
        if self.kind == INT:
            return str(self.data)
        if self.kind == FLOAT:
            return format_float(self.data)
        if self.kind == STRING:
            return self.data
        if self.kind == ARRAY:
            return '[' + ', '.join(item.to_string() for item in self.data) + ']'
        if self.kind == FILTER:
            return f"<filter {self.data.name}>"
        return str(self.data)

    def to_python(self) -> Any:
        if self.kind == ARRAY:
            return [item.to_python() for item in self.data]
        if self.kind == FILTER:
            return self.data.fn
        return self.data

    def __str__(self) -> str:
        return self.to_string()


def is_truthy(value: Value) -> bool:
    if value.kind == ARRAY:
        return len(value.data) > 0
    if value.kind == FLOAT:
        return not float_eq(value.data, 0.0)
    if value.kind == INT:
        return value.data != 0
    if value.kind == STRING:
        return len(value.data) > 0
    return True
