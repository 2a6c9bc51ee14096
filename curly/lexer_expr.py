"""Expression lexer for Curly.

Expressions are read from an :class:`~curly.stream.InputStream` as a flat
list alternating operands and operators, then folded into a tree of
:class:`~curly.ast.BinaryOp` nodes by precedence climbing.

Binding strength, loosest first::

    |                                  (filter application)
    ==  !=  <  <=  >  >=  &&  ||
    +  -
    *  /  %

All operators are left-associative. Operands are numbers, string
literals, symbol names and parenthesized expressions, each optionally
followed by ``[index]`` suffixes.
"""

from __future__ import annotations

from typing import List, Optional, Union

from .ast import BinaryOp, Ident, Literal, Node
from .errors import CurlySyntaxError
from .stream import DECIMAL_DIGITS, EOF, STRING_DELIMITER, SYMBOL_CHARS, InputStream
from .types import Value

PRECEDENCE = {
    '|': 0,
    '==': 1, '!=': 1, '<': 1, '<=': 1, '>': 1, '>=': 1, '&&': 1, '||': 1,
    '+': 2, '-': 2,
    '*': 3, '/': 3, '%': 3,
}

# Two-character operators first so that '<=' never lexes as '<'
OPERATORS = sorted(PRECEDENCE, key=len, reverse=True)

# Deepest run of nested parentheses and brackets
MAX_NESTING = 64


class ExpressionLexer:
    def __init__(self, stream: InputStream):
        self.stream = stream
        self.depth = 0

    def error(self, message: str, code: str = 'syntax-error') -> CurlySyntaxError:
        return self.stream.error(CurlySyntaxError, message, code)

    def lex(self, lex_all: bool = True) -> Node:
        """Read one expression.

        With ``lex_all`` the expression must span the rest of the stream;
        otherwise reading stops before the first character that cannot
        continue it, which is left in the stream.
        """
        tokens = self.read_tokens()
        if lex_all:
            self.stream.skip_blank()
            c = self.stream.peek_char()
            if c != EOF:
                raise self.error(f"Unexpected character '{c}' after expression", 'trailing-garbage')
        return fold(tokens)

    def read_tokens(self) -> List[Union[Node, str]]:
        tokens: List[Union[Node, str]] = [self.read_operand(first=True)]
        while True:
            self.stream.skip_blank()
            op = self.read_operator()
            if op is None:
                return tokens
            tokens.append(op)
            tokens.append(self.read_operand(first=False))

    def read_operator(self) -> Optional[str]:
        buf = self.stream.peek(2)
        for op in OPERATORS:
            if buf.startswith(op):
                self.stream.skip(len(op))
                return op
        return None

    def read_operand(self, first: bool) -> Node:
        stream = self.stream
        stream.skip_blank()
        buf = stream.peek(2)
        c = buf[:1]
        if c == '(':
            stream.get_char()
            operand = self.lex_nested()
            stream.skip_blank()
            if stream.get_char() != ')':
                raise self.error("Missing closing parenthesis", 'missing-parenthesis')
        elif c == STRING_DELIMITER:
            operand = Literal(Value.string(stream.read_string_literal()))
        elif c != EOF and (c in DECIMAL_DIGITS or c == '.'
                           or (c in '+-' and buf[1:2] != '' and buf[1:2] in DECIMAL_DIGITS)):
            value = stream.read_number()
            follow = stream.peek_char()
            if follow != EOF and follow in SYMBOL_CHARS:
                raise self.error("Invalid numeric constant", 'invalid-number')
            operand = Literal(value)
        elif c != EOF and c in SYMBOL_CHARS:
            operand = Ident(stream.read_symbol())
        elif first:
            raise self.error("No valid operand at start of expression", 'missing-operand')
        else:
            raise self.error("Missing operand", 'missing-operand')
        operand.indices = self.read_indices()
        return operand

    def read_indices(self) -> List[Node]:
        indices = []
        while True:
            self.stream.skip_blank()
            if self.stream.peek_char() != '[':
                return indices
            self.stream.get_char()
            indices.append(self.lex_nested())
            self.stream.skip_blank()
            if self.stream.get_char() != ']':
                raise self.error("Missing closing bracket", 'missing-bracket')

    def lex_nested(self) -> Node:
        """Lex the expression inside parentheses or an index."""
        if self.depth >= MAX_NESTING:
            raise self.error(f"Expression nested deeper than {MAX_NESTING} levels",
                             'nesting-too-deep')
        self.depth += 1
        try:
            return self.lex(lex_all=False)
        finally:
            self.depth -= 1


def fold(tokens: List[Union[Node, str]]) -> Node:
    """Fold an operand/operator list into a tree, honoring precedence."""
    operands = tokens[0::2]
    operators = tokens[1::2]
    index = 0

    def climb(min_precedence: int) -> Node:
        nonlocal index
        left = operands[index]
        while index < len(operators) and PRECEDENCE[operators[index]] >= min_precedence:
            op = operators[index]
            index += 1
            # tighter operators on the right are folded first
            right = climb(PRECEDENCE[op] + 1)
            left = BinaryOp(op, left, right)
        return left

    return climb(0)


def lex_expression(stream: InputStream, lex_all: bool = True) -> Node:
    return ExpressionLexer(stream).lex(lex_all)


def lex_expression_string(text: str) -> Node:
    """Lex a complete expression held in a string."""
    return lex_expression(InputStream.from_string(text, '<expression>'), lex_all=True)
