"""Template lexer.

Turns template text into a :class:`~curly.ast.Template`. Literal text is
collected into :class:`~curly.ast.Data` nodes; ``{...}`` statements
become expression, ``if`` or ``for`` nodes. Blocks are lexed
recursively: each ``if``/``for`` lexes its body with a copy of the
current :class:`LexerState` one level deeper, and ``{else}``/``{end}``
end the body being lexed. Comparing depths once a body is done tells
whether the block was properly closed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional

from .ast import Data, ExprStmt, ForStmt, IfStmt, Node, Template
from .errors import CurlySyntaxError
from .lexer_expr import lex_expression
from .stream import EOF, ESCAPE_CHAR, InputStream

START_CHAR = '{'
END_CHAR = '}'

KEYWORD_IF = 'if'
KEYWORD_FOR = 'for'
KEYWORD_IN = 'in'
KEYWORD_ELSE = 'else'
KEYWORD_END = 'end'
# longest keyword plus one, so identifiers starting with a keyword are
# not mistaken for it
KEYWORD_PEEK_LEN = 5

# Deepest run of nested if/for blocks
MAX_BLOCK_DEPTH = 64

LAST_NONE = 'none'
LAST_IF = 'if'
LAST_ELSE = 'else'
LAST_END = 'end'


@dataclass
class LexerState:
    block_depth: int = 0
    last_statement: str = LAST_NONE


class TemplateLexer:
    def __init__(self, stream: InputStream):
        self.stream = stream

    def error(self, message: str, code: str = 'syntax-error') -> CurlySyntaxError:
        return self.stream.error(CurlySyntaxError, message, code)

    def lex(self) -> Template:
        body = self.lex_block(LexerState())
        if not body:
            body = [Data('')]
        return Template(body)

    def lex_block(self, state: LexerState) -> List[Node]:
        nodes = []
        while True:
            node = self.read_token(state)
            if node is None:
                return nodes
            nodes.append(node)

    def read_token(self, state: LexerState) -> Optional[Node]:
        """Read the next sibling node, or None at the end of the block."""
        while True:
            c = self.stream.peek_char()
            if c == EOF:
                return None
            if c == START_CHAR:
                return self.read_statement(state)
            node = self.read_data()
            if node is not None:
                return node

    def read_data(self) -> Optional[Data]:
        chars = []
        escaped = False
        while True:
            c = self.stream.peek_char()
            if c == EOF:
                break
            if not escaped:
                if c == START_CHAR:
                    break
                if c == END_CHAR:
                    self.stream.get_char()
                    raise self.error(f"Unexpected character '{END_CHAR}' inside data block",
                                     'unexpected-character')
            self.stream.get_char()
            if escaped:
                if c not in (START_CHAR, END_CHAR, ESCAPE_CHAR):
                    chars.append(ESCAPE_CHAR)
                chars.append(c)
                escaped = False
            elif c == ESCAPE_CHAR:
                escaped = True
            else:
                chars.append(c)
        if escaped:
            chars.append(ESCAPE_CHAR)
        if not chars:
            return None
        return Data(''.join(chars))

    def read_statement(self, state: LexerState) -> Optional[Node]:
        self.stream.get_char()
        self.stream.skip_blank()
        keyword = self.stream.peek_symbol(KEYWORD_PEEK_LEN)
        if keyword == KEYWORD_IF:
            return self.read_if(state)
        if keyword == KEYWORD_FOR:
            return self.read_for(state)
        if keyword == KEYWORD_ELSE:
            return self.read_else(state)
        if keyword == KEYWORD_END:
            return self.read_end(state)
        return self.read_expr()

    def enter_block(self, state: LexerState, last_statement: str) -> LexerState:
        if state.block_depth >= MAX_BLOCK_DEPTH:
            raise self.error(f"Blocks nested deeper than {MAX_BLOCK_DEPTH} levels",
                             'nesting-too-deep')
        return replace(state, block_depth=state.block_depth + 1, last_statement=last_statement)

    def expect_end(self, what: str) -> None:
        self.stream.skip_blank()
        c = self.stream.get_char()
        if c != END_CHAR:
            found = 'EOF' if c == EOF else f"'{c}'"
            raise self.error(f"Unexpected character {found} before end of '{what}' statement",
                             'unexpected-character')

    def read_if(self, state: LexerState) -> IfStmt:
        self.stream.skip(len(KEYWORD_IF))
        cond = lex_expression(self.stream, lex_all=False)
        self.expect_end(KEYWORD_IF)
        substate = self.enter_block(state, LAST_IF)
        then_body = self.lex_block(substate)
        else_body = []
        if substate.last_statement == LAST_ELSE:
            else_body = self.lex_block(substate)
        if substate.block_depth != state.block_depth:
            raise self.error("Unclosed 'if/else' block", 'unclosed-block')
        return IfStmt(cond, then_body, else_body)

    def read_for(self, state: LexerState) -> ForStmt:
        self.stream.skip(len(KEYWORD_FOR))
        self.stream.skip_blank()
        var = self.stream.read_symbol()
        if not var:
            raise self.error("No iterator identifier for 'for' statement", 'missing-iterator')
        self.stream.skip_blank()
        if self.stream.read_symbol() != KEYWORD_IN:
            raise self.error("Missing 'in' keyword after iterator name of 'for' statement",
                             'missing-keyword')
        iterable = lex_expression(self.stream, lex_all=False)
        self.expect_end(KEYWORD_FOR)
        substate = self.enter_block(state, LAST_NONE)
        body = self.lex_block(substate)
        if substate.block_depth != state.block_depth:
            raise self.error("Unclosed 'for' block", 'unclosed-block')
        return ForStmt(var, iterable, body)

    def read_else(self, state: LexerState) -> None:
        self.stream.skip(len(KEYWORD_ELSE))
        self.expect_end(KEYWORD_ELSE)
        if state.last_statement != LAST_IF:
            raise self.error("Unmatching 'else' statement (needs an 'if' before)", 'unmatched-else')
        state.last_statement = LAST_ELSE
        return None

    def read_end(self, state: LexerState) -> None:
        self.stream.skip(len(KEYWORD_END))
        self.expect_end(KEYWORD_END)
        state.block_depth -= 1
        if state.block_depth < 0:
            raise self.error("Unmatching 'end' statement (needs an 'if' or 'for' before)",
                             'unmatched-end')
        state.last_statement = LAST_END
        return None

    def read_expr(self) -> ExprStmt:
        expr = lex_expression(self.stream, lex_all=False)
        self.stream.skip_blank()
        c = self.stream.get_char()
        if c != END_CHAR:
            found = 'EOF' if c == EOF else f"'{c}'"
            raise self.error(f"Unexpected character {found} before end of statement",
                             'unexpected-character')
        return ExprStmt(expr)


def lex(stream: InputStream) -> Template:
    return TemplateLexer(stream).lex()


def lex_string(text: str, name: Optional[str] = None) -> Template:
    return lex(InputStream.from_string(text, name))


def lex_path(path, encoding: str = 'utf-8') -> Template:
    with InputStream.from_path(path, encoding) as stream:
        return lex(stream)
