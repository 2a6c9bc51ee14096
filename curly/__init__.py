# Curly template engine
# Templates interleave literal text with {expressions}, {if}/{else}/{end}
# conditionals and {for x in array}/{end} loops, rendered against an
# environment of typed symbols.
from .environment import Environment
from .errors import CurlyError, CurlyEvalError, CurlyIOError, CurlyRangeError, CurlySyntaxError
from .filters import populate_filters
from .interpreter import Interpreter, evaluate_string, render_path, render_string
from .lexer import lex, lex_path, lex_string
from .lexer_expr import lex_expression, lex_expression_string
from .stream import InputStream, OutputStream
from .types import Value

__all__ = [
    'Environment',
    'CurlyError',
    'CurlyEvalError',
    'CurlyIOError',
    'CurlyRangeError',
    'CurlySyntaxError',
    'populate_filters',
    'Interpreter',
    'evaluate_string',
    'render_path',
    'render_string',
    'lex',
    'lex_path',
    'lex_string',
    'lex_expression',
    'lex_expression_string',
    'InputStream',
    'OutputStream',
    'Value',
]
