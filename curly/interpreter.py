"""Evaluator and renderer for Curly templates.

The :class:`Interpreter` evaluates expression trees against an
:class:`~curly.environment.Environment` and walks template trees,
writing literal data and stringified expression results to an
:class:`~curly.stream.OutputStream`.

Both operands of every operator are always evaluated, left first; ``&&``
and ``||`` do not short-circuit. ``for`` loops push each element of the
iterated array under the loop variable and pop it again once the body
has been rendered, even if rendering failed.
"""

from __future__ import annotations

import sys
from typing import Optional

from .ast import (
    BinaryOp, Data, ExprStmt, ForStmt, Ident, IfStmt, Literal, Node, Template,
    dump_tree, expr_to_string,
)
from .environment import Environment
from .errors import CurlyEvalError, CurlyRangeError
from .lexer import lex_path, lex_string
from .lexer_expr import lex_expression_string
from .stream import OutputStream
from .types import (
    ARRAY, FILTER, FLOAT, INT, STRING, Value, float_eq, int_in_range, is_truthy,
)

# Longest string '*' may build
MAX_STRING_LENGTH = 2 ** 31 - 1

COMPARISONS = {
    '==': lambda r: r == 0,
    '!=': lambda r: r != 0,
    '<': lambda r: r < 0,
    '<=': lambda r: r <= 0,
    '>': lambda r: r > 0,
    '>=': lambda r: r >= 0,
}


def too_deep() -> CurlyEvalError:
    # long operator chains fold into left-deep trees walked recursively
    return CurlyEvalError("Expression or template nested too deeply to evaluate", 'nesting-too-deep')


class Interpreter:
    """Renders template trees."""
    def __init__(self, debug_level: int = 0, debug_file: Optional[str] = None):
        self.debug_level = debug_level
        self.debug_fp = open(debug_file, 'w', encoding='utf-8') if debug_level > 0 and debug_file else None

    def debug(self, msg: str):
        if self.debug_level > 0:
            if self.debug_fp:
                self.debug_fp.write(msg + '\n')
                self.debug_fp.flush()
            else:
                print(msg, file=sys.stderr)

    def close(self) -> None:
        if self.debug_fp:
            self.debug_fp.close()
            self.debug_fp = None

    def __enter__(self) -> 'Interpreter':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # Public API
    def render(self, template: Template, env: Environment, output: OutputStream) -> None:
        try:
            if self.debug_level >= 4:
                self.debug(dump_tree(template))
            self.execute_block(template.body, env, output)
        except RecursionError:
            raise too_deep() from None

    def render_to_string(self, template: Template, env: Environment) -> str:
        output = OutputStream.to_string()
        self.render(template, env, output)
        return output.getvalue()

    def eval_value(self, expr: Node, env: Environment) -> Value:
        try:
            return self.evaluate(expr, env)
        except RecursionError:
            raise too_deep() from None

    def eval_bool(self, expr: Node, env: Environment) -> bool:
        return is_truthy(self.evaluate(expr, env))

    # Template walking
    def execute_block(self, nodes, env: Environment, output: OutputStream) -> None:
        for node in nodes:
            self.execute(node, env, output)

    def execute(self, node: Node, env: Environment, output: OutputStream) -> None:
        if isinstance(node, Data):
            output.write(node.text)
            return
        if isinstance(node, ExprStmt):
            output.write(self.evaluate(node.expr, env).to_string())
            return
        if isinstance(node, IfStmt):
            truthy = self.eval_bool(node.cond, env)
            if self.debug_level >= 2:
                self.debug(f"if {expr_to_string(node.cond)} -> {truthy}")
            self.execute_block(node.then_body if truthy else node.else_body, env, output)
            return
        if isinstance(node, ForStmt):
            iterable = self.evaluate(node.iterable, env)
            if iterable.kind != ARRAY:
                raise CurlyEvalError(f"Cannot iterate over value '{iterable}'", 'not-iterable')
            for item in iterable.data:
                if self.debug_level >= 2:
                    self.debug(f"for {node.var} = {item}")
                env.push(node.var, item)
                try:
                    self.execute_block(node.body, env, output)
                finally:
                    env.pop(node.var)
            return
        raise NotImplementedError(f"execute: unexpected node type {type(node)}")

    # Expressions
    def evaluate(self, node: Node, env: Environment) -> Value:
        if isinstance(node, Literal):
            value = node.value
        elif isinstance(node, Ident):
            value = env.lookup(node.name)
            if value is None:
                raise CurlyEvalError(f"Symbol '{node.name}' not found in the environment",
                                     'symbol-not-found')
        elif isinstance(node, BinaryOp):
            left = self.evaluate(node.left, env)
            right = self.evaluate(node.right, env)
            value = self.apply_binary_op(node.op, left, right)
        else:
            raise NotImplementedError(f"evaluate: unexpected node type {type(node)}")
        for index in node.indices:
            value = self.apply_index(value, index, env)
        # literals and environment values are shared, hand out a copy
        value = value.copy()
        if self.debug_level >= 3:
            self.debug(f"eval {expr_to_string(node)} -> {value}")
        return value

    def apply_index(self, value: Value, index: Node, env: Environment) -> Value:
        if value.kind != ARRAY:
            raise CurlyEvalError(f"Value '{value}' cannot be indexed", 'not-indexable')
        position = self.evaluate(index, env).converted(INT)
        if position is None:
            raise CurlyEvalError(f"Cannot convert index of value '{value}' to integer",
                                 'invalid-index')
        item = value.array_index(position.data)
        if item is None:
            raise CurlyEvalError(f"Cannot index value '{value}' at {position.data}",
                                 'index-out-of-range')
        return item

    def is_truthy(self, value: Value) -> bool:
        return is_truthy(value)

    def to_float(self, op: str, a: Value, b: Value):
        fa = a.converted(FLOAT)
        fb = b.converted(FLOAT)
        if fa is None or fb is None:
            raise self.invalid_operands(op, a, b)
        return fa.data, fb.data

    def to_int(self, op: str, a: Value, b: Value):
        ia = a.converted(INT)
        ib = b.converted(INT)
        if ia is None or ib is None:
            raise self.invalid_operands(op, a, b)
        return ia.data, ib.data

    def integer_result(self, op: str, a: Value, b: Value, number: int) -> Value:
        if not int_in_range(number):
            raise CurlyRangeError(f"Result of '{a} {op} {b}' does not fit an Integer", 'out-of-range')
        return Value.integer(number)

    def invalid_operands(self, op: str, a: Value, b: Value) -> CurlyEvalError:
        return CurlyEvalError(f"Invalid operands for operator '{op}': {a.kind} '{a}' and {b.kind} '{b}'",
                              'invalid-operands')

    def apply_binary_op(self, op: str, a: Value, b: Value) -> Value:
        if op == '+':
            if a.kind == ARRAY:
                result = a.copy()
                if b.kind == ARRAY:
                    for item in b.data:
                        result.array_append(item)
                else:
                    result.array_append(b)
                return result
            if a.kind == INT and b.kind == INT:
                return self.integer_result(op, a, b, a.data + b.data)
            if a.kind == STRING or b.kind == STRING:
                if a.kind == ARRAY or b.kind == ARRAY:
                    raise CurlyEvalError(f"Operator '+' cannot be used with {a.kind} and {b.kind}",
                                         'invalid-operands')
                return Value.string(a.to_string() + b.to_string())
            fa, fb = self.to_float(op, a, b)
            return Value.floating(fa + fb)
        if op == '-':
            fa, fb = self.to_float(op, a, b)
            return Value.floating(fa - fb)
        if op == '*':
            if a.kind == ARRAY or b.kind == ARRAY:
                raise CurlyEvalError("Cannot multiply arrays", 'invalid-operands')
            if a.kind == STRING or b.kind == STRING:
                return self.repeat_string(a, b)
            if a.kind == FLOAT or b.kind == FLOAT:
                fa, fb = self.to_float(op, a, b)
                return Value.floating(fa * fb)
            ia, ib = self.to_int(op, a, b)
            return self.integer_result(op, a, b, ia * ib)
        if op == '/':
            fa, fb = self.to_float(op, a, b)
            if float_eq(fb, 0.0):
                raise CurlyEvalError("Division by zero", 'division-by-zero')
            return Value.floating(fa / fb)
        if op == '%':
            ia, ib = self.to_int(op, a, b)
            if ib == 0:
                raise CurlyEvalError("Division by zero through modulo", 'division-by-zero')
            # remainder truncates toward zero, its sign follows the dividend
            remainder = abs(ia) % abs(ib)
            return Value.integer(-remainder if ia < 0 else remainder)
        if op in COMPARISONS:
            return Value.integer(1 if COMPARISONS[op](self.compare(a, b)) else 0)
        if op == '&&':
            return Value.integer(1 if self.is_truthy(a) and self.is_truthy(b) else 0)
        if op == '||':
            return Value.integer(1 if self.is_truthy(a) or self.is_truthy(b) else 0)
        if op == '|':
            return self.apply_filter(a, b)
        raise CurlyEvalError(f"Unknown operator '{op}'", 'unknown-operator')

    def repeat_string(self, a: Value, b: Value) -> Value:
        text, count = (a, b) if a.kind == STRING else (b, a)
        if not count.is_number:
            raise CurlyEvalError("Cannot multiply a string by something not a number",
                                 'invalid-operands')
        times = count.converted(INT)
        if times is None:
            raise CurlyEvalError(f"Cannot multiply a string by non-integer value '{count}'",
                                 'invalid-operands')
        n = times.data
        if n < 1:
            return Value.string('')
        if n == 1:
            return Value.string(text.data)
        if len(text.data) * n > MAX_STRING_LENGTH:
            raise CurlyRangeError(f"Cannot repeat a string of length {len(text.data)} {n} times",
                                  'out-of-range')
        return Value.string(text.data * n)

    def compare(self, a: Value, b: Value) -> int:
        """Three-way compare two values, returning -1, 0 or 1."""
        if a.kind == ARRAY or b.kind == ARRAY:
            if a.kind != b.kind:
                raise CurlyEvalError(f"Cannot compare {a.kind} '{a}' with {b.kind} '{b}'",
                                     'invalid-operands')
            for x, y in zip(a.data, b.data):
                result = self.compare(x, y)
                if result != 0:
                    return result
            return (len(a.data) > len(b.data)) - (len(a.data) < len(b.data))
        if a.kind == STRING or b.kind == STRING:
            sa, sb = a.to_string(), b.to_string()
            return (sa > sb) - (sa < sb)
        if a.kind == INT and b.kind == INT:
            return (a.data > b.data) - (a.data < b.data)
        fa, fb = self.to_float('compare', a, b)
        if float_eq(fa, fb):
            return 0
        return -1 if fa < fb else 1

    def apply_filter(self, value: Value, filter_value: Value) -> Value:
        if filter_value.kind != FILTER:
            raise CurlyEvalError(f"Value '{filter_value}' is not a filter", 'not-a-filter')
        if self.debug_level >= 3:
            self.debug(f"filter {filter_value.data.name} <- {value}")
        result = filter_value.data.fn(value)
        if isinstance(result, Value):
            return result
        try:
            return Value.from_python(result)
        except (TypeError, OverflowError) as e:
            raise CurlyEvalError(f"Filter '{filter_value.data.name}' returned an invalid value: {e}",
                                 'invalid-filter-result') from e


def evaluate_string(source: str, env: Optional[Environment] = None) -> Value:
    """Lex and evaluate a standalone expression."""
    return Interpreter().eval_value(lex_expression_string(source), env or Environment())


def render_string(source: str, env: Optional[Environment] = None, debug_level: int = 0) -> str:
    """Convenience function to lex and render a template held in a string."""
    template = lex_string(source)
    with Interpreter(debug_level=debug_level) as interpreter:
        return interpreter.render_to_string(template, env or Environment())


def render_path(path, env: Environment, output: OutputStream, encoding: str = 'utf-8',
                debug_level: int = 0) -> None:
    template = lex_path(path, encoding)
    with Interpreter(debug_level=debug_level) as interpreter:
        interpreter.render(template, env, output)
