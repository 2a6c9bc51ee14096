"""Tree definitions for Curly templates.

A lexed template is a :class:`Template` holding a list of sibling nodes:
literal :class:`Data`, :class:`ExprStmt` whose value gets inserted, and
the :class:`IfStmt` / :class:`ForStmt` blocks nesting more nodes.

Expressions are binary trees of :class:`Literal`, :class:`Ident` and
:class:`BinaryOp` nodes. Any expression node may carry index suffixes
(``arr[i][j]``) applied to its value from left to right.

Trees are never modified once built and can be rendered any number of
times.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .types import Value


@dataclass
class Node:
    """Base class for all tree nodes."""
    pass


# Expression nodes

@dataclass
class Literal(Node):
    value: Value
    indices: List[Node] = field(default_factory=list)


@dataclass
class Ident(Node):
    name: str
    indices: List[Node] = field(default_factory=list)


@dataclass
class BinaryOp(Node):
    op: str
    left: Node
    right: Node
    indices: List[Node] = field(default_factory=list)


# Template nodes

@dataclass
class Template(Node):
    body: List[Node]


@dataclass
class Data(Node):
    text: str


@dataclass
class ExprStmt(Node):
    expr: Node


@dataclass
class IfStmt(Node):
    cond: Node
    then_body: List[Node]
    else_body: List[Node] = field(default_factory=list)


@dataclass
class ForStmt(Node):
    var: str
    iterable: Node
    body: List[Node]


def expr_to_string(node: Node) -> str:
    """Render an expression back to a fully parenthesized source form."""
    if isinstance(node, Literal):
        if node.value.kind == 'String':
            text = '"' + node.value.data.replace('\\', '\\\\').replace('"', '\\"') + '"'
        else:
            text = node.value.to_string()
    elif isinstance(node, Ident):
        text = node.name
    elif isinstance(node, BinaryOp):
        text = f"({expr_to_string(node.left)} {node.op} {expr_to_string(node.right)})"
    else:
        raise TypeError(f"not an expression node: {type(node).__name__}")
    return text + ''.join(f"[{expr_to_string(index)}]" for index in node.indices)


def dump_tree(node: Node, depth: int = 0) -> str:
    """Return an indented, human readable dump of a template tree."""
    pad = '  ' * depth
    if isinstance(node, Template):
        return '\n'.join(dump_tree(child, depth) for child in node.body)
    if isinstance(node, Data):
        return f"{pad}data {node.text!r}"
    if isinstance(node, ExprStmt):
        return f"{pad}expr {expr_to_string(node.expr)}"
    if isinstance(node, IfStmt):
        lines = [f"{pad}if {expr_to_string(node.cond)}"]
        lines.extend(dump_tree(child, depth + 1) for child in node.then_body)
        if node.else_body:
            lines.append(f"{pad}else")
            lines.extend(dump_tree(child, depth + 1) for child in node.else_body)
        lines.append(f"{pad}end")
        return '\n'.join(lines)
    if isinstance(node, ForStmt):
        lines = [f"{pad}for {node.var} in {expr_to_string(node.iterable)}"]
        lines.extend(dump_tree(child, depth + 1) for child in node.body)
        lines.append(f"{pad}end")
        return '\n'.join(lines)
    return pad + expr_to_string(node)
