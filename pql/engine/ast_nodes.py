"""AST data classes for parsed ticket queries."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Union

ComparisonOperator = Literal["=", "!=", ">", "<", ">=", "<="]
ValueType = Literal["string", "number", "date", "relative_date"]


@dataclass(frozen=True)
class ComparisonNode:
    """A single ``field <op> value`` comparison.

    ``value`` is a ``str`` for string and relative-date values (``"-7d"``),
    an ``int`` for numbers and a UTC ``datetime`` for absolute dates.
    """

    field: str
    operator: ComparisonOperator
    value: str | int | datetime
    value_type: ValueType


@dataclass(frozen=True)
class LogicalNode:
    """Binary ``AND`` / ``OR`` of two sub-expressions."""

    operator: Literal["AND", "OR"]
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class NotNode:
    """Logical negation of a sub-expression."""

    operand: ASTNode


@dataclass(frozen=True)
class InNode:
    """``field IN (...)`` or ``field NOT IN (...)``."""

    field: str
    values: tuple[str | int, ...]
    negated: bool = False


@dataclass(frozen=True)
class IsEmptyNode:
    """``field IS EMPTY`` or ``field IS NOT EMPTY``."""

    field: str
    negated: bool = False


ASTNode = Union[ComparisonNode, LogicalNode, NotNode, InNode, IsEmptyNode]


def iter_fields(node: ASTNode) -> Iterator[str]:
    """Yield every field name referenced in a tree, left to right."""
    # Explicit stack: long AND/OR chains make deep left-leaning trees
    stack: list[ASTNode] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, LogicalNode):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, NotNode):
            stack.append(current.operand)
        else:
            yield current.field


def ast_to_dict(node: ASTNode) -> dict[str, Any]:
    """Render a tree as JSON-compatible nested dicts."""
    if isinstance(node, ComparisonNode):
        value: Any = node.value
        if isinstance(value, datetime):
            value = value.date().isoformat()
        return {
            "type": "comparison",
            "field": node.field,
            "operator": node.operator,
            "value": value,
            "valueType": node.value_type,
        }
    if isinstance(node, LogicalNode):
        return {
            "type": "logical",
            "operator": node.operator,
            "left": ast_to_dict(node.left),
            "right": ast_to_dict(node.right),
        }
    if isinstance(node, NotNode):
        return {"type": "not", "operand": ast_to_dict(node.operand)}
    if isinstance(node, InNode):
        return {
            "type": "in",
            "field": node.field,
            "values": list(node.values),
            "negated": node.negated,
        }
    return {"type": "is_empty", "field": node.field, "negated": node.negated}
