"""
Response Trees
==============
Helpers for the schema-less JSON values returned by document-parsing
backends. A response tree is one of: None, bool, int/float, str,
list of trees, dict of str -> tree.

All analyzers traverse trees through walk(), which enforces a maximum
depth and node count so cyclic or pathological input cannot run away.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

MAX_DEPTH = 64
MAX_NODES = 200_000

# Kind tags
NULL = "null"
BOOLEAN = "boolean"
NUMBER = "number"
STRING = "string"
ARRAY = "array"
OBJECT = "object"


class TraversalLimitExceeded(RuntimeError):
    """Raised by walk() when a tree is deeper or larger than allowed."""


class DepthLimitExceeded(TraversalLimitExceeded):
    """Raised by walk() when a container at max_depth still has children."""


def kind_of(value: Any) -> str:
    """Return the kind tag of a tree node."""
    if value is None:
        return NULL
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, (int, float)):
        return NUMBER
    if isinstance(value, str):
        return STRING
    if isinstance(value, (list, tuple)):
        return ARRAY
    if isinstance(value, dict):
        return OBJECT
    raise TypeError(f"Not a response tree value: {type(value).__name__}")


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_mapping(value: Any) -> bool:
    return isinstance(value, dict)


def is_container(value: Any) -> bool:
    return is_sequence(value) or is_mapping(value)


def iter_children(node: Any) -> Iterator[tuple[Any, Any]]:
    """Yield (key, child) pairs; list children are keyed by index."""
    if is_mapping(node):
        yield from node.items()
    elif is_sequence(node):
        yield from enumerate(node)


def get_field(node: Any, name: str) -> Optional[Any]:
    """Return node[name] if node is a mapping, else None."""
    if is_mapping(node):
        return node.get(name)
    return None


def walk(
    tree: Any,
    max_depth: int = MAX_DEPTH,
    max_nodes: int = MAX_NODES,
) -> Iterator[tuple[Any, Any, int]]:
    """
    Depth-first, document-order traversal of a response tree.

    Yields (key, node, depth) for every node including the root, which
    has key None and depth 0.

    Raises:
        TraversalLimitExceeded: when more than max_nodes nodes would be
            visited.
        DepthLimitExceeded: when a container at max_depth still has
            children.
    """
    stack: list[tuple[Any, Any, int]] = [(None, tree, 0)]
    visited = 0

    while stack:
        key, node, depth = stack.pop()
        visited += 1
        if visited > max_nodes:
            raise TraversalLimitExceeded(
                f"Response tree exceeds {max_nodes} nodes"
            )

        yield key, node, depth

        if not is_container(node):
            continue

        children = list(iter_children(node))
        if not children:
            continue
        if depth >= max_depth:
            raise DepthLimitExceeded(
                f"Response tree nested deeper than {max_depth} levels"
            )
        for child_key, child in reversed(children):
            stack.append((child_key, child, depth + 1))


def serialize(tree: Any) -> str:
    """Compact JSON text of a tree, used for keyword scans and sizing."""
    return json.dumps(tree, ensure_ascii=False, default=str)


def serialized_size(tree: Any) -> int:
    """UTF-8 byte length of the tree's JSON serialization."""
    return len(serialize(tree).encode("utf-8"))
