"""
Structure Counter
=================
Heuristic per-category element counts over a provider response whose
schema is not known in advance.

Each category has an ordered tuple of accessors. Field accessors look
for an explicitly named root field (e.g. "tables"); the keyword accessor
that ends every tuple counts keyword occurrences in the serialized
response and always answers. The first accessor that answers wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from .models import StructureCounts
from .tree import get_field, is_mapping, is_sequence, serialize

logger = logging.getLogger(__name__)


class _ProbeContext:
    """Root plus a lazily built lowercase serialization of it."""

    def __init__(self, root: Any):
        self.root = root
        self._text: Optional[str] = None

    @property
    def text(self) -> str:
        if self._text is None:
            try:
                self._text = serialize(self.root).lower()
            except (TypeError, ValueError, RecursionError) as e:
                logger.warning(f"Could not serialize response for keyword scan: {e}")
                self._text = ""
        return self._text


@dataclass(frozen=True)
class FieldAccessor:
    """Counts an explicitly named root field."""
    field_name: str

    @property
    def name(self) -> str:
        return f"field:{self.field_name}"

    def probe(self, ctx: _ProbeContext) -> Optional[int]:
        value = get_field(ctx.root, self.field_name)
        if is_sequence(value):
            return len(value)
        # Falsy scalars (None, False, 0, "") count as absent
        if value is None or (not is_mapping(value) and not value):
            return None
        return 1


@dataclass(frozen=True)
class KeywordAccessor:
    """Counts keyword occurrences in the serialized response."""
    keywords: tuple[str, ...]

    @property
    def name(self) -> str:
        return "keywords:" + "|".join(self.keywords)

    @property
    def pattern(self) -> re.Pattern:
        return re.compile("|".join(re.escape(k) for k in self.keywords))

    def probe(self, ctx: _ProbeContext) -> Optional[int]:
        return len(self.pattern.findall(ctx.text))


CATEGORY_ACCESSORS: dict[str, tuple] = {
    "tables": (
        FieldAccessor("tables"),
        KeywordAccessor(("table",)),
    ),
    "images": (
        FieldAccessor("images"),
        FieldAccessor("figures"),
        KeywordAccessor(("image", "figure")),
    ),
    "charts": (
        FieldAccessor("charts"),
        KeywordAccessor(("chart",)),
    ),
    "headings": (
        FieldAccessor("headings"),
        KeywordAccessor(("heading", "title", "h1", "h2", "h3")),
    ),
    "paragraphs": (
        FieldAccessor("paragraphs"),
        KeywordAccessor(("paragraph",)),
    ),
    "lists": (
        FieldAccessor("lists"),
        KeywordAccessor(("list", "bullet")),
    ),
}


def _probe(ctx: _ProbeContext, category: str) -> tuple[str, int]:
    for accessor in CATEGORY_ACCESSORS[category]:
        count = accessor.probe(ctx)
        if count is not None:
            return accessor.name, count
    return "none", 0


def probe_category(tree: Any, category: str) -> tuple[str, int]:
    """
    Count one category and report which accessor answered.

    Returns:
        (accessor name, count); ("none", 0) for a None root.

    Raises:
        KeyError: for an unknown category.
    """
    if category not in CATEGORY_ACCESSORS:
        raise KeyError(f"Unknown structure category: {category}")
    if tree is None:
        return "none", 0
    return _probe(_ProbeContext(tree), category)


def count_structures(tree: Any) -> StructureCounts:
    """Count tables, images, charts, headings, paragraphs and lists."""
    if tree is None:
        return StructureCounts()

    ctx = _ProbeContext(tree)
    counts = {}
    for category in CATEGORY_ACCESSORS:
        accessor_name, counts[category] = _probe(ctx, category)
        logger.debug(f"{category}: {counts[category]} via {accessor_name}")

    return StructureCounts(**counts)
