"""
Pattern Analyzer
================
Detects the structural shape of a provider response: element arrays,
page arrays, spatial coordinates, parent/child linkage, element types
and nesting depth.

Analysis is best-effort. Traversal failures are logged and recorded in
PatternAnalysis.warnings, and whatever was detected up to that point is
returned.
"""

from __future__ import annotations

import logging
from typing import Any

from .models import PatternAnalysis
from .tree import (
    MAX_DEPTH,
    MAX_NODES,
    DepthLimitExceeded,
    TraversalLimitExceeded,
    get_field,
    is_container,
    is_mapping,
    is_sequence,
    walk,
)

logger = logging.getLogger(__name__)

TYPE_KEYS = ("type", "category")
COORDINATE_KEYS = ("coordinates", "bbox", "bounding_box")
HIERARCHY_KEYS = ("children", "parent_id")

TABLE_MARKERS = ("table",)
IMAGE_MARKERS = ("figure", "image")
CHART_MARKERS = ("chart",)


def _carries(element: dict, keys: tuple[str, ...]) -> bool:
    """True if the element has a non-empty value under any of keys."""
    for key in keys:
        value = element.get(key)
        if value is None or value is False:
            continue
        if isinstance(value, (str, list, tuple, dict)) and not value:
            continue
        return True
    return False


def _declared_type(element: dict):
    for key in TYPE_KEYS:
        value = element.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _any_type_contains(types: set[str], markers: tuple[str, ...]) -> bool:
    return any(
        marker in t.lower()
        for t in types
        for marker in markers
    )


class PatternAnalyzer:
    """
    Structural shape detection over schema-less response trees.
    Stateless apart from its traversal bounds; safe to share.
    """

    def __init__(self, max_depth: int = MAX_DEPTH, max_nodes: int = MAX_NODES):
        self.max_depth = max_depth
        self.max_nodes = max_nodes

    def analyze(self, response: Any) -> PatternAnalysis:
        """
        Analyze the output structure of one provider response.

        Args:
            response: The raw response tree.

        Returns:
            PatternAnalysis; never raises for malformed input.
        """
        analysis = PatternAnalysis()

        try:
            elements = get_field(response, "elements")
            if is_sequence(elements):
                analysis.has_elements_array = True
                self._scan_elements(elements, analysis)

            analysis.has_pages_array = is_sequence(get_field(response, "pages"))

            self._track_depth(response, analysis)
        except (TraversalLimitExceeded, TypeError, AttributeError, ValueError) as e:
            logger.warning(f"Pattern analysis incomplete: {e}")
            analysis.warnings.append(str(e))

        logger.debug(
            f"Pattern: elements={analysis.has_elements_array} "
            f"pages={analysis.has_pages_array} "
            f"types={sorted(analysis.element_types)} "
            f"depth={analysis.structure_depth}"
        )
        return analysis

    def _scan_elements(self, elements, analysis: PatternAnalysis):
        if len(elements) > self.max_nodes:
            raise TraversalLimitExceeded(
                f"Elements array exceeds {self.max_nodes} entries"
            )

        for element in elements:
            if not is_mapping(element):
                continue
            element_type = _declared_type(element)
            if element_type:
                analysis.element_types.add(element_type)
            if _carries(element, COORDINATE_KEYS):
                analysis.has_coordinates = True
            if _carries(element, HIERARCHY_KEYS):
                analysis.has_hierarchy = True

        analysis.table_detection = _any_type_contains(
            analysis.element_types, TABLE_MARKERS
        )
        analysis.image_detection = _any_type_contains(
            analysis.element_types, IMAGE_MARKERS
        )
        analysis.chart_detection = _any_type_contains(
            analysis.element_types, CHART_MARKERS
        )

    def calculate_depth(self, response: Any) -> int:
        """
        Number of container levels below the root.
        {"a": 1} -> 0, {"a": {}} -> 1, {"a": [{"b": []}]} -> 3.
        """
        analysis = PatternAnalysis()
        self._track_depth(response, analysis)
        return analysis.structure_depth

    def _track_depth(self, response: Any, analysis: PatternAnalysis):
        # Updated while walking; a limit breach leaves the deepest level seen
        try:
            for _key, node, depth in walk(response, self.max_depth, self.max_nodes):
                if is_container(node) and depth > analysis.structure_depth:
                    analysis.structure_depth = depth
        except DepthLimitExceeded:
            # A container at max_depth still had children
            analysis.structure_depth = max(analysis.structure_depth, self.max_depth)
            raise
