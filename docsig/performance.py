"""
Performance Analyzer
====================
Latency, response-size and efficiency categorization for provider calls,
plus token-level complexity scoring of the response tree.

Buckets are left-closed / right-open:
    latency (ms):  <1000 fast | <5000 medium | <15000 slow | very-slow
    size (KB):     <10 small  | <100 medium  | <1000 large | very-large
    complexity:    <50 simple | <200 moderate | <500 complex | very-complex
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from .models import (
    Complexity,
    LatencyCategory,
    PerformanceMetrics,
    PerformanceStats,
    SizeCategory,
    TokenAnalysis,
)
from .tree import (
    MAX_DEPTH,
    MAX_NODES,
    TraversalLimitExceeded,
    is_mapping,
    is_sequence,
    kind_of,
    walk,
)

logger = logging.getLogger(__name__)


# ─── Categorization ───────────────────────────────────────────────────────────


def categorize_latency(processing_time_ms: float) -> LatencyCategory:
    if processing_time_ms < 1000:
        return LatencyCategory.FAST
    if processing_time_ms < 5000:
        return LatencyCategory.MEDIUM
    if processing_time_ms < 15000:
        return LatencyCategory.SLOW
    return LatencyCategory.VERY_SLOW


def categorize_size(response_size_bytes: int) -> SizeCategory:
    kb = response_size_bytes / 1024
    if kb < 10:
        return SizeCategory.SMALL
    if kb < 100:
        return SizeCategory.MEDIUM
    if kb < 1000:
        return SizeCategory.LARGE
    return SizeCategory.VERY_LARGE


def calculate_efficiency(processing_time_ms: float, response_size_bytes: int) -> float:
    """
    Efficiency score, lower is better.
    One second of latency weighs the same as 100KB of payload.
    """
    time_score = processing_time_ms / 1000
    size_score = response_size_bytes / 1024 / 100
    return round(time_score + size_score, 2)


def complexity_score(tokens: TokenAnalysis) -> float:
    return (
        tokens.total_keys * 0.5
        + tokens.array_count * 2
        + tokens.object_count * 1.5
        + tokens.max_array_length * 0.1
    )


def categorize_complexity(score: float) -> Complexity:
    if score < 50:
        return Complexity.SIMPLE
    if score < 200:
        return Complexity.MODERATE
    if score < 500:
        return Complexity.COMPLEX
    return Complexity.VERY_COMPLEX


# ─── Token Analysis ───────────────────────────────────────────────────────────


def analyze_tokens(
    response: Any,
    max_depth: int = MAX_DEPTH,
    max_nodes: int = MAX_NODES,
) -> TokenAnalysis:
    """
    Count keys, arrays, objects and value kinds over the whole tree.

    A tree that exceeds the traversal bounds keeps the counts gathered so
    far and carries a warning.
    """
    tokens = TokenAnalysis()

    try:
        for _key, node, _depth in walk(response, max_depth, max_nodes):
            tokens.value_kinds.add(kind_of(node))
            if is_mapping(node):
                tokens.object_count += 1
                tokens.total_keys += len(node)
            elif is_sequence(node):
                tokens.array_count += 1
                tokens.max_array_length = max(tokens.max_array_length, len(node))
    except (TraversalLimitExceeded, TypeError) as e:
        logger.warning(f"Token analysis incomplete: {e}")
        tokens.warnings.append(str(e))

    score = complexity_score(tokens)
    tokens.complexity_score = round(score, 2)
    tokens.complexity = categorize_complexity(score)
    return tokens


# ─── History & Analyzer ───────────────────────────────────────────────────────


class PerformanceHistory:
    """
    In-process record of every PerformanceMetrics produced.
    Owned by the composition root and handed to analyzers explicitly.
    """

    def __init__(self):
        self._entries: list[PerformanceMetrics] = []
        self._lock = threading.Lock()

    def record(self, metrics: PerformanceMetrics):
        with self._lock:
            self._entries.append(metrics)

    @property
    def entries(self) -> tuple[PerformanceMetrics, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Optional[PerformanceStats]:
        """Aggregate statistics, recomputed over the full history."""
        entries = self.entries
        if not entries:
            return None

        times = [m.processing_time_ms for m in entries]
        sizes = [m.response_size_bytes for m in entries]
        return PerformanceStats(
            count=len(entries),
            avg_processing_time_ms=round(sum(times) / len(times), 2),
            min_processing_time_ms=min(times),
            max_processing_time_ms=max(times),
            avg_response_size_bytes=round(sum(sizes) / len(sizes), 2),
            min_response_size_bytes=min(sizes),
            max_response_size_bytes=max(sizes),
        )


class PerformanceAnalyzer:
    """Categorizes call timings and sizes, recording each into a history."""

    def __init__(self, history: Optional[PerformanceHistory] = None):
        self.history = history if history is not None else PerformanceHistory()

    def analyze(
        self,
        processing_time_ms: float,
        response_size_bytes: int,
    ) -> PerformanceMetrics:
        """
        Categorize one call. Negative measurements (e.g. from clock skew on
        the caller's side) are clamped to 0 and logged.
        """
        if processing_time_ms < 0 or response_size_bytes < 0:
            logger.warning(
                f"Negative measurement clamped to 0: "
                f"{processing_time_ms}ms, {response_size_bytes}B"
            )
            processing_time_ms = max(processing_time_ms, 0)
            response_size_bytes = max(response_size_bytes, 0)

        metrics = PerformanceMetrics(
            processing_time_ms=processing_time_ms,
            response_size_bytes=response_size_bytes,
            latency_category=categorize_latency(processing_time_ms),
            size_category=categorize_size(response_size_bytes),
            efficiency_score=calculate_efficiency(
                processing_time_ms, response_size_bytes
            ),
        )
        self.history.record(metrics)
        logger.debug(
            f"Performance: {processing_time_ms}ms "
            f"({metrics.latency_category.value}), "
            f"{response_size_bytes}B ({metrics.size_category.value})"
        )
        return metrics
