"""
Architecture Inference
======================
Rule-based classification of a backend from the shape and performance
of its output.

Rules are evaluated in declaration order. Each rule has a predicate and
a tuple of effects:
    SetField  -- overwrites a field; when several matching rules set the
                 same field the last one wins
    AppendTo  -- extends a list field; strictly additive
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from .models import (
    ArchitectureInference,
    Complexity,
    LatencyCategory,
    ModelType,
    PatternAnalysis,
    PerformanceMetrics,
    ProcessingStrategy,
    ProcessingStrategyInference,
    SizeCategory,
    TokenAnalysis,
)

logger = logging.getLogger(__name__)


# ─── Rule Machinery ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SetField:
    field: str
    value: Any


@dataclass(frozen=True)
class AppendTo:
    field: str
    values: tuple


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Callable[[Any], bool]
    effects: tuple


def evaluate_rules(rules, facts, state: dict) -> dict:
    """
    Apply every rule whose predicate holds for `facts` to `state`.

    The names of matching rules are appended to state["matched_rules"].
    Returns the same (mutated) state dict.
    """
    for rule in rules:
        if not rule.predicate(facts):
            continue
        state["matched_rules"].append(rule.name)
        for effect in rule.effects:
            if isinstance(effect, SetField):
                state[effect.field] = effect.value
            elif isinstance(effect, AppendTo):
                state[effect.field].extend(effect.values)
            else:
                raise TypeError(f"Unknown rule effect: {effect!r}")
    return state


# ─── Architecture Rules ───────────────────────────────────────────────────────


# Rules 1 and 2 can both match; the deep-hierarchy guess then replaces
# the layout-aware one.
ARCHITECTURE_RULES = (
    Rule(
        name="layout-coordinates",
        predicate=lambda p: p.has_elements_array and p.has_coordinates,
        effects=(
            SetField("model_type", ModelType.LAYOUT_AWARE_TRANSFORMER),
            SetField("confidence", 0.8),
            AppendTo("characteristics", ("Preserves spatial layout information",)),
            AppendTo(
                "likely_components",
                ("Vision encoder", "Layout encoder", "Text decoder"),
            ),
        ),
    ),
    Rule(
        name="deep-hierarchy",
        predicate=lambda p: p.has_hierarchy and p.structure_depth > 3,
        effects=(
            SetField("model_type", ModelType.VISION_BASED_TRANSFORMER),
            SetField("confidence", 0.75),
            AppendTo("characteristics", ("Hierarchical structure understanding",)),
            AppendTo("likely_components", ("Vision Transformer (ViT)", "Decoder")),
        ),
    ),
    Rule(
        name="page-oriented",
        predicate=lambda p: not p.has_elements_array and p.has_pages_array,
        effects=(
            SetField("model_type", ModelType.OCR_PIPELINE),
            SetField("confidence", 0.7),
            AppendTo("characteristics", ("Page-oriented processing",)),
            AppendTo(
                "likely_components",
                ("OCR engine", "Text extraction", "Post-processing"),
            ),
        ),
    ),
    Rule(
        name="multi-modal",
        predicate=lambda p: p.table_detection and p.image_detection,
        effects=(
            AppendTo(
                "characteristics",
                ("Multi-modal understanding (text + tables + images)",),
            ),
            AppendTo("likely_components", ("Multi-modal encoder",)),
        ),
    ),
)


def infer_architecture(
    pattern: PatternAnalysis,
    rules=ARCHITECTURE_RULES,
) -> ArchitectureInference:
    """Guess the backend's model architecture from its output pattern."""
    state = evaluate_rules(rules, pattern, ArchitectureInference().model_dump())
    inference = ArchitectureInference(**state)
    logger.info(
        f"Architecture: {inference.model_type.value} "
        f"(confidence {inference.confidence}, rules={inference.matched_rules})"
    )
    return inference


# ─── Strategy Rules ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StrategyFacts:
    performance: PerformanceMetrics
    tokens: TokenAnalysis


STRATEGY_RULES = (
    Rule(
        name="fast-and-simple",
        predicate=lambda f: (
            f.performance.latency_category == LatencyCategory.FAST
            and f.tokens.complexity == Complexity.SIMPLE
        ),
        effects=(
            SetField("strategy", ProcessingStrategy.LIGHTWEIGHT_PROCESSING),
            AppendTo("reasoning", (
                "Fast response time with simple structure suggests "
                "optimized pipeline",
            )),
        ),
    ),
    Rule(
        name="slow-and-complex",
        predicate=lambda f: (
            f.performance.latency_category == LatencyCategory.SLOW
            and f.tokens.complexity == Complexity.COMPLEX
        ),
        effects=(
            SetField("strategy", ProcessingStrategy.COMPREHENSIVE_ANALYSIS),
            AppendTo("reasoning", (
                "Longer processing time with detailed output suggests "
                "thorough document understanding",
            )),
        ),
    ),
    Rule(
        name="large-response",
        predicate=lambda f: f.performance.size_category in (
            SizeCategory.LARGE, SizeCategory.VERY_LARGE,
        ),
        effects=(
            AppendTo("reasoning", (
                "Large response indicates detailed metadata and "
                "coordinates preservation",
            )),
        ),
    ),
    Rule(
        name="many-arrays",
        predicate=lambda f: f.tokens.array_count > 5,
        effects=(
            AppendTo("reasoning", (
                "Multiple arrays suggest element-wise structured extraction",
            )),
        ),
    ),
)


def infer_processing_strategy(
    performance: PerformanceMetrics,
    tokens: TokenAnalysis,
    rules=STRATEGY_RULES,
) -> ProcessingStrategyInference:
    """Guess how much work the backend does per document."""
    state = evaluate_rules(
        rules,
        StrategyFacts(performance, tokens),
        ProcessingStrategyInference().model_dump(),
    )
    inference = ProcessingStrategyInference(**state)
    logger.info(
        f"Strategy: {inference.strategy.value} (rules={inference.matched_rules})"
    )
    return inference
