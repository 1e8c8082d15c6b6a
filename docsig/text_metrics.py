"""
Text Quality Metrics
====================
Character/word error rates and similarity between a reference text and
the text a provider extracted, plus helpers to pull plain text out of a
provider response.

Metrics return percentages rounded to 2 decimals. None means the metric
is not applicable (e.g. nothing was extracted); it is never used for a
computed zero.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from .edit_distance import distance
from .models import EvaluationMetrics, TextPatternAnalysis
from .structure_counter import count_structures
from .tree import get_field, is_mapping, is_sequence, serialize

logger = logging.getLogger(__name__)

_NON_ASCII = re.compile(r"[^\x00-\x7F]")


# ─── Metrics ──────────────────────────────────────────────────────────────────


def cer(reference: Optional[str], candidate: Optional[str]) -> Optional[float]:
    """Character Error Rate of `candidate` against `reference`."""
    if not reference or not candidate:
        return None

    ref = reference.strip()
    cand = candidate.strip()
    if not ref:
        return 0.0

    return round(distance(ref, cand) / len(ref) * 100, 2)


def wer(reference: Optional[str], candidate: Optional[str]) -> Optional[float]:
    """
    Word Error Rate of `candidate` against `reference`.

    Both texts are normalized to single-space-separated words, then the
    character edit distance between the normalized strings is divided by
    the normalized reference length. This is not a word-level alignment.
    """
    if not reference or not candidate:
        return None

    ref = " ".join(reference.split())
    cand = " ".join(candidate.split())
    if not ref:
        return 0.0

    return round(distance(ref, cand) / len(ref) * 100, 2)


def similarity(reference: Optional[str], candidate: Optional[str]) -> float:
    """Symmetric similarity in [0, 100]; 100 for two empty texts."""
    ref = (reference or "").strip()
    cand = (candidate or "").strip()

    if not ref and not cand:
        return 100.0
    if not ref or not cand:
        return 0.0

    max_len = max(len(ref), len(cand))
    return round((max_len - distance(ref, cand)) / max_len * 100, 2)


def evaluate(
    reference: Optional[str],
    candidate: Optional[str],
    response: Any = None,
) -> Optional[EvaluationMetrics]:
    """
    Bundle CER, WER, similarity and structure counts.
    Returns None when no reference text was supplied.
    """
    if not reference:
        return None

    metrics = EvaluationMetrics(
        cer=cer(reference, candidate),
        wer=wer(reference, candidate),
        text_similarity=similarity(reference, candidate) if candidate else None,
        structure_counts=count_structures(response),
    )
    logger.info(
        f"Evaluation: CER={metrics.cer} WER={metrics.wer} "
        f"similarity={metrics.text_similarity}"
    )
    return metrics


# ─── Text Extraction ──────────────────────────────────────────────────────────


def _element_text(element: Any) -> str:
    content = get_field(element, "content")
    if isinstance(content, str):
        return content
    if is_mapping(content):
        text = content.get("text")
        if isinstance(text, str) and text:
            return text
        try:
            return serialize(content)
        except (TypeError, ValueError, RecursionError) as e:
            logger.warning(f"Could not serialize element content: {e}")
    return ""


def _text_from_elements(response: Any) -> Optional[str]:
    elements = get_field(response, "elements")
    if not is_sequence(elements):
        return None
    parts = [_element_text(e) for e in elements]
    return "\n".join(p for p in parts if p.strip())


def _text_from_content(response: Any) -> Optional[str]:
    text = get_field(get_field(response, "content"), "text")
    return text if isinstance(text, str) else None


def _text_from_root(response: Any) -> Optional[str]:
    text = get_field(response, "text")
    return text if isinstance(text, str) else None


TEXT_ACCESSORS = (
    ("elements", _text_from_elements),
    ("content.text", _text_from_content),
    ("text", _text_from_root),
)


def extract_text(response: Any) -> str:
    """
    Best-effort plain text of a provider response.
    Tries each accessor in TEXT_ACCESSORS order; "" when none applies.
    """
    for name, accessor in TEXT_ACCESSORS:
        text = accessor(response)
        if text:
            logger.debug(f"Extracted {len(text)} chars via {name}")
            return text
    return ""


def analyze_text_pattern(text: str) -> TextPatternAnalysis:
    """Surface statistics of a piece of extracted text."""
    line_count = len(text.split("\n"))
    return TextPatternAnalysis(
        length=len(text),
        has_formatting="\n\n" in text or "\t" in text,
        has_special_chars=bool(_NON_ASCII.search(text)),
        line_count=line_count,
        avg_line_length=round(len(text) / line_count, 2),
    )
