"""
Test Suite for the Analyzers
============================
Unit tests for edit distance, text metrics, structure counting, pattern
analysis, performance analysis and rule-based inference.
"""

from __future__ import annotations

import itertools
import logging

import pytest

from docsig.edit_distance import distance
from docsig.inference import (
    AppendTo,
    Rule,
    SetField,
    evaluate_rules,
    infer_architecture,
    infer_processing_strategy,
)
from docsig.models import (
    Complexity,
    LatencyCategory,
    ModelType,
    PatternAnalysis,
    ProcessingStrategy,
    SizeCategory,
    TokenAnalysis,
)
from docsig.pattern_analyzer import PatternAnalyzer
from docsig.performance import (
    PerformanceAnalyzer,
    PerformanceHistory,
    analyze_tokens,
    calculate_efficiency,
    categorize_complexity,
    categorize_latency,
    categorize_size,
)
from docsig.structure_counter import count_structures, probe_category
from docsig.text_metrics import (
    analyze_text_pattern,
    cer,
    evaluate,
    extract_text,
    similarity,
    wer,
)
from docsig.tree import TraversalLimitExceeded, kind_of, walk


LAYOUT_RESPONSE = {
    "elements": [
        {"type": "Table", "bbox": [0, 0, 100, 50], "content": "Q1 revenue"},
        {
            "type": "Figure",
            "coordinates": [{"x": 0.1, "y": 0.2}],
            "content": {"text": "Chart of sales"},
        },
    ],
}


def _nested(levels: int) -> dict:
    node: dict = {}
    for _ in range(levels):
        node = {"child": node}
    return node


# ═══════════════════════════════════════════════════════════════════════════════
# RESPONSE TREE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestResponseTree:
    """Test tagged-union helpers and bounded traversal."""

    def test_kind_tags(self):
        assert kind_of(None) == "null"
        assert kind_of(True) == "boolean"
        assert kind_of(3) == "number"
        assert kind_of(2.5) == "number"
        assert kind_of("x") == "string"
        assert kind_of([1]) == "array"
        assert kind_of({"a": 1}) == "object"

    def test_kind_of_rejects_foreign_types(self):
        with pytest.raises(TypeError):
            kind_of(object())

    def test_walk_document_order(self):
        nodes = [(key, depth) for key, _node, depth in walk({"a": [1, 2], "b": 3})]
        assert nodes == [(None, 0), ("a", 1), (0, 2), (1, 2), ("b", 1)]

    def test_walk_depth_limit(self):
        with pytest.raises(TraversalLimitExceeded):
            list(walk(_nested(10), max_depth=5))

    def test_walk_node_limit(self):
        with pytest.raises(TraversalLimitExceeded):
            list(walk(list(range(100)), max_nodes=10))

    def test_walk_cyclic_input_terminates(self):
        cyclic: dict = {}
        cyclic["self"] = cyclic
        with pytest.raises(TraversalLimitExceeded):
            list(walk(cyclic))


# ═══════════════════════════════════════════════════════════════════════════════
# EDIT DISTANCE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestEditDistance:
    """Test Levenshtein distance."""

    SAMPLES = ["", "a", "abc", "kitten", "sitting", "flaw", "lawn", "hello"]

    def test_known_values(self):
        assert distance("kitten", "sitting") == 3
        assert distance("flaw", "lawn") == 2
        assert distance("", "") == 0

    def test_identity(self):
        for s in self.SAMPLES:
            assert distance(s, s) == 0

    def test_against_empty(self):
        for s in self.SAMPLES:
            assert distance(s, "") == len(s)
            assert distance("", s) == len(s)

    def test_symmetry(self):
        for a, b in itertools.product(self.SAMPLES, repeat=2):
            assert distance(a, b) == distance(b, a)

    def test_triangle_inequality(self):
        for a, b, c in itertools.product(self.SAMPLES, repeat=3):
            assert distance(a, c) <= distance(a, b) + distance(b, c)

    def test_word_sequences(self):
        assert distance(["the", "cat"], ["the", "big", "cat"]) == 1
        assert distance(("a", "b"), ("b", "a")) == 2


# ═══════════════════════════════════════════════════════════════════════════════
# TEXT METRIC TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestTextMetrics:
    """Test CER, WER and similarity."""

    def test_cer_identical(self):
        assert cer("hello", "hello") == 0.0

    def test_cer_missing_candidate_is_not_applicable(self):
        assert cer("hello", "") is None
        assert cer("hello", None) is None
        assert cer(None, "hello") is None

    def test_cer_values(self):
        assert cer("hello", "hallo") == 20.0
        assert cer("abc", "abcd") == 33.33
        assert cer("  hello  ", "hello") == 0.0

    def test_cer_blank_reference(self):
        assert cer("   ", "abc") == 0.0

    def test_wer_normalizes_whitespace(self):
        assert wer("the cat sat", "the  cat\n  sat") == 0.0

    def test_wer_uses_characters_of_joined_words(self):
        # 1 substituted character over "the cat" (7 chars)
        assert wer("the cat", "the bat") == 14.29

    def test_wer_not_applicable(self):
        assert wer("hello", "") is None

    def test_similarity_bounds(self):
        assert similarity("abc", "abc") == 100.0
        assert similarity("abc", "xyz") == 0.0

    def test_similarity_empty_inputs(self):
        assert similarity("", "") == 100.0
        assert similarity("  ", None) == 100.0
        assert similarity("abc", "") == 0.0
        assert similarity("", "abc") == 0.0

    def test_similarity_partial_and_symmetric(self):
        assert similarity("kitten", "sitting") == 57.14
        assert similarity("sitting", "kitten") == 57.14


class TestEvaluation:
    """Test the evaluation bundle."""

    def test_no_reference(self):
        assert evaluate(None, "text", {}) is None
        assert evaluate("", "text", {}) is None

    def test_full_match(self):
        metrics = evaluate("hello", "hello", {"tables": [{}, {}]})
        assert metrics.cer == 0.0
        assert metrics.wer == 0.0
        assert metrics.text_similarity == 100.0
        assert metrics.structure_counts.tables == 2

    def test_nothing_extracted_is_not_zero(self):
        metrics = evaluate("hello", "", None)
        assert metrics.cer is None
        assert metrics.wer is None
        assert metrics.text_similarity is None
        assert metrics.model_dump()["cer"] is None


class TestTextExtraction:
    """Test extraction of plain text from provider responses."""

    def test_from_elements(self):
        response = {
            "elements": [
                {"content": "Hello"},
                {"content": {"text": "World"}},
                {"content": "   "},
                {"category": "figure"},
            ]
        }
        assert extract_text(response) == "Hello\nWorld"

    def test_from_content_text(self):
        assert extract_text({"content": {"text": "Upstage text"}}) == "Upstage text"

    def test_from_root_text(self):
        assert extract_text({"text": "plain"}) == "plain"

    def test_nothing_to_extract(self):
        assert extract_text(None) == ""
        assert extract_text([1, 2]) == ""
        assert extract_text({"elements": []}) == ""

    def test_unserializable_content_is_skipped(self, caplog):
        cyclic: dict = {}
        cyclic["self"] = cyclic
        response = {"elements": [{"content": cyclic}, {"content": "kept"}]}
        with caplog.at_level(logging.WARNING, logger="docsig"):
            assert extract_text(response) == "kept"
        assert "Could not serialize element content" in caplog.text

    def test_text_pattern(self):
        pattern = analyze_text_pattern("line one\n\nline three")
        assert pattern.length == 20
        assert pattern.line_count == 3
        assert pattern.avg_line_length == 6.67
        assert pattern.has_formatting is True
        assert pattern.has_special_chars is False

    def test_text_pattern_special_chars(self):
        pattern = analyze_text_pattern("café")
        assert pattern.has_special_chars is True
        assert pattern.has_formatting is False


# ═══════════════════════════════════════════════════════════════════════════════
# STRUCTURE COUNTER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestStructureCounter:
    """Test structured-first / keyword-fallback counting."""

    def test_none_root(self):
        counts = count_structures(None)
        assert counts.model_dump() == {
            "tables": 0,
            "images": 0,
            "charts": 0,
            "headings": 0,
            "paragraphs": 0,
            "lists": 0,
        }

    def test_named_fields(self):
        counts = count_structures({
            "tables": [{}, {}],
            "figures": [{}],
            "charts": {"a": 1},
        })
        assert counts.tables == 2
        assert counts.images == 1
        assert counts.charts == 1
        assert counts.headings == 0
        assert counts.paragraphs == 0
        assert counts.lists == 0

    def test_keyword_fallback(self):
        counts = count_structures({
            "elements": [
                {"category": "table"},
                {"category": "Table"},
                {"category": "figure"},
                {"category": "image"},
                {"category": "heading1"},
                {"category": "paragraph"},
                {"category": "list"},
            ]
        })
        assert counts.tables == 2
        assert counts.images == 2
        assert counts.charts == 0
        assert counts.headings == 1
        assert counts.paragraphs == 1
        assert counts.lists == 1

    def test_images_checked_before_figures(self):
        assert count_structures({"images": [1], "figures": [1, 2, 3]}).images == 1
        assert count_structures({"images": None, "figures": [1, 2]}).images == 2

    def test_probe_reports_accessor(self):
        assert probe_category({"tables": []}, "tables") == ("field:tables", 0)
        assert probe_category({"x": "table"}, "tables") == ("keywords:table", 1)
        assert probe_category({"figures": [1]}, "images") == ("field:figures", 1)
        assert probe_category(None, "charts") == ("none", 0)

    def test_falsy_scalar_fields_fall_back_to_keywords(self):
        assert probe_category({"tables": 0}, "tables") == ("keywords:table", 1)
        assert probe_category({"tables": False}, "tables") == ("keywords:table", 1)
        assert probe_category({"tables": ""}, "tables") == ("keywords:table", 1)
        assert probe_category({"tables": {"a": 1}}, "tables") == ("field:tables", 1)
        assert probe_category({"tables": 3}, "tables") == ("field:tables", 1)

    def test_probe_unknown_category(self):
        with pytest.raises(KeyError):
            probe_category({}, "formulas")

    def test_sequence_root_uses_keywords(self):
        counts = count_structures(["table", "chart"])
        assert counts.tables == 1
        assert counts.charts == 1


# ═══════════════════════════════════════════════════════════════════════════════
# PATTERN ANALYZER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestPatternAnalyzer:
    """Test structural shape detection."""

    def test_layout_response(self):
        analysis = PatternAnalyzer().analyze(LAYOUT_RESPONSE)
        assert analysis.has_elements_array is True
        assert analysis.has_coordinates is True
        assert analysis.has_hierarchy is False
        assert analysis.has_pages_array is False
        assert analysis.element_types == {"Table", "Figure"}
        assert analysis.table_detection is True
        assert analysis.image_detection is True
        assert analysis.chart_detection is False
        assert analysis.structure_depth == 4
        assert analysis.warnings == []

    def test_category_used_when_type_missing(self):
        analysis = PatternAnalyzer().analyze({
            "elements": [{"category": "chart", "content": {"text": "x"}}],
        })
        assert analysis.element_types == {"chart"}
        assert analysis.chart_detection is True

    def test_pages_response(self):
        analysis = PatternAnalyzer().analyze({"pages": [{"text": "a"}]})
        assert analysis.has_pages_array is True
        assert analysis.has_elements_array is False
        assert analysis.structure_depth == 2

    def test_hierarchy(self):
        analyzer = PatternAnalyzer()
        assert analyzer.analyze({
            "elements": [{"type": "section", "children": [{"type": "p"}]}],
        }).has_hierarchy is True
        assert analyzer.analyze({
            "elements": [{"type": "section", "children": []}],
        }).has_hierarchy is False
        assert analyzer.analyze({
            "elements": [{"parent_id": 0}],
        }).has_hierarchy is True

    def test_non_list_elements(self):
        analysis = PatternAnalyzer().analyze({"elements": {"a": 1}})
        assert analysis.has_elements_array is False

    def test_non_mapping_elements_are_skipped(self):
        analysis = PatternAnalyzer().analyze({"elements": ["text", 3, None]})
        assert analysis.has_elements_array is True
        assert analysis.element_types == set()

    def test_depth(self):
        analyzer = PatternAnalyzer()
        assert analyzer.calculate_depth({"a": 1}) == 0
        assert analyzer.calculate_depth({"a": {}}) == 1
        assert analyzer.calculate_depth({"a": [{"b": []}]}) == 3
        assert analyzer.calculate_depth("scalar") == 0
        assert analyzer.calculate_depth([]) == 0

    def test_malformed_roots_default(self):
        for root in (None, "text", 42, []):
            analysis = PatternAnalyzer().analyze(root)
            assert analysis.has_elements_array is False
            assert analysis.structure_depth == 0

    def test_depth_limit_keeps_partial_result(self, caplog):
        response = {
            "elements": [{"type": "table", "bbox": [1]}],
            "deep": _nested(10),
        }
        with caplog.at_level(logging.WARNING, logger="docsig"):
            analysis = PatternAnalyzer(max_depth=5).analyze(response)

        assert analysis.has_elements_array is True
        assert analysis.table_detection is True
        assert analysis.structure_depth == 5
        assert len(analysis.warnings) == 1
        assert "Pattern analysis incomplete" in caplog.text

    def test_deep_tree_past_limit_keeps_depth(self):
        response = {
            "elements": [{"type": "text", "children": [1]}],
            "deep": _nested(70),
        }
        analysis = PatternAnalyzer().analyze(response)

        assert analysis.structure_depth == 64
        assert analysis.warnings == ["Response tree nested deeper than 64 levels"]
        assert infer_architecture(analysis).model_type == ModelType.VISION_BASED_TRANSFORMER

    def test_oversized_elements_array(self):
        analysis = PatternAnalyzer(max_nodes=10).analyze({"elements": [{}] * 20})
        assert analysis.has_elements_array is True
        assert analysis.warnings

    def test_cyclic_input(self):
        cyclic: dict = {"elements": []}
        cyclic["loop"] = cyclic
        analysis = PatternAnalyzer().analyze(cyclic)
        assert analysis.warnings


# ═══════════════════════════════════════════════════════════════════════════════
# PERFORMANCE ANALYZER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestPerformanceCategories:
    """Test left-closed bucket boundaries."""

    def test_latency(self):
        assert categorize_latency(0) == LatencyCategory.FAST
        assert categorize_latency(999) == LatencyCategory.FAST
        assert categorize_latency(1000) == LatencyCategory.MEDIUM
        assert categorize_latency(4999) == LatencyCategory.MEDIUM
        assert categorize_latency(5000) == LatencyCategory.SLOW
        assert categorize_latency(14999) == LatencyCategory.SLOW
        assert categorize_latency(15000) == LatencyCategory.VERY_SLOW

    def test_size(self):
        assert categorize_size(10 * 1024 - 1) == SizeCategory.SMALL
        assert categorize_size(10 * 1024) == SizeCategory.MEDIUM
        assert categorize_size(100 * 1024) == SizeCategory.LARGE
        assert categorize_size(1000 * 1024) == SizeCategory.VERY_LARGE

    def test_efficiency(self):
        assert calculate_efficiency(1000, 102400) == 2.0
        assert calculate_efficiency(2350, 51200) == 2.85
        assert calculate_efficiency(0, 0) == 0.0

    def test_complexity(self):
        assert categorize_complexity(49.99) == Complexity.SIMPLE
        assert categorize_complexity(50) == Complexity.MODERATE
        assert categorize_complexity(199.9) == Complexity.MODERATE
        assert categorize_complexity(200) == Complexity.COMPLEX
        assert categorize_complexity(500) == Complexity.VERY_COMPLEX


class TestTokenAnalysis:
    """Test full-tree token counting."""

    def test_counts(self):
        tokens = analyze_tokens({"a": 1, "b": [1, 2, {"c": None}], "d": "x"})
        assert tokens.total_keys == 4
        assert tokens.array_count == 1
        assert tokens.object_count == 2
        assert tokens.max_array_length == 3
        assert tokens.value_kinds == {"object", "number", "array", "null", "string"}
        assert tokens.complexity_score == 7.3
        assert tokens.complexity == Complexity.SIMPLE

    def test_boolean_is_its_own_kind(self):
        assert analyze_tokens({"flag": True}).value_kinds == {"object", "boolean"}

    def test_score_of_exactly_fifty_is_moderate(self):
        # 97 keys * 0.5 + 1 object * 1.5 = 50
        tokens = analyze_tokens({f"k{i}": i for i in range(97)})
        assert tokens.complexity_score == 50.0
        assert tokens.complexity == Complexity.MODERATE

    def test_node_limit_keeps_partial_counts(self):
        tokens = analyze_tokens({"items": list(range(50))}, max_nodes=10)
        assert tokens.warnings
        assert tokens.object_count == 1
        assert tokens.array_count == 1

    def test_foreign_value_is_absorbed(self):
        tokens = analyze_tokens({"when": object()})
        assert tokens.warnings
        assert tokens.object_count == 1

    def test_kinds_serialized_sorted(self):
        data = analyze_tokens({"b": "x", "a": 1}).model_dump()
        assert data["value_kinds"] == ["number", "object", "string"]


class TestPerformanceHistory:
    """Test the injected performance history."""

    def test_empty_stats(self):
        assert PerformanceHistory().stats() is None

    def test_analyzer_records_into_history(self):
        history = PerformanceHistory()
        analyzer = PerformanceAnalyzer(history)
        analyzer.analyze(1000, 2048)
        analyzer.analyze(3000, 4096)

        assert len(history) == 2
        stats = history.stats()
        assert stats.count == 2
        assert stats.avg_processing_time_ms == 2000.0
        assert stats.min_processing_time_ms == 1000
        assert stats.max_processing_time_ms == 3000
        assert stats.avg_response_size_bytes == 3072.0
        assert stats.min_response_size_bytes == 2048
        assert stats.max_response_size_bytes == 4096

    def test_separate_histories_are_isolated(self):
        first = PerformanceAnalyzer(PerformanceHistory())
        second = PerformanceAnalyzer(PerformanceHistory())
        first.analyze(10, 10)
        assert len(first.history) == 1
        assert len(second.history) == 0

    def test_metrics(self):
        metrics = PerformanceAnalyzer().analyze(2350, 51200)
        assert metrics.latency_category == LatencyCategory.MEDIUM
        assert metrics.size_category == SizeCategory.MEDIUM
        assert metrics.efficiency_score == 2.85

    def test_negative_measurements_are_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="docsig"):
            metrics = PerformanceAnalyzer().analyze(-5, -1)

        assert metrics.processing_time_ms == 0
        assert metrics.response_size_bytes == 0
        assert metrics.latency_category == LatencyCategory.FAST
        assert metrics.size_category == SizeCategory.SMALL
        assert "Negative measurement clamped" in caplog.text


# ═══════════════════════════════════════════════════════════════════════════════
# INFERENCE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestRuleEvaluation:
    """Test the ordered rule machinery."""

    def test_set_is_last_write_wins_and_append_is_additive(self):
        rules = (
            Rule("first", lambda f: True, (SetField("x", 1), AppendTo("items", ("a",)))),
            Rule("skipped", lambda f: False, (SetField("x", 99),)),
            Rule("second", lambda f: True, (SetField("x", 2), AppendTo("items", ("b",)))),
        )
        state = evaluate_rules(rules, None, {"x": 0, "items": [], "matched_rules": []})
        assert state["x"] == 2
        assert state["items"] == ["a", "b"]
        assert state["matched_rules"] == ["first", "second"]

    def test_unknown_effect(self):
        rules = (Rule("bad", lambda f: True, ("oops",)),)
        with pytest.raises(TypeError):
            evaluate_rules(rules, None, {"matched_rules": []})


class TestArchitectureInference:
    """Test architecture rules."""

    def test_layout_aware(self):
        inference = infer_architecture(PatternAnalysis(
            has_elements_array=True,
            has_coordinates=True,
            has_hierarchy=False,
            has_pages_array=False,
            structure_depth=1,
        ))
        assert inference.model_type == ModelType.LAYOUT_AWARE_TRANSFORMER
        assert inference.confidence == 0.8
        assert "Preserves spatial layout information" in inference.characteristics
        assert inference.likely_components == [
            "Vision encoder", "Layout encoder", "Text decoder",
        ]
        assert inference.matched_rules == ["layout-coordinates"]

    def test_default_unknown(self):
        inference = infer_architecture(PatternAnalysis())
        assert inference.model_type == ModelType.UNKNOWN
        assert inference.confidence == 0.0
        assert inference.characteristics == []
        assert inference.likely_components == []

    def test_deep_hierarchy_overwrites_layout(self):
        inference = infer_architecture(PatternAnalysis(
            has_elements_array=True,
            has_coordinates=True,
            has_hierarchy=True,
            structure_depth=4,
        ))
        assert inference.model_type == ModelType.VISION_BASED_TRANSFORMER
        assert inference.confidence == 0.75
        assert inference.characteristics == [
            "Preserves spatial layout information",
            "Hierarchical structure understanding",
        ]
        assert inference.matched_rules == ["layout-coordinates", "deep-hierarchy"]

    def test_shallow_hierarchy_does_not_match(self):
        inference = infer_architecture(PatternAnalysis(
            has_hierarchy=True, structure_depth=3,
        ))
        assert inference.model_type == ModelType.UNKNOWN

    def test_ocr_pipeline(self):
        inference = infer_architecture(PatternAnalysis(has_pages_array=True))
        assert inference.model_type == ModelType.OCR_PIPELINE
        assert inference.confidence == 0.7
        assert "OCR engine" in inference.likely_components

    def test_multi_modal_only_adds(self):
        inference = infer_architecture(PatternAnalysis(
            table_detection=True, image_detection=True,
        ))
        assert inference.model_type == ModelType.UNKNOWN
        assert inference.confidence == 0.0
        assert inference.characteristics == [
            "Multi-modal understanding (text + tables + images)",
        ]
        assert inference.likely_components == ["Multi-modal encoder"]

    def test_from_analyzed_response(self):
        pattern = PatternAnalyzer().analyze(LAYOUT_RESPONSE)
        inference = infer_architecture(pattern)
        assert inference.model_type == ModelType.LAYOUT_AWARE_TRANSFORMER
        assert inference.matched_rules == ["layout-coordinates", "multi-modal"]


class TestStrategyInference:
    """Test processing-strategy rules."""

    def test_lightweight(self):
        performance = PerformanceAnalyzer().analyze(500, 1024)
        inference = infer_processing_strategy(
            performance, TokenAnalysis(complexity=Complexity.SIMPLE)
        )
        assert inference.strategy == ProcessingStrategy.LIGHTWEIGHT_PROCESSING
        assert len(inference.reasoning) == 1

    def test_comprehensive_with_many_arrays(self):
        performance = PerformanceAnalyzer().analyze(8000, 1024)
        inference = infer_processing_strategy(
            performance,
            TokenAnalysis(complexity=Complexity.COMPLEX, array_count=6),
        )
        assert inference.strategy == ProcessingStrategy.COMPREHENSIVE_ANALYSIS
        assert inference.matched_rules == ["slow-and-complex", "many-arrays"]
        assert len(inference.reasoning) == 2

    def test_large_response_only_adds_reasoning(self):
        performance = PerformanceAnalyzer().analyze(2000, 200 * 1024)
        inference = infer_processing_strategy(
            performance, TokenAnalysis(complexity=Complexity.MODERATE)
        )
        assert inference.strategy == ProcessingStrategy.UNKNOWN
        assert inference.matched_rules == ["large-response"]
        assert "Large response" in inference.reasoning[0]

    def test_slow_but_simple_is_unknown(self):
        performance = PerformanceAnalyzer().analyze(8000, 1024)
        inference = infer_processing_strategy(
            performance, TokenAnalysis(complexity=Complexity.SIMPLE)
        )
        assert inference.strategy == ProcessingStrategy.UNKNOWN
        assert inference.reasoning == []
