"""
Document Parser Signature Engine
================================
Heuristic analysis of raw responses from document-parsing backends.

Architecture:
    - Pattern Analyzer: Detects element/page arrays, coordinates, hierarchy, depth
    - Performance Analyzer: Categorizes latency, size and response complexity
    - Architecture Inference: Rule-based guess at the backend's model family
    - Text Metrics: CER / WER / similarity against a reference text
    - Signature Store: Append-only ledger of analyzed runs for comparison

Version: 1.0.0
"""

__version__ = "1.0.0"
