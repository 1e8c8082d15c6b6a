"""
Analysis Engine
===============
Composition root that runs every analyzer over one provider response and
optionally records the outcome in the signature ledger.

Usage:
    engine = AnalysisEngine(EngineConfig(results_dir="results"))
    result = engine.analyze(response, processing_time_ms=2350)
    signature = engine.record(result, filename="table_report.pdf",
                              provider_id="upstage")

Data flow:
    response ─┬─> PerformanceAnalyzer ─┐
              ├─> analyze_tokens ──────┼─> infer_processing_strategy
              └─> PatternAnalyzer ─────┴─> infer_architecture
    reference text ──> text metrics (evaluate)
    everything ──> AnalysisResult ──> SignatureStore.create
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from . import storage
from .inference import infer_architecture, infer_processing_strategy
from .models import AnalysisResult, Signature
from .pattern_analyzer import PatternAnalyzer
from .performance import PerformanceAnalyzer, PerformanceHistory, analyze_tokens
from .signatures import SignatureStore, describe_input
from .text_metrics import analyze_text_pattern, evaluate, extract_text
from .tree import MAX_DEPTH, MAX_NODES, serialized_size

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the analysis engine."""

    # Signature ledger
    results_dir: Path = field(default_factory=storage.get_results_dir)
    persist_signatures: bool = True
    load_existing: bool = True

    # Traversal bounds
    max_depth: int = MAX_DEPTH
    max_nodes: int = MAX_NODES

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class AnalysisEngine:
    """
    Runs the heuristic analyzers and owns the mutable stores.

    The performance history and signature store are created here unless
    supplied, and handed to the components that use them.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        history: Optional[PerformanceHistory] = None,
        store: Optional[SignatureStore] = None,
    ):
        self.config = config or EngineConfig()
        self._setup_logging()

        self.history = history if history is not None else PerformanceHistory()
        self.performance = PerformanceAnalyzer(self.history)
        self.patterns = PatternAnalyzer(
            max_depth=self.config.max_depth,
            max_nodes=self.config.max_nodes,
        )

        if store is None:
            store = SignatureStore(
                self.config.results_dir,
                persist=self.config.persist_signatures,
            )
            if self.config.load_existing:
                store.load()
        self.store = store

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("docsig")
        package_logger.setLevel(log_level)

        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(formatter)
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)

    def analyze(
        self,
        response: Any,
        processing_time_ms: float,
        response_size_bytes: Optional[int] = None,
        reference_text: Optional[str] = None,
        extracted_text: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Analyze one provider response.

        Args:
            response: Raw response tree from the provider.
            processing_time_ms: Measured round-trip time.
            response_size_bytes: Measured payload size; defaults to the
                size of the response's JSON serialization.
            reference_text: Ground-truth text; enables evaluation metrics.
            extracted_text: Text the provider extracted; pulled from the
                response when omitted.

        Returns:
            AnalysisResult with every analysis and inference.
        """
        if response_size_bytes is None:
            response_size_bytes = self._measure_size(response)

        performance = self.performance.analyze(processing_time_ms, response_size_bytes)
        tokens = analyze_tokens(
            response,
            max_depth=self.config.max_depth,
            max_nodes=self.config.max_nodes,
        )
        pattern = self.patterns.analyze(response)

        if extracted_text is None:
            extracted_text = extract_text(response)

        result = AnalysisResult(
            performance=performance,
            tokens=tokens,
            pattern=pattern,
            architecture=infer_architecture(pattern),
            strategy=infer_processing_strategy(performance, tokens),
            evaluation=evaluate(reference_text, extracted_text, response),
            text_pattern=analyze_text_pattern(extracted_text) if extracted_text else None,
        )

        logger.info(
            f"Analysis complete: {performance.latency_category.value} / "
            f"{tokens.complexity.value} / {result.architecture.model_type.value}"
        )
        return result

    def _measure_size(self, response: Any) -> int:
        """Serialized size of the response, or 0 if it cannot be serialized."""
        try:
            return serialized_size(response)
        except (TypeError, ValueError, RecursionError) as e:
            logger.warning(f"Could not measure response size, using 0: {e}")
            return 0

    def record(
        self,
        result: AnalysisResult,
        filename: str,
        provider_id: str,
        file_size_bytes: int = 0,
    ) -> Signature:
        """Append an analysis to the signature ledger."""
        descriptor = describe_input(filename, file_size_bytes)
        return self.store.create(descriptor, result, provider_id)
