"""
Signature Store
===============
Append-only ledger of analyzed runs ("signatures"), mirrored to disk as
one JSON record per signature.

The in-memory log is authoritative. Disk writes are best-effort: a failed
write is logged and the signature stays in the log. Appends and writes
happen under one lock, so concurrent callers never interleave records.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from . import storage
from .models import (
    AnalysisResult,
    CategoryCount,
    InputCategory,
    InputDescriptor,
    ProviderSummary,
    Signature,
    SignatureComparison,
    SignatureReport,
)

logger = logging.getLogger(__name__)

# Checked in order; first keyword found in the lowercased filename wins
CATEGORY_KEYWORDS = (
    (("table",), InputCategory.SIMPLE_TABLE),
    (("rotate",), InputCategory.ROTATED_IMAGES),
    (("formula",), InputCategory.FORMULA_TABLES),
    (("multi", "lang"), InputCategory.MULTILINGUAL),
)


def categorize_input(filename: str) -> InputCategory:
    """Derive the test-document category from its filename."""
    lower = filename.lower()
    for keywords, category in CATEGORY_KEYWORDS:
        if any(k in lower for k in keywords):
            return category
    return InputCategory.GENERAL


def describe_input(filename: str, size_bytes: int = 0) -> InputDescriptor:
    """Build an InputDescriptor for an uploaded document."""
    return InputDescriptor(
        filename=filename,
        file_extension=Path(filename).suffix,
        size_bytes=size_bytes,
        category=categorize_input(filename),
    )


def compare(a: Signature, b: Signature) -> SignatureComparison:
    """Differences between two signatures, typically of two providers."""
    return SignatureComparison(
        input_matches=a.input.filename == b.input.filename,
        processing_time_diff=abs(
            a.performance.processing_time_ms - b.performance.processing_time_ms
        ),
        response_size_diff=abs(
            a.performance.response_size_bytes - b.performance.response_size_bytes
        ),
        element_types=(
            sorted(a.pattern.element_types),
            sorted(b.pattern.element_types),
        ),
        has_elements_array=(
            a.pattern.has_elements_array,
            b.pattern.has_elements_array,
        ),
        structure_depth=(a.pattern.structure_depth, b.pattern.structure_depth),
        model_types=(a.architecture.model_type, b.architecture.model_type),
        different=a.architecture.model_type != b.architecture.model_type,
    )


class SignatureStore:
    """
    Process-wide signature ledger.

    Create one per composition root and pass it to whoever records or
    reports signatures; tests build their own against a temp directory.
    """

    def __init__(
        self,
        results_dir: Optional[Union[str, Path]] = None,
        persist: bool = True,
    ):
        self.results_dir = Path(results_dir) if results_dir else storage.get_results_dir()
        self.persist = persist
        self._signatures: list[Signature] = []
        self._ids: set[str] = set()
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    # ── Ledger ────────────────────────────────────────────────────────

    @property
    def signatures(self) -> tuple[Signature, ...]:
        with self._lock:
            return tuple(self._signatures)

    def __len__(self) -> int:
        return len(self._signatures)

    def get(self, signature_id: str) -> Optional[Signature]:
        with self._lock:
            for signature in self._signatures:
                if signature.id == signature_id:
                    return signature
        return None

    compare = staticmethod(compare)

    def _next_id(self, provider_id: str) -> str:
        prefix = storage.sanitize_name(provider_id) or "provider"
        millis = int(time.time() * 1000)
        while True:
            candidate = f"{prefix}-{millis}-{next(self._sequence):04d}"
            if candidate in self._ids:
                continue
            if self.persist and storage.record_path(self.results_dir, candidate).exists():
                continue
            return candidate

    def create(
        self,
        input_descriptor: InputDescriptor,
        analyses: AnalysisResult,
        provider_id: str,
    ) -> Signature:
        """
        Record one analyzed run.

        The signature is in the log when this returns, whether or not the
        disk write succeeded.
        """
        with self._lock:
            signature = Signature(
                id=self._next_id(provider_id),
                provider_id=provider_id,
                input=input_descriptor,
                performance=analyses.performance,
                pattern=analyses.pattern,
                tokens=analyses.tokens,
                architecture=analyses.architecture,
                strategy=analyses.strategy,
                evaluation=analyses.evaluation,
            )
            self._signatures.append(signature)
            self._ids.add(signature.id)

            if self.persist:
                self._save(signature)

        logger.info(
            f"Signature created: {signature.id} "
            f"({signature.input.filename}, {signature.architecture.model_type.value})"
        )
        return signature

    def _save(self, signature: Signature):
        try:
            storage.save_record(
                self.results_dir, signature.id, signature.model_dump(mode="json")
            )
        except OSError as e:
            logger.error(f"Failed to persist signature {signature.id}: {e}")

    def load(self) -> int:
        """
        Replace the in-memory log with the records on disk.

        Returns:
            Number of signatures loaded. A missing results directory is an
            empty store; other I/O errors are logged and also leave it empty.
        """
        loaded: list[Signature] = []
        try:
            for path, data in storage.iter_records(self.results_dir):
                try:
                    loaded.append(Signature.model_validate(data))
                except ValidationError as e:
                    logger.error(f"Skipping invalid signature {path.name}: {e}")
        except FileNotFoundError:
            logger.info(f"No results directory yet: {self.results_dir}")
            loaded = []
        except OSError as e:
            logger.error(f"Failed to load signatures: {e}")
            loaded = []

        loaded.sort(key=lambda s: (s.created_at, s.id))
        with self._lock:
            self._signatures = loaded
            self._ids = {s.id for s in loaded}

        logger.info(f"Loaded {len(loaded)} signatures")
        return len(loaded)

    # ── Grouping & Reporting ──────────────────────────────────────────

    def _filtered(self, category: Optional[InputCategory]) -> tuple[Signature, ...]:
        signatures = self.signatures
        if category is None:
            return signatures
        return tuple(s for s in signatures if s.input.category == category)

    def group_by_category(
        self,
        category: Optional[InputCategory] = None,
    ) -> dict[InputCategory, list[Signature]]:
        groups: dict[InputCategory, list[Signature]] = {}
        for signature in self._filtered(category):
            groups.setdefault(signature.input.category, []).append(signature)
        return groups

    def group_by_provider(
        self,
        category: Optional[InputCategory] = None,
    ) -> dict[str, list[Signature]]:
        groups: dict[str, list[Signature]] = {}
        for signature in self._filtered(category):
            groups.setdefault(signature.provider_id, []).append(signature)
        return groups

    def report(self) -> SignatureReport:
        """
        Summarize the ledger per category and per provider.

        The provider's architecture_type is that of its first signature,
        not the most common one.
        """
        report = SignatureReport(total_signatures=len(self.signatures))

        for category, group in self.group_by_category().items():
            report.categories.append(
                CategoryCount(category=category, count=len(group))
            )

        for provider_id, group in self.group_by_provider().items():
            total_time = sum(s.performance.processing_time_ms for s in group)
            report.providers.append(ProviderSummary(
                provider_id=provider_id,
                count=len(group),
                avg_processing_time_ms=round(total_time / len(group), 2),
                architecture_type=group[0].architecture.model_type,
            ))

        return report
