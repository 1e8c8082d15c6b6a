"""
Data Models
===========
Pydantic models for every record the analysis engine produces.
All models are serializable to plain JSON for the HTTP layer and for
the signature ledger on disk.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ─── Enums ────────────────────────────────────────────────────────────────────


class LatencyCategory(str, Enum):
    """Processing-time bucket."""
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"
    VERY_SLOW = "very-slow"


class SizeCategory(str, Enum):
    """Response-size bucket."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    VERY_LARGE = "very-large"


class Complexity(str, Enum):
    """Structural complexity bucket of a response tree."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    VERY_COMPLEX = "very-complex"


class ModelType(str, Enum):
    """Inferred backend architecture family."""
    UNKNOWN = "unknown"
    LAYOUT_AWARE_TRANSFORMER = "layout-aware-transformer"
    VISION_BASED_TRANSFORMER = "vision-based-transformer"
    OCR_PIPELINE = "ocr-pipeline"


class ProcessingStrategy(str, Enum):
    """Inferred processing strategy."""
    UNKNOWN = "unknown"
    LIGHTWEIGHT_PROCESSING = "lightweight-processing"
    COMPREHENSIVE_ANALYSIS = "comprehensive-analysis"


class InputCategory(str, Enum):
    """Test-document category derived from the input filename."""
    SIMPLE_TABLE = "simple-table"
    ROTATED_IMAGES = "rotated-images"
    FORMULA_TABLES = "formula-tables"
    MULTILINGUAL = "multilingual"
    GENERAL = "general"


# ─── Analysis Models ──────────────────────────────────────────────────────────


class PerformanceMetrics(BaseModel):
    """Latency / size categorization for one provider call."""
    processing_time_ms: float = Field(ge=0)
    response_size_bytes: int = Field(ge=0)
    latency_category: LatencyCategory
    size_category: SizeCategory
    efficiency_score: float = Field(
        description="Blend of seconds and 100KB units, lower is better"
    )
    timestamp: str = Field(default_factory=_utc_now)


class TokenAnalysis(BaseModel):
    """Key/array/object counts gathered over a whole response tree."""
    total_keys: int = Field(default=0, ge=0)
    array_count: int = Field(default=0, ge=0)
    object_count: int = Field(default=0, ge=0)
    max_array_length: int = Field(default=0, ge=0)
    value_kinds: set[str] = Field(default_factory=set)
    complexity_score: float = 0.0
    complexity: Complexity = Complexity.SIMPLE
    warnings: list[str] = Field(default_factory=list)

    @field_serializer("value_kinds")
    def _serialize_kinds(self, kinds: set[str]) -> list[str]:
        return sorted(kinds)


class PatternAnalysis(BaseModel):
    """Structural shape of a response tree."""
    has_elements_array: bool = False
    has_pages_array: bool = False
    has_coordinates: bool = False
    has_hierarchy: bool = False
    element_types: set[str] = Field(default_factory=set)
    structure_depth: int = Field(default=0, ge=0)
    table_detection: bool = False
    image_detection: bool = False
    chart_detection: bool = False
    warnings: list[str] = Field(default_factory=list)

    @field_serializer("element_types")
    def _serialize_types(self, types: set[str]) -> list[str]:
        return sorted(types)


class ArchitectureInference(BaseModel):
    """Rule-based guess at the backend's model architecture."""
    model_config = ConfigDict(protected_namespaces=())

    model_type: ModelType = ModelType.UNKNOWN
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    characteristics: list[str] = Field(default_factory=list)
    likely_components: list[str] = Field(default_factory=list)
    matched_rules: list[str] = Field(default_factory=list)


class ProcessingStrategyInference(BaseModel):
    """Rule-based guess at how much work the backend does per document."""
    strategy: ProcessingStrategy = ProcessingStrategy.UNKNOWN
    reasoning: list[str] = Field(default_factory=list)
    matched_rules: list[str] = Field(default_factory=list)


class StructureCounts(BaseModel):
    """Heuristic per-category element counts."""
    tables: int = Field(default=0, ge=0)
    images: int = Field(default=0, ge=0)
    charts: int = Field(default=0, ge=0)
    headings: int = Field(default=0, ge=0)
    paragraphs: int = Field(default=0, ge=0)
    lists: int = Field(default=0, ge=0)


class EvaluationMetrics(BaseModel):
    """
    Accuracy against a reference text.
    A metric of None means "not applicable", which is not the same as 0.
    """
    cer: Optional[float] = None
    wer: Optional[float] = None
    text_similarity: Optional[float] = None
    structure_counts: StructureCounts = Field(default_factory=StructureCounts)


class TextPatternAnalysis(BaseModel):
    """Surface statistics of extracted text."""
    length: int = 0
    has_formatting: bool = False
    has_special_chars: bool = False
    line_count: int = 0
    avg_line_length: float = 0.0


class AnalysisResult(BaseModel):
    """Everything the engine derives from one provider response."""
    performance: PerformanceMetrics
    tokens: TokenAnalysis
    pattern: PatternAnalysis
    architecture: ArchitectureInference
    strategy: ProcessingStrategyInference
    evaluation: Optional[EvaluationMetrics] = None
    text_pattern: Optional[TextPatternAnalysis] = None


# ─── Signature Models ─────────────────────────────────────────────────────────


class InputDescriptor(BaseModel):
    """The document that was sent to the provider."""
    filename: str
    file_extension: str = ""
    size_bytes: int = Field(default=0, ge=0)
    category: InputCategory = InputCategory.GENERAL


class Signature(BaseModel):
    """
    One analyzed run, as recorded in the signature ledger.
    Created once, never updated.
    """
    id: str
    created_at: str = Field(default_factory=_utc_now)
    provider_id: str
    input: InputDescriptor
    performance: PerformanceMetrics
    pattern: PatternAnalysis
    tokens: TokenAnalysis
    architecture: ArchitectureInference
    strategy: ProcessingStrategyInference
    evaluation: Optional[EvaluationMetrics] = None


class SignatureComparison(BaseModel):
    """Side-by-side differences between two signatures."""
    model_config = ConfigDict(protected_namespaces=())

    input_matches: bool
    processing_time_diff: float
    response_size_diff: int
    element_types: tuple[list[str], list[str]]
    has_elements_array: tuple[bool, bool]
    structure_depth: tuple[int, int]
    model_types: tuple[ModelType, ModelType]
    different: bool


class PerformanceStats(BaseModel):
    """Aggregate timing/size statistics over the performance history."""
    count: int
    avg_processing_time_ms: float
    min_processing_time_ms: float
    max_processing_time_ms: float
    avg_response_size_bytes: float
    min_response_size_bytes: int
    max_response_size_bytes: int


class CategoryCount(BaseModel):
    category: InputCategory
    count: int


class ProviderSummary(BaseModel):
    provider_id: str
    count: int
    avg_processing_time_ms: float
    architecture_type: ModelType = Field(
        description="Model type of the first signature seen for the provider"
    )


class SignatureReport(BaseModel):
    """Summary of the whole signature ledger."""
    total_signatures: int = 0
    categories: list[CategoryCount] = Field(default_factory=list)
    providers: list[ProviderSummary] = Field(default_factory=list)
    generated_at: str = Field(default_factory=_utc_now)
