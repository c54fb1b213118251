"""HUMINT/SIGINT correlation and fusion.

This package provides:
- Geospatial helpers for comparing observation locations
- Resilient extraction of JSON objects from model output
- Confidence fusion and reliability assessment
- Correlation of HUMINT and SIGINT observations into fused entities
- Fused intelligence products with INTSUM and JSON export
"""

from .confidence import assess_reliability, combine_confidence
from .correlation import CorrelationEngine, correlate_by_location
from .json_extractor import JSONExtractor, extract_json
from .models import (
    ConfidenceLevel,
    CorrelationResult,
    DimensionScore,
    FusedEntity,
    HumintObservation,
    SigintObservation,
)
from .product import FusedIntelligenceProduct

__all__ = [
    "CorrelationEngine",
    "JSONExtractor",
    "FusedIntelligenceProduct",
    "ConfidenceLevel",
    "CorrelationResult",
    "DimensionScore",
    "FusedEntity",
    "HumintObservation",
    "SigintObservation",
    "assess_reliability",
    "combine_confidence",
    "correlate_by_location",
    "extract_json",
]

__version__ = "0.1.0"
