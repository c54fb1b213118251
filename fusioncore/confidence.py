"""Confidence fusion across HUMINT and SIGINT.

Two independent confidence labels and a correlation score are combined
into one label. The combination regime depends on how strongly the two
observations correlate:

- above 0.8 the sources reinforce each other (geometric mean, boosted)
- between 0.5 and 0.8 they partially reinforce (boosted average)
- at or below 0.5 they may describe different things (damped product)

Both public functions are total: a fault is logged and a medium result
returned, so a single malformed entity cannot abort a batch.
"""

import math
from typing import Any, Optional

import structlog

from .constants import (
    CONFIDENCE_ANCHORS,
    DEFAULT_CONFIDENCE_LABEL,
    DEFAULT_CORRELATION_SCORE,
    DUAL_HIGH_SOURCE_BOOST,
    DUAL_HIGH_SOURCE_CAP,
    DUAL_HIGH_SOURCE_THRESHOLD,
    HIGH_CONFIDENCE_THRESHOLD,
    MEDIUM_CONFIDENCE_THRESHOLD,
    PARTIAL_CORRELATION,
    RELIABILITY_BASELINE,
    RELIABILITY_CONFIDENCE_ADJUSTMENT,
    RELIABILITY_CORRELATION_BOOST,
    RELIABILITY_CORRELATION_THRESHOLD,
    RELIABILITY_HIGH_THRESHOLD,
    RELIABILITY_MEDIUM_THRESHOLD,
    RELIABILITY_MULTI_SOURCE_BOOST,
    SCORE_HIGH_THRESHOLD,
    SCORE_MEDIUM_THRESHOLD,
    STRONG_CORRELATION,
    STRONG_CORRELATION_CAP,
)
from .error_handling import handle_errors
from .models import ConfidenceLevel, ReliabilityAssessment, ReliabilityFactors

logger = structlog.get_logger(__name__)


def normalize_confidence(label: Any) -> Optional[str]:
    """Lowercase a label, returning None for anything that is not text."""
    if isinstance(label, ConfidenceLevel):
        return label.value
    if not isinstance(label, str):
        return None
    return label.strip().lower()


def confidence_value(label: Any) -> float:
    """Numeric anchor for a label.

    Unknown or missing labels map to the medium anchor. The 0.1 anchor is
    only reachable through the explicit ``"fallback"`` label.
    """
    normalized = normalize_confidence(label)
    return CONFIDENCE_ANCHORS.get(normalized, CONFIDENCE_ANCHORS[DEFAULT_CONFIDENCE_LABEL])


def _clamp_correlation(score: Any) -> float:
    if isinstance(score, bool) or score is None:
        return DEFAULT_CORRELATION_SCORE
    try:
        value = float(score)
    except (TypeError, ValueError):
        return DEFAULT_CORRELATION_SCORE
    if math.isnan(value):
        return DEFAULT_CORRELATION_SCORE
    return max(0.0, min(1.0, value))


def label_for_value(value: float) -> ConfidenceLevel:
    """Map a combined confidence value to a label."""
    if value >= HIGH_CONFIDENCE_THRESHOLD:
        return ConfidenceLevel.HIGH
    if value >= MEDIUM_CONFIDENCE_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def combined_confidence_value(humint_level: Any, sigint_level: Any, correlation_score: Any) -> float:
    """Numeric result of combining two labels under a correlation score."""
    humint = confidence_value(humint_level)
    sigint = confidence_value(sigint_level)
    correlation = _clamp_correlation(correlation_score)
    average = (humint + sigint) / 2

    if correlation > STRONG_CORRELATION:
        combined = min(STRONG_CORRELATION_CAP, math.sqrt(humint * sigint * (1 + correlation * 0.5)))
        if humint > DUAL_HIGH_SOURCE_THRESHOLD and sigint > DUAL_HIGH_SOURCE_THRESHOLD:
            combined = min(DUAL_HIGH_SOURCE_CAP, combined + DUAL_HIGH_SOURCE_BOOST)
    elif correlation > PARTIAL_CORRELATION:
        combined = average * (1 + (correlation - PARTIAL_CORRELATION) * 0.4)
    else:
        combined = humint * sigint + average * correlation

    return combined


@handle_errors("confidence_combination_failed", default_return=ConfidenceLevel.MEDIUM)
def combine_confidence(
    humint_level: Any, sigint_level: Any, correlation_score: Any
) -> ConfidenceLevel:
    """Fuse a HUMINT and a SIGINT confidence label into one.

    Args:
        humint_level: HUMINT label (high/medium/low, any case)
        sigint_level: SIGINT label (high/medium/low, any case)
        correlation_score: Correlation between the sources, 0-1; non-numeric
            values count as 0.5

    Returns:
        The fused ConfidenceLevel; MEDIUM if anything goes wrong
    """
    combined = combined_confidence_value(humint_level, sigint_level, correlation_score)
    return label_for_value(combined)


def confidence_from_score(score: float) -> ConfidenceLevel:
    """Label a correlation score."""
    if score >= SCORE_HIGH_THRESHOLD:
        return ConfidenceLevel.HIGH
    if score >= SCORE_MEDIUM_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _default_assessment() -> ReliabilityAssessment:
    return ReliabilityAssessment(level=ConfidenceLevel.MEDIUM, score=RELIABILITY_BASELINE)


@handle_errors("reliability_assessment_failed", default_return=_default_assessment)
def assess_reliability(fused_entity) -> ReliabilityAssessment:
    """Assess how far a fused entity can be relied on.

    Starts from 0.5, adds 0.25 for confirmation by both disciplines (and a
    further 0.15 when that confirmation comes with a correlation score above
    0.8), then moves 0.1 up or down for the entity's own high or low
    confidence. The score is clamped to [0, 1].
    """
    has_humint = len(fused_entity.sources.humint) > 0
    has_sigint = len(fused_entity.sources.sigint) > 0
    multi_source = has_humint and has_sigint

    correlation = getattr(fused_entity, "correlation", None)
    correlation_score = correlation.score if correlation is not None else None
    confidence = normalize_confidence(fused_entity.confidence)

    score = RELIABILITY_BASELINE
    if multi_source:
        score += RELIABILITY_MULTI_SOURCE_BOOST
        if correlation_score is not None and correlation_score > RELIABILITY_CORRELATION_THRESHOLD:
            score += RELIABILITY_CORRELATION_BOOST

    if confidence == ConfidenceLevel.HIGH.value:
        score += RELIABILITY_CONFIDENCE_ADJUSTMENT
    elif confidence == ConfidenceLevel.LOW.value:
        score -= RELIABILITY_CONFIDENCE_ADJUSTMENT

    score = max(0.0, min(1.0, score))

    if score >= RELIABILITY_HIGH_THRESHOLD:
        level = ConfidenceLevel.HIGH
    elif score >= RELIABILITY_MEDIUM_THRESHOLD:
        level = ConfidenceLevel.MEDIUM
    else:
        level = ConfidenceLevel.LOW

    return ReliabilityAssessment(
        level=level,
        score=score,
        factors=ReliabilityFactors(
            multi_source_confirmation=multi_source,
            has_humint=has_humint,
            has_sigint=has_sigint,
            confidence_level=confidence,
            correlation_score=correlation_score,
        ),
    )
