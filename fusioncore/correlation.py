"""Correlation of HUMINT and SIGINT observations.

The spatial dimension is scored here from observation locations. Temporal
and semantic scores come from scorer callables supplied by the caller; a
missing scorer leaves its dimension unevaluated and out of the aggregate.
"""

import uuid
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import structlog

from .config import CorrelationConfig
from .confidence import combine_confidence, confidence_from_score, confidence_value, label_for_value
from .constants import (
    HUMINT_LOCATION_WEIGHT,
    RADAR_DISTANCE_BANDS,
    RADAR_DISTANT,
    SIGINT_LOCATION_PREFERENCE,
    SIGINT_LOCATION_WEIGHT,
    STANDARD_DISTANCE_BANDS,
    STANDARD_DISTANT,
)
from .error_handling import handle_errors
from .geo import Coordinate, distance
from .models import (
    CorrelationResult,
    DimensionScore,
    FusedEntity,
    FusedSources,
    HumintObservation,
    Location,
    Observation,
    SigintObservation,
    SpatialScore,
    parse_timestamp,
)
from .product import FusedIntelligenceProduct

logger = structlog.get_logger(__name__)

Scorer = Callable[[Observation, Observation], DimensionScore]


def _is_radar_related(a: Observation, b: Observation) -> bool:
    for observation in (a, b):
        if "radar" in (observation.type or "") or "radar" in (observation.subtype or ""):
            return True
        if observation.type == "electronic_emitter":
            return True
    return False


def _score_location_names(a: Observation, b: Observation) -> SpatialScore:
    name_a = (a.location.name or "").lower() if a.location else ""
    name_b = (b.location.name or "").lower() if b.location else ""

    if name_a and name_b:
        if name_a == name_b:
            return SpatialScore(score=0.9, reason="Exact location name match")

        if name_a in name_b or name_b in name_a:
            return SpatialScore(score=0.7, reason="Location name overlap")

        words_a = name_a.split()
        words_b = name_b.split()
        common = [word for word in words_a if word in words_b]
        if common:
            overlap = len(common) / max(len(words_a), len(words_b))
            return SpatialScore(
                score=0.5 * overlap,
                reason=f"Partial location name match ({', '.join(common)})",
            )

    return SpatialScore(score=0.1, reason="No location name match")


@handle_errors(
    "spatial_correlation_failed",
    default_return=lambda: SpatialScore(score=0.0, reason="Error in spatial correlation"),
)
def correlate_by_location(a: Observation, b: Observation) -> SpatialScore:
    """Score how likely two observations are at the same place.

    Both with coordinates: banded by great-circle distance, with wider bands
    for radar-related pairs since emitters are located less precisely. One
    side with only a place name: compared by name.
    """
    if not a.location or not b.location:
        return SpatialScore(score=0.0, reason="Missing location data")

    coords_a, coords_b = a.location.coordinates, b.location.coordinates
    if coords_a is None or coords_b is None:
        if (coords_a and b.location.name) or (a.location.name and coords_b):
            return _score_location_names(a, b)
        return SpatialScore(score=0.0, reason="Missing coordinate data")

    meters = distance(coords_a, coords_b)

    if _is_radar_related(a, b):
        bands, distant = RADAR_DISTANCE_BANDS, RADAR_DISTANT
    else:
        bands, distant = STANDARD_DISTANCE_BANDS, STANDARD_DISTANT

    for limit, score, reason in bands:
        if meters < limit:
            return SpatialScore(score=score, reason=reason, distance=meters)

    score, reason = distant
    return SpatialScore(score=score, reason=reason, distance=meters)


def weighted_score(dimensions: Dict[str, DimensionScore], weights: Dict[str, float]) -> float:
    """Weighted mean over the evaluated dimensions.

    Weights of unevaluated dimensions are dropped and the rest renormalised.
    Returns 0.0 when nothing was evaluated.
    """
    total_weight = 0.0
    total = 0.0
    for name, dimension in dimensions.items():
        weight = weights.get(name, 0.0)
        if weight <= 0 or not dimension.is_evaluated:
            continue
        total_weight += weight
        total += weight * dimension.score

    if total_weight == 0:
        return 0.0
    return max(0.0, min(1.0, total / total_weight))


def canonical_confidence(label) -> str:
    """Map any label to high/medium/low through its numeric anchor."""
    return label_for_value(confidence_value(label)).value


def determine_fused_type(humint: HumintObservation, sigint: SigintObservation) -> str:
    if humint.type == "military_unit":
        return "military_unit"

    subtype = humint.subtype or ""
    if "radar" in subtype or "air defense" in subtype:
        return "air_defense_system"

    return humint.type


def fused_location(
    humint: HumintObservation, sigint: SigintObservation, spatial_score: float
) -> Location:
    """Combine the two locations; SIGINT fixes are treated as more precise."""
    sigint_coords = sigint.coordinates
    humint_coords = humint.coordinates
    name = humint.location.name if humint.location else None
    if not name and sigint_coords:
        name = f"Near {sigint_coords.lat}, {sigint_coords.lng}"

    if spatial_score > SIGINT_LOCATION_PREFERENCE or humint_coords is None or sigint_coords is None:
        return Location(name=name, coordinates=sigint_coords or humint_coords)

    return Location(
        name=name,
        coordinates=Coordinate(
            humint_coords.lat * HUMINT_LOCATION_WEIGHT + sigint_coords.lat * SIGINT_LOCATION_WEIGHT,
            humint_coords.lng * HUMINT_LOCATION_WEIGHT + sigint_coords.lng * SIGINT_LOCATION_WEIGHT,
        ),
    )


def fused_timestamp(*observations: Observation) -> Optional[str]:
    """Most recent readable timestamp among ``observations``."""
    parsed = [parse_timestamp(o.timestamp) for o in observations]
    parsed = [p for p in parsed if p is not None]
    return max(parsed).isoformat() if parsed else None


class CorrelationEngine:
    """Pairs HUMINT with SIGINT observations and fuses the matches."""

    def __init__(
        self,
        config: Optional[CorrelationConfig] = None,
        temporal_scorer: Optional[Scorer] = None,
        semantic_scorer: Optional[Scorer] = None,
    ):
        """Initialize the engine.

        Args:
            config: Thresholds and weights; defaults apply when omitted
            temporal_scorer: Callable scoring time agreement of a pair
            semantic_scorer: Callable scoring description agreement of a pair,
                consulted only for pairs the rule-based score does not settle
        """
        self.config = config or CorrelationConfig()
        self.temporal_scorer = temporal_scorer
        self.semantic_scorer = semantic_scorer

    def correlate(
        self,
        humint: Sequence[HumintObservation],
        sigint: Sequence[SigintObservation],
    ) -> List[CorrelationResult]:
        """Score every HUMINT x SIGINT pair that has coordinates on both sides.

        Returns:
            Correlation results, highest score first
        """
        results = []
        for humint_obs in humint:
            if humint_obs.coordinates is None:
                continue

            for sigint_obs in sigint:
                if sigint_obs.coordinates is None:
                    continue

                try:
                    result = self.correlate_pair(humint_obs, sigint_obs)
                except Exception as e:
                    logger.error(
                        "pair_correlation_failed",
                        humint=humint_obs.entity_key,
                        sigint=sigint_obs.entity_key,
                        error=str(e),
                        exc_info=True,
                    )
                    continue

                if result is not None:
                    results.append(result)

        results.sort(key=lambda r: r.score, reverse=True)
        logger.info(
            "correlation_complete",
            humint_count=len(humint),
            sigint_count=len(sigint),
            candidate_count=len(results),
        )
        return results

    def correlate_pair(
        self, humint: HumintObservation, sigint: SigintObservation
    ) -> Optional[CorrelationResult]:
        """Score one pair, or return None if it fails the pre-filter."""
        spatial = correlate_by_location(humint, sigint)
        temporal = self._run_scorer(self.temporal_scorer, humint, sigint)

        for dimension in (spatial, temporal):
            if dimension.is_evaluated and dimension.score < self.config.prefilter_min_score:
                return None

        score = weighted_score(
            {"spatial": spatial, "temporal": temporal}, self.config.rule_based_weights
        )
        semantic = DimensionScore.not_calculated()

        if score < self.config.rule_based_accept and self.semantic_scorer is not None:
            semantic = self._run_scorer(self.semantic_scorer, humint, sigint)
            score = weighted_score(
                {"spatial": spatial, "temporal": temporal, "semantic": semantic},
                self.config.combined_weights,
            )

        return CorrelationResult(
            humint_entity=humint,
            sigint_entity=sigint,
            spatial_correlation=spatial,
            temporal_correlation=temporal,
            semantic_correlation=semantic,
            score=score,
            confidence=confidence_from_score(score),
        )

    @staticmethod
    def _run_scorer(scorer: Optional[Scorer], a: Observation, b: Observation) -> DimensionScore:
        if scorer is None:
            return DimensionScore.not_calculated()
        return scorer(a, b)

    def fuse(
        self,
        humint: Sequence[HumintObservation],
        sigint: Sequence[SigintObservation],
        correlations: Optional[Iterable[CorrelationResult]] = None,
    ) -> List[FusedEntity]:
        """Build fused entities from correlated pairs and leftover observations.

        Pairs scoring at or above the correlation threshold become
        multi-source entities; every observation not used by such a pair
        becomes a single-source entity.
        """
        if correlations is None:
            correlations = self.correlate(humint, sigint)

        fused = []
        used_humint = set()
        used_sigint = set()

        for correlation in correlations:
            if correlation.score < self.config.correlation_threshold:
                continue
            try:
                fused.append(self._fuse_pair(correlation))
            except Exception as e:
                logger.error("pair_fusion_failed", error=str(e), exc_info=True)
                continue
            used_humint.add(correlation.humint_entity.entity_key)
            used_sigint.add(correlation.sigint_entity.entity_key)

        for observation in humint:
            if observation.entity_key not in used_humint:
                fused.append(self._single_source(observation, FusedSources(humint=[observation])))

        for observation in sigint:
            if observation.entity_key not in used_sigint:
                fused.append(self._single_source(observation, FusedSources(sigint=[observation])))

        logger.info(
            "fusion_complete",
            entity_count=len(fused),
            multi_source_count=sum(1 for e in fused if e.has_multi_source_confirmation()),
        )
        return fused

    def _fuse_pair(self, correlation: CorrelationResult) -> FusedEntity:
        humint = correlation.humint_entity
        sigint = correlation.sigint_entity

        return FusedEntity(
            id=f"fused-{uuid.uuid4().hex[:12]}",
            type=determine_fused_type(humint, sigint),
            sources=FusedSources(humint=[humint], sigint=[sigint]),
            location=fused_location(humint, sigint, correlation.spatial_correlation.score),
            timestamp=fused_timestamp(humint, sigint),
            description=(
                f"{humint.description}. Confirmed by electronic emissions "
                f"consistent with {sigint.description}."
            ),
            confidence=combine_confidence(humint.confidence, sigint.confidence, correlation.score),
            correlation=correlation,
        )

    @staticmethod
    def _single_source(observation: Observation, sources: FusedSources) -> FusedEntity:
        return FusedEntity(
            id=f"{observation.source}-{uuid.uuid4().hex[:12]}",
            type=observation.type,
            sources=sources,
            location=observation.location,
            timestamp=observation.timestamp,
            description=observation.description,
            confidence=canonical_confidence(observation.confidence),
            properties=dict(observation.properties),
        )

    def build_product(
        self,
        humint: Sequence[HumintObservation],
        sigint: Sequence[SigintObservation],
        **product_fields,
    ) -> FusedIntelligenceProduct:
        """Correlate, fuse and package observations into a product."""
        product = FusedIntelligenceProduct(entities=self.fuse(humint, sigint), **product_fields)
        product.refresh_confidence()
        return product
