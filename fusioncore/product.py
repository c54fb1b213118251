"""Fused intelligence product and its export layouts."""

import copy
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import structlog
from pydantic import ValidationError

from .confidence import normalize_confidence
from .constants import (
    ENEMY_FORCES_TYPE,
    MULTI_SOURCE_HIGH_RATIO,
    MULTI_SOURCE_MEDIUM_RATIO,
    MULTI_SOURCE_VOTE_BOOST,
    TERRAIN_TYPE,
)
from .models import ConfidenceLevel, ExportFormat, FusedEntity, parse_timestamp, utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class ProductSources:
    """Identifiers of the reports and emitters behind a product."""

    humint: Set[str] = field(default_factory=set)
    sigint: Set[str] = field(default_factory=set)


class FusedIntelligenceProduct:
    """A packaged set of fused entities with assessments and recommendations.

    Source identifiers are tracked as entities are added, and the overall
    confidence is recomputed on request from the entity votes.
    """

    def __init__(
        self,
        entities: Optional[Iterable[Any]] = None,
        id: Optional[str] = None,
        title: str = "Intelligence Report",
        timestamp: Optional[str] = None,
        summary: str = "",
        assessments: Optional[List[Any]] = None,
        recommendations: Optional[List[Any]] = None,
        confidence: Any = ConfidenceLevel.MEDIUM,
        format: str = "standard",
    ):
        self.id = id or f"product-{uuid.uuid4().hex[:12]}"
        self.title = title
        self.timestamp = timestamp or utc_now_iso()
        self.summary = summary
        self.assessments = list(assessments or [])
        self.recommendations = list(recommendations or [])
        self.confidence = normalize_confidence(confidence) or ConfidenceLevel.MEDIUM.value
        self.format = format
        self.entities: List[FusedEntity] = []
        self.sources = ProductSources()

        self.add_entities(entities or [])

    def add_entity(self, entity: Any) -> Optional[FusedEntity]:
        """Add one entity and record its sources.

        Mappings are validated into ``FusedEntity``; anything that cannot be
        is logged and skipped.
        """
        coerced = self._coerce_entity(entity)
        if coerced is None:
            return None
        self.entities.append(coerced)
        self._track_sources([coerced])
        return coerced

    def add_entities(self, entities: Iterable[Any]) -> None:
        for entity in entities:
            self.add_entity(entity)

    def _coerce_entity(self, entity: Any) -> Optional[FusedEntity]:
        if isinstance(entity, FusedEntity):
            return entity
        if isinstance(entity, Mapping):
            try:
                return FusedEntity.model_validate(dict(entity))
            except ValidationError as e:
                logger.warning(
                    "entity_rejected",
                    product_id=self.id,
                    error_count=e.error_count(),
                    error=str(e),
                )
                return None
        logger.warning(
            "entity_rejected",
            product_id=self.id,
            error=f"Unsupported entity type: {type(entity).__name__}",
        )
        return None

    def _track_sources(self, entities: Iterable[FusedEntity]) -> None:
        try:
            for entity in entities:
                for observation in entity.sources.humint:
                    if observation.report_id:
                        self.sources.humint.add(observation.report_id)
                for observation in entity.sources.sigint:
                    if observation.emitter_id:
                        self.sources.sigint.add(observation.emitter_id)
        except Exception as e:
            logger.error("source_tracking_failed", product_id=self.id, error=str(e), exc_info=True)

    def has_multi_source_intelligence(self) -> bool:
        """True when both the report and the emitter id sets are non-empty."""
        return bool(self.sources.humint) and bool(self.sources.sigint)

    def calculate_overall_confidence(self) -> ConfidenceLevel:
        """Vote on the product confidence from its entities.

        Each entity votes with its own label. When more than half of the
        entities are multi-source, high gets two extra votes; more than a
        quarter gives medium two extra votes. A strict majority of high or
        low wins; everything else is medium.
        """
        try:
            votes = {level.value: 0 for level in ConfidenceLevel}
            for entity in self.entities:
                label = normalize_confidence(entity.confidence)
                if label in votes:
                    votes[label] += 1

            multi_source = sum(1 for e in self.entities if e.has_multi_source_confirmation())
            ratio = multi_source / (len(self.entities) or 1)
            if ratio > MULTI_SOURCE_HIGH_RATIO:
                votes[ConfidenceLevel.HIGH.value] += MULTI_SOURCE_VOTE_BOOST
            elif ratio > MULTI_SOURCE_MEDIUM_RATIO:
                votes[ConfidenceLevel.MEDIUM.value] += MULTI_SOURCE_VOTE_BOOST

            total = sum(votes.values())
            if total == 0:
                return ConfidenceLevel.MEDIUM
            if votes[ConfidenceLevel.HIGH.value] > total / 2:
                return ConfidenceLevel.HIGH
            if votes[ConfidenceLevel.LOW.value] > total / 2:
                return ConfidenceLevel.LOW
            return ConfidenceLevel.MEDIUM
        except Exception as e:
            logger.error(
                "overall_confidence_failed", product_id=self.id, error=str(e), exc_info=True
            )
            return ConfidenceLevel.MEDIUM

    def refresh_confidence(self) -> str:
        """Store the voted confidence on the product and return it."""
        self.confidence = self.calculate_overall_confidence().value
        return self.confidence

    def format_for_export(self, format: Optional[str] = None) -> Dict[str, Any]:
        """Render the product in a named layout.

        Format names are case-insensitive. Missing or unknown names give the
        JSON layout.
        """
        key = str(format).upper() if format else ExportFormat.JSON.value
        formatter = EXPORT_FORMATTERS.get(key)
        if formatter is None:
            logger.warning("unknown_export_format", product_id=self.id, format=format)
            formatter = format_as_json
        return formatter(self)

    def to_dict(self) -> Dict[str, Any]:
        return format_as_json(self)


def _entity_view(entity: FusedEntity) -> Dict[str, Any]:
    return {
        "description": entity.description,
        "location": entity.location.model_dump(mode="json") if entity.location else None,
        "timestamp": entity.timestamp,
        "confidence": entity.confidence,
        "multi_source": entity.has_multi_source_confirmation(),
    }


def _period(entities: List[FusedEntity], default: str) -> Dict[str, str]:
    parsed = [parse_timestamp(entity.timestamp) for entity in entities]
    parsed = [p for p in parsed if p is not None]
    if not parsed:
        return {"from": default, "to": default}
    return {"from": min(parsed).isoformat(), "to": max(parsed).isoformat()}


def format_as_intsum(product: FusedIntelligenceProduct) -> Dict[str, Any]:
    """Intelligence summary layout."""
    dtg = utc_now_iso()
    return {
        "type": ExportFormat.INTSUM.value,
        "dtg": dtg,
        "reference": f"INTSUM/{product.id}",
        "period": _period(product.entities, dtg),
        "summary": product.summary,
        "enemy_forces": [
            _entity_view(e) for e in product.entities if e.type == ENEMY_FORCES_TYPE
        ],
        "terrain": [_entity_view(e) for e in product.entities if e.type == TERRAIN_TYPE],
        "conclusions": copy.deepcopy(product.assessments),
        "confidence_assessment": product.confidence,
    }


def format_as_intrep(product: FusedIntelligenceProduct) -> Dict[str, Any]:
    return {
        "type": ExportFormat.INTREP.value,
        "reference": f"INTREP/{product.id}",
        "implemented": False,
    }


def format_as_nato(product: FusedIntelligenceProduct) -> Dict[str, Any]:
    return {
        "type": ExportFormat.NATO.value,
        "reference": f"NATO/{product.id}",
        "implemented": False,
    }


def format_as_json(product: FusedIntelligenceProduct) -> Dict[str, Any]:
    """Full product as plain JSON-compatible data."""
    return {
        "id": product.id,
        "title": product.title,
        "timestamp": product.timestamp,
        "summary": product.summary,
        "entities": [entity.to_dict() for entity in product.entities],
        "assessments": copy.deepcopy(product.assessments),
        "recommendations": copy.deepcopy(product.recommendations),
        "confidence": product.confidence,
        "format": product.format,
        "sources": {
            "humint": sorted(product.sources.humint),
            "sigint": sorted(product.sources.sigint),
        },
    }


EXPORT_FORMATTERS: Dict[str, Callable[[FusedIntelligenceProduct], Dict[str, Any]]] = {
    ExportFormat.INTSUM.value: format_as_intsum,
    ExportFormat.INTREP.value: format_as_intrep,
    ExportFormat.NATO.value: format_as_nato,
    ExportFormat.JSON.value: format_as_json,
}
