"""Data models for the fusion pipeline."""

import uuid
from abc import abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .constants import (
    MODERATE_OVERALL_SCORE,
    NOT_CALCULATED_REASON,
    STRONG_DIMENSION_SCORE,
)
from .geo import Coordinate, parse_coordinates


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp, returning None when it cannot be read.

    Naive timestamps are assumed to be UTC so they compare with aware ones.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ConfidenceLevel(str, Enum):
    """Canonical confidence labels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Discipline(str, Enum):
    """Collection discipline an observation came from."""

    HUMINT = "humint"
    SIGINT = "sigint"


class ExportFormat(str, Enum):
    """Named export layouts for an intelligence product."""

    INTSUM = "INTSUM"
    INTREP = "INTREP"
    NATO = "NATO"
    JSON = "JSON"


class FusionModel(BaseModel):
    """Base model: accepts camelCase or snake_case input, keeps enum values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


class Location(FusionModel):
    """Where an observation was made: a place name, coordinates, or both."""

    name: Optional[str] = None
    coordinates: Optional[Coordinate] = None

    @field_validator("coordinates", mode="before")
    @classmethod
    def parse_coords(cls, v):
        """Accept "lat, lng" strings and sequences; drop unreadable values."""
        if v is None or isinstance(v, Coordinate):
            return v
        return parse_coordinates(v)


class DimensionScore(FusionModel):
    """Score for one correlation axis (spatial, temporal or semantic).

    The default instance is the "not calculated" sentinel. It scores 0 but
    is not a measurement, so check ``is_evaluated`` before treating the
    score as evidence of non-correlation.
    """

    model_config = ConfigDict(frozen=True)

    score: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str = NOT_CALCULATED_REASON

    @classmethod
    def not_calculated(cls) -> "DimensionScore":
        return cls()

    @property
    def is_evaluated(self) -> bool:
        return self.reason != NOT_CALCULATED_REASON


class SpatialScore(DimensionScore):
    """Spatial dimension score with the measured distance in metres."""

    distance: Optional[float] = None


class Observation(FusionModel):
    """A single entity reported by one collection discipline."""

    source: Discipline
    type: str = "unknown"
    subtype: Optional[str] = None
    location: Optional[Location] = None
    timestamp: Optional[str] = None
    description: str = ""
    confidence: str = ConfidenceLevel.MEDIUM.value
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_label(cls, v):
        """Lowercase the label; unknown labels are resolved at fusion time."""
        if v is None:
            return ConfidenceLevel.MEDIUM.value
        return str(v).strip().lower()

    @property
    def coordinates(self) -> Optional[Coordinate]:
        return self.location.coordinates if self.location else None

    @property
    @abstractmethod
    def entity_key(self) -> str:
        """Identity used to match an observation across correlation and fusion."""


def _stringify_id(v):
    """Numeric identifiers from model output are kept as text."""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class HumintObservation(Observation):
    """Entity reported in a human-source field report."""

    source: Discipline = Discipline.HUMINT
    report_id: Optional[str] = None

    @field_validator("report_id", mode="before")
    @classmethod
    def report_id_as_text(cls, v):
        return _stringify_id(v)

    @property
    def entity_key(self) -> str:
        return f"humint-{self.report_id}-{self.type}-{self.subtype or 'unknown'}"


class SigintObservation(Observation):
    """Emitter detected by signals collection."""

    source: Discipline = Discipline.SIGINT
    emitter_id: Optional[str] = None

    @field_validator("emitter_id", mode="before")
    @classmethod
    def emitter_id_as_text(cls, v):
        return _stringify_id(v)

    @property
    def entity_key(self) -> str:
        return f"sigint-{self.emitter_id}"


class CorrelationResult(FusionModel):
    """Scored judgement that a HUMINT and a SIGINT observation are the same entity.

    ``score`` is the aggregate computed by the caller; it is never derived
    from the dimension scores here.
    """

    model_config = ConfigDict(frozen=True)

    humint_entity: Any = None
    sigint_entity: Any = None
    spatial_correlation: DimensionScore = Field(default_factory=DimensionScore.not_calculated)
    temporal_correlation: DimensionScore = Field(default_factory=DimensionScore.not_calculated)
    semantic_correlation: DimensionScore = Field(default_factory=DimensionScore.not_calculated)
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    timestamp: str = Field(default_factory=utc_now_iso)

    @field_validator("confidence", mode="before")
    @classmethod
    def lowercase_confidence(cls, v):
        return v.lower() if isinstance(v, str) else v

    def primary_factors(self) -> List[str]:
        """Dimensions that drive this correlation, strongest first."""
        factors = []
        for label, dimension in (
            ("spatial", self.spatial_correlation),
            ("temporal", self.temporal_correlation),
            ("semantic", self.semantic_correlation),
        ):
            if dimension.score > STRONG_DIMENSION_SCORE:
                factors.append(f"strong {label} correlation")

        if not factors:
            if self.score > MODERATE_OVERALL_SCORE:
                factors.append("moderate overall correlation")
            else:
                factors.append("weak correlation")

        return factors

    def summary(self) -> str:
        return (
            f"Correlation between HUMINT and SIGINT (score: {self.score * 100:.0f}%, "
            f"confidence: {self.confidence}) based on {', '.join(self.primary_factors())}."
        )


class FusedSources(FusionModel):
    """Observations backing a fused entity, by discipline."""

    humint: List[HumintObservation] = Field(default_factory=list)
    sigint: List[SigintObservation] = Field(default_factory=list)


class FusedEntity(FusionModel):
    """One real-world entity inferred from one or more observations."""

    id: str = Field(default_factory=lambda: f"entity-{uuid.uuid4().hex[:12]}")
    type: str = "unknown"
    sources: FusedSources = Field(default_factory=FusedSources)
    location: Optional[Location] = None
    timestamp: Optional[str] = Field(default_factory=utc_now_iso)
    description: str = ""
    confidence: str = ConfidenceLevel.MEDIUM.value
    correlation: Optional[CorrelationResult] = None
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def lowercase_confidence(cls, v):
        """Lowercase the label. Labels outside high/medium/low are kept as given."""
        if v is None:
            return ConfidenceLevel.MEDIUM.value
        if isinstance(v, ConfidenceLevel):
            return v.value
        return v.strip().lower() if isinstance(v, str) else v

    def has_multi_source_confirmation(self) -> bool:
        """True if confirmed by both HUMINT and SIGINT."""
        return bool(self.sources.humint) and bool(self.sources.sigint)

    def primary_source(self) -> str:
        if self.has_multi_source_confirmation():
            return "multi-source"
        if self.sources.humint:
            return Discipline.HUMINT.value
        if self.sources.sigint:
            return Discipline.SIGINT.value
        return "unknown"

    def most_recent_timestamp(self) -> Optional[str]:
        """Latest timestamp across the source observations.

        Falls back to the entity's own timestamp when no source carries a
        readable one.
        """
        parsed = [
            parse_timestamp(observation.timestamp)
            for observation in [*self.sources.humint, *self.sources.sigint]
        ]
        parsed = [p for p in parsed if p is not None]
        if parsed:
            return max(parsed).isoformat()
        return self.timestamp

    def summary(self) -> str:
        source_types = []
        if self.sources.humint:
            source_types.append("HUMINT")
        if self.sources.sigint:
            source_types.append("SIGINT")
        source_text = f"[{'+'.join(source_types)}]" if source_types else "[Unknown]"

        return f"{source_text} {self.description} ({self.confidence} confidence)"

    def to_dict(self) -> Dict[str, Any]:
        """Serialise for export; the correlation is reduced to score and factors."""
        data = self.model_dump(mode="json", exclude={"correlation"})
        data["correlation"] = (
            {
                "score": self.correlation.score,
                "factors": self.correlation.primary_factors(),
            }
            if self.correlation
            else None
        )
        data["multi_source"] = self.has_multi_source_confirmation()
        return data


class ReliabilityFactors(FusionModel):
    """Inputs that produced a reliability score, echoed for audit."""

    multi_source_confirmation: bool = False
    has_humint: bool = False
    has_sigint: bool = False
    confidence_level: Optional[str] = None
    correlation_score: Optional[float] = None


class ReliabilityAssessment(FusionModel):
    """Reliability of a fused entity."""

    level: ConfidenceLevel
    score: float
    factors: ReliabilityFactors = Field(default_factory=ReliabilityFactors)
