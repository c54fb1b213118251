"""Convert analysed field reports and emitter tracks into observations.

Both inputs arrive as model output: a HUMINT field report analysis and a
SIGINT signal analysis. Field names follow the camelCase used in those
responses; snake_case is accepted as well.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from .geo import BoundingBox, parse_coordinates, point_in_bounds, point_in_radius
from .json_extractor import JSONExtractor
from .models import HumintObservation, Location, SigintObservation, parse_timestamp

logger = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _get(data: Mapping[str, Any], camel: str, snake: Optional[str] = None, default=None):
    """Read a field by its camelCase name, falling back to snake_case."""
    if camel in data and data[camel] is not None:
        return data[camel]
    if snake and snake in data and data[snake] is not None:
        return data[snake]
    return default


def _location(value: Any, coordinates: Any = None) -> Optional[Location]:
    """Build a Location from a place name or a ``{name, coordinates}`` mapping."""
    if isinstance(value, Mapping):
        name = value.get("name")
        coordinates = value.get("coordinates", coordinates)
    else:
        name = str(value) if value else None

    if not name and coordinates is None:
        return None
    return Location(name=name, coordinates=coordinates)


def _entries(data: Mapping[str, Any], camel: str, snake: Optional[str] = None) -> List[Mapping[str, Any]]:
    entries = _get(data, camel, snake, [])
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, Mapping)]


def _build(model, source_id: Optional[str], **fields):
    try:
        return model(**fields)
    except ValidationError as e:
        logger.warning(
            "observation_rejected",
            source_id=source_id,
            observation_type=fields.get("type"),
            error_count=e.error_count(),
        )
        return None


def observations_from_report(report: Mapping[str, Any]) -> List[HumintObservation]:
    """Observations from an analysed HUMINT field report.

    Enemy forces become ``military_unit`` observations, threats become
    ``threat`` observations and named places become ``location``
    observations. Entries that do not validate are logged and skipped.
    """
    if not isinstance(report, Mapping):
        logger.warning("report_rejected", reason=f"expected mapping, got {type(report).__name__}")
        return []

    report_id = _get(report, "reportId", "report_id")
    report_time = report.get("timestamp")
    intelligence = report.get("intelligence")
    if not isinstance(intelligence, Mapping):
        intelligence = {}
    observations = []

    for force in _entries(intelligence, "enemyForces", "enemy_forces"):
        observations.append(_build(
            HumintObservation,
            report_id,
            report_id=report_id,
            type="military_unit",
            subtype=force.get("type") or "unknown",
            location=_location(force.get("location"), force.get("coordinates")),
            timestamp=force.get("time") or report_time,
            description=force.get("activity") or "",
            confidence=force.get("confidence"),
            properties={"size": force.get("size"), "activity": force.get("activity")},
        ))

    for threat in _entries(intelligence, "threats"):
        observations.append(_build(
            HumintObservation,
            report_id,
            report_id=report_id,
            type="threat",
            subtype=threat.get("type") or "unknown",
            location=_location(threat.get("location"), threat.get("coordinates")),
            timestamp=report_time,
            description=threat.get("description") or "",
            confidence=threat.get("confidence"),
            properties={
                "severity": threat.get("severity"),
                "immediacy": threat.get("immediacy"),
            },
        ))

    for place in _entries(intelligence, "locations"):
        name = place.get("name")
        observations.append(_build(
            HumintObservation,
            report_id,
            report_id=report_id,
            type="location",
            subtype=place.get("type") or "unknown",
            location=_location(name, place.get("coordinates")),
            timestamp=_get(place, "timeObserved", "time_observed") or report_time,
            description=place.get("description") or name or "",
            confidence=place.get("confidence"),
            properties={"controlling_force": _get(place, "controllingForce", "controlling_force")},
        ))

    observations = [o for o in observations if o is not None]
    logger.info("report_converted", report_id=report_id, observation_count=len(observations))
    return observations


def _most_recent_location(track: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    locations = _entries(track, "locations")
    if not locations:
        return None
    return max(locations, key=lambda fix: parse_timestamp(fix.get("timestamp")) or _EPOCH)


def _fix_coordinates(fix: Mapping[str, Any]):
    point = fix.get("location")
    if isinstance(point, Mapping):
        return parse_coordinates([point.get("lat"), point.get("lng")])
    return parse_coordinates(point)


def observations_from_tracks(tracks: Iterable[Mapping[str, Any]]) -> List[SigintObservation]:
    """One observation per emitter track, placed at its most recent fix."""
    observations = []

    for track in tracks:
        if not isinstance(track, Mapping):
            logger.warning("track_skipped", reason="not a mapping")
            continue

        emitter_id = _get(track, "emitterId", "emitter_id")
        fix = _most_recent_location(track)
        if fix is None:
            logger.warning("track_skipped", emitter_id=emitter_id, reason="no locations")
            continue

        coordinates = _fix_coordinates(fix)
        if coordinates is None:
            logger.warning("track_skipped", emitter_id=emitter_id, reason="invalid location format")
            continue

        classification = track.get("classification")
        platform = _get(track, "platformAssessment", "platform_assessment", {})
        if not isinstance(platform, Mapping):
            platform = {}
        name = platform.get("model") or (
            f"{classification or 'Unknown'} emitter at "
            f"{coordinates.lat:.4f}, {coordinates.lng:.4f}"
        )

        observation = _build(
            SigintObservation,
            emitter_id,
            emitter_id=emitter_id,
            type="electronic_emitter",
            subtype=classification or "radar",
            location=Location(name=name, coordinates=coordinates),
            timestamp=fix.get("timestamp"),
            description=f"{classification or 'Unknown'} {platform.get('type') or 'radar'} emitter",
            confidence=(
                _get(fix, "confidenceLevel", "confidence_level")
                or _get(track, "confidenceLevel", "confidence_level")
            ),
            properties={
                "characteristics": track.get("characteristics"),
                "platform_assessment": platform or None,
                "first_detection": _get(track, "firstDetection", "first_detection"),
                "last_detection": _get(track, "lastDetection", "last_detection"),
                "detection_count": _get(track, "detectionCount", "detection_count"),
                "mobility_type": _get(track, "mobilityType", "mobility_type"),
            },
        )
        if observation is not None:
            observations.append(observation)

    logger.info("tracks_converted", observation_count=len(observations))
    return observations


def parse_field_report(text: str, extractor: Optional[JSONExtractor] = None) -> List[HumintObservation]:
    """Extract a field report analysis from model output and convert it."""
    extractor = extractor or JSONExtractor()
    report = extractor.extract(text, extraction_type="field-report")
    if report is None:
        return []
    return observations_from_report(report)


def parse_signal_analysis(text: str, extractor: Optional[JSONExtractor] = None) -> List[SigintObservation]:
    """Extract a signal analysis from model output and convert it.

    The payload is either ``{"tracks": [...]}`` or a single track.
    """
    extractor = extractor or JSONExtractor()
    analysis = extractor.extract(text, extraction_type="signal-analysis")
    if analysis is None:
        return []
    tracks = analysis.get("tracks") if "tracks" in analysis else [analysis]
    return observations_from_tracks(tracks or [])


Area = Union[BoundingBox, Mapping[str, Any]]


def track_in_area(track: Mapping[str, Any], area: Area) -> bool:
    """True if the track's most recent fix lies inside ``area``.

    ``area`` is a BoundingBox, a ``{north, south, east, west}`` mapping or a
    ``{center, radius}`` mapping with the radius in kilometres.
    """
    fix = _most_recent_location(track)
    if fix is None:
        return False
    point = _fix_coordinates(fix)
    if point is None:
        return False

    if isinstance(area, BoundingBox):
        return point_in_bounds(point, area)

    if "center" in area:
        center = parse_coordinates(area["center"])
        if center is None:
            return False
        return point_in_radius(point, center, float(area.get("radius", 0)))

    try:
        box = BoundingBox(
            north=float(area["north"]),
            south=float(area["south"]),
            east=float(area["east"]),
            west=float(area["west"]),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("area_rejected", area=repr(area))
        return False
    return point_in_bounds(point, box)


def filter_tracks_in_area(tracks: Iterable[Mapping[str, Any]], area: Area) -> List[Mapping[str, Any]]:
    """Tracks whose most recent fix lies inside ``area``."""
    return [track for track in tracks if isinstance(track, Mapping) and track_in_area(track, area)]
