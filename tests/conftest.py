"""Shared fixtures for fusioncore tests."""

import logging

import pytest
import structlog

from fusioncore.config import ConfigManager
from fusioncore.models import FusedEntity, FusedSources, HumintObservation, SigintObservation


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo any logging setup a test performs."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove configuration overrides inherited from the environment."""
    for env_key, _, _, _ in ConfigManager.ENV_OVERRIDES:
        monkeypatch.delenv(env_key, raising=False)


@pytest.fixture
def humint_observation():
    return HumintObservation(
        report_id="HR-1",
        type="military_unit",
        subtype="armor",
        location={"name": "Hill 402", "coordinates": [34.5, 69.2]},
        timestamp="2025-01-10T08:00:00Z",
        description="Armored column moving north",
        confidence="high",
    )


@pytest.fixture
def sigint_observation():
    # Roughly 140 m from the HUMINT fixture
    return SigintObservation(
        emitter_id="E-1",
        type="electronic_emitter",
        subtype="fire control radar",
        location={"name": "Emitter 1", "coordinates": [34.501, 69.201]},
        timestamp="2025-01-10T09:00:00Z",
        description="Fire control radar emitter",
        confidence="high",
    )


@pytest.fixture
def distant_sigint_observation():
    return SigintObservation(
        emitter_id="E-9",
        type="electronic_emitter",
        subtype="search radar",
        location={"name": "Far emitter", "coordinates": [35.5, 69.2]},
        timestamp="2025-01-10T07:00:00Z",
        description="Search radar emitter",
        confidence="medium",
    )


@pytest.fixture
def field_report():
    return {
        "reportId": "HR-2025-001",
        "timestamp": "2025-01-10T08:00:00Z",
        "intelligence": {
            "enemyForces": [
                {
                    "type": "armor",
                    "location": "Hill 402",
                    "coordinates": [34.5, 69.2],
                    "time": "2025-01-10T07:30:00Z",
                    "activity": "Column moving north",
                    "confidence": "High",
                    "size": "company",
                }
            ],
            "threats": [
                {
                    "type": "ied",
                    "location": {"name": "Route Blue", "coordinates": "34.6, 69.3"},
                    "description": "Suspected IED on the route",
                    "severity": "high",
                    "immediacy": "imminent",
                }
            ],
            "locations": [
                {
                    "name": "Village A",
                    "type": "settlement",
                    "coordinates": [34.7, 69.4],
                    "timeObserved": "2025-01-09T12:00:00Z",
                    "controllingForce": "hostile",
                }
            ],
        },
    }


@pytest.fixture
def emitter_tracks():
    return [
        {
            "emitterId": "E-1",
            "classification": "Fire Control Radar",
            "platformAssessment": {"type": "SAM", "model": "SA-6 Straight Flush"},
            "confidenceLevel": "medium",
            "detectionCount": 4,
            "locations": [
                {
                    "timestamp": "2025-01-10T06:00:00Z",
                    "location": {"lat": 34.4, "lng": 69.1},
                    "confidenceLevel": "low",
                },
                {
                    "timestamp": "2025-01-10T09:00:00Z",
                    "location": {"lat": 34.501, "lng": 69.201},
                    "confidenceLevel": "high",
                },
            ],
        },
        {"emitterId": "E-2", "locations": []},
        {
            "emitterId": "E-3",
            "locations": [
                {"timestamp": "2025-01-10T09:00:00Z", "location": {"lat": "bad", "lng": 1}}
            ],
        },
    ]


def make_entity(confidence="medium", multi_source=False, entity_type="unknown", **fields):
    """Build a FusedEntity with single- or dual-discipline sources."""
    humint = [HumintObservation(report_id=fields.pop("report_id", "R-1"))]
    sigint = [SigintObservation(emitter_id=fields.pop("emitter_id", "E-1"))] if multi_source else []
    return FusedEntity(
        type=entity_type,
        confidence=confidence,
        sources=FusedSources(humint=humint, sigint=sigint),
        **fields,
    )


@pytest.fixture
def entity_factory():
    return make_entity
