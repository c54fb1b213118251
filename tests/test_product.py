"""Tests for fused intelligence products."""

import json

from structlog.testing import capture_logs

from fusioncore.models import ConfidenceLevel, FusedEntity, Location
from fusioncore.product import FusedIntelligenceProduct


class TestConstruction:
    """Test product construction and source tracking."""

    def test_empty_product(self):
        product = FusedIntelligenceProduct()

        assert product.id.startswith("product-")
        assert product.title == "Intelligence Report"
        assert product.confidence == "medium"
        assert product.format == "standard"
        assert product.entities == []
        assert not product.has_multi_source_intelligence()
        assert product.calculate_overall_confidence() == ConfidenceLevel.MEDIUM

    def test_tracks_sources(self, entity_factory):
        product = FusedIntelligenceProduct(
            entities=[
                entity_factory(report_id="R-1", emitter_id="E-1", multi_source=True),
                entity_factory(report_id="R-2"),
                entity_factory(report_id="R-1"),
            ]
        )

        assert product.sources.humint == {"R-1", "R-2"}
        assert product.sources.sigint == {"E-1"}

    def test_missing_ids_are_skipped(self, entity_factory):
        product = FusedIntelligenceProduct(entities=[entity_factory(report_id=None)])
        assert product.sources.humint == set()

    def test_mapping_entities_are_validated(self):
        product = FusedIntelligenceProduct(
            entities=[
                {
                    "type": "military_unit",
                    "confidence": "HIGH",
                    "sources": {"humint": [{"reportId": "R-9"}]},
                }
            ]
        )

        assert isinstance(product.entities[0], FusedEntity)
        assert product.entities[0].confidence == "high"
        assert product.sources.humint == {"R-9"}

    def test_invalid_entities_are_skipped(self):
        with capture_logs() as logs:
            product = FusedIntelligenceProduct(entities=[{"confidence": 123}, 42])

        assert product.entities == []
        assert [log["event"] for log in logs] == ["entity_rejected", "entity_rejected"]
        assert all(log["product_id"] == product.id for log in logs)

    def test_add_entity(self, entity_factory):
        product = FusedIntelligenceProduct()
        product.add_entity(entity_factory(report_id="R-5", emitter_id="E-5", multi_source=True))

        assert len(product.entities) == 1
        assert product.has_multi_source_intelligence()
        assert product.sources.sigint == {"E-5"}

    def test_multi_source_from_separate_entities(self):
        product = FusedIntelligenceProduct(
            entities=[
                {"sources": {"humint": [{"reportId": "R-1"}]}},
                {"sources": {"sigint": [{"emitterId": "E-1"}]}},
            ]
        )

        assert not any(e.has_multi_source_confirmation() for e in product.entities)
        assert product.has_multi_source_intelligence()

    def test_multi_source_needs_report_ids(self, entity_factory):
        product = FusedIntelligenceProduct(
            entities=[entity_factory(report_id=None, emitter_id="E-1", multi_source=True)]
        )

        assert product.entities[0].has_multi_source_confirmation()
        assert product.sources.humint == set()
        assert not product.has_multi_source_intelligence()

    def test_unrecognised_label_keeps_entity(self):
        product = FusedIntelligenceProduct(
            entities=[
                {"confidence": "moderate", "sources": {"humint": [{"reportId": "R-1"}]}},
                {"confidence": "low", "sources": {"humint": [{"reportId": "R-2"}]}},
            ]
        )

        assert [e.confidence for e in product.entities] == ["moderate", "low"]
        assert product.sources.humint == {"R-1", "R-2"}
        # only the low label votes
        assert product.calculate_overall_confidence() == ConfidenceLevel.LOW

    def test_numeric_ids_are_tracked_as_text(self):
        product = FusedIntelligenceProduct(
            entities=[
                {"sources": {"humint": [{"reportId": 42}], "sigint": [{"emitterId": 7}]}},
            ]
        )

        assert product.sources.humint == {"42"}
        assert product.sources.sigint == {"7"}


class TestOverallConfidence:
    """Test the confidence vote."""

    def test_multi_source_boost_for_high(self, entity_factory):
        # 3 of 5 entities are multi-source: high gets two extra votes (4 of 7)
        entities = [
            entity_factory(confidence="high", multi_source=True),
            entity_factory(confidence="high", multi_source=True),
            entity_factory(confidence="medium", multi_source=True),
            entity_factory(confidence="medium"),
            entity_factory(confidence="medium"),
        ]
        product = FusedIntelligenceProduct(entities=entities)
        assert product.calculate_overall_confidence() == ConfidenceLevel.HIGH

    def test_same_votes_without_multi_source(self, entity_factory):
        entities = [
            entity_factory(confidence="high"),
            entity_factory(confidence="high"),
            entity_factory(confidence="medium"),
            entity_factory(confidence="medium"),
            entity_factory(confidence="medium"),
        ]
        product = FusedIntelligenceProduct(entities=entities)
        assert product.calculate_overall_confidence() == ConfidenceLevel.MEDIUM

    def test_partial_multi_source_boosts_medium(self, entity_factory):
        # 1 of 3 multi-source: medium gets two votes, high 2 of 5 is no majority
        entities = [
            entity_factory(confidence="high", multi_source=True),
            entity_factory(confidence="high"),
            entity_factory(confidence="low"),
        ]
        product = FusedIntelligenceProduct(entities=entities)
        assert product.calculate_overall_confidence() == ConfidenceLevel.MEDIUM

    def test_low_majority(self, entity_factory):
        entities = [entity_factory(confidence="low") for _ in range(3)]
        entities.append(entity_factory(confidence="high"))
        product = FusedIntelligenceProduct(entities=entities)
        assert product.calculate_overall_confidence() == ConfidenceLevel.LOW

    def test_tie_is_medium(self, entity_factory):
        product = FusedIntelligenceProduct(
            entities=[entity_factory(confidence="high"), entity_factory(confidence="low")]
        )
        assert product.calculate_overall_confidence() == ConfidenceLevel.MEDIUM

    def test_refresh_confidence(self, entity_factory):
        product = FusedIntelligenceProduct(entities=[entity_factory(confidence="high")])
        assert product.confidence == "medium"
        assert product.refresh_confidence() == "high"
        assert product.confidence == "high"

    def test_fault_returns_medium(self):
        product = FusedIntelligenceProduct()
        product.entities.append(object())

        with capture_logs() as logs:
            assert product.calculate_overall_confidence() == ConfidenceLevel.MEDIUM
        assert logs[0]["event"] == "overall_confidence_failed"
        assert logs[0]["product_id"] == product.id


class TestExport:
    """Test export layouts."""

    def _product(self, entity_factory):
        return FusedIntelligenceProduct(
            id="product-test",
            summary="Armour massing near Hill 402",
            assessments=[{"text": "Attack likely within 24h"}],
            recommendations=["Increase ISR coverage"],
            entities=[
                entity_factory(
                    entity_type="military_unit",
                    confidence="high",
                    multi_source=True,
                    report_id="R-2",
                    emitter_id="E-2",
                    description="Armored column",
                    timestamp="2025-01-10T09:00:00+00:00",
                    location=Location(name="Hill 402", coordinates=[34.5, 69.2]),
                ),
                entity_factory(
                    entity_type="location",
                    report_id="R-1",
                    description="Village A",
                    timestamp="2025-01-09T12:00:00Z",
                ),
                entity_factory(entity_type="threat", report_id="R-3", timestamp=None),
            ],
        )

    def test_json_layout(self, entity_factory):
        data = self._product(entity_factory).format_for_export("JSON")

        assert data["id"] == "product-test"
        assert data["summary"] == "Armour massing near Hill 402"
        assert len(data["entities"]) == 3
        assert data["entities"][0]["multi_source"] is True
        assert data["sources"] == {"humint": ["R-1", "R-2", "R-3"], "sigint": ["E-2"]}
        assert data["recommendations"] == ["Increase ISR coverage"]
        json.dumps(data)

    def test_json_is_idempotent(self, entity_factory):
        product = self._product(entity_factory)
        first = product.format_for_export("JSON")
        second = product.format_for_export("JSON")

        assert first == second
        assert json.dumps(first) == json.dumps(second)

    def test_default_and_unknown_formats_use_json(self, entity_factory):
        product = self._product(entity_factory)
        expected = product.format_for_export("JSON")

        assert product.format_for_export() == expected
        assert product.format_for_export("json") == expected
        with capture_logs() as logs:
            assert product.format_for_export("telegram") == expected
        assert logs[0]["event"] == "unknown_export_format"

    def test_export_does_not_share_state(self, entity_factory):
        product = self._product(entity_factory)
        data = product.format_for_export("JSON")
        data["assessments"][0]["text"] = "changed"

        assert product.assessments[0]["text"] == "Attack likely within 24h"

    def test_intsum_layout(self, entity_factory):
        data = self._product(entity_factory).format_for_export("intsum")

        assert data["type"] == "INTSUM"
        assert data["reference"] == "INTSUM/product-test"
        assert data["dtg"]
        assert data["period"] == {
            "from": "2025-01-09T12:00:00+00:00",
            "to": "2025-01-10T09:00:00+00:00",
        }
        assert data["summary"] == "Armour massing near Hill 402"
        assert data["enemy_forces"] == [
            {
                "description": "Armored column",
                "location": {"name": "Hill 402", "coordinates": [34.5, 69.2]},
                "timestamp": "2025-01-10T09:00:00+00:00",
                "confidence": "high",
                "multi_source": True,
            }
        ]
        assert [t["description"] for t in data["terrain"]] == ["Village A"]
        assert data["terrain"][0]["location"] is None
        assert data["conclusions"] == [{"text": "Attack likely within 24h"}]
        assert data["confidence_assessment"] == "medium"

    def test_intsum_period_without_timestamps(self, entity_factory):
        product = FusedIntelligenceProduct(entities=[entity_factory(timestamp=None)])
        data = product.format_for_export("INTSUM")
        assert data["period"] == {"from": data["dtg"], "to": data["dtg"]}

    def test_stub_formats(self, entity_factory):
        product = self._product(entity_factory)

        assert product.format_for_export("INTREP") == {
            "type": "INTREP",
            "reference": "INTREP/product-test",
            "implemented": False,
        }
        assert product.format_for_export("nato") == {
            "type": "NATO",
            "reference": "NATO/product-test",
            "implemented": False,
        }
