"""
Unit tests for the envelope operations in resilience.operations.

Covers parameter validation messages, error conversion, per-record
isolation of malformed payloads and the settings that feed operation
defaults.
"""

from datetime import timedelta

import pytest

from resilience import operations
from resilience.config import get_settings
from resilience.models.enums import FailureScenario, NormalizationErrorType
from tests.conftest import make_edge, make_incident, make_node


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestValidation:
    def test_missing_scenario_message(self):
        result = operations.plan_recovery({"nodes": [], "edges": []})
        assert result.success is False
        assert result.data is None
        assert result.error == "scenario: Field required"

    def test_no_params_lists_every_missing_field(self):
        result = operations.analyze_dr(None)
        assert result.success is False
        assert result.error == "nodes: Field required; edges: Field required"

    def test_nested_location_in_message(self):
        result = operations.analyze_dr({"nodes": [{"name": "no-id"}], "edges": []})
        assert result.error.startswith("nodes.0.id:")

    def test_duplicate_ids_become_failure(self):
        nodes = [make_node("a"), make_node("a")]
        result = operations.analyze_dr({"nodes": nodes, "edges": []})
        assert result.success is False
        assert result.error == "nodes: duplicate resource id 'a'"

    def test_unsupported_source_becomes_failure(self):
        result = operations.normalize_incidents(
            {"provider": "gcp", "source": "k8s-event", "items": []}
        )
        assert result.success is False
        assert "'gcp'" in result.error and "'k8s-event'" in result.error

    def test_unknown_tag_becomes_failure(self):
        result = operations.normalize_incidents(
            {"provider": "oracle", "source": "custom", "items": []}
        )
        assert result.success is False
        assert "'oracle'" in result.error


class TestOperations:
    def test_empty_graph_analysis(self):
        result = operations.analyze_dr({"nodes": [], "edges": []})
        assert result.success is True
        assert result.data.overall_score == 100.0

    def test_planned_ids_enable_plan_signal(self):
        params = {"nodes": [make_node("db")], "edges": [], "planned_resource_ids": ["db"]}
        result = operations.analyze_dr(params)
        assert result.data.signals["recovery_plan"] == 1.0

    def test_plan_accepts_enum_scenario(self):
        params = {
            "nodes": [make_node("db"), make_node("app", "compute")],
            "edges": [make_edge("db", "app")],
            "scenario": FailureScenario.SERVICE_OUTAGE,
            "target_resource_type": "compute",
        }
        result = operations.plan_recovery(params)
        assert [s.resource_id for s in result.data.recovery_steps] == ["app"]

    def test_correlate_override_window(self, base_time):
        incidents = [
            make_incident("aws:custom:a", resource_id="x", started_at=base_time),
            make_incident("aws:custom:b", resource_id="y", started_at=base_time + timedelta(minutes=30)),
        ]
        default = operations.correlate_incidents({"incidents": incidents})
        widened = operations.correlate_incidents({"incidents": incidents, "window_minutes": 45})
        assert default.data.group_count == 0
        assert widened.data.group_count == 1

    def test_summary_limit_from_settings(self, monkeypatch, fresh_settings):
        monkeypatch.setenv("TOP_RESOURCES_LIMIT", "1")
        incidents = [
            make_incident("aws:custom:a", resource_id="x"),
            make_incident("aws:custom:b", resource_id="x"),
            make_incident("aws:custom:c", resource_id="y"),
        ]
        result = operations.summarize_incidents({"incidents": incidents})
        assert [(r.resource, r.count) for r in result.data.top_resources] == [("x", 2)]

    def test_timeline_with_filter(self):
        incidents = [
            make_incident("aws:custom:a", resource_id="x"),
            make_incident("aws:custom:b", resource_id="y"),
        ]
        result = operations.build_incident_timeline(
            {"incidents": incidents, "filter": {"resource": "y"}}
        )
        assert [e.incident_id for e in result.data.entries] == ["aws:custom:b"]


class TestRecordIsolation:
    def test_list_tags_reject_only_that_record(self):
        result = operations.normalize_incidents({
            "provider": "aws",
            "source": "custom",
            "items": [{"id": "ok-1", "title": "fine"}, {"id": "bad", "title": "x", "tags": ["a", "b"]}],
        })
        assert result.success is True
        assert result.data.count == 1
        assert result.data.incidents[0].native_id == "ok-1"
        assert result.data.errors[0].index == 1
        assert result.data.errors[0].field == "tags"
        assert result.data.errors[0].error_type == NormalizationErrorType.INVALID_FIELD

    def test_structured_resource_with_graph(self):
        result = operations.normalize_incidents({
            "provider": "aws",
            "source": "custom",
            "items": [{"id": "ok-1", "title": "fine"}, {"id": "bad", "title": "x", "resource": {"arn": "x"}}],
            "nodes": [{"id": "n1"}],
        })
        assert result.success is True
        assert result.data.count == 1
        assert result.data.errors[0].index == 1
        assert result.data.errors[0].field == "resource"

    def test_non_object_item_rejected_per_record(self):
        result = operations.normalize_incidents({
            "provider": "aws",
            "source": "custom",
            "items": [{"id": "ok-1", "title": "fine"}, "garbage"],
        })
        assert result.success is True
        assert result.data.count == 1
        assert result.data.errors[0].index == 1
        assert result.data.errors[0].field is None

    def test_non_string_node_tags_are_analyzed(self):
        node = {
            "id": "svc",
            "resource_type": "load-balancer",
            "tags": {"critical": True, "cost_center": 42},
        }
        result = operations.analyze_dr({"nodes": [node], "edges": []})
        assert result.success is True
        unprotected = result.data.unprotected_critical_resources
        assert [n.id for n in unprotected] == ["svc"]
        assert unprotected[0].tags == {"critical": "True", "cost_center": "42"}
