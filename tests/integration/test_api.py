"""
Integration tests for the HTTP API.

All endpoints tested:
- System: health
- DR: analyze, plan
- Incidents: normalize, correlate, summary, timeline, triage
"""

import pytest
from fastapi.testclient import TestClient

from resilience.main import app
from tests.conftest import cloudwatch_alarm, k8s_event


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def graph_payload():
    return {
        "nodes": [
            {"id": "orders-db", "name": "orders", "provider": "aws", "resource_type": "database", "region": "us-east-1"},
            {"id": "api", "provider": "aws", "resource_type": "compute", "region": "us-east-1"},
            {"id": "lb", "provider": "aws", "resource_type": "load-balancer", "region": "us-east-1"},
        ],
        "edges": [
            {"source_id": "orders-db", "target_id": "api", "relationship_type": "depends-on"},
            {"source_id": "api", "target_id": "lb", "relationship_type": "routes-to"},
            {"source_id": "api", "target_id": "missing", "relationship_type": "depends-on"},
        ],
    }


@pytest.fixture
def incident_payloads():
    return [
        {
            "incident_id": "aws:custom:1",
            "provider": "aws",
            "source": "custom",
            "severity": "critical",
            "resource_id": "orders-db",
            "region": "us-east-1",
            "started_at": "2026-10-17T08:00:00Z",
        },
        {
            "incident_id": "gcp:custom:2",
            "provider": "gcp",
            "source": "custom",
            "severity": "low",
            "status": "resolved",
            "resource_id": "orders-db",
            "region": "us-east-1",
            "started_at": "2026-10-17T09:00:00Z",
            "ended_at": "2026-10-17T09:30:00Z",
        },
    ]


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_non_object_body_rejected(self, client):
        response = client.post("/api/v1/dr/analyze", json=[1, 2, 3])
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("body")


class TestDREndpoints:
    def test_analyze(self, client, graph_payload):
        response = client.post("/api/v1/dr/analyze", json=graph_payload)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["error"] is None
        assert body["data"]["grade"] == "F"
        assert body["data"]["single_points_of_failure"] == ["orders-db", "api"]

    def test_analyze_missing_edges(self, client, graph_payload):
        response = client.post("/api/v1/dr/analyze", json={"nodes": graph_payload["nodes"]})
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"] == "edges: Field required"

    def test_analyze_duplicate_ids(self, client, graph_payload):
        graph_payload["nodes"].append(graph_payload["nodes"][0])
        body = client.post("/api/v1/dr/analyze", json=graph_payload).json()
        assert body["success"] is False
        assert "duplicate resource id 'orders-db'" in body["error"]

    def test_plan(self, client, graph_payload):
        graph_payload["scenario"] = "region-failure"
        graph_payload["target_region"] = "us-east-1"
        body = client.post("/api/v1/dr/plan", json=graph_payload).json()
        assert body["success"] is True
        steps = body["data"]["recovery_steps"]
        assert [s["resource_id"] for s in steps] == ["orders-db", "api", "lb"]
        assert steps[0]["resource_name"] == "orders"
        assert body["data"]["estimated_rto"] == 180 + 45 + 90

    def test_plan_missing_scenario(self, client, graph_payload):
        response = client.post("/api/v1/dr/plan", json=graph_payload)
        assert response.status_code == 422
        assert response.json()["error"] == "scenario: Field required"

    def test_plan_unknown_scenario(self, client, graph_payload):
        graph_payload["scenario"] = "meteor-strike"
        body = client.post("/api/v1/dr/plan", json=graph_payload).json()
        assert body["success"] is False
        assert body["error"].startswith("scenario:")


class TestIncidentEndpoints:
    def test_normalize_partial_failure(self, client):
        broken = cloudwatch_alarm(name="broken")
        del broken["stateValue"]
        payload = {"provider": "aws", "source": "cloudwatch-alarm", "items": [cloudwatch_alarm(), broken]}
        body = client.post("/api/v1/incidents/normalize", json=payload).json()
        assert body["success"] is True
        assert body["data"]["count"] == 1
        assert body["data"]["errors"][0]["field"] == "stateValue"
        assert body["data"]["errors"][0]["error_type"] == "missing-field"

    def test_normalize_resolves_against_graph(self, client, graph_payload):
        payload = {
            "provider": "aws",
            "source": "cloudwatch-alarm",
            "items": [cloudwatch_alarm(instance="orders")],
            "nodes": graph_payload["nodes"],
            "edges": graph_payload["edges"],
        }
        incident = client.post("/api/v1/incidents/normalize", json=payload).json()["data"]["incidents"][0]
        assert incident["resource_id"] == "orders-db"

    def test_normalize_unsupported_source(self, client):
        payload = {"provider": "kubernetes", "source": "cloudwatch-alarm", "items": [k8s_event()]}
        response = client.post("/api/v1/incidents/normalize", json=payload)
        assert response.status_code == 422
        assert "No incident mapping" in response.json()["error"]

    def test_correlate(self, client, incident_payloads):
        body = client.post("/api/v1/incidents/correlate", json={"incidents": incident_payloads}).json()
        assert body["success"] is True
        assert body["data"]["group_count"] == 1
        group = body["data"]["groups"][0]
        assert group["group_id"] == "corr-0001"
        assert sorted(group["incident_ids"]) == ["aws:custom:1", "gcp:custom:2"]
        assert group["reasons"] == ["cross-provider-resource"]

    def test_correlate_missing_incidents(self, client):
        response = client.post("/api/v1/incidents/correlate", json={})
        assert response.json()["error"] == "incidents: Field required"

    def test_summary(self, client, incident_payloads):
        data = client.post("/api/v1/incidents/summary", json={"incidents": incident_payloads}).json()["data"]
        assert data["total"] == 2
        assert data["open_count"] == 1
        assert data["by_provider"] == {"aws": 1, "gcp": 1}
        assert data["mttr_seconds"] == 1800.0

    def test_timeline(self, client, incident_payloads):
        data = client.post("/api/v1/incidents/timeline", json={"incidents": incident_payloads}).json()["data"]
        assert [e["event_type"] for e in data["entries"]] == ["fired", "fired", "resolved"]

    def test_triage_with_filter(self, client, incident_payloads):
        payload = {"incidents": incident_payloads, "filter": {"providers": ["gcp"]}}
        data = client.post("/api/v1/incidents/triage", json=payload).json()["data"]
        assert [i["incident_id"] for i in data] == ["gcp:custom:2"]
