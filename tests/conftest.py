"""
Pytest configuration and shared fixtures for the resilience test suite.

Factories build pydantic records with sensible defaults so each test only
states the fields it cares about. Raw payload factories mirror the shapes
emitted by the provider alert APIs.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

os.environ.setdefault("LOG_FORMAT", "console")

from resilience.engine.graph import ResourceGraph
from resilience.models.enums import CloudProvider, IncidentSource, IncidentStatus, Severity
from resilience.models.graph import ResourceEdge, ResourceNode
from resilience.models.incidents import Incident

BASE_TIME = datetime(2026, 10, 17, 8, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Pydantic model factories, reusable across all test suites
# ---------------------------------------------------------------------------


def make_node(
    node_id: str = "db-1",
    resource_type: str = "database",
    region: str = "us-east-1",
    provider: CloudProvider = CloudProvider.AWS,
    **overrides,
) -> ResourceNode:
    """Factory function for creating test ResourceNode objects."""
    defaults = dict(
        id=node_id,
        name=node_id,
        provider=provider,
        resource_type=resource_type,
        region=region,
        status="running",
    )
    defaults.update(overrides)
    return ResourceNode(**defaults)


def make_edge(source_id: str, target_id: str, relationship_type: str = "depends-on") -> ResourceEdge:
    """Factory function for creating test ResourceEdge objects."""
    return ResourceEdge(source_id=source_id, target_id=target_id, relationship_type=relationship_type)


def make_incident(
    incident_id: str = "aws:custom:inc-1",
    resource_id: Optional[str] = "db-1",
    started_at: Optional[datetime] = None,
    provider: CloudProvider = CloudProvider.AWS,
    severity: Severity = Severity.HIGH,
    status: IncidentStatus = IncidentStatus.FIRING,
    **overrides,
) -> Incident:
    """Factory function for creating test Incident objects."""
    started = started_at or BASE_TIME
    defaults = dict(
        incident_id=incident_id,
        provider=provider,
        source=IncidentSource.CUSTOM,
        native_id=incident_id.split(":")[-1],
        title=f"Incident {incident_id}",
        severity=severity,
        status=status,
        resource_ref=resource_id,
        resource_id=resource_id,
        region="us-east-1",
        started_at=started,
        updated_at=started,
    )
    defaults.update(overrides)
    return Incident(**defaults)


def make_protected_pair(
    primary_id: str,
    replica_id: str,
    resource_type: str = "database",
    primary_region: str = "us-east-1",
    replica_region: str = "us-west-2",
) -> tuple[list[ResourceNode], list[ResourceEdge]]:
    """A primary and its cross-region replica, each backed up and replicating to the other."""
    nodes = [
        make_node(primary_id, resource_type, region=primary_region),
        make_node(replica_id, resource_type, region=replica_region),
        make_node(f"{primary_id}-vault", "backup-vault", region=primary_region),
        make_node(f"{replica_id}-vault", "backup-vault", region=replica_region),
    ]
    edges = [
        make_edge(primary_id, replica_id, "replicates-to"),
        make_edge(replica_id, primary_id, "replicates-to"),
        make_edge(primary_id, f"{primary_id}-vault", "backs-up"),
        make_edge(replica_id, f"{replica_id}-vault", "backs-up"),
    ]
    return nodes, edges


def cloudwatch_alarm(
    name: str = "orders-db-cpu",
    state: str = "ALARM",
    instance: Optional[str] = "orders-db",
    **overrides,
) -> dict:
    """Raw CloudWatch DescribeAlarms entry."""
    payload = {
        "alarmName": name,
        "alarmArn": f"arn:aws:cloudwatch:us-east-1:123456789012:alarm:{name}",
        "stateValue": state,
        "stateReason": "Threshold Crossed",
        "stateUpdatedTimestamp": "2026-10-17T08:00:00Z",
        "namespace": "AWS/RDS",
        "metricName": "CPUUtilization",
        "dimensions": [{"name": "DBInstanceIdentifier", "value": instance}] if instance else [],
    }
    payload.update(overrides)
    return payload


def azure_metric_alert(name: str = "vm-cpu", severity: int = 1, **overrides) -> dict:
    """Raw Azure Monitor metric alert rule."""
    payload = {
        "id": f"/subscriptions/sub-1/resourceGroups/rg/providers/microsoft.insights/metricAlerts/{name}",
        "name": name,
        "location": "eastus",
        "severity": severity,
        "enabled": True,
        "description": "CPU above 90%",
        "scopes": ["/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/web-vm"],
        "lastUpdatedTime": "2026-10-17T08:05:00Z",
    }
    payload.update(overrides)
    return payload


def k8s_event(reason: str = "BackOff", event_type: str = "Warning", **overrides) -> dict:
    """Raw Kubernetes core/v1 Event."""
    payload = {
        "metadata": {"uid": f"uid-{reason.lower()}", "creationTimestamp": "2026-10-17T08:00:00Z"},
        "involvedObject": {"kind": "Pod", "name": "checkout-7d9f", "namespace": "shop"},
        "reason": reason,
        "message": "Back-off restarting failed container",
        "type": event_type,
        "firstTimestamp": "2026-10-17T08:00:00Z",
        "lastTimestamp": "2026-10-17T08:03:00Z",
        "cluster": "prod-eks",
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def web_stack() -> ResourceGraph:
    """
    Single-region three-tier stack with no protection.

    Dependency edges point from the resource that must recover first:
    orders-db -> api -> lb
    """
    nodes = [
        make_node("orders-db", "database"),
        make_node("api", "compute"),
        make_node("lb", "load-balancer"),
    ]
    edges = [
        make_edge("orders-db", "api", "depends-on"),
        make_edge("api", "lb", "routes-to"),
    ]
    return ResourceGraph(nodes, edges)


@pytest.fixture
def protected_graph() -> ResourceGraph:
    """Two regions; every critical resource is backed up and replicated cross-region."""
    db_nodes, db_edges = make_protected_pair("orders-db", "orders-db-replica")
    bucket_nodes, bucket_edges = make_protected_pair("assets", "assets-replica", resource_type="storage")
    return ResourceGraph(db_nodes + bucket_nodes, db_edges + bucket_edges)


@pytest.fixture
def correlated_incidents(base_time) -> list[Incident]:
    """Two incidents on the same database plus an unrelated one in another region."""
    return [
        make_incident("aws:custom:a", resource_id="orders-db", started_at=base_time),
        make_incident(
            "azure:custom:b",
            resource_id="orders-db",
            provider=CloudProvider.AZURE,
            started_at=base_time + timedelta(days=2),
        ),
        make_incident(
            "gcp:custom:c",
            resource_id="analytics",
            provider=CloudProvider.GCP,
            region="europe-west1",
            started_at=base_time + timedelta(hours=6),
        ),
    ]
