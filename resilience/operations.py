"""
Public operations of the resilience core.

Each operation takes a plain mapping of parameters, validates it into a
request model, runs the corresponding engine and answers with an
``OperationResult``. Validation problems and unsupported inputs become
failure envelopes; nothing here raises to the caller.

Example:
    >>> result = plan_recovery({"nodes": nodes, "edges": edges, "scenario": "region-failure"})
    >>> if result.success:
    ...     print(result.data.estimated_rto)
"""

from typing import Any, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from resilience.config import get_settings
from resilience.engine.dr import DRAnalyzer, RecoveryPlanner
from resilience.engine.graph import ResourceGraph
from resilience.engine.identifiers import IdentifierGenerator
from resilience.engine.incidents import IncidentAggregator, IncidentCorrelator, IncidentNormalizer
from resilience.exceptions import ResilienceError
from resilience.models.graph import ResourceEdge, ResourceNode
from resilience.models.requests import (
    CorrelateRequest,
    DRAnalyzeRequest,
    IncidentListRequest,
    NormalizeRequest,
    OperationResult,
    RecoveryPlanRequest,
)

logger = structlog.get_logger()

R = TypeVar("R", bound=BaseModel)


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic errors as ``field: message; field: message``."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "request"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


def _run(
    operation: str,
    request_model: type[R],
    params: Optional[dict[str, Any]],
    handler: Callable[[R], Any],
) -> OperationResult:
    try:
        request = request_model.model_validate(params or {})
        data = handler(request)
    except ValidationError as e:
        message = format_validation_error(e)
        logger.warning("operation_validation_failed", operation=operation, error=message)
        return OperationResult.fail(message)
    except ResilienceError as e:
        logger.warning("operation_failed", operation=operation, error=str(e))
        return OperationResult.fail(str(e))
    return OperationResult.ok(data)


def _graph(
    nodes: Optional[list[ResourceNode]], edges: Optional[list[ResourceEdge]]
) -> Optional[ResourceGraph]:
    if nodes is None and edges is None:
        return None
    return ResourceGraph(nodes or [], edges or [])


def analyze_dr(params: dict[str, Any]) -> OperationResult:
    """Score the DR posture of a resource graph; data is a DRAnalysis."""

    def handle(request: DRAnalyzeRequest):
        graph = ResourceGraph(request.nodes, request.edges)
        analyzer = DRAnalyzer(weights=request.weights)
        return analyzer.analyze(graph, planned_resource_ids=request.planned_resource_ids)

    return _run("analyze_dr", DRAnalyzeRequest, params, handle)


def plan_recovery(params: dict[str, Any]) -> OperationResult:
    """Build a recovery plan for a failure scenario; data is a RecoveryPlan."""

    def handle(request: RecoveryPlanRequest):
        graph = ResourceGraph(request.nodes, request.edges)
        return RecoveryPlanner().plan(
            graph,
            request.scenario,
            target_region=request.target_region,
            target_zone=request.target_zone,
            target_resource_type=request.target_resource_type,
        )

    return _run("plan_recovery", RecoveryPlanRequest, params, handle)


def normalize_incidents(params: dict[str, Any]) -> OperationResult:
    """Normalize provider payloads; data is a NormalizationResult."""

    def handle(request: NormalizeRequest):
        normalizer = IncidentNormalizer(graph=_graph(request.nodes, request.edges))
        return normalizer.normalize(request.provider, request.source, request.items)

    return _run("normalize_incidents", NormalizeRequest, params, handle)


def correlate_incidents(
    params: dict[str, Any],
    id_generator: Optional[IdentifierGenerator] = None,
) -> OperationResult:
    """
    Group related incidents; data is a CorrelationResult.

    Window, hop limit and minimum group size default to the configured
    settings. Group ids come from ``id_generator``, or a fresh sequential
    generator per call.
    """
    settings = get_settings()

    def handle(request: CorrelateRequest):
        window = request.window_minutes
        max_hops = request.max_hops
        correlator = IncidentCorrelator(
            graph=_graph(request.nodes, request.edges),
            window_minutes=settings.correlation_window_minutes if window is None else window,
            max_hops=settings.correlation_max_hops if max_hops is None else max_hops,
            min_group_size=settings.correlation_min_group_size,
            id_generator=id_generator,
        )
        return correlator.correlate(request.incidents)

    return _run("correlate_incidents", CorrelateRequest, params, handle)


def summarize_incidents(params: dict[str, Any]) -> OperationResult:
    """Aggregate an incident collection; data is an IncidentSummary."""
    aggregator = IncidentAggregator(top_resources_limit=get_settings().top_resources_limit)

    def handle(request: IncidentListRequest):
        incidents = request.incidents
        if request.filter is not None:
            incidents = aggregator.filter_incidents(incidents, request.filter)
        return aggregator.summarize(incidents)

    return _run("summarize_incidents", IncidentListRequest, params, handle)


def build_incident_timeline(params: dict[str, Any]) -> OperationResult:
    """Chronological state changes; data is an IncidentTimeline."""
    aggregator = IncidentAggregator()

    def handle(request: IncidentListRequest):
        incidents = request.incidents
        if request.filter is not None:
            incidents = aggregator.filter_incidents(incidents, request.filter)
        return aggregator.build_timeline(incidents)

    return _run("build_incident_timeline", IncidentListRequest, params, handle)


def triage_incidents(params: dict[str, Any]) -> OperationResult:
    """Filtered incidents in response order; data is a list of Incident."""
    aggregator = IncidentAggregator()

    def handle(request: IncidentListRequest):
        return aggregator.triage(request.incidents, request.filter)

    return _run("triage_incidents", IncidentListRequest, params, handle)
