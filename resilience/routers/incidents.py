"""
Incident router.

Wired to:
- IncidentNormalizer for provider payload ingestion
- IncidentCorrelator for root-cause grouping
- IncidentAggregator for summary, timeline and triage views
"""

from typing import Any

from fastapi import APIRouter, Body

from resilience import operations
from resilience.routers.dr import envelope
from resilience.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/normalize")
async def normalize_incidents(params: dict[str, Any] = Body(...)):
    """Normalize raw provider payloads into canonical incidents."""
    logger.info(
        "incident_normalize_requested",
        provider=params.get("provider"),
        source=params.get("source"),
        item_count=len(params.get("items") or []),
    )
    return envelope(operations.normalize_incidents(params))


@router.post("/correlate")
async def correlate_incidents(params: dict[str, Any] = Body(...)):
    """Group incidents that likely share a root cause."""
    logger.info("incident_correlate_requested", incident_count=len(params.get("incidents") or []))
    return envelope(operations.correlate_incidents(params))


@router.post("/summary")
async def summarize_incidents(params: dict[str, Any] = Body(...)):
    """Counts by severity, status, provider, source and resource type, plus MTTR."""
    return envelope(operations.summarize_incidents(params))


@router.post("/timeline")
async def incident_timeline(params: dict[str, Any] = Body(...)):
    """Chronological fired/acknowledged/resolved events."""
    return envelope(operations.build_incident_timeline(params))


@router.post("/triage")
async def triage_incidents(params: dict[str, Any] = Body(...)):
    """Incidents ordered for response, optionally filtered."""
    return envelope(operations.triage_incidents(params))
