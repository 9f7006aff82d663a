"""
Disaster-recovery router.

Wired to:
- DRAnalyzer for posture scoring and findings
- RecoveryPlanner for scenario recovery plans
"""

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from resilience import operations
from resilience.models.requests import OperationResult
from resilience.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def envelope(result: OperationResult):
    """Serialize an operation result; failures answer 422."""
    content = result.model_dump(mode="json")
    if not result.success:
        return JSONResponse(status_code=422, content=content)
    return content


@router.post("/analyze")
async def analyze_dr(params: dict[str, Any] = Body(...)):
    """
    Score the DR posture of a resource graph.
    Body: nodes, edges, optional weights and planned_resource_ids.
    """
    logger.info(
        "dr_analyze_requested",
        node_count=len(params.get("nodes") or []),
        edge_count=len(params.get("edges") or []),
    )
    return envelope(operations.analyze_dr(params))


@router.post("/plan")
async def plan_recovery(params: dict[str, Any] = Body(...)):
    """
    Generate a dependency-ordered recovery plan.
    Body: nodes, edges, scenario, optional target_region, target_zone, target_resource_type.
    """
    logger.info("recovery_plan_requested", scenario=params.get("scenario"))
    return envelope(operations.plan_recovery(params))
