"""
Disaster-recovery analysis and recovery plan models.

This module defines the weighting configuration consumed by the DR
analyzer and the immutable result records it and the recovery planner
produce.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    BackupStrategy,
    Effort,
    FailureScenario,
    Grade,
    RecommendationCategory,
    ReplicationStatus,
    RiskLevel,
)
from .graph import ResourceNode


class DRScoringWeights(BaseModel):
    """
    Relative weights of the five posture signals.

    Weights do not need to sum to 1.0; the scorer divides by their sum.
    """

    model_config = ConfigDict(frozen=True)

    backup_coverage: float = Field(default=0.30, ge=0.0, description="Backup coverage weight")
    replication_breadth: float = Field(default=0.25, ge=0.0, description="Replication breadth weight")
    spof: float = Field(default=0.20, ge=0.0, description="Single-point-of-failure weight")
    cross_region: float = Field(default=0.15, ge=0.0, description="Cross-region distribution weight")
    recovery_plan: float = Field(default=0.10, ge=0.0, description="Recovery plan existence weight")

    def as_dict(self) -> dict[str, float]:
        """Weights keyed by signal name."""
        return {
            "backup_coverage": self.backup_coverage,
            "replication_breadth": self.replication_breadth,
            "spof": self.spof,
            "cross_region": self.cross_region,
            "recovery_plan": self.recovery_plan,
        }


class SingleRegionRisk(BaseModel):
    """Risk finding for one provider region."""

    model_config = ConfigDict(frozen=True)

    region: str
    provider: str
    critical_resources: int = Field(ge=0)
    total_resources: int = Field(ge=0)
    has_failover: bool
    risk_level: RiskLevel


class DRRecommendation(BaseModel):
    """An actionable improvement generated by a recommendation rule."""

    model_config = ConfigDict(frozen=True)

    severity: RiskLevel
    category: RecommendationCategory
    description: str
    affected_resources: list[str] = Field(default_factory=list)
    estimated_cost: Optional[float] = Field(default=None, description="Estimated monthly cost in USD")
    effort: Effort


class RecoveryRequirement(BaseModel):
    """Protection level and recovery objectives of a single resource."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    rto: int = Field(ge=0, description="Recovery time objective in minutes")
    rpo: int = Field(ge=0, description="Recovery point objective in minutes")
    backup_strategy: BackupStrategy
    replication_status: ReplicationStatus
    failover_capable: bool


class DRAnalysis(BaseModel):
    """
    Disaster-recovery posture of a resource graph snapshot.

    Attributes:
        overall_score: Weighted posture score (0-100)
        grade: Letter grade from the fixed threshold table
        signals: Normalised signal values that fed the score
        single_region_risks: One finding per provider region, riskiest first
        unprotected_critical_resources: Critical resources without backup or replication
        single_points_of_failure: Resource ids detected as SPOFs
        recovery_time_estimates: Resource id to estimated RTO in minutes
        recommendations: Rule-generated recommendations, most severe first
    """

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(ge=0.0, le=100.0)
    grade: Grade
    signals: dict[str, float] = Field(default_factory=dict)
    single_region_risks: list[SingleRegionRisk] = Field(default_factory=list)
    unprotected_critical_resources: list[ResourceNode] = Field(default_factory=list)
    single_points_of_failure: list[str] = Field(default_factory=list)
    recovery_time_estimates: dict[str, int] = Field(default_factory=dict)
    recommendations: list[DRRecommendation] = Field(default_factory=list)


class RecoveryStep(BaseModel):
    """
    One step of a recovery plan.

    ``depends_on`` lists the orders of earlier steps that must complete
    before this one starts.
    """

    model_config = ConfigDict(frozen=True)

    order: int = Field(ge=1)
    action: str
    resource_id: str
    resource_name: str
    estimated_duration: int = Field(ge=0, description="Minutes")
    depends_on: list[int] = Field(default_factory=list)
    manual: bool = False

    @field_validator("depends_on")
    @classmethod
    def validate_depends_on(cls, v: list[int], info) -> list[int]:
        """Ensure dependencies only point at earlier steps."""
        order = info.data.get("order")
        if order is not None and any(dep >= order or dep < 1 for dep in v):
            raise ValueError("depends_on must reference steps with a smaller order")
        return v


class RecoveryPlan(BaseModel):
    """
    Dependency-ordered recovery plan for a failure scenario.

    Attributes:
        scenario: Failure scenario the plan addresses
        affected_resources: Resources impacted by the scenario
        recovery_steps: Steps in execution order
        estimated_rto: Critical-path recovery time in minutes
        estimated_rpo: Worst data-loss window in minutes
        dependency_groups: Resource ids per layer; members of a layer recover in parallel
    """

    model_config = ConfigDict(frozen=True)

    scenario: FailureScenario
    affected_resources: list[ResourceNode] = Field(default_factory=list)
    recovery_steps: list[RecoveryStep] = Field(default_factory=list)
    estimated_rto: int = Field(default=0, ge=0)
    estimated_rpo: int = Field(default=0, ge=0)
    dependency_groups: list[list[str]] = Field(default_factory=list)

    @property
    def manual_steps(self) -> list[RecoveryStep]:
        """Steps that need operator intervention."""
        return [step for step in self.recovery_steps if step.manual]
