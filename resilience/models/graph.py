"""
Resource graph records.

Nodes and edges are the snapshot handed in by external discovery adapters.
Only the node identifier has to be well-formed; everything else is taken
as-is so partially discovered resources can still be analyzed.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import CloudProvider


class ResourceNode(BaseModel):
    """
    A discovered cloud resource.

    Attributes:
        id: Identifier, unique within one graph snapshot
        name: Display name
        provider: Cloud provider the resource lives in
        resource_type: Provider-agnostic type (database, compute, storage, ...)
        region: Region or location string
        status: Lifecycle status reported by discovery
        tags: Key-value tags
        metadata: Free-form discovery metadata
        cost_monthly: Monthly cost in USD when known
        owner: Owning team or person when known
        created_at: Creation timestamp when known
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "arn:aws:rds:us-east-1:123456789012:db:orders",
                "name": "orders-db",
                "provider": "aws",
                "resource_type": "database",
                "region": "us-east-1",
                "status": "running",
                "tags": {"criticality": "critical"},
                "metadata": {"replication_status": "async"},
                "cost_monthly": 420.0,
            }
        },
    )

    id: str = Field(description="Identifier, unique within one graph snapshot")
    name: str = Field(default="", description="Display name")
    provider: CloudProvider = Field(default=CloudProvider.CUSTOM, description="Cloud provider")
    resource_type: str = Field(default="unknown", description="Provider-agnostic resource type")
    region: str = Field(default="unknown", description="Region or location")
    status: str = Field(default="unknown", description="Lifecycle status")
    tags: dict[str, str] = Field(default_factory=dict, description="Key-value tags")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")
    cost_monthly: Optional[float] = Field(default=None, description="Monthly cost in USD")
    owner: Optional[str] = Field(default=None, description="Owning team or person")
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject blank identifiers."""
        if not v or not v.strip():
            raise ValueError("Resource id must be a non-empty string")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def stringify_tags(cls, v: Any) -> dict[str, str]:
        """Discovery adapters emit booleans and numbers as tag values; keep them as text."""
        if not isinstance(v, dict):
            return {}
        return {str(key): "" if value is None else str(value) for key, value in v.items()}

    @property
    def display_name(self) -> str:
        """Name to show in plans and recommendations."""
        return self.name or self.id


class ResourceEdge(BaseModel):
    """
    A typed relationship between two resources.

    Endpoints are plain identifiers; an edge whose endpoint is not in the
    snapshot is kept but ignored by every traversal.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(description="Identifier of the source resource")
    target_id: str = Field(description="Identifier of the target resource")
    relationship_type: str = Field(description="Relationship, e.g. depends-on, backs-up")
