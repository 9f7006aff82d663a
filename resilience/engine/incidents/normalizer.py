"""
Incident Normalizer

Maps provider-specific alert payloads into the canonical Incident record.

Each supported (provider, source) pair has an explicit entry in the mapping
table: the payload fields it requires and the method that maps it.
Normalization is partial-failure tolerant; a payload that cannot be mapped
produces a NormalizationError for that record and the batch continues.

Supported pairs and their required fields:
    aws / cloudwatch-alarm        alarmName, stateValue
    aws / cloudwatch-insight      insightId, startTime
    azure / azure-metric-alert    id, name
    azure / azure-activity-log    resourceId, eventTimestamp
    gcp / gcp-alert-policy        name
    gcp / gcp-uptime-check        name
    kubernetes / k8s-event        involvedObject, reason
    any provider / custom         id, title

Example:
    >>> normalizer = IncidentNormalizer(graph=graph)
    >>> result = normalizer.normalize("aws", "cloudwatch-alarm", alarms)
    >>> print(result.count, len(result.errors))
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from resilience.engine.dr.protection import parse_timestamp
from resilience.engine.graph import ResourceGraph
from resilience.exceptions import IncidentMappingError, UnsupportedSourceError
from resilience.models.enums import (
    CloudProvider,
    IncidentSource,
    IncidentStatus,
    NormalizationErrorType,
    Severity,
)
from resilience.models.incidents import Incident, NormalizationError, NormalizationResult

logger = structlog.get_logger()

Clock = Callable[[], datetime]

AZURE_SEVERITY = {
    0: Severity.CRITICAL,
    1: Severity.HIGH,
    2: Severity.MEDIUM,
    3: Severity.LOW,
    4: Severity.INFO,
}

AZURE_LEVEL_SEVERITY = {
    "critical": Severity.CRITICAL,
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "informational": Severity.LOW,
}

NUMERIC_SEVERITY = {
    1: Severity.CRITICAL,
    2: Severity.HIGH,
    3: Severity.MEDIUM,
    4: Severity.LOW,
    5: Severity.INFO,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _reference(value: Any, field: str) -> Optional[str]:
    """Resource reference as a string; scalars are coerced, structures rejected."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise IncidentMappingError(
        f"Field '{field}' must be a string resource reference, got {type(value).__name__}",
        field=field,
        error_type=NormalizationErrorType.INVALID_FIELD.value,
    )


def _tags(raw: dict) -> dict[str, str]:
    tags = raw.get("tags")
    if tags is None:
        return {}
    if not isinstance(tags, dict):
        raise IncidentMappingError(
            f"Field 'tags' must be an object, got {type(tags).__name__}",
            field="tags",
            error_type=NormalizationErrorType.INVALID_FIELD.value,
        )
    return {str(k): _str(v) for k, v in tags.items()}


class IncidentNormalizer:
    """
    Normalizes raw alert payloads into canonical incidents.

    Attributes:
        graph: Optional snapshot used to resolve resource references
        clock: Time source for payloads that carry no timestamp
    """

    # Payload fields each source must carry
    REQUIRED_FIELDS = {
        IncidentSource.CLOUDWATCH_ALARM: ["alarmName", "stateValue"],
        IncidentSource.CLOUDWATCH_INSIGHT: ["insightId", "startTime"],
        IncidentSource.AZURE_METRIC_ALERT: ["id", "name"],
        IncidentSource.AZURE_ACTIVITY_LOG: ["resourceId", "eventTimestamp"],
        IncidentSource.GCP_ALERT_POLICY: ["name"],
        IncidentSource.GCP_UPTIME_CHECK: ["name"],
        IncidentSource.K8S_EVENT: ["involvedObject", "reason"],
        IncidentSource.CUSTOM: ["id", "title"],
    }

    # Provider that owns each provider-specific source
    SOURCE_PROVIDERS = {
        IncidentSource.CLOUDWATCH_ALARM: CloudProvider.AWS,
        IncidentSource.CLOUDWATCH_INSIGHT: CloudProvider.AWS,
        IncidentSource.AZURE_METRIC_ALERT: CloudProvider.AZURE,
        IncidentSource.AZURE_ACTIVITY_LOG: CloudProvider.AZURE,
        IncidentSource.GCP_ALERT_POLICY: CloudProvider.GCP,
        IncidentSource.GCP_UPTIME_CHECK: CloudProvider.GCP,
        IncidentSource.K8S_EVENT: CloudProvider.KUBERNETES,
    }

    def __init__(
        self,
        graph: Optional[ResourceGraph] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the normalizer.

        Args:
            graph: Snapshot used to resolve resource references to node ids;
                without one, references are used as identifiers directly
            clock: Returns the current time for payloads without timestamps
        """
        self.graph = graph
        self.clock = clock or _utcnow
        self.logger = structlog.get_logger()
        self._mappers = {
            IncidentSource.CLOUDWATCH_ALARM: self._map_cloudwatch_alarm,
            IncidentSource.CLOUDWATCH_INSIGHT: self._map_cloudwatch_insight,
            IncidentSource.AZURE_METRIC_ALERT: self._map_azure_metric_alert,
            IncidentSource.AZURE_ACTIVITY_LOG: self._map_azure_activity_log,
            IncidentSource.GCP_ALERT_POLICY: self._map_gcp_alert_policy,
            IncidentSource.GCP_UPTIME_CHECK: self._map_gcp_uptime_check,
            IncidentSource.K8S_EVENT: self._map_k8s_event,
            IncidentSource.CUSTOM: self._map_custom,
        }

    @classmethod
    def supported_pairs(cls) -> list[tuple[CloudProvider, IncidentSource]]:
        """All (provider, source) pairs with a registered mapping."""
        pairs = [(provider, source) for source, provider in cls.SOURCE_PROVIDERS.items()]
        pairs.extend((provider, IncidentSource.CUSTOM) for provider in CloudProvider)
        return pairs

    def normalize(
        self,
        provider: CloudProvider | str,
        source: IncidentSource | str,
        items: list[Any],
    ) -> NormalizationResult:
        """
        Normalize a batch of raw payloads from one provider source.

        Args:
            provider: Provider tag
            source: Source tag
            items: Raw provider payloads; non-object entries are rejected per record

        Returns:
            NormalizationResult with incidents, their count and per-record errors

        Raises:
            UnsupportedSourceError: If no mapping exists for the pair
        """
        provider, source = self._resolve_pair(provider, source)

        incidents: list[Incident] = []
        errors: list[NormalizationError] = []
        for index, raw in enumerate(items):
            try:
                incidents.append(self.normalize_one(provider, source, raw))
            except IncidentMappingError as e:
                self.logger.warning(
                    "incident_mapping_failed",
                    provider=provider.value,
                    source=source.value,
                    index=index,
                    field=e.field,
                    error=str(e),
                )
                errors.append(
                    NormalizationError(
                        index=index,
                        provider=provider.value,
                        source=source.value,
                        error_type=NormalizationErrorType(e.error_type),
                        field=e.field,
                        message=str(e),
                    )
                )

        self.logger.info(
            "incident_normalization_complete",
            provider=provider.value,
            source=source.value,
            total_records=len(items),
            normalized=len(incidents),
            rejected=len(errors),
        )
        return NormalizationResult(incidents=incidents, count=len(incidents), errors=errors)

    def normalize_one(
        self,
        provider: CloudProvider | str,
        source: IncidentSource | str,
        raw: Any,
    ) -> Incident:
        """
        Normalize a single payload.

        Raises:
            UnsupportedSourceError: If no mapping exists for the pair
            IncidentMappingError: If the payload is missing or has invalid fields
        """
        provider, source = self._resolve_pair(provider, source)
        if not isinstance(raw, dict):
            raise IncidentMappingError(
                f"Payload must be an object, got {type(raw).__name__}",
                error_type=NormalizationErrorType.INVALID_FIELD.value,
            )

        for field in self.REQUIRED_FIELDS[source]:
            if raw.get(field) in (None, ""):
                raise IncidentMappingError(
                    f"Missing required field '{field}' for {provider.value}/{source.value}",
                    field=field,
                    error_type=NormalizationErrorType.MISSING_FIELD.value,
                )

        try:
            fields = self._mappers[source](raw)
        except (TypeError, AttributeError, LookupError, ValueError) as e:
            # Payload shape the mapping did not anticipate
            raise IncidentMappingError(
                f"Malformed {provider.value}/{source.value} payload: {e}",
                error_type=NormalizationErrorType.INVALID_FIELD.value,
            ) from e
        native_id = fields.pop("native_id")
        resource_ref = fields.pop("resource_ref", None)
        resource_id, resource_type = self._resolve_resource(resource_ref)
        if resource_type is None:
            resource_type = fields.pop("resource_type", None)
        else:
            fields.pop("resource_type", None)

        try:
            return Incident(
                incident_id=f"{provider.value}:{source.value}:{native_id}",
                provider=provider,
                source=source,
                native_id=native_id,
                resource_ref=resource_ref,
                resource_id=resource_id,
                resource_type=resource_type,
                raw_payload=raw,
                **fields,
            )
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error.get("loc", ())) or None
            raise IncidentMappingError(
                f"Invalid incident field '{field}': {error.get('msg')}",
                field=field,
                error_type=NormalizationErrorType.INVALID_FIELD.value,
            ) from e

    def _resolve_pair(
        self, provider: CloudProvider | str, source: IncidentSource | str
    ) -> tuple[CloudProvider, IncidentSource]:
        try:
            provider = CloudProvider(provider)
            source = IncidentSource(source)
        except ValueError as e:
            raise UnsupportedSourceError(str(getattr(provider, "value", provider)),
                                         str(getattr(source, "value", source))) from e
        owner = self.SOURCE_PROVIDERS.get(source)
        if owner is not None and owner != provider:
            raise UnsupportedSourceError(provider.value, source.value)
        return provider, source

    def _resolve_resource(self, ref: Optional[str]) -> tuple[Optional[str], Optional[str]]:
        """
        Resolve a provider reference to a graph node.

        Returns:
            (resource id, resource type). Without a graph the reference is
            the identifier; with a graph an unresolved reference yields None.
        """
        if not ref:
            return None, None
        if self.graph is None:
            return ref, None

        node = self.graph.get_node(ref)
        if node is None:
            candidates = sorted(
                n.id for n in self.graph.nodes
                if n.name == ref or n.id.endswith(f"/{ref}") or n.id.endswith(f":{ref}")
            )
            node = self.graph.get_node(candidates[0]) if candidates else None

        if node is None:
            self.logger.debug("incident_resource_unresolved", resource_ref=ref)
            return None, None
        return node.id, node.resource_type

    def _timestamp(self, raw: dict, field: str, required: bool = False) -> Optional[datetime]:
        value = raw.get(field)
        if value in (None, ""):
            return self.clock() if required else None
        parsed = parse_timestamp(value)
        if parsed is None:
            raise IncidentMappingError(
                f"Field '{field}' is not a valid timestamp: {value!r}",
                field=field,
                error_type=NormalizationErrorType.INVALID_FIELD.value,
            )
        return parsed

    # ------------------------------------------------------------------
    # Source mappings
    # ------------------------------------------------------------------

    def _map_cloudwatch_alarm(self, raw: dict) -> dict:
        state = _str(raw.get("stateValue")).upper()
        if state == "ALARM":
            severity, status = Severity.HIGH, IncidentStatus.FIRING
        elif state == "OK":
            severity, status = Severity.INFO, IncidentStatus.RESOLVED
        else:
            severity, status = Severity.MEDIUM, IncidentStatus.FIRING

        alarm_name = _str(raw.get("alarmName"))
        alarm_arn = _str(raw.get("alarmArn"), alarm_name)
        updated_at = self._timestamp(raw, "stateUpdatedTimestamp", required=True)

        # arn:aws:cloudwatch:<region>:<account>:alarm:<name>
        region = "unknown"
        arn_parts = alarm_arn.split(":")
        if len(arn_parts) >= 4 and arn_parts[3]:
            region = arn_parts[3]

        dimensions = raw.get("dimensions") if isinstance(raw.get("dimensions"), list) else []
        resource_ref = None
        for dimension in dimensions:
            if isinstance(dimension, dict) and dimension.get("value"):
                resource_ref = _reference(dimension["value"], "dimensions.value")
                break

        return {
            "native_id": alarm_arn,
            "title": alarm_name,
            "description": _str(
                raw.get("alarmDescription") or raw.get("stateReason"),
                f"CloudWatch alarm {alarm_name} is {state}",
            ),
            "severity": severity,
            "status": status,
            "resource_ref": resource_ref,
            "region": region,
            "started_at": updated_at,
            "updated_at": updated_at,
            "ended_at": updated_at if status == IncidentStatus.RESOLVED else None,
        }

    def _map_cloudwatch_insight(self, raw: dict) -> dict:
        state = _str(raw.get("state"), "ACTIVE").upper()
        status = IncidentStatus.RESOLVED if state == "CLOSED" else IncidentStatus.FIRING
        root_cause = raw.get("rootCauseServiceId") if isinstance(raw.get("rootCauseServiceId"), dict) else {}
        service_name = _str(root_cause.get("name"), "unknown-service")
        started_at = self._timestamp(raw, "startTime")
        ended_at = self._timestamp(raw, "endTime")

        return {
            "native_id": _str(raw.get("insightId")),
            "title": f"X-Ray Insight: {service_name}",
            "description": _str(raw.get("summary"), f"X-Ray insight for {service_name}"),
            "severity": Severity.HIGH if status == IncidentStatus.FIRING else Severity.INFO,
            "status": status,
            "resource_ref": _reference(root_cause.get("name"), "rootCauseServiceId.name"),
            "region": "global",
            "started_at": started_at,
            "updated_at": ended_at or started_at,
            "ended_at": ended_at if status == IncidentStatus.RESOLVED else None,
        }

    def _map_azure_metric_alert(self, raw: dict) -> dict:
        azure_severity = raw.get("severity", 3)
        if isinstance(azure_severity, bool) or not isinstance(azure_severity, int):
            raise IncidentMappingError(
                f"Field 'severity' must be an integer 0-4, got {azure_severity!r}",
                field="severity",
                error_type=NormalizationErrorType.INVALID_FIELD.value,
            )
        name = _str(raw.get("name"))
        scopes = raw.get("scopes") if isinstance(raw.get("scopes"), list) else []
        now = self._timestamp(raw, "lastUpdatedTime", required=True)

        return {
            "native_id": _str(raw.get("id")),
            "title": name,
            "description": _str(raw.get("description"), f"Azure metric alert: {name}"),
            "severity": AZURE_SEVERITY.get(azure_severity, Severity.MEDIUM),
            "status": IncidentStatus.FIRING if raw.get("enabled") is not False else IncidentStatus.SUPPRESSED,
            "resource_ref": _reference(scopes[0], "scopes") if scopes else None,
            "region": _str(raw.get("location"), "global"),
            "started_at": now,
            "updated_at": now,
            "tags": _tags(raw),
        }

    def _map_azure_activity_log(self, raw: dict) -> dict:
        level = _str(raw.get("level"), "Informational").lower()
        op_status = _str(raw.get("status")).lower()
        status = IncidentStatus.RESOLVED if "succeeded" in op_status else IncidentStatus.FIRING
        resource_id = _str(raw.get("resourceId"))
        timestamp = self._timestamp(raw, "eventTimestamp")
        operation = _str(raw.get("operationName"), "Azure Activity")

        return {
            "native_id": f"{resource_id}:{timestamp.isoformat()}",
            "title": operation,
            "description": _str(raw.get("description"), f"Activity: {operation}"),
            "severity": AZURE_LEVEL_SEVERITY.get(level, Severity.LOW),
            "status": status,
            "resource_ref": resource_id,
            "region": _str(raw.get("location"), "global"),
            "started_at": timestamp,
            "updated_at": timestamp,
            "ended_at": timestamp if status == IncidentStatus.RESOLVED else None,
        }

    def _map_gcp_alert_policy(self, raw: dict) -> dict:
        conditions = raw.get("conditions") if isinstance(raw.get("conditions"), list) else []
        if len(conditions) > 2:
            severity = Severity.HIGH
        elif conditions:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        name = _str(raw.get("name"))
        display_name = _str(raw.get("displayName"), name)
        created_at = self._timestamp(raw, "createdAt", required=True)

        # projects/<project>/alertPolicies/<id>
        region = "global"
        parts = name.split("/")
        if "projects" in parts:
            index = parts.index("projects")
            if len(parts) > index + 1:
                region = f"project:{parts[index + 1]}"

        resource_ref = None
        for condition in conditions:
            resource = condition.get("resource") if isinstance(condition, dict) else None
            if resource:
                resource_ref = _reference(resource, "conditions.resource")
                break

        return {
            "native_id": name,
            "title": display_name,
            "description": (
                f"GCP alert policy: {display_name} ({len(conditions)} condition(s), "
                f"combiner: {_str(raw.get('combiner'), 'OR')})"
            ),
            "severity": severity,
            "status": IncidentStatus.FIRING if raw.get("enabled") is not False else IncidentStatus.SUPPRESSED,
            "resource_ref": resource_ref,
            "region": region,
            "started_at": created_at,
            "updated_at": created_at,
        }

    def _map_gcp_uptime_check(self, raw: dict) -> dict:
        name = _str(raw.get("name"))
        display_name = _str(raw.get("displayName"), name)
        monitored = raw.get("monitoredResource") if isinstance(raw.get("monitoredResource"), dict) else {}
        labels = monitored.get("labels") if isinstance(monitored.get("labels"), dict) else {}
        now = self._timestamp(raw, "checkedAt", required=True)

        return {
            "native_id": name,
            "title": f"Uptime Check: {display_name}",
            "description": (
                f"GCP uptime check: {display_name} (period: {_str(raw.get('period'), '60s')}, "
                f"timeout: {_str(raw.get('timeout'), '10s')})"
            ),
            "severity": Severity.MEDIUM,
            "status": IncidentStatus.FIRING,
            "resource_ref": _reference(
                labels.get("host") or labels.get("instance_id"), "monitoredResource.labels"
            ),
            "resource_type": monitored.get("type"),
            "region": "global",
            "started_at": now,
            "updated_at": now,
        }

    def _map_k8s_event(self, raw: dict) -> dict:
        involved = raw.get("involvedObject")
        if not isinstance(involved, dict):
            raise IncidentMappingError(
                "Field 'involvedObject' must be an object",
                field="involvedObject",
                error_type=NormalizationErrorType.INVALID_FIELD.value,
            )
        warning = _str(raw.get("type"), "Normal") == "Warning"
        kind = _str(involved.get("kind"))
        object_name = _str(involved.get("name"))
        namespace = _str(involved.get("namespace"), "default")
        reason = _str(raw.get("reason"), "Unknown")
        metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
        uid = _str(metadata.get("uid"), f"{kind}/{object_name}:{reason}")

        started_at = self._timestamp(raw, "firstTimestamp") or parse_timestamp(
            metadata.get("creationTimestamp")
        ) or self.clock()
        updated_at = self._timestamp(raw, "lastTimestamp") or started_at

        return {
            "native_id": uid,
            "title": f"{reason}: {kind}/{object_name}",
            "description": _str(raw.get("message")) or f"K8s event {reason} on {kind}/{object_name}",
            "severity": Severity.MEDIUM if warning else Severity.INFO,
            "status": IncidentStatus.FIRING if warning else IncidentStatus.RESOLVED,
            "resource_ref": f"{namespace}/{kind}/{object_name}",
            "resource_type": kind.lower() or None,
            "region": _str(raw.get("cluster"), "cluster"),
            "started_at": started_at,
            "updated_at": updated_at,
            "ended_at": None if warning else updated_at,
        }

    def _map_custom(self, raw: dict) -> dict:
        severity = raw.get("severity", Severity.MEDIUM.value)
        if isinstance(severity, int) and not isinstance(severity, bool):
            severity = NUMERIC_SEVERITY.get(severity, Severity.MEDIUM)
        else:
            try:
                severity = Severity(_str(severity).lower())
            except ValueError:
                severity = Severity.MEDIUM

        try:
            status = IncidentStatus(_str(raw.get("status"), "firing").lower())
        except ValueError:
            status = IncidentStatus.FIRING

        started_at = self._timestamp(raw, "startedAt", required=True)
        return {
            "native_id": _str(raw.get("id")),
            "title": _str(raw.get("title")),
            "description": _str(raw.get("description")),
            "severity": severity,
            "status": status,
            "resource_ref": _reference(raw.get("resource"), "resource"),
            "resource_type": raw.get("resourceType"),
            "region": _str(raw.get("region"), "unknown"),
            "started_at": started_at,
            "updated_at": self._timestamp(raw, "updatedAt") or started_at,
            "ended_at": self._timestamp(raw, "resolvedAt"),
            "tags": _tags(raw),
        }
