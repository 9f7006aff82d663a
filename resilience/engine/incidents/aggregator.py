"""
Incident Aggregator

Read-only views over a collection of canonical incidents: the dashboard
summary, a chronological timeline of state changes, triage ordering and
filtering.
"""

from collections import Counter
from typing import Optional

import structlog

from resilience.models.enums import IncidentStatus, Severity, TimelineEventType
from resilience.models.incidents import (
    Incident,
    IncidentFilter,
    IncidentSummary,
    IncidentTimeline,
    ResourceCount,
    TimelineEntry,
)

logger = structlog.get_logger()

SEVERITY_RANK = {severity: rank for rank, severity in enumerate(Severity)}

# Triage order: what still needs attention comes first
STATUS_RANK = {
    IncidentStatus.FIRING: 0,
    IncidentStatus.ACKNOWLEDGED: 1,
    IncidentStatus.SUPPRESSED: 2,
    IncidentStatus.RESOLVED: 3,
}

EVENT_RANK = {event: rank for rank, event in enumerate(TimelineEventType)}


class IncidentAggregator:
    """
    Computes summaries and views over incidents.

    Attributes:
        top_resources_limit: Number of resources listed in the summary
    """

    def __init__(self, top_resources_limit: int = 10):
        self.top_resources_limit = top_resources_limit
        self.logger = structlog.get_logger()

    def summarize(self, incidents: list[Incident]) -> IncidentSummary:
        """
        Aggregate counts and resolution statistics.

        Severity and status counts list every value, zero included. MTTR is
        the mean start-to-end time of incidents that have ended, None when
        none has.
        """
        by_severity = {s.value: 0 for s in Severity}
        by_status = {s.value: 0 for s in IncidentStatus}
        by_provider: Counter = Counter()
        by_source: Counter = Counter()
        by_resource_type: Counter = Counter()
        resources: Counter = Counter()
        durations: list[float] = []

        for incident in incidents:
            by_severity[incident.severity.value] += 1
            by_status[incident.status.value] += 1
            by_provider[incident.provider.value] += 1
            by_source[incident.source.value] += 1
            by_resource_type[incident.resource_type or "unknown"] += 1

            resource = incident.resource_id or incident.resource_ref
            if resource:
                resources[resource] += 1
            if incident.ended_at is not None:
                durations.append((incident.ended_at - incident.started_at).total_seconds())

        top_resources = [
            ResourceCount(resource=resource, count=count)
            for resource, count in sorted(resources.items(), key=lambda item: (-item[1], item[0]))
        ][: self.top_resources_limit]

        summary = IncidentSummary(
            total=len(incidents),
            open_count=sum(1 for i in incidents if i.is_open),
            by_severity=by_severity,
            by_status=by_status,
            by_provider=dict(sorted(by_provider.items())),
            by_source=dict(sorted(by_source.items())),
            by_resource_type=dict(sorted(by_resource_type.items())),
            mttr_seconds=round(sum(durations) / len(durations), 2) if durations else None,
            top_resources=top_resources,
            latest_incident_at=max((i.last_seen for i in incidents), default=None),
        )

        self.logger.info(
            "incident_summary_computed",
            total=summary.total,
            open_count=summary.open_count,
            mttr_seconds=summary.mttr_seconds,
        )
        return summary

    def build_timeline(self, incidents: list[Incident]) -> IncidentTimeline:
        """Chronological fired/acknowledged/resolved entries for each incident."""
        entries: list[TimelineEntry] = []
        for incident in incidents:
            label = f"[{incident.severity.value}] {incident.title or incident.incident_id}"
            entries.append(TimelineEntry(
                timestamp=incident.started_at,
                event_type=TimelineEventType.FIRED,
                incident_id=incident.incident_id,
                label=label,
            ))
            if incident.status == IncidentStatus.ACKNOWLEDGED and incident.updated_at is not None:
                entries.append(TimelineEntry(
                    timestamp=max(incident.updated_at, incident.started_at),
                    event_type=TimelineEventType.ACKNOWLEDGED,
                    incident_id=incident.incident_id,
                    label=label,
                ))
            if incident.ended_at is not None:
                entries.append(TimelineEntry(
                    timestamp=incident.ended_at,
                    event_type=TimelineEventType.RESOLVED,
                    incident_id=incident.incident_id,
                    label=label,
                ))

        entries.sort(key=lambda e: (e.timestamp, EVENT_RANK[e.event_type], e.incident_id))
        return IncidentTimeline(
            entries=entries,
            start_time=entries[0].timestamp if entries else None,
            end_time=entries[-1].timestamp if entries else None,
            incident_count=len({i.incident_id for i in incidents}),
        )

    def triage(
        self,
        incidents: list[Incident],
        criteria: Optional[IncidentFilter] = None,
    ) -> list[Incident]:
        """
        Order incidents for response.

        Sorted by severity (critical first), then status (firing,
        acknowledged, suppressed, resolved), then most recent activity.
        """
        selected = self.filter_incidents(incidents, criteria) if criteria else list(incidents)
        return sorted(
            selected,
            key=lambda i: (
                SEVERITY_RANK[i.severity],
                STATUS_RANK[i.status],
                -i.last_seen.timestamp(),
                i.incident_id,
            ),
        )

    def filter_incidents(
        self, incidents: list[Incident], criteria: IncidentFilter
    ) -> list[Incident]:
        """Incidents matching every set criterion, in input order."""
        return [i for i in incidents if self._matches(i, criteria)]

    @staticmethod
    def _matches(incident: Incident, criteria: IncidentFilter) -> bool:
        if criteria.providers and incident.provider not in criteria.providers:
            return False
        if criteria.sources and incident.source not in criteria.sources:
            return False
        if criteria.severities and incident.severity not in criteria.severities:
            return False
        if criteria.statuses and incident.status not in criteria.statuses:
            return False
        if criteria.started_after and incident.started_at < criteria.started_after:
            return False
        if criteria.started_before and incident.started_at > criteria.started_before:
            return False
        resources = [r.lower() for r in (incident.resource_id, incident.resource_ref) if r]
        if criteria.resource:
            term = criteria.resource.lower()
            if not any(term in r for r in resources):
                return False
        if criteria.search:
            needle = criteria.search.lower()
            if (
                needle not in incident.title.lower()
                and needle not in incident.description.lower()
                and not any(needle in r for r in resources)
            ):
                return False
        if criteria.tags:
            for key, value in criteria.tags.items():
                if incident.tags.get(key) != value:
                    return False
        return True
