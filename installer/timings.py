"""Pod readiness timings for a finished (or running) install."""

from dataclasses import dataclass
from datetime import datetime
from fnmatch import fnmatch
from typing import Any, Optional

MAX_REASONABLE_SECONDS = 86400

UNAVAILABLE = "Timestamp Unavailable"
UNREALISTIC = "Unrealistic Time Difference"
INCOMPLETE = "Incomplete Data"

GROUPINGS: dict[str, str] = {
    "postgres": "*-postgresql-*",
    "opensearch": "opensearch-*",
    "vault": "*-vault-*",
    "keda": "keda-*",
    "demo": "*-demo-*",
    "nats": "*-nats-*",
    "auth": "auth-*",
}


@dataclass
class PodTiming:
    name: str
    started: Optional[datetime]
    ready: Optional[datetime]

    @property
    def seconds(self) -> Optional[float]:
        if self.started is None or self.ready is None:
            return None
        return (self.ready - self.started).total_seconds()

    @property
    def duration(self) -> str:
        return describe_duration(self.seconds)


@dataclass
class GroupTiming:
    name: str
    pods: list[PodTiming]

    @property
    def label(self) -> str:
        return f"{self.name}[{len(self.pods)}]"

    @property
    def seconds(self) -> Optional[float]:
        starts = [p.started for p in self.pods]
        readies = [p.ready for p in self.pods]
        if not self.pods or None in starts or None in readies:
            return None
        return (max(readies) - min(starts)).total_seconds()

    @property
    def duration(self) -> str:
        if self.seconds is None:
            return INCOMPLETE
        return describe_duration(self.seconds)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_duration(seconds: float) -> str:
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def describe_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return UNAVAILABLE
    if seconds < 0 or seconds > MAX_REASONABLE_SECONDS:
        return UNREALISTIC
    return format_duration(seconds)


def pod_readiness(pods: dict[str, Any]) -> list[PodTiming]:
    """Time from pod start to its Ready condition, for every pod in a ``kubectl get pods -o json``."""
    timings = []
    for item in pods.get("items", []):
        status = item.get("status", {})
        ready_at = None
        for condition in status.get("conditions", []):
            if condition.get("type") == "Ready" and condition.get("status") == "True":
                ready_at = parse_timestamp(condition.get("lastTransitionTime"))
        timings.append(
            PodTiming(
                name=item["metadata"]["name"],
                started=parse_timestamp(status.get("startTime")),
                ready=ready_at,
            )
        )
    return timings


def group_for(pod_name: str) -> Optional[str]:
    for group, pattern in GROUPINGS.items():
        if fnmatch(pod_name, pattern):
            return group
    return None


def group_timings(timings: list[PodTiming]) -> tuple[list[GroupTiming], list[PodTiming]]:
    """Split pods into the known groups and the rest, keeping input order."""
    grouped: dict[str, list[PodTiming]] = {}
    ungrouped = []
    for timing in timings:
        group = group_for(timing.name)
        if group is None:
            ungrouped.append(timing)
        else:
            grouped.setdefault(group, []).append(timing)
    return [GroupTiming(name, pods) for name, pods in grouped.items()], ungrouped


def render_report(pods: dict[str, Any]) -> list[tuple[str, str]]:
    groups, ungrouped = group_timings(pod_readiness(pods))
    rows = [(group.label, group.duration) for group in groups]
    rows.extend((pod.name, pod.duration) for pod in ungrouped)
    return rows
