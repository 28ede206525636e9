"""
common_types.py
Shared types for the health-check publisher: status enum, report models
and the small state cell the publisher keeps between ticks.
"""
import threading
from datetime import timedelta
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


class HealthStatus(str, Enum):
    UNHEALTHY = "Unhealthy"
    DEGRADED = "Degraded"
    HEALTHY = "Healthy"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        # Values added by newer producers are kept readable instead of failing
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return cls.UNKNOWN


# Parse through the enum so unrecognized values become Unknown
Status = Annotated[HealthStatus, BeforeValidator(lambda v: v if isinstance(v, HealthStatus) else HealthStatus(v))]


# Lower rank = worse. Unknown aggregates like Unhealthy.
_STATUS_RANK = {
    HealthStatus.UNHEALTHY: 0,
    HealthStatus.UNKNOWN: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.HEALTHY: 2,
}


def worst_status(statuses: Iterable[HealthStatus]) -> HealthStatus:
    """Aggregate entry statuses into an overall status. No entries means Healthy."""
    worst = HealthStatus.HEALTHY
    for status in statuses:
        if _STATUS_RANK[status] < _STATUS_RANK[worst]:
            worst = status
    return worst


class HealthCheckResult(BaseModel):
    """What a single health check callable returns."""
    model_config = ConfigDict(frozen=True)

    status: Status = HealthStatus.HEALTHY
    description: Optional[str] = None
    exception: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def healthy(cls, description: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> "HealthCheckResult":
        return cls(status=HealthStatus.HEALTHY, description=description, data=data or {})

    @classmethod
    def degraded(cls, description: Optional[str] = None, exception: Optional[str] = None) -> "HealthCheckResult":
        return cls(status=HealthStatus.DEGRADED, description=description, exception=exception)

    @classmethod
    def unhealthy(cls, description: Optional[str] = None, exception: Optional[str] = None) -> "HealthCheckResult":
        return cls(status=HealthStatus.UNHEALTHY, description=description, exception=exception)


class HealthReportEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Status
    description: Optional[str] = None
    duration: timedelta = timedelta(0)
    exception: Optional[str] = None
    data: Mapping[str, Any] = Field(default_factory=dict)
    tags: Tuple[str, ...] = ()


class HealthReport(BaseModel):
    """
    Immutable snapshot of every registered check at one point in time.
    When ``status`` is omitted it is derived from the entries.
    """
    model_config = ConfigDict(frozen=True)

    entries: Mapping[str, HealthReportEntry] = Field(default_factory=dict)
    total_duration: timedelta = timedelta(0)
    status: Status = HealthStatus.HEALTHY

    @model_validator(mode="before")
    @classmethod
    def _derive_status(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("status") is None:
            statuses = []
            for entry in (data.get("entries") or {}).values():
                if isinstance(entry, HealthReportEntry):
                    statuses.append(entry.status)
                else:
                    statuses.append(HealthStatus(entry.get("status")))
            data = {**data, "status": worst_status(statuses)}
        return data

    @classmethod
    def from_entries(cls, entries: Mapping[str, HealthReportEntry], total_duration: timedelta) -> "HealthReport":
        return cls(entries=dict(entries), total_duration=total_duration)


class PreviousReportCell:
    """
    Single-slot holder for the last report a publisher has seen.
    Writes replace the whole value under a lock; last write wins.
    """

    def __init__(self, report: Optional[HealthReport] = None):
        self._lock = threading.Lock()
        self._report = report

    def get(self) -> Optional[HealthReport]:
        with self._lock:
            return self._report

    def set(self, report: HealthReport) -> None:
        with self._lock:
            self._report = report
