"""
Health check registry and runner.
Produces the HealthReport snapshots that the scheduler hands to publishers.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Dict, Optional, Tuple, Union

from healthchecks_telegram.common_types import (
    HealthCheckResult,
    HealthReport,
    HealthReportEntry,
    HealthStatus,
)

logger = logging.getLogger(__name__)

CheckFn = Callable[[], Union[HealthCheckResult, Awaitable[HealthCheckResult]]]


@dataclass
class HealthCheckRegistration:
    name: str
    check: CheckFn
    tags: Tuple[str, ...] = ()
    failure_status: HealthStatus = HealthStatus.UNHEALTHY
    timeout: Optional[float] = None


class HealthCheckService:
    """Runs every registered check concurrently and aggregates the results."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._registrations: Dict[str, HealthCheckRegistration] = {}

    def add_check(
        self,
        name: str,
        check: CheckFn,
        tags: Tuple[str, ...] = (),
        failure_status: HealthStatus = HealthStatus.UNHEALTHY,
        timeout: Optional[float] = None,
    ) -> "HealthCheckService":
        if not name:
            raise ValueError("Health check name must not be empty")
        if name in self._registrations:
            raise ValueError(f"Health check '{name}' is already registered")
        self._registrations[name] = HealthCheckRegistration(name, check, tuple(tags), failure_status, timeout)
        logger.info(f"Registered health check '{name}'")
        return self

    @property
    def names(self):
        return list(self._registrations)

    async def check_health(
        self, predicate: Optional[Callable[[HealthCheckRegistration], bool]] = None
    ) -> HealthReport:
        registrations = [r for r in self._registrations.values() if predicate is None or predicate(r)]
        started = time.perf_counter()
        entries = await asyncio.gather(*(self._run_one(r) for r in registrations))
        total = timedelta(seconds=time.perf_counter() - started)
        report = HealthReport.from_entries(
            {r.name: entry for r, entry in zip(registrations, entries)}, total
        )
        logger.debug(f"Health report: {report.status.value} ({len(registrations)} checks)")
        return report

    async def _run_one(self, registration: HealthCheckRegistration) -> HealthReportEntry:
        timeout = registration.timeout if registration.timeout is not None else self.timeout
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(self._invoke(registration.check), timeout=timeout)
        except asyncio.TimeoutError:
            result = HealthCheckResult(
                status=registration.failure_status,
                description=f"Health check timed out after {timeout:.1f}s",
            )
        except Exception as e:
            logger.warning(f"Health check '{registration.name}' raised: {e}")
            result = HealthCheckResult(
                status=registration.failure_status,
                description=str(e) or type(e).__name__,
                exception=f"{type(e).__name__}: {e}",
            )
        if not isinstance(result, HealthCheckResult):
            logger.warning(f"Health check '{registration.name}' returned {type(result).__name__}")
            result = HealthCheckResult(
                status=registration.failure_status,
                description=f"Health check returned {type(result).__name__} instead of HealthCheckResult",
            )
        return HealthReportEntry(
            status=result.status,
            description=result.description,
            duration=timedelta(seconds=time.perf_counter() - started),
            exception=result.exception,
            data=result.data,
            tags=registration.tags,
        )

    @staticmethod
    async def _invoke(check: CheckFn) -> HealthCheckResult:
        if inspect.iscoroutinefunction(check):
            return await check()
        result = await asyncio.to_thread(check)
        if inspect.isawaitable(result):
            result = await result
        return result


def ping_check() -> HealthCheckResult:
    return HealthCheckResult.healthy("Process is responding")
