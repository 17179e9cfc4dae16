"""
Health Monitor

Keeps a TTL-cached HealthStatus per registered model. A stale entry is
recomputed with an active probe (injected collaborator) plus the error rate
of the model's recent routing outcomes.

State transitions per model:
    HEALTHY <-> DEGRADED <-> UNHEALTHY
    UNHEALTHY -> HEALTHY only once the TTL has expired and a fresh probe succeeds
"""

import time
import asyncio
import logging
from typing import Dict, List, Optional, Callable, Awaitable

from model_router.config import RouterSettings
from model_router.models import HealthState, HealthStatus
from model_router.model_registry import ModelRegistry, ModelConfiguration
from model_router.performance_tracker import PerformanceTracker

logger = logging.getLogger(__name__)

ProbeFunc = Callable[[ModelConfiguration], Awaitable[bool]]


class HealthMonitor:
    """TTL-cached operability classification for every registered model"""

    def __init__(
        self,
        registry: ModelRegistry,
        tracker: PerformanceTracker,
        probe: Optional[ProbeFunc] = None,
        settings: Optional[RouterSettings] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize the health monitor

        Args:
            registry: Registry owning the models and their health entries
            tracker: Source of recent routing outcomes (error rate)
            probe: Optional async callable returning True when the backend answers
            settings: Router settings (TTL and error-rate thresholds)
            clock: Time source in seconds; defaults to the registry's clock
        """
        self.registry = registry
        self.tracker = tracker
        self.probe = probe
        self.settings = settings or RouterSettings()
        self.clock = clock or registry.clock
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, model_id: str) -> asyncio.Lock:
        # created lazily so the lock binds to the running loop
        lock = self._locks.get(model_id)
        if lock is None:
            lock = self._locks[model_id] = asyncio.Lock()
        return lock

    def forget(self, model_id: str):
        """Release per-model state once a model is unregistered"""
        self._locks.pop(model_id, None)

    def is_fresh(self, status: HealthStatus) -> bool:
        if status.last_checked is None:
            return False
        return self.clock() - status.last_checked < self.settings.health_ttl_seconds

    async def health_check(self, model_id: str) -> HealthStatus:
        """
        Return the cached status of a model, re-probing it once the TTL expired

        Args:
            model_id: Registered model id

        Returns:
            HealthStatus (a copy; the cached entry is never handed out)
        """
        model = self.registry.get(model_id)
        if model is None:
            return HealthStatus(
                status=HealthState.UNHEALTHY,
                response_time_ms=0.0,
                error_rate=1.0,
                last_checked=self.clock(),
                issues=["Model not found"],
            )

        async with self._lock_for(model_id):
            cached = self.registry.health_status(model_id)
            if cached is not None and self.is_fresh(cached):
                return cached

            status = await self._compute_status(model, cached)
            if not self.registry.store_health(model_id, status):
                logger.debug(f"Model '{model_id}' unregistered during health check; result discarded")
            return status.copy()

    async def _compute_status(
        self,
        model: ModelConfiguration,
        previous: Optional[HealthStatus]
    ) -> HealthStatus:
        start = time.monotonic()
        try:
            probe_ok = await self.probe(model) if self.probe else True
        except Exception as e:
            # timeouts raised by the probe land here as well
            response_time = (time.monotonic() - start) * 1000
            logger.warning(f"Health probe for '{model.model_id}' failed: {e!r}")
            return HealthStatus(
                status=HealthState.UNHEALTHY,
                response_time_ms=response_time,
                error_rate=self.tracker.error_rate(model.model_id),
                last_checked=self.clock(),
                issues=[f"Probe failed: {e!r}"],
            )
        response_time = (time.monotonic() - start) * 1000

        if not probe_ok:
            logger.warning(f"Health probe for '{model.model_id}' reported the backend as down")
            return HealthStatus(
                status=HealthState.UNHEALTHY,
                response_time_ms=response_time,
                error_rate=self.tracker.error_rate(model.model_id),
                last_checked=self.clock(),
                issues=["Health check failed"],
            )

        if previous is not None and previous.status == HealthState.UNHEALTHY:
            self.tracker.reset_outcomes(model.model_id)
            logger.info(f"Model '{model.model_id}' recovered after a successful probe")
            return HealthStatus(
                status=HealthState.HEALTHY,
                response_time_ms=response_time,
                error_rate=0.0,
                last_checked=self.clock(),
                issues=[],
            )

        error_rate = self.tracker.error_rate(model.model_id)
        state, issues = self.classify(error_rate)
        if previous is not None and previous.status != state:
            logger.info(f"Model '{model.model_id}' health changed: {previous.status.value} -> {state.value}")

        return HealthStatus(
            status=state,
            response_time_ms=response_time,
            error_rate=error_rate,
            last_checked=self.clock(),
            issues=issues,
        )

    def classify(self, error_rate: float):
        if error_rate > self.settings.unhealthy_error_rate:
            return HealthState.UNHEALTHY, [f"Error rate {error_rate:.1%} above threshold"]
        if error_rate >= self.settings.degraded_error_rate:
            return HealthState.DEGRADED, [f"Elevated error rate {error_rate:.1%}"]
        return HealthState.HEALTHY, []

    async def mark_unhealthy(self, model_id: str, reason: str) -> Optional[HealthStatus]:
        """Force the cached entry to UNHEALTHY, appending the reason"""
        async with self._lock_for(model_id):
            current = self.registry.health_status(model_id)
            if current is None:
                logger.warning(f"Cannot mark unknown model '{model_id}' unhealthy")
                return None

            status = HealthStatus(
                status=HealthState.UNHEALTHY,
                response_time_ms=current.response_time_ms,
                error_rate=self.tracker.error_rate(model_id),
                last_checked=self.clock(),
                issues=current.issues + [reason],
            )
            self.registry.store_health(model_id, status)

        logger.warning(f"Model '{model_id}' marked unhealthy: {reason}")
        return status.copy()

    async def invalidate(self, model_id: str) -> bool:
        """Mark the cached entry stale so the next health_check re-probes"""
        async with self._lock_for(model_id):
            current = self.registry.health_status(model_id)
            if current is None:
                return False
            current.last_checked = None
            return self.registry.store_health(model_id, current)

    async def get_healthy_models(self) -> List[ModelConfiguration]:
        healthy = []
        for model in self.registry.list():
            status = await self.health_check(model.model_id)
            if status.is_selectable:
                healthy.append(model)
        return healthy
