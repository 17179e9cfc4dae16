"""
Model Router

Selects the backend model for an inference request, dispatches it through
the injected per-provider collaborator, and performs one-shot failover.

Selection pipeline:
    healthy models -> capability filter -> privacy filter -> score & rank
"""

import time
import uuid
import logging
from collections import deque
from typing import Dict, Any, List, Optional, Callable, Awaitable, Iterable, Deque
from datetime import datetime, timezone

from model_router.config import RouterSettings
from model_router.errors import AIErrorCode, RouterError, ProviderError
from model_router.models import (
    AIRequest,
    AIResponse,
    AIRequestType,
    DispatchResult,
    HealthStatus,
    ModelProvider,
    PrivacyLevel,
    TokenUsage,
)
from model_router.model_registry import ModelRegistry, ModelConfiguration
from model_router.performance_tracker import PerformanceTracker, PerformanceRecord
from model_router.health_monitor import HealthMonitor, ProbeFunc
from model_router.scorer import Scorer, ModelSelection, required_capability
from model_router.load_balancer import LoadBalancer, RoutingPlan
from model_router.telemetry import RoutingTelemetry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DispatchFunc = Callable[[AIRequest, ModelConfiguration], Awaitable[DispatchResult]]


class ModelRouter:
    """
    Routing engine for AI model selection

    The router owns no global state: registry, health monitor, performance
    tracker and scorer are injected (or built from settings), so several
    independent routers can coexist in one process.
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        tracker: Optional[PerformanceTracker] = None,
        health_monitor: Optional[HealthMonitor] = None,
        scorer: Optional[Scorer] = None,
        dispatchers: Optional[Dict[ModelProvider, DispatchFunc]] = None,
        default_dispatcher: Optional[DispatchFunc] = None,
        probe: Optional[ProbeFunc] = None,
        settings: Optional[RouterSettings] = None,
        telemetry: Optional[RoutingTelemetry] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize the router

        Args:
            registry: Model registry (a fresh one if omitted)
            tracker: Performance tracker (a fresh one if omitted)
            health_monitor: Health monitor (built over registry/tracker if omitted)
            scorer: Scorer (built over tracker if omitted)
            dispatchers: Per-provider dispatch collaborators
            default_dispatcher: Dispatch collaborator for providers without an entry
            probe: Active health probe, used when health_monitor is omitted
            settings: RouterSettings; defaults documented there
            telemetry: Optional Langfuse mirror for routing events
            clock: Time source in seconds shared with the registry
        """
        self.settings = settings or RouterSettings()
        if registry is None:
            registry = ModelRegistry(clock=clock) if clock else ModelRegistry()
        self.registry = registry
        self.tracker = tracker or PerformanceTracker(
            alpha=self.settings.ema_alpha, window=self.settings.error_window
        )
        self.health_monitor = health_monitor or HealthMonitor(
            self.registry, self.tracker, probe=probe, settings=self.settings
        )
        self.scorer = scorer or Scorer(self.tracker, self.settings)
        self.dispatchers: Dict[ModelProvider, DispatchFunc] = dict(dispatchers or {})
        self.default_dispatcher = default_dispatcher
        self.telemetry = telemetry or RoutingTelemetry(enabled=False)

        self.routing_history: Deque[Dict[str, Any]] = deque(maxlen=self.settings.history_limit)
        self._model_usage_count: Dict[str, int] = {}
        self.load_balancer = LoadBalancer(self, self.settings)

    # ================== Model Management ==================

    def register(self, model: ModelConfiguration) -> ModelConfiguration:
        return self.registry.register(model)

    def unregister(self, model_id: str) -> bool:
        removed = self.registry.unregister(model_id)
        if removed:
            self.health_monitor.forget(model_id)
            self.tracker.forget_outcomes(model_id)
        return removed

    def list_models(self) -> List[ModelConfiguration]:
        return self.registry.list()

    def register_dispatcher(self, provider: ModelProvider, dispatcher: DispatchFunc):
        self.dispatchers[ModelProvider(provider)] = dispatcher
        logger.info(f"Registered dispatcher for provider: {ModelProvider(provider).value}")

    async def health_check(self, model_id: str) -> HealthStatus:
        return await self.health_monitor.health_check(model_id)

    def record_performance(
        self,
        model_id: str,
        task_type: AIRequestType,
        latency: float,
        cost: float,
        quality: float,
        success: bool
    ) -> PerformanceRecord:
        return self.tracker.record_performance(
            model_id, task_type, latency=latency, cost=cost, quality=quality, success=success
        )

    # ================== Selection ==================

    async def select_model(
        self,
        request: AIRequest,
        exclude: Optional[Iterable[str]] = None
    ) -> ModelSelection:
        """
        Select the best model for a request

        Args:
            request: AIRequest to route
            exclude: Model ids that must not be selected

        Returns:
            ModelSelection with up to `max_alternatives` ranked alternates

        Raises:
            RouterError: MODEL_UNAVAILABLE or PRIVACY_VIOLATION
        """
        excluded = set(exclude or ())
        healthy = [
            m for m in await self.health_monitor.get_healthy_models()
            if m.model_id not in excluded
        ]

        if not healthy:
            raise RouterError(
                "No healthy models available",
                AIErrorCode.MODEL_UNAVAILABLE,
                retryable=True,
                request_id=request.id
            )

        capable = self.filter_by_capability(healthy, request)
        if not capable:
            # transient only if a currently unhealthy model could serve it
            capability = required_capability(request.task_type)
            retryable = any(
                capability in m.capabilities
                for m in self.registry.list()
                if m.model_id not in excluded
            )
            raise RouterError(
                f"No models available with required capabilities for {request.task_type.value}",
                AIErrorCode.MODEL_UNAVAILABLE,
                retryable=retryable,
                request_id=request.id
            )

        compliant = self.filter_by_privacy(capable, request.privacy_level)
        if not compliant:
            raise RouterError(
                f"No models available that meet privacy level {request.privacy_level.value}",
                AIErrorCode.PRIVACY_VIOLATION,
                retryable=False,
                request_id=request.id
            )

        ranked = self.scorer.rank(compliant, request, self.registry.health_status)
        eligible = [c for c in ranked if c.eligible]
        if not eligible:
            raise RouterError(
                f"No model satisfies the hard constraints of request {request.id}",
                AIErrorCode.MODEL_UNAVAILABLE,
                retryable=False,
                request_id=request.id
            )

        best = eligible[0]
        selection = ModelSelection.from_candidate(
            best,
            alternatives=eligible[1:1 + self.settings.max_alternatives],
            request_id=request.id,
        )

        logger.info(
            f"Model selected for {request.id}: {best.model_id} "
            f"(score {best.score:.3f}, considered {len(ranked)}, healthy {len(healthy)})"
        )
        self.telemetry.emit("model.selected", {
            "request_id": request.id,
            "model_id": selection.model_id,
            "confidence": selection.confidence,
            "alternatives": [a.model_id for a in selection.alternatives],
        })
        return selection

    def filter_by_capability(
        self,
        models: List[ModelConfiguration],
        request: AIRequest
    ) -> List[ModelConfiguration]:
        capability = required_capability(request.task_type)
        return [m for m in models if capability in m.capabilities]

    def filter_by_privacy(
        self,
        models: List[ModelConfiguration],
        privacy_level: PrivacyLevel
    ) -> List[ModelConfiguration]:
        if privacy_level == PrivacyLevel.LOCAL_ONLY:
            return [m for m in models if m.provider in self.settings.local_providers]
        return models

    # ================== Dispatch ==================

    def _dispatcher_for(self, provider: ModelProvider) -> Optional[DispatchFunc]:
        return self.dispatchers.get(provider, self.default_dispatcher)

    async def route_request(self, request: AIRequest, selection: ModelSelection) -> AIResponse:
        """
        Dispatch a request to the selected model

        Args:
            request: AIRequest to serve
            selection: ModelSelection from select_model

        Returns:
            AIResponse from the provider

        Raises:
            RouterError: MODEL_UNAVAILABLE if the model vanished or is unhealthy
            ProviderError: if the dispatch collaborator failed
        """
        model = self.registry.get(selection.model_id)
        if model is None:
            raise RouterError(
                f"Model configuration not found: {selection.model_id}",
                AIErrorCode.MODEL_UNAVAILABLE,
                retryable=True,
                model_id=selection.model_id,
                request_id=request.id
            )

        health = await self.health_monitor.health_check(model.model_id)
        if not health.is_selectable:
            raise RouterError(
                f"Model {model.model_id} is unhealthy: {', '.join(health.issues)}",
                AIErrorCode.MODEL_UNAVAILABLE,
                retryable=True,
                model_id=model.model_id,
                request_id=request.id
            )

        start = time.monotonic()
        outcome = await self._dispatch(request, model)
        processing_time = (time.monotonic() - start) * 1000

        if not outcome.ok:
            error = outcome.error
            error.model_id = error.model_id or model.model_id
            error.request_id = error.request_id or request.id
            await self.health_monitor.mark_unhealthy(model.model_id, f"Dispatch failed: {error.message}")
            self.tracker.record_performance(
                model.model_id, request.task_type,
                latency=processing_time, cost=0.0, quality=0.0, success=False
            )
            self._record_routing(request, selection, processing_time, success=False)
            logger.error(
                f"Request routing failed for {request.id} on {model.model_id}: "
                f"{error.message} ({processing_time:.1f}ms)"
            )
            self.telemetry.emit("request.failed", {
                "request_id": request.id,
                "model_id": model.model_id,
                "error": error.to_dict(),
            })
            raise error

        tokens = outcome.tokens_used
        cost = tokens * model.cost_per_token
        quality = outcome.quality if outcome.quality is not None else self.scorer.static_quality(model, request)

        self.tracker.record_performance(
            model.model_id, request.task_type,
            latency=processing_time, cost=cost, quality=quality, success=True
        )
        self._record_routing(request, selection, processing_time, success=True)

        response = AIResponse(
            id=f"response_{uuid.uuid4().hex}",
            request_id=request.id,
            result=outcome.result,
            confidence=selection.confidence,
            model_used=model.model_id,
            provider=model.provider,
            processing_time_ms=processing_time,
            tokens=TokenUsage(total_tokens=tokens, cost=cost),
        )
        self.telemetry.emit("request.routed", {
            "request_id": request.id,
            "model_id": model.model_id,
            "processing_time_ms": processing_time,
            "tokens": tokens,
            "cost": cost,
        })
        return response

    async def _dispatch(self, request: AIRequest, model: ModelConfiguration) -> DispatchResult:
        dispatcher = self._dispatcher_for(model.provider)
        if dispatcher is None:
            return DispatchResult.failure(ProviderError(
                f"No dispatcher registered for provider {model.provider.value}",
                model_id=model.model_id,
                request_id=request.id
            ))
        try:
            outcome = await dispatcher(request, model)
        except ProviderError as e:
            return DispatchResult.failure(e)
        except Exception as e:
            # transport failures raised by the collaborator
            return DispatchResult.failure(ProviderError(
                f"{type(e).__name__}: {e}", model_id=model.model_id, request_id=request.id
            ))
        if not isinstance(outcome, DispatchResult):
            return DispatchResult.failure(ProviderError(
                f"Dispatcher for {model.provider.value} returned {type(outcome).__name__}, expected DispatchResult",
                model_id=model.model_id,
                request_id=request.id
            ))
        return outcome

    # ================== Failover ==================

    async def handle_failover(self, failed_model_id: str, request: AIRequest) -> AIResponse:
        """
        Re-route a request away from a failed model, exactly once

        Args:
            failed_model_id: Model whose dispatch failed
            request: Original request

        Returns:
            AIResponse from the alternate model

        Raises:
            RouterError: non-retryable MODEL_UNAVAILABLE when no alternate exists
                or the alternate fails too
        """
        logger.warning(f"Handling model failover for {request.id} away from {failed_model_id}")
        await self.health_monitor.mark_unhealthy(failed_model_id, "Request processing failed")

        try:
            selection = await self.select_model(request, exclude={failed_model_id})
        except RouterError as e:
            raise RouterError(
                f"No alternative models available for failover: {e.message}",
                AIErrorCode.MODEL_UNAVAILABLE,
                retryable=False,
                model_id=failed_model_id,
                request_id=request.id
            ) from e

        failover_request = request.clone(f"{request.id}_failover_{int(time.time() * 1000)}")
        self.telemetry.emit("request.failover", {
            "request_id": request.id,
            "failover_request_id": failover_request.id,
            "failed_model_id": failed_model_id,
            "alternate_model_id": selection.model_id,
        })

        try:
            return await self.route_request(failover_request, selection)
        except RouterError as e:
            raise RouterError(
                f"Failover to {selection.model_id} failed: {e.message}",
                AIErrorCode.MODEL_UNAVAILABLE,
                retryable=False,
                model_id=selection.model_id,
                request_id=failover_request.id
            ) from e

    # ================== Batch ==================

    async def balance_load(self, requests: List[AIRequest]) -> RoutingPlan:
        return await self.load_balancer.balance_load(requests)

    # ================== Analytics ==================

    def _record_routing(
        self,
        request: AIRequest,
        selection: ModelSelection,
        processing_time: float,
        success: bool
    ):
        """Record routing outcome for analytics"""
        self.routing_history.append({
            "timestamp": datetime.now(timezone.utc),
            "request_id": request.id,
            "request_type": request.task_type.value,
            "priority": int(request.priority),
            "selected_model": selection.model_id,
            "confidence": selection.confidence,
            "estimated_cost": selection.estimated_cost,
            "estimated_latency_ms": selection.estimated_latency_ms,
            "processing_time_ms": processing_time,
            "success": success,
        })
        self._model_usage_count[selection.model_id] = \
            self._model_usage_count.get(selection.model_id, 0) + 1

    def get_routing_stats(self) -> Dict[str, Any]:
        """Get statistics about routing outcomes"""
        if not self.routing_history:
            return {}

        total_requests = len(self.routing_history)
        model_usage: Dict[str, int] = {}
        type_usage: Dict[str, int] = {}
        failures = 0
        total_estimated_cost = 0.0

        for entry in self.routing_history:
            model = entry["selected_model"]
            model_usage[model] = model_usage.get(model, 0) + 1

            request_type = entry["request_type"]
            type_usage[request_type] = type_usage.get(request_type, 0) + 1

            if not entry["success"]:
                failures += 1
            total_estimated_cost += entry.get("estimated_cost", 0.0)

        return {
            "total_requests": total_requests,
            "failed_requests": failures,
            "model_usage": model_usage,
            "request_type_usage": type_usage,
            "total_estimated_cost": total_estimated_cost,
            "avg_cost_per_request": total_estimated_cost / total_requests,
            "unique_models_used": len(model_usage),
        }

    def get_model_usage_stats(self, model_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Get detailed usage statistics for models

        Args:
            model_id: Optional specific model id, otherwise all registered models

        Returns:
            Dictionary with usage statistics
        """
        stats = {}
        models_to_check = [model_id] if model_id else self.registry.ids()

        for mid in models_to_check:
            entries = [e for e in self.routing_history if e["selected_model"] == mid]
            health = self.registry.health_status(mid)
            latencies = [e["processing_time_ms"] for e in entries]

            stats[mid] = {
                "request_count": self._model_usage_count.get(mid, 0),
                "avg_latency_ms": sum(latencies) / len(latencies) if latencies else 0.0,
                "error_rate": self.tracker.error_rate(mid),
                "total_estimated_cost": sum(e["estimated_cost"] for e in entries),
                "health": health.status.value if health else None,
                "usage_percentage": (len(entries) / len(self.routing_history) * 100) if self.routing_history else 0.0,
            }

        return stats if not model_id else stats.get(model_id, {})
