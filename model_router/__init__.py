"""
EE AI Router - Model selection, health tracking and failover for AI requests

This package routes inference requests to registered backend models using
weighted multi-criteria scoring, TTL-cached health checks and rolling
performance statistics.
"""

__version__ = "0.1.0"

from model_router.config import RouterSettings, ScoringWeights
from model_router.errors import AIErrorCode, RouterError, ProviderError
from model_router.models import (
    AIRequest,
    AIRequestType,
    AIResponse,
    Complexity,
    DispatchResult,
    HealthState,
    HealthStatus,
    ModelCapability,
    ModelProvider,
    PrivacyLevel,
    RequestConstraints,
    RequestPriority,
    TokenUsage,
)
from model_router.model_registry import ModelRegistry, ModelConfiguration
from model_router.performance_tracker import PerformanceTracker, PerformanceRecord
from model_router.health_monitor import HealthMonitor
from model_router.scorer import Scorer, ScoredCandidate, ModelSelection
from model_router.load_balancer import LoadBalancer, RoutingPlan, RouteAssignment
from model_router.router import ModelRouter
from model_router.probes import HttpProbe
from model_router.telemetry import RoutingTelemetry

__all__ = [
    "RouterSettings",
    "ScoringWeights",
    "AIErrorCode",
    "RouterError",
    "ProviderError",
    "AIRequest",
    "AIRequestType",
    "AIResponse",
    "Complexity",
    "DispatchResult",
    "HealthState",
    "HealthStatus",
    "ModelCapability",
    "ModelProvider",
    "PrivacyLevel",
    "RequestConstraints",
    "RequestPriority",
    "TokenUsage",
    "ModelRegistry",
    "ModelConfiguration",
    "PerformanceTracker",
    "PerformanceRecord",
    "HealthMonitor",
    "Scorer",
    "ScoredCandidate",
    "ModelSelection",
    "LoadBalancer",
    "RoutingPlan",
    "RouteAssignment",
    "ModelRouter",
    "HttpProbe",
    "RoutingTelemetry",
]
