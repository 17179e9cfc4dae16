import os
import logging
from typing import Dict, Any, FrozenSet, Optional
from dataclasses import dataclass, field, asdict, replace

from dotenv import load_dotenv

from model_router.models import ModelProvider

logger = logging.getLogger(__name__)

ENV_PREFIX = "MODEL_ROUTER_"


@dataclass(frozen=True)
class ScoringWeights:
    """Per-criterion weights used by the Scorer. Must sum to 1.0."""
    accuracy: float = 0.30
    performance: float = 0.20
    cost: float = 0.15
    availability: float = 0.10
    quality: float = 0.25

    def __post_init__(self):
        values = self.as_dict()
        for name, value in values.items():
            if value < 0:
                raise ValueError(f"Weight '{name}' must be >= 0, got {value}")
        total = sum(values.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.4f}")

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class RouterSettings:
    """
    Tunables for the router and its collaborators

    Every field can be overridden from MODEL_ROUTER_* variables, see from_env().
    """
    # Health Monitor
    health_ttl_seconds: float = 60.0
    error_window: int = 100
    degraded_error_rate: float = 0.05
    unhealthy_error_rate: float = 0.25

    # Performance Tracker
    ema_alpha: float = 0.1

    # Scorer
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    priority_bonus: float = 0.10
    tight_latency_ms: float = 5000.0
    tight_cost: float = 0.01
    reweight_magnitude: float = 0.25
    latency_reference_ms: float = 10000.0
    cost_reference: float = 0.05
    quality_threshold_penalty: float = 0.7
    complexity_penalty: float = 0.8
    complexity_quality_floor: float = 0.8
    degraded_availability_factor: float = 0.5

    # Router / Load Balancer
    max_alternatives: int = 3
    near_tie_epsilon: float = 0.02
    history_limit: int = 1000
    local_providers: FrozenSet[ModelProvider] = frozenset(
        {ModelProvider.OLLAMA, ModelProvider.CUSTOM}
    )

    def __post_init__(self):
        if self.health_ttl_seconds <= 0:
            raise ValueError("health_ttl_seconds must be > 0")
        if self.error_window <= 0:
            raise ValueError("error_window must be > 0")
        if not 0 <= self.degraded_error_rate <= self.unhealthy_error_rate <= 1:
            raise ValueError("Error rate thresholds must satisfy 0 <= degraded <= unhealthy <= 1")
        if not 0 < self.ema_alpha <= 1:
            raise ValueError("ema_alpha must be in (0, 1]")
        if self.max_alternatives < 0:
            raise ValueError("max_alternatives must be >= 0")
        if self.near_tie_epsilon < 0:
            raise ValueError("near_tie_epsilon must be >= 0")

    def with_overrides(self, **overrides: Any) -> "RouterSettings":
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "RouterSettings":
        """
        Build settings from environment variables

        Loads a .env file first (if present), then reads MODEL_ROUTER_*
        variables. Unset variables keep their defaults.

        Args:
            env_file: Optional path to a .env file

        Returns:
            RouterSettings instance
        """
        load_dotenv(env_file)

        defaults = cls()
        overrides: Dict[str, Any] = {}

        for name in (
            "health_ttl_seconds", "degraded_error_rate", "unhealthy_error_rate",
            "ema_alpha", "priority_bonus", "tight_latency_ms", "tight_cost",
            "reweight_magnitude", "latency_reference_ms", "cost_reference",
            "quality_threshold_penalty", "complexity_penalty",
            "complexity_quality_floor", "degraded_availability_factor",
            "near_tie_epsilon",
        ):
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None:
                overrides[name] = float(raw)

        for name in ("error_window", "max_alternatives", "history_limit"):
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None:
                overrides[name] = int(raw)

        weight_overrides = {}
        for name in defaults.weights.as_dict():
            raw = os.getenv(f"{ENV_PREFIX}WEIGHT_{name.upper()}")
            if raw is not None:
                weight_overrides[name] = float(raw)
        if weight_overrides:
            overrides["weights"] = replace(defaults.weights, **weight_overrides)

        raw_local = os.getenv(ENV_PREFIX + "LOCAL_PROVIDERS")
        if raw_local:
            overrides["local_providers"] = frozenset(
                ModelProvider(p.strip()) for p in raw_local.split(",") if p.strip()
            )

        if overrides:
            logger.info(f"Loaded router settings overrides from environment: {sorted(overrides)}")
        return replace(defaults, **overrides)
