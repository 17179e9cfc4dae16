import time
import logging
import threading
from typing import Dict, Any, List, Optional, FrozenSet, Callable
from dataclasses import dataclass, field, asdict

from model_router.models import (
    ModelProvider,
    ModelCapability,
    HealthState,
    HealthStatus,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelConfiguration:
    """Immutable descriptor of a registered inference backend"""
    model_id: str
    provider: ModelProvider
    capabilities: FrozenSet[ModelCapability]
    cost_per_token: float
    max_tokens: int
    average_latency_ms: float
    availability: float
    accuracy: Optional[float] = None
    quality_score: Optional[float] = None
    endpoint: Optional[str] = None
    name: str = ""
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # accept any iterable of capabilities/tags, store them frozen
        object.__setattr__(self, "provider", ModelProvider(self.provider))
        object.__setattr__(
            self, "capabilities", frozenset(ModelCapability(c) for c in self.capabilities)
        )
        object.__setattr__(self, "tags", frozenset(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["provider"] = self.provider.value
        data["capabilities"] = sorted(c.value for c in self.capabilities)
        data["tags"] = sorted(self.tags)
        return data


class ModelRegistry:
    """
    In-memory store of model descriptors and their health entries

    Each registered model owns exactly one HealthStatus; both are created by
    register() and removed by unregister() under the same lock.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._models: Dict[str, ModelConfiguration] = {}
        self._health: Dict[str, HealthStatus] = {}
        self._lock = threading.RLock()

    def register(self, model: ModelConfiguration) -> ModelConfiguration:
        self.validate(model)

        with self._lock:
            replaced = model.model_id in self._models
            self._models[model.model_id] = model
            self._health[model.model_id] = HealthStatus(
                status=HealthState.HEALTHY,
                response_time_ms=model.average_latency_ms,
                error_rate=0.0,
                last_checked=self.clock(),
                issues=[],
            )

        action = "re-registered" if replaced else "registered"
        logger.info(
            f"Model '{model.model_id}' {action} (provider: {model.provider.value}, "
            f"capabilities: {sorted(c.value for c in model.capabilities)})"
        )
        return model

    def unregister(self, model_id: str) -> bool:
        with self._lock:
            if model_id not in self._models:
                logger.warning(f"Model '{model_id}' not found in registry")
                return False
            del self._models[model_id]
            self._health.pop(model_id, None)

        logger.info(f"Model '{model_id}' unregistered")
        return True

    def get(self, model_id: str) -> Optional[ModelConfiguration]:
        with self._lock:
            return self._models.get(model_id)

    def list(self) -> List[ModelConfiguration]:
        with self._lock:
            return list(self._models.values())

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._models.keys())

    def health_status(self, model_id: str) -> Optional[HealthStatus]:
        """Cached health entry for a model, without probing"""
        with self._lock:
            status = self._health.get(model_id)
            return status.copy() if status else None

    def store_health(self, model_id: str, status: HealthStatus) -> bool:
        """
        Replace the health entry of a registered model

        Returns False (and stores nothing) when the model was unregistered in
        the meantime, so an in-flight probe never resurrects a removed entry.
        """
        with self._lock:
            if model_id not in self._models:
                return False
            self._health[model_id] = status.copy()
            return True

    @staticmethod
    def validate(model: ModelConfiguration) -> bool:
        """
        Validate a model descriptor

        Raises:
            ValueError: If any field is out of range
        """
        if not model.model_id or not model.model_id.strip():
            raise ValueError("Model must have a non-empty id")
        if not model.capabilities:
            raise ValueError(f"Model '{model.model_id}' must declare at least one capability")
        if model.cost_per_token < 0:
            raise ValueError(f"Model '{model.model_id}' cost_per_token must be >= 0")
        if model.max_tokens <= 0:
            raise ValueError(f"Model '{model.model_id}' max_tokens must be > 0")
        if model.average_latency_ms < 0:
            raise ValueError(f"Model '{model.model_id}' average_latency_ms must be >= 0")
        for name in ("accuracy", "availability", "quality_score"):
            value = getattr(model, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"Model '{model.model_id}' {name} must be in [0, 1], got {value}")
        return True

    def __contains__(self, model_id: str) -> bool:
        with self._lock:
            return model_id in self._models

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)
