"""
Shared types for the router

Enums and dataclasses describing requests, responses, health and the result
contract of the dispatch collaborator. The field shapes here form the wire
contract with the HTTP layer (see model_router.schemas).
"""

import copy
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from enum import Enum, IntEnum

from model_router.errors import ProviderError


class ModelProvider(str, Enum):
    """Backend providers a model can be served from"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OLLAMA = "ollama"
    HUGGINGFACE = "huggingface"
    CUSTOM = "custom"


class ModelCapability(str, Enum):
    """Task categories a model declares it can serve"""
    CODE_COMPLETION = "code_completion"
    TEXT_GENERATION = "text_generation"
    CODE_ANALYSIS = "code_analysis"
    NATURAL_LANGUAGE = "natural_language"
    REASONING = "reasoning"
    MULTIMODAL = "multimodal"


class AIRequestType(str, Enum):
    CODE_COMPLETION = "code_completion"
    NATURAL_LANGUAGE = "natural_language"
    PREDICTIVE_ANALYSIS = "predictive_analysis"
    DEBUG_ASSISTANCE = "debug_assistance"
    CONTEXT_ANALYSIS = "context_analysis"


class RequestPriority(IntEnum):
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class PrivacyLevel(str, Enum):
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    LOCAL_ONLY = "local_only"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class HealthState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class RequestConstraints:
    """Optional hard/soft limits attached to a request"""
    max_latency_ms: Optional[float] = None
    max_cost: Optional[float] = None
    quality_threshold: Optional[float] = None


@dataclass
class AIRequest:
    """Inference request to be routed"""
    id: str
    task_type: AIRequestType
    priority: RequestPriority = RequestPriority.NORMAL
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC
    payload: Any = None
    constraints: RequestConstraints = field(default_factory=RequestConstraints)
    complexity: Complexity = Complexity.MEDIUM
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def clone(self, new_id: str) -> "AIRequest":
        """Copy of this request under a new id (payload and metadata are deep-copied)"""
        return replace(
            self,
            id=new_id,
            payload=copy.deepcopy(self.payload),
            metadata={**copy.deepcopy(self.metadata), "original_request_id": self.id},
        )


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0


@dataclass
class AIResponse:
    id: str
    request_id: str
    result: Any
    confidence: float
    model_used: str
    provider: ModelProvider
    processing_time_ms: float
    tokens: TokenUsage = field(default_factory=TokenUsage)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HealthStatus:
    """
    Operability classification for one model

    last_checked is a clock reading in seconds; None means the entry was
    explicitly invalidated and must be re-probed.
    """
    status: HealthState = HealthState.HEALTHY
    response_time_ms: float = 0.0
    error_rate: float = 0.0
    last_checked: Optional[float] = None
    issues: List[str] = field(default_factory=list)

    @property
    def is_selectable(self) -> bool:
        return self.status != HealthState.UNHEALTHY

    def copy(self) -> "HealthStatus":
        return replace(self, issues=list(self.issues))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DispatchResult:
    """
    Tagged result returned by a dispatch collaborator

    Exactly one of the two shapes is populated: a success carrying the
    provider result and token count, or a failure carrying a ProviderError.
    """
    result: Any = None
    tokens_used: int = 0
    quality: Optional[float] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, result: Any, tokens_used: int = 0, quality: Optional[float] = None) -> "DispatchResult":
        return cls(result=result, tokens_used=tokens_used, quality=quality)

    @classmethod
    def failure(cls, error: ProviderError) -> "DispatchResult":
        return cls(error=error)
