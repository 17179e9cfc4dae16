"""
Pydantic wire contract for the HTTP layer

Each schema mirrors one of the dataclasses in model_router and converts to
and from it, so the router itself never sees request bodies.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from model_router.models import (
    AIRequest,
    AIRequestType,
    AIResponse,
    Complexity,
    HealthState,
    HealthStatus,
    ModelCapability,
    ModelProvider,
    PrivacyLevel,
    RequestConstraints,
    RequestPriority,
)
from model_router.model_registry import ModelConfiguration
from model_router.scorer import ModelSelection, ScoredCandidate
from model_router.load_balancer import RoutingPlan
from model_router.performance_tracker import PerformanceRecord


class ModelConfigurationSchema(BaseModel):
    model_id: str = Field(min_length=1)
    provider: ModelProvider
    capabilities: List[ModelCapability] = Field(min_length=1)
    cost_per_token: float = Field(ge=0)
    max_tokens: int = Field(gt=0)
    average_latency_ms: float = Field(ge=0)
    availability: float = Field(ge=0, le=1)
    accuracy: Optional[float] = Field(default=None, ge=0, le=1)
    quality_score: Optional[float] = Field(default=None, ge=0, le=1)
    endpoint: Optional[str] = None
    name: str = ""
    tags: List[str] = Field(default_factory=list)

    model_config = {"protected_namespaces": ()}

    def to_model(self) -> ModelConfiguration:
        return ModelConfiguration(
            model_id=self.model_id,
            provider=self.provider,
            capabilities=frozenset(self.capabilities),
            cost_per_token=self.cost_per_token,
            max_tokens=self.max_tokens,
            average_latency_ms=self.average_latency_ms,
            availability=self.availability,
            accuracy=self.accuracy,
            quality_score=self.quality_score,
            endpoint=self.endpoint,
            name=self.name,
            tags=frozenset(self.tags),
        )

    @classmethod
    def from_model(cls, model: ModelConfiguration) -> "ModelConfigurationSchema":
        return cls(
            model_id=model.model_id,
            provider=model.provider,
            capabilities=sorted(model.capabilities, key=lambda c: c.value),
            cost_per_token=model.cost_per_token,
            max_tokens=model.max_tokens,
            average_latency_ms=model.average_latency_ms,
            availability=model.availability,
            accuracy=model.accuracy,
            quality_score=model.quality_score,
            endpoint=model.endpoint,
            name=model.name,
            tags=sorted(model.tags),
        )


class ConstraintsSchema(BaseModel):
    max_latency_ms: Optional[float] = Field(default=None, gt=0)
    max_cost: Optional[float] = Field(default=None, ge=0)
    quality_threshold: Optional[float] = Field(default=None, ge=0, le=1)


class AIRequestSchema(BaseModel):
    id: str = Field(min_length=1)
    task_type: AIRequestType
    priority: RequestPriority = RequestPriority.NORMAL
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC
    payload: Any = None
    constraints: ConstraintsSchema = Field(default_factory=ConstraintsSchema)
    complexity: Complexity = Complexity.MEDIUM
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_request(self) -> AIRequest:
        return AIRequest(
            id=self.id,
            task_type=self.task_type,
            priority=self.priority,
            privacy_level=self.privacy_level,
            payload=self.payload,
            constraints=RequestConstraints(**self.constraints.model_dump()),
            complexity=self.complexity,
            metadata=dict(self.metadata),
        )


class CandidateSchema(BaseModel):
    model_id: str
    provider: ModelProvider
    score: float
    estimated_cost: float
    estimated_latency_ms: float
    reasoning: List[str] = Field(default_factory=list)

    model_config = {"protected_namespaces": ()}

    @classmethod
    def from_candidate(cls, candidate: ScoredCandidate) -> "CandidateSchema":
        return cls(
            model_id=candidate.model_id,
            provider=candidate.provider,
            score=candidate.score,
            estimated_cost=candidate.estimated_cost,
            estimated_latency_ms=candidate.estimated_latency_ms,
            reasoning=list(candidate.reasoning),
        )


class ModelSelectionSchema(BaseModel):
    model_id: str
    provider: ModelProvider
    confidence: float
    estimated_cost: float
    estimated_latency_ms: float
    reasoning: List[str] = Field(default_factory=list)
    alternatives: List[CandidateSchema] = Field(default_factory=list)
    request_id: Optional[str] = None

    model_config = {"protected_namespaces": ()}

    @classmethod
    def from_selection(cls, selection: ModelSelection) -> "ModelSelectionSchema":
        return cls(
            model_id=selection.model_id,
            provider=selection.provider,
            confidence=selection.confidence,
            estimated_cost=selection.estimated_cost,
            estimated_latency_ms=selection.estimated_latency_ms,
            reasoning=list(selection.reasoning),
            alternatives=[CandidateSchema.from_candidate(a) for a in selection.alternatives],
            request_id=selection.request_id,
        )

    def to_selection(self) -> ModelSelection:
        # alternates are informational only; routing needs the chosen model
        return ModelSelection(
            model_id=self.model_id,
            provider=self.provider,
            confidence=self.confidence,
            estimated_cost=self.estimated_cost,
            estimated_latency_ms=self.estimated_latency_ms,
            reasoning=list(self.reasoning),
            request_id=self.request_id,
        )


class HealthStatusSchema(BaseModel):
    status: HealthState
    response_time_ms: float
    error_rate: float
    last_checked: Optional[float] = None
    issues: List[str] = Field(default_factory=list)

    @classmethod
    def from_status(cls, status: HealthStatus) -> "HealthStatusSchema":
        return cls(**status.to_dict())


class TokenUsageSchema(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0


class AIResponseSchema(BaseModel):
    id: str
    request_id: str
    result: Any = None
    confidence: float
    model_used: str
    provider: ModelProvider
    processing_time_ms: float
    tokens: TokenUsageSchema

    @classmethod
    def from_response(cls, response: AIResponse) -> "AIResponseSchema":
        return cls(**response.to_dict())


class RouteRequestSchema(BaseModel):
    request: AIRequestSchema
    selection: Optional[ModelSelectionSchema] = None
    failover: bool = False


class RouteAssignmentSchema(BaseModel):
    request_id: str
    model_id: str
    priority: RequestPriority
    estimated_processing_time_ms: float
    estimated_cost: float
    confidence: float

    model_config = {"protected_namespaces": ()}


class RoutingPlanSchema(BaseModel):
    routes: List[RouteAssignmentSchema] = Field(default_factory=list)
    estimated_latency_ms: float = 0.0
    estimated_cost: float = 0.0
    load_distribution: Dict[str, int] = Field(default_factory=dict)
    unrouted: List[str] = Field(default_factory=list)

    @classmethod
    def from_plan(cls, plan: RoutingPlan) -> "RoutingPlanSchema":
        return cls(**plan.to_dict())


class BalanceRequestSchema(BaseModel):
    requests: List[AIRequestSchema]


class PerformanceObservationSchema(BaseModel):
    model_id: str
    task_type: AIRequestType
    latency: float = Field(ge=0)
    cost: float = Field(ge=0)
    quality: float = Field(ge=0, le=1)
    success: bool

    model_config = {"protected_namespaces": ()}


class PerformanceRecordSchema(BaseModel):
    model_id: str
    task_type: str
    success_rate: float
    average_latency_ms: float
    average_cost: float
    quality_rating: float
    total_requests: int
    last_updated: str

    model_config = {"protected_namespaces": ()}

    @classmethod
    def from_record(cls, record: PerformanceRecord) -> "PerformanceRecordSchema":
        return cls(**record.to_dict())


class ErrorSchema(BaseModel):
    code: str
    message: str
    retryable: bool
    model_id: Optional[str] = None
    request_id: Optional[str] = None

    model_config = {"protected_namespaces": ()}
