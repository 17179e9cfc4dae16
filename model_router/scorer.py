"""
Multi-criteria fitness scoring of models against a request

Each sub-score is clamped to [0, 1] and combined with per-request weights
(always summing to 1.0). The total gets a priority bonus, then quality
penalties, then is clamped. Hard-constraint violations force the score to 0
and mark the candidate ineligible.
"""

import logging
from typing import Dict, List, Optional, Iterable, Callable
from dataclasses import dataclass, field

from model_router.config import RouterSettings
from model_router.models import (
    AIRequest,
    AIRequestType,
    Complexity,
    HealthState,
    HealthStatus,
    ModelCapability,
    ModelProvider,
    RequestPriority,
)
from model_router.model_registry import ModelConfiguration
from model_router.performance_tracker import PerformanceTracker, PerformanceRecord

logger = logging.getLogger(__name__)

TASK_CAPABILITIES: Dict[AIRequestType, ModelCapability] = {
    AIRequestType.CODE_COMPLETION: ModelCapability.CODE_COMPLETION,
    AIRequestType.NATURAL_LANGUAGE: ModelCapability.NATURAL_LANGUAGE,
    AIRequestType.PREDICTIVE_ANALYSIS: ModelCapability.CODE_ANALYSIS,
    AIRequestType.DEBUG_ASSISTANCE: ModelCapability.REASONING,
}
DEFAULT_CAPABILITY = ModelCapability.TEXT_GENERATION

TOKEN_BASELINES: Dict[AIRequestType, int] = {
    AIRequestType.CODE_COMPLETION: 150,
    AIRequestType.NATURAL_LANGUAGE: 300,
    AIRequestType.PREDICTIVE_ANALYSIS: 500,
    AIRequestType.DEBUG_ASSISTANCE: 400,
}
DEFAULT_TOKEN_BASELINE = 200

COMPLEXITY_MULTIPLIERS: Dict[Complexity, float] = {
    Complexity.LOW: 0.5,
    Complexity.MEDIUM: 1.0,
    Complexity.HIGH: 2.0,
}


def required_capability(task_type: AIRequestType) -> ModelCapability:
    return TASK_CAPABILITIES.get(task_type, DEFAULT_CAPABILITY)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass
class ScoredCandidate:
    """A model's fitness for one request"""
    model: ModelConfiguration
    score: float
    estimated_tokens: float
    estimated_cost: float
    estimated_latency_ms: float
    reasoning: List[str] = field(default_factory=list)
    eligible: bool = True

    @property
    def model_id(self) -> str:
        return self.model.model_id

    @property
    def provider(self) -> ModelProvider:
        return self.model.provider

    def sort_key(self):
        return (-self.score, self.estimated_cost, self.estimated_latency_ms, self.model_id)


@dataclass
class ModelSelection:
    """Result of a routing decision"""
    model_id: str
    provider: ModelProvider
    confidence: float
    estimated_cost: float
    estimated_latency_ms: float
    reasoning: List[str] = field(default_factory=list)
    alternatives: List[ScoredCandidate] = field(default_factory=list)
    request_id: Optional[str] = None
    candidate: Optional[ScoredCandidate] = field(default=None, repr=False)

    @classmethod
    def from_candidate(
        cls,
        candidate: ScoredCandidate,
        alternatives: Optional[List[ScoredCandidate]] = None,
        request_id: Optional[str] = None
    ) -> "ModelSelection":
        return cls(
            model_id=candidate.model_id,
            provider=candidate.provider,
            confidence=candidate.score,
            estimated_cost=candidate.estimated_cost,
            estimated_latency_ms=candidate.estimated_latency_ms,
            reasoning=list(candidate.reasoning),
            alternatives=list(alternatives or []),
            request_id=request_id,
            candidate=candidate,
        )


class Scorer:
    """Computes weighted fitness scores and ranks candidates"""

    def __init__(
        self,
        tracker: Optional[PerformanceTracker] = None,
        settings: Optional[RouterSettings] = None
    ):
        self.tracker = tracker
        self.settings = settings or RouterSettings()

    # ================== Estimation ==================

    def estimate_tokens(self, request: AIRequest) -> float:
        baseline = TOKEN_BASELINES.get(request.task_type, DEFAULT_TOKEN_BASELINE)
        return baseline * COMPLEXITY_MULTIPLIERS[request.complexity]

    def estimate_cost(self, model: ModelConfiguration, request: AIRequest) -> float:
        return self.estimate_tokens(request) * model.cost_per_token

    def estimate_latency(self, model: ModelConfiguration, request: AIRequest) -> float:
        return model.average_latency_ms * COMPLEXITY_MULTIPLIERS[request.complexity]

    # ================== Weights ==================

    def weights_for(self, request: AIRequest) -> Dict[str, float]:
        """
        Per-request weights

        Tight latency or cost limits move weight toward the matching criterion,
        drawn from quality first and from accuracy once quality is exhausted.
        """
        settings = self.settings
        weights = settings.weights.as_dict()
        constraints = request.constraints

        if constraints.max_latency_ms is not None and constraints.max_latency_ms < settings.tight_latency_ms:
            self._shift_weight(weights, "performance", settings.reweight_magnitude)
        if constraints.max_cost is not None and constraints.max_cost < settings.tight_cost:
            self._shift_weight(weights, "cost", settings.reweight_magnitude)

        return weights

    @staticmethod
    def _shift_weight(weights: Dict[str, float], target: str, amount: float):
        for donor in ("quality", "accuracy"):
            if amount <= 0:
                break
            taken = min(amount, weights[donor])
            weights[donor] -= taken
            weights[target] += taken
            amount -= taken

    # ================== Sub-scores ==================

    def accuracy_score(self, model: ModelConfiguration, request: AIRequest) -> float:
        if model.accuracy is not None:
            return clamp(model.accuracy)
        # no direct figure: share of declared capabilities relevant to the task
        required = required_capability(request.task_type)
        overlap = 1 if required in model.capabilities else 0
        return clamp(overlap / len(model.capabilities))

    def static_quality(self, model: ModelConfiguration, request: AIRequest) -> float:
        if model.quality_score is not None:
            return clamp(model.quality_score)
        return self.accuracy_score(model, request)

    def _record(self, model: ModelConfiguration, request: AIRequest) -> Optional[PerformanceRecord]:
        if self.tracker is None:
            return None
        return self.tracker.get_record(model.model_id, request.task_type)

    def score(
        self,
        model: ModelConfiguration,
        request: AIRequest,
        health: Optional[HealthStatus] = None
    ) -> ScoredCandidate:
        """
        Score one model for one request

        Args:
            model: Candidate model
            request: Request being routed
            health: Cached health of the model (DEGRADED lowers availability)

        Returns:
            ScoredCandidate with score, estimates and reasoning trace
        """
        settings = self.settings
        constraints = request.constraints
        weights = self.weights_for(request)
        record = self._record(model, request)

        tokens = self.estimate_tokens(request)
        estimated_cost = tokens * model.cost_per_token
        estimated_latency = self.estimate_latency(model, request)

        accuracy = self.accuracy_score(model, request)

        latency_ref = constraints.max_latency_ms or settings.latency_reference_ms
        performance = clamp(1 - estimated_latency / latency_ref) if latency_ref > 0 else 0.0
        if record is not None:
            performance = clamp((performance + record.success_rate) / 2)

        cost_ref = constraints.max_cost or settings.cost_reference
        cost_efficiency = clamp(1 - estimated_cost / cost_ref) if cost_ref > 0 else 0.0

        availability = clamp(model.availability)
        if health is not None and health.status == HealthState.DEGRADED:
            availability = clamp(availability * settings.degraded_availability_factor)

        static_quality = self.static_quality(model, request)
        quality = clamp(static_quality)
        if record is not None:
            quality = clamp((quality + record.quality_rating) / 2)

        subscores = {
            "accuracy": accuracy,
            "performance": performance,
            "cost": cost_efficiency,
            "availability": availability,
            "quality": quality,
        }
        reasoning = [f"{name}: {value:.2f} (weight {weights[name]:.2f})" for name, value in subscores.items()]
        total = sum(subscores[name] * weights[name] for name in subscores)

        if request.priority >= RequestPriority.HIGH:
            total += settings.priority_bonus
            reasoning.append(f"priority_bonus: +{settings.priority_bonus:.2f}")

        if constraints.quality_threshold is not None and static_quality < constraints.quality_threshold:
            total *= settings.quality_threshold_penalty
            reasoning.append(f"quality_threshold_penalty: x{settings.quality_threshold_penalty:.2f}")

        if request.complexity == Complexity.HIGH and static_quality < settings.complexity_quality_floor:
            total *= settings.complexity_penalty
            reasoning.append(f"complexity_penalty: x{settings.complexity_penalty:.2f}")

        total = clamp(total)

        eligible = True
        if constraints.max_cost is not None and estimated_cost > constraints.max_cost:
            eligible = False
            reasoning.append(f"max_cost_violated: {estimated_cost:.6f} > {constraints.max_cost:.6f}")
        if constraints.max_latency_ms is not None and estimated_latency > constraints.max_latency_ms:
            eligible = False
            reasoning.append(f"max_latency_violated: {estimated_latency:.0f}ms > {constraints.max_latency_ms:.0f}ms")
        if not eligible:
            total = 0.0

        reasoning.append(f"total: {total:.3f}")

        return ScoredCandidate(
            model=model,
            score=total,
            estimated_tokens=tokens,
            estimated_cost=estimated_cost,
            estimated_latency_ms=estimated_latency,
            reasoning=reasoning,
            eligible=eligible,
        )

    def rank(
        self,
        models: Iterable[ModelConfiguration],
        request: AIRequest,
        health_lookup: Optional[Callable[[str], Optional[HealthStatus]]] = None
    ) -> List[ScoredCandidate]:
        """Score all models and sort them best first"""
        scored = [
            self.score(m, request, health_lookup(m.model_id) if health_lookup else None)
            for m in models
        ]
        scored.sort(key=ScoredCandidate.sort_key)
        for candidate in scored:
            logger.debug(f"Scored {candidate.model_id} for {request.id}: {candidate.score:.3f}")
        return scored
