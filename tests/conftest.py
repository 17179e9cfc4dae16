from typing import Dict, List, Optional, Set

import pytest

from model_router import (
    AIRequest,
    AIRequestType,
    DispatchResult,
    ModelCapability,
    ModelConfiguration,
    ModelProvider,
    ModelRouter,
    ProviderError,
    RequestConstraints,
    RequestPriority,
    RouterSettings,
)


class ManualClock:
    """Deterministic clock for TTL tests"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeDispatcher:
    """Dispatch collaborator recording calls; fails for the configured model ids"""

    def __init__(self, fail_for: Optional[Set[str]] = None, tokens: int = 120, raise_for: Optional[Set[str]] = None):
        self.fail_for = set(fail_for or ())
        self.raise_for = set(raise_for or ())
        self.tokens = tokens
        self.calls: List[str] = []

    async def __call__(self, request: AIRequest, model: ModelConfiguration) -> DispatchResult:
        self.calls.append(model.model_id)
        if model.model_id in self.raise_for:
            raise ConnectionError(f"connection reset by {model.model_id}")
        if model.model_id in self.fail_for:
            return DispatchResult.failure(ProviderError(f"{model.model_id} returned 500"))
        return DispatchResult.success({"model": model.model_id, "request": request.id}, tokens_used=self.tokens)


class FakeProbe:
    def __init__(self, results: Optional[Dict[str, bool]] = None, error: Optional[Exception] = None):
        self.results = results or {}
        self.error = error
        self.calls: List[str] = []

    async def __call__(self, model: ModelConfiguration) -> bool:
        self.calls.append(model.model_id)
        if self.error is not None:
            raise self.error
        return self.results.get(model.model_id, True)


def make_model(
    model_id: str,
    provider: ModelProvider = ModelProvider.OPENAI,
    capabilities=(ModelCapability.CODE_COMPLETION,),
    cost_per_token: float = 0.00001,
    average_latency_ms: float = 1000.0,
    accuracy: Optional[float] = 0.9,
    availability: float = 0.99,
    quality_score: Optional[float] = None,
    max_tokens: int = 4096,
    endpoint: Optional[str] = None,
) -> ModelConfiguration:
    return ModelConfiguration(
        model_id=model_id,
        provider=provider,
        capabilities=frozenset(capabilities),
        cost_per_token=cost_per_token,
        max_tokens=max_tokens,
        average_latency_ms=average_latency_ms,
        availability=availability,
        accuracy=accuracy,
        quality_score=quality_score,
        endpoint=endpoint,
    )


def make_request(
    request_id: str = "req-1",
    task_type: AIRequestType = AIRequestType.CODE_COMPLETION,
    priority: RequestPriority = RequestPriority.NORMAL,
    **kwargs
) -> AIRequest:
    constraints = kwargs.pop("constraints", None) or RequestConstraints()
    return AIRequest(id=request_id, task_type=task_type, priority=priority, constraints=constraints, **kwargs)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def settings():
    return RouterSettings()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def router(clock, settings, dispatcher, probe):
    return ModelRouter(settings=settings, default_dispatcher=dispatcher, probe=probe, clock=clock)
