import logging

import pytest
from fastapi.testclient import TestClient

from model_router import ModelRouter, RoutingTelemetry
from model_router import api
from model_router.api import create_app

from conftest import FakeDispatcher, FakeProbe, ManualClock


def model_body(model_id, **overrides):
    body = {
        "model_id": model_id,
        "provider": "openai",
        "capabilities": ["code_completion"],
        "cost_per_token": 0.00003,
        "max_tokens": 8192,
        "average_latency_ms": 3000,
        "availability": 0.99,
        "accuracy": 0.9,
    }
    body.update(overrides)
    return body


def request_body(request_id="req-1", **overrides):
    body = {"id": request_id, "task_type": "code_completion"}
    body.update(overrides)
    return body


@pytest.fixture
def dispatcher():
    return FakeDispatcher(fail_for={"flaky"})


@pytest.fixture
def client(dispatcher):
    router = ModelRouter(default_dispatcher=dispatcher, probe=FakeProbe(), clock=ManualClock())
    with TestClient(create_app(router)) as test_client:
        yield test_client


def test_register_and_list_models(client):
    response = client.post("/models", json=model_body("gpt-4"))

    assert response.status_code == 201
    assert response.json()["model_id"] == "gpt-4"
    assert [m["model_id"] for m in client.get("/models").json()] == ["gpt-4"]


def test_invalid_model_is_rejected(client):
    response = client.post("/models", json=model_body("gpt-4", accuracy=1.5))

    assert response.status_code == 422
    assert client.get("/models").json() == []


def test_unregister_model(client):
    client.post("/models", json=model_body("gpt-4"))

    assert client.delete("/models/gpt-4").status_code == 204
    assert client.delete("/models/gpt-4").status_code == 404


def test_model_health(client):
    client.post("/models", json=model_body("gpt-4"))

    response = client.get("/models/gpt-4/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert client.get("/models/missing/health").status_code == 404


def test_select_model(client):
    client.post("/models", json=model_body("gpt-4", accuracy=0.95))
    client.post("/models", json=model_body("claude", provider="anthropic", accuracy=0.7))

    response = client.post("/select", json=request_body())

    assert response.status_code == 200
    body = response.json()
    assert body["model_id"] == "gpt-4"
    assert body["request_id"] == "req-1"
    assert [a["model_id"] for a in body["alternatives"]] == ["claude"]


def test_select_without_models_is_unavailable(client):
    response = client.post("/select", json=request_body())

    assert response.status_code == 503
    assert response.json()["code"] == "MODEL_UNAVAILABLE"
    assert response.json()["retryable"] is True


def test_privacy_violation_maps_to_forbidden(client):
    client.post("/models", json=model_body("gpt-4"))

    response = client.post("/select", json=request_body(privacy_level="local_only"))

    assert response.status_code == 403
    assert response.json()["code"] == "PRIVACY_VIOLATION"
    assert response.json()["retryable"] is False


def test_route_request(client, dispatcher):
    client.post("/models", json=model_body("gpt-4"))

    response = client.post("/route", json={"request": request_body()})

    assert response.status_code == 200
    body = response.json()
    assert body["model_used"] == "gpt-4"
    assert body["tokens"]["total_tokens"] == 120
    assert dispatcher.calls == ["gpt-4"]


def test_route_provider_error_without_failover(client):
    client.post("/models", json=model_body("flaky", accuracy=0.95))
    client.post("/models", json=model_body("steady", accuracy=0.7))

    response = client.post("/route", json={"request": request_body()})

    assert response.status_code == 502
    assert response.json()["code"] == "PROVIDER_ERROR"
    assert response.json()["model_id"] == "flaky"


def test_route_with_failover(client):
    client.post("/models", json=model_body("flaky", accuracy=0.95))
    client.post("/models", json=model_body("steady", accuracy=0.7))

    response = client.post("/route", json={"request": request_body(), "failover": True})

    assert response.status_code == 200
    assert response.json()["model_used"] == "steady"
    assert client.get("/models/flaky/health").json()["status"] == "unhealthy"


def test_balance_load(client):
    client.post("/models", json=model_body("gpt-4"))
    requests = [request_body(f"r{i}", priority=i % 4) for i in range(4)]

    response = client.post("/balance", json={"requests": requests})

    assert response.status_code == 200
    plan = response.json()
    assert plan["load_distribution"] == {"gpt-4": 4}
    assert [r["request_id"] for r in plan["routes"]] == ["r3", "r2", "r1", "r0"]


def test_record_performance_and_stats(client):
    client.post("/models", json=model_body("gpt-4"))

    response = client.post("/performance", json={
        "model_id": "gpt-4",
        "task_type": "code_completion",
        "latency": 900,
        "cost": 0.002,
        "quality": 0.8,
        "success": True,
    })
    client.post("/route", json={"request": request_body()})
    stats = client.get("/stats").json()

    assert response.status_code == 200
    assert response.json()["total_requests"] == 1
    assert stats["routing"]["total_requests"] == 1
    assert stats["models"]["gpt-4"]["request_count"] == 1


class FlushRecorder:
    def __init__(self):
        self.flushed = 0

    def create_event(self, name, metadata):
        pass

    def flush(self):
        self.flushed += 1


def test_shutdown_flushes_telemetry():
    recorder = FlushRecorder()
    router = ModelRouter(
        probe=FakeProbe(),
        telemetry=RoutingTelemetry(client=recorder),
        clock=ManualClock(),
    )

    with TestClient(create_app(router)) as test_client:
        test_client.get("/models")
        assert recorder.flushed == 0

    assert recorder.flushed == 1


@pytest.fixture
def root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_main_applies_configured_log_level(monkeypatch, root_logging):
    served = []
    monkeypatch.setenv("MODEL_ROUTER_LOG_LEVEL", "debug")
    monkeypatch.setenv("MODEL_ROUTER_PORT", "9090")
    monkeypatch.delenv("LANGFUSE_PUBLIC_KEY", raising=False)
    monkeypatch.delenv("LANGFUSE_SECRET_KEY", raising=False)
    monkeypatch.setattr(api.uvicorn, "run", lambda app, host, port: served.append((app, host, port)))
    logging.getLogger().setLevel(logging.INFO)

    api.main()

    assert root_logging.level == logging.DEBUG
    assert served[0][2] == 9090
    assert isinstance(served[0][0].state.router, ModelRouter)
