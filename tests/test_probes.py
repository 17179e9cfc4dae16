import httpx
import pytest

from model_router import HttpProbe

from conftest import make_model


def transport_returning(status_code, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(str(request.url))
        return httpx.Response(status_code, json={"status": "ok"})
    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_success_status_is_healthy():
    seen = []
    probe = HttpProbe(transport=transport_returning(200, seen))

    assert await probe(make_model("m", endpoint="http://models.local/v1/")) is True
    assert seen == ["http://models.local/v1/health"]


@pytest.mark.asyncio
async def test_error_status_is_unhealthy():
    probe = HttpProbe(transport=transport_returning(503))

    assert await probe(make_model("m", endpoint="http://models.local")) is False


@pytest.mark.asyncio
async def test_transport_error_is_unhealthy():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    probe = HttpProbe(transport=httpx.MockTransport(handler))

    assert await probe(make_model("m", endpoint="http://models.local")) is False


@pytest.mark.asyncio
async def test_model_without_endpoint_is_not_probed():
    seen = []
    probe = HttpProbe(transport=transport_returning(500, seen))

    assert await probe(make_model("m")) is True
    assert seen == []


def test_custom_health_path():
    probe = HttpProbe(health_path="status")
    assert probe.url_for(make_model("m", endpoint="http://host:11434")) == "http://host:11434/status"
