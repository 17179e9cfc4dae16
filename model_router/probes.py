import logging
from typing import Optional

import httpx

from model_router.model_registry import ModelConfiguration

logger = logging.getLogger(__name__)


class HttpProbe:
    """
    Active health probe issuing GET <endpoint><health_path>

    Any 2xx answer counts as healthy. Models without an endpoint have nothing
    to probe and are reported healthy. The probe owns its timeout; a timed-out
    or refused request is reported as a failed probe.
    """

    def __init__(
        self,
        health_path: str = "/health",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[dict] = None
    ):
        self.health_path = health_path
        self.timeout = timeout
        self.transport = transport
        self.headers = headers or {}

    def url_for(self, model: ModelConfiguration) -> Optional[str]:
        if not model.endpoint:
            return None
        return model.endpoint.rstrip("/") + "/" + self.health_path.lstrip("/")

    async def __call__(self, model: ModelConfiguration) -> bool:
        url = self.url_for(model)
        if url is None:
            logger.debug(f"Model '{model.model_id}' has no endpoint; skipping active probe")
            return True

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport, headers=self.headers
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Health probe to {url} failed: {e!r}")
            return False

        if response.is_success:
            return True
        logger.warning(f"Health probe to {url} returned {response.status_code}")
        return False
