import os
import logging
from typing import Dict, Any, Optional

from langfuse import Langfuse

logger = logging.getLogger(__name__)


class RoutingTelemetry:
    """Mirrors routing events to Langfuse when credentials are configured.

    Emission is best-effort: failures are logged at debug and never reach the
    caller. Without LANGFUSE_PUBLIC_KEY / LANGFUSE_SECRET_KEY it is a no-op.

    Events emitted by the router:
      - model.selected
      - request.routed
      - request.failed
      - request.failover
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        public_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        host: Optional[str] = None,
        enabled: Optional[bool] = None
    ):
        public_key = public_key or os.getenv("LANGFUSE_PUBLIC_KEY")
        secret_key = secret_key or os.getenv("LANGFUSE_SECRET_KEY")
        host = host or os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

        if client is not None:
            self.client = client
        elif public_key and secret_key and enabled is not False:
            try:
                self.client = Langfuse(public_key=public_key, secret_key=secret_key, host=host)
                logger.info("Langfuse client initialized for routing telemetry")
            except Exception as e:
                logger.warning(f"Langfuse client failed to initialize; continuing without it: {e}")
                self.client = None
        else:
            self.client = None

        self.enabled = self.client is not None and enabled is not False
        self.emitted = 0

    def emit(self, event_type: str, payload: Dict[str, Any]):
        if not self.enabled:
            return
        try:
            # SDK generations differ: create_event (v3), event/trace (v2)
            for name in ("create_event", "event", "trace"):
                fn = getattr(self.client, name, None)
                if fn:
                    fn(name=event_type, metadata=payload)
                    self.emitted += 1
                    return
            logger.debug(f"Langfuse client exposes no event API; dropped '{event_type}'")
        except Exception as e:
            logger.debug(f"Langfuse mirror failed (non-fatal): {e}")

    def flush(self):
        if not self.enabled:
            return
        try:
            self.client.flush()
        except Exception as e:
            logger.debug(f"Langfuse flush failed (non-fatal): {e}")


__all__ = ["RoutingTelemetry"]
