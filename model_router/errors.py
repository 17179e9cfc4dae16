from typing import Optional
from enum import Enum


class AIErrorCode(str, Enum):
    """Error kinds surfaced by the router"""
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    PRIVACY_VIOLATION = "PRIVACY_VIOLATION"
    PROVIDER_ERROR = "PROVIDER_ERROR"


class RouterError(Exception):
    """
    Routing failure carrying an error kind and a retryable flag

    Attributes:
        code: AIErrorCode describing the failure
        retryable: Whether retrying the same call may succeed
        model_id: Offending model, if any
        request_id: Request being routed, if any
    """

    def __init__(
        self,
        message: str,
        code: AIErrorCode,
        retryable: bool = False,
        model_id: Optional[str] = None,
        request_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.model_id = model_id
        self.request_id = request_id

    def to_dict(self):
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "model_id": self.model_id,
            "request_id": self.request_id,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value}, {self.message!r}, retryable={self.retryable})"


class ProviderError(RouterError):
    """Failure reported by (or raised from) a dispatch collaborator. Always retryable."""

    def __init__(
        self,
        message: str,
        model_id: Optional[str] = None,
        request_id: Optional[str] = None
    ):
        super().__init__(
            message,
            AIErrorCode.PROVIDER_ERROR,
            retryable=True,
            model_id=model_id,
            request_id=request_id
        )
