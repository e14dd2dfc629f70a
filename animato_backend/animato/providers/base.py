import logging
import os
from abc import ABC, abstractmethod
from typing import Optional, Union

import httpx

from ..models import ArtifactKind, AsyncJobHandle, CostTier, GenerationRequest, JobStatusUpdate, ProviderResult
from .. import settings

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    pass


class ProviderNotConfiguredError(ProviderError):
    pass


class ProviderAdapter(ABC):
    """One external generation backend for one artifact kind.

    ``invoke`` returns either a finished ``ProviderResult`` or an
    ``AsyncJobHandle`` that the orchestrator polls through ``poll_status``.
    """

    name: str = ""
    kind: ArtifactKind = "photo"
    priority: int = 100
    cost_tier: CostTier = "paid"

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def invoke(self, request: GenerationRequest) -> Union[ProviderResult, AsyncJobHandle]:
        ...

    async def poll_status(self, job_id: str) -> JobStatusUpdate:
        raise ProviderError(self.name, "provider does not run asynchronous jobs")

    def __repr__(self):
        return f"<{type(self).__name__} {self.name} priority={self.priority}>"


class HttpProvider(ProviderAdapter):
    """Adapter backed by a REST API; credentials are read when a call is made."""

    api_key_env: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self._api_key = api_key
        self._transport = transport
        self._timeout = settings.HTTP_TIMEOUT_S if timeout is None else timeout

    @property
    def api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key
        return os.getenv(self.api_key_env, "")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        key = self.api_key
        if not key:
            raise ProviderNotConfiguredError(self.name, f"{self.api_key_env} is not set; please configure your .env")
        return key

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _check(self, response: httpx.Response, action: str) -> None:
        if response.status_code >= 400:
            logger.error(f"{self.name} {action} failed {response.status_code}: {response.text[:500]}")
            raise ProviderError(self.name, f"{action} failed {response.status_code}: {response.text[:200]}")

    def _json(self, response: httpx.Response, action: str) -> dict:
        try:
            body = response.json()
        except ValueError:
            raise ProviderError(self.name, f"{action} returned malformed JSON")
        if not isinstance(body, dict):
            raise ProviderError(self.name, f"{action} returned unexpected payload")
        return body
