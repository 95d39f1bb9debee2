"""
Provider contracts for image generation backends.

Every adapter exposes the same coroutine, `generate(prompt, seed_image)`,
and returns a URL (or data URI) for the generated image. Anything that goes
wrong is raised as a ProviderFailure subclass.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from config.decorators import retry_on_transient_error
from models.errors import (
    MissingCredentialError,
    PollExhaustedError,
    ProviderFailure,
    ResultNotFoundError,
    UnsupportedModeError,
)
from models.sketch import SketchImage

logger = logging.getLogger(__name__)

# (tag, strategy) pairs; a strategy returns the result reference or None
ExtractionStrategy = Tuple[str, Callable[[Any], Optional[str]]]

DEFAULT_REQUEST_TIMEOUT = 60.0


class JobStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def first_image_url(images: Any) -> Optional[str]:
    """First usable URL from a list of images given as strings or {"url": ...} dicts."""
    if isinstance(images, str):
        return images or None
    if not isinstance(images, list) or not images:
        return None
    first = images[0]
    if isinstance(first, str):
        return first or None
    if isinstance(first, dict):
        url = first.get("url")
        return url if isinstance(url, str) and url else None
    return None


def dig(payload: Any, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a key is missing."""
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


class ImageProvider(ABC):
    """
    Base class for image-generation adapters.

    Subclasses set `provider_id`, `credential_variable` and
    `result_strategies`, and implement `_generate`.
    """

    provider_id: str = "base"
    credential_variable: str = "API_KEY"
    result_strategies: List[ExtractionStrategy] = []

    def __init__(self, api_key: Optional[str], model: str, text_model: Optional[str] = None):
        self.api_key = api_key
        self.model = model
        self.text_model = text_model

    @property
    def supports_text_only(self) -> bool:
        """Whether the backend can generate without a seed image."""
        return bool(self.text_model)

    async def generate(self, prompt: str, seed_image: Optional[SketchImage] = None) -> str:
        if not self.api_key:
            raise MissingCredentialError(self.provider_id, self.credential_variable)
        if seed_image is None and not self.supports_text_only:
            raise UnsupportedModeError(self.provider_id)
        return await self._generate(prompt, seed_image)

    @abstractmethod
    async def _generate(self, prompt: str, seed_image: Optional[SketchImage]) -> str:
        ...

    def extract_result(self, payload: Any) -> str:
        """Try each extraction strategy in order; raise ResultNotFoundError if none match."""
        for tag, strategy in self.result_strategies:
            try:
                value = strategy(payload)
            except (KeyError, IndexError, TypeError, AttributeError):
                value = None
            if value:
                logger.debug(f"[{self.provider_id}] result found via '{tag}'")
                return value
        raise ResultNotFoundError(self.provider_id, [tag for tag, _ in self.result_strategies])


class HttpImageProvider(ImageProvider):
    """
    Adapter for REST backends, in sync or poll mode.

    Sync mode: `submit` returns the finished payload.
    Poll mode: `submit` returns a job payload, then `fetch_status` is called every
    `poll_interval` seconds, at most `max_poll_attempts` times, until
    `read_status` reports success or failure.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        text_model: Optional[str] = None,
        mode: str = "sync",
        poll_interval: float = 2.0,
        max_poll_attempts: int = 5,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model, text_model)
        self.mode = mode
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.request_timeout = request_timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self.auth_headers(),
            timeout=self.request_timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    @abstractmethod
    def auth_headers(self) -> Dict[str, str]:
        ...

    @abstractmethod
    async def submit(self, client: httpx.AsyncClient, prompt: str, seed_image: Optional[SketchImage]) -> Dict[str, Any]:
        ...

    async def fetch_status(self, client: httpx.AsyncClient, job: Dict[str, Any]) -> Dict[str, Any]:
        raise ProviderFailure(self.provider_id, "poll mode unsupported")

    def read_status(self, payload: Dict[str, Any]) -> JobStatus:
        return JobStatus.SUCCEEDED

    def failure_reason(self, payload: Dict[str, Any]) -> str:
        return "job failed"

    async def fetch_result(self, client: httpx.AsyncClient, job: Dict[str, Any], status_payload: Dict[str, Any]) -> Any:
        """Payload holding the result once the job succeeded; the status payload by default."""
        return status_payload

    @retry_on_transient_error
    async def get_json(self, client: httpx.AsyncClient, url: str) -> Dict[str, Any]:
        """Idempotent GET used for polling; retried on dropped connections."""
        response = await client.get(url)
        return self._json_or_raise(response)

    async def post_json(self, client: httpx.AsyncClient, url: str, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = await client.post(url, json=body, headers=headers)
        return self._json_or_raise(response)

    def _json_or_raise(self, response: httpx.Response) -> Dict[str, Any]:
        if response.status_code >= 400:
            raise ProviderFailure(
                self.provider_id,
                f"HTTP {response.status_code}: {response.text[:200]}",
                details={"status_code": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError:
            raise ProviderFailure(self.provider_id, "response is not valid JSON")
        if not isinstance(payload, dict):
            raise ProviderFailure(self.provider_id, f"unexpected response shape: {type(payload).__name__}")
        return payload

    async def _generate(self, prompt: str, seed_image: Optional[SketchImage]) -> str:
        async with self._client() as client:
            job = await self.submit(client, prompt, seed_image)
            payload = await self.await_completion(client, job)
        return self.extract_result(payload)

    async def await_completion(self, client: httpx.AsyncClient, job: Dict[str, Any]) -> Any:
        if self.mode == "sync":
            return job

        status = self.read_status(job)
        if status == JobStatus.SUCCEEDED:
            return await self.fetch_result(client, job, job)
        if status == JobStatus.FAILED:
            raise ProviderFailure(self.provider_id, self.failure_reason(job))

        for attempt in range(1, self.max_poll_attempts + 1):
            await asyncio.sleep(self.poll_interval)
            status_payload = await self.fetch_status(client, job)
            status = self.read_status(status_payload)
            logger.debug(f"[{self.provider_id}] poll {attempt}/{self.max_poll_attempts}: {status.value}")
            if status == JobStatus.SUCCEEDED:
                return await self.fetch_result(client, job, status_payload)
            if status == JobStatus.FAILED:
                raise ProviderFailure(self.provider_id, self.failure_reason(status_payload))

        raise PollExhaustedError(self.provider_id, self.max_poll_attempts)
