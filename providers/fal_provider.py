"""
fal.ai adapter (FLUX Kontext)

Sync mode posts to https://fal.run/<model> and gets the images back inline.
Queue mode posts to https://queue.fal.run/<model>, then polls the returned
status_url and reads the finished payload from response_url.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from config.provider_config import PROVIDER_CONFIG
from models.errors import ProviderFailure
from models.sketch import SketchImage
from providers.base import HttpImageProvider, JobStatus, dig, first_image_url

logger = logging.getLogger(__name__)

FAILED_STATUSES = {"ERROR", "FAILED", "CANCELLED"}


class FalProvider(HttpImageProvider):
    provider_id = "fal"
    credential_variable = "FAL_API_KEY"
    result_strategies = [
        ("images[0].url", lambda p: first_image_url(dig(p, "images"))),
        ("data.images[0].url", lambda p: first_image_url(dig(p, "data", "images"))),
        ("image.url", lambda p: dig(p, "image", "url")),
        ("output", lambda p: first_image_url(dig(p, "output"))),
    ]

    def __init__(
        self,
        api_key: Optional[str],
        model: str = PROVIDER_CONFIG["fal"]["default_model"],
        text_model: Optional[str] = PROVIDER_CONFIG["fal"]["default_text_model"],
        mode: str = "sync",
        sync_url: str = PROVIDER_CONFIG["fal"]["sync_url"],
        queue_url: str = PROVIDER_CONFIG["fal"]["queue_url"],
        **kwargs,
    ):
        if mode not in ("sync", "queue"):
            logger.warning(f"Unknown FAL_MODE '{mode}', using sync")
            mode = "sync"
        super().__init__(api_key, model, text_model, mode=mode, **kwargs)
        self.sync_url = sync_url.rstrip("/")
        self.queue_url = queue_url.rstrip("/")

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Key {self.api_key}", "Content-Type": "application/json"}

    def build_input(self, prompt: str, seed_image: Optional[SketchImage]) -> Tuple[str, Dict[str, Any]]:
        """Pick the model and input body; fal takes the sketch as a full data URI."""
        if seed_image is not None:
            return self.model, {"prompt": prompt, "image_url": seed_image.data_uri}
        return self.text_model, {"prompt": prompt}

    async def submit(self, client: httpx.AsyncClient, prompt: str, seed_image: Optional[SketchImage]) -> Dict[str, Any]:
        model_id, body = self.build_input(prompt, seed_image)
        base_url = self.sync_url if self.mode == "sync" else self.queue_url
        logger.info(f"[fal] submitting to {model_id} ({self.mode} mode)")
        job = await self.post_json(client, f"{base_url}/{model_id}", body)
        job.setdefault("_model_id", model_id)
        return job

    def read_status(self, payload: Dict[str, Any]) -> JobStatus:
        status = str(payload.get("status", "")).upper()
        if status == "COMPLETED":
            if payload.get("error"):
                return JobStatus.FAILED
            return JobStatus.SUCCEEDED
        if status in FAILED_STATUSES:
            return JobStatus.FAILED
        return JobStatus.PENDING

    def failure_reason(self, payload: Dict[str, Any]) -> str:
        return str(payload.get("error") or f"job ended with status {payload.get('status')}")

    def _request_url(self, job: Dict[str, Any], suffix: str = "") -> str:
        request_id = job.get("request_id")
        if not request_id:
            raise ProviderFailure(self.provider_id, "queue response has no request_id")
        return f"{self.queue_url}/{job['_model_id']}/requests/{request_id}{suffix}"

    async def fetch_status(self, client: httpx.AsyncClient, job: Dict[str, Any]) -> Dict[str, Any]:
        status_url = job.get("status_url") or self._request_url(job, "/status")
        return await self.get_json(client, status_url)

    async def fetch_result(self, client: httpx.AsyncClient, job: Dict[str, Any], status_payload: Dict[str, Any]) -> Any:
        response_url = job.get("response_url") or self._request_url(job)
        return await self.get_json(client, response_url)
