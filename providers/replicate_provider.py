"""
Replicate adapter

Creates a prediction on the model endpoint and polls the prediction's `get`
URL until it succeeds, fails or the poll ceiling is reached. In sync mode the
request carries `Prefer: wait` so the finished prediction comes back inline.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from config.provider_config import PROVIDER_CONFIG
from models.errors import ProviderFailure
from models.sketch import SketchImage
from providers.base import HttpImageProvider, JobStatus, dig, first_image_url

logger = logging.getLogger(__name__)

FAILED_STATUSES = {"failed", "canceled", "aborted"}


class ReplicateProvider(HttpImageProvider):
    provider_id = "replicate"
    credential_variable = "REPLICATE_API_TOKEN"
    result_strategies = [
        ("output", lambda p: dig(p, "output") if isinstance(dig(p, "output"), str) else None),
        ("output[0]", lambda p: first_image_url(dig(p, "output"))),
        ("output.url", lambda p: dig(p, "output", "url")),
        ("output.images[0]", lambda p: first_image_url(dig(p, "output", "images"))),
    ]

    def __init__(
        self,
        api_key: Optional[str],
        model: str = PROVIDER_CONFIG["replicate"]["default_model"],
        text_model: Optional[str] = PROVIDER_CONFIG["replicate"]["default_text_model"],
        mode: str = "poll",
        api_url: str = PROVIDER_CONFIG["replicate"]["api_url"],
        **kwargs,
    ):
        super().__init__(api_key, model, text_model, mode=mode, **kwargs)
        self.api_url = api_url.rstrip("/")

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def submit(self, client: httpx.AsyncClient, prompt: str, seed_image: Optional[SketchImage]) -> Dict[str, Any]:
        model = self.model if seed_image is not None else self.text_model
        model_input = {"prompt": prompt}
        if seed_image is not None:
            # Replicate accepts file inputs as data URIs
            model_input["input_image"] = seed_image.data_uri

        headers = {"Prefer": "wait"} if self.mode == "sync" else None
        logger.info(f"[replicate] creating prediction on {model} ({self.mode} mode)")
        return await self.post_json(client, f"{self.api_url}/models/{model}/predictions", {"input": model_input}, headers=headers)

    def read_status(self, payload: Dict[str, Any]) -> JobStatus:
        status = str(payload.get("status", "")).lower()
        if status == "succeeded":
            return JobStatus.SUCCEEDED
        if status in FAILED_STATUSES:
            return JobStatus.FAILED
        return JobStatus.PENDING

    def failure_reason(self, payload: Dict[str, Any]) -> str:
        return str(payload.get("error") or f"prediction {payload.get('status')}")

    async def fetch_status(self, client: httpx.AsyncClient, job: Dict[str, Any]) -> Dict[str, Any]:
        poll_url = dig(job, "urls", "get")
        if not poll_url:
            if not job.get("id"):
                raise ProviderFailure(self.provider_id, "prediction response has no id or polling URL")
            poll_url = f"{self.api_url}/predictions/{job['id']}"
        return await self.get_json(client, poll_url)
