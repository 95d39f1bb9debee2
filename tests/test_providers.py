"""Tests for the image provider adapters against mocked HTTP and SDK backends."""
import base64
import json
from types import SimpleNamespace

import httpx
import pytest

from config.settings import ProviderSettings
from models.errors import (
    MissingCredentialError,
    PollExhaustedError,
    ProviderFailure,
    ResultNotFoundError,
    UnsupportedModeError,
)
from providers.base import HttpImageProvider, JobStatus
from providers.fal_provider import FalProvider
from providers.gemini_image_provider import GeminiImageProvider
from providers.registry import build_providers
from providers.replicate_provider import ReplicateProvider
from fakes import fake_genai_client

REPLICATE_CREATE_URL = "https://api.replicate.com/v1/models/black-forest-labs/flux-kontext-pro/predictions"
REPLICATE_POLL_URL = "https://api.replicate.com/v1/predictions/p1"


class Recorder:
    """MockTransport handler that replays queued responses per (method, url)."""

    def __init__(self, routes):
        self.routes = {key: list(value) for key, value in routes.items()}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, str(request.url)))
        if not queue:
            return httpx.Response(404, json={"detail": "not mocked"})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    def transport(self):
        return httpx.MockTransport(self)


def fal(recorder, **kwargs):
    options = dict(api_key="fal-key", poll_interval=0, max_poll_attempts=3, transport=recorder.transport())
    options.update(kwargs)
    return FalProvider(**options)


def replicate(recorder, **kwargs):
    options = dict(api_key="r8-key", poll_interval=0, max_poll_attempts=3, transport=recorder.transport())
    options.update(kwargs)
    return ReplicateProvider(**options)


# fal.ai

async def test_fal_sync_sends_sketch_as_data_uri(sample_sketch):
    recorder = Recorder({
        ("POST", "https://fal.run/fal-ai/flux-pro/kontext"): [{"images": [{"url": "https://fal.media/out.png"}]}],
    })

    result = await fal(recorder).generate("a cat in watercolor", sample_sketch)

    assert result == "https://fal.media/out.png"
    request = recorder.requests[0]
    assert request.headers["Authorization"] == "Key fal-key"
    body = json.loads(request.content)
    assert body == {"prompt": "a cat in watercolor", "image_url": sample_sketch.data_uri}


async def test_fal_reads_nested_data_images(sample_sketch):
    recorder = Recorder({
        ("POST", "https://fal.run/fal-ai/flux-pro/kontext"): [{"data": {"images": [{"url": "https://fal.media/nested.png"}]}}],
    })

    assert await fal(recorder).generate("prompt", sample_sketch) == "https://fal.media/nested.png"


async def test_fal_text_only_uses_text_model():
    recorder = Recorder({
        ("POST", "https://fal.run/fal-ai/flux-pro/kontext/text-to-image"): [{"images": ["https://fal.media/text.png"]}],
    })

    result = await fal(recorder).generate("a lighthouse", None)

    assert result == "https://fal.media/text.png"
    assert json.loads(recorder.requests[0].content) == {"prompt": "a lighthouse"}


async def test_fal_queue_mode_polls_until_completed(sample_sketch):
    status_url = "https://queue.fal.run/fal-ai/flux-pro/requests/abc/status"
    response_url = "https://queue.fal.run/fal-ai/flux-pro/requests/abc"
    recorder = Recorder({
        ("POST", "https://queue.fal.run/fal-ai/flux-pro/kontext"): [{
            "request_id": "abc",
            "status": "IN_QUEUE",
            "status_url": status_url,
            "response_url": response_url,
        }],
        ("GET", status_url): [{"status": "IN_PROGRESS"}, {"status": "COMPLETED"}],
        ("GET", response_url): [{"images": [{"url": "https://fal.media/queued.png"}]}],
    })

    result = await fal(recorder, mode="queue").generate("prompt", sample_sketch)

    assert result == "https://fal.media/queued.png"
    methods = [(r.method, str(r.url)) for r in recorder.requests]
    assert methods.count(("GET", status_url)) == 2


async def test_fal_queue_builds_status_url_when_missing(sample_sketch):
    status_url = "https://queue.fal.run/fal-ai/flux-pro/kontext/requests/xyz/status"
    result_url = "https://queue.fal.run/fal-ai/flux-pro/kontext/requests/xyz"
    recorder = Recorder({
        ("POST", "https://queue.fal.run/fal-ai/flux-pro/kontext"): [{"request_id": "xyz", "status": "IN_QUEUE"}],
        ("GET", status_url): [{"status": "COMPLETED"}],
        ("GET", result_url): [{"image": {"url": "https://fal.media/single.png"}}],
    })

    assert await fal(recorder, mode="queue").generate("prompt", sample_sketch) == "https://fal.media/single.png"


async def test_fal_queue_failure_status_raises(sample_sketch):
    status_url = "https://queue.fal.run/fal-ai/flux-pro/requests/abc/status"
    recorder = Recorder({
        ("POST", "https://queue.fal.run/fal-ai/flux-pro/kontext"): [{
            "request_id": "abc", "status": "IN_QUEUE", "status_url": status_url,
        }],
        ("GET", status_url): [{"status": "ERROR", "error": "model crashed"}],
    })

    with pytest.raises(ProviderFailure, match="model crashed"):
        await fal(recorder, mode="queue").generate("prompt", sample_sketch)


async def test_fal_http_error_raises_provider_failure(sample_sketch):
    recorder = Recorder({
        ("POST", "https://fal.run/fal-ai/flux-pro/kontext"): [httpx.Response(500, text="internal error")],
    })

    with pytest.raises(ProviderFailure) as exc_info:
        await fal(recorder).generate("prompt", sample_sketch)

    assert exc_info.value.details["status_code"] == 500


async def test_fal_unknown_payload_shape_raises_result_not_found(sample_sketch):
    recorder = Recorder({
        ("POST", "https://fal.run/fal-ai/flux-pro/kontext"): [{"seed": 42, "timings": {}}],
    })

    with pytest.raises(ResultNotFoundError) as exc_info:
        await fal(recorder).generate("prompt", sample_sketch)

    assert "images[0].url" in exc_info.value.details["tried"]


async def test_fal_non_object_json_is_rejected(sample_sketch):
    recorder = Recorder({
        ("POST", "https://fal.run/fal-ai/flux-pro/kontext"): [httpx.Response(200, json=["not", "a", "job"])],
    })

    with pytest.raises(ProviderFailure, match="unexpected response shape"):
        await fal(recorder).generate("prompt", sample_sketch)


async def test_missing_credential_fails_before_network(sample_sketch):
    recorder = Recorder({})

    with pytest.raises(MissingCredentialError, match="FAL_API_KEY"):
        await fal(recorder, api_key=None).generate("prompt", sample_sketch)

    assert recorder.requests == []


def test_fal_unknown_mode_falls_back_to_sync():
    assert FalProvider(api_key="k", mode="stream").mode == "sync"


class SubmitOnlyProvider(HttpImageProvider):
    """Backend that queues jobs but has no status endpoint."""

    provider_id = "submit-only"
    submit_url = "https://queue.example/jobs"

    def auth_headers(self):
        return {"Authorization": f"Key {self.api_key}"}

    async def submit(self, client, prompt, seed_image):
        return await self.post_json(client, self.submit_url, {"prompt": prompt})

    def read_status(self, payload):
        return JobStatus.PENDING


async def test_poll_mode_without_status_endpoint_is_a_provider_failure():
    recorder = Recorder({("POST", SubmitOnlyProvider.submit_url): [{"job": "j1", "state": "queued"}]})
    provider = SubmitOnlyProvider(
        api_key="key", model="m", text_model="m", mode="poll", poll_interval=0, transport=recorder.transport()
    )

    with pytest.raises(ProviderFailure, match="poll mode unsupported") as excinfo:
        await provider.generate("prompt")

    assert excinfo.value.provider_id == "submit-only"
    assert [r.method for r in recorder.requests] == ["POST"]


# Replicate

async def test_replicate_poll_mode_until_succeeded(sample_sketch):
    recorder = Recorder({
        ("POST", REPLICATE_CREATE_URL): [{"id": "p1", "status": "starting", "urls": {"get": REPLICATE_POLL_URL}}],
        ("GET", REPLICATE_POLL_URL): [
            {"id": "p1", "status": "processing"},
            {"id": "p1", "status": "succeeded", "output": "https://replicate.delivery/out.png"},
        ],
    })

    result = await replicate(recorder).generate("prompt", sample_sketch)

    assert result == "https://replicate.delivery/out.png"
    create = recorder.requests[0]
    assert create.headers["Authorization"] == "Bearer r8-key"
    assert "Prefer" not in create.headers
    assert json.loads(create.content)["input"]["input_image"] == sample_sketch.data_uri


async def test_replicate_list_output(sample_sketch):
    recorder = Recorder({
        ("POST", REPLICATE_CREATE_URL): [{"id": "p1", "status": "starting"}],
        ("GET", REPLICATE_POLL_URL): [{"status": "succeeded", "output": ["https://replicate.delivery/first.png"]}],
    })

    assert await replicate(recorder).generate("prompt", sample_sketch) == "https://replicate.delivery/first.png"


async def test_replicate_failed_prediction_reports_error(sample_sketch):
    recorder = Recorder({
        ("POST", REPLICATE_CREATE_URL): [{"id": "p1", "status": "starting", "urls": {"get": REPLICATE_POLL_URL}}],
        ("GET", REPLICATE_POLL_URL): [{"status": "failed", "error": "NSFW content detected"}],
    })

    with pytest.raises(ProviderFailure, match="NSFW content detected"):
        await replicate(recorder).generate("prompt", sample_sketch)


async def test_replicate_poll_ceiling(sample_sketch):
    recorder = Recorder({
        ("POST", REPLICATE_CREATE_URL): [{"id": "p1", "status": "starting", "urls": {"get": REPLICATE_POLL_URL}}],
        ("GET", REPLICATE_POLL_URL): [{"status": "processing"}],
    })

    with pytest.raises(PollExhaustedError):
        await replicate(recorder, max_poll_attempts=3).generate("prompt", sample_sketch)

    polls = [r for r in recorder.requests if r.method == "GET"]
    assert len(polls) == 3


async def test_replicate_sync_mode_waits_inline(sample_sketch):
    recorder = Recorder({
        ("POST", REPLICATE_CREATE_URL): [{"status": "succeeded", "output": {"url": "https://replicate.delivery/sync.png"}}],
    })

    result = await replicate(recorder, mode="sync").generate("prompt", sample_sketch)

    assert result == "https://replicate.delivery/sync.png"
    assert recorder.requests[0].headers["Prefer"] == "wait"


async def test_replicate_without_text_model_rejects_text_only():
    recorder = Recorder({})
    provider = replicate(recorder)

    assert provider.supports_text_only is False
    with pytest.raises(UnsupportedModeError, match="unsupported: no image"):
        await provider.generate("prompt", None)
    assert recorder.requests == []


async def test_status_poll_is_retried_on_dropped_connection(sample_sketch):
    recorder = Recorder({
        ("POST", REPLICATE_CREATE_URL): [{"id": "p1", "status": "starting", "urls": {"get": REPLICATE_POLL_URL}}],
        ("GET", REPLICATE_POLL_URL): [
            httpx.ConnectError("connection dropped"),
            {"status": "succeeded", "output": "https://replicate.delivery/retried.png"},
        ],
    })

    result = await replicate(recorder).generate("prompt", sample_sketch)

    assert result == "https://replicate.delivery/retried.png"


# Gemini

def gemini_image_response(data=b"png-bytes", mime_type="image/png"):
    inline = SimpleNamespace(data=data, mime_type=mime_type)
    parts = [SimpleNamespace(text="Here is your image", inline_data=None), SimpleNamespace(text=None, inline_data=inline)]
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


async def test_gemini_returns_inline_image_as_data_uri(sample_sketch):
    client = fake_genai_client(response=gemini_image_response())
    provider = GeminiImageProvider(api_key="g-key", client=client)

    result = await provider.generate("a cat", sample_sketch)

    assert result == "data:image/png;base64," + base64.b64encode(b"png-bytes").decode("ascii")
    contents = client.calls[0]["contents"]
    assert contents[0] == "a cat"
    assert len(contents) == 2


async def test_gemini_text_only_sends_prompt_alone():
    client = fake_genai_client(response=gemini_image_response())
    provider = GeminiImageProvider(api_key="g-key", client=client)

    await provider.generate("a lighthouse", None)

    assert client.calls[0]["contents"] == ["a lighthouse"]


async def test_gemini_sdk_error_is_wrapped(sample_sketch):
    client = fake_genai_client(error=RuntimeError("quota exceeded"))
    provider = GeminiImageProvider(api_key="g-key", client=client)

    with pytest.raises(ProviderFailure, match="quota exceeded"):
        await provider.generate("a cat", sample_sketch)


async def test_gemini_text_only_answer_is_result_not_found(sample_sketch):
    client = fake_genai_client(text="I cannot draw that")
    provider = GeminiImageProvider(api_key="g-key", client=client)

    with pytest.raises(ResultNotFoundError):
        await provider.generate("a cat", sample_sketch)


# Registry

def test_build_providers_follows_priority(settings):
    providers = build_providers(settings)

    assert [p.provider_id for p in providers] == ["fal", "replicate"]
    assert providers[0].mode == "sync"
    assert providers[1].mode == "poll"
    assert providers[1].poll_interval == settings.poll_interval


def test_build_providers_keeps_adapters_without_credentials(settings):
    settings = settings.model_copy(update={"provider_priority": ["gemini", "fal"]})
    providers_config = dict(settings.providers)
    providers_config["gemini"] = ProviderSettings(provider_id="gemini", model="gemini-2.5-flash-image")
    settings = settings.model_copy(update={"providers": providers_config})

    providers = build_providers(settings)

    assert [p.provider_id for p in providers] == ["gemini", "fal"]
    assert providers[0].api_key is None
