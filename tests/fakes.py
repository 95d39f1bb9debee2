"""Test doubles for providers, the description client and the genai SDK."""
import asyncio
import threading
import time
from types import SimpleNamespace

from models.errors import ProviderFailure
from models.prediction import DescriptionResult, Prediction

# 1x1 transparent PNG
PNG_BASE64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
PNG_DATA_URI = f"data:image/png;base64,{PNG_BASE64}"


class FakeProvider:
    """Stands in for an image provider adapter.

    behavior: "succeed", "fail" (ProviderFailure), "raise" (unexpected error),
    "hang" (never settles), "empty" (returns '').
    """

    credential_variable = "FAKE_API_KEY"

    def __init__(self, provider_id, behavior="succeed", result_url=None, delay=0.0, supports_text_only=True):
        self.provider_id = provider_id
        self.behavior = behavior
        self.result_url = result_url or f"https://images.example/{provider_id}.png"
        self.delay = delay
        self.supports_text_only = supports_text_only
        self.api_key = "test-key"
        self.calls = []

    async def generate(self, prompt, seed_image=None):
        self.calls.append((prompt, seed_image))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.behavior == "hang":
            await asyncio.Event().wait()
        if self.behavior == "fail":
            raise ProviderFailure(self.provider_id, "upstream returned HTTP 500")
        if self.behavior == "raise":
            raise RuntimeError("connection reset")
        if self.behavior == "empty":
            return ""
        return self.result_url


class SyncRaisingProvider(FakeProvider):
    """generate() is a plain function that raises before any coroutine exists."""

    def generate(self, prompt, seed_image=None):
        self.calls.append((prompt, seed_image))
        raise ValueError("bad configuration")


class ThreadBackedProvider(FakeProvider):
    """Blocks in a worker thread, so cancelling the await does not stop the work."""

    def __init__(self, provider_id, block_for=0.2, **kwargs):
        super().__init__(provider_id, **kwargs)
        self.block_for = block_for
        self.finished = threading.Event()

    async def generate(self, prompt, seed_image=None):
        self.calls.append((prompt, seed_image))
        return await asyncio.to_thread(self._blocking_call)

    def _blocking_call(self):
        time.sleep(self.block_for)
        self.finished.set()
        return self.result_url


class FakeDescriptionClient:
    def __init__(self, text="A black cat sitting on a brick wall under the moon", guess="a cat", acceptable=True):
        self.text = text
        self.guess = guess
        self.acceptable = acceptable
        self.describe_calls = []
        self.predict_calls = []

    async def describe(self, image, context=None):
        self.describe_calls.append((image, context))
        return DescriptionResult(text=self.text)

    async def predict(self, image, previous_guess=None, previous_answer=None):
        self.predict_calls.append((image, previous_guess, previous_answer))
        return Prediction(guess=self.guess, acceptable=self.acceptable)


def fake_genai_client(text=None, response=None, error=None, delay=0.0):
    """Object shaped like genai.Client with a blocking models.generate_content."""
    calls = []

    def generate_content(**kwargs):
        calls.append(kwargs)
        if delay:
            time.sleep(delay)
        if error is not None:
            raise error
        if response is not None:
            return response
        part = SimpleNamespace(text=text, inline_data=None)
        return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))], text=text)

    client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    client.calls = calls
    return client


