import pytest

from config.settings import AppSettings, ProviderSettings
from models.sketch import SketchImage

from fakes import PNG_DATA_URI, FakeDescriptionClient


@pytest.fixture
def sample_data_uri():
    """Sketch as the drawing canvas sends it"""
    return PNG_DATA_URI


@pytest.fixture
def sample_sketch():
    return SketchImage.from_data_uri(PNG_DATA_URI)


@pytest.fixture
def description_client():
    return FakeDescriptionClient()


@pytest.fixture
def settings():
    """Settings with short timeouts and no static directory"""
    return AppSettings(
        gemini_api_key=None,
        generation_timeout=0.2,
        poll_interval=0.01,
        max_poll_attempts=3,
        provider_priority=["fal", "replicate"],
        providers={
            "fal": ProviderSettings(provider_id="fal", api_key="fal-key", model="fal-ai/flux-pro/kontext",
                                    text_model="fal-ai/flux-pro/kontext/text-to-image", mode="sync"),
            "replicate": ProviderSettings(provider_id="replicate", api_key="r8-key",
                                          model="black-forest-labs/flux-kontext-pro", mode="poll"),
        },
        static_dir=None,
    )
