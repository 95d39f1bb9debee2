"""
Builds the ordered provider list from settings
"""
import logging
from typing import List, Optional

import httpx

from config.settings import AppSettings
from providers.base import ImageProvider
from providers.fal_provider import FalProvider
from providers.gemini_image_provider import GeminiImageProvider
from providers.replicate_provider import ReplicateProvider

logger = logging.getLogger(__name__)


def build_provider(provider_id: str, settings: AppSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> ImageProvider:
    provider_settings = settings.provider(provider_id)
    if provider_settings is None:
        raise KeyError(f"No settings for provider '{provider_id}'")

    poll_options = {
        "poll_interval": settings.poll_interval,
        "max_poll_attempts": settings.max_poll_attempts,
        "transport": transport,
    }
    if provider_id == "fal":
        return FalProvider(
            api_key=provider_settings.api_key,
            model=provider_settings.model,
            text_model=provider_settings.text_model,
            mode=provider_settings.mode,
            **poll_options,
        )
    if provider_id == "replicate":
        return ReplicateProvider(
            api_key=provider_settings.api_key,
            model=provider_settings.model,
            text_model=provider_settings.text_model,
            mode=provider_settings.mode,
            **poll_options,
        )
    if provider_id == "gemini":
        return GeminiImageProvider(api_key=provider_settings.api_key, model=provider_settings.model)
    raise KeyError(f"Unknown provider '{provider_id}'")


def build_providers(settings: AppSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> List[ImageProvider]:
    """Adapters in PROVIDER_PRIORITY order. Missing credentials are kept: those adapters fail fast per call."""
    providers = []
    for provider_id in settings.provider_priority:
        try:
            provider = build_provider(provider_id, settings, transport)
        except KeyError as e:
            logger.warning(f"Skipping provider: {e}")
            continue
        if not provider.api_key:
            logger.warning(f"Provider '{provider_id}' has no credential ({provider.credential_variable}); it will fail fast")
        providers.append(provider)
    return providers
