# config/provider_config.py

from typing import Dict, Any, List

# Static catalogue of the image-generation backends SketchCraft knows how to talk to.
# Credentials and per-deployment overrides live in config/settings.py.
PROVIDER_CONFIG: Dict[str, Dict[str, Any]] = {
    "fal": {
        "name": "fal.ai FLUX Kontext",
        "default_model": "fal-ai/flux-pro/kontext",
        "default_text_model": "fal-ai/flux-pro/kontext/text-to-image",
        "default_mode": "sync",  # "sync" uses fal.run, "queue" polls queue.fal.run
        "sync_url": "https://fal.run",
        "queue_url": "https://queue.fal.run",
    },
    "replicate": {
        "name": "Replicate",
        "default_model": "black-forest-labs/flux-kontext-pro",
        "default_text_model": None,  # kontext needs an input image
        "default_mode": "poll",
        "api_url": "https://api.replicate.com/v1",
    },
    "gemini": {
        "name": "Gemini Image",
        "default_model": "gemini-2.5-flash-image",
        "default_text_model": None,  # same model handles text-only prompts
        "default_mode": "sync",
    },
}

DEFAULT_PROVIDER_PRIORITY: List[str] = ["fal", "replicate"]


def get_provider_features(provider_id: str) -> Dict[str, Any]:
    """Safely get the catalogue entry for a provider id."""
    return PROVIDER_CONFIG.get(provider_id, {"name": provider_id})
