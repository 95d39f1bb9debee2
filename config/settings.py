"""
Runtime configuration for SketchCraft

Everything here is read once at process start-up and handed to the
orchestrator, the description client and the provider adapters.
"""
import os
import logging
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from config.provider_config import PROVIDER_CONFIG, DEFAULT_PROVIDER_PRIORITY

logger = logging.getLogger(__name__)


class ProviderSettings(BaseModel):
    """Credentials and model selection for one image-generation provider."""
    provider_id: str
    api_key: Optional[str] = None
    model: str
    text_model: Optional[str] = None
    mode: str = "sync"

    class Config:
        frozen = True


class AppSettings(BaseModel):
    """Process-wide, read-only configuration."""
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    description_timeout: float = 30.0
    generation_timeout: float = 40.0
    poll_interval: float = 2.0
    max_poll_attempts: int = 5
    prompt_max_length: int = 1000
    provider_priority: List[str] = Field(default_factory=lambda: list(DEFAULT_PROVIDER_PRIORITY))
    providers: Dict[str, ProviderSettings] = Field(default_factory=dict)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    static_dir: Optional[str] = "public"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    class Config:
        frozen = True

    def provider(self, provider_id: str) -> Optional[ProviderSettings]:
        return self.providers.get(provider_id)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, using default {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _optional(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, default)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_settings() -> AppSettings:
    """Build AppSettings from the environment (and a .env file if present)."""
    load_dotenv()

    gemini_api_key = _optional("GEMINI_API_KEY")

    providers = {
        "fal": ProviderSettings(
            provider_id="fal",
            api_key=_optional("FAL_API_KEY") or _optional("FAL_KEY"),
            model=os.getenv("FAL_MODEL", PROVIDER_CONFIG["fal"]["default_model"]),
            text_model=_optional("FAL_TEXT_MODEL", PROVIDER_CONFIG["fal"]["default_text_model"]),
            mode=os.getenv("FAL_MODE", PROVIDER_CONFIG["fal"]["default_mode"]).strip().lower(),
        ),
        "replicate": ProviderSettings(
            provider_id="replicate",
            api_key=_optional("REPLICATE_API_TOKEN"),
            model=os.getenv("REPLICATE_MODEL", PROVIDER_CONFIG["replicate"]["default_model"]),
            text_model=_optional("REPLICATE_TEXT_MODEL", PROVIDER_CONFIG["replicate"]["default_text_model"]),
            mode=PROVIDER_CONFIG["replicate"]["default_mode"],
        ),
        "gemini": ProviderSettings(
            provider_id="gemini",
            api_key=gemini_api_key,
            model=os.getenv("GEMINI_IMAGE_MODEL", PROVIDER_CONFIG["gemini"]["default_model"]),
            mode=PROVIDER_CONFIG["gemini"]["default_mode"],
        ),
    }

    priority = []
    for provider_id in _env_list("PROVIDER_PRIORITY", DEFAULT_PROVIDER_PRIORITY):
        provider_id = provider_id.lower()
        if provider_id not in PROVIDER_CONFIG:
            logger.warning(f"Unknown provider '{provider_id}' in PROVIDER_PRIORITY, ignoring")
            continue
        if provider_id not in priority:
            priority.append(provider_id)

    return AppSettings(
        gemini_api_key=gemini_api_key,
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        description_timeout=_env_float("DESCRIPTION_TIMEOUT", 30.0),
        generation_timeout=_env_float("GENERATION_TIMEOUT", 40.0),
        poll_interval=_env_float("POLL_INTERVAL", 2.0),
        max_poll_attempts=_env_int("MAX_POLL_ATTEMPTS", 5),
        prompt_max_length=_env_int("PROMPT_MAX_LENGTH", 1000),
        provider_priority=priority,
        providers=providers,
        cors_origins=_env_list("CORS_ORIGINS", ["*"]),
        static_dir=_optional("STATIC_DIR", "public"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=_optional("LOG_FILE"),
    )
