import os
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config.settings import AppSettings, load_settings
from config.provider_config import get_provider_features
from config.style_presets import get_style_info_for_frontend, list_available_styles
from providers.base import ImageProvider
from providers.registry import build_providers
from routes.generation import router as generation_router
from routes.relay import router as relay_router
from services.description_service import DescriptionService
from services.generation_orchestrator import GenerationOrchestrator
from services.relay_service import RelayHub

logger = logging.getLogger(__name__)


def configure_logging(settings: AppSettings):
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    logger.warning(f"Rejected malformed request: {errors}")
    if not errors:
        return "Invalid request body"
    first = errors[0]
    field = ".".join(part for part in first.get("loc", ()) if isinstance(part, str) and part != "body")
    if not field:
        return "Invalid request body"
    return f"Invalid value for '{field}': {first.get('msg', 'invalid')}"


def create_app(
    settings: Optional[AppSettings] = None,
    providers: Optional[List[ImageProvider]] = None,
    description_client: Optional[DescriptionService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Settings are read once here and every service gets them injected;
    tests pass fakes for the providers and the description client.
    """
    settings = settings or load_settings()
    configure_logging(settings)

    app = FastAPI(
        title="SketchCraft Backend",
        description="Sketch-to-image generation: Gemini describes the drawing, image providers render it with failover",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if providers is None:
        providers = build_providers(settings)
    if description_client is None:
        description_client = DescriptionService.from_settings(settings)

    app.state.settings = settings
    app.state.description_service = description_client
    app.state.orchestrator = GenerationOrchestrator.from_settings(settings, providers, description_client)
    app.state.relay_hub = RelayHub()

    app.include_router(generation_router)
    app.include_router(relay_router)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies get the same {"error"} shape as every other rejection."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": describe_validation_error(exc)}
        )

    @app.on_event("startup")
    async def startup_event():
        """Log the provider chain on startup."""
        orchestrator = app.state.orchestrator
        logger.info("✅ SketchCraft Backend started successfully")
        logger.info(f"✅ Description model: {settings.gemini_model}")
        logger.info(f"✅ Provider priority: {', '.join(orchestrator.provider_ids) or 'none'}")
        for provider in orchestrator.providers:
            if not provider.api_key:
                logger.warning(f"⚠️ {provider.provider_id}: {provider.credential_variable} is not set")
        if not settings.gemini_api_key:
            logger.warning("⚠️ GEMINI_API_KEY is not set: sketch descriptions are disabled")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        logger.debug("Health check requested")
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "model": settings.gemini_model,
            "providers": app.state.orchestrator.provider_ids,
        }

    @app.get("/api/styles")
    async def get_styles():
        """Get available art styles for the frontend."""
        return {
            "styles": get_style_info_for_frontend(),
            "timestamp": datetime.now().isoformat()
        }

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "SketchCraft Backend API",
            "version": "1.0.0",
            "model": settings.gemini_model,
            "providers": [
                {"id": provider_id, "name": get_provider_features(provider_id)["name"]}
                for provider_id in app.state.orchestrator.provider_ids
            ],
            "styles": list_available_styles(),
            "endpoints": {
                "predict": "/api/predict",
                "generate": "/api/generate",
                "styles": "/api/styles",
                "relay": "/ws",
                "health": "/health",
            }
        }

    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount("/static", StaticFiles(directory=settings.static_dir, html=True), name="static")
        logger.info(f"Serving static files from {settings.static_dir}")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3000")), log_level="info")
