"""
Generation orchestrator for SketchCraft

Composes the prompt (describe the sketch, then merge every signal), then
tries the configured image providers strictly in priority order. Each
attempt races the provider call against a timer; a failure or a timeout moves
on to the next provider. Only validation errors and the aggregate failure
leave this module.
"""
import asyncio
import functools
import logging
import time
import uuid
from typing import List, Optional

from config.settings import AppSettings
from models.errors import AggregateGenerationFailure, ProviderFailure, ProviderTimeout
from models.generation import (
    AttemptOutcome,
    ComposedPrompt,
    GenerationRequest,
    GenerationResult,
    ProviderAttempt,
)
from models.prediction import DescriptionContext
from models.sketch import SketchImage
from providers.base import ImageProvider
from services.description_service import DescriptionService
from services.prompt_composer import PROMPT_CHAR_LIMIT, compose_prompt

logger = logging.getLogger(__name__)


def _discard_late_result(provider_id: str, request_id: str, task: asyncio.Task) -> None:
    """Done-callback for abandoned attempts: consume the outcome so nothing leaks."""
    if task.cancelled():
        logger.debug(f"[{request_id}] Abandoned call to '{provider_id}' was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"[{request_id}] Abandoned call to '{provider_id}' failed late: {exc}")
    else:
        logger.info(f"[{request_id}] Late result from '{provider_id}' discarded")


class GenerationOrchestrator:
    def __init__(
        self,
        providers: List[ImageProvider],
        description_service: DescriptionService,
        attempt_timeout: float = 40.0,
        prompt_max_length: int = PROMPT_CHAR_LIMIT,
    ):
        self.providers = list(providers)
        self.description_service = description_service
        self.attempt_timeout = attempt_timeout
        self.prompt_max_length = prompt_max_length

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        providers: List[ImageProvider],
        description_service: DescriptionService,
    ) -> "GenerationOrchestrator":
        return cls(
            providers=providers,
            description_service=description_service,
            attempt_timeout=settings.generation_timeout,
            prompt_max_length=settings.prompt_max_length,
        )

    @property
    def provider_ids(self) -> List[str]:
        return [p.provider_id for p in self.providers]

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Run one generation request end to end.

        Raises:
            GenerationValidationError: neither an image nor a personal prompt was given
            AggregateGenerationFailure: every provider failed, timed out or was skipped
        """
        request_id = uuid.uuid4().hex[:8]
        request.validate_inputs()

        composed = await self.compose(request, request_id)

        attempts: List[ProviderAttempt] = []
        for index, provider in enumerate(self.providers):
            if request.sketch_image is None and not provider.supports_text_only:
                logger.info(f"[{request_id}] Skipping provider '{provider.provider_id}': it needs an input image")
                attempts.append(ProviderAttempt(
                    provider_id=provider.provider_id,
                    outcome=AttemptOutcome.SKIPPED,
                    reason="unsupported: no image",
                ))
                continue

            attempt = await self._attempt(provider, composed.prompt_text, request.sketch_image, request_id)
            attempts.append(attempt)
            if attempt.succeeded:
                used_fallback = index > 0
                if used_fallback:
                    logger.info(f"[{request_id}] Fallback provider '{provider.provider_id}' produced the image")
                return GenerationResult(
                    result_url=attempt.result_url,
                    used_fallback=used_fallback,
                    provider_id=provider.provider_id,
                    description=composed.description,
                    prompt_text=composed.prompt_text,
                    attempts=attempts,
                )

        summary = "; ".join(f"{a.provider_id}={a.outcome.value} ({a.reason})" for a in attempts) or "no providers configured"
        logger.error(f"[{request_id}] All providers failed: {summary}")
        raise AggregateGenerationFailure(attempts)

    async def compose(self, request: GenerationRequest, request_id: str = "-") -> ComposedPrompt:
        """Describe the sketch (if any) and build the prompt. Never fails."""
        description = ""
        if request.sketch_image is not None:
            context = DescriptionContext(
                previous_guess=request.prior_question,
                previous_answer=request.prior_answer,
            )
            result = await self.description_service.describe(request.sketch_image, context)
            description = result.text
            if not description:
                logger.warning(f"[{request_id}] No sketch description available, continuing without it")
            elif result.fallback_used:
                logger.warning(f"[{request_id}] Using fallback sketch description")

        composed = compose_prompt(
            description=description,
            style=request.style,
            prior_question=request.prior_question,
            prior_answer=request.prior_answer,
            personal_prompt=request.personal_prompt,
            max_length=self.prompt_max_length,
        )
        logger.info(f"[{request_id}] Composed prompt ({len(composed.prompt_text)} chars)")
        return composed

    async def _call_provider(self, provider: ImageProvider, prompt: str, seed_image: Optional[SketchImage]) -> str:
        # any exception, even one raised before the first await, ends up in the task
        return await provider.generate(prompt, seed_image)

    async def _attempt(
        self,
        provider: ImageProvider,
        prompt: str,
        seed_image: Optional[SketchImage],
        request_id: str,
    ) -> ProviderAttempt:
        provider_id = provider.provider_id
        logger.info(f"[{request_id}] Attempting provider '{provider_id}' (timeout {self.attempt_timeout:g}s)")
        started = time.monotonic()

        task = asyncio.ensure_future(self._call_provider(provider, prompt, seed_image))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.attempt_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if task not in done:
            # stop listening; cancellation is best-effort (a thread-backed call keeps running)
            task.add_done_callback(functools.partial(_discard_late_result, provider_id, request_id))
            task.cancel()
            timeout = ProviderTimeout(provider_id, self.attempt_timeout)
            logger.warning(f"[{request_id}] Provider '{provider_id}' {timeout}, moving on")
            return ProviderAttempt(
                provider_id=provider_id,
                outcome=AttemptOutcome.TIMEOUT,
                reason=str(timeout),
                elapsed_ms=elapsed_ms,
            )

        try:
            result_url = task.result()
        except ProviderFailure as e:
            logger.error(f"[{request_id}] Provider '{provider_id}' failed: {e}")
            return ProviderAttempt(provider_id=provider_id, outcome=AttemptOutcome.FAILURE, reason=str(e), elapsed_ms=elapsed_ms)
        except Exception as e:
            logger.error(f"[{request_id}] Provider '{provider_id}' raised {type(e).__name__}: {e}", exc_info=True)
            return ProviderAttempt(
                provider_id=provider_id,
                outcome=AttemptOutcome.FAILURE,
                reason=f"{type(e).__name__}: {e}",
                elapsed_ms=elapsed_ms,
            )

        if not result_url:
            logger.error(f"[{request_id}] Provider '{provider_id}' returned an empty result")
            return ProviderAttempt(provider_id=provider_id, outcome=AttemptOutcome.FAILURE, reason="empty result", elapsed_ms=elapsed_ms)

        logger.info(f"[{request_id}] Provider '{provider_id}' succeeded in {elapsed_ms}ms")
        return ProviderAttempt(
            provider_id=provider_id,
            outcome=AttemptOutcome.SUCCESS,
            result_url=result_url,
            elapsed_ms=elapsed_ms,
        )
