"""
Sketch description and live guessing with Gemini.

Neither entry point raises: a transport problem gives an empty result and an
unreadable model answer gives a fixed placeholder, so callers can always
carry on without the description.
"""
import asyncio
import json
import logging
import re
from typing import Optional

from google import genai
from google.genai import types

from config.settings import AppSettings
from models.prediction import DescriptionContext, DescriptionResult, Prediction
from models.sketch import SketchImage
from prompts.sketch_prompts import (
    FALLBACK_DESCRIPTION,
    FALLBACK_GUESS,
    PROMPT_BEGIN_MARKER,
    PROMPT_END_MARKER,
    build_describe_prompt,
    build_predict_prompt,
)
from services.prompt_composer import truncate_prompt

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)
JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
GUESS_PATTERN = re.compile(r'"?guess"?\s*[:=]\s*"([^"\n]+)"', re.IGNORECASE)
ETHICS_PATTERN = re.compile(r'"?ethics"?\s*[:=]\s*"?([01])\b', re.IGNORECASE)
MAX_GUESS_WORDS = 4


def _response_text(response) -> str:
    """Join the text parts of a generate_content response; '' when there are none."""
    if response is not None and getattr(response, "candidates", None):
        candidate = response.candidates[0]
        content = getattr(candidate, "content", None)
        if content is not None and getattr(content, "parts", None):
            return "".join(p.text for p in content.parts if isinstance(getattr(p, "text", None), str)).strip()
    text = getattr(response, "text", None)
    return text.strip() if isinstance(text, str) else ""


def _strip_code_fences(text: str) -> str:
    return CODE_FENCE_PATTERN.sub("", text).strip()


def extract_description(raw: str) -> str:
    """
    Pull the paragraph out of a marker-delimited answer.

    Answers without markers are used whole. Returns '' when nothing usable is left.
    """
    text = _strip_code_fences(raw)
    if PROMPT_BEGIN_MARKER in text:
        text = text.split(PROMPT_BEGIN_MARKER, 1)[1]
    if PROMPT_END_MARKER in text:
        text = text.split(PROMPT_END_MARKER, 1)[0]
    text = " ".join(text.split()).strip("\"'")
    if not text or "{final paragraph only}" in text:
        return ""
    return text


def _clean_guess(value) -> str:
    if not isinstance(value, str):
        return ""
    words = value.strip().strip("\"'`").rstrip(".!?").split()
    return " ".join(words[:MAX_GUESS_WORDS])


def _read_ethics(value) -> bool:
    # only an explicit 0/false marks the sketch as unacceptable
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() not in ("0", "false", "no")
    return True


def parse_prediction(raw: str) -> Prediction:
    """
    Read the {"guess", "ethics"} object the predict prompt asks for.

    Falls back to sniffing the two keys in the raw text, then to a generic
    guess marked acceptable. The raw model text is never returned as-is.
    """
    text = _strip_code_fences(raw or "")

    data = None
    match = JSON_OBJECT_PATTERN.search(text)
    if match:
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            data = None

    if isinstance(data, dict):
        guess = _clean_guess(data.get("guess"))
        if guess:
            return Prediction(guess=guess, acceptable=_read_ethics(data.get("ethics", 1)))

    guess_match = GUESS_PATTERN.search(text)
    if guess_match and _clean_guess(guess_match.group(1)):
        ethics_match = ETHICS_PATTERN.search(text)
        acceptable = ethics_match.group(1) != "0" if ethics_match else True
        return Prediction(guess=_clean_guess(guess_match.group(1)), acceptable=acceptable)

    logger.warning(f"Unparseable prediction response, using fallback guess: {text[:120]!r}")
    return Prediction(guess=FALLBACK_GUESS, acceptable=True)


class DescriptionService:
    """Stateless wrapper around the Gemini vision model."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        timeout: float = 30.0,
        max_length: int = 1000,
        client=None,
    ):
        self.model = model
        self.timeout = timeout
        self.max_length = max_length
        self._client = client
        if self._client is None and api_key:
            self._client = genai.Client(api_key=api_key)
        if self._client is None:
            logger.warning("GEMINI_API_KEY not set: sketch descriptions and guesses are disabled")

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "DescriptionService":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.description_timeout,
            max_length=settings.prompt_max_length,
        )

    async def _ask(self, prompt: str, image: SketchImage) -> Optional[str]:
        """Send prompt + image; None means the call itself failed."""
        if self._client is None:
            return None
        contents = [
            prompt,
            types.Part.from_bytes(data=image.raw_bytes(), mime_type=image.mime_type),
        ]
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self._client.models.generate_content,
                    model=self.model,
                    contents=contents,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Gemini call timed out after {self.timeout:g}s")
            return None
        except Exception as e:
            logger.error(f"Gemini call failed: {str(e)}")
            return None
        return _response_text(response)

    async def describe(self, image: SketchImage, context: Optional[DescriptionContext] = None) -> DescriptionResult:
        """Describe a sketch as one paragraph usable in a generation prompt."""
        context = context or DescriptionContext()
        prompt = build_describe_prompt(context.previous_guess, context.previous_answer, self.max_length)
        raw = await self._ask(prompt, image)
        if raw is None:
            return DescriptionResult(text="")

        text = extract_description(raw)
        if not text:
            logger.warning("Description response was empty or malformed, using fallback description")
            return DescriptionResult(text=FALLBACK_DESCRIPTION, fallback_used=True)
        return DescriptionResult(text=truncate_prompt(text, self.max_length))

    async def predict(
        self,
        image: SketchImage,
        previous_guess: Optional[str] = None,
        previous_answer: Optional[str] = None,
    ) -> Prediction:
        """Guess what the sketch shows in a few words, avoiding the previous guess."""
        prompt = build_predict_prompt(previous_guess, previous_answer)
        raw = await self._ask(prompt, image)
        if raw is None:
            return Prediction(guess="", acceptable=True)

        prediction = parse_prediction(raw)
        if previous_guess and prediction.guess.lower() == _clean_guess(previous_guess).lower():
            logger.info(f"Model repeated previous guess {previous_guess!r}, dropping it")
            return Prediction(guess="", acceptable=prediction.acceptable)
        return prediction
