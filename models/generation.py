"""
Generation models for SketchCraft: the HTTP body, the orchestrator's input
and the values it produces.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum

from models.errors import GenerationValidationError
from models.sketch import SketchImage


class GenerateRequest(BaseModel):
    """
    Body of POST /api/generate as sent by the drawing page.
    """
    image: Optional[str] = Field(default=None, description="Sketch as a base64 data URI")
    style: Optional[str] = Field(default=None, description="Selected art style label")
    question: Optional[str] = Field(default=None, description="Last guess shown to the user")
    answer: Optional[str] = Field(default=None, description="User's answer to that guess")
    personal_prompt: Optional[str] = Field(default=None, alias="personalPrompt", description="Free-text instruction")

    class Config:
        populate_by_name = True

    def to_domain(self) -> "GenerationRequest":
        """Convert to the orchestrator input, decoding the sketch if one was sent."""
        sketch_image = SketchImage.from_data_uri(self.image) if self.image and self.image.strip() else None
        return GenerationRequest(
            sketch_image=sketch_image,
            style=self.style,
            prior_question=self.question,
            prior_answer=self.answer,
            personal_prompt=self.personal_prompt,
        )


class GenerationRequest(BaseModel):
    """
    Input to the generation orchestrator.
    """
    sketch_image: Optional[SketchImage] = None
    style: Optional[str] = None
    prior_question: Optional[str] = None
    prior_answer: Optional[str] = None
    personal_prompt: Optional[str] = None

    class Config:
        frozen = True

    @property
    def has_personal_prompt(self) -> bool:
        return bool(self.personal_prompt and self.personal_prompt.strip())

    def validate_inputs(self) -> None:
        if self.sketch_image is None and not self.has_personal_prompt:
            raise GenerationValidationError("No image or prompt provided")


class ComposedPrompt(BaseModel):
    description: str = ""
    prompt_text: str

    class Config:
        frozen = True


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


class ProviderAttempt(BaseModel):
    """
    One try against one backend.
    """
    provider_id: str
    outcome: AttemptOutcome
    result_url: Optional[str] = None
    reason: Optional[str] = None
    elapsed_ms: int = 0

    class Config:
        frozen = True

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS


class GenerationResult(BaseModel):
    """
    Final orchestrator output, built once per request.
    """
    result_url: str
    used_fallback: bool
    provider_id: str
    description: str = ""
    prompt_text: str
    attempts: List[ProviderAttempt] = Field(default_factory=list)

    class Config:
        frozen = True


class GenerateResponse(BaseModel):
    """
    Body returned to the drawing page on success.
    """
    description: str
    prompt: str
    image: str
    fallback: bool
    fallback_type: Optional[str] = Field(default=None, alias="fallbackType")

    class Config:
        populate_by_name = True

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerateResponse":
        return cls(
            description=result.description,
            prompt=result.prompt_text,
            image=result.result_url,
            fallback=result.used_fallback,
            fallback_type=result.provider_id if result.used_fallback else None,
        )


class ErrorResponse(BaseModel):
    error: str
