"""
Error taxonomy for the generation pipeline
"""
from typing import Optional, List, Dict, Any


class SketchCraftError(Exception):
    """Base exception class for SketchCraft errors"""
    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to standard error format"""
        return {
            "code": self.code,
            "message": str(self),
            "details": self.details
        }


class GenerationValidationError(SketchCraftError):
    """Raised when a request is missing required input; no provider is attempted"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ProviderFailure(SketchCraftError):
    """Raised by a provider adapter when it cannot produce an image"""
    def __init__(self, provider_id: str, message: str, code: str = "PROVIDER_FAILURE", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)
        self.provider_id = provider_id


class MissingCredentialError(ProviderFailure):
    """Raised before any network call when the provider has no API key"""
    def __init__(self, provider_id: str, variable: str):
        super().__init__(
            provider_id,
            f"missing credential: {variable} is not set",
            code="MISSING_CREDENTIAL",
            details={"variable": variable},
        )


class UnsupportedModeError(ProviderFailure):
    """Raised when an image-conditioned provider is asked to work without an image"""
    def __init__(self, provider_id: str, message: str = "unsupported: no image"):
        super().__init__(provider_id, message, code="UNSUPPORTED_MODE")


class ResultNotFoundError(ProviderFailure):
    """Raised when none of the extraction strategies find a result reference"""
    def __init__(self, provider_id: str, tried: List[str]):
        super().__init__(
            provider_id,
            f"result not found (tried: {', '.join(tried)})",
            code="RESULT_NOT_FOUND",
            details={"tried": tried},
        )


class PollExhaustedError(ProviderFailure):
    """Raised when a poll-mode job never reached a final status"""
    def __init__(self, provider_id: str, attempts: int):
        super().__init__(
            provider_id,
            f"job still pending after {attempts} status checks",
            code="POLL_EXHAUSTED",
            details={"attempts": attempts},
        )


class ProviderTimeout(ProviderFailure):
    """A provider that did not settle within the per-attempt timeout"""
    def __init__(self, provider_id: str, timeout_seconds: float):
        super().__init__(
            provider_id,
            f"timed out after {timeout_seconds:g}s",
            code="PROVIDER_TIMEOUT",
            details={"timeout_seconds": timeout_seconds},
        )


class AggregateGenerationFailure(SketchCraftError):
    """Raised when every configured provider failed, timed out or was skipped"""
    def __init__(self, attempts: list):
        reasons = [f"{a.provider_id}: {a.outcome.value} ({a.reason})" for a in attempts]
        message = "All image providers failed" if attempts else "No image providers configured"
        super().__init__(message, code="GENERATION_FAILED", details={"attempts": reasons})
        self.attempts = attempts
