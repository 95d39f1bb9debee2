"""
Sketch guessing and image generation routes for SketchCraft
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from models.errors import AggregateGenerationFailure, GenerationValidationError
from models.generation import ErrorResponse, GenerateRequest, GenerateResponse
from models.prediction import PredictRequest, PredictResponse
from models.sketch import SketchImage

router = APIRouter(prefix="/api", tags=["Generation"])
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post("/predict", response_model=PredictResponse)
async def predict_sketch(request: Request, body: Optional[PredictRequest] = None):
    """
    Live guess of what the sketch shows, plus an acceptability flag
    """
    if body is None or not body.image or not body.image.strip():
        return _error(status.HTTP_400_BAD_REQUEST, "No image provided")

    try:
        sketch = SketchImage.from_data_uri(body.image)
        description_service = request.app.state.description_service
        prediction = await description_service.predict(
            sketch,
            previous_guess=body.previous_prediction,
            previous_answer=body.user_response,
        )
        return PredictResponse(guess=prediction.guess, ethics=1 if prediction.acceptable else 0)

    except GenerationValidationError as e:
        return _error(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        logger.error(f"Prediction error: {str(e)}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to analyze drawing")


@router.post("/generate")
async def generate_image(request: Request, body: Optional[GenerateRequest] = None):
    """
    Describe the sketch, compose the prompt and generate the image,
    falling back through the configured providers
    """
    if body is None:
        body = GenerateRequest()
    start_time = time.time()
    try:
        generation_request = body.to_domain()
        orchestrator = request.app.state.orchestrator
        result = await orchestrator.generate(generation_request)

        generation_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Generation finished by '{result.provider_id}' in {generation_time_ms}ms (fallback: {result.used_fallback})")
        response = GenerateResponse.from_result(result)
        return JSONResponse(content=response.model_dump(by_alias=True, exclude_none=True))

    except GenerationValidationError as e:
        logger.warning(f"Rejected generation request: {str(e)}")
        return _error(status.HTTP_400_BAD_REQUEST, str(e))
    except AggregateGenerationFailure as e:
        logger.error(f"Generation failed: {e.to_dict()}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate image, please try again")
    except Exception as e:
        logger.error(f"Unexpected generation error: {str(e)}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate image, please try again")
