"""
Live sketch-guessing and description models
"""
from pydantic import BaseModel, Field
from typing import Optional


class PredictRequest(BaseModel):
    """Body of POST /api/predict."""
    image: Optional[str] = Field(default=None, description="Sketch as a base64 data URI")
    previous_prediction: Optional[str] = Field(default=None, alias="previousPrediction")
    user_response: Optional[str] = Field(default=None, alias="userResponse")

    class Config:
        populate_by_name = True


class PredictResponse(BaseModel):
    guess: str
    ethics: int = Field(default=1, description="1 when the sketch looks acceptable, 0 otherwise")


class Prediction(BaseModel):
    guess: str = ""
    acceptable: bool = True

    class Config:
        frozen = True


class DescriptionContext(BaseModel):
    """Prior guess and the user's answer, used to steer a new description."""
    previous_guess: Optional[str] = None
    previous_answer: Optional[str] = None

    class Config:
        frozen = True


class DescriptionResult(BaseModel):
    text: str = ""
    fallback_used: bool = False

    class Config:
        frozen = True
