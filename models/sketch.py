"""
Sketch image payloads as sent by the drawing canvas (data URIs)
"""
import base64
import binascii
import re

from pydantic import BaseModel

from models.errors import GenerationValidationError

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)
DEFAULT_MIME_TYPE = "image/png"


class SketchImage(BaseModel):
    """
    A base64-encoded image plus its MIME type.

    Adapters pick the encoding their backend expects: the full `data_uri`,
    the bare `base64_data`, or decoded bytes via `raw_bytes()`.
    """
    mime_type: str = DEFAULT_MIME_TYPE
    base64_data: str

    class Config:
        frozen = True

    @classmethod
    def from_data_uri(cls, value: str) -> "SketchImage":
        """
        Parse a `data:image/...;base64,...` string.

        A bare base64 string (no prefix) is accepted and treated as PNG.

        Raises:
            GenerationValidationError: if the payload is empty or not valid base64
        """
        if not value or not value.strip():
            raise GenerationValidationError("Image payload is empty")

        value = value.strip()
        match = DATA_URI_PATTERN.match(value)
        if match:
            mime_type, data = match.group("mime"), match.group("data")
        elif value.startswith("data:"):
            raise GenerationValidationError("Image must be a base64 data URI")
        else:
            mime_type, data = DEFAULT_MIME_TYPE, value

        data = "".join(data.split())
        try:
            base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            raise GenerationValidationError("Image payload is not valid base64")

        return cls(mime_type=mime_type, base64_data=data)

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_data}"

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.base64_data)
