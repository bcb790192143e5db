from typing import Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from app.schemas import AppBaseModel
from app.services.normalizer import is_http_url

ExtractorName = Literal["gallery-dl", "yt-dlp"]


class ExtractRequest(AppBaseModel):
    """POST /api/extract-social-post request body.

    platform is optional; when absent it is derived from the URL's domain.
    Unknown keys sent by existing clients are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    url: str = Field(..., min_length=1)
    platform: Optional[str] = None
    session_id: Optional[str] = None

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, value: str) -> str:
        if not is_http_url(value):
            raise ValueError("url must be an absolute http(s) URL")
        return value

    @field_validator("platform", "session_id")
    @classmethod
    def blank_as_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class ExtractionResult(AppBaseModel):
    """Media found by the first extractor that returned anything.

    Titles and descriptions are passed through exactly as the tool printed them.
    """

    model_config = ConfigDict(str_strip_whitespace=False, str_max_length=None)

    title: Optional[str] = None
    description: Optional[str] = None
    media_urls: list[str]
    extractor: ExtractorName
    attempts: int = 1


class ExtractResponse(ExtractionResult):
    """POST /api/extract-social-post 200 response."""

    request_id: str


class ErrorResponse(AppBaseModel):
    """400/422 response of the extract endpoint."""

    error: str
    details: Union[list[str], str, None] = None
    request_id: Optional[str] = None
