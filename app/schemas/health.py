from datetime import datetime

from app.schemas import AppBaseModel


class StatusResponse(AppBaseModel):
    """GET / response."""

    status: str
    service: str
    timestamp: datetime


class HealthResponse(AppBaseModel):
    """GET /health response."""

    status: str
    has_cookies_file: bool
    has_proxy_config: bool
    timestamp: datetime
