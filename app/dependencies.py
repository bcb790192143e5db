from pathlib import Path

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.services.execution_context import CookieFileCell, ExecutionContextResolver
from app.services.extraction_service import build_extractors
from app.services.extractors import Extractor

bearer_scheme = HTTPBearer(auto_error=False)

# Shared by every request for the life of the process.
cookie_cell = CookieFileCell(settings.cookies_temp_path)


async def verify_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str:
    tokens = settings.get_api_tokens()
    if not tokens:
        # No tokens configured (development mode) — skip auth
        return ""
    if credentials is None or credentials.credentials not in tokens:
        raise HTTPException(
            status_code=401, detail="Missing or invalid extractor API token"
        )
    return credentials.credentials


def get_context_resolver() -> ExecutionContextResolver:
    return ExecutionContextResolver(settings, cookie_cell, working_dir=Path.cwd())


def get_extractors() -> list[Extractor]:
    return build_extractors(settings)
