from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings, settings
from app.dependencies import get_context_resolver
from app.main import app
from app.services.execution_context import CookieFileCell, ExecutionContextResolver
from app.services.subprocess_runner import CommandOutput

TEST_API_TOKEN = "test-token-for-testing"


def _make_settings(**overrides) -> Settings:
    """Settings isolated from .env, with field overrides."""
    return Settings(_env_file=None).model_copy(
        update={
            "proxy_url": "",
            "proxy_host": "",
            "proxy_port": "",
            "proxy_username": "",
            "proxy_password": "",
            "proxy_use_session": False,
            "instagram_cookies_content": "",
            "instagram_sessionid": "",
            **overrides,
        }
    )


def _make_runner(outputs: dict):
    """AsyncMock runner keyed by binary name.

    Values are stdout strings, or exceptions to raise.
    """

    async def run(binary, args, **kwargs):
        result = outputs[binary]
        if isinstance(result, BaseException):
            raise result
        return CommandOutput(stdout=result, stderr="")

    return AsyncMock(side_effect=run)


@pytest.fixture
def make_settings():
    return _make_settings


@pytest.fixture
def make_runner():
    return _make_runner


@pytest.fixture
def cookie_cell(tmp_path):
    return CookieFileCell(tmp_path / "tmp_cookies.txt")


@pytest.fixture
def resolver(tmp_path, cookie_cell):
    workdir = tmp_path / "work"
    workdir.mkdir()
    return ExecutionContextResolver(_make_settings(), cookie_cell, working_dir=workdir)


@pytest.fixture
async def client(resolver):
    app.dependency_overrides[get_context_resolver] = lambda: resolver
    original_tokens = settings.api_tokens
    settings.api_tokens = TEST_API_TOKEN
    # Disable rate limiting in tests
    app.state.limiter.enabled = False
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {TEST_API_TOKEN}"},
    ) as ac:
        yield ac
    app.state.limiter.enabled = True
    settings.api_tokens = original_tokens
    app.dependency_overrides.clear()
