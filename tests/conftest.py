"""Pytest configuration, shared fixtures and compatibility helpers.

This project includes async tests marked with ``@pytest.mark.asyncio``.
Some environments run unit tests without ``pytest-asyncio`` installed, which
would otherwise make those tests fail at collection/runtime.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import Settings
from src.api.main import create_app
from src.data.db import create_engine_for, init_schema

TEST_JWT_SECRET = "test-secret-key"


def pytest_configure(config: pytest.Config) -> None:
    """Register local markers used in the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as asyncio-compatible")


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``@pytest.mark.asyncio`` tests without external plugins.

    If pytest-asyncio (or another async plugin) is installed, this hook may be
    bypassed by that plugin depending on hook ordering. In plugin-less
    environments, this fallback executes coroutine tests via ``asyncio.run``.
    """
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    kwargs: dict[str, Any] = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_func(**kwargs))
    finally:
        loop.close()
        # Keep a default loop available for sync tests that call
        # ``asyncio.get_event_loop()`` directly.
        asyncio.set_event_loop(asyncio.new_event_loop())
    return True


# ── Database ─────────────────────────────────────────────────────


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    """A fresh SQLite file per test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'quill.db'}"


@pytest.fixture()
def database(db_url: str) -> Callable[[], AbstractAsyncContextManager[AsyncEngine]]:
    """Open an engine with the schema created, inside the running test's loop.

    Usage::

        async with database() as engine:
            ...
    """

    @asynccontextmanager
    async def _open() -> AsyncIterator[AsyncEngine]:
        engine = create_engine_for(db_url)
        await init_schema(engine)
        try:
            yield engine
        finally:
            await engine.dispose()

    return _open


# ── API ──────────────────────────────────────────────────────────


@pytest.fixture()
def test_settings(db_url: str) -> Settings:
    return Settings(
        quill_env="test",
        log_level="WARNING",
        database_url=SecretStr(db_url),
        quill_jwt_secret=SecretStr(TEST_JWT_SECRET),
        quill_bcrypt_rounds=4,
        quill_seed_demo_data=True,
    )


@pytest.fixture()
def client(test_settings: Settings) -> Iterator[TestClient]:
    """App client with demo tenants (acme, globex) seeded; lifespan runs."""
    with TestClient(create_app(test_settings)) as c:
        yield c


@pytest.fixture()
def login(client: TestClient) -> Callable[..., dict[str, str]]:
    """Log in and return the Authorization header for that session."""

    def _login(email: str, password: str = "password") -> dict[str, str]:
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login
