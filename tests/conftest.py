from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest

from soapscribe.core.db import create_engine, create_schema


@pytest.fixture()
def database_url(tmp_path) -> str:
    db_file = tmp_path / "test.sqlite3"
    return f"sqlite+aiosqlite:///{db_file}"


@pytest.fixture(autouse=True)
def _set_test_env(database_url: str, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("DATABASE_URL", database_url)
    # Tests opt in to a generation service via dependency overrides, never via env.
    monkeypatch.delenv("GENERATION_BASE_URL", raising=False)
    # Settings are cached via @lru_cache; clear so each test can use its own DB URL.
    from soapscribe.core.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _create_test_schema(database_url: str) -> None:
    async def run() -> None:
        engine = create_engine(database_url=database_url)
        await create_schema(engine=engine)
        await engine.dispose()

    asyncio.run(run())


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from soapscribe.main import create_app

    app = create_app()
    with TestClient(app) as c:
        yield c
