"""Fixtures for HTTP dashboard API tests (FastAPI)."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

import grove.dashboard as dash_module
from grove.dashboard import create_app

ClientFactory = Callable[[Path | None], AbstractAsyncContextManager[AsyncClient]]


@asynccontextmanager
async def _client_for(export_path: Path | None) -> AsyncIterator[AsyncClient]:
    dash_module._export_path = export_path
    app = create_app()
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        dash_module._export_path = None


@pytest.fixture
async def client(export_file: Path) -> AsyncIterator[AsyncClient]:
    """Test client serving the sample export."""
    async with _client_for(export_file) as c:
        yield c


@pytest.fixture
def client_for() -> ClientFactory:
    """Factory for clients serving an arbitrary export path."""
    return _client_for
