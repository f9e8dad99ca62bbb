"""Shared fixtures: an app per test, driven through httpx over ASGI."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from c4_drawio_service.conversion import ConversionOptions
from c4_drawio_service.settings import Settings
from c4_drawio_service.webapi import create_app

C4_SAMPLE = '@startuml\nPerson(u,"U")\nSystem(s,"S")\nRel(u,s,"Uses")\n@enduml'


class RecordingConverter:
    """Converter double that remembers its calls and returns a fixed document."""

    def __init__(self, result: str = "<mxfile/>", error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, ConversionOptions]] = []

    def convert(self, source: str, options: ConversionOptions) -> str:
        self.calls.append((source, options))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def recorder() -> RecordingConverter:
    return RecordingConverter()


@pytest.fixture
async def recording_client(settings: Settings, recorder: RecordingConverter) -> AsyncIterator[AsyncClient]:
    app = create_app(settings, converter=recorder)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
