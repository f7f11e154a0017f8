"""
Pytest fixtures shared by the middleware and app tests.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from config import Settings
from middleware import MiddlewareChain


def build_app(settings: Settings, handlers=None) -> FastAPI:
    """Small FastAPI app with the middleware chain and a couple of routes."""
    app = FastAPI()
    app.add_middleware(MiddlewareChain, settings=settings, handlers=handlers)

    @app.get("/")
    async def index():
        return PlainTextResponse("home")

    @app.get("/some/path")
    async def some_path():
        return PlainTextResponse("some path")

    @app.get("/open")
    async def open_route():
        return PlainTextResponse("open")

    @app.get("/closed")
    async def closed_route():
        return PlainTextResponse("closed")

    return app


@pytest.fixture
def make_client():
    """Return a factory: make_client(settings, handlers=None, base_url=...) -> TestClient."""

    def _make(settings: Settings, handlers=None, base_url: str = "http://testserver") -> TestClient:
        return TestClient(build_app(settings, handlers), base_url=base_url)

    return _make
