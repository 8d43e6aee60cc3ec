"""Shared pytest fixtures for Prompt2Visuals tests."""

from __future__ import annotations

import asyncio
import base64
import io
import json
from typing import Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from prompt2visuals.core.config import Prompt2VisualsConfig

FREEPIK_HOST = "api.freepik.com"
OPENAI_HOST = "api.openai.com"
IMAGE_HOST = "images.example.com"


def make_image_bytes(
    width: int = 64,
    height: int = 48,
    *,
    color=(255, 255, 255),
    mode: str = "RGB",
    fmt: str = "PNG",
) -> bytes:
    """Encode a solid-colour image in memory."""
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


FREEPIK_SEARCH_PAYLOAD = {
    "data": [
        {
            "id": 101,
            "title": "Red fox in snow",
            "assets": {"preview": {"url": f"https://{IMAGE_HOST}/101.jpg"}},
            "author": {"id": 7, "name": "Ana"},
            "licenses": [{"type": "freemium", "url": "https://example.com/l"}],
        },
        {
            "id": 102,
            "title": "Premium fox",
            "thumbnail_url": f"https://{IMAGE_HOST}/102.jpg",
            "author": "Ben",
            "licenses": [{"type": "premium"}],
        },
        {
            "id": 103,
            "title": "Fox cub",
            "assets": {"preview": {"url": f"https://{IMAGE_HOST}/103.jpg"}},
            "author": "Cai",
            "licenses": [{"type": "premium"}, {"type": "FREE"}],
        },
        {
            "id": 104,
            "title": "Unlicensed fox",
            "licenses": [],
        },
    ]
}


class FakeProviders:
    """Callable ``httpx.MockTransport`` handler standing in for all upstreams.

    Every outbound request is recorded in :attr:`requests`.  Each upstream
    answers from a configurable attribute; set an attribute to an exception
    instance to simulate a transport failure.

    Attributes:
        freepik_search: ``(status, json_payload)`` for ``GET /resources``.
        freepik_download: ``(status, json_payload)`` for the download call.
        openai_status: Status code for ``POST /images/generations``.  On 200
            the fake returns ``n`` images taken from the request body.
        openai_image: Base64 payload used for every generated image.
        remote_images: Map of URL path to ``(status, bytes)`` for image
            fetches from :data:`IMAGE_HOST`.
        failures: Map of host to exception raised for any request to it.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.freepik_search: tuple[int, object] = (200, FREEPIK_SEARCH_PAYLOAD)
        self.freepik_download: tuple[int, object] = (
            200,
            {"data": {"filename": "fox.jpg", "url": f"https://{IMAGE_HOST}/signed/fox.jpg"}},
        )
        self.openai_status = 200
        self.openai_image = base64.b64encode(make_image_bytes(32, 32)).decode()
        self.remote_images: dict[str, tuple[int, bytes]] = {}
        self.failures: dict[str, Exception] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.failures:
            raise self.failures[host]

        if host == FREEPIK_HOST:
            if request.url.path.endswith("/download"):
                status, payload = self.freepik_download
            else:
                status, payload = self.freepik_search
            return httpx.Response(status, json=payload)

        if host == OPENAI_HOST:
            if self.openai_status != 200:
                return httpx.Response(self.openai_status, json={"error": {"message": "rejected"}})
            body = json.loads(request.content)
            images = [{"b64_json": self.openai_image, "seed": 1000 + i} for i in range(body["n"])]
            return httpx.Response(200, json={"created": 0, "data": images})

        if host == IMAGE_HOST and request.url.path in self.remote_images:
            status, content = self.remote_images[request.url.path]
            return httpx.Response(status, content=content)

        return httpx.Response(404, text="not found")

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


@pytest.fixture
def fake_providers() -> FakeProviders:
    """Fresh fake upstreams for one test."""
    return FakeProviders()


@pytest.fixture
def http_client(fake_providers: FakeProviders) -> Generator[httpx.AsyncClient, None, None]:
    """An AsyncClient whose traffic is answered by ``fake_providers``.

    Cleanup:
        The client is closed after the test.
    """
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_providers))
    yield client
    asyncio.run(client.aclose())


@pytest.fixture
def test_config() -> Prompt2VisualsConfig:
    """Configuration with both credentials and default search settings.

    ``_env_file=None`` keeps a developer's local ``.env`` out of the tests.
    """
    return Prompt2VisualsConfig(
        _env_file=None,
        freepik_api_key="fpk-test",
        openai_api_key="sk-test",
        max_results_per_source=2,
        safe_search=True,
        license_filter="free",
    )


@pytest.fixture
def override_config() -> Generator[Callable[[Prompt2VisualsConfig], None], None, None]:
    """Swap the configuration seen by route handlers mid-test."""
    from prompt2visuals.api.main import app, get_config

    def _override(cfg: Prompt2VisualsConfig) -> None:
        app.dependency_overrides[get_config] = lambda: cfg

    yield _override


@pytest.fixture
def test_client(
    test_config: Prompt2VisualsConfig,
    http_client: httpx.AsyncClient,
) -> Generator[TestClient, None, None]:
    """TestClient with the test configuration and fake upstreams injected.

    Cleanup:
        Dependency overrides are removed after the test.
    """
    from prompt2visuals.api.main import app, get_config, get_http_client

    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_http_client] = lambda: http_client
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def png_bytes() -> bytes:
    """A 64x48 white PNG."""
    return make_image_bytes(64, 48)


@pytest.fixture
def white_pixel_data_uri() -> str:
    """A 1x1 white PNG as a data URI."""
    return make_data_uri(make_image_bytes(1, 1))
