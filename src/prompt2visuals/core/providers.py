"""Async HTTP clients for the external image providers.

Two providers are wrapped:

- :class:`FreepikClient` -- stock photo search and download-link resolution.
- :class:`OpenAIImageClient` -- text-to-image generation.

Both clients borrow a shared :class:`httpx.AsyncClient` owned by the
application lifespan; they never create or close connections themselves.
No retries and no timeouts beyond the transport defaults are applied.  Any
transport failure, non-2xx status or undecodable body is raised as a
:class:`ProviderError`, and callers decide whether that fails the request or
degrades it.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from prompt2visuals.core.provider_models import (
    FreepikResource,
    FreepikSearchResponse,
    OpenAIImageDatum,
    OpenAIImagesResponse,
)

logger = logging.getLogger(__name__)

# Supported OpenAI output sizes, keyed by client-facing aspect ratio.
GENERATION_SIZES: dict[str, str] = {
    "1:1": "1024x1024",
    "16:9": "1536x1024",
    "9:16": "1024x1536",
}
DEFAULT_GENERATION_SIZE = GENERATION_SIZES["1:1"]

# Upper bound on images per generation call.
MAX_GENERATION_COUNT = 10


class ProviderError(Exception):
    """Raised when an upstream provider call fails.

    Attributes:
        provider: Short provider name (``"freepik"`` or ``"openai"``).
        status: Upstream HTTP status, or ``None`` for transport failures.
        detail: Excerpt of the upstream error body or exception text.
    """

    def __init__(self, provider: str, message: str, *, status: int | None = None, detail: str = ""):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status
        self.detail = detail


def _excerpt(text: str, limit: int = 500) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class FreepikClient:
    """Minimal async client for the Freepik resources API."""

    name = "freepik"

    def __init__(self, http: httpx.AsyncClient, *, api_key: str, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._headers = {"x-freepik-api-key": api_key}

    async def search(self, query: str, *, limit: int, safe_search: bool) -> list[FreepikResource]:
        """Search photos by relevance.

        Args:
            query: Free-text search query.
            limit: Number of candidates to request.
            safe_search: Forwarded as the provider's ``safe_search`` flag.

        Returns:
            Validated resources in provider order.

        Raises:
            ProviderError: On transport failure, non-2xx status or an
                undecodable body.
        """
        params = {
            "q": query,
            "content_type": "photo",
            "order": "relevance",
            "safe_search": "true" if safe_search else "false",
            "limit": limit,
        }
        payload = await self._get_json("/resources", params=params)
        try:
            return FreepikSearchResponse.model_validate(payload if isinstance(payload, dict) else {}).data
        except ValidationError as exc:
            raise ProviderError(self.name, "unexpected response body", detail=str(exc)) from exc

    async def resolve_download(self, resource_id: str) -> Any:
        """Resolve a resource id to its signed download payload.

        The parsed JSON body is returned untouched, whatever the upstream
        status; only transport and decoding failures raise.

        Raises:
            ProviderError: On transport failure or a body that is not JSON.
        """
        url = f"{self._base_url}/resources/{quote(resource_id, safe='')}/download"
        try:
            response = await self._http.get(url, headers=self._headers)
            return response.json()
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, "download request failed", detail=str(exc)) from exc
        except ValueError as exc:
            raise ProviderError(self.name, "download response was not JSON", detail=str(exc)) from exc

    async def _get_json(self, path: str, *, params: dict) -> Any:
        try:
            response = await self._http.get(
                f"{self._base_url}{path}", params=params, headers=self._headers
            )
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, "request failed", detail=str(exc)) from exc

        if response.is_error:
            raise ProviderError(
                self.name,
                f"HTTP {response.status_code}",
                status=response.status_code,
                detail=_excerpt(response.text),
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(self.name, "response was not JSON", detail=str(exc)) from exc


class OpenAIImageClient:
    """Minimal async client for the OpenAI image generation endpoint."""

    name = "openai"

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_key: str,
        base_url: str,
        model: str = "gpt-image-1",
    ) -> None:
        self._http = http
        self._url = f"{base_url.rstrip('/')}/images/generations"
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._model = model

    def build_payload(self, prompt: str, *, n: int, size: str) -> dict:
        """Build the generation request body.

        ``gpt-image-*`` models always answer with base64 and reject the
        ``response_format`` parameter; older models need it spelled out.
        """
        payload: dict[str, Any] = {
            "model": self._model,
            "prompt": prompt,
            "n": n,
            "size": size,
        }
        if not self._model.startswith("gpt-image"):
            payload["response_format"] = "b64_json"
        return payload

    async def generate(self, prompt: str, *, n: int, size: str = DEFAULT_GENERATION_SIZE) -> list[OpenAIImageDatum]:
        """Generate ``n`` images for ``prompt``.

        Returns:
            At most ``n`` validated image entries.

        Raises:
            ProviderError: On transport failure, non-2xx status or a body that
                does not match the expected envelope.
        """
        try:
            response = await self._http.post(
                self._url,
                json=self.build_payload(prompt, n=n, size=size),
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, "request failed", detail=str(exc)) from exc

        if response.is_error:
            raise ProviderError(
                self.name,
                f"HTTP {response.status_code}",
                status=response.status_code,
                detail=_excerpt(response.text),
            )
        try:
            body = response.json()
            images = OpenAIImagesResponse.model_validate(body if isinstance(body, dict) else {}).data
        except (ValueError, ValidationError) as exc:
            raise ProviderError(self.name, "unexpected response body", detail=str(exc)) from exc
        return images[:n]


def clamp_generation_count(n: int | None, default: int) -> int:
    """Clamp a requested image count into ``[1, MAX_GENERATION_COUNT]``.

    ``None`` and ``0`` mean "not specified" and take ``default``.
    """
    if not n:
        n = default
    return max(1, min(n, MAX_GENERATION_COUNT))


def generation_size_for(aspect: str | None) -> str:
    """Map an aspect ratio id to a supported size; unknown ids are square."""
    return GENERATION_SIZES.get(aspect or "1:1", DEFAULT_GENERATION_SIZE)
