"""Boundary schemas for third-party provider JSON.

Provider responses are loosely shaped: fields go missing, change type
between API versions, or arrive as ``null``.  Instead of reaching into raw
dictionaries with ad-hoc fallbacks, every response is validated here into a
model whose fields all carry a defined default.  Unknown fields are ignored.

Models
------
FreepikResource
    One item from ``GET /resources`` on the Freepik API.
FreepikSearchResponse
    The search response envelope (``{"data": [...]}``).
OpenAIImageDatum
    One generated image from ``POST /images/generations``.
OpenAIImagesResponse
    The generation response envelope (``{"data": [...]}``).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _list_or_empty(value: Any) -> list:
    """Treat ``null`` and non-list payloads as an empty list."""
    return value if isinstance(value, list) else []


def _str_or_empty(value: Any) -> str:
    """Coerce scalars to ``str`` and ``null`` to the empty string."""
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    return ""


# ---------------------------------------------------------------------------
# Freepik.
# ---------------------------------------------------------------------------


class FreepikLicense(_ProviderModel):
    type: str = ""
    url: str = ""

    @field_validator("type", "url", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return _str_or_empty(value)


class FreepikPreview(_ProviderModel):
    url: str = ""

    @field_validator("url", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return _str_or_empty(value)


class FreepikAssets(_ProviderModel):
    preview: FreepikPreview = Field(default_factory=FreepikPreview)

    @field_validator("preview", mode="before")
    @classmethod
    def _coerce_preview(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class FreepikResource(_ProviderModel):
    """A single stock resource as returned by the Freepik search API.

    Attributes:
        id: Resource identifier.  Freepik sends integers; normalised to str.
        title: Human-readable title.
        thumbnail_url: Legacy thumbnail field, used when no preview asset.
        author: Author display name.  The API sends either a plain string
            or an object with a ``name`` key.
        licenses: License entries attached to the resource.
        assets: Asset URLs; only ``assets.preview.url`` is used.
    """

    id: str = ""
    title: str = ""
    thumbnail_url: str = ""
    author: str = ""
    licenses: list[FreepikLicense] = Field(default_factory=list)
    assets: FreepikAssets = Field(default_factory=FreepikAssets)

    @field_validator("id", "title", "thumbnail_url", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return _str_or_empty(value)

    @field_validator("author", mode="before")
    @classmethod
    def _coerce_author(cls, value: Any) -> str:
        if isinstance(value, dict):
            return _str_or_empty(value.get("name"))
        return _str_or_empty(value)

    @field_validator("licenses", mode="before")
    @classmethod
    def _coerce_licenses(cls, value: Any) -> list:
        return [lic for lic in _list_or_empty(value) if isinstance(lic, dict)]

    @field_validator("assets", mode="before")
    @classmethod
    def _coerce_assets(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @property
    def thumbnail(self) -> str:
        """Best available preview URL."""
        return self.assets.preview.url or self.thumbnail_url

    @property
    def primary_license(self) -> str:
        """Type of the first license entry, or ``""``."""
        return self.licenses[0].type if self.licenses else ""

    @property
    def has_free_license(self) -> bool:
        """True if any license type contains "free" (case-insensitive)."""
        return any("free" in lic.type.lower() for lic in self.licenses)


class FreepikSearchResponse(_ProviderModel):
    data: list[FreepikResource] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> list:
        return [item for item in _list_or_empty(value) if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# OpenAI Images.
# ---------------------------------------------------------------------------


class OpenAIImageDatum(_ProviderModel):
    """One generated image.  ``seed`` is not always reported."""

    b64_json: str = ""
    seed: str = ""

    @field_validator("b64_json", "seed", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return _str_or_empty(value)


class OpenAIImagesResponse(_ProviderModel):
    data: list[OpenAIImageDatum] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> list:
        return [item for item in _list_or_empty(value) if isinstance(item, dict)]
