"""Pydantic request and response models for the Prompt2Visuals API.

FastAPI uses these models for request validation, response serialisation
and the OpenAPI schema.  JSON field names are camelCase on the wire
(``thumbnailUrl``, ``searchResults``); Python attributes stay snake_case and
either form is accepted on input.

Models
------
SearchResultItem
    One stock photo returned by ``GET /search``.
GeneratedImageItem
    One AI-generated image returned by ``GET /search`` and
    ``POST /ai-generate``.
SearchResponse
    Body of ``GET /search``.
GenerateRequest / GenerateResponse
    Payload and body of ``POST /ai-generate``.
CropRect
    Crop rectangle in source-image pixels.
TransformRequest
    Payload for ``POST /transform``.
SelectedItem
    Tagged variant (``source`` = ``"stock"`` | ``"generated"``) naming the
    result a user picked for export.
ExportRequest
    Payload for ``POST /export``.
"""

from __future__ import annotations

import uuid
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from prompt2visuals.core.provider_models import FreepikResource, OpenAIImageDatum

AspectRatio = Literal["1:1", "16:9", "9:16"]

# Largest accepted transform target edge, in pixels.
MAX_TARGET_DIMENSION = 8192

# Export sizes per aspect ratio (width, height).
EXPORT_SIZES: dict[str, tuple[int, int]] = {
    "1:1": (1024, 1024),
    "16:9": (1820, 1024),
    "9:16": (1024, 1820),
}


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Result items.
# ---------------------------------------------------------------------------


class SearchResultItem(_ApiModel):
    """A stock photo search result.

    Attributes:
        id: Provider resource id; pass it to ``GET /download``.
        title: Resource title.
        thumbnail_url: Preview image URL.
        author: Author display name.
        license: Type of the first license attached to the resource.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    thumbnail_url: str = ""
    author: str = ""
    license: str = ""

    @classmethod
    def from_resource(cls, resource: FreepikResource) -> SearchResultItem:
        return cls(
            id=resource.id,
            title=resource.title,
            thumbnail_url=resource.thumbnail,
            author=resource.author,
            license=resource.primary_license,
        )


class GeneratedImageItem(_ApiModel):
    """An AI-generated image.

    Attributes:
        id: Random identifier assigned by this service.
        image_data: Base64-encoded PNG bytes.
        seed: Seed reported by the provider, or ``""``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    image_data: str
    seed: str = ""

    @classmethod
    def from_datum(cls, datum: OpenAIImageDatum) -> GeneratedImageItem:
        return cls(id=str(uuid.uuid4()), image_data=datum.b64_json, seed=datum.seed)


class SearchResponse(_ApiModel):
    """Body of ``GET /search``."""

    search_results: list[SearchResultItem] = Field(default_factory=list)
    generated_results: list[GeneratedImageItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Generation.
# ---------------------------------------------------------------------------


class GenerateRequest(_ApiModel):
    """Request body for ``POST /ai-generate``.

    Attributes:
        prompt: Text prompt.  Required and non-blank.
        aspect: Aspect ratio id; missing, null and unknown ids fall back to
            ``"1:1"``.
        n: Number of images.  ``None`` or ``0`` uses the configured default;
            other values are clamped to ``1..10``.
    """

    prompt: str = Field(default="", description="Text prompt for generation.")
    aspect: str | None = Field(default="1:1", description="Aspect ratio: '1:1', '16:9' or '9:16'.")
    n: int | None = Field(default=None, description="Number of images (clamped to 1-10).")


class GenerateResponse(_ApiModel):
    images: list[GeneratedImageItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Transform and export.
# ---------------------------------------------------------------------------


class CropRect(_ApiModel):
    """Crop rectangle in source-image pixels.  Clamped server-side."""

    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float
    width: float
    height: float

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


class TransformRequest(_ApiModel):
    """Request body for ``POST /transform``.

    ``image``, ``width`` and ``height`` default to empty values so that a
    missing field is reported by the route as "Missing required fields"
    rather than as a schema error.

    Attributes:
        image: ``data:`` URI or ``http(s)://`` URL of the source image.
        width: Target width in pixels; must be positive and at most
            :data:`MAX_TARGET_DIMENSION`.
        height: Target height in pixels; same bounds as ``width``.
        crop: Optional crop rectangle; infinite and NaN values are rejected.
        fit: ``"cover"`` (fill and crop) or ``"contain"`` (letterbox).
        output_format: ``"jpeg"`` or ``"png"``; sent as ``format``.
    """

    image: str = ""
    crop: CropRect | None = None
    width: int = Field(default=0, le=MAX_TARGET_DIMENSION)
    height: int = Field(default=0, le=MAX_TARGET_DIMENSION)
    fit: Literal["cover", "contain"] = "cover"
    output_format: Literal["jpeg", "png"] = Field(default="jpeg", alias="format")


class StockSelection(_ApiModel):
    source: Literal["stock"] = "stock"
    item: SearchResultItem

    @property
    def image_source(self) -> str:
        return self.item.thumbnail_url


class GeneratedSelection(_ApiModel):
    source: Literal["generated"] = "generated"
    item: GeneratedImageItem

    @property
    def image_source(self) -> str:
        return f"data:image/png;base64,{self.item.image_data}"


SelectedItem = Annotated[
    Union[StockSelection, GeneratedSelection],
    Field(discriminator="source"),
]


class ExportRequest(_ApiModel):
    """Request body for ``POST /export``.

    Attributes:
        selection: The chosen result, tagged by ``source``.
        aspect: Export size preset (see :data:`EXPORT_SIZES`).
        fit: ``"cover"`` or ``"contain"``.
        output_format: ``"jpeg"`` or ``"png"``; sent as ``format``.
        crop: Optional crop rectangle in source-image pixels.
    """

    selection: SelectedItem
    aspect: AspectRatio = "1:1"
    fit: Literal["cover", "contain"] = "cover"
    output_format: Literal["jpeg", "png"] = Field(default="jpeg", alias="format")
    crop: CropRect | None = None

    @property
    def target_size(self) -> tuple[int, int]:
        return EXPORT_SIZES[self.aspect]


class ProviderStatus(_ApiModel):
    stock: bool
    generation: bool


class ConfigResponse(_ApiModel):
    """Body of ``GET /config``.  Never carries credentials."""

    version: str
    providers: ProviderStatus
    safe_search: bool
    license_filter: str
    max_results_per_source: int
    aspect_presets: dict[str, tuple[int, int]]
