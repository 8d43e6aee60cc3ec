"""Tests for prompt2visuals.core.transform - crop, resize and re-encode."""

from __future__ import annotations

import asyncio
import io

import httpx
import pytest
from PIL import Image

from conftest import IMAGE_HOST, make_data_uri, make_image_bytes
from prompt2visuals.core.transform import (
    CropBox,
    TransformError,
    UnsupportedSourceError,
    clamp_crop,
    decode_data_uri,
    is_data_uri,
    is_remote_url,
    load_source,
    transform_image,
)


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class TestSourceDetection:
    """Test data URI / URL recognition."""

    def test_data_uri(self):
        assert is_data_uri("data:image/png;base64,AAAA")
        assert not is_remote_url("data:image/png;base64,AAAA")

    @pytest.mark.parametrize("url", ["http://a.example/x.png", "https://a.example/x.png"])
    def test_remote_url(self, url):
        assert is_remote_url(url)
        assert not is_data_uri(url)

    @pytest.mark.parametrize("source", ["ftp://a.example/x.png", "/tmp/x.png", "httpx", "AAAA"])
    def test_other_forms(self, source):
        assert not is_remote_url(source)
        assert not is_data_uri(source)


class TestDecodeDataUri:
    """Test decode_data_uri."""

    def test_decodes_payload(self, png_bytes):
        assert decode_data_uri(make_data_uri(png_bytes)) == png_bytes

    def test_missing_comma_raises(self):
        with pytest.raises(TransformError):
            decode_data_uri("data:image/png;base64")

    def test_bad_padding_raises(self):
        with pytest.raises(TransformError):
            decode_data_uri("data:image/png;base64,abc")


class TestLoadSource:
    """Test load_source against a mocked transport."""

    def test_data_uri_needs_no_network(self, png_bytes, http_client, fake_providers):
        data = asyncio.run(load_source(make_data_uri(png_bytes), http_client))
        assert data == png_bytes
        assert fake_providers.requests == []

    def test_remote_url_fetched(self, png_bytes, http_client, fake_providers):
        fake_providers.remote_images["/fox.png"] = (200, png_bytes)
        data = asyncio.run(load_source(f"https://{IMAGE_HOST}/fox.png", http_client))
        assert data == png_bytes

    def test_remote_error_status_raises(self, http_client, fake_providers):
        fake_providers.remote_images["/gone.png"] = (404, b"")
        with pytest.raises(TransformError):
            asyncio.run(load_source(f"https://{IMAGE_HOST}/gone.png", http_client))

    def test_remote_transport_failure_raises(self, http_client, fake_providers):
        fake_providers.failures[IMAGE_HOST] = httpx.ConnectError("refused")
        with pytest.raises(TransformError):
            asyncio.run(load_source(f"https://{IMAGE_HOST}/fox.png", http_client))

    def test_unsupported_source(self, http_client):
        with pytest.raises(UnsupportedSourceError):
            asyncio.run(load_source("file:///etc/passwd", http_client))


class TestClampCrop:
    """Test clamp_crop bounds."""

    def test_inside_rectangle_unchanged(self):
        assert clamp_crop(10, 20, 30, 40, 100, 100) == CropBox(10, 20, 30, 40)

    def test_extent_clamped_to_image(self):
        box = clamp_crop(80, 90, 50, 50, 100, 100)
        assert box == CropBox(80, 90, 20, 10)

    def test_negative_origin_clamped_to_zero(self):
        box = clamp_crop(-15, -5, 40, 40, 100, 100)
        assert (box.left, box.top) == (0, 0)

    def test_origin_past_edge_clamped_to_last_pixel(self):
        box = clamp_crop(500, 500, 10, 10, 100, 80)
        assert box == CropBox(99, 79, 1, 1)

    def test_fractional_values_rounded(self):
        box = clamp_crop(10.4, 10.6, 20.5, 19.5, 100, 100)
        assert box == CropBox(10, 11, 20, 20)

    @pytest.mark.parametrize(
        "rect",
        [
            (0, 0, 1000, 1000),
            (63.6, 47.6, 5, 5),
            (12.5, 7.5, 51.5, 40.5),
            (1, 1, 63, 47),
        ],
    )
    def test_right_and_bottom_never_exceed_image(self, rect):
        box = clamp_crop(*rect, 64, 48)
        assert box.right <= 64
        assert box.bottom <= 48
        assert box.left >= 0 and box.top >= 0

    @pytest.mark.parametrize("rect", [(0, 0, 0, 10), (0, 0, 10, -5)])
    def test_empty_rectangle_raises(self, rect):
        with pytest.raises(TransformError):
            clamp_crop(*rect, 100, 100)


class TestTransformImage:
    """Test transform_image end to end on in-memory images."""

    def test_white_pixel_cover_to_jpeg(self):
        out = transform_image(make_image_bytes(1, 1), width=100, height=100, fit="cover")
        img = _open(out)
        assert img.format == "JPEG"
        assert img.size == (100, 100)

    def test_png_output(self, png_bytes):
        img = _open(transform_image(png_bytes, width=20, height=10, output_format="png"))
        assert img.format == "PNG"
        assert img.size == (20, 10)

    def test_cover_fills_target_without_padding(self):
        source = make_image_bytes(200, 100, color=(255, 0, 0))
        img = _open(transform_image(source, width=50, height=50, fit="cover", output_format="png"))
        assert img.size == (50, 50)
        assert img.getpixel((0, 0))[:3] == (255, 0, 0)

    def test_contain_letterboxes_in_black(self):
        source = make_image_bytes(200, 100, color=(255, 255, 255))
        img = _open(transform_image(source, width=50, height=50, fit="contain", output_format="png"))
        assert img.size == (50, 50)
        assert img.getpixel((25, 0))[:3] == (0, 0, 0)
        assert img.getpixel((25, 25))[:3] == (255, 255, 255)

    def test_crop_applied_before_resize(self):
        source = Image.new("RGB", (100, 100), (0, 0, 255))
        source.paste((0, 255, 0), (50, 0, 100, 100))
        buffer = io.BytesIO()
        source.save(buffer, format="PNG")
        out = transform_image(
            buffer.getvalue(),
            width=10,
            height=10,
            crop=(60, 10, 30, 30),
            output_format="png",
        )
        assert _open(out).getpixel((5, 5)) == (0, 255, 0)

    def test_crop_outside_image_is_clamped(self, png_bytes):
        out = transform_image(png_bytes, width=16, height=16, crop=(60, 40, 500, 500))
        assert _open(out).size == (16, 16)

    def test_rgba_to_jpeg_is_flattened(self):
        source = make_image_bytes(10, 10, color=(255, 0, 0, 0), mode="RGBA")
        img = _open(transform_image(source, width=10, height=10, output_format="jpeg"))
        assert img.mode == "RGB"

    def test_rgba_png_keeps_alpha(self):
        source = make_image_bytes(10, 10, color=(255, 0, 0, 128), mode="RGBA")
        img = _open(transform_image(source, width=10, height=10, output_format="png"))
        assert img.mode == "RGBA"

    def test_palette_image_supported(self):
        source = make_image_bytes(10, 10, color=3, mode="P")
        img = _open(transform_image(source, width=8, height=8, output_format="png"))
        assert img.size == (8, 8)

    def test_same_input_same_dimensions_and_format(self, png_bytes):
        kwargs = dict(width=30, height=20, crop=(5, 5, 40, 30), fit="contain", output_format="jpeg")
        first = _open(transform_image(png_bytes, **kwargs))
        second = _open(transform_image(png_bytes, **kwargs))
        assert (first.size, first.format) == (second.size, second.format)

    def test_undecodable_bytes_raise(self):
        with pytest.raises(TransformError):
            transform_image(b"not an image", width=10, height=10)

    @pytest.mark.parametrize("size", [(0, 10), (10, 0), (-1, 10)])
    def test_non_positive_target_raises(self, png_bytes, size):
        with pytest.raises(TransformError):
            transform_image(png_bytes, width=size[0], height=size[1])

    @pytest.mark.parametrize(
        "crop",
        [(float("inf"), 0, 10, 10), (0, 0, float("-inf"), 10), (float("nan"), 0, 10, 10)],
    )
    def test_non_finite_crop_raises(self, png_bytes, crop):
        with pytest.raises(TransformError):
            transform_image(png_bytes, width=10, height=10, crop=crop)
