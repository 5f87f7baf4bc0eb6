from __future__ import annotations

import io
from pathlib import Path

import pytest
import requests
from PIL import Image

from saucy.errors import TranscodeError
from saucy.generation.models import ImageInput
from saucy.media import preprocess

from conftest import gif_bytes, png_bytes


def test_multi_frame_gif_becomes_single_png_of_first_frame() -> None:
    data = gif_bytes()
    assert preprocess.is_animated_gif(data)

    normalised = preprocess.normalize_for_provider(ImageInput(data=data, mime_type="image/gif"))

    assert normalised.mime_type == "image/png"
    img = Image.open(io.BytesIO(normalised.data))
    assert img.format == "PNG"
    assert getattr(img, "n_frames", 1) == 1
    assert img.convert("RGB").getpixel((0, 0)) == (255, 0, 0)


def test_gif_detected_by_magic_bytes_even_when_mislabelled() -> None:
    normalised = preprocess.normalize_for_provider(ImageInput(data=gif_bytes(), mime_type="image/png"))

    assert normalised.data[:8] == b"\x89PNG\r\n\x1a\n"


def test_supported_types_pass_through_untouched() -> None:
    image = ImageInput(data=png_bytes(), mime_type="image/png")

    assert preprocess.normalize_for_provider(image) is image


def test_unsupported_type_is_reencoded_as_png() -> None:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), (1, 2, 3)).save(buffer, format="BMP")

    normalised = preprocess.normalize_for_provider(ImageInput(data=buffer.getvalue(), mime_type="image/bmp"))

    assert normalised.mime_type == "image/png"
    assert Image.open(io.BytesIO(normalised.data)).format == "PNG"


def test_garbage_raises_transcode_error() -> None:
    with pytest.raises(TranscodeError):
        preprocess.normalize_for_provider(ImageInput(data=b"not an image", mime_type="image/gif"))


def test_prepare_images_skips_failures_and_honours_limit() -> None:
    images = [
        ImageInput(data=b"junk", mime_type="image/tiff"),
        ImageInput(data=png_bytes()),
        ImageInput(data=gif_bytes(), mime_type="image/gif"),
        ImageInput(data=png_bytes()),
    ]

    prepared = preprocess.prepare_images(images, limit=3)

    assert len(prepared) == 2
    assert all(item.mime_type == "image/png" for item in prepared)


def test_static_gif_is_not_animated() -> None:
    assert not preprocess.is_animated_gif(gif_bytes(colours=((9, 9, 9),)))
    assert not preprocess.is_animated_gif(png_bytes())


def test_load_image_from_url_uses_five_second_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    class Response:
        headers = {"Content-Type": "image/gif; charset=binary"}
        content = gif_bytes()

        def raise_for_status(self) -> None:
            pass

    def fake_get(url, timeout):
        seen["timeout"] = timeout
        return Response()

    monkeypatch.setattr(preprocess.requests, "get", fake_get)

    image = preprocess.load_image_from_url("https://media.example/cat.gif")

    assert seen["timeout"] == 5.0
    assert image.mime_type == "image/png"


def test_load_image_from_url_wraps_network_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url, timeout):
        raise requests.Timeout("too slow")

    monkeypatch.setattr(preprocess.requests, "get", fake_get)

    with pytest.raises(TranscodeError):
        preprocess.load_image_from_url("https://media.example/slow.gif")


def test_load_image_file_detects_format(tmp_path: Path) -> None:
    path = tmp_path / "frame.bin"
    path.write_bytes(gif_bytes())

    assert preprocess.load_image_file(path).mime_type == "image/gif"


def test_video_first_frame_rejects_non_video() -> None:
    with pytest.raises(TranscodeError):
        preprocess.video_first_frame(b"definitely not a video")


def test_remove_background_simple_keys_out_corner_colour() -> None:
    img = Image.new("RGB", (20, 20), (255, 255, 255))
    for x in range(8, 12):
        for y in range(8, 12):
            img.putpixel((x, y), (200, 0, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    result = Image.open(io.BytesIO(preprocess.remove_background_simple(buffer.getvalue()))).convert("RGBA")

    assert result.getpixel((0, 0))[3] == 0
    assert result.getpixel((10, 10)) == (200, 0, 0, 255)
