from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from conftest import make_rgba
from sketchlab.core.errors import DecodeFailure
from sketchlab.data.image_io import (
    DATA_URL_PREFIX,
    ImageAsset,
    decode_data_url,
    decode_image_bytes,
    encode_data_url,
    load_image,
    source_id_for,
)


def _encode(image: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def test_asset_is_read_only_copy() -> None:
    pixels = make_rgba(2, 3)
    asset = ImageAsset(pixels, "src")
    pixels[...] = 0
    assert asset.pixels[0, 0, 0] == 128
    assert not asset.pixels.flags.writeable
    assert (asset.width, asset.height) == (3, 2)


def test_asset_rejects_non_rgba() -> None:
    with pytest.raises(ValueError):
        ImageAsset(np.zeros((2, 2, 3), dtype=np.uint8), "src")
    with pytest.raises(ValueError):
        ImageAsset(np.zeros((2, 2, 4), dtype=np.float32), "src")


def test_from_bytes_keeps_row_major_layout() -> None:
    data = bytes(range(2 * 1 * 4))
    asset = ImageAsset.from_bytes(2, 1, data)
    assert asset.to_bytes() == data
    assert asset.pixels[0, 1].tolist() == [4, 5, 6, 7]
    with pytest.raises(ValueError):
        ImageAsset.from_bytes(2, 2, data)


def test_identity_is_the_source_not_the_buffer() -> None:
    first = ImageAsset(make_rgba(1, 1), "same")
    derived = first.derive(make_rgba(1, 1, rgb=(0, 0, 0)), "adjust")
    assert derived.same_source(first)
    assert derived.label == "adjust"
    assert not first.same_source(ImageAsset(make_rgba(1, 1), "other"))


def test_decode_converts_rgb_to_rgba() -> None:
    content = _encode(Image.new("RGB", (3, 2), (10, 20, 30)))
    asset = decode_image_bytes(content)
    assert asset.shape == (2, 3, 4)
    assert asset.pixels[0, 0].tolist() == [10, 20, 30, 255]
    assert asset.source_id == source_id_for(content)


def test_decode_failures() -> None:
    with pytest.raises(DecodeFailure):
        decode_image_bytes(b"")
    with pytest.raises(DecodeFailure) as excinfo:
        decode_image_bytes(b"garbage", source_id="abc")
    assert excinfo.value.source_id == "abc"


def test_load_image_records_filename(tmp_path: Path) -> None:
    path = tmp_path / "photo.png"
    path.write_bytes(_encode(Image.new("RGBA", (2, 2), (1, 2, 3, 4))))
    asset = load_image(path)
    assert asset.metadata["filename"] == "photo.png"
    assert asset.pixels[1, 1].tolist() == [1, 2, 3, 4]
    with pytest.raises(DecodeFailure):
        load_image(tmp_path / "missing.png")


def test_data_url_carries_lossless_png(gradient_asset: ImageAsset) -> None:
    encoded = encode_data_url(gradient_asset)
    assert encoded.startswith(DATA_URL_PREFIX)
    restored = decode_image_bytes(decode_data_url(encoded))
    np.testing.assert_array_equal(restored.pixels, gradient_asset.pixels)


def test_decode_data_url_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        decode_data_url("")
    with pytest.raises(ValueError):
        decode_data_url("data:image/png;base64,@@@")
