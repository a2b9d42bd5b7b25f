"""Data layer: decoded image assets, codecs and gallery persistence."""

from .gallery import DEFAULT_GALLERY_PATH, GalleryEntry, GalleryStore, JsonGalleryStore
from .image_io import (
    DATA_URL_PREFIX,
    ImageAsset,
    decode_data_url,
    decode_image_bytes,
    encode_data_url,
    encode_png,
    load_image,
    source_id_for,
)

__all__ = [
    "DATA_URL_PREFIX",
    "DEFAULT_GALLERY_PATH",
    "GalleryEntry",
    "GalleryStore",
    "ImageAsset",
    "JsonGalleryStore",
    "decode_data_url",
    "decode_image_bytes",
    "encode_data_url",
    "encode_png",
    "load_image",
    "source_id_for",
]
