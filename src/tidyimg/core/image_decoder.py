from __future__ import annotations

import asyncio
import binascii
import io
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from .image_artifact import MIME_TYPES, Dimensions, ImageArtifact
from .svg_container import SvgContainerError, extract_raster, looks_like_svg

logger = logging.getLogger(__name__)

SVG_MIME = "image/svg+xml"

Source = Union[bytes, bytearray, str, Path, ImageArtifact]


class DecodeError(Exception):
    pass


def load_artifact(source: Source, mime_type: Optional[str] = None) -> ImageArtifact:
    """
    Turn an image source into a verified ImageArtifact.

    ``source`` may be raw bytes, a ``data:`` URL, a filesystem path or an
    existing artifact. The MIME type always comes from the content; a
    declared ``mime_type`` (or data URL type) that disagrees is replaced.
    Raises DecodeError when the content cannot be decoded.
    """
    if isinstance(source, ImageArtifact):
        artifact = source
    elif isinstance(source, (bytes, bytearray)):
        artifact = ImageArtifact(payload=bytes(source), mime_type=mime_type or "")
    elif isinstance(source, str) and source.startswith("data:"):
        try:
            artifact = ImageArtifact.from_data_url(source)
        except ValueError as exc:
            raise DecodeError(str(exc)) from exc
    else:
        path = Path(source).expanduser()
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise DecodeError(f"Could not read {path}: {exc}") from exc
        artifact = ImageArtifact(payload=data, mime_type=mime_type or "")

    try:
        data = artifact.data
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload: {exc}") from exc
    sniffed = _sniff_mime_type(data)
    if artifact.mime_type != sniffed:
        if artifact.mime_type:
            logger.debug("Declared type %s replaced by %s", artifact.mime_type, sniffed)
        artifact = replace(artifact, mime_type=sniffed)

    dimensions = read_dimensions(artifact)
    logger.debug("Loaded %s artifact (%s)", artifact.mime_type, dimensions)
    return artifact


def decode_artifact(artifact: ImageArtifact) -> Image.Image:
    """Fully decode an artifact into a Pillow image (first frame for animations)."""
    image = _open(artifact)
    try:
        image.load()
    except (OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"Corrupt {artifact.mime_type} data: {exc}") from exc
    return image


def read_dimensions(artifact: ImageArtifact) -> Dimensions:
    """Natural size read from the image header, without decoding pixels."""
    with _open(artifact) as image:
        width, height = image.size
    try:
        return Dimensions(width, height)
    except ValueError as exc:
        raise DecodeError(str(exc)) from exc


async def load_artifact_async(source: Source, mime_type: Optional[str] = None) -> ImageArtifact:
    return await asyncio.to_thread(load_artifact, source, mime_type)


async def decode_artifact_async(artifact: ImageArtifact) -> Image.Image:
    return await asyncio.to_thread(decode_artifact, artifact)


def _open(artifact: ImageArtifact) -> Image.Image:
    try:
        data = artifact.data
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload: {exc}") from exc

    if artifact.mime_type == SVG_MIME or looks_like_svg(data):
        try:
            data = extract_raster(data)
        except SvgContainerError as exc:
            raise DecodeError(str(exc)) from exc

    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeError(f"Unsupported or corrupt image ({artifact.mime_type}): {exc}") from exc
    if image.format not in MIME_TYPES:
        image.close()
        raise DecodeError(f"Unsupported image format: {image.format}")
    return image


def _sniff_mime_type(data: bytes) -> str:
    if looks_like_svg(data):
        return SVG_MIME
    try:
        with Image.open(io.BytesIO(data)) as image:
            pil_format = image.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeError(f"Unrecognised image data: {exc}") from exc
    mime_type = MIME_TYPES.get(pil_format or "")
    if mime_type is None:
        raise DecodeError(f"Unsupported image format: {pil_format}")
    return mime_type


__all__ = [
    "DecodeError",
    "decode_artifact",
    "decode_artifact_async",
    "load_artifact",
    "load_artifact_async",
    "read_dimensions",
]
