from __future__ import annotations

import asyncio
import io
import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image, features

from .crop_geometry import CoordinateSpace, CropRectangle
from .image_artifact import ALPHA_MIME_TYPES, PIL_FORMATS, Dimensions, ImageArtifact, ImageFormat
from .image_decoder import decode_artifact
from .svg_container import wrap_raster

logger = logging.getLogger(__name__)


@dataclass
class ProcessingConfig:
    """Resampling and encoder settings shared by all transforms."""

    resample_method: int = Image.Resampling.LANCZOS
    max_dimension: int = 16384
    # Quality used when a transform keeps the source format (canvas default).
    default_quality: float = 0.92
    webp_method: int = 4


class TransformError(Exception):
    pass


class TransformEngine:
    """
    Resize, crop and compress/convert encoded images.

    Every operation decodes its input artifact, draws onto a fresh surface and
    re-encodes; the input is never modified. Encoding is deterministic, so the
    same inputs always produce the same bytes.
    """

    def __init__(self, config: ProcessingConfig | None = None) -> None:
        self.config = config or ProcessingConfig()

    def resize(self, artifact: ImageArtifact, target_width: int, target_height: int) -> ImageArtifact:
        self._check_dimension(target_width, "width")
        self._check_dimension(target_height, "height")
        image = _normalize_mode(decode_artifact(artifact))
        if image.size == (target_width, target_height):
            resized = image.copy()
        else:
            resized = image.resize((target_width, target_height), self.config.resample_method)
        logger.debug("Resized %s -> %dx%d", image.size, target_width, target_height)
        return self._encode(resized, artifact.mime_type, self.config.default_quality)

    def crop(self, artifact: ImageArtifact, rect: CropRectangle) -> ImageArtifact:
        if rect.space is not CoordinateSpace.NATURAL:
            raise TransformError("Crop rectangle must be given in natural (source pixel) space")
        image = _normalize_mode(decode_artifact(artifact))
        bounds = Dimensions(image.width, image.height)
        clamped = rect.clamped_to(bounds)

        left = _round_half_up(clamped.x)
        top = _round_half_up(clamped.y)
        right = min(bounds.width, _round_half_up(clamped.x + clamped.width))
        bottom = min(bounds.height, _round_half_up(clamped.y + clamped.height))
        if right - left <= 0 or bottom - top <= 0:
            raise TransformError(
                f"Crop area {rect.width:g}x{rect.height:g} at ({rect.x:g}, {rect.y:g}) "
                f"is empty inside a {bounds} image"
            )

        cropped = image.crop((left, top, right, bottom))
        logger.debug("Cropped box %s from %s", (left, top, right, bottom), bounds)
        return self._encode(cropped, artifact.mime_type, self.config.default_quality)

    def compress_and_convert(
        self,
        artifact: ImageArtifact,
        quality: float,
        target_format: ImageFormat | str,
    ) -> ImageArtifact:
        if not 0 < quality <= 1:
            raise TransformError(f"Quality must be in (0, 1], got {quality}")
        try:
            target = ImageFormat.from_value(target_format)
        except ValueError as exc:
            raise TransformError(str(exc)) from exc

        image = _normalize_mode(decode_artifact(artifact))
        logger.debug(
            "Compressing %s -> %s at quality %.2f", artifact.mime_type, target.value, quality
        )
        return self._encode(image, target.value, quality)

    async def resize_async(self, artifact: ImageArtifact, target_width: int, target_height: int) -> ImageArtifact:
        return await asyncio.to_thread(self.resize, artifact, target_width, target_height)

    async def crop_async(self, artifact: ImageArtifact, rect: CropRectangle) -> ImageArtifact:
        return await asyncio.to_thread(self.crop, artifact, rect)

    async def compress_and_convert_async(
        self, artifact: ImageArtifact, quality: float, target_format: ImageFormat | str
    ) -> ImageArtifact:
        return await asyncio.to_thread(self.compress_and_convert, artifact, quality, target_format)

    def _check_dimension(self, value: int, label: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TransformError(f"Target {label} must be an integer, got {value!r}")
        if value <= 0:
            raise TransformError(f"Target {label} must be greater than 0, got {value}")
        if value > self.config.max_dimension:
            raise TransformError(
                f"Target {label} {value} exceeds the maximum of {self.config.max_dimension} pixels"
            )

    def _encode(self, image: Image.Image, mime_type: str, quality: Optional[float]) -> ImageArtifact:
        if mime_type == ImageFormat.SVG.value:
            png = _save(image, "PNG", {})
            return ImageArtifact(payload=wrap_raster(png, image.width, image.height), mime_type=mime_type)

        pil_format = PIL_FORMATS.get(mime_type)
        if pil_format is None or not _encoder_available(pil_format):
            raise TransformError(f"Encoding to {mime_type} is not supported")

        if mime_type not in ALPHA_MIME_TYPES and _has_alpha(image):
            image = _flatten_onto_white(image)

        params: dict[str, object] = {}
        if pil_format in ("JPEG", "WEBP") and quality is not None:
            params["quality"] = max(1, min(100, _round_half_up(quality * 100)))
        if pil_format == "WEBP":
            params["method"] = self.config.webp_method
        return ImageArtifact(payload=_save(image, pil_format, params), mime_type=mime_type)


def _save(image: Image.Image, pil_format: str, params: dict[str, object]) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format=pil_format, **params)
    except (OSError, ValueError, KeyError) as exc:
        raise TransformError(f"Could not encode {pil_format}: {exc}") from exc
    return buffer.getvalue()


def _encoder_available(pil_format: str) -> bool:
    Image.init()
    if pil_format not in Image.SAVE:
        return False
    if pil_format == "WEBP":
        return bool(features.check("webp"))
    return True


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info


def _normalize_mode(image: Image.Image) -> Image.Image:
    """Bring decoded pixels into RGB or RGBA so every surface resamples alike."""
    if _has_alpha(image):
        return image if image.mode == "RGBA" else image.convert("RGBA")
    return image if image.mode == "RGB" else image.convert("RGB")


def _flatten_onto_white(image: Image.Image) -> Image.Image:
    """Composite onto opaque white; fully transparent pixels end up pure white."""
    arr = np.array(image.convert("RGBA"), dtype=np.float32)
    alpha = arr[..., 3:4] / 255.0
    rgb = arr[..., :3] * alpha + 255.0 * (1.0 - alpha)
    return Image.fromarray(np.clip(np.round(rgb), 0, 255).astype(np.uint8))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
