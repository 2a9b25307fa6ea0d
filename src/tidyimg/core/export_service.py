from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .image_artifact import ImageArtifact, ImageFormat
from .image_processing import TransformEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportConfig:
    target_format: ImageFormat = ImageFormat.PNG
    quality: float = 0.85


@dataclass(frozen=True)
class ExportResult:
    artifact: ImageArtifact
    filename: str


class ExportServiceError(Exception):
    pass


def base_name(filename: str) -> str:
    """File name without its last extension (``photo.final.jpg`` -> ``photo.final``)."""
    name = Path(filename).name
    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name


def export_filename(original_name: str, target_format: ImageFormat, suffix: str = "tidy") -> str:
    return f"{base_name(original_name)}_{suffix}.{target_format.extension}"


class ExportService:
    def __init__(self, engine: TransformEngine | None = None, suffix: str = "tidy") -> None:
        self.engine = engine or TransformEngine()
        self.suffix = suffix

    def export(self, artifact: ImageArtifact, original_name: str, config: ExportConfig) -> ExportResult:
        result = self.engine.compress_and_convert(artifact, config.quality, config.target_format)
        filename = export_filename(original_name, config.target_format, self.suffix)
        logger.info("Exported %s (%d bytes)", filename, result.byte_size)
        return ExportResult(artifact=result, filename=filename)

    def write(self, result: ExportResult, directory: Path) -> Path:
        if not directory.is_dir():
            raise ExportServiceError(f"Export directory does not exist: {directory}")
        target_path = directory / result.filename
        target_path.write_bytes(result.artifact.data)
        return target_path
