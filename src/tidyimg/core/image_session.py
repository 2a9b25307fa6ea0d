from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional

from .analysis_service import AnalysisResult, Analyzer
from .crop_geometry import CoordinateSpace, CropRectangle, SizeLike, to_natural_space
from .export_service import ExportConfig, ExportResult, ExportService
from .image_artifact import Dimensions, ImageArtifact, ImageFormat
from .image_decoder import Source, load_artifact, read_dimensions
from .image_processing import ProcessingConfig, TransformEngine
from .settings import AppSettings, load_settings
from .size_estimator import estimate_size, format_bytes

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    pass


class ToolType(str, Enum):
    NONE = "NONE"
    RESIZE = "RESIZE"
    CROP = "CROP"
    COMPRESS = "COMPRESS"
    CONVERT = "CONVERT"
    AI = "AI"


@dataclass(frozen=True)
class EditSession:
    """
    Snapshot of one editing session.

    Values are never mutated; every operation of ImageEditor returns a new
    session. ``history[0]`` is always ``original`` and ``history[-1]`` is
    always ``current``.
    """

    original: ImageArtifact
    current: ImageArtifact
    history: tuple[ImageArtifact, ...]
    dimensions: Dimensions
    name: str
    export_config: ExportConfig
    size_estimate: int
    original_size: int
    active_tool: ToolType = ToolType.NONE
    pending_crop: Optional[CropRectangle] = None
    analysis: Optional[AnalysisResult] = None

    @property
    def has_edits(self) -> bool:
        return len(self.history) > 1


class ImageEditor:
    """Operations on EditSession values, configured once from AppSettings."""

    def __init__(self, settings: AppSettings | None = None, engine: TransformEngine | None = None) -> None:
        self.settings = settings or load_settings()
        self.engine = engine or TransformEngine(
            ProcessingConfig(
                resample_method=self.settings.processing.resample_method,
                max_dimension=self.settings.processing.max_dimension,
            )
        )
        self.exporter = ExportService(self.engine, suffix=self.settings.export.suffix)

    # -- lifecycle -------------------------------------------------------

    def start_session(self, source: Source, name: Optional[str] = None, mime_type: Optional[str] = None) -> EditSession:
        artifact = load_artifact(source, mime_type)
        if name is None:
            is_path = isinstance(source, Path) or (isinstance(source, str) and not source.startswith("data:"))
            name = Path(source).name if is_path else "image"
        try:
            target_format = ImageFormat.from_value(artifact.mime_type)
        except ValueError:
            target_format = ImageFormat.PNG
        dimensions = read_dimensions(artifact)
        original_size = len(artifact.data)
        logger.info("Session started: %s (%s, %s)", name, artifact.mime_type, dimensions)
        return EditSession(
            original=artifact,
            current=artifact,
            history=(artifact,),
            dimensions=dimensions,
            name=name,
            export_config=ExportConfig(target_format=target_format, quality=self.settings.export.quality),
            size_estimate=original_size,
            original_size=original_size,
        )

    def reset(self, session: EditSession) -> EditSession:
        original = session.original
        logger.info("Reset %s to original (%d edits discarded)", session.name, len(session.history) - 1)
        return replace(
            session,
            current=original,
            history=(original,),
            dimensions=read_dimensions(original),
            size_estimate=session.original_size,
            active_tool=ToolType.NONE,
            pending_crop=None,
            analysis=None,
        )

    # -- tool selection --------------------------------------------------

    def select_tool(self, session: EditSession, tool: ToolType) -> EditSession:
        pending = CropRectangle.empty(CoordinateSpace.DISPLAY) if tool is ToolType.CROP else None
        return replace(session, active_tool=tool, pending_crop=pending)

    def update_pending_crop(self, session: EditSession, rect: CropRectangle) -> EditSession:
        self._require_tool(session, ToolType.CROP)
        if rect.space is not CoordinateSpace.DISPLAY:
            raise SessionError("Pending crop must be measured in display space")
        return replace(session, pending_crop=rect)

    def cancel_crop(self, session: EditSession) -> EditSession:
        self._require_tool(session, ToolType.CROP)
        return replace(session, active_tool=ToolType.NONE, pending_crop=None)

    def set_quality(self, session: EditSession, quality: float) -> EditSession:
        if not 0 <= quality <= 1:
            raise SessionError(f"Quality must be between 0 and 1, got {quality}")
        return replace(session, export_config=replace(session.export_config, quality=float(quality)))

    def set_target_format(self, session: EditSession, target_format: ImageFormat | str) -> EditSession:
        try:
            target = ImageFormat.from_value(target_format)
        except ValueError as exc:
            raise SessionError(str(exc)) from exc
        return replace(session, export_config=replace(session.export_config, target_format=target))

    # -- edits -----------------------------------------------------------

    def apply_resize(self, session: EditSession, width: int, height: int) -> EditSession:
        self._require_tool(session, ToolType.RESIZE)
        result = self.engine.resize(session.current, width, height)
        return self._commit(session, result, f"resize {width}x{height}")

    def apply_crop(self, session: EditSession, display_size: SizeLike) -> EditSession:
        self._require_tool(session, ToolType.CROP)
        if session.pending_crop is None or session.pending_crop.is_empty():
            raise SessionError("No crop area selected")
        natural = to_natural_space(session.pending_crop, display_size, session.dimensions)
        minimum = self.settings.crop.min_size
        if natural.width < minimum or natural.height < minimum:
            raise SessionError(
                f"Crop area {natural.width:.0f}x{natural.height:.0f} is smaller than {minimum:g} px"
            )
        result = self.engine.crop(session.current, natural)
        return self._commit(session, result, f"crop {natural.width:.0f}x{natural.height:.0f}")

    def apply_compression(self, session: EditSession) -> EditSession:
        self._require_tool(session, ToolType.COMPRESS)
        try:
            target = ImageFormat.from_value(session.current.mime_type)
        except ValueError:
            target = session.export_config.target_format
        quality = session.export_config.quality
        result = self.engine.compress_and_convert(session.current, quality, target)
        return self._commit(session, result, f"compress {quality:.2f}")

    def apply_conversion(self, session: EditSession) -> EditSession:
        self._require_tool(session, ToolType.CONVERT)
        config = session.export_config
        result = self.engine.compress_and_convert(session.current, config.quality, config.target_format)
        return self._commit(session, result, f"convert {config.target_format.extension}")

    # -- reads -----------------------------------------------------------

    def export(self, session: EditSession) -> ExportResult:
        return self.exporter.export(session.current, session.name, session.export_config)

    def analyze(self, session: EditSession, analyzer: Analyzer) -> EditSession:
        self._require_tool(session, ToolType.AI)
        result = analyzer(session.current.to_base64(), session.current.mime_type)
        logger.info("Analysis for %s: %d tags", session.name, len(result.tags))
        return replace(session, analysis=result)

    def _commit(self, session: EditSession, result: ImageArtifact, label: str) -> EditSession:
        dimensions = read_dimensions(result)
        size = estimate_size(result)
        logger.info("Applied %s to %s: %s, %s", label, session.name, dimensions, format_bytes(size))
        return replace(
            session,
            current=result,
            history=session.history + (result,),
            dimensions=dimensions,
            size_estimate=size,
            active_tool=ToolType.NONE,
            pending_crop=None,
        )

    @staticmethod
    def _require_tool(session: EditSession, tool: ToolType) -> None:
        if session.active_tool is not tool:
            raise SessionError(f"{tool.value} tool is not active (active: {session.active_tool.value})")
