from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from .analysis_service import Analyzer
from .crop_geometry import CropRectangle, SizeLike, selection_from_drag
from .export_service import ExportResult
from .image_artifact import ImageFormat
from .image_decoder import Source
from .image_session import EditSession, ImageEditor, SessionError, ToolType

logger = logging.getLogger(__name__)


class EditorBusyError(RuntimeError):
    pass


class EditorController:
    """
    Holds the EditSession of one editor window and notifies a listener on change.

    Transforms run in a worker thread; while one is in flight ``processing`` is
    set and every further call raises EditorBusyError. A failed operation
    leaves the held session untouched.
    """

    def __init__(
        self,
        editor: ImageEditor | None = None,
        on_change: Optional[Callable[[EditSession], None]] = None,
    ) -> None:
        self.editor = editor or ImageEditor()
        self._listener = on_change
        self._session: Optional[EditSession] = None
        self._processing = False

    @property
    def session(self) -> EditSession:
        if self._session is None:
            raise SessionError("No image loaded.")
        return self._session

    @property
    def processing(self) -> bool:
        return self._processing

    def has_image(self) -> bool:
        return self._session is not None

    async def load(self, source: Source, name: Optional[str] = None) -> EditSession:
        self._ensure_idle()
        self._processing = True
        try:
            session = await asyncio.to_thread(self.editor.start_session, source, name)
        finally:
            self._processing = False
        self._set(session)
        return session

    def close(self) -> None:
        self._ensure_idle()
        self._session = None

    def select_tool(self, tool: ToolType) -> None:
        self._ensure_idle()
        self._set(self.editor.select_tool(self.session, tool))

    def update_crop(self, rect: CropRectangle) -> None:
        self._ensure_idle()
        self._set(self.editor.update_pending_crop(self.session, rect))

    def drag_crop(self, start: tuple[float, float], current: tuple[float, float], display_size: SizeLike) -> None:
        self.update_crop(selection_from_drag(start, current, display_size))

    def cancel_crop(self) -> None:
        self._ensure_idle()
        self._set(self.editor.cancel_crop(self.session))

    def set_quality(self, quality: float) -> None:
        self._ensure_idle()
        self._set(self.editor.set_quality(self.session, quality))

    def set_target_format(self, target_format: ImageFormat | str) -> None:
        self._ensure_idle()
        self._set(self.editor.set_target_format(self.session, target_format))

    def reset(self) -> None:
        self._ensure_idle()
        self._set(self.editor.reset(self.session))

    async def apply_resize(self, width: int, height: int) -> EditSession:
        return self._set(await self._run(self.editor.apply_resize, width, height))

    async def apply_crop(self, display_size: SizeLike) -> EditSession:
        return self._set(await self._run(self.editor.apply_crop, display_size))

    async def apply_compression(self) -> EditSession:
        return self._set(await self._run(self.editor.apply_compression))

    async def apply_conversion(self) -> EditSession:
        return self._set(await self._run(self.editor.apply_conversion))

    async def analyze(self, analyzer: Analyzer) -> EditSession:
        return self._set(await self._run(self.editor.analyze, analyzer))

    async def export(self) -> ExportResult:
        return await self._run(self.editor.export)

    async def _run(self, operation: Callable[..., Any], *args: Any) -> Any:
        self._ensure_idle()
        session = self.session
        self._processing = True
        try:
            return await asyncio.to_thread(operation, session, *args)
        except Exception as exc:
            logger.warning("%s failed: %s", getattr(operation, "__name__", "operation"), exc)
            raise
        finally:
            self._processing = False

    def _ensure_idle(self) -> None:
        if self._processing:
            raise EditorBusyError("Another operation is still running.")

    def _set(self, session: EditSession) -> EditSession:
        self._session = session
        if self._listener:
            self._listener(session)
        return session
