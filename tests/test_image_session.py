import base64
import io
import unittest

import numpy as np
from PIL import Image

from tidyimg.core.analysis_service import AnalysisError, AnalysisResult
from tidyimg.core.crop_geometry import CoordinateSpace, CropRectangle, GeometryError
from tidyimg.core.image_artifact import ImageFormat
from tidyimg.core.image_decoder import decode_artifact, read_dimensions
from tidyimg.core.image_processing import TransformError
from tidyimg.core.image_session import ImageEditor, SessionError, ToolType
from tidyimg.core.settings import load_settings


def _encode(image: Image.Image, fmt: str = "JPEG", **params) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


class _RecordingAnalyzer:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def __call__(self, image_base64: str, mime_type: str) -> AnalysisResult:
        self.calls.append((image_base64, mime_type))
        return AnalysisResult(alt_text="A blue square", tags=("blue", "square"), suggested_filename="blue-square")


class _FailingAnalyzer:
    def __call__(self, image_base64: str, mime_type: str) -> AnalysisResult:
        raise AnalysisError("Failed to analyze image with AI.")


class ImageEditorTest(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = load_settings()
        self.editor = ImageEditor(self.settings)
        self.jpeg = _encode(Image.new("RGB", (800, 600), (30, 60, 200)), "JPEG", quality=90)
        self.session = self.editor.start_session(self.jpeg, name="photo.jpg")

    def _crop(self, session, rect, display_size):
        session = self.editor.select_tool(session, ToolType.CROP)
        session = self.editor.update_pending_crop(session, rect)
        return self.editor.apply_crop(session, display_size)

    def test_start_session(self) -> None:
        session = self.session
        self.assertEqual(session.history, (session.original,))
        self.assertIs(session.current, session.original)
        self.assertEqual(session.dimensions.as_tuple(), (800, 600))
        self.assertEqual(session.export_config.target_format, ImageFormat.JPEG)
        self.assertAlmostEqual(session.export_config.quality, 0.85)
        self.assertEqual(session.size_estimate, len(self.jpeg))
        self.assertEqual(session.active_tool, ToolType.NONE)
        self.assertFalse(session.has_edits)

    def test_gif_source_defaults_to_png_export(self) -> None:
        session = self.editor.start_session(_encode(Image.new("RGB", (10, 10)), "GIF"))
        self.assertEqual(session.export_config.target_format, ImageFormat.PNG)
        self.assertEqual(session.name, "image")

    def test_resize_then_crop_then_export(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.RESIZE)
        session = self.editor.apply_resize(session, 400, 300)
        self.assertEqual(session.dimensions.as_tuple(), (400, 300))
        self.assertEqual(session.current.mime_type, "image/jpeg")

        session = self._crop(session, CropRectangle(50, 50, 100, 100), (400, 300))
        self.assertEqual(session.dimensions.as_tuple(), (100, 100))
        self.assertEqual(len(session.history), 3)
        self.assertEqual(session.active_tool, ToolType.NONE)
        self.assertIsNone(session.pending_crop)

        session = self.editor.set_target_format(session, "png")
        session = self.editor.set_quality(session, 0.85)
        first = self.editor.export(session)
        second = self.editor.export(session)
        self.assertEqual(first.filename, "photo_tidy.png")
        self.assertEqual(first.artifact.mime_type, "image/png")
        self.assertEqual(first.artifact.byte_size, second.artifact.byte_size)
        self.assertEqual(read_dimensions(first.artifact).as_tuple(), (100, 100))
        self.assertEqual(len(session.history), 3)

    def test_crop_maps_display_to_natural_space(self) -> None:
        session = self._crop(self.session, CropRectangle(100, 50, 200, 100), (400, 300))
        self.assertEqual(session.dimensions.as_tuple(), (400, 200))

    def test_minimum_size_checked_in_natural_space(self) -> None:
        # 3x3 on a 100x75 preview of an 800x600 image is 24x24 source pixels
        session = self._crop(self.session, CropRectangle(0, 0, 3, 3), (100, 75))
        self.assertEqual(session.dimensions.as_tuple(), (24, 24))

    def test_crop_below_minimum_is_rejected(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.CROP)
        session = self.editor.update_pending_crop(session, CropRectangle(10, 10, 4, 50))
        with self.assertRaises(SessionError):
            self.editor.apply_crop(session, (800, 600))
        self.assertEqual(session.active_tool, ToolType.CROP)
        self.assertEqual(len(session.history), 1)
        self.assertIs(session.current, self.session.original)

    def test_crop_without_selection_is_rejected(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.CROP)
        self.assertEqual(session.pending_crop, CropRectangle.empty())
        with self.assertRaises(SessionError):
            self.editor.apply_crop(session, (800, 600))

    def test_crop_with_zero_display_size_raises_geometry_error(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.CROP)
        session = self.editor.update_pending_crop(session, CropRectangle(0, 0, 50, 50))
        with self.assertRaises(GeometryError):
            self.editor.apply_crop(session, (0, 0))

    def test_pending_crop_must_be_display_space(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.CROP)
        with self.assertRaises(SessionError):
            self.editor.update_pending_crop(
                session, CropRectangle(0, 0, 50, 50, space=CoordinateSpace.NATURAL)
            )

    def test_cancel_crop_discards_selection(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.CROP)
        session = self.editor.update_pending_crop(session, CropRectangle(0, 0, 50, 50))
        session = self.editor.cancel_crop(session)
        self.assertEqual(session.active_tool, ToolType.NONE)
        self.assertIsNone(session.pending_crop)
        self.assertEqual(len(session.history), 1)

    def test_switching_tool_drops_pending_crop(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.CROP)
        session = self.editor.select_tool(session, ToolType.RESIZE)
        self.assertIsNone(session.pending_crop)

    def test_apply_requires_matching_tool(self) -> None:
        with self.assertRaises(SessionError):
            self.editor.apply_resize(self.session, 10, 10)
        session = self.editor.select_tool(self.session, ToolType.CROP)
        with self.assertRaises(SessionError):
            self.editor.apply_compression(session)

    def test_failed_transform_leaves_session_unchanged(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.RESIZE)
        with self.assertRaises(TransformError):
            self.editor.apply_resize(session, 0, 300)
        self.assertEqual(session.active_tool, ToolType.RESIZE)
        self.assertEqual(len(session.history), 1)
        self.assertEqual(session.dimensions.as_tuple(), (800, 600))

    def test_history_grows_by_one_and_reset_truncates(self) -> None:
        session = self.session
        for width in (600, 500, 400):
            before = len(session.history)
            session = self.editor.select_tool(session, ToolType.RESIZE)
            session = self.editor.apply_resize(session, width, 300)
            self.assertEqual(len(session.history), before + 1)
            self.assertIs(session.history[0], self.session.original)
            self.assertIs(session.history[-1], session.current)

        session = self.editor.reset(session)
        self.assertEqual(session.history, (self.session.original,))
        self.assertIs(session.current, self.session.original)
        self.assertEqual(session.dimensions.as_tuple(), (800, 600))
        self.assertEqual(session.size_estimate, len(self.jpeg))

    def test_reset_restores_exact_size_of_data_url_source(self) -> None:
        raw = _encode(Image.new("RGBA", (30, 20), (0, 120, 0, 128)), "PNG")
        url = "data:image/png;base64," + base64.b64encode(raw).decode("ascii")
        session = self.editor.start_session(url)
        self.assertEqual(session.size_estimate, len(raw))
        session = self.editor.select_tool(session, ToolType.RESIZE)
        session = self.editor.apply_resize(session, 15, 10)
        session = self.editor.reset(session)
        self.assertEqual(session.size_estimate, len(raw))
        self.assertEqual(session.dimensions.as_tuple(), (30, 20))

    def test_jpg_spelled_data_url_can_be_edited(self) -> None:
        url = "data:image/jpg;base64," + base64.b64encode(self.jpeg).decode("ascii")
        session = self.editor.start_session(url)
        self.assertEqual(session.original.mime_type, "image/jpeg")
        self.assertEqual(session.export_config.target_format, ImageFormat.JPEG)
        session = self.editor.select_tool(session, ToolType.RESIZE)
        session = self.editor.apply_resize(session, 20, 15)
        self.assertEqual(session.current.mime_type, "image/jpeg")
        self.assertEqual(session.dimensions.as_tuple(), (20, 15))

    def test_compression_keeps_format(self) -> None:
        session = self.editor.set_quality(self.session, 0.3)
        session = self.editor.select_tool(session, ToolType.COMPRESS)
        session = self.editor.apply_compression(session)
        self.assertEqual(session.current.mime_type, "image/jpeg")
        self.assertEqual(len(session.history), 2)
        self.assertEqual(session.size_estimate, len(session.current.payload))

    def test_conversion_flattens_transparency(self) -> None:
        png = _encode(Image.new("RGBA", (32, 32), (0, 0, 0, 0)), "PNG")
        session = self.editor.start_session(png, name="logo.png")
        self.assertEqual(session.export_config.target_format, ImageFormat.PNG)

        session = self.editor.set_target_format(session, ImageFormat.JPEG)
        session = self.editor.select_tool(session, ToolType.CONVERT)
        session = self.editor.apply_conversion(session)
        self.assertEqual(session.current.mime_type, "image/jpeg")
        arr = np.array(decode_artifact(session.current).convert("RGB"))
        self.assertGreaterEqual(int(arr.min()), 250)

    def test_export_config_validation(self) -> None:
        with self.assertRaises(SessionError):
            self.editor.set_quality(self.session, 1.5)
        with self.assertRaises(SessionError):
            self.editor.set_target_format(self.session, "tiff")

    def test_analysis_is_cached_and_cleared_on_reset(self) -> None:
        analyzer = _RecordingAnalyzer()
        session = self.editor.select_tool(self.session, ToolType.AI)
        session = self.editor.analyze(session, analyzer)
        self.assertEqual(session.analysis.tags, ("blue", "square"))
        self.assertEqual(analyzer.calls[0][1], "image/jpeg")
        self.assertEqual(analyzer.calls[0][0], session.current.to_base64())

        session = self.editor.reset(session)
        self.assertIsNone(session.analysis)

    def test_analysis_failure_propagates(self) -> None:
        session = self.editor.select_tool(self.session, ToolType.AI)
        with self.assertRaises(AnalysisError):
            self.editor.analyze(session, _FailingAnalyzer())
        self.assertIsNone(session.analysis)


if __name__ == "__main__":
    unittest.main()
