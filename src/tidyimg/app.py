from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .core.analysis_service import AnalysisError, GeminiAnalyzer
from .core.crop_geometry import CoordinateSpace, CropRectangle, GeometryError
from .core.export_service import ExportServiceError
from .core.image_decoder import DecodeError
from .core.image_processing import TransformError
from .core.image_session import ImageEditor, SessionError, ToolType
from .core.logger import configure_logging
from .core.settings import load_settings

logger = logging.getLogger("tidyimg")

PIPELINE_ERRORS = (
    DecodeError,
    GeometryError,
    TransformError,
    SessionError,
    AnalysisError,
    ExportServiceError,
)


def _size(value: str) -> tuple[int, int]:
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}") from exc
    return width, height


def _rect(value: str) -> tuple[float, float, float, float]:
    parts = value.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"expected X,Y,WIDTH,HEIGHT, got {value!r}")
    try:
        x, y, width, height = (float(part) for part in parts)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected numbers in {value!r}") from exc
    return x, y, width, height


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tidyimg", description="Resize, crop, compress and convert an image.")
    parser.add_argument("image", help="Path to the source image.")
    parser.add_argument("--resize", type=_size, metavar="WxH", help="Resize to exactly WIDTHxHEIGHT pixels.")
    parser.add_argument("--crop", type=_rect, metavar="X,Y,W,H", help="Crop area, measured at --display-size.")
    parser.add_argument(
        "--display-size",
        type=_size,
        metavar="WxH",
        help="Size the crop area was measured at (defaults to the image size).",
    )
    parser.add_argument("--format", dest="target_format", help="Export format: jpeg, png, webp or svg.")
    parser.add_argument("--quality", type=float, help="Export quality between 0 and 1.")
    parser.add_argument("--output-dir", type=Path, help="Directory for the exported file.")
    parser.add_argument("--analyze", action="store_true", help="Ask the AI service for alt text and tags.")
    parser.add_argument("--settings", type=Path, help="Path to a settings.json file.")
    parser.add_argument("--log-dir", type=Path, help="Directory for the log file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to the console.")
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> Path:
    settings = load_settings(args.settings)
    editor = ImageEditor(settings)
    source = Path(args.image).expanduser()
    session = editor.start_session(source)

    if args.resize:
        session = editor.select_tool(session, ToolType.RESIZE)
        session = editor.apply_resize(session, *args.resize)

    if args.crop:
        display_size = args.display_size or session.dimensions
        session = editor.select_tool(session, ToolType.CROP)
        session = editor.update_pending_crop(session, CropRectangle(*args.crop, space=CoordinateSpace.DISPLAY))
        session = editor.apply_crop(session, display_size)

    if args.target_format:
        session = editor.set_target_format(session, args.target_format)
    if args.quality is not None:
        session = editor.set_quality(session, args.quality)

    if args.analyze:
        session = editor.select_tool(session, ToolType.AI)
        session = editor.analyze(session, GeminiAnalyzer(settings.analysis))
        analysis = session.analysis
        if analysis is not None:
            print(f"Alt text: {analysis.alt_text}")
            print(f"Tags: {', '.join(analysis.tags)}")
            print(f"Suggested filename: {analysis.suggested_filename}")

    result = editor.export(session)
    output_dir = args.output_dir or source.parent
    return editor.exporter.write(result, output_dir)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    configure_logging(args.log_dir, verbose=args.verbose)
    try:
        output_path = run(args)
    except PIPELINE_ERRORS as exc:
        logger.error("Processing %s failed: %s", args.image, exc)
        return 1
    print(output_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
