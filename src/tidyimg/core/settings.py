from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from PIL import Image

logger = logging.getLogger(__name__)


@dataclass
class ProcessingSettings:
    resample_method: int
    max_dimension: int


@dataclass
class CropSettings:
    min_size: float


@dataclass
class ExportSettings:
    quality: float
    suffix: str


@dataclass
class AnalysisSettings:
    model: str
    api_key_env: str
    endpoint: str
    timeout: float


@dataclass
class AppSettings:
    processing: ProcessingSettings
    crop: CropSettings
    export: ExportSettings
    analysis: AnalysisSettings


DEFAULT_SETTINGS = {
    "processing": {
        "resample_method": "LANCZOS",
        "max_dimension": 16384,
    },
    "crop": {
        "min_size": 5,
    },
    "export": {
        "quality": 0.85,
        "suffix": "tidy",
    },
    "analysis": {
        "model": "gemini-3-flash-preview",
        "api_key_env": "API_KEY",
        "endpoint": "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        "timeout": 60,
    },
}


def load_settings(path: Path | None = None) -> AppSettings:
    base_path = path or Path(__file__).resolve().parents[1] / "config" / "settings.json"
    data = DEFAULT_SETTINGS
    if base_path.exists():
        try:
            with base_path.open("r", encoding="utf-8") as fh:
                file_data = json.load(fh)
                data = _merge_settings(DEFAULT_SETTINGS, file_data)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Invalid settings file: {exc}") from exc

    processing = data["processing"]
    crop = data["crop"]
    export = data["export"]
    analysis = data["analysis"]

    resample_attr = str(processing.get("resample_method", "LANCZOS")).upper()
    resample_method = getattr(Image.Resampling, resample_attr, Image.Resampling.LANCZOS)

    processing_settings = ProcessingSettings(
        resample_method=resample_method,
        max_dimension=int(processing.get("max_dimension", 16384)),
    )
    crop_settings = CropSettings(min_size=float(crop.get("min_size", 5)))
    export_settings = ExportSettings(
        quality=float(export.get("quality", 0.85)),
        suffix=str(export.get("suffix", "tidy")),
    )
    analysis_settings = AnalysisSettings(
        model=str(analysis.get("model", DEFAULT_SETTINGS["analysis"]["model"])),
        api_key_env=str(analysis.get("api_key_env", "API_KEY")),
        endpoint=str(analysis.get("endpoint", DEFAULT_SETTINGS["analysis"]["endpoint"])),
        timeout=float(analysis.get("timeout", 60)),
    )

    return AppSettings(
        processing=processing_settings,
        crop=crop_settings,
        export=export_settings,
        analysis=analysis_settings,
    )


def _merge_settings(defaults: dict[str, Any], overrides: Any, prefix: str = "") -> dict[str, Any]:
    """Overlay ``overrides`` on ``defaults``; unknown keys are dropped with a warning."""
    if not isinstance(overrides, dict):
        raise RuntimeError(f"Settings section {prefix.rstrip('.') or '<root>'} must be a JSON object")
    merged = dict(defaults)
    for key, value in overrides.items():
        if key not in defaults:
            logger.warning("Ignoring unknown setting %s%s", prefix, key)
            continue
        if isinstance(defaults[key], dict):
            merged[key] = _merge_settings(defaults[key], value, f"{prefix}{key}.")
        else:
            merged[key] = value
    return merged
