"""
Client for the AI metadata suggestion service.

The editor only needs ``(base64 image, MIME type) -> AnalysisResult``; any
callable with that signature can stand in for ``GeminiAnalyzer``.
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import requests

from .settings import AnalysisSettings

logger = logging.getLogger(__name__)

PROMPT = """Analyze this image for a file management system.
1. Provide a concise, descriptive Alt Text (max 20 words).
2. Provide 3-5 relevant keywords/tags.
3. Suggest a clean, SEO-friendly filename (in kebab-case, without extension)."""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "altText": {"type": "STRING"},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "suggestedFilename": {"type": "STRING"},
    },
    "required": ["altText", "tags", "suggestedFilename"],
}

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)


class AnalysisError(Exception):
    pass


@dataclass(frozen=True)
class AnalysisResult:
    alt_text: str
    tags: tuple[str, ...] = field(default_factory=tuple)
    suggested_filename: str = ""


class Analyzer(Protocol):
    def __call__(self, image_base64: str, mime_type: str) -> AnalysisResult: ...


def parse_analysis_text(text: Optional[str]) -> AnalysisResult:
    """Parse the model's JSON answer, tolerating a surrounding Markdown code fence."""
    if not text or not text.strip():
        raise AnalysisError("Empty response from the analysis service")
    body = text.strip()
    match = _FENCE_RE.match(body)
    if match:
        body = match.group(1).strip()
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise AnalysisError(f"Analysis response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise AnalysisError("Analysis response must be a JSON object")

    missing = [key for key in ("altText", "tags", "suggestedFilename") if key not in data]
    if missing:
        raise AnalysisError(f"Analysis response misses fields: {', '.join(missing)}")
    tags = data["tags"]
    if not isinstance(tags, list):
        raise AnalysisError("Analysis field 'tags' must be a list")
    return AnalysisResult(
        alt_text=str(data["altText"]),
        tags=tuple(str(tag) for tag in tags),
        suggested_filename=str(data["suggestedFilename"]),
    )


class GeminiAnalyzer:
    """Calls the Gemini ``generateContent`` REST endpoint with a JSON schema."""

    def __init__(
        self,
        settings: AnalysisSettings,
        *,
        api_key: Optional[str] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings
        self._api_key = api_key
        self._http = http or requests.Session()

    def __call__(self, image_base64: str, mime_type: str) -> AnalysisResult:
        api_key = self._api_key or os.environ.get(self.settings.api_key_env)
        if not api_key:
            raise AnalysisError(
                f"API key is missing. Please set the {self.settings.api_key_env} environment variable."
            )

        url = self.settings.endpoint.format(model=self.settings.model)
        try:
            response = self._http.post(
                url,
                headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
                json=self._build_request(image_base64, mime_type),
                timeout=self.settings.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            logger.warning("Analysis request rejected: %s", exc)
            raise AnalysisError("Failed to analyze image with AI.") from exc
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Analysis request failed: %s", exc)
            raise AnalysisError("Failed to analyze image with AI.") from exc

        return parse_analysis_text(_response_text(payload))

    def _build_request(self, image_base64: str, mime_type: str) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"inline_data": {"mime_type": mime_type, "data": image_base64}},
                        {"text": PROMPT},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }


def _response_text(payload: Any) -> Optional[str]:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))
