from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Union


Payload = Union[bytes, str]

DATA_URL_PREFIX = "data:"
BASE64_MARKER = ";base64,"


class ImageFormat(str, Enum):
    """Formats an edit session can export to."""

    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"
    SVG = "image/svg+xml"

    @property
    def extension(self) -> str:
        return self.value.split("/")[1].replace("svg+xml", "svg")

    @property
    def supports_alpha(self) -> bool:
        return self is not ImageFormat.JPEG

    @classmethod
    def from_value(cls, value: str) -> "ImageFormat":
        """Accept a MIME type ("image/webp") or a short name ("webp", "jpg")."""
        lowered = value.strip().lower()
        if lowered in ("jpg", "jpeg"):
            return cls.JPEG
        for member in cls:
            if lowered in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unsupported export format: {value}")


# MIME type -> Pillow format name for every format the decoder understands.
PIL_FORMATS: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
}

MIME_TYPES: dict[str, str] = {name: mime for mime, name in PIL_FORMATS.items()}
MIME_TYPES["MPO"] = "image/jpeg"

ALPHA_MIME_TYPES = {"image/png", "image/webp", "image/gif", "image/svg+xml"}


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Dimensions must be positive: {self.width}x{self.height}")

    def as_tuple(self) -> tuple[int, int]:
        return (self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class ImageArtifact:
    """
    An encoded image, immutable once produced.

    The payload is either the raw encoded bytes or a textual data URL
    (``data:<mime>;base64,...``). Transforms never touch an artifact in place,
    they always return a new one.
    """

    payload: Payload
    mime_type: str

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImageArtifact":
        if not data_url.startswith(DATA_URL_PREFIX) or BASE64_MARKER not in data_url:
            raise ValueError("Not a base64 data URL")
        mime_type = data_url[len(DATA_URL_PREFIX):data_url.index(BASE64_MARKER)]
        return cls(payload=data_url, mime_type=mime_type or "application/octet-stream")

    @property
    def is_textual(self) -> bool:
        return isinstance(self.payload, str)

    @property
    def header(self) -> str:
        if isinstance(self.payload, str):
            # As written, the declared type may be spelled differently from mime_type.
            head, comma, _ = self.payload.partition(",")
            return head + comma
        return f"{DATA_URL_PREFIX}{self.mime_type}{BASE64_MARKER}"

    @property
    def data(self) -> bytes:
        """Raw encoded bytes, decoding the data URL when necessary."""
        if isinstance(self.payload, bytes):
            return self.payload
        _, _, encoded = self.payload.partition(",")
        return base64.b64decode(encoded)

    @property
    def byte_size(self) -> int:
        # Imported lazily, size_estimator depends on this module.
        from .size_estimator import estimate_size

        return estimate_size(self)

    def to_base64(self) -> str:
        if isinstance(self.payload, str):
            return self.payload.partition(",")[2]
        return base64.b64encode(self.payload).decode("ascii")

    def __repr__(self) -> str:
        kind = "text" if self.is_textual else "bytes"
        return f"ImageArtifact(mime_type={self.mime_type!r}, {kind}, {len(self.payload)} chars/bytes)"
