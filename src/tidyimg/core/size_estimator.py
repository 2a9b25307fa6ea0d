from __future__ import annotations

import math

from .image_artifact import ImageArtifact

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def estimate_size(artifact: ImageArtifact) -> int:
    """
    Byte size of the encoded image without decoding it.

    Binary payloads report their exact length. Data URL payloads are estimated
    from the base64 body length (4 characters carry 3 bytes).
    """
    payload = artifact.payload
    if isinstance(payload, bytes):
        return len(payload)
    encoded_length = len(payload) - len(artifact.header)
    # Half-up rounding, round() would round .5 to even.
    return max(0, math.floor(encoded_length * 3 / 4 + 0.5))


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human readable size, e.g. ``1.5 KB`` or ``2 MB``."""
    if size <= 0:
        return "0 Bytes"
    k = 1024
    digits = max(0, decimals)
    index = min(int(math.floor(math.log(size) / math.log(k))), len(SIZE_UNITS) - 1)
    value = round(size / k**index, digits)
    text = f"{value:.{digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[index]}"
