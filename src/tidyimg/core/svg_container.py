"""
SVG documents that wrap a single embedded raster image.

Vector content is not rasterized; an SVG source is usable only when it carries
a base64 ``<image>`` element, which is also how raster results are written
back out as SVG.
"""
from __future__ import annotations

import base64
import binascii
import xml.etree.ElementTree as ET

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

_HREF_KEYS = ("href", f"{{{XLINK_NS}}}href")


class SvgContainerError(ValueError):
    pass


def looks_like_svg(data: bytes) -> bool:
    head = data[:512].lstrip().lower()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in data[:4096].lower())


def wrap_raster(png_bytes: bytes, width: int, height: int) -> bytes:
    encoded = base64.b64encode(png_bytes).decode("ascii")
    return (
        f'<svg xmlns="{SVG_NS}" xmlns:xlink="{XLINK_NS}" '
        f'width="{width}" height="{height}" viewBox="0 0 {width} {height}">'
        f'<image width="{width}" height="{height}" '
        f'xlink:href="data:image/png;base64,{encoded}"/>'
        "</svg>"
    ).encode("utf-8")


def extract_raster(svg_bytes: bytes) -> bytes:
    try:
        root = ET.fromstring(svg_bytes)
    except ET.ParseError as exc:
        raise SvgContainerError(f"Malformed SVG document: {exc}") from exc

    for element in root.iter(f"{{{SVG_NS}}}image"):
        href = next((element.get(key) for key in _HREF_KEYS if element.get(key)), None)
        if not href or not href.startswith("data:image/") or ";base64," not in href:
            continue
        try:
            return base64.b64decode(href.partition(",")[2], validate=False)
        except binascii.Error as exc:
            raise SvgContainerError(f"Embedded image is not valid base64: {exc}") from exc
    raise SvgContainerError("SVG contains no embedded raster image (vector rendering is not supported)")
