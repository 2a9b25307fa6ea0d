from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Tuple, Union

from .image_artifact import Dimensions


RectTuple = Tuple[float, float, float, float]
# Display sizes come from layout and may be fractional or zero.
SizeLike = Union[Dimensions, Tuple[float, float]]


class GeometryError(ValueError):
    pass


class CoordinateSpace(str, Enum):
    DISPLAY = "display"  # pixels as rendered on screen
    NATURAL = "natural"  # source pixel grid


def _rect_intersection(a: RectTuple, b: RectTuple) -> RectTuple:
    ax, ay, aw, ah = a
    bx, by, bw, bh = b
    x1 = max(ax, bx)
    y1 = max(ay, by)
    x2 = min(ax + aw, bx + bw)
    y2 = min(ay + ah, by + bh)
    width = max(0.0, x2 - x1)
    height = max(0.0, y2 - y1)
    return (x1, y1, width, height)


@dataclass(frozen=True)
class CropRectangle:
    x: float
    y: float
    width: float
    height: float
    space: CoordinateSpace = CoordinateSpace.DISPLAY

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise GeometryError(f"Crop size must not be negative: {self.width}x{self.height}")

    @classmethod
    def empty(cls, space: CoordinateSpace = CoordinateSpace.DISPLAY) -> "CropRectangle":
        return cls(0.0, 0.0, 0.0, 0.0, space)

    def as_tuple(self) -> RectTuple:
        return (self.x, self.y, self.width, self.height)

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def clamped_to(self, bounds: Dimensions) -> "CropRectangle":
        """Intersection with ``[0, width] x [0, height]`` in the same space."""
        x, y, width, height = _rect_intersection(
            self.as_tuple(), (0.0, 0.0, float(bounds.width), float(bounds.height))
        )
        return replace(self, x=x, y=y, width=width, height=height)


def _size_tuple(size: SizeLike) -> tuple[float, float]:
    if isinstance(size, Dimensions):
        return (float(size.width), float(size.height))
    width, height = size
    return (float(width), float(height))


def scale_factors(display_size: SizeLike, natural_size: Dimensions) -> tuple[float, float]:
    display_width, display_height = _size_tuple(display_size)
    if display_width <= 0 or display_height <= 0:
        raise GeometryError(f"Display size must be positive, got {display_width:g}x{display_height:g}")
    return (
        natural_size.width / display_width,
        natural_size.height / display_height,
    )


def to_natural_space(
    rect: CropRectangle,
    display_size: SizeLike,
    natural_size: Dimensions,
) -> CropRectangle:
    """
    Map a selection measured on screen onto the source pixel grid.

    X and Y use separate factors, the displayed image may be fitted into its
    container with a different aspect ratio than the source.
    """
    if rect.space is not CoordinateSpace.DISPLAY:
        raise GeometryError("Rectangle is already in natural space")
    scale_x, scale_y = scale_factors(display_size, natural_size)
    return CropRectangle(
        x=rect.x * scale_x,
        y=rect.y * scale_y,
        width=rect.width * scale_x,
        height=rect.height * scale_y,
        space=CoordinateSpace.NATURAL,
    )


def selection_from_drag(
    start: tuple[float, float],
    current: tuple[float, float],
    display_size: SizeLike,
) -> CropRectangle:
    """Display-space rectangle spanned by a pointer drag, kept inside the image."""
    start_x, start_y = start
    display_width, display_height = _size_tuple(display_size)
    current_x = max(0.0, min(float(current[0]), display_width))
    current_y = max(0.0, min(float(current[1]), display_height))
    return CropRectangle(
        x=min(current_x, start_x),
        y=min(current_y, start_y),
        width=abs(current_x - start_x),
        height=abs(current_y - start_y),
        space=CoordinateSpace.DISPLAY,
    )
