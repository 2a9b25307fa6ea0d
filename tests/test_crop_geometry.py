import unittest

from tidyimg.core.crop_geometry import (
    CoordinateSpace,
    CropRectangle,
    GeometryError,
    scale_factors,
    selection_from_drag,
    to_natural_space,
)
from tidyimg.core.image_artifact import Dimensions


class ToNaturalSpaceTests(unittest.TestCase):
    def test_full_display_rect_maps_to_full_natural_rect(self) -> None:
        for display, natural in [
            ((400, 300), Dimensions(800, 600)),
            ((333.5, 250.25), Dimensions(1024, 768)),
            ((200, 300), Dimensions(800, 600)),
        ]:
            rect = CropRectangle(0, 0, display[0], display[1])
            mapped = to_natural_space(rect, display, natural)
            self.assertEqual(mapped.space, CoordinateSpace.NATURAL)
            self.assertAlmostEqual(mapped.x, 0)
            self.assertAlmostEqual(mapped.y, 0)
            self.assertAlmostEqual(mapped.width, natural.width)
            self.assertAlmostEqual(mapped.height, natural.height)

    def test_axes_scale_independently(self) -> None:
        rect = CropRectangle(10, 20, 30, 40)
        mapped = to_natural_space(rect, Dimensions(200, 300), Dimensions(800, 600))
        self.assertEqual(mapped.as_tuple(), (40.0, 40.0, 120.0, 80.0))

    def test_identity_scale_keeps_values(self) -> None:
        rect = CropRectangle(50, 50, 100, 100)
        mapped = to_natural_space(rect, Dimensions(400, 300), Dimensions(400, 300))
        self.assertEqual(mapped.as_tuple(), (50.0, 50.0, 100.0, 100.0))

    def test_zero_display_size_raises(self) -> None:
        rect = CropRectangle(0, 0, 10, 10)
        with self.assertRaises(GeometryError):
            to_natural_space(rect, (0, 300), Dimensions(800, 600))
        with self.assertRaises(GeometryError):
            scale_factors((400, 0), Dimensions(800, 600))

    def test_natural_rect_is_not_rescaled(self) -> None:
        rect = CropRectangle(0, 0, 10, 10, space=CoordinateSpace.NATURAL)
        with self.assertRaises(GeometryError):
            to_natural_space(rect, (400, 300), Dimensions(800, 600))


class CropRectangleTests(unittest.TestCase):
    def test_negative_size_rejected(self) -> None:
        with self.assertRaises(GeometryError):
            CropRectangle(0, 0, -1, 10)

    def test_clamped_to_bounds(self) -> None:
        rect = CropRectangle(-10, 20, 50, 100, space=CoordinateSpace.NATURAL)
        clamped = rect.clamped_to(Dimensions(30, 60))
        self.assertEqual(clamped.as_tuple(), (0.0, 20, 30.0, 40.0))
        self.assertEqual(clamped.space, CoordinateSpace.NATURAL)

    def test_empty_rect_at_origin(self) -> None:
        rect = CropRectangle.empty()
        self.assertTrue(rect.is_empty())
        self.assertEqual(rect.as_tuple(), (0.0, 0.0, 0.0, 0.0))
        self.assertEqual(rect.space, CoordinateSpace.DISPLAY)


class SelectionFromDragTests(unittest.TestCase):
    def test_drag_up_left_is_normalised(self) -> None:
        rect = selection_from_drag((100, 80), (40, 20), (400, 300))
        self.assertEqual(rect.as_tuple(), (40.0, 20.0, 60.0, 60.0))

    def test_pointer_outside_image_is_clamped(self) -> None:
        rect = selection_from_drag((100, 80), (40, 500), Dimensions(400, 300))
        self.assertEqual(rect.as_tuple(), (40.0, 80.0, 60.0, 220.0))
        rect = selection_from_drag((100, 80), (-20, 50), Dimensions(400, 300))
        self.assertEqual(rect.x, 0.0)
        self.assertEqual(rect.width, 100.0)


if __name__ == "__main__":
    unittest.main()
