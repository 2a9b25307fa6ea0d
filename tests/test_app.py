import contextlib
import io
import tempfile
import unittest
from pathlib import Path

from PIL import Image

from tidyimg.app import main


class AppTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp_dir.name)
        self.source = self.root / "photo.jpg"
        Image.new("RGB", (800, 600), (90, 90, 90)).save(self.source, "JPEG")

    def tearDown(self) -> None:
        self.tmp_dir.cleanup()

    def _main(self, *args: str) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main([str(self.source), "--log-dir", str(self.root / "logs"), *args])
        return code, out.getvalue()

    def test_resize_crop_and_convert(self) -> None:
        code, output = self._main(
            "--resize", "400x300",
            "--crop", "50,50,100,100",
            "--display-size", "200x150",
            "--format", "png",
        )
        self.assertEqual(code, 0)
        target = self.root / "photo_tidy.png"
        self.assertIn(str(target), output)
        with Image.open(target) as image:
            self.assertEqual(image.format, "PNG")
            self.assertEqual(image.size, (200, 200))

    def test_output_dir_and_quality(self) -> None:
        out_dir = self.root / "out"
        out_dir.mkdir()
        code, _ = self._main("--quality", "0.5", "--output-dir", str(out_dir))
        self.assertEqual(code, 0)
        self.assertTrue((out_dir / "photo_tidy.jpeg").exists())

    def test_pipeline_error_returns_one(self) -> None:
        code, _ = self._main("--crop", "0,0,2,2")
        self.assertEqual(code, 1)
        self.assertFalse((self.root / "photo_tidy.jpeg").exists())

    def test_unreadable_source_returns_one(self) -> None:
        self.source = self.root / "missing.png"
        code, _ = self._main()
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
