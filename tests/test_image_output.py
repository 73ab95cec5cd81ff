"""
Tests for pixel buffers and image export.
"""

import os
import tempfile
import unittest

import numpy as np
from PIL import Image

from mandelbrot_engine.rendering.image_output import (
    ImageExporter,
    RenderMetadata,
    allocate_pixel_buffer,
)


def make_metadata():
    return RenderMetadata(
        center=(-0.5, 0.0),
        scale_factor=0.01,
        resolution=(16, 8),
        max_iterations=1000,
        supersample_count=2,
        render_time_ms=42,
        seed=7,
    )


class TestPixelBuffer(unittest.TestCase):
    def test_shape_and_zeroed(self):
        image = allocate_pixel_buffer(16, 8)
        self.assertEqual(image.shape, (8, 16, 3))
        self.assertEqual(image.dtype, np.uint8)
        self.assertFalse(image.any())


class TestRenderMetadata(unittest.TestCase):
    def test_json_round_trip(self):
        metadata = make_metadata()
        self.assertTrue(metadata.timestamp)
        restored = RenderMetadata.from_json(metadata.to_json())
        self.assertEqual(restored, metadata)
        self.assertIsInstance(restored.center, tuple)


class TestImageExporter(unittest.TestCase):
    def setUp(self):
        self.exporter = ImageExporter()
        self.image = np.zeros((8, 16, 3), dtype=np.uint8)
        self.image[:, :8] = (255, 170, 0)
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def test_png_with_metadata(self):
        metadata = make_metadata()
        written = self.exporter.save_image(self.image, self.path("frame.png"), metadata)

        with Image.open(written) as img:
            self.assertEqual(img.size, (16, 8))
            self.assertEqual(img.getpixel((0, 0)), (255, 170, 0))
            self.assertEqual(img.getpixel((15, 7)), (0, 0, 0))

        self.assertEqual(self.exporter.extract_metadata_from_image(written), metadata)

    def test_png_without_metadata(self):
        written = self.exporter.save_image(self.image, self.path("plain.png"))
        self.assertIsNone(self.exporter.extract_metadata_from_image(written))

    def test_tiff(self):
        written = self.exporter.save_image(self.image, self.path("frame.tiff"), make_metadata())
        with Image.open(written) as img:
            self.assertEqual(img.size, (16, 8))

    def test_jpeg_writes_companion_json(self):
        self.exporter.save_image(self.image, self.path("frame.jpg"), make_metadata())
        self.assertTrue(os.path.exists(self.path("frame.jpg")))
        with open(self.path("frame.json")) as f:
            self.assertEqual(RenderMetadata.from_json(f.read()).seed, 7)

    def test_strided_view_is_saved(self):
        view = np.zeros((10, 10, 3), dtype=np.uint8)[::2, ::2]
        written = self.exporter.save_image(view, self.path("view.png"))
        with Image.open(written) as img:
            self.assertEqual(img.size, (5, 5))

    def test_rejects_unsupported_format(self):
        with self.assertRaises(ValueError):
            self.exporter.save_image(self.image, self.path("frame.bmp"))

    def test_rejects_wrong_shape(self):
        with self.assertRaises(ValueError):
            self.exporter.save_image(np.zeros((8, 16), dtype=np.uint8), self.path("gray.png"))


if __name__ == '__main__':
    unittest.main()
