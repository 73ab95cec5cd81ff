"""
Tests for the interlaced partitioning of the image into shifts.
"""

import unittest

import numpy as np

from mandelbrot_engine.core.interlace import InterlaceScheduler, Shift


class TestInterlaceScheduler(unittest.TestCase):
    def test_shift_count_and_order(self):
        shifts = InterlaceScheduler(3).shifts()
        self.assertEqual(len(shifts), 9)
        self.assertEqual([(s.dx, s.dy) for s in shifts[:4]], [(0, 0), (1, 0), (2, 0), (0, 1)])
        self.assertEqual([s.index for s in shifts], list(range(9)))
        self.assertEqual(len(InterlaceScheduler(10)), 100)

    def test_partition_is_disjoint_and_complete(self):
        for gap in (1, 2, 3, 10):
            for width, height in ((1, 1), (7, 5), (10, 10), (23, 11), (40, 30)):
                owners = np.zeros((height, width), dtype=int)
                for shift in InterlaceScheduler(gap).shifts():
                    for col, row in shift.pixels(width, height):
                        owners[row, col] += 1
                self.assertTrue(np.all(owners == 1), f"gap={gap} size={width}x{height}")

    def test_region_views_cover_image(self):
        image = np.zeros((11, 13, 3), dtype=np.uint8)
        for shift in InterlaceScheduler(4).shifts():
            region = shift.region(image)
            self.assertEqual(region.shape[:2], (len(shift.rows(11)), len(shift.columns(13))))
            region[...] += 1
        self.assertTrue(np.all(image == 1))

    def test_region_maps_to_image_pixels(self):
        image = np.zeros((9, 9, 3), dtype=np.uint8)
        shift = Shift(index=5, dx=2, dy=1, gap=3)
        shift.region(image)[1, 2] = (7, 8, 9)
        self.assertEqual(tuple(image[1 + 3, 2 + 6]), (7, 8, 9))

    def test_shift_larger_than_image_owns_nothing(self):
        shift = Shift(index=99, dx=9, dy=9, gap=10)
        self.assertEqual(list(shift.pixels(5, 5)), [])

    def test_invalid_gap(self):
        with self.assertRaises(ValueError):
            InterlaceScheduler(0)


if __name__ == '__main__':
    unittest.main()
