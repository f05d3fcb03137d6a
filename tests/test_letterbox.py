import unittest

import numpy as np

from dnn_kit.exceptions import PreconditionViolation
from dnn_kit.letterbox import compute_geometry, letterbox
from tests.fakes import BLOCK_MEANS, block_image


class TestComputeGeometry(unittest.TestCase):
    SIZES = [
        ((200, 100), (64, 64)),
        ((100, 51), (64, 64)),
        ((333, 777), (640, 480)),
        ((1920, 1080), (640, 640)),
        ((640, 640), (640, 640)),
        ((17, 31), (640, 384)),
        ((5, 5), (7, 3)),
        ((1280, 725), (640, 640)),
        ((1000, 1), (64, 64)),
    ]

    def test_aspect_fit_touches_one_side(self) -> None:
        for src, target in self.SIZES:
            g = compute_geometry(src, target)
            rw, rh = g.resized_size
            self.assertTrue(rw == target[0] or rh == target[1], (src, target, g))
            self.assertLessEqual(rw, target[0])
            self.assertLessEqual(rh, target[1])

    def test_margins_sum_to_target(self) -> None:
        for src, target in self.SIZES:
            g = compute_geometry(src, target)
            rw, rh = g.resized_size
            self.assertEqual(rw + g.left + g.right, target[0], (src, target, g))
            self.assertEqual(rh + g.top + g.bottom, target[1], (src, target, g))

    def test_odd_padding_goes_bottom(self) -> None:
        # 100x51 -> 64x33, 31 rows of padding
        g = compute_geometry((100, 51), (64, 64))
        self.assertEqual(g.resized_size, (64, 33))
        self.assertAlmostEqual(g.pad_h, 15.5)
        self.assertEqual((g.top, g.bottom), (15, 16))
        self.assertEqual((g.left, g.right), (0, 0))

    def test_half_pixel_rounds_away_from_zero(self) -> None:
        # 725 * 0.5 = 362.5 rows
        g = compute_geometry((1280, 725), (640, 640))
        self.assertEqual(g.resized_size, (640, 363))
        self.assertEqual((g.top, g.bottom), (138, 139))

    def test_very_thin_image_keeps_one_pixel(self) -> None:
        g = compute_geometry((1000, 1), (64, 64))
        self.assertEqual(g.resized_size, (64, 1))
        self.assertEqual((g.top, g.bottom), (31, 32))

    def test_rejects_empty_sizes(self) -> None:
        with self.assertRaises(PreconditionViolation):
            compute_geometry((0, 10), (64, 64))
        with self.assertRaises(PreconditionViolation):
            compute_geometry((10, 10), (64, 0))


class TestLetterbox(unittest.TestCase):
    def test_output_shape_and_fill(self) -> None:
        img = np.full((51, 100, 3), 200, dtype=np.uint8)
        padded, g = letterbox(img, (64, 64))
        self.assertEqual(padded.shape, (64, 64, 3))
        self.assertTrue(np.all(padded[0, 0] == 114))
        self.assertTrue(np.all(padded[63, 63] == 114))
        self.assertTrue(np.all(padded[g.top + 5, 10] == 200))

    def test_reuses_given_geometry(self) -> None:
        g = compute_geometry((40, 20), (32, 32))
        img = np.zeros((20, 40, 3), dtype=np.uint8)
        padded, used = letterbox(img, (32, 32), color=(1, 2, 3), geometry=g)
        self.assertIs(used, g)
        self.assertEqual(padded.shape, (32, 32, 3))
        self.assertEqual(tuple(padded[0, 0]), (1, 2, 3))

    def test_very_thin_image(self) -> None:
        padded, g = letterbox(np.full((1, 1000, 3), 50, dtype=np.uint8), (64, 64))
        self.assertEqual(padded.shape, (64, 64, 3))
        self.assertTrue(np.all(padded[g.top] == 50))
        self.assertTrue(np.all(padded[0] == 114))

    def test_downscale_averages_areas(self) -> None:
        padded, g = letterbox(block_image(), (2, 2))
        self.assertEqual((g.left, g.top, g.right, g.bottom), (0, 0, 0, 0))
        for c in range(3):
            self.assertTrue(np.array_equal(padded[:, :, c], BLOCK_MEANS), padded[:, :, c])

    def test_does_not_modify_input(self) -> None:
        img = np.arange(30 * 20 * 3, dtype=np.uint8).reshape(30, 20, 3)
        before = img.copy()
        letterbox(img, (16, 16))
        self.assertTrue(np.array_equal(img, before))


if __name__ == "__main__":
    unittest.main()
