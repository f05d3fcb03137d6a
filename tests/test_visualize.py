import unittest

import numpy as np

from dnn_kit.types import Detection
from dnn_kit.visualize import draw_detections


class TestDrawDetections(unittest.TestCase):
    def test_draws_on_a_copy(self) -> None:
        image = np.zeros((40, 60, 3), dtype=np.uint8)
        dets = [Detection(x1=10, y1=20, x2=30, y2=35, score=0.9), Detection(x1=0, y1=0, x2=60, y2=40, score=0.5)]

        out = draw_detections(image, dets, color=(0, 0, 255))

        self.assertEqual(out.shape, image.shape)
        self.assertFalse(np.any(image))
        self.assertEqual(tuple(out[35, 20]), (0, 0, 255))
        # box touching the far edge is drawn on the last column
        self.assertEqual(tuple(out[39, 59]), (0, 0, 255))

    def test_rejects_gray_images(self) -> None:
        with self.assertRaises(ValueError):
            draw_detections(np.zeros((10, 10), dtype=np.uint8), [])


if __name__ == "__main__":
    unittest.main()
