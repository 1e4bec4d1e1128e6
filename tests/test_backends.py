import importlib.util
import tempfile
import unittest
from pathlib import Path

import numpy as np

from pose_kit.backends import split_outputs


class TestSplitOutputs(unittest.TestCase):
    def test_box_tensor_found_by_num_coords(self) -> None:
        scores = np.zeros((1, 2254, 1), dtype=np.float32)
        boxes = np.ones((1, 2254, 12), dtype=np.float32)
        got_boxes, got_scores = split_outputs([scores, boxes], num_coords=12)
        self.assertIs(got_boxes, boxes)
        self.assertIs(got_scores, scores)

    def test_explicit_indices(self) -> None:
        a = np.zeros((1, 4, 12))
        b = np.zeros((1, 4, 12))
        got_boxes, got_scores = split_outputs([a, b], num_coords=12, box_index=1, score_index=0)
        self.assertIs(got_boxes, b)
        self.assertIs(got_scores, a)

    def test_errors(self) -> None:
        with self.assertRaises(ValueError):
            split_outputs([np.zeros((1, 4, 12))], num_coords=12)
        with self.assertRaises(ValueError):
            split_outputs([np.zeros((1, 4, 1)), np.zeros((1, 4, 8))], num_coords=12)


@unittest.skipUnless(importlib.util.find_spec("onnxruntime"), "onnxruntime not installed")
class TestOnnxRuntimeBackend(unittest.TestCase):
    def test_missing_model(self) -> None:
        from pose_kit.backends.onnxruntime_backend import OnnxRuntimeBackend

        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                OnnxRuntimeBackend(Path(tmp) / "missing.onnx")


if __name__ == "__main__":
    unittest.main()
