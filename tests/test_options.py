import json
import tempfile
import unittest
from pathlib import Path

from pose_kit.options import (
    PoseDetectorOptions,
    load_pose_detector_options,
    pose_detection_decode_config,
    pose_detection_nms_config,
)


class TestPoseDetectorOptions(unittest.TestCase):
    def _write_options(self, payload) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "options.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_load_ok(self) -> None:
        path = self._write_options(
            {"min_detection_confidence": 0.6, "min_suppression_threshold": 0.4, "num_poses": 2}
        )
        options = load_pose_detector_options(path)
        self.assertIsInstance(options, PoseDetectorOptions)
        self.assertEqual(options.min_detection_confidence, 0.6)
        self.assertEqual(options.min_suppression_threshold, 0.4)
        self.assertEqual(options.num_poses, 2)

    def test_missing_keys_use_defaults(self) -> None:
        options = load_pose_detector_options(self._write_options({}))
        self.assertEqual(options, PoseDetectorOptions())
        self.assertIsNone(options.num_poses)

    def test_unknown_keys_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_pose_detector_options(self._write_options({"num_hands": 2}))

    def test_wrong_types_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_pose_detector_options(self._write_options({"num_poses": 1.5}))
        with self.assertRaises(ValueError):
            load_pose_detector_options(self._write_options({"min_detection_confidence": "high"}))
        with self.assertRaises(ValueError):
            load_pose_detector_options(self._write_options([1, 2]))

    def test_out_of_range_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_pose_detector_options(self._write_options({"min_detection_confidence": 1.5}))
        with self.assertRaises(ValueError):
            PoseDetectorOptions(num_poses=0)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_pose_detector_options(Path("/nonexistent/options.json"))

    def test_invalid_json(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "options.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_pose_detector_options(path)

    def test_options_flow_into_stage_configs(self) -> None:
        options = PoseDetectorOptions(min_detection_confidence=0.7, min_suppression_threshold=0.2)
        self.assertEqual(pose_detection_decode_config(options).min_score_thresh, 0.7)
        self.assertEqual(pose_detection_nms_config(options).min_suppression_threshold, 0.2)
        self.assertEqual(pose_detection_nms_config(options).algorithm, "weighted")


if __name__ == "__main__":
    unittest.main()
