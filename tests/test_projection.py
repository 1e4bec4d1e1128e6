import unittest

import numpy as np

from pose_kit.projection import as_affine, detections_to_pixels, project_detections
from pose_kit.types import Detection, ImageSize, RelativeBox


def _det() -> Detection:
    return Detection(
        score=0.8,
        box=RelativeBox(0.5, 0.4, 0.2, 0.3),
        keypoints=((0.45, 0.35), (0.55, 0.5)),
        class_id=0,
    )


def _translation(tx: float, ty: float) -> np.ndarray:
    m = np.eye(4)
    m[0, 3] = tx
    m[1, 3] = ty
    return m


class TestProjectDetections(unittest.TestCase):
    def test_identity_keeps_coordinates(self) -> None:
        det = _det()
        (out,) = project_detections([det], np.linalg.inv(np.eye(4)))
        self.assertAlmostEqual(out.box.x_center, det.box.x_center)
        self.assertAlmostEqual(out.box.y_center, det.box.y_center)
        self.assertAlmostEqual(out.box.width, det.box.width)
        self.assertAlmostEqual(out.box.height, det.box.height)
        self.assertTrue(np.allclose(out.keypoints, det.keypoints))
        self.assertEqual(out.score, det.score)
        self.assertEqual(out.class_id, det.class_id)

    def test_translation_shifts_centers_and_keypoints(self) -> None:
        det = _det()
        (out,) = project_detections([det], _translation(0.1, -0.05))
        self.assertAlmostEqual(out.box.x_center, 0.6)
        self.assertAlmostEqual(out.box.y_center, 0.35)
        self.assertAlmostEqual(out.box.width, 0.2)
        self.assertAlmostEqual(out.box.height, 0.3)
        self.assertTrue(np.allclose(out.keypoints, [(0.55, 0.3), (0.65, 0.45)]))

    def test_letterbox_style_scale(self) -> None:
        # y' = 4/3 * y - 1/6, as produced for a 640x480 image in a square tensor
        m = np.eye(4)
        m[1, 1] = 4.0 / 3.0
        m[1, 3] = -1.0 / 6.0
        (out,) = project_detections([_det()], m)
        self.assertAlmostEqual(out.box.x_center, 0.5)
        self.assertAlmostEqual(out.box.y_center, 0.4 * 4.0 / 3.0 - 1.0 / 6.0)
        self.assertAlmostEqual(out.box.height, 0.4)
        self.assertEqual(len(out.keypoints), 2)

    def test_rotation_takes_axis_aligned_hull(self) -> None:
        # 90 degree rotation about the origin: (x, y) -> (-y, x)
        m = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
        (out,) = project_detections([_det()], m)
        self.assertAlmostEqual(out.box.width, 0.3)
        self.assertAlmostEqual(out.box.height, 0.2)
        self.assertAlmostEqual(out.box.x_center, -0.4)
        self.assertAlmostEqual(out.box.y_center, 0.5)

    def test_count_is_preserved(self) -> None:
        dets = [_det(), _det(), _det()]
        self.assertEqual(len(project_detections(dets, np.eye(4))), 3)
        self.assertEqual(project_detections([], np.eye(4)), [])

    def test_flat_matrix_and_bad_sizes(self) -> None:
        self.assertTrue(np.allclose(as_affine(list(np.eye(4).ravel())), [[1, 0, 0], [0, 1, 0]]))
        with self.assertRaises(ValueError):
            as_affine(np.eye(2))


class TestDetectionsToPixels(unittest.TestCase):
    def test_scales_box_and_keypoints(self) -> None:
        (px,) = detections_to_pixels([_det()], ImageSize(width=200, height=100))
        self.assertTrue(np.allclose(px.as_xyxy(), (80.0, 25.0, 120.0, 55.0)))
        self.assertTrue(np.allclose(px.keypoints, [(90.0, 35.0), (110.0, 50.0)]))
        self.assertEqual(px.score, 0.8)

    def test_clips_to_image(self) -> None:
        det = Detection(score=0.9, box=RelativeBox(0.05, 0.95, 0.2, 0.2))
        (px,) = detections_to_pixels([det], ImageSize(width=100, height=100))
        self.assertEqual(px.x1, 0.0)
        self.assertEqual(px.y2, 100.0)
        (raw,) = detections_to_pixels([det], ImageSize(width=100, height=100), clip=False)
        self.assertAlmostEqual(raw.x1, -5.0)


if __name__ == "__main__":
    unittest.main()
