import math
import unittest

import numpy as np

from pose_kit.anchors import AnchorTable, SsdAnchorsConfig, generate_anchors
from pose_kit.options import pose_detection_anchors_config


class TestSsdAnchors(unittest.TestCase):
    def test_pose_preset_matches_model_box_count(self) -> None:
        anchors = generate_anchors(pose_detection_anchors_config())
        # 28*28*2 + 14*14*2 + 7*7*6
        self.assertEqual(len(anchors), 2254)
        first = anchors[0]
        self.assertAlmostEqual(first.x_center, 0.5 / 28)
        self.assertAlmostEqual(first.y_center, 0.5 / 28)
        self.assertEqual((first.width, first.height), (1.0, 1.0))
        self.assertTrue(all(a.width == 1.0 and a.height == 1.0 for a in anchors))

    def test_generation_is_deterministic(self) -> None:
        cfg = pose_detection_anchors_config()
        self.assertEqual(generate_anchors(cfg), generate_anchors(cfg))
        self.assertEqual(list(AnchorTable(cfg)), list(AnchorTable(cfg)))

    def test_row_order_is_y_then_x(self) -> None:
        cfg = SsdAnchorsConfig(
            num_layers=1,
            min_scale=0.2,
            max_scale=0.4,
            input_size_height=16,
            input_size_width=16,
            strides=(8,),
            interpolated_scale_aspect_ratio=0.0,
        )
        anchors = generate_anchors(cfg)
        centers = [(a.x_center, a.y_center) for a in anchors]
        self.assertEqual(centers, [(0.25, 0.25), (0.75, 0.25), (0.25, 0.75), (0.75, 0.75)])

    def test_scales_with_interpolated_anchor(self) -> None:
        cfg = SsdAnchorsConfig(
            num_layers=1,
            min_scale=0.2,
            max_scale=0.4,
            input_size_height=16,
            input_size_width=16,
            strides=(8,),
            aspect_ratios=(1.0,),
        )
        anchors = generate_anchors(cfg)
        # 2x2 cells, one aspect ratio + one interpolated anchor per cell.
        self.assertEqual(len(anchors), 8)
        self.assertAlmostEqual(anchors[0].width, 0.3)
        self.assertAlmostEqual(anchors[0].height, 0.3)
        self.assertAlmostEqual(anchors[1].width, math.sqrt(0.3))
        self.assertAlmostEqual(anchors[1].height, math.sqrt(0.3))

    def test_aspect_ratio_sizes(self) -> None:
        cfg = SsdAnchorsConfig(
            num_layers=2,
            min_scale=0.2,
            max_scale=0.6,
            input_size_height=32,
            input_size_width=32,
            strides=(16, 32),
            aspect_ratios=(2.0,),
            interpolated_scale_aspect_ratio=0.0,
        )
        anchors = generate_anchors(cfg)
        self.assertEqual(len(anchors), 4 + 1)
        self.assertAlmostEqual(anchors[0].width, 0.2 * math.sqrt(2.0))
        self.assertAlmostEqual(anchors[0].height, 0.2 / math.sqrt(2.0))
        self.assertAlmostEqual(anchors[4].width, 0.6 * math.sqrt(2.0))

    def test_reduce_boxes_in_lowest_layer(self) -> None:
        cfg = SsdAnchorsConfig(
            num_layers=1,
            min_scale=0.2,
            max_scale=0.4,
            input_size_height=8,
            input_size_width=8,
            strides=(8,),
            reduce_boxes_in_lowest_layer=True,
        )
        anchors = generate_anchors(cfg)
        self.assertEqual(len(anchors), 3)
        self.assertAlmostEqual(anchors[0].width, 0.1)

    def test_explicit_feature_map_size(self) -> None:
        cfg = SsdAnchorsConfig(
            num_layers=1,
            min_scale=0.2,
            max_scale=0.4,
            input_size_height=16,
            input_size_width=16,
            strides=(8,),
            interpolated_scale_aspect_ratio=0.0,
            feature_map_height=(1,),
            feature_map_width=(3,),
        )
        anchors = generate_anchors(cfg)
        self.assertEqual(len(anchors), 3)
        self.assertAlmostEqual(anchors[2].x_center, 2.5 / 3)

    def test_inconsistent_strides_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SsdAnchorsConfig(
                num_layers=3,
                min_scale=0.1,
                max_scale=0.7,
                input_size_height=224,
                input_size_width=224,
                strides=(8, 16),
            )
        with self.assertRaises(ValueError):
            SsdAnchorsConfig(
                num_layers=1,
                min_scale=0.1,
                max_scale=0.7,
                input_size_height=224,
                input_size_width=224,
                strides=(0,),
            )

    def test_table_array_is_read_only(self) -> None:
        table = AnchorTable(pose_detection_anchors_config())
        arr = table.as_array()
        self.assertEqual(arr.shape, (2254, 4))
        self.assertEqual(len(table), 2254)
        self.assertEqual(table[0].x_center, float(arr[0, 0]))
        with self.assertRaises(ValueError):
            arr[0, 0] = 1.0
        self.assertTrue(np.allclose(arr[:, 2:], 1.0))


if __name__ == "__main__":
    unittest.main()
