import argparse
import importlib.util
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np

from dnn_kit.config import PipelineConfig
from dnn_kit.exceptions import PreconditionViolation, UnsupportedOutputFormat
from dnn_kit.features import FeatureExtractor
from dnn_kit.postprocess import YoloPostConfig
from dnn_kit.runtime import Yolo, find_project_root, load_engine, load_from_config, resolve_path
from tests.fakes import FakeEngine, detector_output


class TestYolo(unittest.TestCase):
    def test_letterbox_decode_round_trip(self) -> None:
        # 200x100 image into 64x64: scale 0.32, 16 rows of padding on top.
        # Original box (40, 20)-(120, 60) lands at (12.8, 22.4)-(38.4, 35.2).
        raw = detector_output([(25.6, 28.8, 25.6, 12.8, 0.9)], num_candidates=8)
        engine = FakeEngine((3, 64, 64), (5, 8), output=raw)
        yolo = Yolo(engine)

        image = np.zeros((100, 200, 3), dtype=np.uint8)
        dets = yolo.predict(image)

        self.assertEqual(len(dets), 1)
        for got, want in zip(dets[0].as_xyxy(), (40, 20, 120, 60)):
            self.assertLessEqual(abs(got - want), 1)

    def test_engine_receives_packed_letterboxed_blob(self) -> None:
        engine = FakeEngine((3, 64, 64), (5, 8))
        yolo = Yolo(engine)
        image = np.full((100, 200, 3), 255, dtype=np.uint8)
        self.assertEqual(yolo.predict(image), [])

        blob, batch_size = engine.calls[0]
        self.assertEqual(batch_size, 1)
        self.assertEqual(blob.shape, (1, 3, 64, 64))
        self.assertTrue(np.allclose(blob[0, :, 0, :], 114 / 255.0))
        self.assertTrue(np.allclose(blob[0, :, 32, :], 1.0))

    def test_predict_batch(self) -> None:
        img0 = detector_output([(32, 32, 10, 10, 0.9)], num_candidates=4)
        img1 = detector_output([(10, 40, 4, 4, 0.35), (50, 40, 4, 4, 0.8)], num_candidates=4)
        engine = FakeEngine((3, 64, 64), (5, 4), output=np.concatenate([img0, img1]))
        yolo = Yolo(engine)

        images = [np.zeros((64, 64, 3), dtype=np.uint8)] * 2
        results = yolo.predict_batch(images, conf_threshold=0.3)

        self.assertEqual(engine.calls[0][1], 2)
        self.assertEqual(engine.calls[0][0].shape, (2, 3, 64, 64))
        self.assertEqual([d.as_xyxy() for d in results[0]], [(27, 27, 37, 37)])
        self.assertEqual([d.as_xyxy() for d in results[1]], [(48, 38, 52, 42), (8, 38, 12, 42)])

    def test_predict_batch_mismatched_sizes(self) -> None:
        engine = FakeEngine((3, 64, 64), (5, 4))
        yolo = Yolo(engine)
        images = [np.zeros((64, 64, 3), dtype=np.uint8), np.zeros((32, 64, 3), dtype=np.uint8)]
        with self.assertRaises(PreconditionViolation):
            yolo.predict_batch(images)
        self.assertEqual(engine.calls, [])

    def test_predict_batch_empty(self) -> None:
        yolo = Yolo(FakeEngine((3, 64, 64), (5, 4)))
        with self.assertRaises(PreconditionViolation):
            yolo.predict_batch([])

    def test_class_score_output_rejected(self) -> None:
        yolo = Yolo(FakeEngine((3, 32, 32), (6, 4)))
        with self.assertRaises(UnsupportedOutputFormat):
            yolo.predict(np.zeros((32, 32, 3), dtype=np.uint8))

    def test_rejects_non_rgb_input_shape(self) -> None:
        with self.assertRaises(PreconditionViolation):
            Yolo(FakeEngine((1, 64, 64), (5, 4)))

    def test_default_post_config_not_shared(self) -> None:
        a = Yolo(FakeEngine((3, 64, 64), (5, 4)))
        b = Yolo(FakeEngine((3, 64, 64), (5, 4)))
        self.assertIsNot(a.post.cfg, b.post.cfg)
        self.assertEqual(a.post.cfg, YoloPostConfig())


class TestLoaders(unittest.TestCase):
    def test_unknown_extension(self) -> None:
        with self.assertRaises(ValueError):
            load_engine("/tmp/model.bin")

    def test_resolve_path_against_project_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "pyproject.toml").write_text("", encoding="utf-8")
            nested = root / "a" / "b"
            nested.mkdir(parents=True)
            self.assertEqual(find_project_root(nested), root)
            self.assertEqual(resolve_path("models/x.onnx", root=root), root / "models" / "x.onnx")
            self.assertEqual(resolve_path("/abs/x.onnx"), Path("/abs/x.onnx"))

    def test_load_from_config_detector(self) -> None:
        engine = FakeEngine((3, 64, 64), (5, 4))
        cfg = PipelineConfig(model_path="m.engine", conf_threshold=0.4, iou_threshold=0.6, max_batch_size=4)
        with mock.patch("dnn_kit.runtime.load_engine", return_value=engine) as load:
            pipeline = load_from_config(cfg)
        self.assertIsInstance(pipeline, Yolo)
        self.assertEqual(pipeline.post.cfg, YoloPostConfig(conf_threshold=0.4, iou_threshold=0.6))
        self.assertEqual(load.call_args.kwargs["max_batch_size"], 4)

    def test_load_from_config_features(self) -> None:
        engine = FakeEngine((3, 8, 8), (16,))
        cfg = PipelineConfig(model_path="m.onnx", kind="features", mean=(0.5, 0.5, 0.5))
        with mock.patch("dnn_kit.runtime.load_engine", return_value=engine):
            pipeline = load_from_config(cfg)
        self.assertIsInstance(pipeline, FeatureExtractor)
        self.assertEqual(pipeline.mean, (0.5, 0.5, 0.5))


class TestRunDetectorScript(unittest.TestCase):
    def setUp(self) -> None:
        path = Path(__file__).resolve().parents[1] / "Scripts" / "run_detector.py"
        spec = importlib.util.spec_from_file_location("run_detector", path)
        self.script = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(self.script)

    def _build_from(self, cfg: PipelineConfig):
        args = argparse.Namespace(config="pipeline.json", model=None)
        with mock.patch.object(self.script, "load_pipeline_config", return_value=cfg), mock.patch(
            "dnn_kit.runtime.load_engine", return_value=FakeEngine((3, 64, 64), (5, 4))
        ):
            return self.script._build(args)

    def test_build_from_detector_config(self) -> None:
        pipeline = self._build_from(PipelineConfig(model_path="m.onnx", conf_threshold=0.3))
        self.assertIsInstance(pipeline, Yolo)
        self.assertEqual(pipeline.post.cfg.conf_threshold, 0.3)

    def test_build_rejects_features_config(self) -> None:
        with self.assertRaises(ValueError):
            self._build_from(PipelineConfig(model_path="m.onnx", kind="features"))


if __name__ == "__main__":
    unittest.main()
