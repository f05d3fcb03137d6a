from __future__ import annotations

import argparse
import logging
from pathlib import Path

import cv2

from dnn_kit import (
    DnnError,
    Yolo,
    YoloPostConfig,
    draw_detections,
    load_engine,
    load_from_config,
    load_pipeline_config,
)
from dnn_kit.log import setup_logging

logger = logging.getLogger("run_detector")


def _build(args: argparse.Namespace) -> Yolo:
    if args.config is not None:
        cfg = load_pipeline_config(Path(args.config))
        if cfg.kind != "detector":
            raise ValueError(f"Config {args.config} describes a {cfg.kind!r} model, expected 'detector'.")
        return load_from_config(cfg)

    if args.model is None:
        raise ValueError("Pass a model path or --config.")
    engine = load_engine(args.model, backend=args.backend, max_batch_size=int(args.maxbatch))
    return Yolo(engine, post_cfg=YoloPostConfig(conf_threshold=float(args.conf), iou_threshold=float(args.iou)))


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a single-class YOLO engine on one image.")
    parser.add_argument("model", nargs="?", default=None, help="Model path (.onnx/.engine).")
    parser.add_argument("input", help="Input image path.")
    parser.add_argument("--config", default=None, help="Pipeline config JSON (overrides model/thresholds).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / tensorrt.")
    parser.add_argument("-b", "--batch", type=int, default=1, help="Replicate the image into a batch of N.")
    parser.add_argument("-m", "--maxbatch", type=int, default=1, help="Max batch size of the model.")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--save", default=None, help="Write an annotated copy of the image here.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...).")
    args = parser.parse_args()

    setup_logging(args.log_level)
    if args.batch < 1:
        parser.error("--batch must be >= 1")
    if args.batch > args.maxbatch:
        parser.error("--batch must be <= --maxbatch")

    try:
        image = cv2.imread(args.input)
        if image is None:
            raise FileNotFoundError(f"Could not read image at path: {args.input}")

        yolo = _build(args)
        if args.batch == 1:
            results = [yolo.predict(image)]
        else:
            results = yolo.predict_batch([image] * int(args.batch))

        for b, detections in enumerate(results):
            for det in detections:
                print(b, f"{det.score:.4f}", det.as_xyxy())
        logger.info("%d detection(s) on image 0", len(results[0]))

        if args.save:
            cv2.imwrite(args.save, draw_detections(image, results[0]))
    except (DnnError, RuntimeError, ImportError, OSError, ValueError) as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
