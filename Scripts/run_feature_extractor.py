from __future__ import annotations

import argparse
import logging

import cv2

from dnn_kit import DnnError, load_feature_extractor
from dnn_kit.log import setup_logging

logger = logging.getLogger("run_feature_extractor")


def _parse_triplet(value: str) -> tuple:
    parts = [float(v) for v in value.split(",")]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError("expected 3 comma-separated numbers")
    return tuple(parts)


def main() -> int:
    parser = argparse.ArgumentParser(description="Embed one image (replicated into a batch) with a feature model.")
    parser.add_argument("model", help="Model path (.onnx/.engine).")
    parser.add_argument("input", help="Input image path.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / tensorrt.")
    parser.add_argument("-b", "--batch", type=int, default=2, help="Batch size.")
    parser.add_argument("-m", "--maxbatch", type=int, default=512, help="Max batch size of the model.")
    parser.add_argument("--std", type=_parse_triplet, default=(1.0, 1.0, 1.0), help="Per-channel std, e.g. 0.229,0.224,0.225")
    parser.add_argument("--mean", type=_parse_triplet, default=(0.0, 0.0, 0.0), help="Per-channel mean, e.g. 0.485,0.456,0.406")
    parser.add_argument("--show", type=int, default=10, help="Values printed per embedding.")
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

        model = load_feature_extractor(
            args.model,
            std=args.std,
            mean=args.mean,
            backend=args.backend,
            max_batch_size=int(args.maxbatch),
        )
        embeddings = model.predict_batch([image] * int(args.batch))
    except (DnnError, RuntimeError, ImportError, OSError, ValueError) as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    dim = model.embedding_dim
    print(embeddings.size)
    for b in range(int(args.batch)):
        row = embeddings[b * dim : b * dim + int(args.show)]
        print(" ".join(f"{v:.6f}" for v in row))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
