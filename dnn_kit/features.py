from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import cv2
import numpy as np

from .blob import blob_from_images
from .engine import InferenceEngine
from .exceptions import PreconditionViolation
from .types import InputLayout, as_tensor_shape

logger = logging.getLogger(__name__)


class FeatureExtractor:
    """
    Embedding model pipeline: resize -> pack -> engine, no post-processing.

    Images are resized straight to the model input size (no letterbox), so the
    aspect ratio is not preserved. Returned embeddings are the engine output as is,
    flat, ``batch * embedding_dim`` values.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        *,
        std: Sequence[float] = (1.0, 1.0, 1.0),
        mean: Sequence[float] = (0.0, 0.0, 0.0),
    ):
        self.engine = engine
        self.layout = InputLayout.from_shape(engine.get_input_shape())
        self.output_shape = as_tensor_shape(engine.get_output_shape())
        self.std = tuple(std)
        self.mean = tuple(mean)

    @property
    def embedding_dim(self) -> int:
        return int(np.prod(self.output_shape))

    def _resize(self, image: np.ndarray) -> np.ndarray:
        if image is None or not hasattr(image, "shape") or image.ndim != 3:
            raise PreconditionViolation(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")
        if image.shape[:2] == (self.layout.height, self.layout.width):
            return image
        return cv2.resize(image, self.layout.size, interpolation=cv2.INTER_AREA)

    def predict(
        self,
        image: np.ndarray,
        std: Optional[Sequence[float]] = None,
        mean: Optional[Sequence[float]] = None,
    ) -> np.ndarray:
        return self.predict_batch([image], std=std, mean=mean)

    def predict_batch(
        self,
        images: Sequence[np.ndarray],
        std: Optional[Sequence[float]] = None,
        mean: Optional[Sequence[float]] = None,
    ) -> np.ndarray:
        if len(images) == 0:
            raise PreconditionViolation("predict_batch() needs at least one image.")

        resized: List[np.ndarray] = [self._resize(img) for img in images]
        blob = blob_from_images(
            resized,
            std=self.std if std is None else std,
            mean=self.mean if mean is None else mean,
            swap_rb=True,
            normalize=True,
        )
        embeddings = self.engine.run(blob, len(resized))
        logger.debug("embedded %d image(s) -> %d values", len(resized), np.size(embeddings))
        return embeddings
