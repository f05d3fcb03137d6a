from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .exceptions import PreconditionViolation, UnsupportedOutputFormat

# Engine tensor shape without the batch axis:
#   input (C, H, W), detector output (attributes, candidates), feature output (dim,)
TensorShape = Tuple[int, ...]


def as_tensor_shape(dims: Sequence[int]) -> TensorShape:
    return tuple(int(d) for d in dims)


@dataclass(frozen=True)
class InputLayout:
    """
    Channel-planar model input layout, read from an engine input shape.
    """

    channels: int
    height: int
    width: int

    @classmethod
    def from_shape(cls, shape: Sequence[int]) -> "InputLayout":
        dims = as_tensor_shape(shape)
        if len(dims) != 3:
            raise PreconditionViolation(f"Expected input shape (C, H, W), got {dims}")
        c, h, w = dims
        if c != 3:
            raise PreconditionViolation(f"Only 3-channel inputs are supported, got {c} channels")
        if h <= 0 or w <= 0:
            raise PreconditionViolation(f"Input height/width must be positive, got {dims}")
        return cls(channels=c, height=h, width=w)

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), OpenCV order."""
        return self.width, self.height

    @property
    def plane_length(self) -> int:
        return self.height * self.width

    def packed_length(self, batch_size: int) -> int:
        return batch_size * self.channels * self.plane_length


class DetectionFormat(enum.Enum):
    # [xc, yc, w, h, conf]
    XYWH_CONF = "xywh_conf"
    # [xc, yc, w, h, conf, class scores...]; not implemented
    XYWH_CONF_CLASSES = "xywh_conf_classes"

    @classmethod
    def from_attributes(cls, attributes: int) -> "DetectionFormat":
        if attributes < 5:
            raise UnsupportedOutputFormat(attributes, "at least 5 attributes (xc, yc, w, h, conf) are required")
        if attributes == 5:
            return cls.XYWH_CONF
        return cls.XYWH_CONF_CLASSES


@dataclass
class Detection:
    """
    Final detection in original image pixels (corner form).
    """

    x1: int
    y1: int
    x2: int
    y2: int
    score: float

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.x1, self.y1, self.x2, self.y2

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1


@dataclass(frozen=True)
class Candidates:
    """
    Decoded boxes awaiting suppression.

    boxes: (K, 4) int32 xyxy in original image space
    scores: (K,) float32
    """

    boxes: np.ndarray
    scores: np.ndarray

    @classmethod
    def empty(cls) -> "Candidates":
        return cls(boxes=np.empty((0, 4), dtype=np.int32), scores=np.empty((0,), dtype=np.float32))

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    def to_detections(self) -> List[Detection]:
        return [
            Detection(x1=int(x1), y1=int(y1), x2=int(x2), y2=int(y2), score=float(score))
            for (x1, y1, x2, y2), score in zip(self.boxes, self.scores)
        ]
