from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from ..engine import batched_input, check_batch_size
from ..types import TensorShape

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: override auto-selected I/O names if needed
    - max_batch_size: largest batch accepted by `run`
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    max_batch_size: int = 1


def _static_dims(name: str, shape: Sequence[object]) -> TensorShape:
    # Drop the batch axis; the remaining axes must be fixed in the exported model.
    dims = list(shape)[1:]
    if not all(isinstance(d, int) and d > 0 for d in dims):
        raise RuntimeError(f"Tensor {name!r} has dynamic non-batch dimensions {list(shape)}; re-export with static shapes.")
    return tuple(int(d) for d in dims)


class OnnxRuntimeBackend:
    """
    ONNX Runtime engine.

    Expects an NCHW float32 blob and returns the selected output flattened.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        inputs = {i.name: i for i in self.session.get_inputs()}
        outputs = {o.name: o for o in self.session.get_outputs()}
        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        if self.input_name not in inputs:
            raise ValueError(f"Input name {self.input_name!r} not found. Available: {list(inputs)}")
        if self.output_name not in outputs:
            raise ValueError(f"Output name {self.output_name!r} not found. Available: {list(outputs)}")

        self.max_batch_size = int(cfg.max_batch_size)
        self._input_shape = _static_dims(self.input_name, inputs[self.input_name].shape)
        self._output_shape = _static_dims(self.output_name, outputs[self.output_name].shape)
        logger.info(
            "loaded %s (providers=%s, input=%s, output=%s)",
            self.model_path.name,
            list(self.providers_in_use),
            self._input_shape,
            self._output_shape,
        )

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def get_input_shape(self) -> TensorShape:
        return self._input_shape

    def get_output_shape(self) -> TensorShape:
        return self._output_shape

    def run(self, blob: np.ndarray, batch_size: int) -> np.ndarray:
        check_batch_size(batch_size, self.max_batch_size)
        x = batched_input(blob, batch_size, self._input_shape)
        outputs = self.session.run([self.output_name], {self.input_name: x})
        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)
