from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from ..engine import batched_input, check_batch_size
from ..types import TensorShape

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TensorRTBackendConfig:
    """
    Configuration for TensorRT engine inference.

    Notes:
    - TensorRT engines require a CUDA-capable environment.
    - This backend uses Torch CUDA tensors for device buffers (no PyCUDA).
    - max_batch_size must not exceed the engine's optimization profile.
    """

    device: str = "cuda"
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    output_index: int = 0
    max_batch_size: int = 1


def _torch_dtype_from_trt(trt_dtype) -> "object":
    import torch  # type: ignore

    # Avoid importing tensorrt types at module import time; compare by name.
    name = getattr(trt_dtype, "name", str(trt_dtype)).lower()
    if "float16" in name or "half" in name:
        return torch.float16
    if "int8" in name:
        return torch.int8
    if "int32" in name:
        return torch.int32
    if "bool" in name:
        return torch.bool
    return torch.float32


class TensorRTBackend:
    """
    TensorRT engine runner on the tensor-name API (set_tensor_address + execute_async_v3).

    Input/output shapes are read once from the deserialized engine; a -1 batch
    axis is resolved per call through `set_input_shape`.
    """

    def __init__(self, engine_path: PathLike, cfg: TensorRTBackendConfig = TensorRTBackendConfig()):
        try:
            import tensorrt as trt  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "tensorrt is required for the TensorRT backend. Install NVIDIA TensorRT Python bindings."
            ) from e

        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TensorRT backend buffers. Install with `pip install torch`.") from e

        self._trt = trt
        self._torch = torch

        self.engine_path = Path(engine_path)
        if not self.engine_path.exists():
            raise FileNotFoundError(str(self.engine_path))

        self.device = torch.device(cfg.device)
        if self.device.type != "cuda":
            raise ValueError("TensorRTBackend requires a CUDA device (device='cuda').")
        if not torch.cuda.is_available():  # pragma: no cover
            raise RuntimeError("CUDA is not available in this torch install, but TensorRT requires CUDA.")

        trt_logger = trt.Logger(trt.Logger.WARNING)
        runtime = trt.Runtime(trt_logger)
        engine = runtime.deserialize_cuda_engine(self.engine_path.read_bytes())
        if engine is None:
            raise RuntimeError(f"Failed to deserialize TensorRT engine: {self.engine_path}")

        self.engine = engine
        self.context = engine.create_execution_context()
        if self.context is None:
            raise RuntimeError("Failed to create TensorRT execution context.")

        self.input_name, self.output_names = self._discover_io(cfg.input_name)
        if cfg.output_name is not None:
            if cfg.output_name not in self.output_names:
                raise ValueError(f"Output name {cfg.output_name!r} not found. Available: {self.output_names}")
            self.primary_output = cfg.output_name
        else:
            if cfg.output_index < 0 or cfg.output_index >= len(self.output_names):
                raise IndexError(f"output_index {cfg.output_index} out of range (num outputs={len(self.output_names)}).")
            self.primary_output = self.output_names[cfg.output_index]

        self.max_batch_size = int(cfg.max_batch_size)
        self._input_shape = self._tensor_dims(self.input_name)
        self._output_shape = self._tensor_dims(self.primary_output)
        logger.info(
            "loaded %s (input=%s, output=%s, max_batch=%d)",
            self.engine_path.name,
            self._input_shape,
            self._output_shape,
            self.max_batch_size,
        )

    def _discover_io(self, preferred_input: Optional[str]) -> Tuple[str, List[str]]:
        trt = self._trt
        engine = self.engine

        names = [engine.get_tensor_name(i) for i in range(engine.num_io_tensors)]
        inputs = [n for n in names if engine.get_tensor_mode(n) == trt.TensorIOMode.INPUT]
        outputs = [n for n in names if engine.get_tensor_mode(n) == trt.TensorIOMode.OUTPUT]
        if not inputs:
            raise RuntimeError("TensorRT engine has no inputs.")
        if not outputs:
            raise RuntimeError("TensorRT engine has no outputs.")
        input_name = preferred_input or inputs[0]
        if input_name not in inputs:
            raise ValueError(f"Input name {input_name!r} not found. Available: {inputs}")
        return input_name, outputs

    def _tensor_dims(self, name: str) -> TensorShape:
        dims = [int(d) for d in self.engine.get_tensor_shape(name)][1:]
        if any(d <= 0 for d in dims):
            raise RuntimeError(f"Tensor {name!r} has dynamic non-batch dimensions {dims}.")
        return tuple(dims)

    def get_input_shape(self) -> TensorShape:
        return self._input_shape

    def get_output_shape(self) -> TensorShape:
        return self._output_shape

    def run(self, blob: np.ndarray, batch_size: int) -> np.ndarray:
        torch = self._torch
        check_batch_size(batch_size, self.max_batch_size)
        host = batched_input(blob, batch_size, self._input_shape)

        expected_dtype = _torch_dtype_from_trt(self.engine.get_tensor_dtype(self.input_name))
        x = torch.as_tensor(host, device=self.device).to(dtype=expected_dtype).contiguous()

        ctx = self.context
        ctx.set_input_shape(self.input_name, tuple(host.shape))

        # Allocate outputs on CUDA
        outputs: Dict[str, "object"] = {}
        for name in self.output_names:
            shape = tuple(int(s) for s in ctx.get_tensor_shape(name))
            dtype = _torch_dtype_from_trt(self.engine.get_tensor_dtype(name))
            outputs[name] = torch.empty(size=shape, dtype=dtype, device=self.device)

        ctx.set_tensor_address(self.input_name, int(x.data_ptr()))
        for name, t in outputs.items():
            ctx.set_tensor_address(name, int(t.data_ptr()))

        stream = torch.cuda.current_stream(device=self.device)
        ok = ctx.execute_async_v3(int(stream.cuda_stream))
        if not ok:  # pragma: no cover
            raise RuntimeError("TensorRT execute_async_v3 failed.")
        stream.synchronize()

        y = outputs[self.primary_output]
        return y.detach().to("cpu").float().numpy().reshape(-1)
