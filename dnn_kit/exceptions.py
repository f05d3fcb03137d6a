"""
Exceptions raised by dnn_kit pre/post-processing.

Failures coming out of an inference runtime (CUDA, TensorRT, ONNX Runtime) are
not wrapped: they propagate unmodified to the caller.
"""

from __future__ import annotations

from typing import Optional


class DnnError(Exception):
    """Base exception for dnn_kit errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class UnsupportedOutputFormat(DnnError):
    """Raised when a detector output encoding cannot be decoded."""

    def __init__(self, attributes: int, reason: Optional[str] = None):
        self.attributes = attributes
        message = f"Unsupported detection output with {attributes} attributes"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PreconditionViolation(DnnError, ValueError):
    """Raised when inputs break a documented precondition (caller bug)."""
