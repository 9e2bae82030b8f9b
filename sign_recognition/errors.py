"""Error kinds raised by the recognition pipeline."""
from __future__ import annotations

from typing import List, Optional


class RecognitionError(Exception):
    """Base class for every failure scoped to a single recognition call."""


class ModelLoadError(RecognitionError):
    """The model descriptor could not be fetched, parsed or loaded."""


class LabelLoadError(RecognitionError):
    """The label table could not be fetched or parsed.

    Never reaches callers of ``recognize``: the loader logs it and continues
    with an empty table.
    """


class NoFrameError(RecognitionError):
    """The frame source produced no usable still image."""


class TensorBuildError(RecognitionError):
    """The still image could not be decoded or turned into a tensor."""


class InferenceError(RecognitionError):
    """Every execution strategy failed for the loaded model."""

    def __init__(self, message: str, failures: Optional[List[str]] = None) -> None:
        self.failures = list(failures or [])
        if self.failures:
            message = f"{message}: " + "; ".join(self.failures)
        super().__init__(message)


class EmptyOutputError(RecognitionError):
    """The model returned nothing that could be decoded into scores."""
