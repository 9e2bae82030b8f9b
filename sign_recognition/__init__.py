"""Recognise hand signs in still camera frames with a pretrained classifier."""

from .decoder import PredictionResult
from .errors import (
    EmptyOutputError,
    InferenceError,
    LabelLoadError,
    ModelLoadError,
    NoFrameError,
    RecognitionError,
    TensorBuildError,
)
from .frames import Capturable, DataUrl, FrameSource, VideoHandle
from .pipeline import InferenceContext

__all__ = [
    "Capturable",
    "DataUrl",
    "EmptyOutputError",
    "FrameSource",
    "InferenceContext",
    "InferenceError",
    "LabelLoadError",
    "ModelLoadError",
    "NoFrameError",
    "PredictionResult",
    "RecognitionError",
    "TensorBuildError",
    "VideoHandle",
]
