"""Execute a loaded model on one input tensor.

Each representation has an ordered list of execution strategies. They are
tried in sequence, the first success wins, and ``InferenceError`` lists every
failure when none succeeds.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

import numpy as np
import tensorflow as tf

from .descriptor import ModelKind
from .errors import InferenceError
from .loader import ModelHandle

logger = logging.getLogger(__name__)

Track = Callable[[Any], Any]


def _untracked(tensor: Any) -> Any:
    return tensor


class ExecutionStrategy:
    name = "strategy"

    def run(self, model: Any, tensor: np.ndarray, track: Track = _untracked) -> Any:
        raise NotImplementedError


class DirectCall(ExecutionStrategy):
    """Single forward pass on a Keras-style model."""

    name = "direct"

    def run(self, model: Any, tensor: np.ndarray, track: Track = _untracked) -> Any:
        if hasattr(model, "predict"):
            return model.predict(tensor, verbose=0)
        return model(tensor)


class NamedInput(ExecutionStrategy):
    """Call a serving signature with ``{input_name: tensor}``."""

    def __init__(self, input_name: str) -> None:
        self.input_name = input_name
        self.name = f"named:{input_name}"

    def run(self, model: Any, tensor: np.ndarray, track: Track = _untracked) -> Any:
        inputs = track(tf.constant(tensor, dtype=tf.float32))
        return model(**{self.input_name: inputs})


class PositionalInput(ExecutionStrategy):
    """Call a serving signature with the tensor as its only argument."""

    name = "positional"

    def run(self, model: Any, tensor: np.ndarray, track: Track = _untracked) -> Any:
        return model(track(tf.constant(tensor, dtype=tf.float32)))


def strategies_for(handle: ModelHandle) -> List[ExecutionStrategy]:
    if handle.kind is ModelKind.LAYERS:
        return [DirectCall()]
    strategies: List[ExecutionStrategy] = []
    if handle.input_name:
        strategies.append(NamedInput(handle.input_name))
    strategies.append(PositionalInput())
    return strategies


async def predict(handle: ModelHandle, tensor: np.ndarray, track: Optional[Track] = None) -> Any:
    """Run ``tensor`` through ``handle`` and return the raw model output.

    ``track`` is called with every intermediate tensor a strategy creates so
    the caller can release it together with the input and output.
    """
    track = track or _untracked
    failures: List[str] = []
    for strategy in strategies_for(handle):
        try:
            output = await asyncio.to_thread(strategy.run, handle.model, tensor, track)
        except Exception as exc:  # any TF / Keras execution failure moves on to the next strategy
            logger.warning("Execution strategy %s failed: %s", strategy.name, exc)
            failures.append(f"{strategy.name}: {exc}")
            continue
        if failures:
            logger.info("Execution strategy %s succeeded after %d failure(s)", strategy.name, len(failures))
        return output
    raise InferenceError("All execution strategies failed", failures)
