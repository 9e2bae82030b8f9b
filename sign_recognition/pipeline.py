"""Caller-owned inference context: lazy model/label load and ``recognize``."""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import config
from .decoder import PredictionResult, decode
from .descriptor import ModelKind
from .errors import LabelLoadError, NoFrameError, TensorBuildError
from .fetcher import ArtifactFetcher
from .frames import FrameSource, extract_frame
from .loader import ModelFactory, ModelHandle, ModelLoader
from .predictor import predict
from .tensors import ResizePolicy, TensorLedger, TensorScope, build_input_tensor

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    FRAME_CAPTURED = "frame_captured"
    TENSOR_BUILT = "tensor_built"
    EXECUTED = "executed"
    DECODED = "decoded"
    RELEASED = "released"


class InferenceContext:
    """Owns one model handle and one label table for its whole lifetime.

    Both are loaded lazily, at most once; a failed model load leaves the
    context unloaded so the next call tries again.
    """

    def __init__(
        self,
        model_url: str = config.MODEL_URL,
        labels_url: str = config.LABELS_URL,
        fetcher: Optional[ArtifactFetcher] = None,
        factories: Optional[Mapping[ModelKind, ModelFactory]] = None,
        resize_policy: ResizePolicy = ResizePolicy(config.RESIZE_POLICY),
        fill_color: Tuple[int, int, int] = config.FILL_COLOR,
        ledger: Optional[TensorLedger] = None,
    ) -> None:
        self.model_url = model_url
        self.labels_url = labels_url
        self.resize_policy = ResizePolicy(resize_policy)
        self.fill_color = tuple(fill_color)
        self.ledger = ledger or TensorLedger()
        self._loader = ModelLoader(fetcher, factories)
        self._handle: Optional[ModelHandle] = None
        self._labels: Optional[List[str]] = None
        self._load_lock: Optional[asyncio.Lock] = None

    @property
    def handle(self) -> Optional[ModelHandle]:
        return self._handle

    @property
    def labels(self) -> List[str]:
        return list(self._labels or [])

    @property
    def ready(self) -> bool:
        return self._handle is not None

    async def initialize(self) -> Tuple[ModelHandle, List[str]]:
        """Load the model and labels if needed and return them."""
        if self._handle is not None and self._labels is not None:
            return self._handle, self._labels

        if self._load_lock is None:
            self._load_lock = asyncio.Lock()
        async with self._load_lock:
            # labels first: they must load even when the model fails
            if self._labels is None:
                self._labels = await self._load_labels()
            if self._handle is None:
                self._handle = await asyncio.to_thread(self._loader.load_model, self.model_url)
        return self._handle, self._labels

    async def _load_labels(self) -> List[str]:
        try:
            return await asyncio.to_thread(self._loader.load_labels, self.labels_url)
        except LabelLoadError as exc:
            logger.warning("%s; continuing with an empty label table", exc)
            return []

    async def recognize(self, source: FrameSource) -> PredictionResult:
        """Classify the still image provided by ``source``."""
        stage = Stage.IDLE
        with TensorScope(self.ledger) as scope:
            try:
                if not self.ready:
                    stage = self._advance(stage, Stage.LOADING)
                handle, labels = await self.initialize()

                image = extract_frame(source)
                if image is None:
                    raise NoFrameError("Invalid input (no camera or frame)")
                stage = self._advance(stage, Stage.FRAME_CAPTURED)

                tensor = await build_input_tensor(image, handle.input_size, self.resize_policy, self.fill_color)
                if tensor is None:
                    raise TensorBuildError("Failed to build input tensor")
                scope.track(tensor)
                stage = self._advance(stage, Stage.TENSOR_BUILT)

                output = scope.track(await predict(handle, tensor, track=scope.track))
                stage = self._advance(stage, Stage.EXECUTED)

                result = decode(output, labels)
                stage = self._advance(stage, Stage.DECODED)
            except Exception as exc:
                logger.error("recognize failed at stage %s: %s", stage.value, exc)
                raise
            finally:
                scope.release()
                self._advance(stage, Stage.RELEASED)
        return result

    @staticmethod
    def _advance(current: Stage, new: Stage) -> Stage:
        logger.debug("stage %s -> %s", current.value, new.value)
        return new

    def snapshot(self) -> Dict[str, Any]:
        handle = self._handle
        return {
            "model_url": self.model_url,
            "labels_url": self.labels_url,
            "ready": handle is not None,
            "model_kind": handle.kind.value if handle else None,
            "input_size": handle.input_size if handle else None,
            "resize_policy": self.resize_policy.value,
            "labels": self.labels,
            "live_tensors": self.ledger.live,
        }
