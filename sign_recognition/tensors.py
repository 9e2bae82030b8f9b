"""Input tensor construction and transient tensor bookkeeping."""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import threading
from enum import Enum
from typing import Any, List, Optional, Tuple

import cv2
import numpy as np

from . import config
from .frames import EncodedImage, RawFrame, StillImage

logger = logging.getLogger(__name__)


class ResizePolicy(str, Enum):
    STRETCH = "stretch"
    PAD = "pad"


class TensorLedger:
    """Counts transient tensors that are currently held by recognition calls."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live = 0
        self._allocated = 0

    @property
    def live(self) -> int:
        return self._live

    @property
    def allocated(self) -> int:
        return self._allocated

    def acquire(self) -> None:
        with self._lock:
            self._live += 1
            self._allocated += 1

    def release(self) -> None:
        with self._lock:
            self._live -= 1


class TensorScope:
    """Tracks the tensors of one call and releases all of them on exit."""

    def __init__(self, ledger: TensorLedger) -> None:
        self._ledger = ledger
        self._held: List[Any] = []

    def track(self, tensor: Any) -> Any:
        self._held.append(tensor)
        self._ledger.acquire()
        return tensor

    def release(self) -> None:
        while self._held:
            self._held.pop()
            self._ledger.release()

    def __enter__(self) -> "TensorScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def decode_data_url(data_url: str) -> Optional[np.ndarray]:
    """Decode a base64 data URL into a BGR frame."""
    _, _, payload = data_url.partition(",")
    try:
        raw = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        logger.error("Image load error: %s", exc)
        return None
    if not raw:
        logger.error("Image load error: empty payload")
        return None
    frame = cv2.imdecode(np.frombuffer(raw, np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        logger.error("Image load error: undecodable image data")
    return frame


def fit_to_square(
    frame: np.ndarray,
    size: int,
    policy: ResizePolicy = ResizePolicy.STRETCH,
    fill: Tuple[int, int, int] = config.FILL_COLOR,
) -> np.ndarray:
    """Draw ``frame`` (RGB) onto a ``size`` x ``size`` canvas."""
    if policy is ResizePolicy.STRETCH:
        return cv2.resize(frame, (size, size), interpolation=cv2.INTER_LINEAR)

    height, width = frame.shape[:2]
    scale = size / max(height, width)
    new_w = max(1, int(round(width * scale)))
    new_h = max(1, int(round(height * scale)))
    resized = cv2.resize(frame, (new_w, new_h), interpolation=cv2.INTER_LINEAR)

    canvas = np.empty((size, size, 3), dtype=frame.dtype)
    canvas[:] = fill
    top = (size - new_h) // 2
    left = (size - new_w) // 2
    canvas[top : top + new_h, left : left + new_w] = resized
    return canvas


def frame_to_tensor(
    frame: np.ndarray,
    size: int,
    policy: ResizePolicy = ResizePolicy.STRETCH,
    fill: Tuple[int, int, int] = config.FILL_COLOR,
) -> np.ndarray:
    if frame.ndim not in (2, 3) or (frame.ndim == 3 and frame.shape[2] not in (1, 3, 4)):
        raise ValueError(f"unsupported frame shape {frame.shape}")
    if frame.ndim == 3 and frame.shape[2] == 1:
        frame = frame[:, :, 0]
    if frame.ndim == 2:
        frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    elif frame.shape[2] == 4:
        frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    canvas = fit_to_square(rgb, size, policy, fill)
    tensor = canvas.astype(np.float32) / 255.0
    return np.expand_dims(tensor, axis=0)


async def build_input_tensor(
    image: StillImage,
    size: int,
    policy: ResizePolicy = ResizePolicy.STRETCH,
    fill: Tuple[int, int, int] = config.FILL_COLOR,
) -> Optional[np.ndarray]:
    """Build the ``[1, size, size, 3]`` float tensor for ``image``.

    Returns ``None`` when the image cannot be decoded.
    """
    if isinstance(image, EncodedImage):
        frame = await asyncio.to_thread(decode_data_url, image.data_url)
    elif isinstance(image, RawFrame):
        frame = image.pixels
    else:
        frame = None

    if frame is None or not frame.size:
        return None
    try:
        return frame_to_tensor(frame, size, policy, fill)
    except (cv2.error, ValueError) as exc:
        logger.error("Could not draw frame of shape %s: %s", frame.shape, exc)
        return None
