"""Frame sources and still-image extraction.

A recognition call receives exactly one ``FrameSource``:

- ``DataUrl``: a ``data:image/...;base64,...`` string, e.g. a browser screenshot
- ``VideoHandle``: an OpenCV capture (read once) or an already grabbed frame
- ``Capturable``: a callable that returns a data URL on demand
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import cv2
import numpy as np

from . import config

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image"


@dataclass(frozen=True)
class DataUrl:
    data: str


@dataclass(frozen=True)
class VideoHandle:
    handle: Any


@dataclass(frozen=True)
class Capturable:
    capture: Callable[[], Optional[str]]


FrameSource = Union[DataUrl, VideoHandle, Capturable]


@dataclass(frozen=True)
class EncodedImage:
    """Still image that still needs decoding."""

    data_url: str


@dataclass(frozen=True)
class RawFrame:
    """Decoded BGR ``uint8`` frame, ready to draw."""

    pixels: np.ndarray


StillImage = Union[EncodedImage, RawFrame]


def is_data_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(DATA_URL_PREFIX)


def _frame_from_handle(handle: Any) -> Optional[RawFrame]:
    if isinstance(handle, np.ndarray):
        return RawFrame(handle) if handle.size else None

    read = getattr(handle, "read", None)
    if not callable(read):
        logger.warning("Video handle %r cannot be read", type(handle).__name__)
        return None
    try:
        ret, frame = read()
    except Exception as exc:  # camera drivers raise cv2.error, odd handles return garbage
        logger.error("Video handle read failed: %s", exc)
        return None
    if not ret or not isinstance(frame, np.ndarray) or not frame.size:
        logger.warning("Video handle returned no frame")
        return None
    return RawFrame(frame)


def extract_frame(source: Optional[FrameSource]) -> Optional[StillImage]:
    """Resolve ``source`` into one still image, or ``None`` if there is none."""
    if isinstance(source, DataUrl):
        return EncodedImage(source.data) if is_data_url(source.data) else None

    if isinstance(source, Capturable):
        try:
            data = source.capture()
        except Exception as exc:  # capture wrappers talk to camera drivers
            logger.error("Frame capture failed: %s", exc)
            return None
        return EncodedImage(data) if is_data_url(data) else None

    if isinstance(source, VideoHandle):
        return _frame_from_handle(source.handle)

    return None


def data_url_from_frame(frame: np.ndarray, quality: int = config.JPEG_QUALITY) -> Optional[str]:
    """Encode a BGR frame as a JPEG data URL."""
    ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        return None
    return "data:image/jpeg;base64," + base64.b64encode(buf.tobytes()).decode("ascii")
