"""High-level orchestration to feed sign predictions to web clients."""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from queue import Empty, Full, Queue
from typing import Any, Dict, Iterator, List, Optional

import cv2

from sign_recognition import config as model_config
from sign_recognition.decoder import PredictionResult
from sign_recognition.frames import DataUrl, FrameSource, VideoHandle
from sign_recognition.pipeline import InferenceContext

from . import config

logger = logging.getLogger(__name__)


class GestureInferenceService:
    """Run the inference context on a background loop and broadcast results."""

    def __init__(
        self,
        model_url: str = config.DEFAULT_MODEL_URL,
        labels_url: str = config.DEFAULT_LABELS_URL,
        camera_index: int = config.DEFAULT_CAMERA_INDEX,
        confidence_threshold: float = config.DEFAULT_CONFIDENCE_THRESHOLD,
        prediction_cooldown_s: float = config.DEFAULT_PREDICTION_COOLDOWN_S,
        context: Optional[InferenceContext] = None,
    ) -> None:
        self.context = context or InferenceContext(model_url, labels_url)
        self.camera_index = camera_index
        self.confidence_threshold = confidence_threshold
        self.prediction_cooldown_s = prediction_cooldown_s

        self._listeners: List[Queue] = []
        self._listeners_lock = threading.Lock()
        self._current_prediction: Optional[Dict[str, Any]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self._ready_event = threading.Event()
        self._camera: Optional[cv2.VideoCapture] = None
        self._camera_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start the event loop thread if it is not running."""
        with self._start_lock:
            if self._thread and self._thread.is_alive():
                return

            self._ready_event.clear()
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._run, name="sign-inference", daemon=True)
            self._thread.start()
            # Wait until the loop is running to avoid race conditions
            self._ready_event.wait(timeout=config.LOOP_START_TIMEOUT_S)

    def stop(self) -> None:
        """Stop the event loop, wait for the thread and release the camera."""
        with self._start_lock:
            if self._loop is not None and self._loop.is_running():
                self._loop.call_soon_threadsafe(self._loop.stop)
            if self._thread and self._thread.is_alive():
                self._thread.join(timeout=5)
            self._thread = None
        with self._camera_lock:
            if self._camera is not None:
                self._camera.release()
                self._camera = None

    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def labels(self) -> List[str]:
        """Return the label table, loading the model on first use."""
        self._submit(self.context.initialize())
        return self.context.labels

    def recognize(self, source: FrameSource) -> PredictionResult:
        """Run one recognition and broadcast it to subscribers."""
        result = self._submit(self.context.recognize(source))
        self._publish(result)
        return result

    def recognize_data_url(self, data_url: str) -> PredictionResult:
        return self.recognize(DataUrl(data_url))

    def recognize_camera(self) -> PredictionResult:
        """Grab the current frame from the server camera and recognise it."""
        with self._camera_lock:
            if self._camera is None or not self._camera.isOpened():
                self._camera = cv2.VideoCapture(self.camera_index)
                self._camera.set(cv2.CAP_PROP_FRAME_WIDTH, model_config.FRAME_WIDTH)
                self._camera.set(cv2.CAP_PROP_FRAME_HEIGHT, model_config.FRAME_HEIGHT)
                if not self._camera.isOpened():
                    logger.warning("Failed to open camera %s", self.camera_index)
            ret, frame = self._camera.read()
        return self.recognize(VideoHandle(frame if ret else None))

    def latest_prediction(self) -> Optional[Dict[str, Any]]:
        return self._current_prediction

    def subscribe(self, max_queue: int = 32) -> Queue:
        """Register a listener queue that will receive prediction dictionaries."""
        q: Queue = Queue(maxsize=max_queue)
        with self._listeners_lock:
            self._listeners.append(q)
        return q

    def unsubscribe(self, q: Queue) -> None:
        with self._listeners_lock:
            if q in self._listeners:
                self._listeners.remove(q)

    def iter_predictions(self) -> Iterator[Dict[str, Any]]:
        """Convenience generator yielding predictions for the caller."""
        queue = self.subscribe()
        try:
            while True:
                try:
                    item = queue.get(timeout=1.0)
                except Empty:
                    if not self.running():
                        break
                else:
                    yield item
        finally:
            self.unsubscribe(queue)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run(self) -> None:
        loop = self._loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._ready_event.set)
        try:
            loop.run_forever()
        finally:
            loop.close()

    def _submit(self, coro: Any) -> Any:
        if not self.running():
            self.start()
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _publish(self, result: PredictionResult) -> None:
        if result.confidence < self.confidence_threshold:
            return

        payload = result.to_dict()
        payload["timestamp"] = time.time()

        # Debounce identical predictions within the cooldown window
        if self._current_prediction and self._current_prediction["label"] == payload["label"]:
            elapsed = payload["timestamp"] - self._current_prediction.get("timestamp", 0)
            if elapsed < self.prediction_cooldown_s:
                return

        self._current_prediction = payload
        self._notify_listeners(payload)

    def _notify_listeners(self, payload: Dict[str, Any]) -> None:
        with self._listeners_lock:
            for queue in list(self._listeners):
                try:
                    queue.put_nowait(payload)
                except Full:
                    # Ignore full queues from slow consumers
                    pass

    # For introspection in JSON
    def snapshot(self) -> Dict[str, object]:
        context = self.context.snapshot()
        return {
            "running": self.running(),
            "model_url": context["model_url"],
            "labels_url": context["labels_url"],
            "ready": context["ready"],
            "model_kind": context["model_kind"],
            "input_size": context["input_size"],
            "confidence_threshold": self.confidence_threshold,
            "prediction_cooldown_s": self.prediction_cooldown_s,
            "latest_prediction": self._current_prediction,
            "gestures": context["labels"],
        }
