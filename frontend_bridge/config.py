"""Configuration helpers for the frontend bridge service."""
from __future__ import annotations

from sign_recognition import config as model_config

# Well-known artifact locations served to the inference context.
DEFAULT_MODEL_URL = model_config.MODEL_URL
DEFAULT_LABELS_URL = model_config.LABELS_URL

# Minimum confidence before a prediction is broadcast to stream subscribers.
# Direct /recognize responses are always returned.
DEFAULT_CONFIDENCE_THRESHOLD = 0.0

# Identical labels inside this window are not broadcast twice.
DEFAULT_PREDICTION_COOLDOWN_S = 0.5

# Camera index used by OpenCV for server-side captures.
DEFAULT_CAMERA_INDEX = model_config.CAMERA_INDEX

# Seconds to wait for the inference loop thread to come up.
LOOP_START_TIMEOUT_S = 10

# Socket.IO namespace for gesture events.
SOCKETIO_NAMESPACE = "/gestures"

# Event name emitted over Socket.IO when a new gesture is detected.
SOCKETIO_EVENT = "gesture_prediction"

# Event name emitted back to the sender when its frame could not be recognised.
SOCKETIO_ERROR_EVENT = "recognition_error"

# Event source retry interval in milliseconds for SSE clients.
SSE_RETRY_MS = 2_000
