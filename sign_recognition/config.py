"""Configuration constants for the sign frame recognition pipeline.

This module centralises the well-known artifact locations and the
preprocessing defaults so the library, the console tools and the web bridge
share the same values. Adjust them here or override them with the command
line flags of each entry point.

Este módulo define las rutas y parámetros por defecto que comparten todos los
componentes del reconocedor.
"""

from pathlib import Path

# Root directory for local artefacts (models, downloaded files).
# Directorio base donde viven los modelos exportados y la caché de descargas.
BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"
MODELS_DIR = DATA_DIR / "models"
CACHE_DIR = DATA_DIR / "cache"

# Well-known artifact locations. Either local paths or http(s) URLs.
MODEL_URL = "model/model.json"
LABELS_URL = "model/labels.json"

# Descriptor file name looked up inside model directories.
DESCRIPTOR_NAME = "model.json"
LABELS_NAME = "labels.json"

# Keras files tried, in order, when a layers descriptor names no artifact.
DEFAULT_LAYERS_ARTIFACTS = ("model.keras", "model.h5")

# SavedModel signature keys tried, in order, before the first available one.
SIGNATURE_KEYS = ("serve", "serving_default")

# Square input side used when the model does not declare a usable shape.
DEFAULT_INPUT_SIZE = 64

# Label returned when the arg-max index has no entry in the label table.
UNKNOWN_LABEL = "Unknown"

# Upper bound for indices in a {gesture: index} labels.json map.
MAX_LABEL_INDEX = 10_000

# "stretch" draws the frame onto the square canvas ignoring aspect ratio,
# "pad" letterboxes it around the center with FILL_COLOR (RGB).
RESIZE_POLICY = "stretch"
FILL_COLOR = (0, 0, 0)

# Seconds before an HTTP artifact fetch gives up.
FETCH_TIMEOUT_S = 10.0

# JPEG quality used when frames are turned into data URLs.
JPEG_QUALITY = 85

# Camera defaults for the console tools.
CAMERA_INDEX = 0
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
