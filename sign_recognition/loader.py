"""Load the classifier and its label table from the well-known artifacts.

Soporta dos representaciones del modelo exportado:
  - SavedModel en carpeta (firma de serving, entradas con nombre)
  - Archivo Keras (.keras / .h5), llamado directamente con ``predict``
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from numbers import Integral
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import tensorflow as tf

from . import config
from .descriptor import ModelDescriptor, ModelKind
from .errors import LabelLoadError, ModelLoadError
from .fetcher import ArtifactFetchError, ArtifactFetcher, is_remote

logger = logging.getLogger(__name__)

ModelFactory = Callable[[Path], Any]


@dataclass(frozen=True)
class ModelHandle:
    """A loaded classifier plus what the pipeline needs to feed it."""

    kind: ModelKind
    model: Any
    input_size: int = config.DEFAULT_INPUT_SIZE
    input_names: Tuple[str, ...] = field(default_factory=tuple)
    source: str = ""

    @property
    def input_name(self) -> Optional[str]:
        """First declared input name without its ``:N`` output suffix."""
        if not self.input_names:
            return None
        return self.input_names[0].split(":")[0] or None


def load_graph_model(model_path: Path) -> Any:
    """Load a SavedModel directory and return its serving signature."""
    saved = tf.saved_model.load(str(model_path))
    for key in config.SIGNATURE_KEYS:
        if key in saved.signatures:
            return saved.signatures[key]
    if saved.signatures:
        logger.warning("No 'serve' or 'serving_default' signature in %s, using the first one", model_path)
        return next(iter(saved.signatures.values()))
    raise ValueError(f"SavedModel at {model_path} exposes no serving signatures")


def load_layers_model(model_path: Path) -> Any:
    return tf.keras.models.load_model(str(model_path), compile=False)


DEFAULT_FACTORIES: Dict[ModelKind, ModelFactory] = {
    ModelKind.GRAPH: load_graph_model,
    ModelKind.LAYERS: load_layers_model,
}


def _shape_of(spec: Any) -> Optional[Tuple[Any, ...]]:
    shape = getattr(spec, "shape", None)
    if shape is None:
        return None
    try:
        return tuple(shape)
    except (TypeError, ValueError):
        # unknown rank
        return None


def declared_inputs(kind: ModelKind, model: Any) -> Tuple[Tuple[str, ...], Optional[Tuple[Any, ...]]]:
    """Return the declared input names and the shape of the first input."""
    if kind is ModelKind.GRAPH:
        try:
            keyword_specs = model.structured_input_signature[1]
        except (AttributeError, IndexError, TypeError):
            keyword_specs = None
        if keyword_specs:
            first = next(iter(keyword_specs))
            return tuple(keyword_specs), _shape_of(keyword_specs[first])

    inputs = getattr(model, "inputs", None) or []
    if not inputs:
        return (), None
    names = tuple(str(t.name) for t in inputs if getattr(t, "name", None))
    return names, _shape_of(inputs[0])


def infer_input_size(shape: Optional[Sequence[Any]], default: int = config.DEFAULT_INPUT_SIZE) -> int:
    """Square input side from a ``[batch, height, width, channels]`` shape."""
    if not shape or len(shape) < 3:
        return default
    height, width = shape[1], shape[2]
    for dim in (height, width):
        if not isinstance(dim, Integral) or isinstance(dim, bool) or dim <= 0:
            return default
    if height != width:
        logger.warning("Model declares a non-square input %sx%s, using %d", height, width, default)
        return default
    return int(height)


def parse_label_table(data: Any) -> List[str]:
    """Turn a parsed ``labels.json`` document into an index-aligned list.

    Accepts a list, a ``{gesture: index}`` map (inverted by index) or any
    other object whose values are used in enumeration order.
    """
    if isinstance(data, list):
        return [str(item) for item in data]
    if not isinstance(data, Mapping):
        raise ValueError(f"labels must be a JSON list or object, got {type(data).__name__}")

    values = list(data.values())
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        if min(values) < 0 or max(values) >= config.MAX_LABEL_INDEX:
            raise ValueError(f"label indices must lie in [0, {config.MAX_LABEL_INDEX})")
        table = [""] * (max(values) + 1)
        for gesture, idx in data.items():
            table[idx] = str(gesture)
        return table
    return [str(value) for value in values]


class ModelLoader:
    """Fetch the descriptor, pick a loading strategy and inspect the inputs."""

    def __init__(
        self,
        fetcher: Optional[ArtifactFetcher] = None,
        factories: Optional[Mapping[ModelKind, ModelFactory]] = None,
    ) -> None:
        self.fetcher = fetcher or ArtifactFetcher()
        self.factories = dict(DEFAULT_FACTORIES)
        if factories:
            self.factories.update(factories)

    def load_model(self, model_url: str) -> ModelHandle:
        logger.info("Checking model format: %s", model_url)
        try:
            descriptor = ModelDescriptor.from_json(self.fetcher.fetch_json(model_url))
        except (OSError, ValueError) as exc:
            raise ModelLoadError(f"Failed to load model from {model_url}: {exc}") from exc

        if descriptor.kind is not None:
            logger.info("Detected %s model", descriptor.kind.value)
            kinds = [descriptor.kind]
        else:
            kinds = [ModelKind.GRAPH, ModelKind.LAYERS]

        failures: List[str] = []
        for kind in kinds:
            for location in self._candidates(model_url, descriptor, kind):
                try:
                    model = self._load(kind, location)
                except Exception as exc:  # TF and Keras raise a wide range of types here
                    logger.debug("Loading %s model from %s failed: %s", kind.value, location, exc)
                    failures.append(f"{kind.value} {location}: {exc}")
                    continue

                names, shape = declared_inputs(kind, model)
                handle = ModelHandle(
                    kind=kind,
                    model=model,
                    input_size=infer_input_size(shape),
                    input_names=names,
                    source=location,
                )
                logger.info("Model loaded (%s). INPUT_SIZE=%d", kind.value, handle.input_size)
                return handle

        raise ModelLoadError(f"Failed to load model from {model_url}: " + "; ".join(failures))

    def load_labels(self, labels_url: str) -> List[str]:
        try:
            labels = parse_label_table(self.fetcher.fetch_json(labels_url))
        except (OSError, ValueError) as exc:
            raise LabelLoadError(f"Failed to load labels from {labels_url}: {exc}") from exc
        logger.info("Labels loaded: %d", len(labels))
        return labels

    def _candidates(self, model_url: str, descriptor: ModelDescriptor, kind: ModelKind) -> List[str]:
        if descriptor.artifact:
            return [self.fetcher.resolve(model_url, descriptor.artifact)]
        if kind is ModelKind.GRAPH:
            return [self.fetcher.resolve(model_url, ".")]
        return [self.fetcher.resolve(model_url, name) for name in config.DEFAULT_LAYERS_ARTIFACTS]

    def _load(self, kind: ModelKind, location: str) -> Any:
        if kind is ModelKind.GRAPH and is_remote(location):
            raise ArtifactFetchError("remote SavedModel directories are not supported")
        path = self.fetcher.localize(location)
        if not path.exists():
            raise FileNotFoundError(f"{path} does not exist")
        return self.factories[kind](path)
