"""Shared fakes and helpers for the recognition tests."""

import base64
import json
from pathlib import Path

import cv2
import numpy as np
import pytest

from sign_recognition.descriptor import ModelKind
from sign_recognition.fetcher import ArtifactFetcher
from sign_recognition.pipeline import InferenceContext


class CountingFetcher(ArtifactFetcher):
    """Real local fetcher that records every JSON fetch."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls = []

    def fetch_json(self, location):
        self.calls.append(str(location))
        return super().fetch_json(location)

    def count(self, name):
        return sum(1 for call in self.calls if call.endswith(name))


class FakeSpec:
    def __init__(self, shape, name=""):
        self.shape = shape
        self.name = name


class FakeKerasModel:
    """Looks like a Keras model to the loader and the predictor."""

    def __init__(self, scores, input_shape=(None, 64, 64, 3)):
        self.scores = scores
        self.inputs = [FakeSpec(input_shape, "input_layer")]
        self.seen_shapes = []

    def predict(self, x, verbose=0):
        self.seen_shapes.append(tuple(x.shape))
        return np.array([self.scores], dtype=np.float32)


class FakeSignature:
    """Looks like a SavedModel serving signature."""

    def __init__(
        self,
        scores=None,
        input_name="image",
        input_shape=(None, 64, 64, 3),
        fail_named=False,
        fail_positional=False,
        output=None,
    ):
        self.scores = scores if scores is not None else [0.1, 0.9, 0.05]
        self.structured_input_signature = ((), {input_name: FakeSpec(input_shape)})
        self.fail_named = fail_named
        self.fail_positional = fail_positional
        self.output = output
        self.calls = []

    def __call__(self, *args, **kwargs):
        if kwargs:
            self.calls.append(("named", tuple(kwargs)))
            if self.fail_named:
                raise ValueError("unexpected keyword argument")
            tensor = next(iter(kwargs.values()))
        else:
            self.calls.append(("positional", ()))
            if self.fail_positional:
                raise TypeError("signature takes keyword arguments only")
            tensor = args[0]
        self.last_shape = tuple(int(d) for d in tensor.shape)
        if self.output is not None:
            return self.output
        return {"output_0": np.array([self.scores], dtype=np.float32)}


def make_frame(width=80, height=60, color=(0, 0, 255)):
    return np.full((height, width, 3), color, dtype=np.uint8)


def make_data_url(width=80, height=60, color=(0, 0, 255)):
    ok, buf = cv2.imencode(".png", make_frame(width, height, color))
    assert ok
    return "data:image/png;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


def write_artifacts(directory: Path, descriptor=None, labels=("a", "b", "c")):
    """Write model.json / labels.json; a str descriptor is written verbatim."""
    directory.mkdir(parents=True, exist_ok=True)
    if descriptor is None:
        descriptor = {"format": "graph-model"}
    text = descriptor if isinstance(descriptor, str) else json.dumps(descriptor)
    (directory / "model.json").write_text(text, encoding="utf-8")
    if labels is not None:
        document = labels if isinstance(labels, dict) else list(labels)
        (directory / "labels.json").write_text(json.dumps(document), encoding="utf-8")
    return str(directory / "model.json"), str(directory / "labels.json")


def build_context(directory: Path, model, descriptor=None, labels=("a", "b", "c"), **kwargs):
    """Context over real files in ``directory`` whose factories return ``model``."""
    model_url, labels_url = write_artifacts(directory, descriptor, labels)
    (directory / "model.keras").touch()
    fetcher = CountingFetcher(cache_dir=directory / "cache")
    loads = []

    def factory(path):
        loads.append(path)
        return model

    context = InferenceContext(
        model_url,
        labels_url,
        fetcher=fetcher,
        factories={ModelKind.GRAPH: factory, ModelKind.LAYERS: factory},
        **kwargs,
    )
    context.loads = loads
    return context, fetcher


@pytest.fixture
def data_url():
    return make_data_url()
