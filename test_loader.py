"""Tests for descriptor parsing, model loading and label tables."""

import json

import pytest

from conftest import CountingFetcher, FakeKerasModel, FakeSignature, FakeSpec, write_artifacts
from sign_recognition.descriptor import ModelDescriptor, ModelKind, kind_from_format, write_descriptor
from sign_recognition.errors import LabelLoadError, ModelLoadError
from sign_recognition.loader import (
    ModelHandle,
    ModelLoader,
    declared_inputs,
    infer_input_size,
    parse_label_table,
)


def make_loader(tmp_path, graph=None, layers=None):
    loads = []

    def factory_for(kind, target):
        def factory(path):
            loads.append((kind, path))
            if isinstance(target, Exception):
                raise target
            return target

        return factory

    factories = {}
    if graph is not None:
        factories[ModelKind.GRAPH] = factory_for(ModelKind.GRAPH, graph)
    if layers is not None:
        factories[ModelKind.LAYERS] = factory_for(ModelKind.LAYERS, layers)
    loader = ModelLoader(CountingFetcher(cache_dir=tmp_path / "cache"), factories)
    return loader, loads


class TestInputSize:
    def test_square_shape(self):
        assert infer_input_size((None, 96, 96, 3)) == 96

    def test_non_square_falls_back(self):
        assert infer_input_size((None, 64, 32, 3)) == 64

    @pytest.mark.parametrize("shape", [None, (), (None, 64), (None, None, None, 3), (None, 0, 0, 3)])
    def test_missing_or_malformed_falls_back(self, shape):
        assert infer_input_size(shape) == 64

    def test_custom_default(self):
        assert infer_input_size(None, default=128) == 128


class TestLabelTable:
    def test_list(self):
        assert parse_label_table(["hola", "chau"]) == ["hola", "chau"]

    def test_object_values_in_order(self):
        assert parse_label_table({"0": "A", "1": "B", "2": "C"}) == ["A", "B", "C"]

    def test_gesture_to_index_map_is_inverted(self):
        assert parse_label_table({"hola": 1, "chau": 0}) == ["chau", "hola"]

    def test_index_gaps_become_blank(self):
        assert parse_label_table({"a": 0, "c": 2}) == ["a", "", "c"]

    def test_out_of_range_index(self):
        with pytest.raises(ValueError):
            parse_label_table({"a": 10**13})
        with pytest.raises(ValueError):
            parse_label_table({"a": -1})

    def test_unsupported_document(self):
        with pytest.raises(ValueError):
            parse_label_table("a,b,c")


class TestDescriptor:
    def test_format_detection(self):
        assert kind_from_format("graph-model") is ModelKind.GRAPH
        assert kind_from_format("GraphModel") is ModelKind.GRAPH
        assert kind_from_format("layers-model") is ModelKind.LAYERS
        assert kind_from_format(None) is None

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            ModelDescriptor.from_json(["graph-model"])

    def test_rejects_non_string_format(self):
        with pytest.raises(ValueError):
            ModelDescriptor.from_json({"format": 3})

    def test_write_descriptor_for_saved_model(self, tmp_path):
        model_dir = tmp_path / "gesture_model"
        model_dir.mkdir()
        (model_dir / "saved_model.pb").write_bytes(b"")

        path = write_descriptor(model_dir, labels=["a", "b"])

        assert json.loads(path.read_text()) == {"format": "graph-model", "artifact": "."}
        assert json.loads((model_dir / "labels.json").read_text()) == ["a", "b"]

    def test_write_descriptor_for_keras_file(self, tmp_path):
        model_file = tmp_path / "gesture.keras"
        model_file.write_bytes(b"")

        path = write_descriptor(model_file)

        assert path.parent == tmp_path
        assert json.loads(path.read_text()) == {"format": "layers-model", "artifact": "gesture.keras"}

    def test_write_descriptor_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            write_descriptor(tmp_path)


class TestDeclaredInputs:
    def test_signature_keyword_specs(self):
        names, shape = declared_inputs(ModelKind.GRAPH, FakeSignature(input_name="pixels", input_shape=(None, 48, 48, 3)))
        assert names == ("pixels",)
        assert shape == (None, 48, 48, 3)

    def test_keras_inputs(self):
        names, shape = declared_inputs(ModelKind.LAYERS, FakeKerasModel([1.0], input_shape=(None, 32, 32, 3)))
        assert names == ("input_layer",)
        assert shape == (None, 32, 32, 3)

    def test_graph_without_signature_uses_inputs(self):
        class Graph:
            inputs = [FakeSpec((1, 96, 96, 3), "serving_input:0")]

        names, shape = declared_inputs(ModelKind.GRAPH, Graph())
        assert names == ("serving_input:0",)
        assert shape == (1, 96, 96, 3)

    def test_input_name_strips_suffix(self):
        handle = ModelHandle(kind=ModelKind.GRAPH, model=None, input_names=("serving_input:0",))
        assert handle.input_name == "serving_input"
        assert ModelHandle(kind=ModelKind.GRAPH, model=None).input_name is None


class TestModelLoader:
    def test_graph_descriptor(self, tmp_path):
        model_url, _ = write_artifacts(tmp_path, {"format": "graph-model"})
        signature = FakeSignature(input_shape=(None, 48, 48, 3))
        loader, loads = make_loader(tmp_path, graph=signature)

        handle = loader.load_model(model_url)

        assert handle.kind is ModelKind.GRAPH
        assert handle.model is signature
        assert handle.input_size == 48
        assert handle.input_name == "image"
        assert loads[0][1].resolve() == tmp_path.resolve()

    def test_layers_descriptor_uses_default_keras_file(self, tmp_path):
        model_url, _ = write_artifacts(tmp_path, {"format": "layers-model"})
        (tmp_path / "model.h5").touch()
        loader, loads = make_loader(tmp_path, layers=FakeKerasModel([1.0]))

        handle = loader.load_model(model_url)

        assert handle.kind is ModelKind.LAYERS
        assert loads[0][1].name == "model.h5"

    def test_explicit_artifact(self, tmp_path):
        model_url, _ = write_artifacts(tmp_path, {"format": "layers-model", "artifact": "gesture.keras"})
        (tmp_path / "gesture.keras").touch()
        loader, loads = make_loader(tmp_path, layers=FakeKerasModel([1.0]))

        loader.load_model(model_url)

        assert loads[0][1].name == "gesture.keras"

    def test_without_format_tries_strategies_in_order(self, tmp_path):
        model_url, _ = write_artifacts(tmp_path, {})
        (tmp_path / "model.keras").touch()
        loader, loads = make_loader(tmp_path, graph=OSError("no saved_model.pb"), layers=FakeKerasModel([1.0]))

        handle = loader.load_model(model_url)

        assert handle.kind is ModelKind.LAYERS
        assert [kind for kind, _ in loads] == [ModelKind.GRAPH, ModelKind.LAYERS]

    def test_every_strategy_failing(self, tmp_path):
        model_url, _ = write_artifacts(tmp_path, {})
        (tmp_path / "model.keras").touch()
        loader, _ = make_loader(tmp_path, graph=OSError("bad graph"), layers=ValueError("bad keras"))

        with pytest.raises(ModelLoadError) as excinfo:
            loader.load_model(model_url)
        assert "bad graph" in str(excinfo.value)
        assert "bad keras" in str(excinfo.value)

    def test_malformed_descriptor(self, tmp_path):
        model_url, _ = write_artifacts(tmp_path, "{not json")
        loader, loads = make_loader(tmp_path, graph=FakeSignature())

        with pytest.raises(ModelLoadError):
            loader.load_model(model_url)
        assert loads == []

    def test_missing_descriptor(self, tmp_path):
        loader, _ = make_loader(tmp_path, graph=FakeSignature())
        with pytest.raises(ModelLoadError):
            loader.load_model(str(tmp_path / "missing" / "model.json"))

    def test_missing_artifact_file(self, tmp_path):
        model_url, _ = write_artifacts(tmp_path, {"format": "layers-model", "artifact": "absent.keras"})
        loader, loads = make_loader(tmp_path, layers=FakeKerasModel([1.0]))

        with pytest.raises(ModelLoadError):
            loader.load_model(model_url)
        assert loads == []

    def test_remote_saved_model_rejected(self, tmp_path):
        model_url, _ = write_artifacts(
            tmp_path, {"format": "graph-model", "artifact": "http://models.invalid/gesture"}
        )
        loader, loads = make_loader(tmp_path, graph=FakeSignature())

        with pytest.raises(ModelLoadError) as excinfo:
            loader.load_model(model_url)
        assert "remote SavedModel" in str(excinfo.value)
        assert loads == []

    def test_labels(self, tmp_path):
        _, labels_url = write_artifacts(tmp_path, labels=["a", "b"])
        loader, _ = make_loader(tmp_path)
        assert loader.load_labels(labels_url) == ["a", "b"]

    def test_missing_labels(self, tmp_path):
        loader, _ = make_loader(tmp_path)
        with pytest.raises(LabelLoadError):
            loader.load_labels(str(tmp_path / "labels.json"))

    def test_malformed_labels(self, tmp_path):
        (tmp_path / "labels.json").write_text("[oops", encoding="utf-8")
        loader, _ = make_loader(tmp_path)
        with pytest.raises(LabelLoadError):
            loader.load_labels(str(tmp_path / "labels.json"))

    def test_label_map_with_huge_index(self, tmp_path):
        _, labels_url = write_artifacts(tmp_path, labels={"a": 0, "b": 10**13})
        loader, _ = make_loader(tmp_path)
        with pytest.raises(LabelLoadError):
            loader.load_labels(labels_url)
