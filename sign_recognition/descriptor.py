"""Model descriptor (``model.json``) parsing and generation.

The descriptor sits at the well-known model location and tells the loader how
the exported classifier must be executed:

    {"format": "graph-model", "artifact": "."}
    {"format": "layers-model", "artifact": "gesture.keras"}

``format`` containing ``graph`` selects the SavedModel signature path, any
other value selects Keras. Without ``format`` the loader tries both.

Ejecutar como script genera el ``model.json`` de un modelo ya exportado.
"""
from __future__ import annotations

import argparse
import json
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

try:
    from . import config
except ImportError:  # ejecución directa
    import config  # type: ignore


class ModelKind(str, Enum):
    """How a loaded model is executed."""

    LAYERS = "layers"  # direct call, model.predict(x)
    GRAPH = "graph"  # serving signature addressed by input name


FORMAT_NAMES = {ModelKind.LAYERS: "layers-model", ModelKind.GRAPH: "graph-model"}


def kind_from_format(fmt: Optional[str]) -> Optional[ModelKind]:
    if not fmt:
        return None
    return ModelKind.GRAPH if "graph" in fmt.lower() else ModelKind.LAYERS


@dataclass(frozen=True)
class ModelDescriptor:
    format: Optional[str] = None
    artifact: Optional[str] = None

    @property
    def kind(self) -> Optional[ModelKind]:
        return kind_from_format(self.format)

    @classmethod
    def from_json(cls, data: Any) -> "ModelDescriptor":
        """Validate a parsed ``model.json`` document."""
        if not isinstance(data, dict):
            raise ValueError("model descriptor must be a JSON object")
        fmt = data.get("format")
        artifact = data.get("artifact")
        if fmt is not None and not isinstance(fmt, str):
            raise ValueError("descriptor field 'format' must be a string")
        if artifact is not None and not isinstance(artifact, str):
            raise ValueError("descriptor field 'artifact' must be a string")
        return cls(format=fmt, artifact=artifact)

    def to_json(self) -> Dict[str, str]:
        data = {}
        if self.format:
            data["format"] = self.format
        if self.artifact:
            data["artifact"] = self.artifact
        return data


def detect_kind(path: Path) -> ModelKind:
    """Guess the representation of an exported model from its files."""
    if path.is_dir() and (path / "saved_model.pb").exists():
        return ModelKind.GRAPH
    if path.suffix.lower() in {".keras", ".h5"} and path.is_file():
        return ModelKind.LAYERS
    raise ValueError(
        f"Unrecognised model format at {path}. Use a SavedModel directory "
        "(with saved_model.pb) or a .keras / .h5 file."
    )


def write_descriptor(
    model_path: Path,
    output_dir: Optional[Path] = None,
    labels: Optional[Sequence[str]] = None,
) -> Path:
    """Write ``model.json`` (and optionally ``labels.json``) for ``model_path``.

    For a SavedModel directory the descriptor is written inside it; for a
    Keras file it is written next to it unless ``output_dir`` is given.
    """
    kind = detect_kind(model_path)
    if output_dir is None:
        output_dir = model_path if kind is ModelKind.GRAPH else model_path.parent
    output_dir.mkdir(parents=True, exist_ok=True)

    if kind is ModelKind.GRAPH:
        artifact = "." if output_dir.resolve() == model_path.resolve() else str(model_path.resolve())
    elif output_dir.resolve() == model_path.parent.resolve():
        artifact = model_path.name
    else:
        artifact = str(model_path.resolve())

    descriptor = ModelDescriptor(format=FORMAT_NAMES[kind], artifact=artifact)
    descriptor_path = output_dir / config.DESCRIPTOR_NAME
    descriptor_path.write_text(json.dumps(descriptor.to_json(), indent=2), encoding="utf-8")

    if labels is not None:
        labels_path = output_dir / config.LABELS_NAME
        labels_path.write_text(json.dumps(list(labels), ensure_ascii=False, indent=2), encoding="utf-8")
    return descriptor_path


def parse_args() -> argparse.Namespace:
    """Leer la ruta del modelo exportado y las opciones de salida."""
    parser = argparse.ArgumentParser(description="Write model.json for an exported classifier")
    parser.add_argument("model_path", type=Path, help="SavedModel directory or .keras / .h5 file")
    parser.add_argument("--output-dir", type=Path, default=None, help="Where to write model.json")
    parser.add_argument(
        "--labels",
        type=Path,
        default=None,
        help="Optional labels.json to copy next to the descriptor.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    descriptor_path = write_descriptor(args.model_path, args.output_dir)
    print(f"🗂️  Descriptor guardado en {descriptor_path}")
    if args.labels is not None:
        labels_dest = descriptor_path.parent / config.LABELS_NAME
        if args.labels.resolve() != labels_dest.resolve():
            shutil.copyfile(args.labels, labels_dest)
            print(f"🗂️  Copia del mapa de etiquetas guardada en {labels_dest}")


if __name__ == "__main__":
    main()
