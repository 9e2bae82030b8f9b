"""Utilidades comunes para la interacción en consola.

Permiten listar los modelos exportados que tienen descriptor y elegir uno sin
tener que recordar rutas manualmente.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Sequence

try:
    from . import config
except ImportError:  # ejecución directa
    import config  # type: ignore


def list_saved_models(models_dir: Path = config.MODELS_DIR) -> Sequence[Path]:
    """Obtener los modelos con ``model.json`` ordenados por fecha (reciente primero)."""

    if not models_dir.exists():
        return []

    models = [
        path for path in models_dir.iterdir() if path.is_dir() and (path / config.DESCRIPTOR_NAME).exists()
    ]
    models.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return models


def prompt_for_model_dir(models: Sequence[Path]) -> Path:
    """Solicitar al usuario que elija uno de los modelos guardados."""

    if not models:
        raise RuntimeError(
            "No se encontraron modelos con model.json. Genera el descriptor con "
            "`python -m sign_recognition.descriptor` antes de usar el reconocimiento."
        )

    if len(models) == 1:
        return models[0]

    print("Modelos disponibles:")
    for idx, model_path in enumerate(models, start=1):
        stat = model_path.stat()
        modified = datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M")
        file_count = sum(1 for _ in model_path.glob("*"))
        print(f"{idx:>3}. {model_path.name} (archivos: {file_count}, modificado: {modified})")

    while True:
        answer = input("Selecciona el número del modelo a utilizar: ").strip()
        if not answer:
            print("⚠️  Debes ingresar un valor.")
            continue
        if answer.isdigit():
            idx = int(answer) - 1
            if 0 <= idx < len(models):
                return models[idx]
        print("⚠️  Selección inválida, intenta de nuevo.")
