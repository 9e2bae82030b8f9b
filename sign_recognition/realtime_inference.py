"""Live camera recognition without the web bridge.

Muestra la cámara en vivo; al presionar ``r`` se clasifica el cuadro actual
con el modelo exportado y se dibuja la etiqueta reconocida sobre el video.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple

import cv2

from . import config
from .cli_utils import list_saved_models, prompt_for_model_dir
from .errors import RecognitionError
from .fetcher import is_remote
from .frames import VideoHandle
from .pipeline import InferenceContext
from .tensors import ResizePolicy


def parse_args() -> argparse.Namespace:
    """Definir los parámetros de ejecución aceptados desde la terminal."""
    parser = argparse.ArgumentParser(description="Recognise hand signs from the local camera")
    parser.add_argument(
        "--model-url",
        default=None,  # si falta, se pedirá por CLI
        help="Path or URL of model.json. If omitted, pick one of the models under data/models.",
    )
    parser.add_argument(
        "--labels-url",
        default=None,
        help="Path or URL of labels.json. Defaults to labels.json next to the descriptor.",
    )
    parser.add_argument("--device", type=int, default=config.CAMERA_INDEX, help="Índice de cámara para OpenCV.")
    parser.add_argument(
        "--resize-policy",
        choices=[policy.value for policy in ResizePolicy],
        default=config.RESIZE_POLICY,
        help="How frames are fitted to the square model input.",
    )
    parser.add_argument("--confidence-threshold", type=float, default=0.0, help="Umbral de confianza para mostrar etiqueta.")
    return parser.parse_args()


def resolve_urls(model_url: Optional[str], labels_url: Optional[str]) -> Tuple[str, str]:
    if model_url is None:
        model_dir = prompt_for_model_dir(list_saved_models())
        model_url = str(model_dir / config.DESCRIPTOR_NAME)
    if labels_url is None:
        if is_remote(model_url):
            labels_url = model_url.rsplit("/", 1)[0] + "/" + config.LABELS_NAME
        else:
            labels_url = str(Path(model_url).parent / config.LABELS_NAME)
    return model_url, labels_url


def open_camera(device: int) -> cv2.VideoCapture:
    cap = cv2.VideoCapture(device)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.FRAME_WIDTH)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.FRAME_HEIGHT)
    return cap


def main() -> None:
    """Configurar la cámara, cargar el modelo y reconocer a pedido."""
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
    args = parse_args()
    model_url, labels_url = resolve_urls(args.model_url, args.labels_url)

    context = InferenceContext(model_url, labels_url, resize_policy=ResizePolicy(args.resize_policy))
    loop = asyncio.new_event_loop()

    try:
        _, labels = loop.run_until_complete(context.initialize())
    except RecognitionError as exc:
        loop.close()
        raise SystemExit(f"No se pudo cargar el modelo: {exc}")

    print(f"Modelo cargado desde {model_url}")
    if labels:
        print("Gestos reconocidos por este modelo:")
        for idx, label in enumerate(labels):
            print(f"   • {idx}: {label}")

    device = args.device
    cap = open_camera(device)
    display_text = "Show a gesture to the camera"
    print("Presiona 'r' para reconocer, 'c' para cambiar de cámara, 'q' para salir.")

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                break

            key = cv2.waitKey(1) & 0xFF
            if key == ord("r"):
                try:
                    result = loop.run_until_complete(context.recognize(VideoHandle(frame.copy())))
                except RecognitionError as exc:
                    display_text = f"Recognition error: {exc}"
                else:
                    if result.confidence >= args.confidence_threshold:
                        display_text = f"Recognized: {result.label} ({result.confidence:.2f})"
                    else:
                        display_text = f"Uncertain ({result.confidence:.2f})"
                    print(display_text)
            elif key == ord("c"):
                cap.release()
                device = args.device + 1 if device == args.device else args.device
                cap = open_camera(device)
                if not cap.isOpened():
                    device = args.device
                    cap = open_camera(device)
                print(f"Cámara activa: {device}")
                continue
            elif key == ord("q"):
                break

            cv2.putText(
                frame,
                display_text,
                (20, 40),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.8,
                (0, 255, 0),
                2,
            )
            cv2.imshow("Reconocimiento de señas", frame)
    finally:
        cap.release()
        cv2.destroyAllWindows()
        loop.close()


if __name__ == "__main__":
    main()
