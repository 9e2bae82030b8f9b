"""Webcam client that sends still frames to the recognition bridge.

Press ``r`` to recognise the current frame, ``c`` to switch camera and ``q``
to quit. Each frame travels as a JPEG data URL, the same payload a browser
screenshot produces.
"""

from __future__ import annotations

import argparse
from typing import Tuple

import cv2
import requests

from sign_recognition import config
from sign_recognition.frames import data_url_from_frame

# ---------------------------------------------------------------------------
# Configuración general
# ---------------------------------------------------------------------------

BRIDGE_URL = "http://127.0.0.1:8000/api/recognize"

REQUEST_TIMEOUT = 10.0  # segundos


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send webcam frames to the recognition bridge")
    parser.add_argument("--url", default=BRIDGE_URL, help="Endpoint POST /api/recognize del puente")
    parser.add_argument("--device", type=int, default=config.CAMERA_INDEX, help="Índice de cámara para OpenCV.")
    parser.add_argument("--timeout", type=float, default=REQUEST_TIMEOUT)
    return parser.parse_args()


# ---------------------------------------------------------------------------
# Comunicación con el servidor
# ---------------------------------------------------------------------------

def query_server(url: str, data_url: str, timeout: float = REQUEST_TIMEOUT) -> Tuple[str, float]:
    """Envía el cuadro al puente y devuelve (label, confidence)."""
    response = requests.post(url, json={"image": data_url}, timeout=timeout)
    if response.status_code >= 400:
        try:
            message = response.json().get("error", response.reason)
        except ValueError:
            message = response.reason
        raise requests.HTTPError(f"{response.status_code}: {message}", response=response)
    data = response.json()
    label = data.get("label", config.UNKNOWN_LABEL)
    confidence = float(data.get("confidence", 0.0))
    return label, confidence


def open_camera(device: int) -> cv2.VideoCapture:
    cap = cv2.VideoCapture(device)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.FRAME_WIDTH)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.FRAME_HEIGHT)
    return cap


# ---------------------------------------------------------------------------
# Bucle principal
# ---------------------------------------------------------------------------

def main() -> None:
    args = parse_args()
    device = args.device
    cap = open_camera(device)
    display_text = "Show a gesture to the camera"
    is_error = False

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                print("No se pudo leer de la cámara.")
                break

            key = cv2.waitKey(1) & 0xFF
            if key == ord("r"):
                data_url = data_url_from_frame(frame)
                if data_url is None:
                    display_text, is_error = "Recognition error: encode failed", True
                else:
                    try:
                        label, confidence = query_server(args.url, data_url, args.timeout)
                    except requests.RequestException as exc:
                        print(f"⚠️  Error al comunicarse con el servidor: {exc}")
                        display_text, is_error = "Recognition error", True
                    else:
                        display_text, is_error = f"Recognized: {label} ({confidence:.2f})", False
            elif key == ord("c"):
                cap.release()
                device = args.device + 1 if device == args.device else args.device
                cap = open_camera(device)
                continue
            elif key == ord("q"):
                break

            cv2.putText(
                frame,
                display_text,
                (10, 40),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.9,
                (0, 0, 255) if is_error else (0, 255, 0),
                2,
                cv2.LINE_AA,
            )
            cv2.imshow("Sign Client", frame)
    finally:
        cap.release()
        cv2.destroyAllWindows()


if __name__ == "__main__":
    main()
