"""Flask application exposing sign recognition to the frontend."""
from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Flask, Response, jsonify, request
from flask_cors import CORS
from flask_socketio import Namespace, SocketIO, emit

from sign_recognition import config as model_config
from sign_recognition.errors import (
    EmptyOutputError,
    InferenceError,
    ModelLoadError,
    NoFrameError,
    RecognitionError,
    TensorBuildError,
)
from sign_recognition.pipeline import InferenceContext
from sign_recognition.tensors import ResizePolicy

from . import config
from .service import GestureInferenceService

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NoFrameError: 400,
    TensorBuildError: 400,
    ModelLoadError: 503,
    InferenceError: 500,
    EmptyOutputError: 500,
}


def error_response(exc: RecognitionError) -> Tuple[Response, int]:
    status = ERROR_STATUS.get(type(exc), 500)
    return jsonify({"error": str(exc), "kind": type(exc).__name__}), status


class GestureNamespace(Namespace):
    """Receive frames over Socket.IO and broadcast predictions to clients."""

    def __init__(self, namespace: str, service: GestureInferenceService, socketio: SocketIO) -> None:
        super().__init__(namespace)
        self._service = service
        self._socketio = socketio
        self._background_thread = None

    def on_connect(self) -> None:  # pragma: no cover - integration hook
        if not self._service.running():
            self._service.start()
        if self._background_thread is None:
            self._background_thread = self._socketio.start_background_task(self._push_predictions)

    def on_disconnect(self) -> None:  # pragma: no cover - integration hook
        # Nothing special; the background thread keeps running to serve SSE clients too.
        pass

    def on_frame(self, data: Any) -> None:
        image = data.get("image") if isinstance(data, dict) else data
        try:
            self._service.recognize_data_url(image if isinstance(image, str) else "")
        except RecognitionError as exc:
            emit(config.SOCKETIO_ERROR_EVENT, {"error": str(exc), "kind": type(exc).__name__})

    def _push_predictions(self) -> None:
        for payload in self._service.iter_predictions():
            self._socketio.emit(config.SOCKETIO_EVENT, payload, namespace=self.namespace)


def create_app(
    model_url: str = config.DEFAULT_MODEL_URL,
    labels_url: str = config.DEFAULT_LABELS_URL,
    camera_index: int = config.DEFAULT_CAMERA_INDEX,
    confidence_threshold: float = config.DEFAULT_CONFIDENCE_THRESHOLD,
    resize_policy: str = model_config.RESIZE_POLICY,
    service: Optional[GestureInferenceService] = None,
) -> Flask:
    """Factory that configures Flask, Socket.IO and the inference service."""
    app = Flask(__name__)
    CORS(app)

    if service is None:
        context = InferenceContext(model_url, labels_url, resize_policy=ResizePolicy(resize_policy))
        service = GestureInferenceService(
            camera_index=camera_index,
            confidence_threshold=confidence_threshold,
            context=context,
        )

    socketio = SocketIO(app, cors_allowed_origins="*", async_mode="threading")
    socketio.on_namespace(GestureNamespace(config.SOCKETIO_NAMESPACE, service, socketio))

    api = Blueprint("gesture_api", __name__)

    @api.route("/health")
    def health() -> Response:
        return jsonify({"status": "ok"})

    @api.route("/status")
    def status() -> Response:
        return jsonify(service.snapshot())

    @api.route("/gestures")
    def gestures() -> Any:
        try:
            return jsonify(service.labels())
        except RecognitionError as exc:
            return error_response(exc)

    @api.route("/recognize", methods=["POST"])
    def recognize() -> Any:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "JSON body required", "kind": "BadRequest"}), 400

        try:
            if payload.get("source") == "camera":
                result = service.recognize_camera()
            else:
                image = payload.get("image")
                result = service.recognize_data_url(image if isinstance(image, str) else "")
        except RecognitionError as exc:
            return error_response(exc)
        except Exception:  # pragma: no cover - logging unexpected errors
            logger.exception("Unexpected error while recognising a frame")
            return jsonify({"error": "Internal server error", "kind": "InternalError"}), 500
        return jsonify(result.to_dict())

    @api.route("/stream")
    def stream() -> Response:
        if not service.running():
            service.start()

        def event_stream() -> Any:
            queue = service.subscribe()
            try:
                while True:
                    payload = queue.get()
                    yield "retry: %d\n" % config.SSE_RETRY_MS
                    yield "data: %s\n\n" % json.dumps(payload)
            finally:
                service.unsubscribe(queue)

        headers = {"Cache-Control": "no-cache"}
        return Response(event_stream(), mimetype="text/event-stream", headers=headers)

    @api.route("/config", methods=["POST"])
    def update_config() -> Any:
        data: Dict[str, Any] = request.get_json(silent=True) or {}
        try:
            if "confidence_threshold" in data:
                service.confidence_threshold = float(data["confidence_threshold"])
            if "prediction_cooldown_s" in data:
                service.prediction_cooldown_s = float(data["prediction_cooldown_s"])
        except (TypeError, ValueError) as exc:
            return jsonify({"error": str(exc), "kind": "BadRequest"}), 400
        return jsonify(service.snapshot())

    app.register_blueprint(api, url_prefix="/api")
    app.socketio = socketio  # type: ignore[attr-defined]
    app.gesture_service = service  # type: ignore[attr-defined]
    return app


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bridge the sign classifier with a web frontend")
    parser.add_argument("--model-url", default=config.DEFAULT_MODEL_URL, help="Ruta o URL de model.json")
    parser.add_argument("--labels-url", default=config.DEFAULT_LABELS_URL, help="Ruta o URL de labels.json")
    parser.add_argument("--camera-index", type=int, default=config.DEFAULT_CAMERA_INDEX)
    parser.add_argument(
        "--confidence-threshold",
        type=float,
        default=config.DEFAULT_CONFIDENCE_THRESHOLD,
        help="Probabilidad mínima para emitir un gesto a los suscriptores",
    )
    parser.add_argument(
        "--resize-policy",
        choices=[policy.value for policy in ResizePolicy],
        default=model_config.RESIZE_POLICY,
        help="Cómo se ajusta cada cuadro a la entrada cuadrada del modelo",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args()


def main() -> None:  # pragma: no cover - entry point
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
    args = parse_args()
    app = create_app(
        model_url=args.model_url,
        labels_url=args.labels_url,
        camera_index=args.camera_index,
        confidence_threshold=args.confidence_threshold,
        resize_policy=args.resize_policy,
    )
    logger.info("Servidor de reconocimiento iniciado en %s:%s", args.host, args.port)
    socketio: SocketIO = app.socketio  # type: ignore[attr-defined]
    socketio.run(app, host=args.host, port=args.port, allow_unsafe_werkzeug=True)


if __name__ == "__main__":
    main()
