from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..config import AppConfig, load_config
from ..core.broadcast import SubscriberRegistry, sensor_message
from ..core.generator import SignalGenerator
from ..core.models import ALERT_CRITICAL, ALERT_WARNING, RISK_HIGH, Reading, utc_now
from ..core.scoring import score, validate_sensor_payload
from ..core.store import MonitorStore
from ..errors import MonitorError, ValidationError


logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")


@dataclass
class ApiState:
    config: AppConfig
    store: MonitorStore
    registry: SubscriberRegistry
    generator: SignalGenerator


def _state() -> ApiState:
    return current_app.extensions["machine_monitor"]


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {raw}")
    if value < 0:
        raise ValidationError(f"Invalid {name}: {raw}")
    return value


# ───────────────────────────── machines ─────────────────────────────
@api.get("/machines")
def list_machines():
    machines = _state().store.machines.list(request.args.get("status"))
    return jsonify([m.to_dict() for m in machines])


@api.get("/machines/<int:machine_id>")
def get_machine(machine_id: int):
    return jsonify(_state().store.machines.get(machine_id).to_dict())


@api.put("/machines/<int:machine_id>")
def update_machine(machine_id: int):
    body = _json_body()
    machine = _state().store.machines.update(
        machine_id, status=body.get("status"), uptime=body.get("uptime")
    )
    return jsonify(machine.to_dict())


# ───────────────────────────── sensor data ─────────────────────────────
@api.get("/sensor-data")
def get_sensor_data():
    limit = _int_arg("limit", 50)
    sensor = request.args.get("sensor") or None
    return jsonify(_state().store.recent_readings(limit, sensor))


@api.post("/sensor-data")
def post_sensor_data():
    state = _state()
    values = validate_sensor_payload(_json_body())
    reading = Reading(timestamp=utc_now(), **values)
    state.store.add_reading(reading)
    prediction = score(reading, state.store.training)
    if prediction.risk == RISK_HIGH:
        state.store.raise_alert(
            state.generator.random_machine_label(),
            f"High fault risk detected: {prediction.probability}% probability",
            ALERT_CRITICAL,
        )
    return jsonify({"reading": reading.to_dict(), "prediction": prediction.to_dict()})


@api.post("/predict")
def predict():
    values = validate_sensor_payload(_json_body())
    return jsonify(score(values, _state().store.training).to_dict())


# ───────────────────────────── alerts ─────────────────────────────
@api.get("/alerts")
def get_alerts():
    return jsonify([a.to_dict() for a in _state().store.recent_alerts()])


@api.post("/alerts")
def post_alert():
    body = _json_body()
    machine = body.get("machine")
    message = body.get("message")
    if not machine or not message:
        raise ValidationError("machine and message are required")
    alert = _state().store.raise_alert(str(machine), str(message), body.get("type") or ALERT_WARNING)
    return jsonify(alert.to_dict())


# ───────────────────────────── summaries ─────────────────────────────
@api.get("/dashboard")
def dashboard():
    state = _state()
    reading = state.generator.generate()
    return jsonify(state.store.dashboard_summary(reading, score(reading, state.store.training)))


@api.get("/training-stats")
def training_stats():
    aggregate = _state().store.training
    if aggregate.is_empty:
        return jsonify({"message": "No training data loaded"})
    return jsonify(aggregate.to_dict())


@api.get("/health")
def health():
    state = _state()
    return jsonify({
        "status": "ok",
        "readings": state.store.readings.size(),
        "subscribers": state.registry.count(),
    })


# ───────────────────────────── push channel ─────────────────────────────
def _sse(message: Dict[str, Any]) -> str:
    return f"data: {json.dumps(message)}\n\n"


@api.get("/stream")
def stream():
    state = _state()
    keepalive = state.config.runtime.stream_keepalive_sec
    sub = state.registry.subscribe()
    latest = state.store.readings.latest()

    def events() -> Iterator[str]:
        try:
            if latest is not None:
                yield _sse(sensor_message(latest, score(latest, state.store.training)))
            else:
                yield ": connected\n\n"
            while not sub.closed:
                message = sub.wait(timeout=keepalive)
                if message is None:
                    if sub.closed:
                        break
                    yield ": keep-alive\n\n"
                    continue
                yield _sse(message)
        finally:
            # runs when the client disconnects and the server closes the generator
            state.registry.unsubscribe(sub)

    return Response(
        events(),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ───────────────────────────── errors ─────────────────────────────
def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(MonitorError)
    def on_monitor_error(exc: MonitorError):
        return jsonify({"error": str(exc)}), exc.status_code

    @app.errorhandler(HTTPException)
    def on_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def on_unhandled(exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=exc)
        return jsonify({"error": "Something went wrong!"}), 500


def _add_cors_headers(response: Response) -> Response:
    response.headers.setdefault("Access-Control-Allow-Origin", "*")
    response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
    response.headers.setdefault("Access-Control-Allow-Methods", "GET, POST, PUT, OPTIONS")
    return response


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[MonitorStore] = None,
    registry: Optional[SubscriberRegistry] = None,
    generator: Optional[SignalGenerator] = None,
) -> Flask:
    """Build the Flask server with the REST API and push stream registered."""
    cfg = config or load_config()
    app = Flask(__name__)
    app.extensions["machine_monitor"] = ApiState(
        config=cfg,
        store=store or MonitorStore(cfg.runtime.reading_buffer_size, cfg.runtime.alert_buffer_size),
        registry=registry or SubscriberRegistry(),
        generator=generator or SignalGenerator(),
    )
    app.register_blueprint(api)
    app.after_request(_add_cors_headers)
    _register_error_handlers(app)
    return app
