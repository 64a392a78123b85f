from __future__ import annotations

import json
import random

import pytest

from machine_monitor.config import AppConfig, EnvSettings, RuntimeConfig
from machine_monitor.core.broadcast import SubscriberRegistry
from machine_monitor.core.generator import SignalGenerator
from machine_monitor.core.models import Reading, TrainingAggregate, utc_now
from machine_monitor.core.scoring import score
from machine_monitor.core.store import MonitorStore
from machine_monitor.web.api import create_app


HIGH = {"vibration": 1.3, "temperature": 85, "current": 16, "sound": 55}
CALM = {"vibration": 0.5, "temperature": 70, "current": 12, "sound": 40}


def make_config() -> AppConfig:
    return AppConfig(env=EnvSettings(), runtime=RuntimeConfig(stream_keepalive_sec=0.05))


@pytest.fixture
def store() -> MonitorStore:
    return MonitorStore()


@pytest.fixture
def registry() -> SubscriberRegistry:
    return SubscriberRegistry()


@pytest.fixture
def client(store: MonitorStore, registry: SubscriberRegistry):
    app = create_app(make_config(), store, registry, SignalGenerator(random.Random(0)))
    return app.test_client()


def test_list_machines(client) -> None:
    resp = client.get("/api/machines")
    assert resp.status_code == 200
    assert len(resp.get_json()) == 5
    faulty = client.get("/api/machines?status=Faulty").get_json()
    assert [m["name"] for m in faulty] == ["Machine C"]
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_get_machine_and_404(client) -> None:
    assert client.get("/api/machines/1").get_json()["name"] == "Machine A"
    resp = client.get("/api/machines/99")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Machine not found"}


def test_update_machine(client) -> None:
    resp = client.put("/api/machines/2", json={"status": "Healthy", "uptime": "99.0%"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "Healthy"
    assert body["uptime"] == "99.0%"
    assert client.put("/api/machines/99", json={"status": "Healthy"}).status_code == 404


def test_update_machine_rejects_non_string_fields(client) -> None:
    resp = client.put("/api/machines/1", json={"status": 5})
    assert resp.status_code == 400
    assert "error" in resp.get_json()
    resp = client.put("/api/machines/1", json={"uptime": 99})
    assert resp.status_code == 400
    assert "error" in resp.get_json()
    assert client.get("/api/machines/1").get_json()["status"] == "Healthy"


def test_sensor_data_limit_larger_than_store(client, store: MonitorStore) -> None:
    for v in (0.1, 0.2, 0.3):
        store.add_reading(Reading(utc_now(), v, 70.0, 12.0, 44.0))
    data = client.get("/api/sensor-data?limit=5").get_json()
    assert len(data) == 3
    projected = client.get("/api/sensor-data?limit=2&sensor=vibration").get_json()
    assert [p["value"] for p in projected] == [0.2, 0.3]


def test_sensor_data_bad_params(client) -> None:
    assert client.get("/api/sensor-data?limit=abc").status_code == 400
    assert client.get("/api/sensor-data?sensor=pressure").status_code == 400


def test_post_sensor_data_high_risk_raises_alert(client, store: MonitorStore) -> None:
    before = store.alerts.size()
    resp = client.post("/api/sensor-data", json=HIGH)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["prediction"]["risk"] == "High"
    assert body["prediction"]["probability"] == 88
    assert store.readings.size() == 1
    assert store.alerts.size() == before + 1
    newest = store.recent_alerts(1)[0]
    assert newest.type == "critical"
    assert newest.message == "High fault risk detected: 88% probability"


def test_post_sensor_data_calm_no_alert(client, store: MonitorStore) -> None:
    before = store.alerts.size()
    client.post("/api/sensor-data", json=CALM)
    assert store.alerts.size() == before
    assert store.readings.size() == 1


def test_post_sensor_data_missing_field(client, store: MonitorStore) -> None:
    resp = client.post("/api/sensor-data", json={"vibration": 1.0})
    assert resp.status_code == 400
    assert "error" in resp.get_json()
    assert store.readings.size() == 0


def test_predict_is_pure(client, store: MonitorStore) -> None:
    alerts_before = store.alerts.size()
    first = client.post("/api/predict", json=HIGH).get_json()
    second = client.post("/api/predict", json=HIGH).get_json()
    assert first == second
    assert first == {"risk": "High", "probability": 88, "timeToFailure": "12-24 hours", "rawScore": 0.9}
    assert store.readings.size() == 0
    assert store.alerts.size() == alerts_before


def test_predict_missing_field(client) -> None:
    resp = client.post("/api/predict", json={"vibration": 1, "temperature": 2, "current": 3})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Missing sensor data"}
    assert client.post("/api/predict", data="not json").status_code == 400


def test_alerts_roundtrip(client) -> None:
    created = client.post("/api/alerts", json={"machine": "Machine #3", "message": "Belt slipping"}).get_json()
    assert created["type"] == "warning"
    assert created["time"] == "just now"
    alerts = client.get("/api/alerts").get_json()
    assert alerts[0]["id"] == created["id"]
    assert len(alerts) <= 10


def test_alerts_validation(client) -> None:
    assert client.post("/api/alerts", json={"machine": "Machine #3"}).status_code == 400
    assert client.post("/api/alerts", json={"machine": "M", "message": "x", "type": "fatal"}).status_code == 400


def test_dashboard_summary(client) -> None:
    body = client.get("/api/dashboard").get_json()
    assert body["machineCount"] == {"total": 5, "healthy": 2, "warning": 2, "faulty": 1}
    assert len(body["recentAlerts"]) == 3
    assert set(body["currentSensorData"]) == {"timestamp", "vibration", "temperature", "current", "sound"}
    assert body["prediction"]["risk"] in {"Low", "Medium", "High"}
    assert "lastUpdated" in body


def test_training_stats_empty(client) -> None:
    assert client.get("/api/training-stats").get_json() == {"message": "No training data loaded"}


def test_training_stats_loaded(registry: SubscriberRegistry) -> None:
    agg = TrainingAggregate(10, 3, 7, {"airTemperature": 300.0, "processTemperature": 310.0,
                                       "torque": 40.0, "toolWear": 160.0})
    app = create_app(make_config(), MonitorStore(training=agg), registry)
    client = app.test_client()
    body = client.get("/api/training-stats").get_json()
    assert body["sampleCount"] == 10
    assert body["faultCount"] == 3
    assert body["featureAverages"]["toolWear"] == 160.0
    # aggregate bump applies to predictions
    assert client.post("/api/predict", json=HIGH).get_json()["rawScore"] == 1.0


def test_unhandled_error_is_generic(store: MonitorStore, registry: SubscriberRegistry) -> None:
    app = create_app(make_config(), store, registry)

    @app.get("/api/explode")
    def explode():
        raise RuntimeError("secret internals")

    resp = app.test_client().get("/api/explode")
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Something went wrong!"}
    assert b"secret" not in resp.data


def test_health(client) -> None:
    assert client.get("/api/health").get_json() == {"status": "ok", "readings": 0, "subscribers": 0}


def test_stream_sends_ticks_and_releases_subscriber(client, store: MonitorStore,
                                                    registry: SubscriberRegistry) -> None:
    store.add_reading(Reading(utc_now(), 1.3, 85.0, 16.0, 55.0))
    resp = client.get("/api/stream", buffered=False)
    assert resp.status_code == 200
    assert resp.mimetype == "text/event-stream"
    chunks = iter(resp.response)
    first = next(chunks)
    first = first.decode() if isinstance(first, bytes) else first
    assert first.startswith("data: ")
    message = json.loads(first[len("data: "):])
    assert message["type"] == "sensor_data"
    assert message["prediction"]["risk"] == "High"
    assert registry.count() == 1

    registry.publish(Reading(utc_now(), 0.5, 70.0, 12.0, 40.0), score(CALM))
    second = next(chunks)
    second = second.decode() if isinstance(second, bytes) else second
    assert json.loads(second[len("data: "):])["data"]["vibration"] == 0.5

    resp.close()
    assert registry.count() == 0
