from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from flask import Flask

from ..config import AppConfig, load_config
from ..core.broadcast import SubscriberRegistry
from ..core.driver import TickDriver
from ..core.store import MonitorStore
from ..data.training import TrainingData
from .api import create_app


logger = logging.getLogger(__name__)


@dataclass
class Monitor:
    config: AppConfig
    store: MonitorStore
    registry: SubscriberRegistry
    driver: TickDriver
    app: Flask


def build_monitor(config: Optional[AppConfig] = None, with_dashboard: bool = True) -> Monitor:
    """Wire store, driver, API and dashboard together without starting anything."""
    cfg = config or load_config()
    training = TrainingData.from_csv(cfg.runtime.training_data_path).summarize()
    store = MonitorStore(
        reading_capacity=cfg.runtime.reading_buffer_size,
        alert_capacity=cfg.runtime.alert_buffer_size,
        training=training,
    )
    registry = SubscriberRegistry()
    driver = TickDriver(cfg, store, registry)
    app = create_app(cfg, store, registry, generator=driver.generator)
    if with_dashboard:
        from .dashboard import mount_dashboard

        mount_dashboard(app, store, refresh_ms=int(cfg.runtime.tick_interval_sec * 1000))
    return Monitor(cfg, store, registry, driver, app)


def serve(host: Optional[str] = None, port: Optional[int] = None, config: Optional[AppConfig] = None) -> None:
    monitor = build_monitor(config)
    cfg = monitor.config
    bind_host = host or cfg.env.HOST
    bind_port = cfg.env.PORT if port is None else port
    monitor.driver.start()
    logger.info("Server running", extra={"host": bind_host, "port": bind_port})
    try:
        # threaded: each push-stream client holds a worker for its lifetime
        monitor.app.run(bind_host, bind_port, debug=False, threaded=True)
    finally:
        monitor.driver.stop()


if __name__ == "__main__":  # pragma: no cover
    serve()
