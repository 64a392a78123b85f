from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Optional

import typer

from machine_monitor.config import load_config
from machine_monitor.core.broadcast import SubscriberRegistry
from machine_monitor.core.driver import TickDriver
from machine_monitor.core.store import MonitorStore
from machine_monitor.data.training import TrainingData
from machine_monitor.utils.logging import setup_logging
from machine_monitor.web.server import serve as serve_web


app = typer.Typer(add_completion=False)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None),
    port: Optional[int] = typer.Option(None),
    config: Optional[Path] = typer.Option(None, help="YAML runtime config"),
) -> None:
    cfg = load_config(config)
    setup_logging(cfg.env.LOG_LEVEL)
    serve_web(host=host, port=port, config=cfg)


@app.command()
def simulate(
    ticks: int = typer.Option(10, help="Number of driver ticks to run"),
    interval: float = typer.Option(0.0, help="Seconds between ticks"),
    log_level: str = typer.Option("WARNING"),
) -> None:
    """Run the generate/score/alert pipeline headless and print each tick."""
    cfg = load_config()
    setup_logging(log_level)
    training = TrainingData.from_csv(cfg.runtime.training_data_path).summarize()
    store = MonitorStore(cfg.runtime.reading_buffer_size, cfg.runtime.alert_buffer_size, training=training)
    driver = TickDriver(cfg, store, SubscriberRegistry())
    for _ in range(ticks):
        result = driver.tick()
        p = result.prediction
        r = result.reading
        line = (
            f"vib={r.vibration:.3f} temp={r.temperature:.2f} cur={r.current:.2f} snd={r.sound:.2f}"
            f" -> {p.risk} {p.probability}% ({p.time_to_failure})"
        )
        if result.alert is not None:
            line += f" ALERT[{result.alert.type}] {result.alert.machine}"
        typer.echo(line)
        if interval:
            time.sleep(interval)


@app.command()
def stats(path: Optional[Path] = typer.Argument(None, help="CSV of historical rows")) -> None:
    """Print the training aggregate the scorer would use."""
    cfg = load_config()
    setup_logging("WARNING")
    agg = TrainingData.from_csv(path or cfg.runtime.training_data_path).summarize()
    if agg.is_empty:
        typer.echo("No training data loaded")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(agg.to_dict(), indent=2))


if __name__ == "__main__":
    app()
