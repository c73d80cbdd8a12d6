"""
Read-only status API: health, plugins, per-input status, recent measurements and failures.
"""
from __future__ import annotations

import math
import time

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse

from agent import Agent
from models import Measurement, ValueKind


def _prometheus_name(name: str) -> str:
    return "".join(c if c.isalnum() or c == "_" else "_" for c in name)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _prometheus_number(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    return str(number)


def _prometheus_lines(measurements: list[Measurement]) -> list[str]:
    lines: list[str] = []
    for m in measurements:
        labels = ",".join(f'{_prometheus_name(k)}="{_escape_label(v)}"' for k, v in sorted(m.tags.items()))
        suffix = f"{{{labels}}}" if labels else ""
        ts_ms = int(m.timestamp.timestamp() * 1000)
        for key, value in m.fields.items():
            if value.kind in (ValueKind.INT, ValueKind.FLOAT):
                number = value.raw
            elif value.kind is ValueKind.BOOL:
                number = int(value.raw)
            else:
                continue
            lines.append(f"{_prometheus_name(m.name)}_{_prometheus_name(key)}{suffix} {_prometheus_number(number)} {ts_ms}")
    return lines


def create_app(agent: Agent) -> FastAPI:
    app = FastAPI(
        title="Host Metrics Agent API",
        description="Agent status, plugins and recent measurements",
        version="1.0.0",
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "running": agent.scheduler.running, "timestamp": time.time()}

    @app.get("/plugins")
    def plugins() -> dict:
        return agent.registry.describe()

    @app.get("/plugins/sample-config", response_class=PlainTextResponse)
    def sample_config(plugin: list[str] | None = Query(default=None)) -> str:
        for name in plugin or []:
            if name not in agent.registry:
                raise HTTPException(status_code=404, detail=f"unknown plugin {name!r}")
        return agent.registry.sample_config(plugin)

    @app.get("/status")
    def status() -> dict:
        return agent.status()

    @app.get("/measurements")
    def measurements(limit: int = Query(default=100, ge=1, le=10000)) -> list[dict]:
        if agent.buffer is None:
            return []
        return [m.to_dict() for m in agent.buffer.get_buffer(limit)]

    @app.get("/failures")
    def failures(limit: int = Query(default=100, ge=1, le=500)) -> list[dict]:
        return [e.to_dict() for e in agent.failures.get_events(limit)]

    @app.get("/metrics/prometheus", response_class=PlainTextResponse)
    def prometheus() -> str:
        """Prometheus-style text export of the latest numeric fields per series."""
        if agent.buffer is None:
            return ""
        lines = _prometheus_lines(agent.buffer.latest_by_series())
        return "\n".join(lines) + "\n" if lines else ""

    return app
