"""
Metrics for import/export runs.

Instruments are created lazily on first use, after the MeterProvider has been
configured (or against the no-op provider when it never is).
"""

import os
from typing import Callable, Literal, Optional

from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import get_meter_provider, set_meter_provider
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from pydantic import BaseModel, Field

from ..policies import _normalize_optional
from ._resource import _inject_otel_resource_attributes, build_runtime_metadata

# ============================================================
# CONFIG
# ============================================================


class MetricsConfig(BaseModel):
    exporter: Literal["none", "console", "otlp"] = "none"
    endpoint: str = "localhost:4317"
    insecure: bool = True
    export_interval_ms: int = Field(default=60_000, ge=1000)
    resource: dict = Field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "MetricsConfig":
        """DATA_PROCESSOR_METRICS_EXPORTER, DATA_PROCESSOR_METRICS_ENDPOINT, DATA_PROCESSOR_METRICS_INTERVAL_MS."""
        environ = os.environ if environ is None else environ
        values = {
            "exporter": _normalize_optional(environ.get("DATA_PROCESSOR_METRICS_EXPORTER")),
            "endpoint": _normalize_optional(environ.get("DATA_PROCESSOR_METRICS_ENDPOINT")),
            "export_interval_ms": _normalize_optional(environ.get("DATA_PROCESSOR_METRICS_INTERVAL_MS")),
        }
        return cls(**{k: v.lower() if k == "exporter" else v for k, v in values.items() if v is not None})


_CONFIGURED_METRICS = False


def configure_metrics(cfg: MetricsConfig, metadata: Optional[dict] = None):
    global _CONFIGURED_METRICS
    if _CONFIGURED_METRICS or cfg.exporter == "none":
        return

    if cfg.exporter == "otlp":
        exporter = OTLPMetricExporter(endpoint=cfg.endpoint, insecure=cfg.insecure)
    else:
        exporter = ConsoleMetricExporter()

    attributes = _inject_otel_resource_attributes(cfg.resource, metadata or build_runtime_metadata())
    reader = PeriodicExportingMetricReader(exporter, export_interval_millis=cfg.export_interval_ms)
    set_meter_provider(MeterProvider(resource=Resource(attributes=attributes), metric_readers=[reader]))

    _CONFIGURED_METRICS = True


def get_metric_meter(name: str):
    return get_meter_provider().get_meter(name)


# ============================================================
# LAZY INSTRUMENTS
# ============================================================

_meter = None
_instruments = {}


def _get_meter():
    global _meter
    if _meter is None:
        _meter = get_metric_meter("sheetflow")
    return _meter


def _get_instrument(name: str, factory: Callable):
    if name not in _instruments:
        _instruments[name] = factory(_get_meter())
    return _instruments[name]


def _rows_processed():
    return _get_instrument(
        "sheetflow.rows.processed",
        lambda m: m.create_counter(
            name="sheetflow.rows.processed",
            description="Rows successfully processed or written",
            unit="1",
        ),
    )


def _rows_errors():
    return _get_instrument(
        "sheetflow.rows.errors",
        lambda m: m.create_counter(
            name="sheetflow.rows.errors",
            description="Rows discarded by the error policy",
            unit="1",
        ),
    )


def _chunks_created():
    return _get_instrument(
        "sheetflow.chunks.created",
        lambda m: m.create_counter(
            name="sheetflow.chunks.created",
            description="Chunk files written by the splitter",
            unit="1",
        ),
    )


def _units_dispatched():
    return _get_instrument(
        "sheetflow.units.dispatched",
        lambda m: m.create_counter(
            name="sheetflow.units.dispatched",
            description="Units of work handed to a dispatcher",
            unit="1",
        ),
    )


def _run_duration():
    return _get_instrument(
        "sheetflow.run.duration",
        lambda m: m.create_histogram(
            name="sheetflow.run.duration",
            description="Wall-clock duration of import and export runs",
            unit="s",
        ),
    )


# ============================================================
# RECORDING HELPERS
# ============================================================


def record_rows(operation: str, processed: int = 0, errors: int = 0):
    attrs = {"operation": operation}
    if processed:
        _rows_processed().add(processed, attrs)
    if errors:
        _rows_errors().add(errors, attrs)


def record_chunk(fmt: str, remote: bool):
    _chunks_created().add(1, {"format": fmt, "remote": str(remote).lower()})


def record_dispatch(kind: str, queue_name: str):
    _units_dispatched().add(1, {"kind": kind, "queue": queue_name})


def record_run(operation: str, duration: float, status: str):
    _run_duration().record(duration, {"operation": operation, "status": status})


__all__ = [
    "MetricsConfig",
    "configure_metrics",
    "get_metric_meter",
    "record_rows",
    "record_chunk",
    "record_dispatch",
    "record_run",
]
