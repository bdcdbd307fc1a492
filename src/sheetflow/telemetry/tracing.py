import os
import threading
from typing import Literal, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from pydantic import BaseModel, Field

from ..policies import _normalize_optional
from ._resource import _inject_otel_resource_attributes, build_runtime_metadata


class TracingConfig(BaseModel):
    """
    Spans are emitted for every import, export, chunk write and batch flush.
    With `exporter="none"` they go to the no-op provider.
    """

    exporter: Literal["none", "console", "otlp"] = "none"
    endpoint: str = "localhost:4317"
    insecure: bool = True
    sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    resource: dict = Field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "TracingConfig":
        """DATA_PROCESSOR_TRACE_EXPORTER, DATA_PROCESSOR_TRACE_ENDPOINT, DATA_PROCESSOR_TRACE_SAMPLE_RATIO."""
        environ = os.environ if environ is None else environ
        values = {
            "exporter": _normalize_optional(environ.get("DATA_PROCESSOR_TRACE_EXPORTER")),
            "endpoint": _normalize_optional(environ.get("DATA_PROCESSOR_TRACE_ENDPOINT")),
            "sample_ratio": _normalize_optional(environ.get("DATA_PROCESSOR_TRACE_SAMPLE_RATIO")),
        }
        return cls(**{k: v.lower() if k == "exporter" else v for k, v in values.items() if v is not None})


_TRACING_CONFIGURED = False
_TRACING_LOCK = threading.Lock()


def configure_tracing(cfg: TracingConfig, metadata: Optional[dict] = None):
    """
    Install the global TracerProvider. Only the first call per process counts.
    """
    global _TRACING_CONFIGURED

    with _TRACING_LOCK:
        if _TRACING_CONFIGURED or cfg.exporter == "none":
            return

        attributes = _inject_otel_resource_attributes(cfg.resource, metadata or build_runtime_metadata())
        provider = TracerProvider(
            resource=Resource(attributes=attributes),
            sampler=ParentBased(TraceIdRatioBased(cfg.sample_ratio)),
        )

        if cfg.exporter == "otlp":
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=cfg.endpoint, insecure=cfg.insecure)))
        else:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(provider)
        _TRACING_CONFIGURED = True


def get_tracer(name: str = "sheetflow"):
    return trace.get_tracer(name)


__all__ = [
    "TracingConfig",
    "configure_tracing",
    "get_tracer",
]
