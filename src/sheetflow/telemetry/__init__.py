from . import logging, metrics, tracing
from .logging import LoggingConfig, configure_logging
from .metrics import MetricsConfig, configure_metrics
from .tracing import TracingConfig, configure_tracing

__all__ = [
    "logging",
    "metrics",
    "tracing",
    "LoggingConfig",
    "MetricsConfig",
    "TracingConfig",
    "configure_logging",
    "configure_metrics",
    "configure_tracing",
]
