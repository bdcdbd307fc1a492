"""
Process-wide logging setup.

Library modules only call `logging.getLogger(__name__)`; applications (the CLI,
a worker, a web app) call `configure_logging()` once at startup.
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import List, Literal, Optional, Union

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from pydantic import BaseModel, Field, field_validator

from ..policies import _normalize_optional
from ._resource import _inject_otel_resource_attributes, build_runtime_metadata

Level = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ============================================================
# HANDLER CONFIGS
# ============================================================


class ConsoleLogHandler(BaseModel):
    type: Literal["console"] = "console"
    level: Level = "INFO"
    json_output: bool = False
    stream: Literal["stdout", "stderr"] = "stderr"


class FileLogHandler(BaseModel):
    """`filename` may use `{service}` and `{pid}` placeholders."""

    type: Literal["file"] = "file"
    level: Level = "INFO"
    json_output: bool = False
    filename: str
    max_bytes: int = Field(default=0, ge=0)
    backup_count: int = Field(default=5, ge=0)


class OTLPLogHandler(BaseModel):
    """Ships records to an OpenTelemetry collector over gRPC."""

    type: Literal["otlp"] = "otlp"
    level: Level = "INFO"
    endpoint: str = "localhost:4317"
    insecure: bool = True


LogHandler = Union[ConsoleLogHandler, FileLogHandler, OTLPLogHandler]


class LoggingConfig(BaseModel):
    level: Level = "INFO"
    handlers: List[LogHandler] = Field(default_factory=lambda: [ConsoleLogHandler()])
    quiet_loggers: List[str] = Field(default_factory=lambda: ["pika", "openpyxl"])

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "LoggingConfig":
        """
        DATA_PROCESSOR_LOG_LEVEL, DATA_PROCESSOR_LOG_FORMAT (text|json),
        DATA_PROCESSOR_LOG_FILE and DATA_PROCESSOR_LOG_OTLP_ENDPOINT.
        """
        environ = os.environ if environ is None else environ
        level = _normalize_optional(environ.get("DATA_PROCESSOR_LOG_LEVEL")) or "INFO"
        json_output = (_normalize_optional(environ.get("DATA_PROCESSOR_LOG_FORMAT")) or "text").lower() == "json"

        handlers: List[LogHandler] = [ConsoleLogHandler(level=level.upper(), json_output=json_output)]

        log_file = _normalize_optional(environ.get("DATA_PROCESSOR_LOG_FILE"))
        if log_file:
            handlers.append(FileLogHandler(level=level.upper(), json_output=json_output, filename=log_file))

        endpoint = _normalize_optional(environ.get("DATA_PROCESSOR_LOG_OTLP_ENDPOINT"))
        if endpoint:
            handlers.append(OTLPLogHandler(level=level.upper(), endpoint=endpoint))

        return cls(level=level, handlers=handlers)


# ============================================================
# dictConfig BUILDERS
# ============================================================


def _formatters() -> dict:
    return {
        "text": {"format": TEXT_FORMAT, "datefmt": DATE_FORMAT},
        "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT},
    }


def _handler_dict(cfg: LogHandler, metadata: dict) -> dict:
    if cfg.type == "console":
        return {
            "class": "logging.StreamHandler",
            "level": cfg.level,
            "formatter": "json" if cfg.json_output else "text",
            "stream": f"ext://sys.{cfg.stream}",
        }

    if cfg.type == "file":
        filename = cfg.filename.format(service=metadata["service_name"], pid=metadata["pid"])
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        handler = {
            "class": "logging.FileHandler",
            "level": cfg.level,
            "formatter": "json" if cfg.json_output else "text",
            "filename": filename,
            "encoding": "utf-8",
        }
        if cfg.max_bytes:
            handler.update(
                {
                    "class": "logging.handlers.RotatingFileHandler",
                    "maxBytes": cfg.max_bytes,
                    "backupCount": cfg.backup_count,
                }
            )
        return handler

    # otlp: the provider is global, the stdlib handler just forwards to it
    provider = LoggerProvider(resource=Resource(attributes=_inject_otel_resource_attributes({}, metadata)))
    provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=cfg.endpoint, insecure=cfg.insecure))
    )
    set_logger_provider(provider)
    return {
        "class": "opentelemetry.sdk._logs.LoggingHandler",
        "level": cfg.level,
        "logger_provider": provider,
    }


def build_dict_config(cfg: LoggingConfig, metadata: Optional[dict] = None) -> dict:
    metadata = metadata or build_runtime_metadata()

    handlers = {f"{h.type}_{idx}": _handler_dict(h, metadata) for idx, h in enumerate(cfg.handlers)}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _formatters(),
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in cfg.quiet_loggers},
        "root": {"level": cfg.level, "handlers": list(handlers)},
    }


_LOGGING_CONFIGURED = False


def configure_logging(cfg: Optional[LoggingConfig] = None, metadata: Optional[dict] = None, force: bool = False):
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED and not force:
        return

    logging.config.dictConfig(build_dict_config(cfg or LoggingConfig.from_env(), metadata))
    _LOGGING_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = [
    "LoggingConfig",
    "ConsoleLogHandler",
    "FileLogHandler",
    "OTLPLogHandler",
    "build_dict_config",
    "configure_logging",
    "get_logger",
]
