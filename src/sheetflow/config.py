import os
import tempfile
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .policies import _normalize_bool, _normalize_optional
from .utils import load_env

_ENV_PREFIX = "DATA_PROCESSOR_"


class ProcessorSettings(BaseModel):
    """
    Process-wide defaults, read once when the processor is built.
    """

    model_config = ConfigDict(frozen=True)

    storage_root: str = "storage"
    temp_path: str = "temp/data-processor"
    local_temp_root: str = Field(default_factory=tempfile.gettempdir)
    chunk_rows: int = Field(default=10000, ge=1)
    batch_size: int = Field(default=1000, ge=1)
    queue: str = "data-processor"
    use_cloud_temp: bool = False
    csv_delimiter: str = Field(default=",", min_length=1, max_length=1)

    @field_validator("chunk_rows", "batch_size", mode="before")
    @classmethod
    def _normalize_numbers(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("use_cloud_temp", mode="before")
    @classmethod
    def _normalize_flags(cls, v):
        return _normalize_bool(v)

    @field_validator("temp_path")
    @classmethod
    def _strip_slashes(cls, v: str) -> str:
        return v.strip("/")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "ProcessorSettings":
        """
        Build settings from DATA_PROCESSOR_* variables.
        Unset or empty variables fall back to the field defaults.
        """
        if environ is None:
            load_env()
            environ = os.environ

        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None and _normalize_optional(raw) is not None:
                values[name] = raw

        # Legacy alias
        if "use_cloud_temp" not in values and environ.get(f"{_ENV_PREFIX}CLOUD_TEMP"):
            values["use_cloud_temp"] = environ[f"{_ENV_PREFIX}CLOUD_TEMP"]

        values.update(overrides)
        return cls(**values)
