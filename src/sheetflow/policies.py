from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =====================================================================
#   INTERNAL NORMALIZERS (framework-level helpers)
# =====================================================================


def _normalize_optional(v):
    """
    Normalize optional env-driven values.

    Accepts:
      - None
      - ""
      - "none" / "null"
      - numeric strings

    Lets Pydantic handle final coercion.
    """
    if v is None:
        return None

    if isinstance(v, str):
        v = v.strip()
        if v == "" or v.lower() in {"none", "null"}:
            return None

    return v


def _normalize_bool(v):
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on"}
    return v


# =====================================================================
#   IMPORT POLICIES
# =====================================================================


class ChunkPolicy(BaseModel):
    """Physical file splitting. `chunk_rows` is validated by the splitter, not here."""

    max_file_size: int = Field(default=0, ge=0)
    chunk_rows: Optional[int] = None

    @field_validator("max_file_size", "chunk_rows", mode="before")
    @classmethod
    def _normalize_ints(cls, v):
        return _normalize_optional(v)


class QueuePolicy(BaseModel):
    """
    Advisory execution limits handed to the dispatcher.
    The engine never enforces timeout or memory itself.
    """

    queue_name: Optional[str] = None
    timeout: int = Field(default=3600, ge=0)
    memory: int = Field(default=512, ge=0)
    tries: int = Field(default=1, ge=1, le=1)

    @field_validator("queue_name", "timeout", "memory", mode="before")
    @classmethod
    def _normalize_values(cls, v):
        return _normalize_optional(v)


class ErrorPolicy(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    on_error: Callable[[BaseException, Any, int], Any]
    skip_on_error: bool = False
    max_errors: Optional[int] = Field(default=None, ge=0)

    @field_validator("skip_on_error", mode="before")
    @classmethod
    def _normalize_skip(cls, v):
        return _normalize_bool(v)

    @field_validator("max_errors", mode="before")
    @classmethod
    def _normalize_max_errors(cls, v):
        return _normalize_optional(v)

    def budget_exhausted(self, error_count: int) -> bool:
        return self.max_errors is not None and error_count > self.max_errors


class BatchPolicy(BaseModel):
    size: int = Field(default=1000, ge=1)

    @field_validator("size", mode="before")
    @classmethod
    def _normalize_size(cls, v):
        return _normalize_optional(v)
