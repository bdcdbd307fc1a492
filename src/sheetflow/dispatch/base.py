import importlib
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_core import to_jsonable_python

from ..exceptions import ConfigurationException


# ---------------------------------------------------------
# CONTRACT (DE)SERIALIZATION
# ---------------------------------------------------------
def contract_reference(contract: Any) -> str:
    cls = contract.__class__
    if "<locals>" in cls.__qualname__:
        raise ConfigurationException(
            f"Contract {cls.__qualname__} is defined inside a function and cannot be rebuilt by a worker"
        )
    return f"{cls.__module__}:{cls.__qualname__}"


def contract_state(contract: Any) -> Dict[str, Any]:
    """
    Constructor kwargs needed to rebuild the contract elsewhere.
    Pydantic contracts are dumped; plain classes must build with no arguments.
    """
    if isinstance(contract, BaseModel):
        return contract.model_dump(mode="json")
    return {}


def load_contract(reference: str, state: Optional[Dict[str, Any]] = None) -> Any:
    module_name, _, qualname = reference.partition(":")
    if not module_name or not qualname:
        raise ConfigurationException(f"Invalid contract reference: '{reference}'")

    target: Any = importlib.import_module(module_name)
    for attr in qualname.split("."):
        target = getattr(target, attr)

    if isinstance(target, type) and issubclass(target, BaseModel):
        return target.model_validate(state or {})
    return target(**(state or {}))


# ---------------------------------------------------------
# UNIT OF WORK
# ---------------------------------------------------------
class ImportUnit(BaseModel):
    """
    Serializable work item: a contract bound to either an in-memory batch of
    mapped records or a chunk file reference.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    contract: Any
    batch: List[Any] = Field(default_factory=list)
    row_numbers: List[int] = Field(default_factory=list)
    chunk_file_path: Optional[str] = None
    chunk_number: Optional[int] = None
    row_offset: int = Field(default=0, ge=0)
    timeout: int = Field(default=3600, ge=0)
    memory: int = Field(default=512, ge=0)
    tries: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _validate_payload(self) -> "ImportUnit":
        if self.chunk_file_path and self.batch:
            raise ValueError("ImportUnit carries either a batch or a chunk file, not both")
        if not self.chunk_file_path and not self.batch:
            raise ValueError("ImportUnit needs a batch or a chunk file")
        if self.batch and self.row_numbers and len(self.row_numbers) != len(self.batch):
            raise ValueError("row_numbers must match the batch length")
        return self

    @property
    def kind(self) -> Literal["chunk", "batch"]:
        return "chunk" if self.chunk_file_path else "batch"

    def to_message(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "contract": contract_reference(self.contract),
            "contract_state": contract_state(self.contract),
            "batch": to_jsonable_python(self.batch),
            "row_numbers": self.row_numbers,
            "chunk_file_path": self.chunk_file_path,
            "chunk_number": self.chunk_number,
            "row_offset": self.row_offset,
            "timeout": self.timeout,
            "memory": self.memory,
            "tries": self.tries,
        }

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "ImportUnit":
        data = dict(message)
        data.pop("kind", None)
        data["contract"] = load_contract(data.pop("contract"), data.pop("contract_state", None))
        return cls(**data)


# ---------------------------------------------------------
# DISPATCHER PORT
# ---------------------------------------------------------
class JobDispatcher(ABC):
    @abstractmethod
    def submit(self, unit: ImportUnit, queue_name: str) -> None:
        """Hand the unit over for deferred, possibly remote, execution."""

    def close(self) -> None:
        """Release broker resources."""
        return
