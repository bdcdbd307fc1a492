from .base import ImportUnit, JobDispatcher, contract_reference, load_contract
from .inline import InlineDispatcher, JobResult
from .job import ImportJob

__all__ = [
    "ImportUnit",
    "JobDispatcher",
    "ImportJob",
    "InlineDispatcher",
    "JobResult",
    "contract_reference",
    "load_contract",
]
