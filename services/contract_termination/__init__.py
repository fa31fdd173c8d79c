"""
Contract lifecycle consistency engine.

Closes out contracts superseded by a new contract on the same sectors with
append-only AUTO_TERMINATION amendments.
"""

from .errors import (
    ContractLifecycleError,
    InvalidContractType,
    InvalidRange,
    InvalidSectorScope,
    TransactionFailure,
)
from .families import CONTRACT_FAMILIES, ContractFamily, get_family
from .auto_termination import (
    ContractTerminationService,
    should_retrigger,
    terminate_overlapping,
)

__all__ = [
    "ContractLifecycleError",
    "InvalidContractType",
    "InvalidRange",
    "InvalidSectorScope",
    "TransactionFailure",
    "CONTRACT_FAMILIES",
    "ContractFamily",
    "get_family",
    "ContractTerminationService",
    "should_retrigger",
    "terminate_overlapping",
]
