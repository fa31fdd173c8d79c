"""
Pydantic models for the contract lifecycle engine.

This module exports the contract family enums, amendment rows and the
result records produced by automatic termination.
"""

from .contract_lifecycle import (
    # Enums
    ContractType,
    SectorScopeKind,
    LifecycleState,
    AmendmentType,
    # Store rows
    OverlappingContract,
    AutoTerminationAmendment,
    AutoTerminationRecord,
    # Results
    TerminatedContract,
    TerminationResult,
    EffectiveTerms,
    QuantityCalculation,
)

__all__ = [
    "ContractType",
    "SectorScopeKind",
    "LifecycleState",
    "AmendmentType",
    "OverlappingContract",
    "AutoTerminationAmendment",
    "AutoTerminationRecord",
    "TerminatedContract",
    "TerminationResult",
    "EffectiveTerms",
    "QuantityCalculation",
]
