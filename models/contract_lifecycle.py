"""
Pydantic models for the contract lifecycle engine.

These models describe the contract families, the amendments written by
automatic termination and the result records handed back to the
contract-creation workflow.

Database Reference: <family>_contracts / <family>_contract_amendments tables
"""

from enum import Enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict


# =============================================================================
# ENUMS
# =============================================================================

class ContractType(str, Enum):
    """Contract families, one pair of contract/amendment tables each."""
    AEROBIC = "AEROBIC"
    ANAEROBIC = "ANAEROBIC"
    TMB = "TMB"
    SORTING = "SORTING"
    WASTE_COLLECTOR = "WASTE_COLLECTOR"
    DISPOSAL = "DISPOSAL"


class SectorScopeKind(str, Enum):
    """How a contract family is linked to sectors."""
    DIRECT = "direct"            # sector_id column on the contract row
    ASSOCIATION = "association"  # many-to-many join table


class LifecycleState(str, Enum):
    """Soft-delete state of a contract or amendment row."""
    ACTIVE = "active"
    DELETED = "deleted"

    @classmethod
    def from_deleted_at(cls, deleted_at: Optional[datetime]) -> "LifecycleState":
        return cls.ACTIVE if deleted_at is None else cls.DELETED


class AmendmentType(str, Enum):
    """Amendment type tags stored in amendment_type."""
    AUTO_TERMINATION = "AUTO_TERMINATION"
    EXTENSION = "EXTENSION"
    TERMINATION = "TERMINATION"
    QUANTITY_CHANGE = "QUANTITY_CHANGE"


# =============================================================================
# STORE ROWS
# =============================================================================

class OverlappingContract(BaseModel):
    """A contract whose coverage still includes the day before the new contract starts."""

    id: Any = Field(..., description="Contract ID")
    contract_number: Optional[str] = None
    contract_date_start: Optional[date] = None
    contract_date_end: Optional[date] = Field(
        None, description="Original end date (None = open-ended)"
    )
    original_quantity: Optional[Decimal] = Field(
        None, description="estimated_quantity_tons, None for families without a quantity column"
    )


class AutoTerminationAmendment(BaseModel):
    """Values of one AUTO_TERMINATION amendment row to insert."""

    contract_id: Any
    amendment_number: str
    amendment_date: date
    amendment_type: AmendmentType = AmendmentType.AUTO_TERMINATION
    new_contract_date_end: date
    new_estimated_quantity_tons: Optional[Decimal] = None
    quantity_adjustment_auto: Optional[Decimal] = None
    reference_contract_id: Any
    changes_description: Optional[str] = None
    notes: Optional[str] = None
    created_by: Any = None


class AutoTerminationRecord(BaseModel):
    """A stored AUTO_TERMINATION amendment, as listed for a contract."""

    id: Any
    contract_id: Any
    amendment_number: str
    amendment_date: Optional[date] = None
    new_contract_date_end: Optional[date] = None
    new_estimated_quantity_tons: Optional[Decimal] = None
    quantity_adjustment_auto: Optional[Decimal] = None
    reference_contract_id: Any = None
    reference_contract_number: Optional[str] = None
    changes_description: Optional[str] = None
    notes: Optional[str] = None
    created_by: Any = None
    deleted_at: Optional[datetime] = None

    @property
    def state(self) -> LifecycleState:
        return LifecycleState.from_deleted_at(self.deleted_at)


# =============================================================================
# RESULTS
# =============================================================================

class TerminatedContract(BaseModel):
    """One contract closed out by automatic termination."""

    id: Any = Field(..., description="ID of the terminated (old) contract")
    contract_number: Optional[str] = None
    termination_date: str = Field(..., description="New effective end date (YYYY-MM-DD)")
    new_estimated_quantity_tons: Optional[Decimal] = None
    quantity_adjustment_auto: Optional[Decimal] = Field(
        None, description="Signed delta versus the original quantity"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 17,
                "contract_number": "TMB-2025-01",
                "termination_date": "2025-06-30",
                "new_estimated_quantity_tons": "595.07",
                "quantity_adjustment_auto": "-604.93",
            }
        }
    )


class TerminationResult(BaseModel):
    """Outcome of one terminate_overlapping invocation."""

    terminated_contracts: List[TerminatedContract] = Field(default_factory=list)
    count: int = Field(0, ge=0)

    @classmethod
    def empty(cls) -> "TerminationResult":
        return cls(terminated_contracts=[], count=0)


class EffectiveTerms(BaseModel):
    """Current end date and quantity of a contract after its amendments."""

    contract_id: Any
    contract_number: Optional[str] = None
    contract_date_start: Optional[date] = None
    original_end_date: Optional[date] = None
    original_quantity: Optional[Decimal] = None
    effective_end_date: Optional[date] = None
    effective_quantity: Optional[Decimal] = None
    amendment_number: Optional[str] = Field(
        None, description="Amendment the effective terms come from (None = base row)"
    )

    @property
    def is_amended(self) -> bool:
        return self.amendment_number is not None


class QuantityCalculation(BaseModel):
    """Breakdown of a proportional quantity recomputation."""

    original_quantity: Decimal
    days_original: int = Field(..., ge=0)
    days_new: int = Field(..., ge=0)
    tons_per_day: Decimal
    adjusted_quantity: Decimal
    quantity_delta: Decimal

    @property
    def is_prolongation(self) -> bool:
        return self.days_new > self.days_original

    @property
    def is_termination(self) -> bool:
        return self.days_new < self.days_original
