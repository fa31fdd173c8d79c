"""
Automatic termination of overlapping contracts.

When a new contract begins service on a sector, every active contract of the
same type still covering the day before is closed out with an
AUTO_TERMINATION amendment:

  - new_contract_date_end = service start - 1 day
  - new_estimated_quantity_tons recomputed proportionally (quantity families,
    when the old contract has both a quantity and an end date)
  - quantity_adjustment_auto = new quantity - original quantity

The contract rows themselves are never updated. Detection, deduplication and
all inserts for one new contract run in a single transaction.
"""

import logging
from datetime import date
from typing import Any, FrozenSet, List, Optional, Sequence, Union

import psycopg2

from db.amendment_repository import AmendmentRepository
from db.contract_repository import ContractRepository
from db.database import Database
from models.contract_lifecycle import (
    AutoTerminationAmendment,
    AutoTerminationRecord,
    ContractType,
    OverlappingContract,
    SectorScopeKind,
    TerminatedContract,
    TerminationResult,
)

from .calendar_dates import DateLike, add_days, normalize
from .errors import InvalidSectorScope, TransactionFailure
from .families import ContractFamily, get_family
from .numbering import next_amendment_number
from .quantity import proportional, round2

logger = logging.getLogger(__name__)

SectorScope = Union[Any, Sequence[Any], None]


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _scope_ids(sector_scope: SectorScope) -> List[Any]:
    """Sector scope as a list of non-empty IDs (scalars become one-element lists)."""
    if _is_missing(sector_scope):
        return []
    if isinstance(sector_scope, (list, tuple, set, frozenset)):
        return [s for s in sector_scope if not _is_missing(s)]
    return [sector_scope]


def _scope_key(sector_scope: SectorScope) -> FrozenSet[str]:
    return frozenset(str(s) for s in _scope_ids(sector_scope))


def should_retrigger(
    previous_service_start: Optional[DateLike],
    previous_sector_scope: SectorScope,
    service_start: Optional[DateLike] = None,
    sector_scope: SectorScope = None,
) -> bool:
    """
    Decide whether a contract update must re-run automatic termination.

    Values not supplied by the update fall back to the previous ones. The run
    is needed only when the service start date or the sector scope changed and
    both are set after the update.
    """
    prev_start = normalize(previous_service_start)
    prev_scope = _scope_key(previous_sector_scope)

    next_start = prev_start if _is_missing(service_start) else normalize(service_start)
    next_scope = _scope_key(sector_scope) or prev_scope

    if next_start is None or not next_scope:
        return False
    return next_start != prev_start or next_scope != prev_scope


class ContractTerminationService:
    """Detect and close out contracts superseded by a new contract."""

    def __init__(
        self,
        db: Database,
        contract_repository: Optional[ContractRepository] = None,
        amendment_repository: Optional[AmendmentRepository] = None,
        isolation_level: str = "READ COMMITTED",
    ):
        self.db = db
        self.contracts = contract_repository or ContractRepository()
        self.amendments = amendment_repository or AmendmentRepository()
        self.isolation_level = isolation_level

    def terminate_overlapping(
        self,
        contract_type: Union[ContractType, str],
        sector_scope: SectorScope,
        service_start_date: Optional[DateLike],
        new_contract_id: Any,
        new_contract_number: Optional[str] = None,
        acting_user_id: Any = None,
    ) -> TerminationResult:
        """
        Main entry point. Close out every contract the new one supersedes.

        Args:
            contract_type: Contract family tag (AEROBIC, ..., DISPOSAL)
            sector_scope: Sector ID (direct families) or list of sector IDs (disposal)
            service_start_date: Day the new contract starts service
            new_contract_id: ID of the new contract
            new_contract_number: Number of the new contract (used in notes)
            acting_user_id: User recorded as the amendments' author

        Returns:
            TerminationResult listing the contracts terminated by this call.
            Missing scope, start date or contract ID gives an empty result.

        Raises:
            InvalidContractType: If contract_type is unknown
            InvalidRange: If a candidate's period cannot be recomputed
            TransactionFailure: If the store fails (nothing is written)
        """
        family = get_family(contract_type)
        scope = self._prepare_scope(family, sector_scope, service_start_date, new_contract_id)

        if not scope:
            logger.debug(
                f"Auto-termination skipped for {family.contract_type.value}: "
                f"missing sector scope, service start date or contract id"
            )
            return TerminationResult.empty()

        service_start = normalize(service_start_date)
        termination_date = add_days(service_start, -1)

        terminated: List[TerminatedContract] = []
        try:
            with self.db.transaction(self.isolation_level) as conn:
                with conn.cursor() as cursor:
                    candidates = self.contracts.find_overlapping(
                        cursor,
                        family,
                        scope,
                        termination_date,
                        service_start,
                        new_contract_id,
                    )
                    for candidate in candidates:
                        record = self._terminate_contract(
                            cursor,
                            family,
                            candidate,
                            termination_date,
                            new_contract_id,
                            new_contract_number,
                            acting_user_id,
                        )
                        if record is not None:
                            terminated.append(record)
        except psycopg2.Error as e:
            logger.error(
                f"Auto-termination failed for {family.contract_type.value} "
                f"contract {new_contract_id}: {e}"
            )
            raise TransactionFailure(
                f"Auto-termination for contract {new_contract_id} rolled back: {e}"
            ) from e

        logger.info(
            f"Auto-termination for {family.contract_type.value} contract "
            f"{new_contract_number or new_contract_id}: {len(terminated)} contracts "
            f"closed at {termination_date.isoformat()}"
        )
        return TerminationResult(terminated_contracts=terminated, count=len(terminated))

    def terminate_simple_contracts(
        self,
        contract_type: Union[ContractType, str],
        sector_id: Any,
        service_start_date: Optional[DateLike],
        new_contract_id: Any,
        new_contract_number: Optional[str] = None,
        acting_user_id: Any = None,
    ) -> TerminationResult:
        """Auto-termination for families linked to one sector through sector_id."""
        family = get_family(contract_type)
        if family.scope != SectorScopeKind.DIRECT:
            raise InvalidSectorScope(
                f"{family.contract_type.value} contracts are linked to sectors through "
                f"{family.association_table}; use terminate_disposal_contracts()"
            )
        return self.terminate_overlapping(
            family.contract_type,
            sector_id,
            service_start_date,
            new_contract_id,
            new_contract_number,
            acting_user_id,
        )

    def terminate_disposal_contracts(
        self,
        sector_ids: Optional[Sequence[Any]],
        service_start_date: Optional[DateLike],
        new_contract_id: Any,
        new_contract_number: Optional[str] = None,
        acting_user_id: Any = None,
    ) -> TerminationResult:
        """Auto-termination for disposal contracts (sectors via disposal_contract_sectors)."""
        return self.terminate_overlapping(
            ContractType.DISPOSAL,
            _scope_ids(sector_ids),
            service_start_date,
            new_contract_id,
            new_contract_number,
            acting_user_id,
        )

    def preview_overlapping(
        self,
        contract_type: Union[ContractType, str],
        sector_scope: SectorScope,
        service_start_date: Optional[DateLike],
        new_contract_id: Any,
    ) -> List[OverlappingContract]:
        """
        List the contracts a termination run would close, without writing anything.

        Contracts already terminated by new_contract_id are left out.
        """
        family = get_family(contract_type)
        scope = self._prepare_scope(family, sector_scope, service_start_date, new_contract_id)
        if not scope:
            return []

        service_start = normalize(service_start_date)
        termination_date = add_days(service_start, -1)

        with self.db.transaction(self.isolation_level) as conn:
            with conn.cursor() as cursor:
                candidates = self.contracts.find_overlapping(
                    cursor, family, scope, termination_date, service_start, new_contract_id
                )
                return [
                    c for c in candidates
                    if not self.amendments.has_auto_termination(
                        cursor, family, c.id, new_contract_id
                    )
                ]

    def list_auto_terminations(
        self, contract_type: Union[ContractType, str], contract_id: Any
    ) -> List[AutoTerminationRecord]:
        """Automatic terminations recorded against a contract, newest first."""
        family = get_family(contract_type)
        with self.db.transaction(self.isolation_level) as conn:
            with conn.cursor() as cursor:
                return self.amendments.list_auto_terminations(cursor, family, contract_id)

    def _prepare_scope(
        self,
        family: ContractFamily,
        sector_scope: SectorScope,
        service_start_date: Optional[DateLike],
        new_contract_id: Any,
    ) -> List[Any]:
        """Sector IDs to search, or an empty list when the run is a no-op."""
        if _is_missing(service_start_date) or _is_missing(new_contract_id):
            return []
        scope = _scope_ids(sector_scope)
        if family.scope == SectorScopeKind.DIRECT and len(scope) > 1:
            raise InvalidSectorScope(
                f"{family.contract_type.value} contracts take a single sector id, "
                f"got {len(scope)}"
            )
        return scope

    def _terminate_contract(
        self,
        cursor,
        family: ContractFamily,
        contract: OverlappingContract,
        termination_date: date,
        new_contract_id: Any,
        new_contract_number: Optional[str],
        acting_user_id: Any,
    ) -> Optional[TerminatedContract]:
        """Write one AUTO_TERMINATION amendment. Returns None if already terminated."""
        self.contracts.lock_contract(cursor, family, contract.id)

        if self.amendments.has_auto_termination(cursor, family, contract.id, new_contract_id):
            logger.debug(
                f"{family.contract_table} {contract.id} already terminated by "
                f"contract {new_contract_id}, skipping"
            )
            return None

        new_quantity = None
        if (
            family.has_quantity
            and contract.original_quantity is not None
            and contract.contract_date_end is not None
        ):
            new_quantity = proportional(
                contract.original_quantity,
                contract.contract_date_start,
                contract.contract_date_end,
                termination_date,
            )

        quantity_delta = None
        if new_quantity is not None and contract.original_quantity is not None:
            quantity_delta = round2(new_quantity - contract.original_quantity)

        amendment_number = next_amendment_number(
            cursor, family, contract.id, self.amendments
        )
        termination_iso = termination_date.isoformat()
        successor = new_contract_number or str(new_contract_id)

        self.amendments.insert_auto_termination(
            cursor,
            family,
            AutoTerminationAmendment(
                contract_id=contract.id,
                amendment_number=amendment_number,
                amendment_date=termination_date,
                new_contract_date_end=termination_date,
                new_estimated_quantity_tons=new_quantity,
                quantity_adjustment_auto=quantity_delta,
                reference_contract_id=new_contract_id,
                changes_description=f"Automatic closure on {termination_iso}",
                notes=(
                    f"{family.label} contract closed automatically - "
                    f"superseded by contract {successor}"
                ),
                created_by=acting_user_id,
            ),
        )

        logger.info(
            f"Terminated {family.contract_table} {contract.contract_number or contract.id} "
            f"at {termination_iso} (quantity {contract.original_quantity} -> {new_quantity})"
        )
        return TerminatedContract(
            id=contract.id,
            contract_number=contract.contract_number,
            termination_date=termination_iso,
            new_estimated_quantity_tons=new_quantity,
            quantity_adjustment_auto=quantity_delta,
        )


def terminate_overlapping(
    db: Database,
    contract_type: Union[ContractType, str],
    sector_scope: SectorScope,
    service_start_date: Optional[DateLike],
    new_contract_id: Any,
    new_contract_number: Optional[str] = None,
    acting_user_id: Any = None,
) -> TerminationResult:
    """Functional entry point: ContractTerminationService(db).terminate_overlapping(...)."""
    return ContractTerminationService(db).terminate_overlapping(
        contract_type,
        sector_scope,
        service_start_date,
        new_contract_id,
        new_contract_number,
        acting_user_id,
    )
