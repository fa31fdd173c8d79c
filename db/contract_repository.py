"""
Contract repository for the lifecycle engine.

Read-only access to the six contract tables. Every method runs on a cursor
supplied by the caller so that lookups, row locks and amendment inserts share
one transaction. Table and column names come from the contract family
registry, never from caller input.
"""

import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from models.contract_lifecycle import OverlappingContract, SectorScopeKind

if TYPE_CHECKING:
    from services.contract_termination.families import ContractFamily

logger = logging.getLogger(__name__)


class ContractRepository:
    """
    Repository for contract lookups.

    Provides methods for:
    - Finding contracts overlapping a new contract's start on shared sectors
    - Locking a contract row for the rest of the transaction
    - Reading a contract's base terms
    """

    def find_overlapping(
        self,
        cursor,
        family: "ContractFamily",
        sector_scope: Sequence[Any],
        termination_date: date,
        service_start: date,
        exclude_contract_id: Any,
    ) -> List[OverlappingContract]:
        """
        Find active contracts whose coverage still includes the termination date.

        Args:
            cursor: Cursor of the enclosing transaction
            family: Contract family to search
            sector_scope: Sector IDs of the new contract (one for direct families)
            termination_date: Day before the new contract's service start
            service_start: New contract's service start date
            exclude_contract_id: ID of the new contract itself

        Returns:
            Overlapping contracts ordered by start date
        """
        params: Dict[str, Any] = {
            "exclude_id": exclude_contract_id,
            "termination_date": termination_date,
            "service_start": service_start,
        }

        if family.scope == SectorScopeKind.ASSOCIATION:
            query = self._association_overlap_query(family)
            params["sector_ids"] = list(sector_scope)
        else:
            query = self._direct_overlap_query(family)
            params["sector_id"] = sector_scope[0]

        cursor.execute(query, params)
        rows = cursor.fetchall()
        logger.debug(
            f"{family.contract_table}: {len(rows)} overlapping contracts "
            f"before {service_start.isoformat()}"
        )
        return [OverlappingContract(**dict(row)) for row in rows]

    def _quantity_expr(self, family: "ContractFamily", alias: str = "") -> str:
        if family.quantity_column is None:
            return "NULL::numeric"
        return f"{alias}{family.quantity_column}"

    def _direct_overlap_query(self, family: "ContractFamily") -> str:
        return f"""
            SELECT
                id,
                contract_number,
                contract_date_start,
                contract_date_end,
                {self._quantity_expr(family)} AS original_quantity
            FROM {family.contract_table}
            WHERE sector_id = %(sector_id)s
              AND id <> %(exclude_id)s
              AND is_active = true
              AND deleted_at IS NULL
              AND contract_date_start <= %(termination_date)s
              AND (contract_date_end IS NULL OR contract_date_end >= %(service_start)s)
            ORDER BY contract_date_start, id
        """

    def _association_overlap_query(self, family: "ContractFamily") -> str:
        return f"""
            SELECT DISTINCT
                c.id,
                c.contract_number,
                c.contract_date_start,
                c.contract_date_end,
                {self._quantity_expr(family, "c.")} AS original_quantity
            FROM {family.contract_table} c
            JOIN {family.association_table} cs ON cs.contract_id = c.id
            WHERE cs.sector_id = ANY(%(sector_ids)s::{family.sector_key_type}[])
              AND c.id <> %(exclude_id)s
              AND c.is_active = true
              AND c.deleted_at IS NULL
              AND cs.deleted_at IS NULL
              AND c.contract_date_start <= %(termination_date)s
              AND (c.contract_date_end IS NULL OR c.contract_date_end >= %(service_start)s)
            ORDER BY c.contract_date_start, c.id
        """

    def lock_contract(self, cursor, family: "ContractFamily", contract_id: Any) -> bool:
        """
        Lock a contract row until the transaction ends.

        Serializes concurrent amendment numbering and dedup checks for one contract.

        Returns:
            True if the row exists
        """
        cursor.execute(
            f"""
            SELECT id
            FROM {family.contract_table}
            WHERE id = %(contract_id)s
            FOR UPDATE
            """,
            {"contract_id": contract_id},
        )
        return cursor.fetchone() is not None

    def get_contract(
        self, cursor, family: "ContractFamily", contract_id: Any
    ) -> Optional[Dict[str, Any]]:
        """
        Read a non-deleted contract's base terms.

        Returns:
            Dict with id, contract_number, contract_date_start, contract_date_end
            and original_quantity, or None if not found
        """
        cursor.execute(
            f"""
            SELECT
                id,
                contract_number,
                contract_date_start,
                contract_date_end,
                {self._quantity_expr(family)} AS original_quantity
            FROM {family.contract_table}
            WHERE id = %(contract_id)s
              AND deleted_at IS NULL
            """,
            {"contract_id": contract_id},
        )
        row = cursor.fetchone()
        return dict(row) if row else None
