"""
Amendment repository: the append-only ledger of contract-modifying events.

The lifecycle engine only inserts and reads amendment rows; it never updates
or deletes them. All methods run on the caller's transaction cursor.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from models.contract_lifecycle import (
    AmendmentType,
    AutoTerminationAmendment,
    AutoTerminationRecord,
)

if TYPE_CHECKING:
    from services.contract_termination.families import ContractFamily

logger = logging.getLogger(__name__)


class AmendmentRepository:
    """
    Repository for amendment rows of every contract family.

    Provides methods for:
    - Deduplicating automatic terminations per (contract, reference contract)
    - Counting a contract's amendments for numbering
    - Inserting AUTO_TERMINATION amendments
    - Listing automatic terminations and resolving latest amended terms
    """

    def has_auto_termination(
        self,
        cursor,
        family: "ContractFamily",
        contract_id: Any,
        reference_contract_id: Any,
    ) -> bool:
        """Check for a non-deleted AUTO_TERMINATION of contract_id triggered by reference_contract_id."""
        cursor.execute(
            f"""
            SELECT 1
            FROM {family.amendment_table}
            WHERE contract_id = %(contract_id)s
              AND amendment_type = %(amendment_type)s
              AND reference_contract_id = %(reference_contract_id)s
              AND deleted_at IS NULL
            LIMIT 1
            """,
            {
                "contract_id": contract_id,
                "amendment_type": AmendmentType.AUTO_TERMINATION.value,
                "reference_contract_id": reference_contract_id,
            },
        )
        return cursor.fetchone() is not None

    def count_amendments(self, cursor, family: "ContractFamily", contract_id: Any) -> int:
        """Count non-deleted amendments of any type for a contract."""
        cursor.execute(
            f"""
            SELECT COUNT(*)::int AS count
            FROM {family.amendment_table}
            WHERE contract_id = %(contract_id)s
              AND deleted_at IS NULL
            """,
            {"contract_id": contract_id},
        )
        row = cursor.fetchone()
        return int(row["count"]) if row else 0

    def insert_auto_termination(
        self,
        cursor,
        family: "ContractFamily",
        amendment: AutoTerminationAmendment,
    ) -> Any:
        """
        Insert one AUTO_TERMINATION amendment.

        Quantity columns are written only for families that carry a quantity.

        Returns:
            ID of the new amendment row
        """
        values: Dict[str, Any] = {
            "contract_id": amendment.contract_id,
            "amendment_number": amendment.amendment_number,
            "amendment_date": amendment.amendment_date,
            "amendment_type": amendment.amendment_type.value,
            "new_contract_date_end": amendment.new_contract_date_end,
            "reference_contract_id": amendment.reference_contract_id,
            "changes_description": amendment.changes_description,
            "notes": amendment.notes,
            "created_by": amendment.created_by,
        }
        if family.has_quantity:
            values["new_estimated_quantity_tons"] = amendment.new_estimated_quantity_tons
            values["quantity_adjustment_auto"] = amendment.quantity_adjustment_auto

        columns = ", ".join(values)
        placeholders = ", ".join(f"%({name})s" for name in values)
        cursor.execute(
            f"""
            INSERT INTO {family.amendment_table} ({columns})
            VALUES ({placeholders})
            RETURNING id
            """,
            values,
        )
        amendment_id = cursor.fetchone()["id"]

        logger.info(
            f"Stored {amendment.amendment_type.value} amendment: "
            f"table={family.amendment_table}, id={amendment_id}, "
            f"contract_id={amendment.contract_id}, number={amendment.amendment_number}"
        )
        return amendment_id

    def list_auto_terminations(
        self, cursor, family: "ContractFamily", contract_id: Any
    ) -> List[AutoTerminationRecord]:
        """
        List non-deleted automatic terminations of a contract, newest first.

        The referenced (successor) contract's number is joined in.
        """
        if family.has_quantity:
            quantity_cols = "a.new_estimated_quantity_tons, a.quantity_adjustment_auto"
        else:
            quantity_cols = (
                "NULL::numeric AS new_estimated_quantity_tons, "
                "NULL::numeric AS quantity_adjustment_auto"
            )

        cursor.execute(
            f"""
            SELECT
                a.id,
                a.contract_id,
                a.amendment_number,
                a.amendment_date,
                a.new_contract_date_end,
                {quantity_cols},
                a.reference_contract_id,
                rc.contract_number AS reference_contract_number,
                a.changes_description,
                a.notes,
                a.created_by,
                a.deleted_at
            FROM {family.amendment_table} a
            LEFT JOIN {family.contract_table} rc ON a.reference_contract_id = rc.id
            WHERE a.contract_id = %(contract_id)s
              AND a.amendment_type = %(amendment_type)s
              AND a.deleted_at IS NULL
            ORDER BY a.amendment_date DESC, a.id DESC
            """,
            {
                "contract_id": contract_id,
                "amendment_type": AmendmentType.AUTO_TERMINATION.value,
            },
        )
        return [AutoTerminationRecord(**dict(row)) for row in cursor.fetchall()]

    def latest_amended_value(
        self,
        cursor,
        family: "ContractFamily",
        contract_id: Any,
        column: str,
    ) -> Optional[Dict[str, Any]]:
        """
        Latest non-deleted amendment that sets a column.

        Args:
            column: new_contract_date_end or new_estimated_quantity_tons

        Returns:
            Dict with amendment_number and value, or None
        """
        if column not in ("new_contract_date_end", "new_estimated_quantity_tons"):
            raise ValueError(f"Unsupported amended column: {column}")
        if column == "new_estimated_quantity_tons" and not family.has_quantity:
            return None

        cursor.execute(
            f"""
            SELECT amendment_number, {column} AS value
            FROM {family.amendment_table}
            WHERE contract_id = %(contract_id)s
              AND {column} IS NOT NULL
              AND deleted_at IS NULL
            ORDER BY amendment_date DESC, id DESC
            LIMIT 1
            """,
            {"contract_id": contract_id},
        )
        row = cursor.fetchone()
        return dict(row) if row else None
