"""
Effective contract terms after amendments.

Contract rows keep their original end date and quantity; amendments are the
only record of later changes. The current terms of a contract are the base
row overridden by the latest non-deleted amendment that sets each field.
"""

import logging
from typing import Any, Optional, Union

from db.amendment_repository import AmendmentRepository
from db.contract_repository import ContractRepository
from db.database import Database
from models.contract_lifecycle import ContractType, EffectiveTerms
from services.contract_termination.families import get_family

logger = logging.getLogger(__name__)


def resolve_effective_terms(
    db: Database,
    contract_type: Union[ContractType, str],
    contract_id: Any,
    contract_repository: Optional[ContractRepository] = None,
    amendment_repository: Optional[AmendmentRepository] = None,
) -> Optional[EffectiveTerms]:
    """
    Resolve a contract's current end date and quantity.

    Args:
        db: Store handle
        contract_type: Contract family tag
        contract_id: Contract ID

    Returns:
        EffectiveTerms, or None if the contract does not exist or is deleted.
        amendment_number names the amendment that set the end date (or the
        quantity, when only the quantity was amended).

    Raises:
        InvalidContractType: If contract_type is unknown
    """
    family = get_family(contract_type)
    contracts = contract_repository or ContractRepository()
    amendments = amendment_repository or AmendmentRepository()

    with db.transaction() as conn:
        with conn.cursor() as cur:
            contract = contracts.get_contract(cur, family, contract_id)
            if contract is None:
                return None

            latest_end = amendments.latest_amended_value(
                cur, family, contract_id, "new_contract_date_end"
            )
            latest_quantity = amendments.latest_amended_value(
                cur, family, contract_id, "new_estimated_quantity_tons"
            )

    terms = EffectiveTerms(
        contract_id=contract["id"],
        contract_number=contract.get("contract_number"),
        contract_date_start=contract.get("contract_date_start"),
        original_end_date=contract.get("contract_date_end"),
        original_quantity=contract.get("original_quantity"),
        effective_end_date=(
            latest_end["value"] if latest_end else contract.get("contract_date_end")
        ),
        effective_quantity=(
            latest_quantity["value"] if latest_quantity else contract.get("original_quantity")
        ),
        amendment_number=(
            (latest_end or latest_quantity or {}).get("amendment_number")
        ),
    )

    logger.debug(
        f"Effective terms for {family.contract_table} {contract_id}: "
        f"end={terms.effective_end_date}, quantity={terms.effective_quantity}"
    )
    return terms
