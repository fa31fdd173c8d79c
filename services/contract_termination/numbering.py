"""
Amendment numbering.

Automatic amendments are labelled "AUTO-{n}" where n is one more than the
number of non-deleted amendments (any type) the contract already has. The
count must be read on the same transaction as the insert it numbers, after
the contract row has been locked.
"""

from typing import Any, Optional

from db.amendment_repository import AmendmentRepository

AUTO_PREFIX = "AUTO"


def format_amendment_number(sequence: int) -> str:
    return f"{AUTO_PREFIX}-{sequence}"


def next_amendment_number(
    cursor,
    family,
    contract_id: Any,
    repository: Optional[AmendmentRepository] = None,
) -> str:
    """Next AUTO-n label for a contract, counted inside the caller's transaction."""
    repository = repository or AmendmentRepository()
    existing = repository.count_amendments(cursor, family, contract_id)
    return format_amendment_number(existing + 1)
