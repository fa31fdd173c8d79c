"""
Database module for the contract lifecycle engine.

This module provides the database access layer for:
- Connection pooling and transaction scope (Database)
- Contract lookups and row locks
- The append-only amendment ledger
"""

from .database import (
    Database,
    DatabaseSettings,
    init_connection_pool,
    get_database,
    close_connection_pool,
)
from .contract_repository import ContractRepository
from .amendment_repository import AmendmentRepository

__all__ = [
    'Database',
    'DatabaseSettings',
    'init_connection_pool',
    'get_database',
    'close_connection_pool',
    'ContractRepository',
    'AmendmentRepository',
]
