"""
Read-side helpers over the amendment ledger.
"""

from .effective_terms import resolve_effective_terms

__all__ = ["resolve_effective_terms"]
