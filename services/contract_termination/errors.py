"""
Exceptions raised by the contract lifecycle engine.
"""


class ContractLifecycleError(Exception):
    """Base class for contract lifecycle errors."""
    pass


class InvalidContractType(ContractLifecycleError):
    """Raised when a contract type tag does not name a known contract family."""

    def __init__(self, contract_type):
        self.contract_type = contract_type
        super().__init__(f"Invalid contract type: {contract_type}")


class InvalidRange(ContractLifecycleError):
    """Raised when a calendar range ends before it starts."""

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__(f"Invalid date range: end {end} precedes start {start}")


class TransactionFailure(ContractLifecycleError):
    """Raised when the store fails during a termination run (always rolled back)."""
    pass


class InvalidSectorScope(ContractLifecycleError, ValueError):
    """Raised when a sector scope does not fit the contract family's sector link."""
    pass
