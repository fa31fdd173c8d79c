"""
Contract family registry.

Each contract type maps to one configuration record naming its contract and
amendment tables, its quantity column (if any) and how it links to sectors.
Table names in SQL come only from this registry.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from models.contract_lifecycle import ContractType, SectorScopeKind

from .errors import InvalidContractType


@dataclass(frozen=True)
class ContractFamily:
    """Storage layout of one contract type."""

    contract_type: ContractType
    contract_table: str
    amendment_table: str
    quantity_column: Optional[str]
    scope: SectorScopeKind
    label: str
    association_table: Optional[str] = None
    sector_key_type: str = "uuid"

    @property
    def has_quantity(self) -> bool:
        return self.quantity_column is not None


CONTRACT_FAMILIES: Dict[ContractType, ContractFamily] = {
    ContractType.AEROBIC: ContractFamily(
        contract_type=ContractType.AEROBIC,
        contract_table="aerobic_contracts",
        amendment_table="aerobic_contract_amendments",
        quantity_column="estimated_quantity_tons",
        scope=SectorScopeKind.DIRECT,
        label="Aerobic",
    ),
    ContractType.ANAEROBIC: ContractFamily(
        contract_type=ContractType.ANAEROBIC,
        contract_table="anaerobic_contracts",
        amendment_table="anaerobic_contract_amendments",
        quantity_column="estimated_quantity_tons",
        scope=SectorScopeKind.DIRECT,
        label="Anaerobic",
    ),
    ContractType.TMB: ContractFamily(
        contract_type=ContractType.TMB,
        contract_table="tmb_contracts",
        amendment_table="tmb_contract_amendments",
        quantity_column="estimated_quantity_tons",
        scope=SectorScopeKind.DIRECT,
        label="TMB",
    ),
    ContractType.SORTING: ContractFamily(
        contract_type=ContractType.SORTING,
        contract_table="sorting_operator_contracts",
        amendment_table="sorting_operator_contract_amendments",
        quantity_column="estimated_quantity_tons",
        scope=SectorScopeKind.DIRECT,
        label="Sorting",
    ),
    # Collector quantities live per waste code, not on the contract row
    ContractType.WASTE_COLLECTOR: ContractFamily(
        contract_type=ContractType.WASTE_COLLECTOR,
        contract_table="waste_collector_contracts",
        amendment_table="waste_collector_contract_amendments",
        quantity_column=None,
        scope=SectorScopeKind.DIRECT,
        label="Waste collection",
    ),
    ContractType.DISPOSAL: ContractFamily(
        contract_type=ContractType.DISPOSAL,
        contract_table="disposal_contracts",
        amendment_table="disposal_contract_amendments",
        quantity_column=None,
        scope=SectorScopeKind.ASSOCIATION,
        label="Disposal",
        association_table="disposal_contract_sectors",
    ),
}


def get_family(contract_type: Union[ContractType, str]) -> ContractFamily:
    """
    Look up the family for a contract type tag.

    Raises:
        InvalidContractType: If the tag is unknown
    """
    if isinstance(contract_type, str) and not isinstance(contract_type, ContractType):
        contract_type = contract_type.strip().upper()
    try:
        key = ContractType(contract_type)
    except ValueError:
        raise InvalidContractType(contract_type) from None
    return CONTRACT_FAMILIES[key]
