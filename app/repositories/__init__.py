"""Repository abstractions for database interactions."""

from .contract_repository import ContractRepository
from .store import ContractStore, SqlContractStore

__all__ = [
    "ContractRepository",
    "ContractStore",
    "SqlContractStore",
]
