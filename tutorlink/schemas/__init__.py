# Pydantic Data Transfer Objects

from tutorlink.schemas.common import ApiResponse, CamelModel
from tutorlink.schemas.resources import ResourceTree
from tutorlink.schemas.wallet import LedgerEntryRead, TransactionReference, WalletRead

__all__ = [
    "ApiResponse",
    "CamelModel",
    "LedgerEntryRead",
    "ResourceTree",
    "TransactionReference",
    "WalletRead",
]
