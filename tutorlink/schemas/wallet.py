"""Wallet Pydantic schemas for request/response validation."""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from tutorlink.models.wallet import ReferenceKind, TransactionType
from tutorlink.schemas.common import CamelModel


class TransactionReference(BaseModel):
    """Tagged reference to the entity that caused a ledger entry."""

    kind: ReferenceKind
    id: uuid.UUID


class WalletRead(CamelModel):
    """Schema for reading Wallet data."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    balance: int = Field(ge=0)
    version: int
    created_at: datetime
    updated_at: datetime


class LedgerEntryRead(CamelModel):
    """A ledger entry formatted for display.

    ``amount`` is signed: positive for purchases and credits, negative
    for debits.
    """

    id: uuid.UUID
    type: Literal["purchase", "course_access", "other"]
    transaction_type: TransactionType
    amount: int
    description: str
    status: Literal["completed"] = "completed"
    created_at: datetime
    reference: Optional[TransactionReference] = None
