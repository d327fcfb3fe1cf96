"""Wallet API endpoints."""

from fastapi import APIRouter, Depends, Query

from tutorlink.api.deps import DBSession, WalletIdentity, get_wallet_service
from tutorlink.core.exceptions import NotFoundError
from tutorlink.schemas.common import ApiResponse
from tutorlink.schemas.wallet import LedgerEntryRead, WalletRead
from tutorlink.services.wallet_service import WalletService, to_ledger_entry

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("", response_model=ApiResponse[WalletRead])
async def get_wallet(
    session: DBSession,
    identity: WalletIdentity,
    wallets: WalletService = Depends(get_wallet_service),
):
    """
    Get the caller's wallet.

    A wallet with the default balance is created on first access.
    """
    wallet = await wallets.get_wallet(session, identity.user_id)
    if wallet is None:
        raise NotFoundError("Wallet")
    return ApiResponse(data=WalletRead.model_validate(wallet))


@router.get("/transactions", response_model=ApiResponse[list[LedgerEntryRead]])
async def get_transactions(
    session: DBSession,
    identity: WalletIdentity,
    limit: int | None = Query(default=None, ge=1, le=500),
    wallets: WalletService = Depends(get_wallet_service),
):
    """
    Get the caller's ledger, newest first.

    Debits are returned with a negative amount.
    """
    async with session.begin():
        entries = await wallets.list_transactions(session, identity.user_id, limit=limit)
    return ApiResponse(data=[to_ledger_entry(entry) for entry in entries])
