"""Coin top-up API endpoints."""

from fastapi import APIRouter, Depends

from tutorlink.api.deps import (
    CurrentIdentity,
    DBSession,
    Identity,
    SessionMaker,
    WalletIdentity,
    get_payment_service,
    require_role,
)
from tutorlink.models.user import User, UserRole
from tutorlink.schemas.common import ApiResponse
from tutorlink.schemas.payment import (
    CapturePaymentRequest,
    CaptureResult,
    CoinPackagesResponse,
    CoinRate,
    CreatePaymentByCoinsRequest,
    CreatePaymentRequest,
    PaymentOrderRead,
    PaymentRead,
    SweepResult,
)
from tutorlink.services.notifications import dispatch_email
from tutorlink.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/packages", response_model=CoinPackagesResponse)
async def get_coin_packages(service: PaymentService = Depends(get_payment_service)):
    """List the fixed coin packages with their prices."""
    return CoinPackagesResponse(data=service.get_coin_packages(), rate=service.rate_label())


@router.get("/rate", response_model=ApiResponse[CoinRate])
async def get_coin_rate(service: PaymentService = Depends(get_payment_service)):
    return ApiResponse(data=service.get_coin_rate())


@router.get("/history", response_model=ApiResponse[list[PaymentRead]])
async def get_payment_history(
    session: DBSession,
    identity: CurrentIdentity,
    service: PaymentService = Depends(get_payment_service),
):
    """List the caller's payments, newest first."""
    payments = await service.get_payment_history(session, identity.user_id)
    return ApiResponse(data=[PaymentRead.model_validate(p) for p in payments])


@router.post("/create", response_model=ApiResponse[PaymentOrderRead])
async def create_payment(
    request: CreatePaymentRequest,
    session_maker: SessionMaker,
    identity: CurrentIdentity,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Open a gateway order for a currency amount.

    - **amount**: At least the minimum purchase amount
    - **currency**: ISO currency code, USD by default

    Returns the gateway order id the client approves before capture.
    """
    order = await service.create_payment(
        session_maker, identity.user_id, request.amount, request.currency
    )
    return ApiResponse(data=order, message="PayPal order created successfully")


@router.post("/create-by-coins", response_model=ApiResponse[PaymentOrderRead])
async def create_payment_by_coins(
    request: CreatePaymentByCoinsRequest,
    session_maker: SessionMaker,
    identity: CurrentIdentity,
    service: PaymentService = Depends(get_payment_service),
):
    """Open a gateway order for an exact number of coins."""
    order = await service.create_payment_by_coins(
        session_maker, identity.user_id, request.coins, request.currency
    )
    return ApiResponse(data=order, message="PayPal order created successfully")


@router.post("/capture", response_model=ApiResponse[CaptureResult])
async def capture_payment(
    request: CapturePaymentRequest,
    session: DBSession,
    identity: WalletIdentity,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Capture an approved gateway order and credit its coins.

    Nothing is credited unless the gateway reports the capture as completed.
    """
    result = await service.capture_payment(session, identity.user_id, request.order_id)

    user = await session.get(User, identity.user_id)
    if user is not None:
        dispatch_email(
            user.email,
            user.name,
            "coins_purchased",
            {
                "recipient_name": user.name,
                "amount": str(result.amount),
                "coins": result.coins_added,
                "new_balance": result.new_balance,
            },
        )
    return ApiResponse(data=result, message="Payment completed successfully")


@router.post("/cancel-pending", response_model=ApiResponse[SweepResult])
async def cancel_pending_payments(
    session: DBSession,
    identity: CurrentIdentity,
    service: PaymentService = Depends(get_payment_service),
):
    """Delete the caller's abandoned pending payments."""
    async with session.begin():
        deleted = await service.cancel_pending_payments(session, identity.user_id)
    return ApiResponse(
        data=SweepResult(affected=deleted),
        message=f"Deleted {deleted} abandoned pending payments",
    )


@router.post("/expire-stale", response_model=ApiResponse[SweepResult])
async def expire_stale_payments(
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    service: PaymentService = Depends(get_payment_service),
):
    """Mark stale pending payments as expired; also run hourly by the worker."""
    async with session.begin():
        expired = await service.expire_stale_payments(session)
    return ApiResponse(
        data=SweepResult(affected=expired),
        message=f"Cleaned up {expired} expired pending payments",
    )
