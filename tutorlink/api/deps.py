"""API dependency injection.

Provides FastAPI dependencies for database sessions, caller identity
and the services used across API endpoints.
"""

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorlink.core.config import PricingPolicy, get_pricing_policy, get_settings
from tutorlink.core.exceptions import ForbiddenError, UnauthorizedError
from tutorlink.db.session import get_async_session, get_async_session_maker
from tutorlink.models.user import UserRole
from tutorlink.providers.paypal import PayPalGateway
from tutorlink.providers.storage import S3Storage
from tutorlink.services.application_service import ApplicationService
from tutorlink.services.contact_service import ContactService
from tutorlink.services.payment_service import PaymentService
from tutorlink.services.post_requirement_service import PostRequirementService
from tutorlink.services.resource_service import ResourceService
from tutorlink.services.teacher_service import TeacherService
from tutorlink.services.wallet_service import WalletService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides an async database session.

    This wraps the session management from tutorlink.db.session
    for use as a FastAPI dependency.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async for session in get_async_session():
        yield session


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory for operations that run their own units of work."""
    return get_async_session_maker()


# Type alias for cleaner dependency injection syntax
DBSession = Annotated[AsyncSession, Depends(get_db)]
SessionMaker = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_maker)]


@dataclass(frozen=True)
class Identity:
    """Caller resolved from the bearer token."""

    user_id: uuid.UUID
    role: UserRole


def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    """Decode the bearer JWT into the caller's user id and role."""
    if credentials is None:
        raise UnauthorizedError()

    settings = get_settings()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return Identity(
            user_id=uuid.UUID(str(payload["sub"])),
            role=UserRole(payload["role"]),
        )
    except (JWTError, KeyError, ValueError):
        raise UnauthorizedError()


def get_policy() -> PricingPolicy:
    return get_pricing_policy()


def get_wallet_service(policy: PricingPolicy = Depends(get_policy)) -> WalletService:
    return WalletService(policy)


async def get_wallet_identity(
    session: DBSession,
    identity: Identity = Depends(get_identity),
    wallets: WalletService = Depends(get_wallet_service),
) -> Identity:
    """Caller identity with a wallet guaranteed to exist."""
    async with session.begin():
        await wallets.ensure_wallet(session, identity.user_id)
    return identity


def require_role(*roles: UserRole, ensure_wallet: bool = False):
    """Dependency factory rejecting callers whose role is not in ``roles``.

    With ``ensure_wallet`` an allowed caller also gets a wallet.
    """

    async def _check(
        session: DBSession,
        identity: Identity = Depends(get_identity),
        wallets: WalletService = Depends(get_wallet_service),
    ) -> Identity:
        if identity.role not in roles:
            raise ForbiddenError(identity.role.value)
        if ensure_wallet:
            async with session.begin():
                await wallets.ensure_wallet(session, identity.user_id)
        return identity

    return _check


CurrentIdentity = Annotated[Identity, Depends(get_identity)]
WalletIdentity = Annotated[Identity, Depends(get_wallet_identity)]


def get_contact_service(policy: PricingPolicy = Depends(get_policy)) -> ContactService:
    return ContactService(policy)


def get_application_service(policy: PricingPolicy = Depends(get_policy)) -> ApplicationService:
    return ApplicationService(policy)


def get_teacher_service() -> TeacherService:
    return TeacherService()


def get_post_requirement_service() -> PostRequirementService:
    return PostRequirementService()


def get_payment_gateway() -> PayPalGateway:
    return PayPalGateway(get_settings())


def get_payment_service(
    policy: PricingPolicy = Depends(get_policy),
    gateway: PayPalGateway = Depends(get_payment_gateway),
) -> PaymentService:
    return PaymentService(policy, gateway)


def get_storage() -> S3Storage | None:
    settings = get_settings()
    if not settings.AWS_BUCKET_NAME:
        return None
    return S3Storage(settings)


def get_resource_service(storage: S3Storage | None = Depends(get_storage)) -> ResourceService:
    return ResourceService(storage)
