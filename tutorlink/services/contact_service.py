"""Contact workflow: a student pays once to unlock a tutor's details."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutorlink.core.config import PricingPolicy
from tutorlink.core.exceptions import ConflictError, NotApprovedError, NotFoundError
from tutorlink.models.contact import Contact, ContactStatus
from tutorlink.models.teacher import TeacherProfile
from tutorlink.models.wallet import ReferenceKind, utcnow
from tutorlink.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

ALREADY_CONTACTED = "You have already initiated contact with this teacher"


class ContactService:
    def __init__(
        self,
        policy: PricingPolicy | None = None,
        wallets: WalletService | None = None,
    ) -> None:
        self.policy = policy or PricingPolicy()
        self.wallets = wallets or WalletService(self.policy)

    async def initiate_contact(
        self,
        session: AsyncSession,
        student_id: uuid.UUID,
        teacher_id: uuid.UUID,
        message: str | None = None,
    ) -> Contact:
        """Charge the student and record the contact.

        The debit and the insert share the caller's transaction; if the
        insert loses a race on the (student, teacher) unique constraint
        the ConflictError raised here rolls the debit back with it.

        Args:
            session: Active async database session (transaction managed by caller)
            student_id: Paying student
            teacher_id: TeacherProfile id being unlocked
            message: Optional note for the tutor

        Raises:
            NotFoundError: If the tutor profile does not exist
            NotApprovedError: If the tutor is not approved
            ConflictError: If the student already contacted this tutor
            InsufficientFundsError: If the student cannot pay the contact cost
        """
        teacher = await self.get_teacher(session, teacher_id)
        if teacher is None:
            raise NotFoundError("Teacher")
        if not teacher.is_approved:
            raise NotApprovedError()

        # Fast path; the unique constraint below is the real guard
        if await self.get_contact_status(session, student_id, teacher_id) is not None:
            raise ConflictError(ALREADY_CONTACTED)

        await self.wallets.debit(
            session,
            student_id,
            self.policy.contact_cost,
            f"Contact initiated with teacher: {teacher.user.name}",
            reference_kind=ReferenceKind.CONTACT,
            reference_id=teacher.id,
            insufficient_message="Insufficient coins to contact this teacher",
        )

        now = utcnow()
        contact = Contact(
            student_id=student_id,
            teacher_id=teacher.id,
            status=ContactStatus.CONTACTED,
            contact_cost=self.policy.contact_cost,
            message=message,
            initiated_at=now,
            contacted_at=now,
        )
        try:
            async with session.begin_nested():
                session.add(contact)
                await session.flush()
        except IntegrityError:
            raise ConflictError(ALREADY_CONTACTED)

        logger.info("Student %s contacted teacher %s", student_id, teacher.id)
        return contact

    async def get_teacher(
        self,
        session: AsyncSession,
        teacher_id: uuid.UUID,
    ) -> TeacherProfile | None:
        result = await session.execute(
            select(TeacherProfile)
            .options(selectinload(TeacherProfile.user))
            .where(TeacherProfile.id == teacher_id)
        )
        return result.scalar_one_or_none()

    async def get_contact_status(
        self,
        session: AsyncSession,
        student_id: uuid.UUID,
        teacher_id: uuid.UUID,
    ) -> Contact | None:
        result = await session.execute(
            select(Contact).where(
                Contact.student_id == student_id,
                Contact.teacher_id == teacher_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_teacher_contacts(
        self,
        session: AsyncSession,
        teacher_user_id: uuid.UUID,
    ) -> list[Contact]:
        """Contacts received by the caller's tutor profile, newest first."""
        result = await session.execute(
            select(TeacherProfile).where(TeacherProfile.user_id == teacher_user_id)
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError("Teacher profile")

        result = await session.execute(
            select(Contact)
            .options(selectinload(Contact.student))
            .where(Contact.teacher_id == profile.id)
            .order_by(Contact.initiated_at.desc())
        )
        return list(result.scalars().all())
