"""Tutor application workflow.

A tutor pays to apply to a student's post requirement. Once the
application exists the tutor can unlock the student's contact details;
the first unlock moves the application from ``accepted`` to
``contacted``.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutorlink.core.config import PricingPolicy
from tutorlink.core.exceptions import (
    ConflictError,
    InsufficientFundsError,
    NotApprovedError,
    NotFoundError,
    NotYetAcceptedError,
    UnauthorizedError,
    ValidationError,
)
from tutorlink.models.post_requirement import PostRequirement
from tutorlink.models.teacher import TeacherProfile
from tutorlink.models.teacher_application import ApplicationStatus, TeacherApplication
from tutorlink.models.wallet import ReferenceKind, utcnow
from tutorlink.schemas.application import ApplicationStats
from tutorlink.schemas.teacher import StudentContactInfo
from tutorlink.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

LEVELS = [
    "Beginner",
    "Intermediate",
    "Advanced",
    "Expert",
    *(f"Grade {n}" for n in range(1, 13)),
    "Diploma",
    "Bachelor's",
    "Master's",
    "PhD",
]
_LEVEL_INDEX = {level.lower(): i for i, level in enumerate(LEVELS)}

ALREADY_APPLIED = "You have already applied to this post"


def level_index(level: str | None) -> int | None:
    if not level:
        return None
    return _LEVEL_INDEX.get(level.strip().lower())


def level_covers(from_level: str | None, to_level: str | None, level: str | None) -> bool:
    """True when ``level`` lies inside the inclusive [from, to] range.

    The bounds may be given in either order. Unknown levels never match.
    """
    low, high, target = level_index(from_level), level_index(to_level), level_index(level)
    if low is None or high is None or target is None:
        return False
    if low > high:
        low, high = high, low
    return low <= target <= high


def subjects_match(teacher_subjects: Iterable[dict], post_subjects: Iterable[dict]) -> bool:
    post_subjects = list(post_subjects)
    for taught in teacher_subjects:
        name = (taught.get("name") or "").strip().lower()
        for wanted in post_subjects:
            if name and name == (wanted.get("name") or "").strip().lower() and level_covers(
                taught.get("fromLevel"), taught.get("toLevel"), wanted.get("level")
            ):
                return True
    return False


def languages_overlap(teacher_languages: Iterable[str], post_languages: Iterable[str]) -> bool:
    spoken = {lang.strip().lower() for lang in teacher_languages if lang}
    return any(lang.strip().lower() in spoken for lang in post_languages if lang)


def calculate_application_cost(subject_count: int, policy: PricingPolicy) -> int:
    """Cost of applying to a post with ``subject_count`` subjects.

    With the default policy the cap equals the base cost, so every
    application costs 40 coins.
    """
    considered = min(max(subject_count, 0), policy.application_max_subjects)
    cost = policy.application_base_cost + policy.application_cost_per_subject * considered
    return min(cost, policy.application_cost_cap)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_stats(
    applications: list[TeacherApplication],
    now: datetime | None = None,
) -> ApplicationStats:
    """Counts by status, coins spent and recent activity.

    ``thisWeek`` counts applications since Monday 00:00 UTC and
    ``thisMonth`` since the first of the month 00:00 UTC.
    """
    now = as_utc(now or utcnow())
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = midnight - timedelta(days=midnight.weekday())
    month_start = midnight.replace(day=1)

    stats = ApplicationStats(total=len(applications))
    for application in applications:
        status = ApplicationStatus(application.status)
        if status == ApplicationStatus.ACCEPTED:
            stats.accepted += 1
        elif status == ApplicationStatus.CONTACTED:
            stats.contacted += 1
        elif status == ApplicationStatus.REJECTED:
            stats.rejected += 1
        stats.total_spent += application.application_cost

        applied_at = as_utc(application.applied_at)
        if applied_at >= week_start:
            stats.this_week += 1
        if applied_at >= month_start:
            stats.this_month += 1
    return stats


class ApplicationService:
    def __init__(
        self,
        policy: PricingPolicy | None = None,
        wallets: WalletService | None = None,
    ) -> None:
        self.policy = policy or PricingPolicy()
        self.wallets = wallets or WalletService(self.policy)

    async def get_profile_for_user(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
    ) -> TeacherProfile | None:
        result = await session.execute(
            select(TeacherProfile)
            .options(selectinload(TeacherProfile.user))
            .where(TeacherProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_post(
        self,
        session: AsyncSession,
        post_id: uuid.UUID,
    ) -> PostRequirement | None:
        result = await session.execute(
            select(PostRequirement)
            .options(selectinload(PostRequirement.user))
            .where(PostRequirement.id == post_id)
        )
        return result.scalar_one_or_none()

    async def apply_to_post(
        self,
        session: AsyncSession,
        teacher_user_id: uuid.UUID,
        post_id: uuid.UUID,
    ) -> TeacherApplication:
        """Validate eligibility, charge the tutor and create the application.

        Args:
            session: Active async database session (transaction managed by caller)
            teacher_user_id: User id of the applying tutor
            post_id: Post requirement being applied to

        Raises:
            ValidationError: If the tutor has no profile, or subjects or
                languages do not match
            NotApprovedError: If the tutor profile is not approved
            NotFoundError: If the post does not exist
            ConflictError: If the tutor already applied to this post
            InsufficientFundsError: If the tutor cannot pay, or the post
                owner could not afford to contact back
        """
        profile = await self.get_profile_for_user(session, teacher_user_id)
        if profile is None:
            raise ValidationError("Please complete your teacher profile first")
        if not profile.is_approved:
            raise NotApprovedError("Your teacher profile is not approved yet")

        post = await self.get_post(session, post_id)
        if post is None:
            raise NotFoundError("Post requirement")

        if await self.check_application_status(session, profile.id, post.id) is not None:
            raise ConflictError(ALREADY_APPLIED)

        if not subjects_match(profile.subjects or [], post.subjects or []):
            raise ValidationError("Your subjects don't match the post requirements")
        if not languages_overlap(profile.languages or [], post.languages or []):
            raise ValidationError("You don't share a common language with the student")

        teacher_wallet = await self.wallets.ensure_wallet(session, teacher_user_id)
        student_wallet = await self.wallets.ensure_wallet(session, post.user_id)

        cost = calculate_application_cost(len(post.subjects or []), self.policy)
        if teacher_wallet.balance < cost:
            raise InsufficientFundsError(
                str(teacher_user_id),
                cost,
                teacher_wallet.balance,
                message="Insufficient coins to apply to this post",
            )
        # Pre-check only; the student is not charged here
        if student_wallet.balance < self.policy.contact_cost:
            raise InsufficientFundsError(
                str(post.user_id),
                self.policy.contact_cost,
                student_wallet.balance,
                message="Student doesn't have enough coins for contact",
            )

        await self.wallets.debit(
            session,
            teacher_user_id,
            cost,
            f"Applied to post: {post.description[:50]}...",
            reference_kind=ReferenceKind.POST_REQUIREMENT,
            reference_id=post.id,
            insufficient_message="Insufficient coins to apply to this post",
        )

        application = TeacherApplication(
            teacher_id=profile.id,
            post_requirement_id=post.id,
            status=ApplicationStatus.ACCEPTED,
            application_cost=cost,
            applied_at=utcnow(),
        )
        try:
            async with session.begin_nested():
                session.add(application)
                await session.flush()
        except IntegrityError:
            raise ConflictError(ALREADY_APPLIED)

        logger.info(
            "Teacher %s applied to post %s for %d coins", profile.id, post.id, cost
        )
        return application

    async def check_application_status(
        self,
        session: AsyncSession,
        teacher_id: uuid.UUID,
        post_id: uuid.UUID,
    ) -> TeacherApplication | None:
        result = await session.execute(
            select(TeacherApplication).where(
                TeacherApplication.teacher_id == teacher_id,
                TeacherApplication.post_requirement_id == post_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_application_for_user(
        self,
        session: AsyncSession,
        teacher_user_id: uuid.UUID,
        post_id: uuid.UUID,
    ) -> TeacherApplication:
        profile = await self.get_profile_for_user(session, teacher_user_id)
        if profile is None:
            raise NotFoundError("Teacher profile")
        application = await self.check_application_status(session, profile.id, post_id)
        if application is None:
            raise NotFoundError("Application")
        return application

    async def get_contact_information(
        self,
        session: AsyncSession,
        application_id: uuid.UUID,
        caller_user_id: uuid.UUID,
    ) -> StudentContactInfo:
        """Reveal the post owner's contact details to the applying tutor.

        The first call moves ``accepted`` to ``contacted`` and stamps
        ``contacted_at``; later calls return the same details untouched.
        """
        result = await session.execute(
            select(TeacherApplication)
            .options(
                selectinload(TeacherApplication.teacher),
                selectinload(TeacherApplication.post_requirement).selectinload(
                    PostRequirement.user
                ),
            )
            .where(TeacherApplication.id == application_id)
        )
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFoundError("Application")

        if application.teacher.user_id != caller_user_id:
            raise UnauthorizedError("Not authorized to access this application")

        status = ApplicationStatus(application.status)
        if status not in (ApplicationStatus.ACCEPTED, ApplicationStatus.CONTACTED):
            raise NotYetAcceptedError()

        if status == ApplicationStatus.ACCEPTED:
            contacted_at = utcnow()
            # Conditional so a concurrent first reveal stamps only once
            outcome = await session.execute(
                update(TeacherApplication)
                .where(
                    TeacherApplication.id == application.id,
                    TeacherApplication.status == ApplicationStatus.ACCEPTED,
                )
                .values(status=ApplicationStatus.CONTACTED, contacted_at=contacted_at)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount:
                logger.info("Application %s moved to contacted", application.id)
            await session.refresh(application, ["status", "contacted_at"])

        post = application.post_requirement
        owner = post.user
        return StudentContactInfo(
            name=owner.name,
            email=owner.email,
            phone=owner.phone or format_post_phone(post.phone),
        )

    async def reject_application(
        self,
        session: AsyncSession,
        application_id: uuid.UUID,
    ) -> TeacherApplication:
        """Moderation action; ``rejected`` is terminal."""
        application = await session.get(TeacherApplication, application_id)
        if application is None:
            raise NotFoundError("Application")
        if ApplicationStatus(application.status) == ApplicationStatus.REJECTED:
            raise ConflictError("Application is already rejected")

        application.status = ApplicationStatus.REJECTED
        await session.flush()
        logger.info("Application %s rejected", application.id)
        return application

    async def get_applications_by_teacher(
        self,
        session: AsyncSession,
        teacher_id: uuid.UUID,
        now: datetime | None = None,
    ) -> tuple[list[TeacherApplication], ApplicationStats]:
        result = await session.execute(
            select(TeacherApplication)
            .where(TeacherApplication.teacher_id == teacher_id)
            .order_by(TeacherApplication.applied_at.desc())
        )
        applications = list(result.scalars().all())
        return applications, compute_stats(applications, now)


def format_post_phone(phone: dict[str, Any] | None) -> str | None:
    if not phone:
        return None
    number = phone.get("number")
    if not number:
        return None
    return f"{phone.get('countryCode') or ''}{number}"
