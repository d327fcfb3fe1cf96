"""Unit tests for the tutor application workflow.

Tests eligibility checks, the one-time charge, contact reveal and
moderation.
"""

import uuid
from unittest.mock import AsyncMock, patch
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from tests.factories import add_post, add_teacher, add_user
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
from tutorlink.models.teacher_application import ApplicationStatus, TeacherApplication
from tutorlink.models.wallet import ReferenceKind, WalletTransaction
from tutorlink.services.application_service import (
    ApplicationService,
    compute_stats,
    format_post_phone,
    languages_overlap,
    level_covers,
    subjects_match,
)
from tutorlink.services.wallet_service import WalletService


@pytest.fixture
def wallets() -> WalletService:
    return WalletService(PricingPolicy())


@pytest.fixture
def applications(wallets) -> ApplicationService:
    return ApplicationService(PricingPolicy(), wallets)


async def count_applications(session) -> int:
    return await session.scalar(select(func.count()).select_from(TeacherApplication))


async def contacted_at(session, application_id):
    return await session.scalar(
        select(TeacherApplication.contacted_at).where(TeacherApplication.id == application_id)
    )


class TestEligibilityHelpers:
    """Tests for the subject, level and language matching rules."""

    def test_level_inside_range_is_covered(self) -> None:
        assert level_covers("Grade 6", "Grade 12", "Grade 10")
        assert level_covers("Grade 6", "Grade 12", "Grade 6")
        assert level_covers("Grade 6", "Grade 12", "Grade 12")

    def test_level_outside_range_is_not_covered(self) -> None:
        assert not level_covers("Grade 6", "Grade 8", "Grade 10")
        assert not level_covers("Grade 6", "Grade 8", "Beginner")

    def test_reversed_bounds_are_accepted(self) -> None:
        assert level_covers("Grade 12", "Grade 6", "Grade 9")

    def test_unknown_level_never_matches(self) -> None:
        assert not level_covers("Grade 6", "Grade 12", "Kindergarten")
        assert not level_covers(None, "Grade 12", "Grade 10")

    def test_subject_names_match_case_insensitively(self) -> None:
        taught = [{"name": "Math", "fromLevel": "Grade 6", "toLevel": "Grade 12"}]
        assert subjects_match(taught, [{"name": " MATH ", "level": "Grade 7"}])
        assert not subjects_match(taught, [{"name": "Physics", "level": "Grade 7"}])

    def test_subject_match_requires_level_cover(self) -> None:
        taught = [{"name": "Math", "fromLevel": "Grade 1", "toLevel": "Grade 5"}]
        assert not subjects_match(taught, [{"name": "Math", "level": "Grade 10"}])

    def test_languages_overlap_case_insensitively(self) -> None:
        assert languages_overlap(["English", "French"], ["french"])
        assert not languages_overlap(["English"], ["Spanish"])
        assert not languages_overlap([], ["English"])

    def test_post_phone_formatting(self) -> None:
        assert format_post_phone({"countryCode": "+44", "number": "7700900123"}) == "+447700900123"
        assert format_post_phone({"number": "12345"}) == "12345"
        assert format_post_phone(None) is None
        assert format_post_phone({"countryCode": "+44"}) is None


class TestApplyToPost:
    """Tests for applying to a post requirement."""

    @pytest.mark.asyncio
    async def test_apply_charges_tutor_only(self, session, wallets, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            application = await applications.apply_to_post(session, teacher.user_id, post.id)

        async with session.begin():
            tutor_balance = await wallets.get_balance(session, teacher.user_id)
            student_balance = await wallets.get_balance(session, student.id)
            entry = await session.scalar(select(WalletTransaction))

        assert application.status == ApplicationStatus.ACCEPTED
        assert application.application_cost == 40
        assert tutor_balance == 110
        assert student_balance == 150
        assert entry.description == f"Applied to post: {post.description[:50]}..."
        assert entry.reference_kind == ReferenceKind.POST_REQUIREMENT
        assert entry.reference_id == post.id

    @pytest.mark.asyncio
    async def test_cost_is_flat_for_many_subjects(self, session, wallets, applications) -> None:
        subjects = [{"name": "math", "level": "Grade 10"}] + [
            {"name": f"subject {n}", "level": "Grade 10"} for n in range(5)
        ]
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student, subjects=subjects)
            application = await applications.apply_to_post(session, teacher.user_id, post.id)

        assert application.application_cost == 40

    @pytest.mark.asyncio
    async def test_second_application_is_conflict(self, session, wallets, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            await applications.apply_to_post(session, teacher.user_id, post.id)

        teacher_user_id = teacher.user_id
        with pytest.raises(ConflictError):
            async with session.begin():
                await applications.apply_to_post(session, teacher.user_id, post.id)

        async with session.begin():
            assert await wallets.get_balance(session, teacher_user_id) == 110
            assert await count_applications(session) == 1

    @pytest.mark.asyncio
    async def test_unique_constraint_rejects_duplicate_and_rolls_back_debit(
        self, session, wallets, applications
    ) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            await applications.apply_to_post(session, teacher.user_id, post.id)

        teacher_user_id = teacher.user_id
        # A concurrent request that passed the lookup before the first insert landed
        with patch.object(applications, "check_application_status", AsyncMock(return_value=None)):
            with pytest.raises(ConflictError) as exc_info:
                async with session.begin():
                    await applications.apply_to_post(session, teacher_user_id, post.id)

        assert exc_info.value.message == "You have already applied to this post"
        async with session.begin():
            assert await wallets.get_balance(session, teacher_user_id) == 110
            assert await count_applications(session) == 1
            debits = (await session.execute(select(WalletTransaction))).scalars().all()
        assert len(debits) == 1

    @pytest.mark.asyncio
    async def test_missing_profile_is_rejected(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            post = await add_post(session, student)

        with pytest.raises(ValidationError) as exc_info:
            async with session.begin():
                await applications.apply_to_post(session, uuid.uuid4(), post.id)
        assert exc_info.value.message == "Please complete your teacher profile first"

    @pytest.mark.asyncio
    async def test_unapproved_tutor_cannot_apply(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session, is_approved=False)
            post = await add_post(session, student)

        with pytest.raises(NotApprovedError):
            async with session.begin():
                await applications.apply_to_post(session, teacher.user_id, post.id)

    @pytest.mark.asyncio
    async def test_unknown_post_is_not_found(self, session, applications) -> None:
        async with session.begin():
            teacher = await add_teacher(session)

        with pytest.raises(NotFoundError):
            async with session.begin():
                await applications.apply_to_post(session, teacher.user_id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_subject_mismatch_is_rejected(self, session, wallets, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student, subjects=[{"name": "Chemistry", "level": "Grade 10"}])

        with pytest.raises(ValidationError):
            async with session.begin():
                await applications.apply_to_post(session, teacher.user_id, post.id)

        async with session.begin():
            assert await count_applications(session) == 0

    @pytest.mark.asyncio
    async def test_language_mismatch_is_rejected(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student, languages=["Spanish"])

        with pytest.raises(ValidationError):
            async with session.begin():
                await applications.apply_to_post(session, teacher.user_id, post.id)

    @pytest.mark.asyncio
    async def test_tutor_without_coins_is_rejected(self, session, wallets, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            await wallets.ensure_wallet(session, teacher.user_id)
            await wallets.debit(session, teacher.user_id, 120, "Spent elsewhere")

        teacher_user_id = teacher.user_id
        with pytest.raises(InsufficientFundsError):
            async with session.begin():
                await applications.apply_to_post(session, teacher.user_id, post.id)

        async with session.begin():
            assert await wallets.get_balance(session, teacher_user_id) == 30
            assert await count_applications(session) == 0

    @pytest.mark.asyncio
    async def test_student_must_afford_contact(self, session, wallets, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            await wallets.ensure_wallet(session, teacher.user_id)
            await wallets.ensure_wallet(session, student.id)
            await wallets.debit(session, student.id, 110, "Spent elsewhere")

        teacher_user_id, student_id = teacher.user_id, student.id
        with pytest.raises(InsufficientFundsError) as exc_info:
            async with session.begin():
                await applications.apply_to_post(session, teacher.user_id, post.id)

        assert exc_info.value.message == "Student doesn't have enough coins for contact"
        async with session.begin():
            assert await wallets.get_balance(session, teacher_user_id) == 150
            assert await wallets.get_balance(session, student_id) == 40


class TestContactReveal:
    """Tests for revealing the post owner's details to the tutor."""

    @pytest.mark.asyncio
    async def test_first_reveal_marks_contacted_once(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session, name="Sam Student", phone="+15550100")
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            application = await applications.apply_to_post(session, teacher.user_id, post.id)

        async with session.begin():
            info = await applications.get_contact_information(
                session, application.id, teacher.user_id
            )
        async with session.begin():
            first_contacted_at = await contacted_at(session, application.id)
            status = await session.scalar(
                select(TeacherApplication.status).where(TeacherApplication.id == application.id)
            )

        async with session.begin():
            again = await applications.get_contact_information(
                session, application.id, teacher.user_id
            )
        async with session.begin():
            second_contacted_at = await contacted_at(session, application.id)

        assert status == ApplicationStatus.CONTACTED
        assert first_contacted_at is not None
        assert second_contacted_at == first_contacted_at
        assert info == again
        assert info.name == "Sam Student"
        assert info.email == student.email
        assert info.phone == "+15550100"

    @pytest.mark.asyncio
    async def test_post_phone_used_when_owner_has_none(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student, phone={"countryCode": "+44", "number": "7700900123"})
            application = await applications.apply_to_post(session, teacher.user_id, post.id)

        async with session.begin():
            info = await applications.get_contact_information(
                session, application.id, teacher.user_id
            )
        assert info.phone == "+447700900123"

    @pytest.mark.asyncio
    async def test_other_tutor_is_unauthorized(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            other = await add_teacher(session, name="Other Tutor")
            post = await add_post(session, student)
            application = await applications.apply_to_post(session, teacher.user_id, post.id)

        with pytest.raises(UnauthorizedError):
            async with session.begin():
                await applications.get_contact_information(session, application.id, other.user_id)

    @pytest.mark.asyncio
    async def test_rejected_application_cannot_reveal(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            application = await applications.apply_to_post(session, teacher.user_id, post.id)
            await applications.reject_application(session, application.id)

        with pytest.raises(NotYetAcceptedError):
            async with session.begin():
                await applications.get_contact_information(
                    session, application.id, teacher.user_id
                )

    @pytest.mark.asyncio
    async def test_unknown_application_is_not_found(self, session, applications) -> None:
        with pytest.raises(NotFoundError):
            async with session.begin():
                await applications.get_contact_information(session, uuid.uuid4(), uuid.uuid4())


class TestModerationAndListing:
    """Tests for rejection, status checks and per-tutor statistics."""

    @pytest.mark.asyncio
    async def test_reject_twice_is_conflict(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)
            application = await applications.apply_to_post(session, teacher.user_id, post.id)
            await applications.reject_application(session, application.id)

        with pytest.raises(ConflictError):
            async with session.begin():
                await applications.reject_application(session, application.id)

    @pytest.mark.asyncio
    async def test_check_status_not_found_cases(self, session, applications) -> None:
        async with session.begin():
            student = await add_user(session)
            teacher = await add_teacher(session)
            post = await add_post(session, student)

        teacher_user_id, post_id = teacher.user_id, post.id
        with pytest.raises(NotFoundError):
            async with session.begin():
                await applications.get_application_for_user(session, teacher_user_id, post_id)
        with pytest.raises(NotFoundError):
            async with session.begin():
                await applications.get_application_for_user(session, uuid.uuid4(), post_id)

        async with session.begin():
            await applications.apply_to_post(session, teacher_user_id, post_id)
        async with session.begin():
            found = await applications.get_application_for_user(session, teacher_user_id, post_id)
        assert found.post_requirement_id == post_id

    @pytest.mark.asyncio
    async def test_applications_by_teacher_with_stats(self, session, applications) -> None:
        async with session.begin():
            teacher = await add_teacher(session)
            first = await add_post(session, await add_user(session))
            second = await add_post(session, await add_user(session))
            kept = await applications.apply_to_post(session, teacher.user_id, first.id)
            rejected = await applications.apply_to_post(session, teacher.user_id, second.id)
            await applications.reject_application(session, rejected.id)

        async with session.begin():
            listed, stats = await applications.get_applications_by_teacher(session, teacher.id)

        assert [a.id for a in listed] == [rejected.id, kept.id]
        assert stats.total == 2
        assert stats.accepted == 1
        assert stats.rejected == 1
        assert stats.total_spent == 80
        assert stats.this_week == 2
        assert stats.this_month == 2


class TestComputeStats:
    """Tests for period boundaries in application statistics."""

    def make_application(self, status: ApplicationStatus, applied_at: datetime) -> TeacherApplication:
        return TeacherApplication(
            teacher_id=uuid.uuid4(),
            post_requirement_id=uuid.uuid4(),
            status=status,
            application_cost=40,
            applied_at=applied_at,
        )

    def test_week_starts_monday_and_month_on_the_first(self) -> None:
        # Wednesday 2026-04-15
        now = datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
        items = [
            self.make_application(ApplicationStatus.ACCEPTED, datetime(2026, 4, 13, 0, 0, tzinfo=timezone.utc)),
            self.make_application(ApplicationStatus.CONTACTED, datetime(2026, 4, 12, 23, 59, tzinfo=timezone.utc)),
            self.make_application(ApplicationStatus.REJECTED, datetime(2026, 4, 1, 0, 0, tzinfo=timezone.utc)),
            self.make_application(ApplicationStatus.ACCEPTED, datetime(2026, 3, 31, 23, 59)),
        ]

        stats = compute_stats(items, now)

        assert stats.total == 4
        assert stats.accepted == 2
        assert stats.contacted == 1
        assert stats.rejected == 1
        assert stats.total_spent == 160
        assert stats.this_week == 1
        assert stats.this_month == 3

    def test_empty_list(self) -> None:
        stats = compute_stats([], datetime(2026, 4, 15, tzinfo=timezone.utc))
        assert stats.total == 0
        assert stats.total_spent == 0
