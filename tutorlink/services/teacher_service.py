"""Tutor profiles and their moderation."""

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutorlink.core.exceptions import ConflictError, NotFoundError, ValidationError
from tutorlink.models.teacher import TeacherProfile
from tutorlink.models.wallet import utcnow
from tutorlink.schemas.teacher import TeacherProfileCreate, TeacherSubject
from tutorlink.services.application_service import level_index
from tutorlink.services.post_requirement_service import clean_languages

logger = logging.getLogger(__name__)


def clean_teacher_subjects(subjects: list[TeacherSubject]) -> list[dict[str, Any]]:
    cleaned = []
    for subject in subjects:
        name = subject.name.strip()
        if not name:
            raise ValidationError("Please provide a name for every subject")
        for level in (subject.from_level, subject.to_level):
            if level_index(level) is None:
                raise ValidationError(f"Invalid level: {level}")
        cleaned.append({
            "name": name,
            "fromLevel": subject.from_level.strip(),
            "toLevel": subject.to_level.strip(),
        })
    return cleaned


class TeacherService:
    async def create_teacher_profile(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        data: TeacherProfileCreate,
    ) -> TeacherProfile:
        """Create the caller's tutor profile, unapproved until an admin acts.

        Raises:
            ConflictError: If the user already has a profile
            ValidationError: If a subject or language is unusable
        """
        if await self.find_profile(session, user_id) is not None:
            raise ConflictError(f"Teacher profile already exists for user {user_id}")

        profile = TeacherProfile(
            user_id=user_id,
            speciality=data.speciality.strip(),
            subjects=clean_teacher_subjects(data.subjects),
            languages=clean_languages(data.languages),
            phone_number=(data.phone_number or "").strip() or None,
            is_approved=False,
            created_at=utcnow(),
        )
        try:
            async with session.begin_nested():
                session.add(profile)
                await session.flush()
        except IntegrityError:
            raise ConflictError(f"Teacher profile already exists for user {user_id}")

        logger.info("User %s created teacher profile %s", user_id, profile.id)
        return profile

    async def find_profile(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
    ) -> TeacherProfile | None:
        result = await session.execute(
            select(TeacherProfile).where(TeacherProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_my_profile(self, session: AsyncSession, user_id: uuid.UUID) -> TeacherProfile:
        profile = await self.find_profile(session, user_id)
        if profile is None:
            raise NotFoundError("Teacher profile")
        return profile

    async def set_teacher_approval(
        self,
        session: AsyncSession,
        teacher_id: uuid.UUID,
        is_approved: bool,
    ) -> TeacherProfile:
        """Set the approval flag checked by the contact and application workflows."""
        result = await session.execute(
            select(TeacherProfile)
            .options(selectinload(TeacherProfile.user))
            .where(TeacherProfile.id == teacher_id)
        )
        teacher = result.scalar_one_or_none()
        if teacher is None:
            raise NotFoundError("Teacher")

        teacher.is_approved = is_approved
        await session.flush()
        logger.info("Teacher %s approval set to %s", teacher.id, is_approved)
        return teacher
