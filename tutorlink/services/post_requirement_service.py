"""Student post requirements that tutors pay to apply to.

Subjects and languages are stored in the shapes the application
eligibility checks read: ``[{"name", "level"}]`` and a list of language
names.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorlink.core.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from tutorlink.models.post_requirement import PostRequirement
from tutorlink.models.teacher_application import TeacherApplication
from tutorlink.models.user import UserRole
from tutorlink.models.wallet import utcnow
from tutorlink.schemas.teacher import (
    PostPhone,
    PostRequirementCreate,
    PostRequirementUpdate,
    PostSubject,
)
from tutorlink.services.application_service import level_index

logger = logging.getLogger(__name__)


def clean_languages(languages: list[str]) -> list[str]:
    """Trimmed, non-blank languages in their given order, without repeats."""
    cleaned: list[str] = []
    seen: set[str] = set()
    for language in languages:
        language = language.strip()
        if language and language.lower() not in seen:
            seen.add(language.lower())
            cleaned.append(language)
    if not cleaned:
        raise ValidationError("Please select at least one preferred language")
    return cleaned


def clean_post_subjects(subjects: list[PostSubject]) -> list[dict[str, Any]]:
    cleaned = []
    for subject in subjects:
        name = subject.name.strip()
        if not name:
            raise ValidationError("Please provide at least one subject with name and level")
        if level_index(subject.level) is None:
            raise ValidationError(f"Invalid level: {subject.level}")
        cleaned.append({"name": name, "level": subject.level.strip()})
    return cleaned


def phone_document(phone: PostPhone | None) -> dict[str, str] | None:
    if phone is None or not phone.number.strip():
        return None
    return {"countryCode": phone.country_code.strip(), "number": phone.number.strip()}


class PostRequirementService:
    async def create_post(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        data: PostRequirementCreate,
    ) -> PostRequirement:
        """Create a post owned by ``user_id``.

        Raises:
            ValidationError: If a subject has a blank name or an unknown
                level, or no usable language is given
        """
        post = PostRequirement(
            user_id=user_id,
            description=data.description.strip(),
            subjects=clean_post_subjects(data.subjects),
            languages=clean_languages(data.languages),
            phone=phone_document(data.phone),
            location=data.location.strip(),
            created_at=utcnow(),
        )
        session.add(post)
        await session.flush()

        logger.info("Student %s created post %s", user_id, post.id)
        return post

    async def get_post(self, session: AsyncSession, post_id: uuid.UUID) -> PostRequirement:
        post = await session.get(PostRequirement, post_id)
        if post is None:
            raise NotFoundError("Post requirement")
        return post

    async def list_posts(
        self,
        session: AsyncSession,
        user_id: uuid.UUID | None = None,
    ) -> list[PostRequirement]:
        """Posts newest first, optionally only those owned by ``user_id``."""
        query = select(PostRequirement).order_by(PostRequirement.created_at.desc())
        if user_id is not None:
            query = query.where(PostRequirement.user_id == user_id)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def _owned_post(
        self,
        session: AsyncSession,
        post_id: uuid.UUID,
        caller_id: uuid.UUID,
        caller_role: UserRole,
        action: str,
    ) -> PostRequirement:
        post = await self.get_post(session, post_id)
        if post.user_id != caller_id and caller_role != UserRole.ADMIN:
            raise UnauthorizedError(f"User not authorized to {action} this post requirement")
        return post

    async def update_post(
        self,
        session: AsyncSession,
        post_id: uuid.UUID,
        caller_id: uuid.UUID,
        caller_role: UserRole,
        data: PostRequirementUpdate,
    ) -> PostRequirement:
        """Apply the fields present in ``data``; owner or admin only."""
        post = await self._owned_post(session, post_id, caller_id, caller_role, "update")
        fields = data.model_fields_set

        if "description" in fields and data.description is not None:
            post.description = data.description.strip()
        if "subjects" in fields and data.subjects is not None:
            post.subjects = clean_post_subjects(data.subjects)
        if "languages" in fields and data.languages is not None:
            post.languages = clean_languages(data.languages)
        if "phone" in fields:
            post.phone = phone_document(data.phone)
        if "location" in fields and data.location is not None:
            post.location = data.location.strip()

        await session.flush()
        logger.info("Post %s updated by %s", post.id, caller_id)
        return post

    async def delete_post(
        self,
        session: AsyncSession,
        post_id: uuid.UUID,
        caller_id: uuid.UUID,
        caller_role: UserRole,
    ) -> None:
        """Delete a post nobody has applied to yet; owner or admin only.

        Raises:
            ConflictError: If tutors have already paid to apply
        """
        post = await self._owned_post(session, post_id, caller_id, caller_role, "delete")
        applications = await session.scalar(
            select(func.count())
            .select_from(TeacherApplication)
            .where(TeacherApplication.post_requirement_id == post.id)
        )
        if applications:
            raise ConflictError("Post requirement has applications and cannot be deleted")

        await session.delete(post)
        await session.flush()
        logger.info("Post %s deleted by %s", post_id, caller_id)
