"""Tutor profile SQLAlchemy ORM model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorlink.db.base import Base, JSONDocument


class TeacherProfile(Base):
    """Tutor profile used by the contact and application workflows.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Owning User (unique, one profile per user)
        speciality: Headline speciality
        subjects: List of {"name", "fromLevel", "toLevel"} dicts
        languages: Languages the tutor communicates in
        phone_number: Contact number unlocked by students
        is_approved: Set by an admin; unapproved tutors cannot be contacted
            and cannot apply to posts
    """

    __tablename__ = "teacher_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        unique=True,
        nullable=False
    )
    speciality: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=""
    )
    subjects: Mapped[list] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list
    )
    languages: Mapped[list] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list
    )
    phone_number: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True
    )
    is_approved: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    user: Mapped["User"] = relationship("User")
