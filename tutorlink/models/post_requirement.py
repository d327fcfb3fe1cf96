"""Student post requirement SQLAlchemy ORM model."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorlink.db.base import Base, JSONDocument


class PostRequirement(Base):
    """A student's request for tutoring that tutors pay to apply to.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Owning student
        description: Free-text description of the requirement
        subjects: List of {"name", "level"} dicts
        languages: Languages the student accepts
        phone: Optional {"countryCode", "number"} used when the owner has
            no phone on their account
        location: Where the tutoring takes place
    """

    __tablename__ = "post_requirements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False
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
    phone: Mapped[dict | None] = mapped_column(
        JSONDocument,
        nullable=True
    )
    location: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=""
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    user: Mapped["User"] = relationship("User")
