"""Subject resources SQLAlchemy ORM model."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from tutorlink.db.base import Base, JSONDocument
from tutorlink.models.wallet import utcnow


class SubjectResources(Base):
    """Resource tree for one (subject, course, exam board) triple.

    The nested tree lives in a single JSON document. Writers load it,
    mutate it in memory and write it back guarded by ``version``.

    Attributes:
        id: Unique identifier (UUID)
        subject_id: Subject reference
        course_id: Course reference
        exam_board: Exam board name, e.g. "CAIE"
        resources: Serialized ResourceTree document
        version: Optimistic locking version number
        created_by: Admin who created the document
    """

    __tablename__ = "subject_resources"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    subject_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("subjects.id"),
        nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("courses.id"),
        nullable=False,
        index=True
    )
    exam_board: Mapped[str] = mapped_column(
        String(100),
        nullable=False
    )
    resources: Mapped[dict] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "subject_id",
            "course_id",
            "exam_board",
            name="uq_subject_resources_triple",
        ),
    )
