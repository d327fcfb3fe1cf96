"""Contact Pydantic schemas for request/response validation."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, EmailStr, Field

from tutorlink.models.contact import ContactStatus
from tutorlink.schemas.common import CamelModel


class ContactCreate(CamelModel):
    """Request body for initiating a contact."""

    message: Optional[str] = Field(default=None, max_length=500)


class ContactRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: uuid.UUID
    teacher_id: uuid.UUID
    status: ContactStatus
    contact_cost: int
    message: Optional[str] = None
    initiated_at: datetime
    contacted_at: Optional[datetime] = None


class ContactStudent(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: EmailStr


class TeacherContactRead(ContactRead):
    """A contact as listed to the tutor, with the student's details."""

    student: ContactStudent
