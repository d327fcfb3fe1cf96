"""Tutor profile and post requirement schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tutorlink.schemas.common import CamelModel


class TeacherSubject(CamelModel):
    """A subject a tutor teaches over a level range."""

    name: str
    from_level: str
    to_level: str


class TeacherApprovalRequest(CamelModel):
    is_approved: bool


class TeacherProfileCreate(CamelModel):
    speciality: str = ""
    subjects: list[TeacherSubject] = Field(min_length=1)
    languages: list[str] = Field(min_length=1)
    phone_number: Optional[str] = Field(default=None, max_length=32)


class TeacherProfileRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    speciality: str
    subjects: list[TeacherSubject]
    languages: list[str]
    phone_number: Optional[str] = None
    is_approved: bool


class StudentContactInfo(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None


class PostSubject(CamelModel):
    """A subject a student wants tutoring in, at one level."""

    name: str
    level: str


class PostPhone(CamelModel):
    country_code: str = "+92"
    number: str


class PostRequirementCreate(CamelModel):
    description: str = Field(min_length=1)
    subjects: list[PostSubject] = Field(min_length=1)
    languages: list[str] = Field(min_length=1)
    phone: Optional[PostPhone] = None
    location: str = Field(min_length=1, max_length=255)


class PostRequirementUpdate(CamelModel):
    """Partial update; omitted fields keep their stored value."""

    description: Optional[str] = Field(default=None, min_length=1)
    subjects: Optional[list[PostSubject]] = Field(default=None, min_length=1)
    languages: Optional[list[str]] = Field(default=None, min_length=1)
    phone: Optional[PostPhone] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)


class PostRequirementRead(CamelModel):
    """Public view of a post; the phone stays behind an application."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    description: str
    subjects: list[PostSubject]
    languages: list[str]
    location: str
    created_at: datetime


class OwnPostRequirementRead(PostRequirementRead):
    phone: Optional[PostPhone] = None
