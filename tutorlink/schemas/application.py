"""Tutor application Pydantic schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from tutorlink.models.teacher_application import ApplicationStatus
from tutorlink.schemas.common import CamelModel
from tutorlink.schemas.teacher import StudentContactInfo


class ApplicationRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    teacher_id: uuid.UUID
    post_requirement_id: uuid.UUID
    status: ApplicationStatus
    application_cost: int
    applied_at: datetime
    contacted_at: Optional[datetime] = None


class ApplicationContactRead(BaseModel):
    student: StudentContactInfo


class ApplicationStats(CamelModel):
    total: int = 0
    accepted: int = 0
    contacted: int = 0
    rejected: int = 0
    total_spent: int = 0
    this_week: int = 0
    this_month: int = 0


class TeacherApplicationsRead(CamelModel):
    applications: list[ApplicationRead]
    stats: ApplicationStats
