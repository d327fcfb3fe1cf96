"""Tutor profile and moderation API endpoints."""

import uuid

from fastapi import APIRouter, Depends

from tutorlink.api.deps import DBSession, Identity, get_teacher_service, require_role
from tutorlink.models.user import UserRole
from tutorlink.schemas.common import ApiResponse
from tutorlink.schemas.teacher import (
    TeacherApprovalRequest,
    TeacherProfileCreate,
    TeacherProfileRead,
)
from tutorlink.services.notifications import dispatch_email
from tutorlink.services.teacher_service import TeacherService

router = APIRouter(prefix="/teachers", tags=["teachers"])


@router.post("/profile", response_model=ApiResponse[TeacherProfileRead], status_code=201)
async def create_teacher_profile(
    request: TeacherProfileCreate,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.TEACHER)),
    service: TeacherService = Depends(get_teacher_service),
):
    """
    Create the caller's tutor profile.

    The profile starts unapproved; students cannot contact the tutor and
    the tutor cannot apply to posts until an admin approves it.

    - **subjects**: At least one ``{name, fromLevel, toLevel}``
    - **languages**: At least one language the tutor teaches in
    """
    async with session.begin():
        profile = await service.create_teacher_profile(session, identity.user_id, request)
        result = TeacherProfileRead.model_validate(profile)
    return ApiResponse(data=result, message="Teacher profile created successfully")


@router.get("/me", response_model=ApiResponse[TeacherProfileRead])
async def get_my_profile(
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.TEACHER)),
    service: TeacherService = Depends(get_teacher_service),
):
    profile = await service.get_my_profile(session, identity.user_id)
    return ApiResponse(data=TeacherProfileRead.model_validate(profile))


@router.patch("/approve/{teacher_id}", response_model=ApiResponse[TeacherProfileRead])
async def set_teacher_approval(
    teacher_id: uuid.UUID,
    request: TeacherApprovalRequest,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    service: TeacherService = Depends(get_teacher_service),
):
    """Approve or unapprove a tutor profile."""
    async with session.begin():
        teacher = await service.set_teacher_approval(session, teacher_id, request.is_approved)
        result = TeacherProfileRead.model_validate(teacher)
        recipient_email = teacher.user.email
        recipient_name = teacher.user.name

    dispatch_email(
        recipient_email,
        recipient_name,
        "teacher_approval",
        {"recipient_name": recipient_name, "is_approved": request.is_approved},
    )
    status = "approved" if request.is_approved else "unapproved"
    return ApiResponse(data=result, message=f"Teacher {status} successfully")
