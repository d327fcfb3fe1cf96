"""Tutor application API endpoints."""

import uuid

from fastapi import APIRouter, Depends

from tutorlink.api.deps import (
    CurrentIdentity,
    DBSession,
    Identity,
    get_application_service,
    require_role,
)
from tutorlink.core.exceptions import ForbiddenError, NotFoundError
from tutorlink.models.teacher import TeacherProfile
from tutorlink.models.user import UserRole
from tutorlink.schemas.application import (
    ApplicationContactRead,
    ApplicationRead,
    TeacherApplicationsRead,
)
from tutorlink.schemas.common import ApiResponse
from tutorlink.services.application_service import ApplicationService
from tutorlink.services.notifications import dispatch_email

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("/apply/{post_id}", response_model=ApiResponse[ApplicationRead], status_code=201)
async def apply_to_post(
    post_id: uuid.UUID,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.TEACHER, ensure_wallet=True)),
    service: ApplicationService = Depends(get_application_service),
):
    """
    Apply to a student's post requirement.

    The tutor must be approved, share a subject and a language with the
    post, and be able to pay the application cost. The post owner must
    hold enough coins to contact the tutor back.
    """
    async with session.begin():
        application = await service.apply_to_post(
            session=session,
            teacher_user_id=identity.user_id,
            post_id=post_id,
        )
        result = ApplicationRead.model_validate(application)
        profile = await service.get_profile_for_user(session, identity.user_id)
        post = await service.get_post(session, post_id)
        recipient_email = post.user.email
        recipient_name = post.user.name
        params = {
            "recipient_name": recipient_name,
            "teacher_name": profile.user.name,
            "post_summary": post.description[:50],
        }

    dispatch_email(recipient_email, recipient_name, "application_submitted", params)
    return ApiResponse(data=result, message="Application submitted successfully")


@router.get("/contact/{application_id}", response_model=ApiResponse[ApplicationContactRead])
async def get_contact_information(
    application_id: uuid.UUID,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.TEACHER)),
    service: ApplicationService = Depends(get_application_service),
):
    """
    Reveal the post owner's contact details to the applying tutor.

    The first reveal marks the application as contacted.
    """
    async with session.begin():
        student = await service.get_contact_information(
            session=session,
            application_id=application_id,
            caller_user_id=identity.user_id,
        )
    return ApiResponse(data=ApplicationContactRead(student=student))


@router.get("/check/{post_id}", response_model=ApiResponse[ApplicationRead])
async def check_application_status(
    post_id: uuid.UUID,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.TEACHER)),
    service: ApplicationService = Depends(get_application_service),
):
    """Return the caller's application to a post."""
    application = await service.get_application_for_user(session, identity.user_id, post_id)
    return ApiResponse(data=ApplicationRead.model_validate(application))


@router.get("/teacher/{teacher_id}", response_model=ApiResponse[TeacherApplicationsRead])
async def get_applications_by_teacher(
    teacher_id: uuid.UUID,
    session: DBSession,
    identity: CurrentIdentity,
    service: ApplicationService = Depends(get_application_service),
):
    """List a tutor's applications with counts by status and period."""
    profile = await session.get(TeacherProfile, teacher_id)
    if profile is None:
        raise NotFoundError("Teacher")
    if identity.role != UserRole.ADMIN and profile.user_id != identity.user_id:
        raise ForbiddenError(identity.role.value)

    applications, stats = await service.get_applications_by_teacher(session, teacher_id)
    return ApiResponse(
        data=TeacherApplicationsRead(
            applications=[ApplicationRead.model_validate(a) for a in applications],
            stats=stats,
        )
    )


@router.patch("/{application_id}/reject", response_model=ApiResponse[ApplicationRead])
async def reject_application(
    application_id: uuid.UUID,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    service: ApplicationService = Depends(get_application_service),
):
    async with session.begin():
        application = await service.reject_application(session, application_id)
        result = ApplicationRead.model_validate(application)
    return ApiResponse(data=result, message="Application rejected")
