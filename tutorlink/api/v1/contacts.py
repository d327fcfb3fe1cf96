"""Contact API endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from tutorlink.api.deps import DBSession, Identity, get_contact_service, require_role
from tutorlink.models.user import User, UserRole
from tutorlink.schemas.common import ApiResponse
from tutorlink.schemas.contact import ContactCreate, ContactRead, TeacherContactRead
from tutorlink.services.contact_service import ContactService
from tutorlink.services.notifications import dispatch_email

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("/teacher/contacts", response_model=ApiResponse[list[TeacherContactRead]])
async def get_teacher_contacts(
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.TEACHER)),
    service: ContactService = Depends(get_contact_service),
):
    """List the students who unlocked the caller's tutor profile."""
    contacts = await service.get_teacher_contacts(session, identity.user_id)
    return ApiResponse(data=[TeacherContactRead.model_validate(c) for c in contacts])


@router.post("/{teacher_id}", response_model=ApiResponse[ContactRead], status_code=201)
async def initiate_contact(
    teacher_id: uuid.UUID,
    session: DBSession,
    request: Optional[ContactCreate] = None,
    identity: Identity = Depends(require_role(UserRole.STUDENT, ensure_wallet=True)),
    service: ContactService = Depends(get_contact_service),
):
    """
    Unlock a tutor's contact details.

    Charges the contact cost once per (student, tutor) pair.

    - **teacher_id**: Tutor profile id
    - **message**: Optional note forwarded to the tutor
    """
    message = request.message if request is not None else None
    async with session.begin():
        contact = await service.initiate_contact(
            session=session,
            student_id=identity.user_id,
            teacher_id=teacher_id,
            message=message,
        )
        teacher = await service.get_teacher(session, teacher_id)
        student = await session.get(User, identity.user_id)
        result = ContactRead.model_validate(contact)
        recipient_email = teacher.user.email
        recipient_name = teacher.user.name
        student_name = student.name if student is not None else None

    # Committed; safe to queue the notification
    dispatch_email(
        recipient_email,
        recipient_name,
        "contact_initiated",
        {"recipient_name": recipient_name, "student_name": student_name, "message": message},
    )
    return ApiResponse(data=result, message="Contact initiated successfully")


@router.get("/{teacher_id}", response_model=ApiResponse[Optional[ContactRead]])
async def get_contact_status(
    teacher_id: uuid.UUID,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.STUDENT)),
    service: ContactService = Depends(get_contact_service),
):
    """Return the caller's contact with a tutor, or null when there is none."""
    contact = await service.get_contact_status(session, identity.user_id, teacher_id)
    if contact is None:
        return ApiResponse(data=None, message="No contact with this teacher yet")
    return ApiResponse(data=ContactRead.model_validate(contact))
