"""Student post requirement API endpoints."""

import uuid

from fastapi import APIRouter, Depends

from tutorlink.api.deps import (
    CurrentIdentity,
    DBSession,
    Identity,
    get_post_requirement_service,
    require_role,
)
from tutorlink.models.user import UserRole
from tutorlink.schemas.common import ApiResponse
from tutorlink.schemas.teacher import (
    OwnPostRequirementRead,
    PostRequirementCreate,
    PostRequirementRead,
    PostRequirementUpdate,
)
from tutorlink.services.post_requirement_service import PostRequirementService

router = APIRouter(prefix="/post-requirements", tags=["post-requirements"])

Owner = Depends(require_role(UserRole.STUDENT, UserRole.ADMIN))


@router.post("", response_model=ApiResponse[OwnPostRequirementRead], status_code=201)
async def create_post_requirement(
    request: PostRequirementCreate,
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.STUDENT)),
    service: PostRequirementService = Depends(get_post_requirement_service),
):
    """
    Publish a tutoring request tutors can apply to.

    - **subjects**: At least one ``{name, level}``
    - **languages**: At least one language the student accepts
    - **phone**: Optional number revealed to tutors who apply
    """
    async with session.begin():
        post = await service.create_post(session, identity.user_id, request)
        result = OwnPostRequirementRead.model_validate(post)
    return ApiResponse(data=result, message="Post requirement created successfully.")


@router.get("", response_model=ApiResponse[list[PostRequirementRead]])
async def get_post_requirements(
    session: DBSession,
    identity: CurrentIdentity,
    service: PostRequirementService = Depends(get_post_requirement_service),
):
    """List every post, newest first."""
    posts = await service.list_posts(session)
    return ApiResponse(data=[PostRequirementRead.model_validate(p) for p in posts])


@router.get("/mine", response_model=ApiResponse[list[OwnPostRequirementRead]])
async def get_my_post_requirements(
    session: DBSession,
    identity: Identity = Depends(require_role(UserRole.STUDENT)),
    service: PostRequirementService = Depends(get_post_requirement_service),
):
    posts = await service.list_posts(session, identity.user_id)
    return ApiResponse(data=[OwnPostRequirementRead.model_validate(p) for p in posts])


@router.get("/{post_id}", response_model=ApiResponse[PostRequirementRead])
async def get_post_requirement(
    post_id: uuid.UUID,
    session: DBSession,
    identity: CurrentIdentity,
    service: PostRequirementService = Depends(get_post_requirement_service),
):
    post = await service.get_post(session, post_id)
    return ApiResponse(data=PostRequirementRead.model_validate(post))


@router.put("/{post_id}", response_model=ApiResponse[OwnPostRequirementRead])
async def update_post_requirement(
    post_id: uuid.UUID,
    request: PostRequirementUpdate,
    session: DBSession,
    identity: Identity = Owner,
    service: PostRequirementService = Depends(get_post_requirement_service),
):
    """Update a post; only its owner or an admin may."""
    async with session.begin():
        post = await service.update_post(
            session, post_id, identity.user_id, identity.role, request
        )
        result = OwnPostRequirementRead.model_validate(post)
    return ApiResponse(data=result)


@router.delete("/{post_id}", response_model=ApiResponse[dict])
async def delete_post_requirement(
    post_id: uuid.UUID,
    session: DBSession,
    identity: Identity = Owner,
    service: PostRequirementService = Depends(get_post_requirement_service),
):
    """Delete a post no tutor has applied to; only its owner or an admin may."""
    async with session.begin():
        await service.delete_post(session, post_id, identity.user_id, identity.role)
    return ApiResponse(data={}, message="Post requirement deleted")
