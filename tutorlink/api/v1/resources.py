"""Subject resource API endpoints.

Documents are addressed by (subject, course, exam board). Reads are
public; every write requires an admin.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Response

from tutorlink.api.deps import DBSession, Identity, get_resource_service, require_role
from tutorlink.models.user import UserRole
from tutorlink.schemas.common import ApiResponse
from tutorlink.schemas.resources import (
    MCQ,
    BulkImportRequest,
    BulkImportResult,
    MultipleMCQsRequest,
    MultipleMCQsResult,
    Paper,
    RevisionNote,
    SubjectResourcesRead,
    ToggleResourceRequest,
    UpsertResourcesRequest,
)
from tutorlink.services.resource_service import ResourceKey, ResourceService

router = APIRouter(prefix="/subject-resources", tags=["subject-resources"])

Admin = Depends(require_role(UserRole.ADMIN))
DOCUMENT = "/{subject_id}/{course_id}/{exam_board}"


def resource_key(subject_id: uuid.UUID, course_id: uuid.UUID, exam_board: str) -> ResourceKey:
    return ResourceKey(subject_id=subject_id, course_id=course_id, exam_board=exam_board)


@router.get("/course/{course_id}", response_model=ApiResponse[list[SubjectResourcesRead]])
async def get_batch_resources_by_course(
    course_id: uuid.UUID,
    session: DBSession,
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    documents = await service.get_batch_resources_by_course(session, course_id)
    return ApiResponse(data=documents)


@router.get(DOCUMENT, response_model=ApiResponse[SubjectResourcesRead])
async def get_subject_resources(
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    service: ResourceService = Depends(get_resource_service),
):
    """
    Get the resource document for a subject, course and exam board.

    Stored file references are returned as short-lived signed URLs. A
    missing document is returned empty with ``isEmpty`` set.
    """
    document = await service.get_subject_resources(session, key)
    return ApiResponse(data=document)


@router.post("", response_model=ApiResponse[SubjectResourcesRead])
async def upsert_subject_resources(
    request: UpsertResourcesRequest,
    session: DBSession,
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    """Create a document or replace the resource kinds present in the body."""
    key = ResourceKey(request.subject, request.course, request.exam_board)
    async with session.begin():
        document = await service.upsert(
            session, key, request.resources, created_by=identity.user_id
        )
    return ApiResponse(data=document, message="Subject resources saved successfully")


@router.patch(DOCUMENT + "/toggle/{resource_type}", response_model=ApiResponse[SubjectResourcesRead])
async def toggle_resource_type(
    resource_type: str,
    request: ToggleResourceRequest,
    response: Response,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    """Enable or disable one resource kind, creating the document if needed."""
    async with session.begin():
        document, created = await service.toggle_resource_type(
            session, key, resource_type, request.is_enabled, created_by=identity.user_id
        )
    if created:
        response.status_code = 201
    state = "enabled" if request.is_enabled else "disabled"
    return ApiResponse(data=document, message=f"{resource_type} {state} successfully")


# ---- MCQs --------------------------------------------------------------


@router.post(
    DOCUMENT + "/mcqs/{topic_name}/{sub_section_name}",
    response_model=ApiResponse[SubjectResourcesRead],
    status_code=201,
)
async def add_mcq(
    topic_name: str,
    sub_section_name: str,
    mcq: MCQ,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    """Append an MCQ, creating the topic and subsection when missing."""
    async with session.begin():
        document = await service.add_mcq(
            session, key, topic_name, sub_section_name, mcq, created_by=identity.user_id
        )
    return ApiResponse(data=document, message="MCQ added successfully")


@router.put(
    DOCUMENT + "/mcqs/{topic_name}/{sub_section_name}/{mcq_index}",
    response_model=ApiResponse[SubjectResourcesRead],
)
async def update_mcq(
    topic_name: str,
    sub_section_name: str,
    mcq_index: int,
    mcq: MCQ,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        document = await service.update_mcq(
            session, key, topic_name, sub_section_name, mcq_index, mcq
        )
    return ApiResponse(data=document, message="MCQ updated successfully")


@router.delete(
    DOCUMENT + "/mcqs/{topic_name}/{sub_section_name}/{mcq_index}",
    response_model=ApiResponse[SubjectResourcesRead],
)
async def delete_mcq(
    topic_name: str,
    sub_section_name: str,
    mcq_index: int,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        document = await service.delete_mcq(
            session, key, topic_name, sub_section_name, mcq_index
        )
    return ApiResponse(data=document, message="MCQ deleted successfully")


@router.post(
    DOCUMENT + "/mcqs-bulk/{topic_name}/{sub_section_name}",
    response_model=ApiResponse[MultipleMCQsResult],
    status_code=201,
)
async def add_multiple_mcqs(
    topic_name: str,
    sub_section_name: str,
    request: MultipleMCQsRequest,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        result = await service.add_multiple_mcqs(
            session,
            key,
            topic_name,
            sub_section_name,
            request.mcqs,
            created_by=identity.user_id,
        )
    return ApiResponse(
        data=result,
        message=f"{result.added_count} MCQs added successfully to {topic_name} - {sub_section_name}",
    )


@router.post(DOCUMENT + "/mcqs-bulk-import", response_model=ApiResponse[BulkImportResult])
async def bulk_import_mcqs(
    request: BulkImportRequest,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    """
    Import MCQs spanning several topics and subtopics.

    Rows missing required fields are skipped and listed in ``errors``. A
    practice sheet PDF is generated for every subtopic that received
    questions; a failed sheet does not fail the import.
    """
    async with session.begin():
        result = await service.bulk_import_mcqs(
            session, key, request.mcqs, created_by=identity.user_id
        )
    await service.delete_superseded_sheets(result.superseded_pdf_keys)
    return ApiResponse(
        data=result,
        message=f"Imported {result.added} MCQs, skipped {result.skipped}",
    )


# ---- revision notes ----------------------------------------------------


@router.post(
    DOCUMENT + "/revision-notes",
    response_model=ApiResponse[SubjectResourcesRead],
    status_code=201,
)
async def add_revision_note(
    note: RevisionNote,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        document = await service.add_revision_note(
            session, key, note, created_by=identity.user_id
        )
    return ApiResponse(data=document, message="Revision note added successfully")


@router.put(
    DOCUMENT + "/revision-notes/{note_index}",
    response_model=ApiResponse[SubjectResourcesRead],
)
async def update_revision_note(
    note_index: int,
    note: RevisionNote,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        document = await service.update_revision_note(session, key, note_index, note)
    return ApiResponse(data=document, message="Revision note updated successfully")


@router.delete(
    DOCUMENT + "/revision-notes/{note_index}",
    response_model=ApiResponse[SubjectResourcesRead],
)
async def delete_revision_note(
    note_index: int,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        document = await service.delete_revision_note(session, key, note_index)
    return ApiResponse(data=document, message="Revision note deleted successfully")


# ---- past papers -------------------------------------------------------


@router.post(
    DOCUMENT + "/past-papers",
    response_model=ApiResponse[SubjectResourcesRead],
    status_code=201,
)
async def add_past_paper(
    paper: Paper,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        document = await service.add_past_paper(
            session, key, paper, created_by=identity.user_id
        )
    return ApiResponse(data=document, message="Past paper added successfully")


@router.put(
    DOCUMENT + "/past-papers/{paper_index}",
    response_model=ApiResponse[SubjectResourcesRead],
)
async def update_past_paper(
    paper_index: int,
    session: DBSession,
    changes: dict[str, Any] = Body(...),
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    """Merge the given fields into the paper at ``paper_index``."""
    async with session.begin():
        document = await service.update_past_paper(session, key, paper_index, changes)
    return ApiResponse(data=document, message="Past paper updated successfully")


@router.delete(
    DOCUMENT + "/past-papers/{paper_index}",
    response_model=ApiResponse[SubjectResourcesRead],
)
async def delete_past_paper(
    paper_index: int,
    session: DBSession,
    key: ResourceKey = Depends(resource_key),
    identity: Identity = Admin,
    service: ResourceService = Depends(get_resource_service),
):
    async with session.begin():
        document = await service.delete_past_paper(session, key, paper_index)
    return ApiResponse(data=document, message="Past paper deleted successfully")
