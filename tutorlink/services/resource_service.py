"""Subject resource tree service.

Each (subject, course, exam board) triple owns one JSON document. Every
write follows the same cycle:

1. find-or-create the row for the triple
2. load the document into a ``ResourceTree``
3. mutate the tree in memory, locating entries by name, or by index
   where the operation exposes one
4. recompute every MCQ counter from the lists
5. write the document back with ``UPDATE ... WHERE version = :seen``

A write that matches no row lost a race with another writer and raises
ConcurrencyError; the caller's transaction rolls back untouched.
"""

import asyncio
import logging
import re
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorlink.core.exceptions import (
    ConcurrencyError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from tutorlink.models.subject_resources import SubjectResources
from tutorlink.models.wallet import utcnow
from tutorlink.providers.pdf import MCQSheetRenderer
from tutorlink.providers.storage import S3Storage
from tutorlink.schemas.resources import (
    MCQ,
    RESOURCE_TYPES,
    BulkImportResult,
    ImageRef,
    MultipleMCQsResult,
    Paper,
    PdfOutcome,
    ResourceTree,
    RevisionNote,
    SubjectResourcesRead,
    SubSection,
    Topic,
    TopicBreakdown,
)

logger = logging.getLogger(__name__)

PDF_PREFIX = "mcq-pdfs/"


@dataclass(frozen=True)
class ResourceKey:
    subject_id: uuid.UUID
    course_id: uuid.UUID
    exam_board: str


def order_conflict(order: int) -> ConflictError:
    return ConflictError(
        f"Order {order} already exists. Please use a different order number."
    )


def _enable_exam_questions(tree: ResourceTree) -> None:
    tree.exam_questions.is_enabled = True


def _enable_revision_notes(tree: ResourceTree) -> None:
    tree.revision_notes.is_enabled = True


def _enable_past_papers(tree: ResourceTree) -> None:
    tree.past_papers.is_enabled = True


def recount(tree: ResourceTree) -> None:
    for topic in tree.exam_questions.topics:
        topic.recount()


def find_or_add_sub_section(tree: ResourceTree, topic_name: str, sub_section_name: str) -> tuple[Topic, SubSection]:
    """Locate a topic and subsection by exact name, creating missing ones."""
    topic = tree.exam_questions.find_topic(topic_name)
    if topic is None:
        topic = Topic(name=topic_name, code=topic_name)
        tree.exam_questions.topics.append(topic)

    sub_section = topic.find_sub_section(sub_section_name)
    if sub_section is None:
        sub_section = SubSection(name=sub_section_name, code=sub_section_name)
        topic.sub_sections.append(sub_section)
    return topic, sub_section


def locate_sub_section(tree: ResourceTree, topic_name: str, sub_section_name: str) -> tuple[Topic, SubSection]:
    topic = tree.exam_questions.find_topic(topic_name)
    if topic is None:
        raise NotFoundError("Topic")
    sub_section = topic.find_sub_section(sub_section_name)
    if sub_section is None:
        raise NotFoundError("Sub-section")
    return topic, sub_section


def check_index(items: list, index: int, resource: str) -> None:
    if index < 0 or index >= len(items):
        raise NotFoundError(resource)


def check_revision_orders(notes: list[RevisionNote]) -> None:
    seen: set[int] = set()
    for note in notes:
        if note.order in seen:
            raise order_conflict(note.order)
        seen.add(note.order)


def normalize_mcq(raw: dict[str, Any]) -> MCQ:
    """Build an MCQ from a loosely typed import row.

    Raises:
        ValueError: If a required field is missing or a value is invalid
    """
    topic = str(raw.get("topic") or "").strip()
    sub_topic = str(raw.get("subTopic") or raw.get("sub_topic") or "").strip()
    question = str(raw.get("question") or "").strip()
    options = raw.get("options")
    if not topic or not sub_topic or not question or not options:
        label = question[:50] or "Unknown question"
        raise ValueError(f"Missing required fields for question: {label}...")
    if not isinstance(options, list):
        raise ValueError(f"Invalid options for question: {question[:50]}...")

    correct = raw.get("correctOption", raw.get("correct_option"))
    try:
        correct_option = int(correct)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid correct option for question: {question[:50]}...")

    try:
        marks = int(raw.get("marks") or 1)
    except (TypeError, ValueError):
        marks = 1

    difficulty = str(raw.get("difficulty") or "medium").strip().lower()
    if difficulty not in ("easy", "medium", "hard"):
        difficulty = "medium"

    try:
        return MCQ(
            question=question,
            options=[opt.strip() if isinstance(opt, str) else str(opt) for opt in options],
            correct_option=correct_option,
            explanation=str(raw.get("explanation") or "").strip(),
            difficulty=difficulty,
            marks=max(marks, 1),
            topic=topic,
            sub_topic=sub_topic,
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValueError(f"Invalid {field} for question: {question[:50]}...")


def pdf_key_prefix(topic_name: str, sub_section_name: str) -> str:
    safe = re.sub(r"[^a-zA-Z0-9]", "_", f"{topic_name}_{sub_section_name}_MCQs")
    return f"{PDF_PREFIX}{safe}_"


class ResourceService:
    def __init__(
        self,
        storage: S3Storage | None = None,
        renderer: Callable[[str, str, list[MCQ]], bytes] | None = None,
    ) -> None:
        self.storage = storage
        self.renderer = renderer or MCQSheetRenderer.render

    # ---- persistence -------------------------------------------------

    async def _find(self, session: AsyncSession, key: ResourceKey) -> SubjectResources | None:
        result = await session.execute(
            select(SubjectResources).where(
                SubjectResources.subject_id == key.subject_id,
                SubjectResources.course_id == key.course_id,
                SubjectResources.exam_board == key.exam_board,
            )
        )
        return result.scalar_one_or_none()

    async def _require(self, session: AsyncSession, key: ResourceKey) -> SubjectResources:
        row = await self._find(session, key)
        if row is None:
            raise NotFoundError("Subject resources")
        return row

    async def _find_or_create(
        self,
        session: AsyncSession,
        key: ResourceKey,
        created_by: uuid.UUID | None,
        init: Callable[[ResourceTree], None] | None = None,
    ) -> tuple[SubjectResources, bool]:
        row = await self._find(session, key)
        if row is not None:
            return row, False

        tree = ResourceTree()
        if init is not None:
            init(tree)
        try:
            async with session.begin_nested():
                row = SubjectResources(
                    subject_id=key.subject_id,
                    course_id=key.course_id,
                    exam_board=key.exam_board,
                    resources=tree.model_dump(mode="json", by_alias=True),
                    version=1,
                    created_by=created_by,
                )
                session.add(row)
                await session.flush()
        except IntegrityError:
            row = await self._find(session, key)
            if row is None:
                raise ValidationError("Unknown subject or course")
            return row, False

        logger.info(
            "Created subject resources %s for %s/%s/%s",
            row.id,
            key.subject_id,
            key.course_id,
            key.exam_board,
        )
        return row, True

    @staticmethod
    def load(row: SubjectResources) -> ResourceTree:
        return ResourceTree.model_validate(row.resources or {})

    async def _save(
        self,
        session: AsyncSession,
        row: SubjectResources,
        tree: ResourceTree,
    ) -> SubjectResources:
        recount(tree)
        seen_version = row.version
        result = await session.execute(
            update(SubjectResources)
            .where(
                SubjectResources.id == row.id,
                SubjectResources.version == seen_version,
            )
            .values(
                resources=tree.model_dump(mode="json", by_alias=True),
                version=seen_version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConcurrencyError("SubjectResources", str(row.id))

        await session.refresh(row, ["resources", "version", "updated_at"])
        return row

    @staticmethod
    def to_read(row: SubjectResources, tree: ResourceTree | None = None) -> SubjectResourcesRead:
        return SubjectResourcesRead(
            id=row.id,
            subject=row.subject_id,
            course=row.course_id,
            exam_board=row.exam_board,
            resources=tree if tree is not None else ResourceService.load(row),
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    # ---- whole document ----------------------------------------------

    async def upsert(
        self,
        session: AsyncSession,
        key: ResourceKey,
        resources: ResourceTree,
        created_by: uuid.UUID | None = None,
    ) -> SubjectResourcesRead:
        """Create the document or replace the resource kinds present in ``resources``."""
        row, _ = await self._find_or_create(session, key, created_by)
        tree = self.load(row)
        for field in resources.model_fields_set:
            setattr(tree, field, getattr(resources, field))

        check_revision_orders(tree.revision_notes.topics)
        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def get_subject_resources(
        self,
        session: AsyncSession,
        key: ResourceKey,
    ) -> SubjectResourcesRead:
        """The document with every stored blob reference freshly signed.

        A missing document is returned as an empty, all-disabled tree
        flagged ``is_empty``.
        """
        row = await self._find(session, key)
        if row is None:
            now = utcnow()
            return SubjectResourcesRead(
                subject=key.subject_id,
                course=key.course_id,
                exam_board=key.exam_board,
                resources=ResourceTree(),
                created_at=now,
                updated_at=now,
                is_empty=True,
            )

        tree = self.load(row)
        await self.sign_tree(tree)
        return self.to_read(row, tree)

    async def get_batch_resources_by_course(
        self,
        session: AsyncSession,
        course_id: uuid.UUID,
    ) -> list[SubjectResourcesRead]:
        result = await session.execute(
            select(SubjectResources)
            .where(SubjectResources.course_id == course_id)
            .order_by(SubjectResources.created_at)
        )
        return [self.to_read(row) for row in result.scalars().all()]

    async def toggle_resource_type(
        self,
        session: AsyncSession,
        key: ResourceKey,
        resource_type: str,
        is_enabled: bool,
        created_by: uuid.UUID | None = None,
    ) -> tuple[SubjectResourcesRead, bool]:
        """Set ``isEnabled`` on one resource kind. Returns (document, created)."""
        attr = RESOURCE_TYPES.get(resource_type)
        if attr is None:
            raise ValidationError(f"Unknown resource type: {resource_type}")

        row, created = await self._find_or_create(session, key, created_by)
        tree = self.load(row)
        section = getattr(tree, attr)
        if section.is_enabled == is_enabled and not created:
            return self.to_read(row, tree), created

        section.is_enabled = is_enabled
        row = await self._save(session, row, tree)
        return self.to_read(row, tree), created

    # ---- MCQs ----------------------------------------------------------

    async def add_mcq(
        self,
        session: AsyncSession,
        key: ResourceKey,
        topic_name: str,
        sub_section_name: str,
        mcq: MCQ,
        created_by: uuid.UUID | None = None,
    ) -> SubjectResourcesRead:
        row, _ = await self._find_or_create(session, key, created_by, _enable_exam_questions)
        tree = self.load(row)
        _, sub_section = find_or_add_sub_section(tree, topic_name, sub_section_name)
        sub_section.mcqs.append(mcq)
        sub_section.updated_at = utcnow()

        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def add_multiple_mcqs(
        self,
        session: AsyncSession,
        key: ResourceKey,
        topic_name: str,
        sub_section_name: str,
        mcqs: list[MCQ],
        created_by: uuid.UUID | None = None,
    ) -> MultipleMCQsResult:
        if not mcqs:
            raise ValidationError("MCQs array is required and cannot be empty")

        row, _ = await self._find_or_create(session, key, created_by, _enable_exam_questions)
        tree = self.load(row)
        topic, sub_section = find_or_add_sub_section(tree, topic_name, sub_section_name)
        sub_section.mcqs.extend(mcqs)
        sub_section.updated_at = utcnow()

        await self._save(session, row, tree)
        return MultipleMCQsResult(
            added_count=len(mcqs),
            total_in_sub_section=sub_section.total_questions,
            total_in_topic=topic.total_questions,
        )

    async def update_mcq(
        self,
        session: AsyncSession,
        key: ResourceKey,
        topic_name: str,
        sub_section_name: str,
        index: int,
        mcq: MCQ,
    ) -> SubjectResourcesRead:
        row = await self._require(session, key)
        tree = self.load(row)
        _, sub_section = locate_sub_section(tree, topic_name, sub_section_name)
        check_index(sub_section.mcqs, index, "MCQ")

        mcq.created_at = sub_section.mcqs[index].created_at
        mcq.updated_at = utcnow()
        sub_section.mcqs[index] = mcq

        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def delete_mcq(
        self,
        session: AsyncSession,
        key: ResourceKey,
        topic_name: str,
        sub_section_name: str,
        index: int,
    ) -> SubjectResourcesRead:
        row = await self._require(session, key)
        tree = self.load(row)
        _, sub_section = locate_sub_section(tree, topic_name, sub_section_name)
        check_index(sub_section.mcqs, index, "MCQ")

        del sub_section.mcqs[index]
        sub_section.updated_at = utcnow()

        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def bulk_import_mcqs(
        self,
        session: AsyncSession,
        key: ResourceKey,
        items: list[Any],
        created_by: uuid.UUID | None = None,
    ) -> BulkImportResult:
        """Import MCQs grouped by (topic, subTopic) and render one sheet per group.

        Malformed rows are skipped and reported in ``errors``. A failed
        sheet is reported in ``pdfs_generated`` for its group only. Each
        sheet covers the whole subsection after the import, not just the
        rows added by this call.

        Sheets replaced by this import are listed in
        ``superseded_pdf_keys``; pass them to ``delete_superseded_sheets``
        once the transaction has committed.
        """
        row, _ = await self._find_or_create(session, key, created_by, _enable_exam_questions)
        tree = self.load(row)
        result = BulkImportResult()
        groups: "OrderedDict[tuple[str, str], SubSection]" = OrderedDict()

        for raw in items:
            try:
                if not isinstance(raw, dict):
                    raise ValueError("Error processing question: not an object")
                mcq = normalize_mcq(raw)
            except ValueError as e:
                result.skipped += 1
                result.errors.append(str(e))
                continue

            topic, sub_section = find_or_add_sub_section(tree, mcq.topic, mcq.sub_topic)
            sub_section.mcqs.append(mcq)
            sub_section.updated_at = utcnow()
            groups[(topic.name, sub_section.name)] = sub_section

            result.added += 1
            breakdown = result.by_topic.setdefault(topic.name, TopicBreakdown())
            breakdown.added += 1
            breakdown.sub_topics[sub_section.name] = breakdown.sub_topics.get(sub_section.name, 0) + 1

        recount(tree)

        superseded: list[str] = []
        for (topic_name, sub_section_name), sub_section in groups.items():
            outcome = await self._render_sheet(topic_name, sub_section_name, sub_section)
            result.pdfs_generated.setdefault(topic_name, {})[sub_section_name] = outcome
            if outcome.success:
                if sub_section.pdf_key:
                    superseded.append(sub_section.pdf_key)
                sub_section.pdf_key = outcome.pdf_key
                sub_section.pdf_url = outcome.pdf_url

        if result.added:
            await self._save(session, row, tree)
        result.superseded_pdf_keys = superseded

        logger.info(
            "Bulk import into %s: added %d, skipped %d, sheets %d",
            row.id,
            result.added,
            result.skipped,
            result.pdf_success_count,
        )
        return result

    async def _render_sheet(
        self,
        topic_name: str,
        sub_section_name: str,
        sub_section: SubSection,
    ) -> PdfOutcome:
        count = len(sub_section.mcqs)
        if self.storage is None:
            return PdfOutcome(success=False, mcq_count=count, error="Blob storage is not configured")
        try:
            pdf_bytes = await asyncio.to_thread(
                self.renderer, topic_name, sub_section_name, list(sub_section.mcqs)
            )
            key = S3Storage.new_key(pdf_key_prefix(topic_name, sub_section_name), "pdf")
            await self.storage.upload(key, pdf_bytes, "application/pdf")
            pdf_url = await self.storage.get_signed_url(key)
        except Exception as e:
            logger.error(
                "Failed to generate PDF for %s - %s", topic_name, sub_section_name, exc_info=True
            )
            return PdfOutcome(success=False, mcq_count=count, error=str(e))

        return PdfOutcome(success=True, pdf_key=key, pdf_url=pdf_url, mcq_count=count)

    async def delete_superseded_sheets(self, keys: list[str]) -> None:
        """Best-effort removal of sheets no committed document points at."""
        if self.storage is None:
            return
        for stale_key in keys:
            try:
                await self.storage.delete(stale_key)
            except ExternalServiceError:
                logger.warning("Could not delete superseded sheet %s", stale_key, exc_info=True)

    # ---- revision notes ------------------------------------------------

    async def add_revision_note(
        self,
        session: AsyncSession,
        key: ResourceKey,
        note: RevisionNote,
        created_by: uuid.UUID | None = None,
    ) -> SubjectResourcesRead:
        """Append a note; its ``order`` must be unused in this document."""
        row, _ = await self._find_or_create(session, key, created_by, _enable_revision_notes)
        tree = self.load(row)
        if any(existing.order == note.order for existing in tree.revision_notes.topics):
            raise order_conflict(note.order)

        tree.revision_notes.topics.append(note)
        tree.revision_notes.is_enabled = True
        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def update_revision_note(
        self,
        session: AsyncSession,
        key: ResourceKey,
        index: int,
        note: RevisionNote,
    ) -> SubjectResourcesRead:
        row = await self._require(session, key)
        tree = self.load(row)
        topics = tree.revision_notes.topics
        check_index(topics, index, "Revision note")
        if any(existing.order == note.order for i, existing in enumerate(topics) if i != index):
            raise order_conflict(note.order)

        topics[index] = note
        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def delete_revision_note(
        self,
        session: AsyncSession,
        key: ResourceKey,
        index: int,
    ) -> SubjectResourcesRead:
        row = await self._require(session, key)
        tree = self.load(row)
        check_index(tree.revision_notes.topics, index, "Revision note")

        del tree.revision_notes.topics[index]
        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    # ---- past papers ---------------------------------------------------

    async def add_past_paper(
        self,
        session: AsyncSession,
        key: ResourceKey,
        paper: Paper,
        created_by: uuid.UUID | None = None,
    ) -> SubjectResourcesRead:
        row, _ = await self._find_or_create(session, key, created_by, _enable_past_papers)
        tree = self.load(row)
        tree.past_papers.papers.append(paper)
        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def update_past_paper(
        self,
        session: AsyncSession,
        key: ResourceKey,
        index: int,
        changes: dict[str, Any],
    ) -> SubjectResourcesRead:
        """Merge ``changes`` into the paper at ``index``."""
        row = await self._require(session, key)
        tree = self.load(row)
        papers = tree.past_papers.papers
        check_index(papers, index, "Past paper")

        merged = {**papers[index].model_dump(by_alias=True), **changes}
        try:
            papers[index] = Paper.model_validate(merged)
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ValidationError(f"{'.'.join(str(p) for p in first['loc'])}: {first['msg']}")

        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    async def delete_past_paper(
        self,
        session: AsyncSession,
        key: ResourceKey,
        index: int,
    ) -> SubjectResourcesRead:
        row = await self._require(session, key)
        tree = self.load(row)
        check_index(tree.past_papers.papers, index, "Past paper")

        del tree.past_papers.papers[index]
        row = await self._save(session, row, tree)
        return self.to_read(row, tree)

    # ---- signing -------------------------------------------------------

    async def _sign_images(self, images: list[ImageRef]) -> None:
        for image in images:
            image.url = await self.storage.sign_if_owned(image.url)

    async def sign_tree(self, tree: ResourceTree) -> ResourceTree:
        """Replace stored blob references with short-lived signed URLs in place."""
        if self.storage is None:
            return tree
        sign = self.storage.sign_if_owned

        for paper in tree.past_papers.papers + tree.mock_exams.exams:
            paper.pdf_url = await sign(paper.pdf_url)
            await self._sign_images(paper.images)

        for test in tree.target_tests.tests:
            test.pdf_url = await sign(test.pdf_url)
            await self._sign_images(test.images)

        for note in tree.revision_notes.topics:
            await self._sign_images(note.images)
            for sub_topic in note.sub_topics:
                if sub_topic.image is not None:
                    sub_topic.image.url = await sign(sub_topic.image.url)
                await self._sign_images(sub_topic.images)

        for item in tree.additional_resources.items:
            item.file_url = await sign(item.file_url)
            item.thumbnail_url = await sign(item.thumbnail_url)

        for topic in tree.exam_questions.topics:
            for sub_section in topic.sub_sections:
                if sub_section.pdf_key:
                    signed: Optional[str] = await self.storage.get_signed_url(sub_section.pdf_key)
                    sub_section.pdf_url = signed or sub_section.pdf_url
                else:
                    sub_section.pdf_url = await sign(sub_section.pdf_url)
        return tree
