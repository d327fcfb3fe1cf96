"""Subject resource tree schemas.

The tree is stored as one JSON document per (subject, course, exam board)
triple and is serialized with camelCase keys.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import Field

from tutorlink.schemas.common import CamelModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MCQ(CamelModel):
    """A multiple choice question with four options at most."""

    question: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=1)
    correct_option: int = Field(..., ge=0, le=3)
    explanation: str = ""
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    marks: int = Field(default=1, ge=1)
    topic: str = ""
    sub_topic: str = ""
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class SubSection(CamelModel):
    name: str
    code: str = ""
    description: Optional[str] = None
    mcqs: list[MCQ] = Field(default_factory=list)
    total_questions: int = 0
    pdf_url: Optional[str] = None
    pdf_key: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def recount(self) -> int:
        self.total_questions = len(self.mcqs)
        return self.total_questions


class Topic(CamelModel):
    name: str
    code: str = ""
    description: Optional[str] = None
    sub_sections: list[SubSection] = Field(default_factory=list)
    total_questions: int = 0
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def recount(self) -> int:
        """Recompute subsection and topic totals from the MCQ lists."""
        self.total_questions = sum(ss.recount() for ss in self.sub_sections)
        return self.total_questions

    def find_sub_section(self, name: str) -> Optional[SubSection]:
        return next((ss for ss in self.sub_sections if ss.name == name), None)


class ExamQuestions(CamelModel):
    is_enabled: bool = False
    topics: list[Topic] = Field(default_factory=list)

    def find_topic(self, name: str) -> Optional[Topic]:
        return next((t for t in self.topics if t.name == name), None)


class ImageRef(CamelModel):
    url: Optional[str] = None
    caption: Optional[str] = None
    alt_text: Optional[str] = None


class RevisionSubTopic(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    order: Optional[int] = None
    image: Optional[ImageRef] = None
    images: list[ImageRef] = Field(default_factory=list)


class RevisionNote(CamelModel):
    """A revision note topic. ``order`` is unique within a resource."""

    title: str = Field(..., min_length=1)
    content: str
    images: list[ImageRef] = Field(default_factory=list)
    order: int = 0
    sub_topics: list[RevisionSubTopic] = Field(default_factory=list)


class RevisionNotes(CamelModel):
    is_enabled: bool = False
    topics: list[RevisionNote] = Field(default_factory=list)


class Flashcard(CamelModel):
    front: str
    back: str
    topic: Optional[str] = None
    difficulty: Optional[str] = None


class Flashcards(CamelModel):
    is_enabled: bool = False
    cards: list[Flashcard] = Field(default_factory=list)


class TargetTest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    topics: list[str] = Field(default_factory=list)
    difficulty: Optional[str] = None
    questions: list[str] = Field(default_factory=list)
    time_limit: Optional[int] = None
    total_marks: Optional[int] = None
    pdf_url: Optional[str] = None
    images: list[ImageRef] = Field(default_factory=list)


class TargetTests(CamelModel):
    is_enabled: bool = False
    tests: list[TargetTest] = Field(default_factory=list)


class Paper(CamelModel):
    """A past paper or mock exam PDF."""

    year: str
    title: str
    description: Optional[str] = None
    paper_number: Optional[str] = None
    pdf_url: str
    file_size: Optional[str] = None
    duration: Optional[int] = None
    total_marks: Optional[int] = None
    images: list[ImageRef] = Field(default_factory=list)


class MockExams(CamelModel):
    is_enabled: bool = False
    exams: list[Paper] = Field(default_factory=list)


class PastPapers(CamelModel):
    is_enabled: bool = False
    papers: list[Paper] = Field(default_factory=list)


class AdditionalResource(CamelModel):
    name: Optional[str] = None
    type: Optional[str] = None
    content: Any = None
    file_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    is_enabled: bool = True


class AdditionalResources(CamelModel):
    is_enabled: bool = False
    items: list[AdditionalResource] = Field(default_factory=list)


class ResourceTree(CamelModel):
    exam_questions: ExamQuestions = Field(default_factory=ExamQuestions)
    revision_notes: RevisionNotes = Field(default_factory=RevisionNotes)
    flashcards: Flashcards = Field(default_factory=Flashcards)
    target_tests: TargetTests = Field(default_factory=TargetTests)
    mock_exams: MockExams = Field(default_factory=MockExams)
    past_papers: PastPapers = Field(default_factory=PastPapers)
    additional_resources: AdditionalResources = Field(default_factory=AdditionalResources)


# camelCase resource type name -> ResourceTree attribute
RESOURCE_TYPES: dict[str, str] = {
    "examQuestions": "exam_questions",
    "revisionNotes": "revision_notes",
    "flashcards": "flashcards",
    "targetTests": "target_tests",
    "mockExams": "mock_exams",
    "pastPapers": "past_papers",
    "additionalResources": "additional_resources",
}


class SubjectResourcesRead(CamelModel):
    id: Optional[uuid.UUID] = None
    subject: uuid.UUID
    course: uuid.UUID
    exam_board: str
    resources: ResourceTree
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_empty: bool = False


class UpsertResourcesRequest(CamelModel):
    subject: uuid.UUID
    course: uuid.UUID
    exam_board: str = Field(..., min_length=1)
    resources: ResourceTree = Field(default_factory=ResourceTree)


class ToggleResourceRequest(CamelModel):
    is_enabled: bool = True


class MultipleMCQsRequest(CamelModel):
    mcqs: list[MCQ] = Field(..., min_length=1)


class BulkImportRequest(CamelModel):
    """Raw MCQ items; malformed ones, non-objects included, are skipped and reported."""

    mcqs: list[Any]


class MultipleMCQsResult(CamelModel):
    added_count: int
    total_in_sub_section: int
    total_in_topic: int


class TopicBreakdown(CamelModel):
    added: int = 0
    sub_topics: dict[str, int] = Field(default_factory=dict)


class PdfOutcome(CamelModel):
    success: bool
    pdf_url: Optional[str] = None
    pdf_key: Optional[str] = None
    mcq_count: int = 0
    error: Optional[str] = None


class BulkImportResult(CamelModel):
    added: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    by_topic: dict[str, TopicBreakdown] = Field(default_factory=dict)
    pdfs_generated: dict[str, dict[str, PdfOutcome]] = Field(default_factory=dict)
    # Sheets replaced by the import, deleted once it has committed
    superseded_pdf_keys: list[str] = Field(default_factory=list, exclude=True)

    @property
    def pdf_success_count(self) -> int:
        return sum(
            1
            for outcomes in self.pdfs_generated.values()
            for outcome in outcomes.values()
            if outcome.success
        )
