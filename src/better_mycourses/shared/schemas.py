"""
Schemas Module - Pydantic records produced by extraction.
=========================================================

Defines all data contracts used across the application:
- Session credential
- User profile, enrolled courses and attendance
- Course content tree (sections, activities, syllabus)
- Quiz and assignment detail records

Every record is frozen: a re-fetch produces a new value that replaces the
cached one. Field names are snake_case in Python and camelCase on the wire.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    """Base for all immutable records."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class ActivityKind(str, Enum):
    """Closed classification of Moodle module types."""

    ASSIGNMENT = "assignment"
    QUIZ = "quiz"
    RESOURCE = "resource"
    FORUM = "forum"
    URL = "url"
    FOLDER = "folder"
    OTHER = "other"

    @classmethod
    def from_modname(cls, modname: str) -> "ActivityKind":
        """Map a raw module name (``assign``, ``quiz`` ...) onto the enum."""
        if modname == "assign":
            return cls.ASSIGNMENT
        try:
            return cls(modname)
        except ValueError:
            return cls.OTHER


class SyllabusRowType(str, Enum):
    LECTURE = "lecture"
    EXAM = "exam"
    CONTENT = "content"


class AttemptStatus(str, Enum):
    """State of a single quiz attempt."""

    FINISHED = "finished"
    IN_PROGRESS = "in_progress"
    NEVER_STARTED = "never_started"
    ABANDONED = "abandoned"


class QuizStatus(str, Enum):
    """Overall quiz state derived from the attempts and page text."""

    COMPLETED = "completed"
    CLOSED = "closed"
    NOT_STARTED = "not_started"
    AVAILABLE = "available"


class CompletionStatus(str, Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


class AssignmentActivityStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    NOT_OPEN = "not_open"


# ─────────────────────────────────────────────────────────────────────────────
# Session and User Models
# ─────────────────────────────────────────────────────────────────────────────


class SessionCredential(Record):
    """
    Opaque Moodle session cookie plus the optional action key (``sesskey``).

    The credential is never expired proactively; a redirect from Moodle is
    the only signal that it stopped working.
    """

    moodle_session: str = Field(..., min_length=1)
    sesskey: Optional[str] = None

    def with_sesskey(self, sesskey: Optional[str]) -> "SessionCredential":
        return self.model_copy(update={"sesskey": sesskey})


class UserProfile(Record):
    first_name: str
    last_name: str
    email: str


class AttendanceRecord(Record):
    """One attendance row. ``status`` is free text as emitted by Moodle."""

    date: str
    status: str


class AttendanceStats(Record):
    """Counts over attendance records using the dashboard's matching rules."""

    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    other: int = 0
    total: int = 0

    @property
    def attendance_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.present / self.total


class AttendanceSummary(Record):
    """The "current/total (percentage%)" badge on a course page."""

    current: int
    total: int
    percentage: int


class AILevel(Record):
    level: int
    description: str
    color: str


# ─────────────────────────────────────────────────────────────────────────────
# Syllabus Models
# ─────────────────────────────────────────────────────────────────────────────


class Topic(Record):
    title: str
    subtopics: list[str] = Field(default_factory=list)


class LinkRef(Record):
    name: str
    url: str
    type: str = "unknown"


class SyllabusRow(Record):
    lecture_number: Optional[str] = None
    type: SyllabusRowType = SyllabusRowType.CONTENT
    topics: list[Topic] = Field(default_factory=list)
    quizzes: list[str] = Field(default_factory=list)
    materials: list[LinkRef] = Field(default_factory=list)
    lab_exercises: list[LinkRef] = Field(default_factory=list)
    raw_description: str = ""
    raw_materials: str = ""
    raw_lab_exercises: str = ""
    is_special_row: bool = False


class NoSyllabus(Record):
    type: Literal["none"] = "none"


class PdfSyllabus(Record):
    type: Literal["pdf"] = "pdf"
    url: str
    name: str


class TableSyllabus(Record):
    type: Literal["table"] = "table"
    rows: list[SyllabusRow] = Field(default_factory=list)
    source: Literal["section", "document"] = "section"


SyllabusInfo = Annotated[
    Union[NoSyllabus, PdfSyllabus, TableSyllabus],
    Field(discriminator="type"),
]


class LectureOutlineItem(Record):
    type: Literal["lecture"] = "lecture"
    lecture_number: Optional[int] = None
    title: str
    topics: list[Topic] = Field(default_factory=list)
    quizzes: list[str] = Field(default_factory=list)
    materials: list[LinkRef] = Field(default_factory=list)
    lab_exercises: list[LinkRef] = Field(default_factory=list)
    is_special: bool = False


class ExamOutlineItem(Record):
    type: Literal["exam"] = "exam"
    title: str
    materials: list[LinkRef] = Field(default_factory=list)
    is_special: bool = True


OutlineItem = Annotated[
    Union[LectureOutlineItem, ExamOutlineItem],
    Field(discriminator="type"),
]


class CourseInfo(Record):
    id: str
    name: str
    attendance: Optional[AttendanceSummary] = None
    ai_level: Optional[AILevel] = None


class SyllabusOutline(Record):
    """Syllabus rows grouped per lecture, as served by the syllabus endpoint."""

    course_info: CourseInfo
    syllabus_type: Literal["none", "pdf", "table"] = "none"
    pdf: Optional[PdfSyllabus] = None
    outline: list[OutlineItem] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Quiz and Assignment Detail Models
# ─────────────────────────────────────────────────────────────────────────────


class QuizAttempt(Record):
    number: Optional[int] = None
    status: AttemptStatus
    started: Optional[str] = None
    completed: Optional[str] = None
    marks: Optional[str] = None
    grade: Optional[str] = None
    review_url: Optional[str] = None


class QuizInfo(Record):
    quiz_id: str
    name: str
    open_date: Optional[str] = None
    close_date: Optional[str] = None
    due_date: Optional[str] = None
    time_limit: Optional[str] = None
    attempts_allowed: Optional[str] = None
    grading_method: Optional[str] = None
    attempts: list[QuizAttempt] = Field(default_factory=list)
    current_attempt: Optional[QuizAttempt] = None
    highest_grade: Optional[str] = None
    status: QuizStatus = QuizStatus.NOT_STARTED
    can_attempt: bool = False


class AssignmentDates(Record):
    open_date: Optional[str] = None
    due_date: Optional[str] = None
    cutoff_date: Optional[str] = None


class AssignmentInfo(Record):
    assignment_id: str
    name: str
    dates: AssignmentDates = Field(default_factory=AssignmentDates)
    submission_status: Optional[str] = None
    grading_status: Optional[str] = None
    time_remaining: Optional[str] = None
    last_modified: Optional[str] = None
    grade: Optional[str] = None
    files: list[LinkRef] = Field(default_factory=list)
    completion_status: CompletionStatus = CompletionStatus.INCOMPLETE
    activity_status: AssignmentActivityStatus = AssignmentActivityStatus.OPEN


# ─────────────────────────────────────────────────────────────────────────────
# Course Content Models
# ─────────────────────────────────────────────────────────────────────────────


class CourseActivity(Record):
    """
    One module inside a course section.

    ``module_id`` is the natural key used for quiz/assignment detail fetches.
    Dates are the locale-formatted strings shown by Moodle, not timestamps.
    """

    id: str
    module_id: str
    name: str
    type: str
    url: str = ""
    icon: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    open_date: Optional[str] = None
    close_date: Optional[str] = None
    availability: Optional[str] = None
    quiz_info: Optional[QuizInfo] = None
    assignment_info: Optional[AssignmentInfo] = None

    @property
    def kind(self) -> ActivityKind:
        return ActivityKind.from_modname(self.type)


class CourseSection(Record):
    """A course section. ``number`` is authoritative for display order."""

    id: str
    number: int
    name: str
    summary: Optional[str] = None
    activities: list[CourseActivity] = Field(default_factory=list)
    collapsed: bool = False
    syllabus: SyllabusInfo = Field(default_factory=NoSyllabus)


class CourseContent(Record):
    course_id: str
    course_name: str
    sections: list[CourseSection] = Field(default_factory=list)
    attendance_info: Optional[AttendanceSummary] = None
    ai_level: Optional[AILevel] = None

    def iter_activities(self):
        """Yield ``(section, activity)`` pairs in document order."""
        for section in self.sections:
            for activity in section.activities:
                yield section, activity

    def find_section(self, name: str) -> Optional[CourseSection]:
        for section in self.sections:
            if section.name == name:
                return section
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Enrolled Course Models
# ─────────────────────────────────────────────────────────────────────────────


class Course(Record):
    """
    An enrolled course as returned by the timeline-classification service.

    Upstream field names are already flat lowercase and pass through unchanged.
    ``attendance`` and ``content`` are filled in later by the dashboard and
    survive a course-list refresh.
    """

    id: int
    fullname: str = ""
    shortname: str = ""
    idnumber: str = ""
    summary: str = ""
    summaryformat: int = 1
    startdate: int = 0
    enddate: int = 0
    visible: bool = True
    fullnamedisplay: str = ""
    viewurl: str = ""
    courseimage: str = ""
    progress: Optional[float] = None
    hasprogress: bool = False
    isfavourite: bool = False
    hidden: bool = False
    showshortname: bool = False
    coursecategory: str = ""
    attendance: Optional[list[AttendanceRecord]] = None
    content: Optional[CourseContent] = None


class EnrolledCourses(Record):
    courses: list[Course] = Field(default_factory=list)
    nextoffset: Optional[int] = None
