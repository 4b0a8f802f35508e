"""
Syllabus extraction for the "Course Syllabus" section of a course page.
======================================================================

Three strategies are tried in order and the first success wins:

1. ``table_in_section``: a table inside the syllabus section.
2. ``pdf_link_in_section``: a link in that section whose text mentions
   "syllabus" and whose target is a PDF or file resource.
3. ``keyword_table_in_document``: any table in the whole document with more
   than five body rows and a header mentioning lectures, weeks, topics, ...

When none match the result is ``NoSyllabus``.

Table rows need at least four cells (lecture number, description,
materials, lab exercises). The description cell is parsed again as a
fragment: bold text becomes topic titles, list items become subtopics of the
most recently added topic, and anything mentioning "Quiz" goes to the quiz
list instead. The only exam marker is the row background colour.
"""

import re
from typing import Callable, Optional

from bs4 import BeautifulSoup, Tag

from better_mycourses.extraction.common import HtmlInput, make_soup, squash, text_of
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.schemas import (
    CourseContent,
    CourseInfo,
    ExamOutlineItem,
    LectureOutlineItem,
    LinkRef,
    NoSyllabus,
    PdfSyllabus,
    SyllabusOutline,
    SyllabusRow,
    SyllabusRowType,
    TableSyllabus,
    Topic,
)

logger = get_logger(__name__)

SYLLABUS_SECTION_NAME = "Course Syllabus"
SYLLABUS_SECTION_SELECTOR = f'li[data-sectionname="{SYLLABUS_SECTION_NAME}"]'
SPECIAL_ROW_COLOR = "#aaf542"
QUIZ_MARKER = "Quiz"
QUIZ_TAG_PATTERN = re.compile(r"<strong>(Quiz \d+:.*?)</strong>", re.IGNORECASE | re.DOTALL)
HEADER_KEYWORDS = ("lecture", "week", "topic", "material", "description", "exercise")
MIN_DOCUMENT_TABLE_ROWS = 5

SyllabusStrategy = Callable[[BeautifulSoup, Optional[Tag]], Optional[object]]


# ─────────────────────────────────────────────────────────────────────────────
# Link Classification
# ─────────────────────────────────────────────────────────────────────────────


def classify_material(href: str) -> str:
    if "/mod/folder/" in href:
        return "folder"
    if "/mod/page/" in href:
        return "page"
    if "/mod/resource/" in href:
        return "file"
    return "unknown"


def classify_lab_exercise(href: str) -> str:
    if "/mod/folder/" in href:
        return "folder"
    if "/mod/page/" in href:
        return "page"
    if "/course/section/" in href:
        return "section"
    if "docs.google.com" in href:
        return "external"
    return "unknown"


def _links(cell: Tag, classify: Callable[[str], str]) -> list[LinkRef]:
    links = []
    for anchor in cell.find_all("a"):
        href = anchor.get("href")
        name = text_of(anchor)
        if href and name:
            links.append(LinkRef(name=name, url=href, type=classify(href)))
    return links


# ─────────────────────────────────────────────────────────────────────────────
# Row Parsing
# ─────────────────────────────────────────────────────────────────────────────


def _inside(node: Tag, names: tuple[str, ...]) -> bool:
    return any(parent.name in names for parent in node.parents)


def parse_description(cell: Tag) -> tuple[list[Topic], list[str]]:
    """
    Split a description cell into topics and quizzes.

    Elements are visited in document order so a list item attaches to the
    topic directly above it. Bold text inside a list item opens a new topic
    that the item itself then belongs to. List items before the first topic
    are dropped.
    """
    fragment = make_soup(cell.decode_contents())
    topics: list[dict] = []
    quizzes: list[str] = []

    def add_title(node: Tag) -> None:
        title = text_of(node)
        if not title:
            return
        if QUIZ_MARKER in title:
            if squash(title) not in quizzes:
                quizzes.append(squash(title))
        else:
            topics.append({"title": title, "subtopics": []})

    for node in fragment.find_all(["strong", "b", "li"]):
        if node.name == "li":
            if not _inside(node, ("ul", "ol")):
                continue
            # bold text in the item opens a topic before the item is attached
            for bold in node.find_all(["strong", "b"]):
                if bold.find_parent("li") is node and not _inside(bold, ("strong", "b")):
                    add_title(bold)
            subtopic = text_of(node)
            if not subtopic:
                continue
            if QUIZ_MARKER in subtopic:
                if subtopic not in quizzes:
                    quizzes.append(subtopic)
            elif topics:
                topics[-1]["subtopics"].append(subtopic)
            continue

        # bold nested in bold belongs to its parent; bold in a list item was handled with it
        if _inside(node, ("strong", "b", "li")):
            continue
        add_title(node)

    # quiz headings split across markup still follow the "<strong>Quiz N: ...</strong>" form
    for match in QUIZ_TAG_PATTERN.finditer(cell.decode_contents()):
        quiz = squash(re.sub(r"<[^>]+>", "", match.group(1)))
        if quiz not in quizzes:
            quizzes.append(quiz)

    return [Topic(**topic) for topic in topics], quizzes


def parse_syllabus_row(row: Tag) -> Optional[SyllabusRow]:
    """Parse one table row; rows with fewer than four cells yield ``None``."""
    cells = row.find_all("td", recursive=False) or row.find_all("td")
    if len(cells) < 4:
        return None

    lecture_number = text_of(cells[0])
    topics, quizzes = parse_description(cells[1])

    is_special = (row.get("bgcolor") or "").strip().lower() == SPECIAL_ROW_COLOR
    if is_special:
        row_type = SyllabusRowType.EXAM
    elif lecture_number:
        row_type = SyllabusRowType.LECTURE
    else:
        row_type = SyllabusRowType.CONTENT

    return SyllabusRow(
        lecture_number=lecture_number or None,
        type=row_type,
        topics=topics,
        quizzes=quizzes,
        materials=_links(cells[2], classify_material),
        lab_exercises=_links(cells[3], classify_lab_exercise),
        raw_description=squash(cells[1].get_text(" ")),
        raw_materials=squash(cells[2].get_text(" ")),
        raw_lab_exercises=squash(cells[3].get_text(" ")),
        is_special_row=is_special,
    )


def _body_rows(table: Tag) -> list[Tag]:
    rows = table.select("tbody tr")
    if rows:
        return rows
    return [tr for tr in table.find_all("tr") if tr.find("td") is not None]


def parse_syllabus_table(table: Tag) -> list[SyllabusRow]:
    rows = []
    for row in _body_rows(table):
        parsed = parse_syllabus_row(row)
        if parsed is not None:
            rows.append(parsed)
    return rows


# ─────────────────────────────────────────────────────────────────────────────
# Strategies
# ─────────────────────────────────────────────────────────────────────────────


def table_in_section(soup: BeautifulSoup, section: Optional[Tag]) -> Optional[TableSyllabus]:
    if section is None:
        return None
    table = section.find("table")
    if table is None:
        return None
    rows = parse_syllabus_table(table)
    if not rows:
        return None
    return TableSyllabus(rows=rows, source="section")


def _is_file_link(href: str) -> bool:
    lowered = href.lower()
    return (
        lowered.split("?")[0].endswith(".pdf")
        or "/mod/resource/" in lowered
        or "pluginfile.php" in lowered
    )


def pdf_link_in_section(soup: BeautifulSoup, section: Optional[Tag]) -> Optional[PdfSyllabus]:
    if section is None:
        return None
    for anchor in section.find_all("a"):
        href = anchor.get("href") or ""
        name = text_of(anchor)
        if "syllabus" in name.lower() and _is_file_link(href):
            return PdfSyllabus(url=href, name=name)
    return None


def _header_text(table: Tag) -> str:
    head = table.find("thead")
    if head is not None:
        return text_of(head)
    header_cells = table.find_all("th")
    if header_cells:
        return " ".join(text_of(th) for th in header_cells)
    first_row = table.find("tr")
    return text_of(first_row)


def keyword_table_in_document(
    soup: BeautifulSoup, section: Optional[Tag]
) -> Optional[TableSyllabus]:
    for table in soup.find_all("table"):
        if len(_body_rows(table)) <= MIN_DOCUMENT_TABLE_ROWS:
            continue
        header = _header_text(table).lower()
        if not any(keyword in header for keyword in HEADER_KEYWORDS):
            continue
        rows = parse_syllabus_table(table)
        if rows:
            return TableSyllabus(rows=rows, source="document")
    return None


SYLLABUS_STRATEGIES: tuple[SyllabusStrategy, ...] = (
    table_in_section,
    pdf_link_in_section,
    keyword_table_in_document,
)


def extract_syllabus(html: HtmlInput, section: Optional[Tag] = None):
    """
    Run the syllabus strategies against a whole course page.

    Args:
        html: The full course page (string or parsed document)
        section: The syllabus section element when the caller already has it

    Returns:
        ``TableSyllabus``, ``PdfSyllabus`` or ``NoSyllabus``
    """
    soup = make_soup(html)
    syllabus_section = soup.select_one(SYLLABUS_SECTION_SELECTOR) or section

    for strategy in SYLLABUS_STRATEGIES:
        result = strategy(soup, syllabus_section)
        if result is not None:
            logger.debug(f"Syllabus found by {strategy.__name__}")
            return result

    return NoSyllabus()


# ─────────────────────────────────────────────────────────────────────────────
# Outline
# ─────────────────────────────────────────────────────────────────────────────


def _lecture_index(key: str) -> Optional[int]:
    match = re.match(r"\s*(\d+)", key)
    return int(match.group(1)) if match else None


def build_syllabus_outline(content: CourseContent) -> SyllabusOutline:
    """
    Group syllabus rows by lecture number.

    Numbered groups become lecture items in numeric order, titled after their
    first topic. Groups labelled without a leading number (such as "Week 2")
    follow in order of appearance, titled with the label. Rows with no label
    come last and only exam rows among them are kept.
    """
    course_info = CourseInfo(
        id=content.course_id,
        name=content.course_name,
        attendance=content.attendance_info,
        ai_level=content.ai_level,
    )

    section = content.find_section(SYLLABUS_SECTION_NAME)
    syllabus = section.syllabus if section is not None else NoSyllabus()

    if isinstance(syllabus, PdfSyllabus):
        return SyllabusOutline(course_info=course_info, syllabus_type="pdf", pdf=syllabus)
    if not isinstance(syllabus, TableSyllabus):
        return SyllabusOutline(course_info=course_info)

    numbered: dict[int, list[SyllabusRow]] = {}
    labelled: dict[str, list[SyllabusRow]] = {}
    special: list[SyllabusRow] = []
    for row in syllabus.rows:
        if not row.lecture_number:
            special.append(row)
            continue
        index = _lecture_index(row.lecture_number)
        if index is None:
            labelled.setdefault(row.lecture_number, []).append(row)
        else:
            numbered.setdefault(index, []).append(row)

    groups: list[tuple[Optional[int], str, list[SyllabusRow]]] = [
        (index, f"Lecture {index}", numbered[index]) for index in sorted(numbered)
    ]
    groups += [(None, label, rows) for label, rows in labelled.items()]

    outline: list = []
    for index, title, rows in groups:
        topics = [topic for row in rows for topic in row.topics]
        if topics:
            title = f"{title}: {topics[0].title}"
        outline.append(
            LectureOutlineItem(
                lecture_number=index,
                title=title,
                topics=topics,
                quizzes=[quiz for row in rows for quiz in row.quizzes],
                materials=[link for row in rows for link in row.materials],
                lab_exercises=[link for row in rows for link in row.lab_exercises],
            )
        )

    for row in special:
        if row.type == SyllabusRowType.EXAM:
            outline.append(ExamOutlineItem(title=row.raw_description.strip(), materials=row.materials))

    return SyllabusOutline(course_info=course_info, syllabus_type="table", outline=outline)
