"""
Course Content Extraction - Parse ``/course/view.php?id=<course>``.
==================================================================

Builds the section/activity tree of a course page:

- Course name is the primary anchor; without it the page is not a course.
- Sections are read in document order from ``li.section.course-section``.
- Section name and summary come from ordered selector chains.
- Activities are collected in two passes: the explicit ``.activity`` items,
  then module links embedded in the section summary, skipping any module id
  the first pass already captured.
- A section named "Course Syllabus" additionally runs the syllabus
  strategies against the whole document.
"""

import re
from typing import Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from better_mycourses.extraction.common import (
    HtmlInput,
    attr_value,
    class_list,
    decode_text,
    first_match,
    make_soup,
    parse_activity_dates,
    select_text,
    text_of,
)
from better_mycourses.extraction.syllabus import SYLLABUS_SECTION_NAME, extract_syllabus
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.schemas import (
    AILevel,
    AttendanceSummary,
    CourseActivity,
    CourseContent,
    CourseSection,
    NoSyllabus,
)

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Selector Configuration
# ─────────────────────────────────────────────────────────────────────────────

COURSE_NAME_STRATEGIES = (
    select_text("h1.h2.mb-0"),
    select_text(".page-context-header h1"),
)

SECTION_SELECTOR = "li.section.course-section"

SECTION_NAME_STRATEGIES = (
    select_text(".sectionname a"),
    select_text(".sectionname"),
    attr_value("data-sectionname"),
)

SUMMARY_SELECTORS = (".summarytext .no-overflow", ".summarytext")

SECTION_SUMMARY_STRATEGIES = tuple(select_text(sel) for sel in SUMMARY_SELECTORS)

COURSE_ID_PATTERNS = (
    re.compile(r'"courseId":(\d+)'),
    re.compile(r"course/view\.php\?id=(\d+)"),
)

ATTENDANCE_BADGE_PATTERN = re.compile(r"(\d+)/(\d+)\s*\((\d+)%\)")
MODTYPE_PATTERN = re.compile(r"^modtype_(\w+)$")
ACCESS_HIDE_SUFFIX = re.compile(r"\s*(Forum|File|Assignment|Quiz|Folder|Page|URL|Choice)\s*$")
SUMMARY_MODULE_PATTERN = re.compile(r"/mod/(\w+)/view\.php\?id=(\d+)")
# theme image paths for module types linked from section summaries; -1 skips the revision cache
MODULE_ICON_PATHS = {
    "resource": "core/-1/f/pdf",
    "quiz": "quiz/-1/monologo",
    "forum": "forum/-1/monologo",
    "assign": "assign/-1/monologo",
    "folder": "folder/-1/monologo",
    "page": "page/-1/monologo",
    "url": "url/-1/monologo",
}
AI_LEVEL_PATTERN = re.compile(r"AI Level (\d+)")

AI_LEVEL_COLORS = {
    1: "#ff6562",
    2: "#33d1be",
    3: "#ffab40",
    4: "#1f80e8",
    5: "#bd59bd",
}
DEFAULT_AI_COLOR = "#000000"

# Long merged headings produced by the cDuck plugin block
CDUCK_MARKER = "cDuck"
CDUCK_NAME = "cDuck Extension"


# ─────────────────────────────────────────────────────────────────────────────
# Page-level Fields
# ─────────────────────────────────────────────────────────────────────────────


def extract_course_id(html: str) -> str:
    for pattern in COURSE_ID_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return ""


def extract_attendance_summary(soup: BeautifulSoup) -> Optional[AttendanceSummary]:
    badge_text = "".join(a.get_text() for a in soup.select(".float-right a"))
    match = ATTENDANCE_BADGE_PATTERN.search(badge_text)
    if not match:
        return None
    return AttendanceSummary(
        current=int(match.group(1)),
        total=int(match.group(2)),
        percentage=int(match.group(3)),
    )


def extract_ai_level(html: HtmlInput) -> Optional[AILevel]:
    """Read the "AI Level N" toggle and its description card, if present."""
    soup = make_soup(html)

    button = soup.select_one("button#aiToggleBtn")
    if button is None:
        return None

    match = AI_LEVEL_PATTERN.search(text_of(button))
    if not match:
        return None

    level = int(match.group(1))
    return AILevel(
        level=level,
        description=text_of(soup.select_one("#aiCard .card-title")),
        color=AI_LEVEL_COLORS.get(level, DEFAULT_AI_COLOR),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Activities
# ─────────────────────────────────────────────────────────────────────────────


def _activity_type(node: Tag) -> str:
    for cls in class_list(node):
        match = MODTYPE_PATTERN.match(cls)
        if match:
            return match.group(1)
    return "unknown"


def parse_activity(node: Tag) -> Optional[CourseActivity]:
    """Parse an explicit ``.activity`` item; needs both a name and a module id."""
    module_id = node.get("data-id") or ""
    name = ACCESS_HIDE_SUFFIX.sub("", text_of(node.select_one(".instancename"))).strip()

    if not name or not module_id:
        return None

    link = node.select_one("a.aalink")
    icon = node.select_one(".activityicon")
    availability = text_of(node.select_one("[data-region='availabilityinfo']"))

    return CourseActivity(
        id=node.get("id") or "",
        module_id=module_id,
        name=decode_text(name),
        type=_activity_type(node),
        url=(link.get("href") if link is not None else "") or "",
        icon=(icon.get("src") if icon is not None else None) or None,
        availability=availability or None,
        **parse_activity_dates(node),
    )


def module_icon(href: str, module_type: str) -> Optional[str]:
    """Theme icon URL for a module type, on the same site as ``href``."""
    path = MODULE_ICON_PATHS.get(module_type)
    parts = urlsplit(href)
    if path is None or not parts.netloc:
        return None
    return f"{parts.scheme or 'https'}://{parts.netloc}/theme/image.php/boost/{path}?filtericon=1"


def summary_activities(summary: Optional[Tag], seen: set[str]) -> list[CourseActivity]:
    """Module links embedded in a section summary, minus already seen module ids."""
    activities: list[CourseActivity] = []
    if summary is None:
        return activities

    for link in summary.select('a[href*="/mod/"]'):
        href = link.get("href") or ""
        name = text_of(link)
        match = SUMMARY_MODULE_PATTERN.search(href)
        if not name or not match:
            continue

        module_type, module_id = match.group(1), match.group(2)
        if module_id in seen:
            continue
        seen.add(module_id)

        activities.append(
            CourseActivity(
                id=f"summary-activity-{module_id}",
                module_id=module_id,
                name=decode_text(name),
                type=module_type,
                url=href,
                icon=module_icon(href, module_type),
            )
        )

    return activities


# ─────────────────────────────────────────────────────────────────────────────
# Sections
# ─────────────────────────────────────────────────────────────────────────────


def _summary_node(section: Tag) -> Optional[Tag]:
    for selector in SUMMARY_SELECTORS:
        node = section.select_one(selector)
        if node is not None:
            return node
    return None


def _is_collapsed(section: Tag) -> bool:
    collapse = section.select_one(".collapse")
    return collapse is None or "show" not in class_list(collapse)


def _clean_section_name(name: str) -> str:
    if CDUCK_MARKER in name and len(name) > 20:
        return CDUCK_NAME
    return name


def parse_section(section: Tag, soup: BeautifulSoup) -> Optional[CourseSection]:
    """Parse one course section; sections without a name or id are dropped."""
    section_id = section.get("data-id") or ""
    raw_name = first_match(SECTION_NAME_STRATEGIES, section) or ""
    name = _clean_section_name(raw_name)

    if not name or not section_id:
        return None

    try:
        number = int(section.get("data-number") or 0)
    except ValueError:
        number = 0

    summary = first_match(SECTION_SUMMARY_STRATEGIES, section)

    activities: list[CourseActivity] = []
    seen: set[str] = set()
    for node in section.select(".activity"):
        activity = parse_activity(node)
        if activity is not None and activity.module_id not in seen:
            seen.add(activity.module_id)
            activities.append(activity)
    activities.extend(summary_activities(_summary_node(section), seen))

    syllabus = NoSyllabus()
    if raw_name == SYLLABUS_SECTION_NAME:
        syllabus = extract_syllabus(soup, section)

    return CourseSection(
        id=section_id,
        number=number,
        name=decode_text(name),
        summary=decode_text(summary) if summary else None,
        activities=activities,
        collapsed=_is_collapsed(section),
        syllabus=syllabus,
    )


def extract_course_content(html: str) -> Optional[CourseContent]:
    """
    Extract the full content tree of a course page.

    Args:
        html: Raw course view page

    Returns:
        CourseContent, or None when the course name heading is missing
    """
    soup = make_soup(html)

    course_name = first_match(COURSE_NAME_STRATEGIES, soup)
    if not course_name:
        return None

    sections = []
    for node in soup.select(SECTION_SELECTOR):
        section = parse_section(node, soup)
        if section is not None:
            sections.append(section)

    content = CourseContent(
        course_id=extract_course_id(html),
        course_name=decode_text(course_name),
        sections=sections,
        attendance_info=extract_attendance_summary(soup),
        ai_level=extract_ai_level(soup),
    )
    logger.debug(
        f"Parsed course {content.course_id or '?'}: {len(sections)} sections, "
        f"{sum(len(s.activities) for s in sections)} activities"
    )
    return content
