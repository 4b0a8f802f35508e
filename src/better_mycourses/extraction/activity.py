"""
Activity Detail Extraction - Quiz and assignment view pages.
============================================================

Parses ``/mod/quiz/view.php?id=<module>`` and ``/mod/assign/view.php?id=<module>``
into ``QuizInfo`` and ``AssignmentInfo`` records. Both need the page heading
as their primary anchor; without it the page is treated as not found.

Quiz attempts come from one of two layouts. The card layout of newer Moodle
themes is tried first; the legacy summary table is read only when no card
produced an attempt.
"""

import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag

from better_mycourses.extraction.common import (
    HtmlInput,
    decode_text,
    first_match,
    make_soup,
    parse_activity_dates,
    select_text,
    squash,
    text_of,
)
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.schemas import (
    AssignmentActivityStatus,
    AssignmentDates,
    AssignmentInfo,
    AttemptStatus,
    CompletionStatus,
    LinkRef,
    QuizAttempt,
    QuizInfo,
    QuizStatus,
)

logger = get_logger(__name__)


HEADING_STRATEGIES = (
    select_text("h1.h2.mb-0"),
    select_text(".page-header-headings h1"),
    select_text(".page-context-header h1"),
    select_text("#region-main h2"),
)

ATTEMPT_CARD_SELECTORS = (
    "[data-region='quiz-attempt']",
    ".quiz-attempt-card",
    "div.quizattempt",
)
ATTEMPT_TABLE_SELECTORS = ("table.quizattemptsummary", "table.generaltable")

NO_MORE_ATTEMPTS = "no more attempts"
CLOSED_MARKERS = ("closed", "not available")
START_ATTEMPT_MARKERS = ("attempt quiz", "continue your attempt", "re-attempt quiz")

QUIZINFO_PATTERNS = {
    "attempts_allowed": re.compile(r"Attempts allowed:\s*(.+)", re.IGNORECASE),
    "time_limit": re.compile(r"Time limit:\s*(.+)", re.IGNORECASE),
    "grading_method": re.compile(r"Grading method:\s*(.+)", re.IGNORECASE),
}

ASSIGNMENT_TABLE_SELECTORS = (".submissionstatustable table", "table.generaltable")
ASSIGNMENT_LABELS = {
    "submission status": "submission_status",
    "grading status": "grading_status",
    "time remaining": "time_remaining",
    "last modified": "last_modified",
    "grade": "grade",
    "cut-off date": "cutoff_date",
}
FILE_LINK_SELECTOR = 'a[href*="pluginfile.php"]'
NOT_OPEN_MARKERS = ("will open", "not yet open")
NO_SUBMISSIONS_MARKERS = ("no longer accepting", "not accepting submissions")


def _page_heading(soup: BeautifulSoup) -> Optional[str]:
    heading = first_match(HEADING_STRATEGIES, soup)
    return decode_text(heading) if heading else None


def _page_text(soup: BeautifulSoup) -> str:
    main = soup.select_one("#region-main") or soup.body or soup
    return squash(main.get_text(" ")).lower()


def _row_pairs(container: Tag) -> Iterable[tuple[str, str, Tag]]:
    """Yield ``(label, value, value_node)`` from ``dt/dd`` and ``th/td`` pairs."""
    for dt in container.find_all("dt"):
        dd = dt.find_next_sibling("dd")
        if dd is not None:
            yield squash(dt.get_text(" ")), squash(dd.get_text(" ")), dd

    for row in container.find_all("tr"):
        header = row.find("th")
        cell = row.find("td")
        if header is not None and cell is not None:
            yield squash(header.get_text(" ")), squash(cell.get_text(" ")), cell


# ─────────────────────────────────────────────────────────────────────────────
# Quiz
# ─────────────────────────────────────────────────────────────────────────────


def attempt_status(text: str) -> Optional[AttemptStatus]:
    """Map an attempt's state text onto ``AttemptStatus``; None when the text is unreadable."""
    lowered = text.lower()
    if "in progress" in lowered or "overdue" in lowered:
        return AttemptStatus.IN_PROGRESS
    if "never submitted" in lowered or "abandoned" in lowered:
        return AttemptStatus.ABANDONED
    if "not yet started" in lowered or "never started" in lowered:
        return AttemptStatus.NEVER_STARTED
    if "finished" in lowered or "submitted" in lowered:
        return AttemptStatus.FINISHED
    return None


def _attempt_number(text: str) -> Optional[int]:
    match = re.search(r"(\d+)", text)
    return int(match.group(1)) if match else None


def _review_url(node: Tag) -> Optional[str]:
    link = node.select_one('a[href*="review.php"]')
    if link is None:
        return None
    return link.get("href") or None


def _attempt_from_fields(
    fields: dict[str, str], node: Tag, fallback_number: int
) -> Optional[QuizAttempt]:
    status = attempt_status(fields.get("state") or fields.get("status") or "")
    if status is None:
        logger.debug(f"Skipping attempt {fallback_number} with unreadable state")
        return None
    started = fields.get("started") or fields.get("started on")
    completed = fields.get("completed") or fields.get("submitted") or fields.get("completed on")
    marks = next((value for key, value in fields.items() if key.startswith("marks")), None)
    grade = next((value for key, value in fields.items() if key.startswith("grade")), None)
    number = _attempt_number(fields.get("attempt", "")) or fallback_number

    return QuizAttempt(
        number=number,
        status=status,
        started=started or None,
        completed=completed or None,
        marks=marks or None,
        grade=grade or None,
        review_url=_review_url(node),
    )


def parse_attempt_cards(soup: BeautifulSoup) -> list[QuizAttempt]:
    cards: list[Tag] = []
    for selector in ATTEMPT_CARD_SELECTORS:
        cards = soup.select(selector)
        if cards:
            break

    attempts = []
    for position, card in enumerate(cards, start=1):
        fields = {label.lower().rstrip(":"): value for label, value, _ in _row_pairs(card)}
        if not fields:
            continue
        if "attempt" not in fields:
            heading = text_of(card.find(["h3", "h4", "h5"]))
            if heading:
                fields["attempt"] = heading
        attempt = _attempt_from_fields(fields, card, position)
        if attempt is not None:
            attempts.append(attempt)
    return attempts


def parse_attempt_table(soup: BeautifulSoup) -> list[QuizAttempt]:
    table = None
    for selector in ATTEMPT_TABLE_SELECTORS:
        table = soup.select_one(selector)
        if table is not None:
            break
    if table is None:
        return []

    headers = [squash(th.get_text(" ")).lower() for th in table.select("thead th")]
    if not headers:
        first = table.find("tr")
        headers = [squash(th.get_text(" ")).lower() for th in first.find_all("th")] if first else []
    if not headers:
        return []

    attempts = []
    for position, row in enumerate(
        (tr for tr in table.find_all("tr") if tr.find("td") is not None), start=1
    ):
        cells = [squash(td.get_text(" ")) for td in row.find_all("td")]
        fields = dict(zip(headers, cells))
        # the legacy table puts start and finish times in a single "state" cell
        state = fields.get("state", "")
        if "started" not in fields:
            match = re.search(r"Started on\s*(.+?)(?:Completed|Submitted|$)", state, re.IGNORECASE)
            if match:
                fields["started"] = match.group(1).strip()
        if "completed" not in fields:
            match = re.search(r"(?:Completed|Submitted) on\s*(.+)$", state, re.IGNORECASE)
            if match:
                fields["completed"] = match.group(1).strip()
        attempt = _attempt_from_fields(fields, row, position)
        if attempt is not None:
            attempts.append(attempt)
    return attempts


def quiz_status(attempts: list[QuizAttempt], page_text: str) -> QuizStatus:
    """
    Derive the quiz status. Each check short-circuits the next.

    1. "no more attempts" text: completed
    2. "closed"/"not available" text: completed when an attempt is finished,
       otherwise closed
    3. no attempts: not_started
    4. any finished attempt: completed
    5. otherwise: available
    """
    lowered = page_text.lower()
    any_finished = any(a.status == AttemptStatus.FINISHED for a in attempts)

    if NO_MORE_ATTEMPTS in lowered:
        return QuizStatus.COMPLETED
    if any(marker in lowered for marker in CLOSED_MARKERS):
        return QuizStatus.COMPLETED if any_finished else QuizStatus.CLOSED
    if not attempts:
        return QuizStatus.NOT_STARTED
    if any_finished:
        return QuizStatus.COMPLETED
    return QuizStatus.AVAILABLE


def _quiz_settings(soup: BeautifulSoup) -> dict[str, str]:
    settings: dict[str, str] = {}
    lines = [text_of(p) for p in soup.select(".quizinfo p, .quizinfo div")]
    for line in lines:
        for key, pattern in QUIZINFO_PATTERNS.items():
            match = pattern.search(line)
            if match and key not in settings:
                settings[key] = match.group(1).strip()
    return settings


def _can_attempt(soup: BeautifulSoup) -> bool:
    for control in soup.select(".quizstartbuttondiv button, .quizstartbuttondiv input[type=submit]"):
        label = (control.get("value") or text_of(control)).lower()
        if any(marker in label for marker in START_ATTEMPT_MARKERS):
            return True
    return False


def _highest_grade(soup: BeautifulSoup, attempts: list[QuizAttempt]) -> Optional[str]:
    feedback = soup.select_one("#feedback h3, .quizgradefeedback h3")
    if feedback is not None:
        match = re.search(r"Highest grade:\s*(.+)", text_of(feedback), re.IGNORECASE)
        if match:
            return match.group(1).strip().rstrip(".")

    best: Optional[tuple[float, str]] = None
    for attempt in attempts:
        if not attempt.grade:
            continue
        match = re.match(r"\s*([\d.,]+)", attempt.grade)
        if not match:
            continue
        try:
            value = float(match.group(1).replace(",", "."))
        except ValueError:
            continue
        if best is None or value > best[0]:
            best = (value, attempt.grade)
    return best[1] if best else None


def extract_quiz_info(html: HtmlInput, quiz_id: str) -> Optional[QuizInfo]:
    """
    Extract quiz settings, attempt history and overall status.

    Args:
        html: Raw quiz view page
        quiz_id: Course module id of the quiz

    Returns:
        QuizInfo, or None when the page heading is missing
    """
    soup = make_soup(html)
    name = _page_heading(soup)
    if not name:
        return None

    attempts = parse_attempt_cards(soup)
    if not attempts:
        attempts = parse_attempt_table(soup)

    current = next((a for a in attempts if a.status == AttemptStatus.IN_PROGRESS), None)
    dates = parse_activity_dates(soup)

    info = QuizInfo(
        quiz_id=str(quiz_id),
        name=name,
        open_date=dates.get("open_date"),
        close_date=dates.get("close_date"),
        due_date=dates.get("due_date"),
        attempts=attempts,
        current_attempt=current,
        highest_grade=_highest_grade(soup, attempts),
        status=quiz_status(attempts, _page_text(soup)),
        can_attempt=_can_attempt(soup),
        **_quiz_settings(soup),
    )
    logger.debug(f"Quiz {quiz_id}: {len(attempts)} attempts, status={info.status.value}")
    return info


# ─────────────────────────────────────────────────────────────────────────────
# Assignment
# ─────────────────────────────────────────────────────────────────────────────


def _submission_fields(soup: BeautifulSoup) -> dict[str, str]:
    fields: dict[str, str] = {}
    for selector in ASSIGNMENT_TABLE_SELECTORS:
        for table in soup.select(selector):
            for label, value, _ in _row_pairs(table):
                key = ASSIGNMENT_LABELS.get(label.lower().rstrip(":"))
                if key and key not in fields and value:
                    fields[key] = value
        if fields:
            break
    return fields


def _submitted_files(soup: BeautifulSoup) -> list[LinkRef]:
    files = []
    seen: set[str] = set()
    for link in soup.select(FILE_LINK_SELECTOR):
        href = link.get("href") or ""
        name = text_of(link)
        if not href or not name or href in seen:
            continue
        seen.add(href)
        files.append(LinkRef(name=decode_text(name), url=href, type="file"))
    return files


def completion_status(submission_status: Optional[str]) -> CompletionStatus:
    lowered = (submission_status or "").lower()
    if "submitted" in lowered and "not submitted" not in lowered and "no submission" not in lowered:
        return CompletionStatus.COMPLETE
    return CompletionStatus.INCOMPLETE


def assignment_activity_status(soup: BeautifulSoup, page_text: str) -> AssignmentActivityStatus:
    labels = [text_of(div) for div in soup.select("[data-region='activity-dates'] div")]
    lowered = page_text.lower()

    if any(label.startswith("Closed:") for label in labels) or any(
        marker in lowered for marker in NO_SUBMISSIONS_MARKERS
    ):
        return AssignmentActivityStatus.CLOSED
    if any(label.startswith("Opens:") for label in labels) or any(
        marker in lowered for marker in NOT_OPEN_MARKERS
    ):
        return AssignmentActivityStatus.NOT_OPEN
    return AssignmentActivityStatus.OPEN


def extract_assignment_info(html: HtmlInput, assignment_id: str) -> Optional[AssignmentInfo]:
    """
    Extract submission and grading state of an assignment.

    Args:
        html: Raw assignment view page
        assignment_id: Course module id of the assignment

    Returns:
        AssignmentInfo, or None when the page heading is missing
    """
    soup = make_soup(html)
    name = _page_heading(soup)
    if not name:
        return None

    fields = _submission_fields(soup)
    dates = parse_activity_dates(soup)

    return AssignmentInfo(
        assignment_id=str(assignment_id),
        name=name,
        dates=AssignmentDates(
            open_date=dates.get("open_date"),
            due_date=dates.get("due_date"),
            cutoff_date=fields.pop("cutoff_date", None) or dates.get("close_date"),
        ),
        files=_submitted_files(soup),
        completion_status=completion_status(fields.get("submission_status")),
        activity_status=assignment_activity_status(soup, _page_text(soup)),
        **fields,
    )
