"""
Attendance extraction from ``/course/attendance.php?id=<course>``.

Status values are kept as the free text Moodle prints. The counting rules in
``summarize_attendance`` are exact, case-insensitive equality checks; no
canonical status vocabulary exists upstream.
"""

from typing import Iterable

from better_mycourses.extraction.common import HtmlInput, make_soup, text_of
from better_mycourses.shared.schemas import AttendanceRecord, AttendanceStats

PRESENT_STATUSES = ("attend", "present")
ABSENT_STATUSES = ("absent",)
LATE_STATUSES = ("late",)
EXCUSED_STATUSES = ("excused",)


def extract_attendance_records(html: HtmlInput) -> list[AttendanceRecord]:
    """
    Read ``(date, status)`` pairs from the striped attendance table.

    Rows need at least three cells: the date is in the second, the status
    in the ``span`` of the third. Rows missing either are skipped. Returns an
    empty list when the page has no attendance table.
    """
    soup = make_soup(html)
    records: list[AttendanceRecord] = []

    for table in soup.select("table.table.table-striped"):
        for row in table.select("tbody tr"):
            cells = row.find_all("td")
            if len(cells) < 3:
                continue

            date = text_of(cells[1])
            status = "".join(span.get_text() for span in cells[2].find_all("span")).strip()

            if date and status:
                records.append(AttendanceRecord(date=date, status=status))

    return records


def summarize_attendance(records: Iterable[AttendanceRecord]) -> AttendanceStats:
    """Count records per status bucket; unknown statuses land in ``other``."""
    counts = {"present": 0, "absent": 0, "late": 0, "excused": 0, "other": 0}
    total = 0

    for record in records:
        total += 1
        status = record.status.lower()
        if status in PRESENT_STATUSES:
            counts["present"] += 1
        elif status in ABSENT_STATUSES:
            counts["absent"] += 1
        elif status in LATE_STATUSES:
            counts["late"] += 1
        elif status in EXCUSED_STATUSES:
            counts["excused"] += 1
        else:
            counts["other"] += 1

    return AttendanceStats(total=total, **counts)
