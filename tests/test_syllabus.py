"""
Tests for Syllabus Extraction.
==============================

Tests for:
- Row parsing: topics, subtopics, quizzes, link classification
- Exam row detection by background colour
- Strategy order: section table, PDF link, document-wide table
- Outline grouping per lecture
"""

import pytest


def _section(course):
    return course.find_section("Course Syllabus")


# ─────────────────────────────────────────────────────────────────────────────
# Row Parsing Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSyllabusRows:
    """Tests for rows read from the syllabus table."""

    def test_table_in_section_is_found(self, course_html: str):
        """Test that the section table strategy wins."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.shared.schemas import TableSyllabus

        syllabus = _section(extract_course_content(course_html)).syllabus

        assert isinstance(syllabus, TableSyllabus)
        assert syllabus.source == "section"
        # the two-cell row is dropped
        assert len(syllabus.rows) == 3

    def test_topics_and_quizzes(self, course_html: str):
        """Test bold text becomes topics and quiz mentions go to the quiz list."""
        from better_mycourses.extraction.course import extract_course_content

        first = _section(extract_course_content(course_html)).syllabus.rows[0]

        assert first.lecture_number == "1"
        assert [t.title for t in first.topics] == ["Introduction to Databases"]
        assert first.topics[0].subtopics == ["Data models"]
        assert first.quizzes == ["Quiz 0: warm up", "Quiz 1: ER basics"]

    def test_orphan_subtopics_are_dropped(self, course_html: str):
        """Test that list items before the first topic are not kept."""
        from better_mycourses.extraction.course import extract_course_content

        first = _section(extract_course_content(course_html)).syllabus.rows[0]
        subtopics = [s for t in first.topics for s in t.subtopics]

        assert "Orphan subtopic" not in subtopics

    def test_bold_inside_list_item_is_topic(self):
        """Test bold text within a list item opens its own topic."""
        from better_mycourses.extraction.common import make_soup
        from better_mycourses.extraction.syllabus import parse_description

        cell = make_soup(
            "<table><tr><td><strong>Arrays</strong>"
            "<ul><li><b>Indexing</b> basics</li><li>Bounds</li></ul></td></tr></table>"
        ).find("td")

        topics, quizzes = parse_description(cell)

        assert [(t.title, t.subtopics) for t in topics] == [
            ("Arrays", []),
            ("Indexing", ["Indexing basics", "Bounds"]),
        ]
        assert quizzes == []

    def test_nested_bold_counts_once(self):
        """Test bold nested in bold is one topic, and a bold quiz item one quiz."""
        from better_mycourses.extraction.common import make_soup
        from better_mycourses.extraction.syllabus import parse_description

        cell = make_soup(
            "<table><tr><td><strong>Trees <b>and</b> graphs</strong>"
            "<ul><li><strong>Quiz 2: traversal</strong></li></ul></td></tr></table>"
        ).find("td")

        topics, quizzes = parse_description(cell)

        assert [t.title for t in topics] == ["Trees and graphs"]
        assert quizzes == ["Quiz 2: traversal"]

    def test_no_quiz_text_in_topics(self, course_html: str):
        """Test that nothing containing "Quiz" ends up as a topic or subtopic."""
        from better_mycourses.extraction.course import extract_course_content

        for row in _section(extract_course_content(course_html)).syllabus.rows:
            for topic in row.topics:
                assert "Quiz" not in topic.title
                assert all("Quiz" not in s for s in topic.subtopics)

    def test_link_classification(self, course_html: str):
        """Test materials and lab exercises are typed by URL."""
        from better_mycourses.extraction.course import extract_course_content

        rows = _section(extract_course_content(course_html)).syllabus.rows

        assert rows[0].materials[0].type == "file"
        assert rows[0].lab_exercises[0].type == "folder"
        assert rows[1].materials[0].type == "page"
        assert rows[1].lab_exercises[0].type == "external"

    def test_exam_row_by_colour_only(self, course_html: str):
        """Test that only the highlighted row is an exam row."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.shared.schemas import SyllabusRowType

        rows = _section(extract_course_content(course_html)).syllabus.rows

        assert [r.is_special_row for r in rows] == [False, False, True]
        assert rows[2].type == SyllabusRowType.EXAM
        assert rows[2].lecture_number is None
        assert rows[2].raw_description == "Midterm Examination"
        for row in rows:
            assert row.is_special_row == (row.type == SyllabusRowType.EXAM)

    @pytest.mark.parametrize(
        "href,expected",
        [
            ("https://m.test/mod/folder/view.php?id=1", "folder"),
            ("https://m.test/mod/page/view.php?id=1", "page"),
            ("https://m.test/course/section/view.php?id=1", "section"),
            ("https://docs.google.com/spreadsheets/d/1", "external"),
            ("https://example.org/lab", "unknown"),
        ],
    )
    def test_classify_lab_exercise(self, href: str, expected: str):
        """Test the lab exercise link types."""
        from better_mycourses.extraction.syllabus import classify_lab_exercise

        assert classify_lab_exercise(href) == expected


# ─────────────────────────────────────────────────────────────────────────────
# Strategy Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSyllabusStrategies:
    """Tests for the ordered syllabus strategies."""

    def test_pdf_link_in_section(self, course_page_builder):
        """Test that a syllabus file link is used when there is no table."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.shared.schemas import PdfSyllabus

        html = course_page_builder(
            '<p><a href="https://moodle.test/pluginfile.php/1/syllabus.pdf">Course Syllabus 2024</a></p>'
        )
        syllabus = _section(extract_course_content(html)).syllabus

        assert isinstance(syllabus, PdfSyllabus)
        assert syllabus.name == "Course Syllabus 2024"
        assert syllabus.url.endswith("syllabus.pdf")

    def test_document_table_needs_more_than_five_rows(self, course_page_builder):
        """Test the document-wide strategy with a keyword header."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.shared.schemas import NoSyllabus, TableSyllabus

        def table(rows: int) -> str:
            body = "".join(
                f"<tr><td>{i}</td><td><b>Topic {i}</b></td><td></td><td></td></tr>"
                for i in range(1, rows + 1)
            )
            return (
                "<table><thead><tr><th>Week</th><th>Topic</th><th>Materials</th>"
                f"<th>Exercise</th></tr></thead><tbody>{body}</tbody></table>"
            )

        small = extract_course_content(course_page_builder("", table(5)))
        large = extract_course_content(course_page_builder("", table(6)))

        assert isinstance(_section(small).syllabus, NoSyllabus)
        syllabus = _section(large).syllabus
        assert isinstance(syllabus, TableSyllabus)
        assert syllabus.source == "document"
        assert len(syllabus.rows) == 6

    def test_empty_section_has_no_syllabus(self, course_page_builder):
        """Test the fallback when no strategy matches."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.shared.schemas import NoSyllabus

        content = extract_course_content(course_page_builder("<p>TBA</p>"))

        assert isinstance(_section(content).syllabus, NoSyllabus)

    def test_other_sections_never_carry_syllabus(self, course_html: str):
        """Test that only the syllabus section runs the strategies."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.shared.schemas import NoSyllabus

        for section in extract_course_content(course_html).sections:
            if section.name != "Course Syllabus":
                assert isinstance(section.syllabus, NoSyllabus)


# ─────────────────────────────────────────────────────────────────────────────
# Outline Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSyllabusOutline:
    """Tests for build_syllabus_outline."""

    def test_lectures_then_exams(self, course_html: str):
        """Test grouping, ordering and titles."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.extraction.syllabus import build_syllabus_outline

        outline = build_syllabus_outline(extract_course_content(course_html))

        assert outline.syllabus_type == "table"
        assert outline.course_info.id == "4242"
        assert [item.type for item in outline.outline] == ["lecture", "lecture", "exam"]
        assert outline.outline[0].title == "Lecture 1: Introduction to Databases"
        assert outline.outline[1].lecture_number == 2
        assert outline.outline[2].title == "Midterm Examination"

    def test_rows_with_same_number_are_merged(self, course_page_builder):
        """Test that two rows for one lecture become a single item."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.extraction.syllabus import build_syllabus_outline

        table = """
        <table><tbody>
          <tr><td>2</td><td><b>Joins</b></td><td></td><td></td></tr>
          <tr><td>1</td><td><b>Intro</b></td><td></td><td></td></tr>
          <tr><td>2</td><td><b>Subqueries</b></td><td></td><td></td></tr>
        </tbody></table>
        """
        outline = build_syllabus_outline(extract_course_content(course_page_builder(table)))

        assert [item.lecture_number for item in outline.outline] == [1, 2]
        assert [t.title for t in outline.outline[1].topics] == ["Joins", "Subqueries"]

    def test_labelled_rows_are_kept(self, course_page_builder):
        """Test rows labelled without a number become lecture items after the numbered ones."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.extraction.syllabus import build_syllabus_outline

        table = """
        <table><tbody>
          <tr><td>Week 2</td><td><b>Sorting</b></td><td></td><td></td></tr>
          <tr><td>1</td><td><b>Intro</b></td><td></td><td></td></tr>
          <tr><td>Midterm review</td><td>Practice set</td><td></td><td></td></tr>
          <tr bgcolor="#aaf542"><td></td><td>Final Examination</td><td></td><td></td></tr>
        </tbody></table>
        """
        outline = build_syllabus_outline(extract_course_content(course_page_builder(table)))

        assert [item.title for item in outline.outline] == [
            "Lecture 1: Intro",
            "Week 2: Sorting",
            "Midterm review",
            "Final Examination",
        ]
        assert [getattr(item, "lecture_number", None) for item in outline.outline[:3]] == [
            1,
            None,
            None,
        ]
        assert outline.outline[3].type == "exam"

    def test_pdf_outline(self, course_page_builder):
        """Test that a PDF syllabus is passed through."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.extraction.syllabus import build_syllabus_outline

        html = course_page_builder(
            '<a href="https://moodle.test/mod/resource/view.php?id=5">Syllabus</a>'
        )
        outline = build_syllabus_outline(extract_course_content(html))

        assert outline.syllabus_type == "pdf"
        assert outline.pdf.name == "Syllabus"
        assert outline.outline == []

    def test_no_syllabus_section(self, course_page_builder):
        """Test the outline of a course without a syllabus section."""
        from better_mycourses.extraction.course import extract_course_content
        from better_mycourses.extraction.syllabus import build_syllabus_outline

        outline = build_syllabus_outline(extract_course_content(course_page_builder(None)))

        assert outline.syllabus_type == "none"
        assert outline.outline == []
        assert outline.course_info.name.startswith("ITCS241")
