"""
Pytest Configuration and Fixtures.
===================================

Shared fixtures for all test modules:
- Moodle page fixtures (HTML strings)
- Fake clock and mock HTTP sessions
- Settings overrides
"""

from typing import Optional
from unittest.mock import MagicMock

import pytest


# ─────────────────────────────────────────────────────────────────────────────
# HTML Fixtures
# ─────────────────────────────────────────────────────────────────────────────


SESSKEY_SCRIPT = """
<script>
//<![CDATA[
var M = {}; M.yui = {};
M.cfg = {"wwwroot":"https:\\/\\/moodle.test","sesskey":"abc123","themerev":"1700000000"};
//]]>
</script>
"""


@pytest.fixture
def sesskey_html() -> str:
    """A page with the M.cfg config script."""
    return f"<html><head>{SESSKEY_SCRIPT}</head><body><p>Dashboard</p></body></html>"


@pytest.fixture
def profile_html() -> str:
    """Profile page of a user with a three-part name."""
    return f"""
    <html>
    <head>{SESSKEY_SCRIPT}</head>
    <body>
      <div class="page-header-headings"><h1 class="h2 mb-0">Somchai Jai Dee</h1></div>
      <section class="node_category">
        <dl>
          <dt>Email address</dt>
          <dd><a href="mailto:somchai.jai%40student.mahidol.ac.th">somchai.jai@student.mahidol.ac.th</a></dd>
        </dl>
      </section>
    </body>
    </html>
    """


@pytest.fixture
def attendance_html() -> str:
    """Attendance report with five sessions and one malformed row."""
    rows = [
        ("Mon 8 Jan 2024 9AM", "Attend"),
        ("Mon 15 Jan 2024 9AM", "Absent"),
        ("Mon 22 Jan 2024 9AM", "Late"),
        ("Mon 29 Jan 2024 9AM", "Excused"),
        ("Mon 5 Feb 2024 9AM", "P?"),
    ]
    body = "".join(
        f"<tr><td>{i}</td><td>{date}</td><td><span>{status}</span></td></tr>"
        for i, (date, status) in enumerate(rows, start=1)
    )
    return f"""
    <html><body>
      <table class="table table-striped">
        <thead><tr><th>#</th><th>Date</th><th>Status</th></tr></thead>
        <tbody>{body}<tr><td>only</td><td>two</td></tr></tbody>
      </table>
    </body></html>
    """


SYLLABUS_TABLE = """
<table>
  <thead>
    <tr><th>Lecture</th><th>Description</th><th>Materials</th><th>Lab Exercises</th></tr>
  </thead>
  <tbody>
    <tr>
      <td>1</td>
      <td>
        <ul><li>Orphan subtopic</li></ul>
        <strong>Introduction to Databases</strong>
        <ul><li>Data models</li><li>Quiz 0: warm up</li></ul>
        <strong>Quiz 1: ER basics</strong>
      </td>
      <td><a href="https://moodle.test/mod/resource/view.php?id=11">Slides 1</a></td>
      <td><a href="https://moodle.test/mod/folder/view.php?id=12">Lab 1</a></td>
    </tr>
    <tr>
      <td>2</td>
      <td><b>Relational Algebra</b><ul><li>Selection</li><li>Projection</li></ul></td>
      <td><a href="https://moodle.test/mod/page/view.php?id=21">Notes 2</a></td>
      <td><a href="https://docs.google.com/document/d/xyz">Exercise sheet</a></td>
    </tr>
    <tr bgcolor="#AAF542">
      <td></td>
      <td>Midterm Examination</td>
      <td></td>
      <td></td>
    </tr>
    <tr>
      <td>too</td><td>few</td>
    </tr>
  </tbody>
</table>
"""


def course_page(syllabus_section: str = "", extra: str = "") -> str:
    """Build a course view page; the syllabus section body is injectable."""
    syllabus = ""
    if syllabus_section is not None:
        syllabus = f"""
        <li class="section course-section main" id="section-1" data-id="501"
            data-number="1" data-sectionname="Course Syllabus">
          <h3 class="sectionname"><a href="#">Course Syllabus</a></h3>
          <div class="collapse show">
            <div class="summarytext"><div class="no-overflow">{syllabus_section}</div></div>
          </div>
        </li>
        """

    return f"""
    <html>
    <head>
      {SESSKEY_SCRIPT}
      <script>M.util.js_pending('core/first'); require(['core/first'], function() {{ var x = {{"courseId":4242}}; }});</script>
    </head>
    <body>
      <div class="page-context-header"><h1 class="h2 mb-0">ITCS241 Database Management Systems &amp; Design</h1></div>
      <div class="float-right"><a href="/course/attendance.php?id=4242">Attendance 9/10 (90%)</a></div>
      <button id="aiToggleBtn">AI Level 3</button>
      <div id="aiCard"><div class="card-title">AI assisted drafting allowed</div></div>
      <ul class="topics">
        <li class="section course-section main" id="section-0" data-id="500" data-number="0"
            data-sectionname="General">
          <h3 class="sectionname"><a href="#">General</a></h3>
          <div class="collapse">
            <div class="summarytext"><div class="no-overflow">
              Welcome! See the <a href="https://moodle.test/mod/forum/view.php?id=1001">Announcements</a>
              and <a href="https://moodle.test/mod/url/view.php?id=1003">Class recordings</a>.
            </div></div>
            <ul class="section">
              <li class="activity modtype_forum" id="module-1001" data-id="1001">
                <a class="aalink" href="https://moodle.test/mod/forum/view.php?id=1001">
                  <img class="activityicon" src="https://moodle.test/theme/forum.svg">
                  <span class="instancename">Announcements <span class="accesshide"> Forum</span></span>
                </a>
              </li>
              <li class="activity modtype_quiz" id="module-1002" data-id="1002">
                <a class="aalink" href="https://moodle.test/mod/quiz/view.php?id=1002">
                  <span class="instancename">Quiz 1 <span class="accesshide"> Quiz</span></span>
                </a>
                <div data-region="activity-dates">
                  <div><strong>Opened:</strong> Monday, 8 January 2024, 9:00 AM</div>
                  <div><strong>Closes:</strong> Monday, 15 January 2024, 9:00 AM</div>
                </div>
              </li>
              <li class="activity modtype_assign" id="module-1004" data-id="1004">
                <a class="aalink" href="https://moodle.test/mod/assign/view.php?id=1004">
                  <span class="instancename">Homework 1 <span class="accesshide"> Assignment</span></span>
                </a>
                <div data-region="activity-dates">
                  <div><strong>Due:</strong> Friday, 19 January 2024, 11:59 PM</div>
                </div>
                <div data-region="availabilityinfo">Not available unless: you are in group A</div>
              </li>
              <li class="activity modtype_page" id="module-1005">
                <span class="instancename">Missing module id</span>
              </li>
            </ul>
          </div>
        </li>
        {syllabus}
        <li class="section course-section main" id="section-3" data-id="503" data-number="3">
          <h3 class="sectionname">Week 2 &amp; 3</h3>
          <div class="collapse show"><ul class="section"></ul></div>
        </li>
        <li class="section course-section main" id="section-4" data-number="4">
          <h3 class="sectionname">No id section</h3>
        </li>
      </ul>
      {extra}
    </body>
    </html>
    """


@pytest.fixture
def syllabus_table_html() -> str:
    return SYLLABUS_TABLE


@pytest.fixture
def course_html() -> str:
    """Course page with a syllabus table inside the syllabus section."""
    return course_page(SYLLABUS_TABLE)


@pytest.fixture
def course_page_builder():
    return course_page


QUIZ_CARD_ATTEMPT = """
<div class="quizattempt" data-region="quiz-attempt">
  <h3>Attempt {number}</h3>
  <dl>
    <dt>Status</dt><dd>{status}</dd>
    <dt>Started</dt><dd>Monday, 8 January 2024, 9:05 AM</dd>
    <dt>Completed</dt><dd>Monday, 8 January 2024, 9:35 AM</dd>
    <dt>Marks / 10.00</dt><dd>8.00</dd>
    <dt>Grade / 100.00</dt><dd>{grade}</dd>
  </dl>
  <a href="https://moodle.test/mod/quiz/review.php?attempt={number}">Review</a>
</div>
"""


def quiz_page(body: str = "", heading: Optional[str] = "Quiz 1: ER basics") -> str:
    title = f'<div class="page-header-headings"><h1 class="h2 mb-0">{heading}</h1></div>' if heading else ""
    return f"""
    <html><body>
      {title}
      <div id="region-main">
        <div data-region="activity-dates">
          <div><strong>Opened:</strong> Monday, 8 January 2024, 9:00 AM</div>
          <div><strong>Closes:</strong> Monday, 15 January 2024, 9:00 AM</div>
        </div>
        <div class="box quizinfo">
          <p>Attempts allowed: 2</p>
          <p>Time limit: 30 mins</p>
          <p>Grading method: Highest grade</p>
        </div>
        {body}
      </div>
    </body></html>
    """


@pytest.fixture
def quiz_page_builder():
    return quiz_page


@pytest.fixture
def quiz_card_attempt():
    def build(number: int = 1, status: str = "Finished", grade: str = "80.00") -> str:
        return QUIZ_CARD_ATTEMPT.format(number=number, status=status, grade=grade)

    return build


@pytest.fixture
def quiz_table_html() -> str:
    """Legacy attempt summary table with one finished and one open attempt."""
    return quiz_page(
        """
        <table class="generaltable quizattemptsummary">
          <thead><tr><th>Attempt</th><th>State</th><th>Marks / 10.00</th><th>Grade / 100.00</th><th>Review</th></tr></thead>
          <tbody>
            <tr>
              <td>1</td>
              <td>Finished Submitted Monday, 8 January 2024, 9:35 AM</td>
              <td>6.00</td><td>60.00</td>
              <td><a href="https://moodle.test/mod/quiz/review.php?attempt=71">Review</a></td>
            </tr>
            <tr>
              <td>2</td>
              <td>In progress</td>
              <td></td><td></td><td></td>
            </tr>
          </tbody>
        </table>
        <div class="quizstartbuttondiv"><button type="submit">Continue your attempt</button></div>
        """
    )


@pytest.fixture
def assignment_html() -> str:
    """Submitted assignment with one file and a closed cut-off."""
    return """
    <html><body>
      <div class="page-header-headings"><h1 class="h2 mb-0">Homework 1</h1></div>
      <div id="region-main">
        <div data-region="activity-dates">
          <div><strong>Opened:</strong> Monday, 8 January 2024, 12:00 AM</div>
          <div><strong>Due:</strong> Friday, 19 January 2024, 11:59 PM</div>
        </div>
        <div class="submissionstatustable">
          <table class="generaltable">
            <tr><th>Submission status</th><td>Submitted for grading</td></tr>
            <tr><th>Grading status</th><td>Not graded</td></tr>
            <tr><th>Time remaining</th><td>Assignment was submitted 2 hours early</td></tr>
            <tr><th>Last modified</th><td>Friday, 19 January 2024, 9:59 PM</td></tr>
            <tr><th>Cut-off date</th><td>Saturday, 20 January 2024, 11:59 PM</td></tr>
            <tr><th>File submissions</th><td>
              <a href="https://moodle.test/pluginfile.php/99/assignsubmission_file/report.pdf">report.pdf</a>
            </td></tr>
          </table>
        </div>
      </div>
    </body></html>
    """


# ─────────────────────────────────────────────────────────────────────────────
# Login Flow Fixtures
# ─────────────────────────────────────────────────────────────────────────────


IDP_URL = "https://idp.mahidol.ac.th/adfs/ls/?SAMLRequest=abc"


@pytest.fixture
def idp_form_html() -> str:
    return """
    <html><body>
      <form method="post" id="loginForm" action="/adfs/ls/?SAMLRequest=abc&amp;client-request-id=1">
        <input id="userNameInput" name="UserName" type="email">
        <input id="passwordInput" name="Password" type="password">
      </form>
    </body></html>
    """


@pytest.fixture
def idp_error_html() -> str:
    """What the identity provider shows after a wrong password."""
    return """
    <html><body>
      <form method="post" id="loginForm" action="/adfs/ls/?SAMLRequest=abc">
        <span id="errorText">Incorrect user ID or password.</span>
        <input name="UserName" type="email">
      </form>
    </body></html>
    """


@pytest.fixture
def saml_relay_html() -> str:
    return """
    <html><body onload="document.forms[0].submit()">
      <form method="POST" name="hiddenform" action="https://mycourses.ict.mahidol.ac.th/auth/saml2/sp/saml2-acs.php/mycourses">
        <input type="hidden" name="SAMLResponse" value="PHNhbWxwOlJlc3BvbnNlPg==">
        <input type="hidden" name="RelayState" value="https://mycourses.ict.mahidol.ac.th/">
      </form>
    </body></html>
    """


# ─────────────────────────────────────────────────────────────────────────────
# Mock Fixtures
# ─────────────────────────────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


def make_response(
    status_code: int = 200,
    text: str = "",
    headers: Optional[dict] = None,
    url: str = "https://moodle.test/",
) -> MagicMock:
    """A stand-in for ``requests.Response``."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    response.url = url
    return response


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def mock_http():
    """A mock ``requests.Session`` with a real dict for cookies."""
    http = MagicMock()
    http.headers = {}
    http.cookies = MagicMock()
    http.cookies.get.return_value = None
    return http


@pytest.fixture
def test_settings():
    """Settings with no retry waits and a test deployment URL."""
    from better_mycourses.shared.config import (
        ApiConfig,
        AuthConfig,
        CacheConfig,
        MoodleConfig,
        Settings,
    )

    return Settings(
        moodle=MoodleConfig(
            base_url="https://moodle.test",
            max_retries=2,
            retry_min_wait=0,
            retry_max_wait=0,
            max_workers=4,
        ),
        cache=CacheConfig(sweep_interval=3600),
        auth=AuthConfig(jwt_secret="test-secret-0123456789abcdef0123456789", token_expiry_seconds=3600),
        api=ApiConfig(cors_origins=["http://localhost:3000"]),
    )


@pytest.fixture
def credential():
    from better_mycourses.shared.schemas import SessionCredential

    return SessionCredential(moodle_session="s3ss10nt0k3n", sesskey="abc123")


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture(autouse=True)
def reset_settings():
    """Drop the cached settings singleton between tests."""
    from better_mycourses.shared.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
