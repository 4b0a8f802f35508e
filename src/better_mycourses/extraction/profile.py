"""User profile extraction from ``/user/profile.php``."""

import re
from typing import Optional

from better_mycourses.extraction.common import (
    HtmlInput,
    decode_text,
    first_match,
    make_soup,
    select_text,
)
from better_mycourses.shared.schemas import UserProfile

NAME_STRATEGIES = (
    select_text("h1.h2.mb-0"),
    select_text(".page-header-headings h1"),
)

MAILTO_PATTERN = re.compile(r"mailto:(.+)")


def _email_link(soup):
    for dt in soup.select("dt"):
        if "Email address" not in dt.get_text():
            continue
        dd = dt.find_next_sibling()
        if dd is None or dd.name != "dd":
            continue
        link = dd.find("a")
        if link is not None:
            return link
    return None


def extract_user_profile(html: HtmlInput) -> Optional[UserProfile]:
    """
    Extract the profile owner's name and email.

    The page heading is the primary anchor. The heading is split on
    whitespace: the first token is the first name and the rest is the last
    name; fewer than two tokens means the profile is not found. The email is
    read from the ``mailto:`` href, falling back to the link text.
    """
    soup = make_soup(html)

    full_name = first_match(NAME_STRATEGIES, soup)
    if not full_name:
        return None

    name_parts = full_name.split()
    if len(name_parts) < 2:
        return None

    link = _email_link(soup)
    if link is None:
        return None

    decoded_href = decode_text(link.get("href") or "")
    match = MAILTO_PATTERN.search(decoded_href)
    if match:
        email = decode_text(match.group(1))
    else:
        email = decode_text(link.decode_contents())

    return UserProfile(
        first_name=name_parts[0],
        last_name=" ".join(name_parts[1:]),
        email=email.strip(),
    )
