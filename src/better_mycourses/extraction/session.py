"""Action key (``sesskey``) lookup in Moodle pages."""

import re
from typing import Optional

from better_mycourses.extraction.common import HtmlInput, make_soup

CONFIG_MARKER = "M.cfg"
SESSKEY_PATTERN = re.compile(r'"sesskey":"([^"]+)"')


def extract_sesskey(html: HtmlInput) -> Optional[str]:
    """
    Find the sesskey in the inline ``M.cfg`` config script.

    Only scripts containing the config marker are searched; the first match
    wins and there is no fallback.
    """
    soup = make_soup(html)

    for script in soup.find_all("script"):
        content = script.string if script.string is not None else script.get_text()
        if not content or CONFIG_MARKER not in content:
            continue
        match = SESSKEY_PATTERN.search(content)
        if match:
            return match.group(1)

    return None
