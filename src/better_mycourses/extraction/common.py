"""
Extraction helpers shared by all page extractors.

Every field lookup is an ordered list of strategies, each a pure function
``Tag -> Optional[T]``. ``first_match`` tries them in order and keeps the
first non-empty result; results are never merged.
"""

import re
import warnings
from typing import Callable, Iterable, Optional, TypeVar, Union
from urllib.parse import unquote

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning, Tag

T = TypeVar("T")

Strategy = Callable[[Tag], Optional[T]]

# decode_text feeds short fragments such as "mailto:..." through the parser
warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)

HtmlInput = Union[str, BeautifulSoup]


def make_soup(html: HtmlInput) -> BeautifulSoup:
    """Parse HTML with lxml. An already parsed document is returned as is."""
    if isinstance(html, BeautifulSoup):
        return html
    return BeautifulSoup(html or "", "lxml")


def text_of(node: Optional[Tag]) -> str:
    """Concatenated text of a node, stripped. Empty string for ``None``."""
    if node is None:
        return ""
    return node.get_text().strip()


def squash(text: str) -> str:
    """Collapse internal whitespace."""
    return re.sub(r"\s+", " ", text).strip()


def decode_text(text: Optional[str]) -> str:
    """
    Decode HTML entities, then percent-encoding.

    Each stage is best-effort: when percent-decoding fails the entity-decoded
    value is returned unchanged. Never raises.
    """
    if not text:
        return ""

    html_decoded = BeautifulSoup(text, "lxml").get_text()

    try:
        return unquote(html_decoded, errors="strict")
    except UnicodeDecodeError:
        return html_decoded


def first_match(strategies: Iterable[Strategy[T]], node: Tag) -> Optional[T]:
    """Return the first non-empty result of ``strategies`` applied to ``node``."""
    for strategy in strategies:
        value = strategy(node)
        if isinstance(value, str):
            value = value.strip()
        if value:
            return value
    return None


def select_text(selector: str) -> Strategy[str]:
    """Strategy: text of the first element matching ``selector``."""

    def strategy(node: Tag) -> Optional[str]:
        found = node.select_one(selector)
        return text_of(found) or None

    strategy.__name__ = f"select_text({selector!r})"
    return strategy


def attr_value(name: str) -> Strategy[str]:
    """Strategy: value of attribute ``name`` on the node itself."""

    def strategy(node: Tag) -> Optional[str]:
        value = node.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        return value or None

    strategy.__name__ = f"attr_value({name!r})"
    return strategy


def class_list(node: Tag) -> list[str]:
    value = node.get("class") or []
    if isinstance(value, str):
        return value.split()
    return list(value)


ACTIVITY_DATES_SELECTOR = "[data-region='activity-dates'] div"


def parse_activity_dates(node: Tag) -> dict[str, str]:
    """
    Read the "Due:", "Opens:/Opened:" and "Closes:/Closed:" lines of an activity.

    Values stay as Moodle's locale-formatted display text with the label
    removed. Keys are ``due_date``, ``open_date`` and ``close_date``.
    """
    dates: dict[str, str] = {}
    for div in node.select(ACTIVITY_DATES_SELECTOR):
        text = div.get_text()
        if "Due:" in text:
            dates["due_date"] = text.replace("Due:", "", 1).strip()
        elif "Opens:" in text or "Opened:" in text:
            dates["open_date"] = re.sub(r"Opens?:|Opened:", "", text, count=1).strip()
        elif "Closes:" in text or "Closed:" in text:
            dates["close_date"] = re.sub(r"Closes?:|Closed:", "", text, count=1).strip()
    return dates
