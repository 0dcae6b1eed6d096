"""Range-based pagination for listing queries."""

import re
from typing import Union

from .query import PageRange


DEFAULT_PAGE_SIZE = 9

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _parse_page(page: Union[int, str]) -> int:
    # Strings parse their leading integer; unparseable or zero strings mean page 1.
    if isinstance(page, str):
        match = _LEADING_INT.match(page)
        return (int(match.group(1)) if match else 0) or 1
    return page


def get_page_range(page: Union[int, str] = 1, page_size: int = DEFAULT_PAGE_SIZE) -> PageRange:
    """
    Compute the inclusive row window for a 1-based page number.

    Integer pages are not clamped, so page 0 yields a negative window.

    Examples:
        >>> get_page_range("2", 9)
        PageRange(start=9, end=17)
        >>> get_page_range(0)
        PageRange(start=-9, end=-1)
    """
    page_number = _parse_page(page)
    start = (page_number - 1) * page_size
    return PageRange(start=start, end=start + page_size - 1)
