"""Pagination parameter handling."""

from __future__ import annotations

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def _parse_int(value: int | str | None) -> int | None:
    if value is None or isinstance(value, int):
        return value
    try:
        return int(value.strip())
    except ValueError:
        return None


def normalize_pagination(
    page: int | str | None,
    per_page: int | str | None,
) -> tuple[int, int]:
    """Clamp pagination parameters, falling back to defaults when invalid.

    Raw query strings are accepted; anything that is not an integer is
    treated as missing.

    >>> normalize_pagination(0, 500)
    (1, 20)
    >>> normalize_pagination("3", "50")
    (3, 50)
    >>> normalize_pagination("abc", "lots")
    (1, 20)
    """
    page_number = _parse_int(page)
    page_size = _parse_int(per_page)
    valid_page = page_number if page_number and page_number > 0 else DEFAULT_PAGE
    valid_per_page = (
        page_size if page_size and 0 < page_size <= MAX_PER_PAGE else DEFAULT_PER_PAGE
    )
    return valid_page, valid_per_page
