"""Input normalization and validation helpers."""

from __future__ import annotations

import re

USER_NAME_MIN_LENGTH = 1
USER_NAME_MAX_LENGTH = 50
NOTES_MAX_LENGTH = 500

_USER_NAME_PATTERN = re.compile(r"^[A-Za-z0-9\s\-']+$")
_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Trim and collapse runs of whitespace into single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def normalize_user_name(name: str) -> str:
    """Normalize and validate a user name.

    Args:
        name: Raw user name.

    Returns:
        Trimmed name with internal whitespace collapsed.

    Raises:
        ValueError: If the name is empty, too long, or has disallowed characters.
    """
    cleaned = collapse_whitespace(name)
    if len(cleaned) < USER_NAME_MIN_LENGTH:
        raise ValueError("User name is required")
    if len(cleaned) > USER_NAME_MAX_LENGTH:
        raise ValueError(f"User name must be at most {USER_NAME_MAX_LENGTH} characters")
    if not _USER_NAME_PATTERN.match(cleaned):
        raise ValueError("User name may only contain letters, digits, spaces, hyphens and apostrophes")
    return cleaned


def normalize_notes(notes: str | None) -> str | None:
    """Collapse whitespace in notes; blank notes become None."""
    if notes is None:
        return None
    if len(notes) > NOTES_MAX_LENGTH:
        raise ValueError(f"Notes must be at most {NOTES_MAX_LENGTH} characters")
    cleaned = collapse_whitespace(notes)
    return cleaned or None


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Lower-case, trim and de-duplicate tags preserving order."""
    seen: dict[str, None] = {}
    for tag in tags or []:
        cleaned = collapse_whitespace(tag).lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def normalize_user_filter(name: str | None) -> str | None:
    """Normalize a ``user_name`` query filter the way stored names are.

    A blank filter means no filter.
    """
    if name is None:
        return None
    return collapse_whitespace(name) or None
