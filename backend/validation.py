"""
Input normalisation for team and player writes.
Runs before any SQL so a rejected write never touches the store.
"""
from __future__ import annotations

from backend.config import DEFAULT_TEAM_COLOR, DEFAULT_TEAM_LOGO
from backend.errors import ValidationError


def clean_name(name: str | None, what: str) -> str:
    """Trimmed name; raise ValidationError if missing or blank."""
    if name is None:
        raise ValidationError(f"{what} name is required.")
    cleaned = str(name).strip()
    if not cleaned:
        raise ValidationError(f"{what} name cannot be empty.")
    return cleaned


def clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def clean_team_fields(
    name: str | None,
    logo: str | None,
    color: str | None,
    description: str | None,
) -> tuple[str, str, str, str]:
    """(name, logo, color, description) with defaults for empty logo/color/description."""
    return (
        clean_name(name, "Team"),
        clean_optional(logo) or DEFAULT_TEAM_LOGO,
        clean_optional(color) or DEFAULT_TEAM_COLOR,
        clean_optional(description) or "",
    )


def clean_jersey_number(value: int | str | None) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("Jersey number must be an integer.")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Jersey number must be an integer.") from None
    if number < 0:
        raise ValidationError("Jersey number cannot be negative.")
    return number


def clean_search_query(text: str | None) -> str:
    if text is None or not str(text).strip():
        raise ValidationError("Search query is required.")
    return str(text).strip()


def like_pattern(text: str) -> str:
    """Substring LIKE pattern with % and _ in the user text escaped (ESCAPE '\\')."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
