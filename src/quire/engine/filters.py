"""Custom Jinja2 filters for page layouts."""

from datetime import date, datetime


def format_date(value: date | datetime | None, format_str: str = "%B %d, %Y") -> str:
    """Format a date for display.

    Args:
        value: Date or datetime to format
        format_str: strftime format string

    Returns:
        Formatted date string, or an empty string for ``None``

    """
    if value is None:
        return ""
    if not isinstance(value, date):
        return str(value)
    return value.strftime(format_str)


def isoformat(value: date | datetime | None) -> str:
    """ISO 8601 representation, used in ``<time datetime=...>`` attributes."""
    if value is None:
        return ""
    return value.isoformat()


def truncate_words(text: str, limit: int = 30, suffix: str = "…") -> str:
    """Shorten ``text`` to at most ``limit`` words."""
    words = (text or "").split()
    if len(words) <= limit:
        return " ".join(words)
    return " ".join(words[:limit]) + suffix
