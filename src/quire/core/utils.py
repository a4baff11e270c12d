"""Slug helpers shared by the parser, the assembler and the layouts."""

import re
from pathlib import Path
from unicodedata import normalize

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}-(?=.)")
_NON_SLUG = re.compile(r"[^a-z0-9]+")

FALLBACK_SLUG = "untitled"


def slugify(text: str, max_len: int | None = 60) -> str:
    """Turn ``text`` into a lowercase ASCII slug for URLs and directory names.

    Examples:
        >>> slugify("Hello World")
        'hello-world'
        >>> slugify("Café & Crème")
        'cafe-creme'
        >>> slugify("!!!")
        'untitled'

    """
    ascii_text = normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = _NON_SLUG.sub("-", ascii_text.lower()).strip("-")
    if not slug:
        return FALLBACK_SLUG
    if max_len is None:
        return slug
    return slug[:max_len].rstrip("-")


def slug_from_filename(path: Path, *, strip_date: bool = False) -> str:
    """Derive an item slug from its source filename.

    ``2026-02-25-hello-world.md`` becomes ``hello-world`` when ``strip_date``
    is set, and ``2026-02-25-hello-world`` otherwise. The slug is never
    truncated, so distinct filenames keep distinct slugs.
    """
    stem = path.stem
    if strip_date:
        stem = _DATE_PREFIX.sub("", stem)
    return slugify(stem, max_len=None)
