"""Cross-reference resolution between content items.

Bodies may link to other items with ``[[slug]]`` (same collection),
``[[posts/slug]]`` or ``[[projects/slug]]``, optionally labelled as
``[[posts/slug|label]]``. Front matter ``related`` lists use the same target
syntax without brackets. A target that does not exist in the current
generation is an error, never a dead link.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from quire.core.exceptions import UnresolvedReferenceError
from quire.core.types import CollectionKind, ContentItem

if TYPE_CHECKING:
    from quire.core.assembler import SiteIndex

REFERENCE_PATTERN = re.compile(r"\[\[([^\[\]|\n]+?)(?:\|([^\[\]\n]+?))?\]\]")
_FENCE = re.compile(r"^\s{0,3}(```|~~~)")
_CODE_SPAN = re.compile(r"`[^`\n]*`")
_MARKDOWN_LABEL_SPECIALS = re.compile(r"([\\\[\]])")


def parse_target(target: str, default_kind: CollectionKind) -> tuple[CollectionKind, str]:
    """Split ``posts/slug`` into its kind and slug; bare slugs use ``default_kind``."""
    target = target.strip().strip("/")
    prefix, sep, rest = target.partition("/")
    if sep:
        for kind in CollectionKind:
            if prefix == kind.value:
                return kind, rest.strip()
    return default_kind, target


def resolve(target: str, source: ContentItem, index: SiteIndex) -> ContentItem:
    """Return the item ``target`` refers to.

    Raises:
        UnresolvedReferenceError: If no item of this generation matches.

    """
    kind, slug = parse_target(target, source.kind)
    item = index.get(kind, slug)
    if item is None:
        raise UnresolvedReferenceError(target.strip(), slug=source.slug, page=source.output_path)
    return item


def related_items(source: ContentItem, index: SiteIndex) -> list[ContentItem]:
    """Resolve the ``related`` front matter of ``source`` in declared order."""
    return [resolve(target, source, index) for target in source.related]


def substitute_references(
    source: ContentItem,
    index: SiteIndex,
    url_for: Callable[[ContentItem], str],
) -> str:
    """Replace every ``[[...]]`` reference in the body with a markdown link.

    Fenced code blocks and inline code spans are left untouched.
    """

    def replace(match: re.Match[str]) -> str:
        target_item = resolve(match.group(1), source, index)
        label = match.group(2).strip() if match.group(2) else target_item.title
        return f"[{_escape_label(label)}]({url_for(target_item)})"

    lines = source.body.split("\n")
    in_fence = False
    fence_marker = ""
    for position, line in enumerate(lines):
        fence = _FENCE.match(line)
        if fence:
            if not in_fence:
                in_fence, fence_marker = True, fence.group(1)
            elif fence.group(1) == fence_marker:
                in_fence = False
            continue
        if in_fence or "[[" not in line:
            continue
        lines[position] = _substitute_outside_code(line, replace)
    return "\n".join(lines)


def _substitute_outside_code(line: str, replace: Callable[[re.Match[str]], str]) -> str:
    parts: list[str] = []
    cursor = 0
    for span in _CODE_SPAN.finditer(line):
        parts.append(REFERENCE_PATTERN.sub(replace, line[cursor : span.start()]))
        parts.append(span.group(0))
        cursor = span.end()
    parts.append(REFERENCE_PATTERN.sub(replace, line[cursor:]))
    return "".join(parts)


def _escape_label(label: str) -> str:
    return _MARKDOWN_LABEL_SPECIALS.sub(r"\\\1", label)
