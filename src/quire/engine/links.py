"""Internal link verification for a generation held in memory."""

from __future__ import annotations

import logging
import posixpath
import urllib.parse
from collections.abc import Iterable, Iterator, Mapping

from lxml import etree
from lxml import html as lxml_html

from quire.core.exceptions import UnresolvedReferenceError

logger = logging.getLogger(__name__)

LINK_ATTRIBUTES = ("href", "src")


def extract_links(text: str) -> Iterator[str]:
    """Yield the ``href``/``src`` values of the page's elements in document order.

    Markup shown as text (escaped in code samples) is not an element and is
    never reported.
    """
    if not text.strip():
        return
    document = lxml_html.fromstring(text)
    for element in document.iter(etree.Element):
        for attribute in LINK_ATTRIBUTES:
            value = element.get(attribute)
            if value:
                yield value.strip()


def is_internal_link(url: str) -> bool:
    """Checks if the URL is an internal link that should be verified."""
    if url.startswith(("//", "#")):
        return False
    parsed = urllib.parse.urlparse(url)
    return not parsed.scheme


def resolve_link(page: str, url: str, base_path: str = "/") -> str | None:
    """Map ``url`` found on ``page`` to an output path of the generation.

    Returns ``None`` when the link points outside the site. Query strings and
    fragments are ignored; directory links resolve to their ``index.html``.
    """
    target = urllib.parse.unquote(url.split("#", 1)[0].split("?", 1)[0])
    if not target:
        return page

    if target.startswith("/"):
        if not (target + ("" if target.endswith("/") else "/")).startswith(base_path):
            return None
        relative = target[len(base_path) :] if len(target) >= len(base_path) else ""
    else:
        relative = posixpath.join(posixpath.dirname(page), target)

    directory_link = relative == "" or relative.endswith("/")
    normalized = posixpath.normpath(relative) if relative else "."
    if normalized == ".." or normalized.startswith("../"):
        return None
    if normalized == ".":
        normalized = ""

    if directory_link or normalized == "":
        return posixpath.join(normalized, "index.html") if normalized else "index.html"
    return normalized


def find_broken_links(
    pages: Mapping[str, bytes],
    base_path: str = "/",
    assets: Iterable[str] = (),
) -> list[tuple[str, str]]:
    """List ``(page, url)`` pairs whose internal target is not in the generation."""
    available = set(pages) | set(assets)
    broken: list[tuple[str, str]] = []
    for page, content in sorted(pages.items()):
        if not page.endswith(".html"):
            continue
        text = content.decode("utf-8", errors="ignore")
        for url in extract_links(text):
            if not is_internal_link(url):
                continue
            resolved = resolve_link(page, url, base_path)
            if resolved is None:
                broken.append((page, url))
                continue
            if resolved in available or posixpath.join(resolved, "index.html") in available:
                continue
            broken.append((page, url))
    return broken


def verify_links(pages: Mapping[str, bytes], base_path: str = "/", assets: Iterable[str] = ()) -> None:
    """Ensure every internal link of every HTML page resolves inside the generation.

    Raises:
        UnresolvedReferenceError: For the first broken link, in page order.

    """
    broken = find_broken_links(pages, base_path, assets)
    if broken:
        for page, url in broken:
            logger.error("Broken internal link on %s: %s", page, url)
        page, url = broken[0]
        raise UnresolvedReferenceError(url, page=page)
