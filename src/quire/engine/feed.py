"""Atom feed serialization for the posts collection."""

from datetime import UTC, date, datetime, time
from xml.etree.ElementTree import Element, SubElement, tostring

from quire.core.config import SiteSettings
from quire.core.types import Collection, ContentItem

ATOM_NS = "http://www.w3.org/2005/Atom"


def _timestamp(day: date) -> str:
    return datetime.combine(day, time.min, tzinfo=UTC).isoformat().replace("+00:00", "Z")


def posts_to_atom(posts: Collection, site: SiteSettings, url_for) -> str:
    """Serialize the posts collection to an Atom XML string.

    ``url_for`` maps an item to its site-relative URL. The feed is derived
    from item dates only, so identical input gives an identical feed.
    """
    root = Element("feed", attrib={"xmlns": ATOM_NS})
    SubElement(root, "id").text = f"{site.base_url}{site.base_path}"
    SubElement(root, "title").text = site.title
    updated = max((item.date for item in posts), default=date(1970, 1, 1))
    SubElement(root, "updated").text = _timestamp(updated)
    SubElement(root, "link", attrib={"href": f"{site.base_url}{site.base_path}", "rel": "alternate"})
    SubElement(root, "link", attrib={"href": f"{site.base_url}{site.base_path}feed.xml", "rel": "self"})

    if site.author:
        author_el = SubElement(root, "author")
        SubElement(author_el, "name").text = site.author

    for item in posts:
        _append_entry(root, item, site, url_for)

    return "<?xml version='1.0' encoding='UTF-8'?>\n" + tostring(root, encoding="unicode") + "\n"


def _append_entry(root: Element, item: ContentItem, site: SiteSettings, url_for) -> None:
    link = f"{site.base_url}{url_for(item)}"
    entry_el = SubElement(root, "entry")
    SubElement(entry_el, "id").text = link
    SubElement(entry_el, "title").text = item.title
    SubElement(entry_el, "updated").text = _timestamp(item.date)
    SubElement(entry_el, "published").text = _timestamp(item.date)
    SubElement(entry_el, "link", attrib={"href": link, "rel": "alternate"})

    for tag in item.tags:
        SubElement(entry_el, "category", attrib={"term": tag})

    if item.description:
        SubElement(entry_el, "summary").text = item.description

    if item.rendered_html:
        content_el = SubElement(entry_el, "content")
        content_el.text = item.rendered_html
        content_el.set("type", "html")
