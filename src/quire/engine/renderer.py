"""Template renderer.

Turns the assembled collections of one generation into page bytes:

- one page per item, using the layout of its kind
- one listing page per collection, in collection order
- the home page, the tag index and one page per tag
- the Atom feed of posts

All output is buffered in memory. Every internal link of the result is
verified before it is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypeVar

from quire.core.assembler import SiteIndex
from quire.core.config import SiteSettings
from quire.core.ports import MarkdownRenderer
from quire.core.rendering import CommonMarkRenderer
from quire.core.types import Collection, CollectionKind, ContentItem
from quire.engine.feed import posts_to_atom
from quire.engine.links import verify_links
from quire.engine.references import related_items, substitute_references
from quire.engine.template_loader import TemplateLoader

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

HOME_TEMPLATE = "home.html.jinja"
COLLECTION_TEMPLATE = "collection.html.jinja"
TAGS_TEMPLATE = "tags.html.jinja"
TAG_TEMPLATE = "tag.html.jinja"
FEED_PATH = "feed.xml"


@dataclass(frozen=True)
class RenderResult:
    """Pages of one generation plus the rendered collections they came from."""

    pages: Mapping[str, bytes]
    collections: Mapping[CollectionKind, Collection]


class Renderer:
    """Renders collections into pages with Jinja2 layouts."""

    def __init__(
        self,
        site: SiteSettings,
        *,
        loader: TemplateLoader | None = None,
        markdown: MarkdownRenderer | None = None,
        max_workers: int = 4,
        assets: Iterable[str] = (),
    ) -> None:
        """Initialize the renderer.

        Args:
            site: Site settings (title, base path, feed URL)
            loader: Template loader; defaults to the packaged layouts
            markdown: Markdown to HTML capability; defaults to CommonMark
            max_workers: Worker threads used for per-item rendering
            assets: Output paths of static assets shipped with the generation,
                e.g. ``static/style.css``. Links to them count as resolved.

        """
        self.site = site
        self.loader = loader or TemplateLoader()
        self.markdown = markdown or CommonMarkRenderer()
        self.max_workers = max_workers
        self.assets = tuple(sorted(assets))

    # -- URLs --------------------------------------------------------------
    def url(self, path: str = "") -> str:
        """Site-root relative URL of an output path such as ``posts/``."""
        return f"{self.site.base_path}{path.lstrip('/')}"

    def url_for(self, item: ContentItem) -> str:
        return self.url(item.route)

    def tag_url(self, tag_slug: str) -> str:
        return self.url(f"tags/{tag_slug}/")

    # -- Rendering -----------------------------------------------------------
    def render(self, collections: Mapping[CollectionKind, Collection]) -> RenderResult:
        """Render every page of the generation.

        Raises:
            UnresolvedReferenceError: If a cross-reference or internal link
                targets something absent from this generation.

        """
        source_index = SiteIndex.build(collections)
        rendered = self._parallel(
            lambda item: item.with_html(self.render_body(item, source_index)),
            source_index.items(),
        )
        by_key = {(item.kind, item.slug): item for item in rendered}
        rendered_collections = {
            kind: Collection(kind=kind, items=tuple(by_key[(item.kind, item.slug)] for item in collection))
            for kind, collection in collections.items()
        }
        index = SiteIndex.build(rendered_collections)

        pages: dict[str, bytes] = {}
        item_pages = self._parallel(lambda item: self.render_item_page(item, index), index.items())
        for item, page in zip(index.items(), item_pages, strict=True):
            pages[item.output_path] = page

        for collection in rendered_collections.values():
            pages[f"{collection.name}/index.html"] = self.render_listing(collection)

        pages["index.html"] = self.render_home(index)
        pages.update(self.render_tag_pages(index))
        posts = rendered_collections.get(CollectionKind.POST, Collection(CollectionKind.POST))
        pages[FEED_PATH] = posts_to_atom(posts, self.site, self.url_for).encode("utf-8")

        verify_links(pages, self.site.base_path, self.assets)
        logger.info("Rendered %d page(s)", len(pages))
        return RenderResult(
            pages=MappingProxyType(dict(sorted(pages.items()))),
            collections=MappingProxyType(rendered_collections),
        )

    def render_body(self, item: ContentItem, index: SiteIndex) -> str:
        """Substitute cross-references in the body, then convert it to HTML."""
        return self.markdown(substitute_references(item, index, self.url_for))

    def render_item_page(self, item: ContentItem, index: SiteIndex) -> bytes:
        return self._page(
            item.kind.layout,
            title=item.title,
            item=item,
            related=related_items(item, index),
            tag_labels=index.tag_labels,
        )

    def render_listing(self, collection: Collection) -> bytes:
        return self._page(
            COLLECTION_TEMPLATE,
            title=collection.kind.label,
            collection=collection,
            items=collection.items,
        )

    def render_home(self, index: SiteIndex) -> bytes:
        posts = index.collections.get(CollectionKind.POST, Collection(CollectionKind.POST))
        projects = index.collections.get(CollectionKind.PROJECT, Collection(CollectionKind.PROJECT))
        return self._page(
            HOME_TEMPLATE,
            title=self.site.title,
            posts=posts.items[: self.site.home_posts],
            projects=projects.items,
            more_posts=len(posts) > self.site.home_posts,
        )

    def render_tag_pages(self, index: SiteIndex) -> dict[str, bytes]:
        pages = {
            "tags/index.html": self._page(
                TAGS_TEMPLATE,
                title="Tags",
                tags=[(slug, index.tag_labels[slug], len(items)) for slug, items in index.tags.items()],
            )
        }
        for slug, items in index.tags.items():
            pages[f"tags/{slug}/index.html"] = self._page(
                TAG_TEMPLATE,
                title=f"Tagged “{index.tag_labels[slug]}”",
                tag=index.tag_labels[slug],
                items=items,
            )
        return pages

    # -- Helpers -------------------------------------------------------------
    def _page(self, template_name: str, **context: Any) -> bytes:
        html = self.loader.render_template(template_name, **self._globals(), **context)
        return html.encode("utf-8")

    def _globals(self) -> dict[str, Any]:
        return {
            "site": self.site,
            "url": self.url,
            "url_for": self.url_for,
            "tag_url": self.tag_url,
            "stylesheets": [self.url(asset) for asset in self.assets if asset.endswith(".css")],
            "nav": [
                ("Home", self.url()),
                (CollectionKind.POST.label, self.url(f"{CollectionKind.POST.value}/")),
                (CollectionKind.PROJECT.label, self.url(f"{CollectionKind.PROJECT.value}/")),
                ("Tags", self.url("tags/")),
            ],
        }

    def _parallel(self, func: Callable[[T], R], values: Sequence[T]) -> list[R]:
        """Apply ``func`` across worker threads, keeping input order.

        The first failure in input order is raised.
        """
        if not values:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="quire-render") as executor:
            futures = [executor.submit(func, value) for value in values]
            return [future.result() for future in futures]
