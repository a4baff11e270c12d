"""Collection assembly.

Partitions the items of one generation by kind and orders each partition by
its kind's ordering rule.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from quire.core.exceptions import DuplicateSlugError
from quire.core.types import Collection, CollectionKind, ContentItem
from quire.core.utils import slugify

logger = logging.getLogger(__name__)


def assemble(items: Iterable[ContentItem]) -> dict[CollectionKind, Collection]:
    """Group items into one ordered ``Collection`` per kind.

    Every kind gets a collection, possibly empty, in enum order.

    Raises:
        DuplicateSlugError: If two items of the same kind share a slug.

    """
    partitions: dict[CollectionKind, list[ContentItem]] = defaultdict(list)
    for item in items:
        partitions[item.kind].append(item)

    collections: dict[CollectionKind, Collection] = {}
    for kind in CollectionKind:
        members = partitions.get(kind, [])
        _check_unique_slugs(kind, members)
        ordered = tuple(sorted(members, key=kind.ordering_key))
        collections[kind] = Collection(kind=kind, items=ordered)
        logger.debug("Assembled %s: %d item(s)", kind.value, len(ordered))
    return collections


def _check_unique_slugs(kind: CollectionKind, items: list[ContentItem]) -> None:
    seen: dict[str, ContentItem] = {}
    for item in sorted(items, key=lambda i: (i.slug, str(i.source_path or ""))):
        first = seen.get(item.slug)
        if first is not None:
            raise DuplicateSlugError(
                kind.value,
                item.slug,
                [str(first.source_path), str(item.source_path)],
            )
        seen[item.slug] = item


@dataclass(frozen=True)
class SiteIndex:
    """Read-only lookups over the assembled collections of one generation.

    ``tags`` is keyed by tag slug; ``tag_labels`` keeps the spelling of the
    first post, in collection order, that used the tag.
    """

    collections: Mapping[CollectionKind, Collection]
    lookup: Mapping[tuple[CollectionKind, str], ContentItem] = field(default_factory=dict)
    tags: Mapping[str, tuple[ContentItem, ...]] = field(default_factory=dict)
    tag_labels: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, collections: Mapping[CollectionKind, Collection]) -> SiteIndex:
        lookup = {(item.kind, item.slug): item for collection in collections.values() for item in collection}
        tagged: dict[str, list[ContentItem]] = defaultdict(list)
        labels: dict[str, str] = {}
        for item in collections.get(CollectionKind.POST, Collection(CollectionKind.POST)):
            for tag in item.tags:
                key = slugify(tag)
                labels.setdefault(key, tag)
                if not tagged[key] or tagged[key][-1] is not item:
                    tagged[key].append(item)
        return cls(
            collections=MappingProxyType(dict(collections)),
            lookup=MappingProxyType(lookup),
            tags=MappingProxyType({key: tuple(tagged[key]) for key in sorted(tagged)}),
            tag_labels=MappingProxyType({key: labels[key] for key in sorted(labels)}),
        )

    def get(self, kind: CollectionKind, slug: str) -> ContentItem | None:
        return self.lookup.get((kind, slug))

    def items(self) -> list[ContentItem]:
        return [item for collection in self.collections.values() for item in collection]
