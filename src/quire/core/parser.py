"""Content item parser.

Splits a source file into its YAML front matter and markdown body, decodes the
front matter against the schema of the file's collection kind and produces an
immutable ``ContentItem``. Parsing is pure, so files are parsed in parallel.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from frontmatter.default_handlers import YAMLHandler
from pydantic import ValidationError

from quire.core.exceptions import EmptyBodyError, MalformedMetadataError
from quire.core.types import CollectionKind, ContentItem
from quire.core.utils import slug_from_filename

if TYPE_CHECKING:
    from collections.abc import Sequence

    from quire.core.config import QuireConfig

logger = logging.getLogger(__name__)

CONTENT_SUFFIXES = frozenset({".md", ".markdown"})

_handler = YAMLHandler()


@dataclass(frozen=True)
class SourceFile:
    """A content file paired with the collection its directory declares."""

    path: Path
    kind: CollectionKind

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split raw file content into a metadata mapping and the body.

    Raises:
        MalformedMetadataError: If the ``---`` block is missing, is not valid
            YAML, or does not decode to a key/value mapping.

    """
    text = text.lstrip("\ufeff")
    if not _handler.detect(text):
        raise MalformedMetadataError("front matter block is missing")

    try:
        raw_metadata, body = _handler.split(text)
    except ValueError as exc:
        raise MalformedMetadataError("front matter block is not terminated") from exc

    try:
        metadata = _handler.load(raw_metadata)
    except yaml.YAMLError as exc:
        raise MalformedMetadataError(f"front matter is not valid YAML: {exc}") from exc
    except ValueError as exc:
        # PyYAML constructs timestamps eagerly; 2026-02-30 fails here
        raise MalformedMetadataError(f"front matter has an invalid value: {exc}") from exc

    if not isinstance(metadata, dict):
        raise MalformedMetadataError(f"front matter must be a mapping, got {type(metadata).__name__}")

    return {str(key): value for key, value in metadata.items()}, body


def parse_item(text: str, source_path: Path, kind: CollectionKind) -> ContentItem:
    """Parse one content file into a ``ContentItem``.

    Args:
        text: Raw file content
        source_path: Path the content was read from; its stem becomes the slug
        kind: Collection kind inferred from the file's directory

    Raises:
        MalformedMetadataError: Front matter missing, unparseable or incomplete
        EmptyBodyError: Body blank after trimming

    """
    slug = slug_from_filename(source_path, strip_date=kind == CollectionKind.POST)

    try:
        raw_metadata, body = split_front_matter(text)
    except MalformedMetadataError as exc:
        raise MalformedMetadataError(exc.reason, slug=slug, path=source_path) from exc

    try:
        metadata = kind.metadata_model.model_validate(raw_metadata)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
        missing = [field for field in fields if field.split(".")[0] not in raw_metadata]
        reason = (
            f"missing required field(s) {', '.join(missing)} for {kind.value}"
            if missing
            else f"invalid field(s) {', '.join(fields)} for {kind.value}"
        )
        raise MalformedMetadataError(reason, slug=slug, path=source_path, fields=fields) from exc

    body = body.strip()
    if not body:
        raise EmptyBodyError(slug=slug, path=source_path)

    return ContentItem(
        kind=kind,
        slug=slug,
        title=metadata.title,
        body=body,
        metadata=metadata.model_dump(),
        source_path=source_path,
    )


def parse_source(source: SourceFile) -> ContentItem:
    """Read and parse one source file.

    Raises:
        MalformedMetadataError: Also when the file cannot be read or is not
            valid UTF-8

    """
    try:
        text = source.read()
    except (OSError, UnicodeDecodeError) as exc:
        slug = slug_from_filename(source.path, strip_date=source.kind == CollectionKind.POST)
        raise MalformedMetadataError(f"file cannot be read as UTF-8 text: {exc}", slug=slug, path=source.path) from exc
    return parse_item(text, source.path, source.kind)


def kind_for_path(path: Path, config: QuireConfig) -> CollectionKind | None:
    """Return the collection kind whose content directory contains ``path``."""
    resolved = path.resolve()
    for kind, directory in _collection_dirs(config).items():
        if resolved.is_relative_to(directory.resolve()):
            return kind
    return None


def discover_sources(config: QuireConfig) -> list[SourceFile]:
    """List every content file below the collection directories, sorted by path.

    Files whose name starts with ``_`` or ``.`` are skipped.
    """
    sources: list[SourceFile] = []
    for kind, directory in _collection_dirs(config).items():
        if not directory.is_dir():
            logger.debug("No %s directory at %s", kind.value, directory)
            continue
        for path in directory.rglob("*"):
            if not path.is_file() or path.suffix.lower() not in CONTENT_SUFFIXES:
                continue
            if path.name.startswith(("_", ".")):
                continue
            sources.append(SourceFile(path=path, kind=kind))
    sources.sort(key=lambda source: (source.kind.value, source.path.as_posix()))
    return sources


def parse_sources(sources: Sequence[SourceFile], max_workers: int = 4) -> list[ContentItem]:
    """Parse every source in parallel.

    Results keep the order of ``sources``. When several files fail, the error
    of the first failing file in that order is raised, so failures are
    reported deterministically.
    """
    if not sources:
        return []

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="quire-parse") as executor:
        futures = [executor.submit(parse_source, source) for source in sources]
        items = [future.result() for future in futures]

    logger.info("Parsed %d content file(s)", len(items))
    return items


def _collection_dirs(config: QuireConfig) -> dict[CollectionKind, Path]:
    return {
        CollectionKind.POST: config.paths.abs_posts_dir,
        CollectionKind.PROJECT: config.paths.abs_projects_dir,
    }
