"""Core exceptions for Quire.

Every content or rendering inconsistency is a ``BuildError``. Build errors
are never recovered locally: they abort the stage that raised them and the
build is reported as failed.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base exception for all Quire errors."""


class ConfigError(QuireError):
    """Raised when a configuration file cannot be loaded or validated."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to load configuration at '{path}': {reason}")


class BuildError(QuireError):
    """Base class for build-fatal errors.

    Attributes:
        error_kind: Stable name of the error kind, used in reports.
        slug: Slug of the offending item, when one applies.
        path: Source path of the offending item, when one applies.

    """

    error_kind = "BuildError"

    def __init__(self, message: str, *, slug: str | None = None, path: Path | str | None = None) -> None:
        self.slug = slug
        self.path = str(path) if path is not None else None
        self.message = message
        super().__init__(message)


class MalformedMetadataError(BuildError):
    """Raised when front matter is absent, unparseable or incomplete."""

    error_kind = "MalformedMetadata"

    def __init__(
        self,
        reason: str,
        *,
        slug: str | None = None,
        path: Path | str | None = None,
        fields: list[str] | None = None,
    ) -> None:
        self.reason = reason
        self.fields = fields or []
        location = f" in '{path}'" if path is not None else ""
        super().__init__(f"Malformed metadata{location}: {reason}", slug=slug, path=path)


class EmptyBodyError(BuildError):
    """Raised when a content file has no body after its front matter."""

    error_kind = "EmptyBody"

    def __init__(self, *, slug: str | None = None, path: Path | str | None = None) -> None:
        location = f"'{path}'" if path is not None else "content item"
        super().__init__(f"{location} has an empty body", slug=slug, path=path)


class DuplicateSlugError(BuildError):
    """Raised when two items of the same collection share a slug."""

    error_kind = "DuplicateSlug"

    def __init__(self, collection: str, slug: str, paths: list[str]) -> None:
        self.collection = collection
        self.paths = paths
        joined = ", ".join(paths)
        super().__init__(
            f"Slug '{slug}' is used more than once in '{collection}': {joined}",
            slug=slug,
            path=paths[-1] if paths else None,
        )


class UnresolvedReferenceError(BuildError):
    """Raised when a cross-reference or internal link has no target in the generation."""

    error_kind = "UnresolvedReference"

    def __init__(self, target: str, *, slug: str | None = None, page: str | None = None) -> None:
        self.target = target
        self.page = page
        origin = slug or page or "unknown source"
        super().__init__(f"Reference to '{target}' from '{origin}' does not resolve", slug=slug)


class WriteFailureError(BuildError):
    """Raised when a generation cannot be persisted or promoted."""

    error_kind = "WriteFailure"

    def __init__(self, path: Path | str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to write '{path}': {reason}", path=path)
