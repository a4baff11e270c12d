"""Core data types for Quire."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quire.core.exceptions import BuildError


def _split_list(value: Any) -> Any:
    """Accept a comma separated string wherever a list of strings is expected."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        try:
            return dt.date.fromisoformat(text)
        except ValueError:
            return datetime.fromisoformat(text).date()
    return value


# --- Front matter schemas ---
class ItemMetadata(BaseModel):
    """Fields shared by every collection kind."""

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    title: str = Field(min_length=1)
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    related: list[str] = Field(default_factory=list)
    draft: bool = False

    @field_validator("tags", "related", mode="before")
    @classmethod
    def _split(cls, value: Any) -> Any:
        return _split_list(value)


class PostMetadata(ItemMetadata):
    date: dt.date

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Any:
        return _coerce_date(value)


class ProjectMetadata(ItemMetadata):
    category: str = Field(min_length=1)
    stack: list[str] = Field(min_length=1)
    github: str = Field(min_length=1)
    description: str = Field(min_length=1)
    order: int

    @field_validator("stack", mode="before")
    @classmethod
    def _split_stack(cls, value: Any) -> Any:
        return _split_list(value)

    @field_validator("github")
    @classmethod
    def _absolute_github_url(cls, value: str) -> str:
        # "owner/repo" and "github.com/owner/repo" are accepted shorthands
        if "://" in value:
            return value
        if value.startswith("github.com/"):
            return f"https://{value}"
        return f"https://github.com/{value.strip('/')}"


# --- Collection kinds ---
class CollectionKind(str, Enum):
    """The closed set of collection kinds.

    The value doubles as the URL segment and the default content directory name.
    """

    POST = "posts"
    PROJECT = "projects"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def layout(self) -> str:
        return _LAYOUTS[self]

    @property
    def metadata_model(self) -> type[ItemMetadata]:
        return _SCHEMAS[self]

    @property
    def ordering_rule(self) -> str:
        match self:
            case CollectionKind.POST:
                return "date descending, slug ascending"
            case CollectionKind.PROJECT:
                return "order ascending, slug ascending"

    def required_fields(self) -> tuple[str, ...]:
        schema = self.metadata_model
        return tuple(name for name, info in schema.model_fields.items() if info.is_required())

    def ordering_key(self, item: ContentItem) -> tuple:
        """Sort key giving the collection's strict total order."""
        match self:
            case CollectionKind.POST:
                return (-item.date.toordinal(), item.slug)
            case CollectionKind.PROJECT:
                return (item.order, item.slug)


_LABELS = {CollectionKind.POST: "Posts", CollectionKind.PROJECT: "Projects"}
_LAYOUTS = {CollectionKind.POST: "post.html.jinja", CollectionKind.PROJECT: "project.html.jinja"}
_SCHEMAS: dict[CollectionKind, type[ItemMetadata]] = {
    CollectionKind.POST: PostMetadata,
    CollectionKind.PROJECT: ProjectMetadata,
}


# --- Content ---
@dataclass(frozen=True)
class ContentItem:
    """One logical entity parsed from one source file.

    Attributes:
        kind: Collection the item belongs to
        slug: Filename-derived identifier, unique within ``kind``
        title: Non-empty display title
        body: Raw markdown body
        metadata: Read-only normalised front matter (lists become tuples)
        source_path: File the item was parsed from
        rendered_html: Body HTML; empty until the renderer fills it in
    """

    kind: CollectionKind
    slug: str
    title: str
    body: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    source_path: Path | None = None
    rendered_html: str = ""

    def __post_init__(self):
        if not isinstance(self.metadata, MappingProxyType):
            frozen = {key: tuple(value) if isinstance(value, list) else value for key, value in self.metadata.items()}
            object.__setattr__(self, "metadata", MappingProxyType(frozen))

    @property
    def date(self) -> dt.date | None:
        return self.metadata.get("date")

    @property
    def order(self) -> int | None:
        return self.metadata.get("order")

    @property
    def stack(self) -> tuple[str, ...]:
        return self.metadata.get("stack", ())

    @property
    def tags(self) -> tuple[str, ...]:
        return self.metadata.get("tags", ())

    @property
    def related(self) -> tuple[str, ...]:
        return self.metadata.get("related", ())

    @property
    def description(self) -> str:
        return self.metadata.get("description", "")

    @property
    def is_draft(self) -> bool:
        return bool(self.metadata.get("draft", False))

    @property
    def route(self) -> str:
        """Directory of the item's page relative to the site root, e.g. ``posts/hello/``."""
        return f"{self.kind.value}/{self.slug}/"

    @property
    def output_path(self) -> str:
        return f"{self.route}index.html"

    def with_html(self, html: str) -> ContentItem:
        """Return a rendered copy; the receiver is left untouched."""
        return replace(self, rendered_html=html)


@dataclass(frozen=True)
class Collection:
    """An ordered, named group of items of one kind.

    Holds references to items owned by the assembler output of the same build.
    """

    kind: CollectionKind
    items: tuple[ContentItem, ...] = ()

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def ordering_rule(self) -> str:
        return self.kind.ordering_rule

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def slugs(self) -> list[str]:
        return [item.slug for item in self.items]

    def get(self, slug: str) -> ContentItem | None:
        for item in self.items:
            if item.slug == slug:
                return item
        return None


# --- Build ---
class BuildStage(str, Enum):
    PARSE = "parse"
    ASSEMBLE = "assemble"
    RENDER = "render"
    WRITE = "write"
    PUBLISH = "publish"


class BuildStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class BuildFailure(BaseModel):
    """Diagnostic for a failed build."""

    model_config = ConfigDict(frozen=True)

    stage: BuildStage
    error_kind: str
    message: str
    slug: str | None = None
    path: str | None = None

    @classmethod
    def from_error(cls, stage: BuildStage, error: BuildError) -> BuildFailure:
        return cls(
            stage=stage,
            error_kind=error.error_kind,
            message=str(error),
            slug=error.slug,
            path=error.path,
        )


@dataclass
class BuildOutput:
    """The artifact of one build attempt.

    ``pages`` maps output paths (``posts/hello/index.html``) to rendered bytes
    and becomes read-only once the output leaves ``PENDING``.
    """

    generation_id: int
    pages: Mapping[str, bytes] = field(default_factory=dict)
    status: BuildStatus = BuildStatus.PENDING
    failure: BuildFailure | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def is_publishable(self) -> bool:
        return self.status == BuildStatus.SUCCESS

    def succeed(self, pages: Mapping[str, bytes]) -> None:
        self._finish(BuildStatus.SUCCESS)
        self.pages = MappingProxyType(dict(sorted(pages.items())))

    def fail(self, failure: BuildFailure) -> None:
        self._finish(BuildStatus.FAILED)
        self.failure = failure
        self.pages = MappingProxyType({})

    def _finish(self, status: BuildStatus) -> None:
        if self.status != BuildStatus.PENDING:
            msg = f"Generation {self.generation_id} already finished as {self.status.value}"
            raise ValueError(msg)
        self.status = status
        self.finished_at = datetime.now(UTC)


class BuildReport(BaseModel):
    """Externally visible outcome of one trigger run."""

    generation_id: int
    status: BuildStatus
    page_count: int = 0
    published_path: Path | None = None
    failure: BuildFailure | None = None

    @property
    def ok(self) -> bool:
        return self.status == BuildStatus.SUCCESS

    def summary(self) -> str:
        if self.ok:
            return f"published generation {self.generation_id} ({self.page_count} pages)"
        failure = self.failure
        if failure is None:
            return f"build {self.generation_id} failed"
        subject = f" [{failure.slug}]" if failure.slug else ""
        return (
            f"build {self.generation_id} failed at {failure.stage.value}: "
            f"{failure.error_kind}{subject}: {failure.message}"
        )
