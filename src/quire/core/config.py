import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quire.core.exceptions import ConfigError

CONFIG_FILENAME = ".quire.toml"


def _deep_merge(destination: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge source into destination, with source values overwriting."""
    for key, value in source.items():
        if isinstance(value, Mapping) and key in destination and isinstance(destination[key], Mapping):
            destination[key] = _deep_merge(dict(destination.get(key, {})), value)
        else:
            destination[key] = value
    return destination


class SiteSettings(BaseModel):
    """Site-wide presentation settings."""

    title: str = Field(default="Notebook", description="Site title")
    description: str = Field(default="", description="Site tagline shown on the home page")
    author: str = Field(default="", description="Default author for the feed")
    base_url: str = Field(default="http://localhost:8000", description="Absolute URL of the published site")
    base_path: str = Field(default="/", description="URL prefix of every internal link")
    home_posts: int = Field(default=5, ge=0, description="Number of latest posts on the home page")

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str) -> str:
        value = "/" + value.strip("/")
        return value if value == "/" else value + "/"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class PathsSettings(BaseModel):
    """Path configuration.

    All paths are relative to the 'site_root' unless absolute.
    site_root defaults to current working directory.
    """

    site_root: Path = Field(
        default_factory=Path.cwd,
        description="Root directory of the site (defaults to current working directory)",
    )

    # Content
    posts_dir: Path = Field(default=Path("content/posts"), description="Posts directory")
    projects_dir: Path = Field(default=Path("content/projects"), description="Projects directory")
    static_dir: Path = Field(default=Path("static"), description="Static assets copied verbatim")
    templates_dir: Path | None = Field(default=None, description="Optional layout overrides")

    # Output
    state_dir: Path = Field(default=Path(".quire"), description="Generations and pointer records")
    serve_root: Path = Field(default=Path("public"), description="Symlink to the live generation")

    @property
    def abs_posts_dir(self) -> Path:
        return self._resolve(self.posts_dir)

    @property
    def abs_projects_dir(self) -> Path:
        return self._resolve(self.projects_dir)

    @property
    def abs_static_dir(self) -> Path:
        return self._resolve(self.static_dir)

    @property
    def abs_templates_dir(self) -> Path | None:
        if self.templates_dir is None:
            return None
        return self._resolve(self.templates_dir)

    @property
    def abs_state_dir(self) -> Path:
        return self._resolve(self.state_dir)

    @property
    def abs_serve_root(self) -> Path:
        return self._resolve(self.serve_root)

    def _resolve(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return self.site_root / path


class BuildSettings(BaseModel):
    """Build behaviour."""

    max_workers: int = Field(default=4, ge=1, description="Worker threads for parsing and rendering")
    include_drafts: bool = Field(default=False, description="Publish items marked draft")
    keep_generations: int = Field(default=5, ge=1, description="Generations retained on disk")


class TriggerSettings(BaseModel):
    """Change detection on the primary branch."""

    branch: str = Field(default="main", description="Primary branch")
    remote: str = Field(default="origin", description="Remote to fetch from")
    poll_interval: float = Field(default=30.0, gt=0, description="Seconds between polls")
    fetch: bool = Field(default=True, description="Fetch and fast-forward before comparing heads")


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Path | None = None


class QuireConfig(BaseSettings):
    """Root configuration for Quire.

    Supports environment variable overrides with the pattern:
    QUIRE_SECTION__KEY (e.g., QUIRE_BUILD__MAX_WORKERS)
    """

    site: SiteSettings = Field(default_factory=SiteSettings)
    paths: PathsSettings = Field(default_factory=PathsSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    trigger: TriggerSettings = Field(default_factory=TriggerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="QUIRE_",
        env_nested_delimiter="__",
    )

    @classmethod
    def load(cls, site_root: Path | None = None) -> "QuireConfig":
        """Loads configuration from .quire.toml and environment variables.

        Priority (highest to lowest):
        1. Environment variables (QUIRE_SECTION__KEY)
        2. Config file (.quire.toml)
        3. Defaults
        """
        root_path = (site_root if site_root is not None else Path.cwd()).resolve()
        config_file = root_path / CONFIG_FILENAME

        file_settings: dict[str, Any] = {}
        if config_file.is_file():
            try:
                with config_file.open("rb") as f:
                    file_settings = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(config_file, str(e)) from e

        try:
            env_settings = cls().model_dump(exclude_unset=True)
            merged_config = _deep_merge(file_settings, env_settings)
            merged_config.setdefault("paths", {})["site_root"] = root_path
            return cls.model_validate(merged_config)
        except ValidationError as e:
            raise ConfigError(config_file, str(e)) from e
