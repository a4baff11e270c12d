"""Jinja2 template loader for page layouts.

Provides centralized template loading with custom filters for the renderer.
"""

from importlib.resources import files
from pathlib import Path
from typing import Any

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, StrictUndefined, Template, select_autoescape

from quire.core.utils import slugify
from quire.engine import filters


class TemplateLoader:
    """Loads and renders Jinja2 page layouts.

    Supports:
    - Template inheritance (``base.html.jinja``)
    - Custom filters (date formatting, slugify, truncate)
    - A site-level override directory searched before the packaged layouts
    """

    def __init__(self, template_dir: Path | None = None, override_dir: Path | None = None) -> None:
        """Initialize TemplateLoader.

        Args:
            template_dir: Path to template directory. Defaults to the packaged
                ``quire/engine/templates``.
            override_dir: Optional site directory whose templates shadow the
                defaults by name.

        """
        if template_dir is None:
            template_dir = Path(str(files("quire.engine").joinpath("templates")))

        self.template_dir = template_dir
        self.override_dir = override_dir

        search_path = [FileSystemLoader(self.template_dir)]
        if override_dir is not None:
            search_path.insert(0, FileSystemLoader(override_dir))

        self.env = Environment(
            loader=ChoiceLoader(search_path),
            autoescape=select_autoescape(enabled_extensions=("html", "xml", "jinja")),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

        self._register_filters()

    def _register_filters(self) -> None:
        """Register custom Jinja2 filters."""
        self.env.filters["format_date"] = filters.format_date
        self.env.filters["isoformat"] = filters.isoformat
        self.env.filters["truncate_words"] = filters.truncate_words
        self.env.filters["slugify"] = slugify

    def load_template(self, template_name: str) -> Template:
        """Load a template by name.

        Raises:
            TemplateNotFound: If template does not exist

        """
        return self.env.get_template(template_name)

    def render_template(self, template_name: str, **context: Any) -> str:
        """Load and render a template with context.

        Raises:
            TemplateNotFound: If template does not exist

        """
        template = self.load_template(template_name)
        return template.render(**context)
