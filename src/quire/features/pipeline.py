"""Build orchestration: parse, assemble and render one generation."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from quire.core.assembler import assemble
from quire.core.config import QuireConfig
from quire.core.exceptions import BuildError
from quire.core.parser import discover_sources, parse_sources
from quire.core.ports import MarkdownRenderer
from quire.core.types import BuildFailure, BuildOutput, BuildStage
from quire.engine.renderer import Renderer
from quire.engine.template_loader import TemplateLoader

logger = logging.getLogger(__name__)


def make_renderer(
    config: QuireConfig,
    *,
    assets: Iterable[str] = (),
    markdown: MarkdownRenderer | None = None,
) -> Renderer:
    """Build a renderer from configuration, honouring a site template override directory."""
    override_dir = config.paths.abs_templates_dir
    if override_dir is not None and not override_dir.is_dir():
        logger.warning("Template override directory %s does not exist; using packaged layouts", override_dir)
        override_dir = None
    return Renderer(
        config.site,
        loader=TemplateLoader(override_dir=override_dir),
        markdown=markdown,
        max_workers=config.build.max_workers,
        assets=assets,
    )


def build(config: QuireConfig, generation_id: int, *, renderer: Renderer | None = None) -> BuildOutput:
    """Run the parse, assemble and render stages for one generation.

    Content errors never escape: the returned output is ``FAILED`` and carries
    the failing stage and error. Later stages never run after a failure.
    """
    output = BuildOutput(generation_id=generation_id)
    renderer = renderer or make_renderer(config)
    stage = BuildStage.PARSE
    try:
        sources = discover_sources(config)
        items = parse_sources(sources, max_workers=config.build.max_workers)
        if not config.build.include_drafts:
            drafts = [item for item in items if item.is_draft]
            if drafts:
                logger.info("Skipping %d draft(s)", len(drafts))
            items = [item for item in items if not item.is_draft]

        stage = BuildStage.ASSEMBLE
        collections = assemble(items)

        stage = BuildStage.RENDER
        result = renderer.render(collections)
    except BuildError as exc:
        logger.error("Generation %d failed at %s: %s", generation_id, stage.value, exc)
        output.fail(BuildFailure.from_error(stage, exc))
        return output

    output.succeed(result.pages)
    logger.info("Generation %d built: %d page(s)", generation_id, len(output.pages))
    return output
