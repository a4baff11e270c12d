from pathlib import Path
from typing import Protocol, runtime_checkable

from quire.core.types import BuildOutput


@runtime_checkable
class MarkdownRenderer(Protocol):
    """External capability turning markdown text into HTML text.

    Implementations must be pure: the renderer calls them from worker threads.
    """

    def __call__(self, text: str) -> str: ...


@runtime_checkable
class OutputSink(Protocol):
    """Persists a successful build and promotes it to the serving location."""

    def write(self, output: BuildOutput) -> Path:
        """Writes the generation to a staging location and returns it."""
        ...

    def promote(self, generation_dir: Path) -> Path:
        """Atomically makes a written generation the live one."""
        ...

    def discard(self, generation_dir: Path) -> None:
        """Removes a written generation that will not be published."""
        ...
