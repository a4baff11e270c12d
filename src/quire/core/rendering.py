"""Markdown rendering capability."""

from markdown_it import MarkdownIt


class CommonMarkRenderer:
    """Default ``MarkdownRenderer`` backed by markdown-it-py.

    Tables and strikethrough are enabled on top of the CommonMark preset.
    """

    def __init__(self, *, allow_html: bool = True) -> None:
        self._md = MarkdownIt("commonmark", {"html": allow_html}).enable(["table", "strikethrough"])

    def __call__(self, text: str) -> str:
        return self._md.render(text).strip()
