"""Content conversion helpers between stored HTML areas and Markdown."""

from __future__ import annotations

from typing import Any, Mapping

from markdownify import markdownify as to_markdown
from markdown_it import MarkdownIt


class ContentConverter:
    """Translate between the HTML kept in page areas and Markdown."""

    def __init__(self) -> None:
        self._markdown = MarkdownIt("commonmark", {"html": True})

    def html_to_markdown(self, html: str) -> str:
        return to_markdown(html, heading_style="ATX").strip() + "\n"

    def markdown_to_html(self, markdown: str) -> str:
        return self._markdown.render(markdown)


_converter = ContentConverter()


def markdown_sanitizer(content: Mapping[str, Any]) -> dict[str, Any]:
    """Sanitizer for page types edited as Markdown.

    Expects a ``body`` string and keeps it alongside its rendered HTML.
    """

    body = content.get("body", "")
    if not isinstance(body, str):
        raise ValueError("body must be a string of Markdown")
    return {"body": body, "html": _converter.markdown_to_html(body)}
