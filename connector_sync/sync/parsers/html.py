"""Markup to plain text: HTML via BeautifulSoup, Markdown rendered first."""

from __future__ import annotations

import markdown
from bs4 import BeautifulSoup, Comment, Declaration, Doctype, NavigableString

_SKIPPED_STRINGS = (Comment, Declaration, Doctype)

BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "div", "dl", "dt", "dd",
        "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3",
        "h4", "h5", "h6", "header", "li", "main", "nav", "ol", "p", "pre",
        "section", "table", "td", "th", "tr", "ul",
    }
)

NOISE_TAGS = ["script", "style", "noscript", "template", "head"]


def _block_of(node: NavigableString):
    for parent in node.parents:
        if parent.name in BLOCK_TAGS:
            return parent
    return None


def extract_html_text(html: str) -> str:
    """Convert HTML into readable text, one line per block element.

    Inline runs inside the same block keep their original spacing, collapsed
    to single spaces.
    """

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NOISE_TAGS):
        tag.decompose()

    runs: list[list[str]] = []
    current_block = None
    for node in soup.find_all(string=True):
        if isinstance(node, _SKIPPED_STRINGS):
            continue
        block = _block_of(node)
        if runs and block is current_block:
            runs[-1].append(str(node))
        elif node.strip():
            runs.append([str(node)])
            current_block = block

    lines = (" ".join("".join(parts).split()) for parts in runs)
    return "\n".join(line for line in lines if line)


def extract_markdown_text(source: str) -> str:
    """Render Markdown to HTML and strip it down to plain text."""

    html = markdown.markdown(source, extensions=["tables", "fenced_code"])
    return extract_html_text(html)
