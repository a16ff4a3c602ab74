"""
Markdown output.

Skeleton text is turned into Markdown by splitting it at top-level source
labels (which become headings) and at top-level doc comments (which become
prose); everything else goes into fenced code blocks.
"""
from __future__ import annotations

from docskel.constants import (
    DOC_COMMENT_PREFIX,
    INNER_DOC_COMMENT_PREFIX,
    MARKDOWN_RAW_SOURCE_HEADING,
    MARKDOWN_SOURCE_HEADING,
    SOURCE_LABEL_PREFIX,
)
from docskel.models import OutputFormat


def fenced(code: str, language: str) -> str:
    """Wrap code in a fence long enough not to clash with backticks inside it."""
    fence = "```"
    while fence in code:
        fence += "`"
    return f"{fence}{language}\n{code}\n{fence}"


def _strip_doc_prefix(line: str) -> str:
    for prefix in (DOC_COMMENT_PREFIX, INNER_DOC_COMMENT_PREFIX):
        if line.startswith(prefix):
            text = line[len(prefix):]
            return text[1:] if text.startswith(" ") else text
    return line


def skeleton_to_markdown(skeleton: str, language: str) -> str:
    """Convert labelled skeleton text into a Markdown document."""
    blocks: list[str] = []
    code: list[str] = []
    prose: list[str] = []

    def flush_code() -> None:
        text = "\n".join(code).strip("\n")
        if text.strip():
            blocks.append(fenced(text, language))
        code.clear()

    def flush_prose() -> None:
        text = "\n".join(prose).strip()
        if text:
            blocks.append(text)
        prose.clear()

    for line in skeleton.splitlines():
        stripped = line.strip()
        # Labels nested in a container stay comments inside its fence
        if line.startswith(SOURCE_LABEL_PREFIX):
            flush_code()
            flush_prose()
            path = line[len(SOURCE_LABEL_PREFIX):].strip()
            blocks.append(MARKDOWN_SOURCE_HEADING.format(path=path))
        elif line.startswith((DOC_COMMENT_PREFIX, INNER_DOC_COMMENT_PREFIX)):
            flush_code()
            prose.append(_strip_doc_prefix(line))
        else:
            if stripped or code:
                flush_prose()
                code.append(line)

    flush_code()
    flush_prose()
    return "\n\n".join(blocks)


def format_output(skeleton: str, fmt: OutputFormat, language: str) -> str:
    """Render skeleton text in the requested output format."""
    if fmt is OutputFormat.MARKDOWN:
        return skeleton_to_markdown(skeleton, language)
    return skeleton


def raw_source_block(summary: str, text: str, language: str, fmt: OutputFormat) -> str:
    """A verbatim file excerpt with a heading (Markdown) or a source label (skeleton)."""
    if fmt is OutputFormat.MARKDOWN:
        heading = MARKDOWN_RAW_SOURCE_HEADING.format(summary=summary)
        return f"{heading}\n\n{fenced(text, language)}"
    return f"{SOURCE_LABEL_PREFIX}{summary}\n{text}"
