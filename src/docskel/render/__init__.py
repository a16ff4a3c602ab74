"""
Render engine: turns a document model (or a selection of it) into text.
"""
from docskel.render.context import RenderContext, VisitedSet
from docskel.render.engine import Renderer, join_blocks
from docskel.render.markdown import (
    fenced,
    format_output,
    raw_source_block,
    skeleton_to_markdown,
)

__all__ = [
    "RenderContext",
    "VisitedSet",
    "Renderer",
    "join_blocks",
    "fenced",
    "format_output",
    "raw_source_block",
    "skeleton_to_markdown",
]
