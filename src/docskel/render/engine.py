"""
Skeleton rendering of a document model.

The renderer walks the model from its roots and emits one block per item:
declarations for leaves, ``<signature> {`` ... ``}`` wrappers for
containers. What gets emitted is governed by:
- visibility, checked before anything else
- the RenderSelection, when present (context, expansion, full source)
- the shared VisitedSet, which emits an item's own text at most once

Module and implementation headers are structural: a later walk may repeat
them to wrap members that were never rendered, but an item on the current
traversal stack is never entered again.
"""
from __future__ import annotations

import logging
import re
import textwrap
from typing import Callable, Iterable, Optional

from docskel.constants import (
    BLOCK_CLOSE,
    BLOCK_OPEN,
    DECLARATION_TERMINATOR,
    DOC_COMMENT_PREFIX,
    ELISION_MARKER,
    EMPTY_BODY,
    INDENT,
    INNER_DOC_COMMENT_PREFIX,
    SOURCE_LABEL_PREFIX,
)
from docskel.document import LoadedPackage
from docskel.errors import SourceUnavailable
from docskel.models import Item, ItemKind
from docskel.render.context import RenderContext
from docskel.search import RenderSelection
from docskel.source import extract_item_source

logger = logging.getLogger(__name__)

_REPEATED_ELISION = re.compile(
    r"(?m)^([ \t]*)" + re.escape(ELISION_MARKER) + r"\n\n\1" + re.escape(ELISION_MARKER) + r"$"
)

# Namespace delimiter for visited-set keys - pipe never appears in paths we emit
_NS_DELIM = "|"


def doc_comment(docs: str, prefix: str = DOC_COMMENT_PREFIX) -> str:
    """Render documentation text as line comments."""
    if not docs.strip():
        return ""
    lines = []
    for line in docs.strip("\n").splitlines():
        lines.append(f"{prefix} {line}".rstrip())
    return "\n".join(lines)


def collapsed_declaration(signature: str) -> str:
    """First and last line of a multi-line declaration around an elision marker."""
    lines = signature.strip().splitlines()
    if len(lines) <= 1:
        return signature.strip()
    return "\n".join([lines[0], INDENT + ELISION_MARKER, lines[-1]])


def join_blocks(blocks: Iterable[str]) -> str:
    """Join non-empty blocks with blank lines, collapsing repeated elision markers."""
    out: list[str] = []
    for block in blocks:
        if not block:
            continue
        if block == ELISION_MARKER and out and out[-1] == ELISION_MARKER:
            continue
        out.append(block)
    text = "\n\n".join(out)
    while True:
        collapsed = _REPEATED_ELISION.sub(lambda m: m.group(1) + ELISION_MARKER, text)
        if collapsed == text:
            return text
        text = collapsed


def only_elisions(body: str) -> bool:
    """True for an empty body or one holding nothing but elision markers."""
    return all(block == ELISION_MARKER for block in body.split("\n\n") if block)


class Renderer:
    """
    Renders one package with a given context and optional selection.

    Args:
        package: The package to render
        context: Build-wide state, shared with other renderers of the build
        selection: Restricts and shapes the output; None renders everything
    """

    def __init__(
        self,
        package: LoadedPackage,
        context: RenderContext,
        selection: Optional[RenderSelection] = None,
    ):
        self.package = package
        self.model = package.model
        self.context = context
        self.selection = selection
        self.namespace = f"{package.root}{_NS_DELIM}{self.model.package_name}"
        self._stack: list[str] = []
        self._in_block = 0
        self._dispatch: dict[ItemKind, Callable[[Item, bool], str]] = {
            ItemKind.PACKAGE: self._render_module,
            ItemKind.MODULE: self._render_module,
            ItemKind.RECORD: self._render_type,
            ItemKind.SUM: self._render_type,
            ItemKind.INTERFACE: self._render_interface,
            ItemKind.FUNCTION: self._render_function,
            ItemKind.ASSOCIATED_FUNCTION: self._render_function,
            ItemKind.CONSTANT: self._render_declaration,
            ItemKind.TYPE_ALIAS: self._render_declaration,
            ItemKind.MACRO: self._render_declaration,
            ItemKind.IMPLEMENTATION: self._render_implementation,
            ItemKind.REEXPORT: self._render_reexport,
        }

    # --- Public API ---

    def render(self, roots: Optional[Iterable[str]] = None) -> str:
        """Render each root in order; defaults to the package root."""
        if roots is None:
            roots = [self.model.root_id]
        return join_blocks(self.render_item(root_id) for root_id in roots)

    def render_item(self, item_id: str, force_visible: bool = False, parent_expanded: bool = False) -> str:
        """
        Render one item and whatever it contains.

        Args:
            item_id: Item to render
            force_visible: Skip the visibility check (items reached through
                a re-export are visible wherever the re-export is)
            parent_expanded: The enclosing container renders all children
        """
        item = self.model.get(item_id)
        if item is None:
            return ""
        if not force_visible and not self._visible(item):
            return ""
        if item_id in self._stack:
            return ""
        if not self._selected(item_id, parent_expanded):
            return ""

        previous_file = self.context.current_file
        label = self._source_label(item)

        self._stack.append(item_id)
        try:
            output = self._dispatch[item.kind](item, parent_expanded)
        finally:
            self._stack.pop()

        if not output:
            self.context.current_file = previous_file
            return ""
        if label:
            return f"{label}\n{output}"
        return output

    def is_rendered(self, item_id: str) -> bool:
        return self.context.visited.contains(self.namespace, item_id)

    # --- Checks ---

    def _visible(self, item: Item) -> bool:
        if self.context.include_private or item.kind is ItemKind.IMPLEMENTATION:
            return True
        parent = self.model.get(item.parent)
        if parent is not None and parent.kind is ItemKind.INTERFACE:
            return True
        if parent is not None and parent.is_interface_impl:
            return True
        return item.is_public

    def _selected(self, item_id: str, parent_expanded: bool) -> bool:
        if self.selection is None or parent_expanded:
            return True
        return item_id in self.selection.context

    def _expanded(self, item_id: str, parent_expanded: bool) -> bool:
        if self.selection is None or parent_expanded:
            return True
        return item_id in self.selection.expanded

    def _shows_docs(self, item: Item, expanded: bool) -> bool:
        """Collapsed items render by name only."""
        if self.selection is None or expanded:
            return True
        return item.id in self.selection.matches

    def _wants_source(self, item: Item) -> bool:
        if item.span is None:
            return False
        if self.selection is None:
            return self.context.implementation and item.kind in (
                ItemKind.FUNCTION,
                ItemKind.ASSOCIATED_FUNCTION,
            )
        return item.id in self.selection.full_source

    def _claim(self, item_id: str) -> bool:
        return self.context.visited.claim(self.namespace, item_id)

    def _source_label(self, item: Item) -> str:
        if item.span is None or self._in_block:
            return ""
        if item.kind is ItemKind.PACKAGE:
            return ""
        # A resolvable re-export is labelled by whatever it renders
        if item.kind is ItemKind.REEXPORT and self._concrete_target(item) is not None:
            return ""
        if item.span.file == self.context.current_file:
            return ""
        self.context.current_file = item.span.file
        return f"{SOURCE_LABEL_PREFIX}{item.span.file}"

    # --- Shared pieces ---

    def _item_source(self, item: Item) -> Optional[str]:
        """Sliced source of an item, or None (with a warning) if unavailable."""
        try:
            return extract_item_source(item.span, self.package.root)
        except SourceUnavailable as e:
            message = f"{item.path_string}: {e.message}"
            logger.warning("Falling back to skeleton for %s", message)
            self.context.warn(message)
            return None

    def _claim_subtree(self, item: Item) -> None:
        for contained in self.model.subtree(item.id):
            self._claim(contained)

    def _signature(self, item: Item) -> str:
        return item.signature.strip() or f"{item.kind.label} {item.name}"

    def _with_docs(self, item: Item, text: str) -> str:
        docs = doc_comment(item.docs)
        return f"{docs}\n{text}" if docs else text

    def _wrap(self, header: str, body: str) -> str:
        if not body:
            return f"{header}{BLOCK_OPEN}{BLOCK_CLOSE}"
        return f"{header}{BLOCK_OPEN}\n{textwrap.indent(body, INDENT)}\n{BLOCK_CLOSE}"

    def _render_children(self, children: Iterable[Item], expanded: bool, force_visible: bool = False) -> str:
        """Render children, marking selection-skipped runs with the elision marker."""
        blocks: list[str] = []
        skipped = False
        for child in children:
            if not self._selected(child.id, expanded):
                if force_visible or self._visible(child):
                    skipped = True
                continue
            output = self.render_item(child.id, force_visible=force_visible, parent_expanded=expanded)
            if not output:
                continue
            if skipped:
                blocks.append(ELISION_MARKER)
                skipped = False
            blocks.append(output)
        if skipped:
            blocks.append(ELISION_MARKER)
        return join_blocks(blocks)

    def _module_children(self, item: Item) -> list[Item]:
        """Children rendered in module position; typed implementations render with their type."""
        return [
            child for child in self.model.children(item.id)
            if not (child.kind is ItemKind.IMPLEMENTATION and child.for_type in self.model)
        ]

    # --- Per-kind renderers ---

    def _render_module(self, item: Item, parent_expanded: bool) -> str:
        expanded = self._expanded(item.id, parent_expanded)
        body = self._render_children(self._module_children(item), expanded)
        first = self._claim(item.id)
        show_docs = first and self._shows_docs(item, expanded)

        if item.kind is ItemKind.PACKAGE or self.context.plain:
            if show_docs and item.kind is ItemKind.PACKAGE:
                docs = doc_comment(item.docs, INNER_DOC_COMMENT_PREFIX)
                return join_blocks([docs, body])
            return "" if only_elisions(body) else body

        if not first and only_elisions(body):
            return ""
        if show_docs:
            docs = doc_comment(item.docs, INNER_DOC_COMMENT_PREFIX)
            body = join_blocks([docs, body])
        return self._wrap(self._signature(item), body)

    def _render_type(self, item: Item, parent_expanded: bool) -> str:
        expanded = self._expanded(item.id, parent_expanded)
        declaration = ""
        if self._claim(item.id):
            declaration = self._type_declaration(item, expanded)

        impls = self._render_children(self.model.implementations(item.id), expanded)
        if not declaration and only_elisions(impls):
            return ""
        return join_blocks([declaration, impls])

    def _type_declaration(self, item: Item, expanded: bool) -> str:
        if self._wants_source(item):
            source = self._item_source(item)
            if source is not None:
                return source
        signature = self._signature(item)
        if not self._shows_docs(item, expanded):
            return collapsed_declaration(signature)
        return self._with_docs(item, signature)

    def _render_implementation(self, item: Item, parent_expanded: bool) -> str:
        expanded = self._expanded(item.id, parent_expanded)
        if self._wants_source(item) and not self.is_rendered(item.id):
            source = self._item_source(item)
            if source is not None:
                self._claim(item.id)
                self._claim_subtree(item)
                return source

        self._in_block += 1
        try:
            body = self._render_children(
                self.model.children(item.id),
                expanded,
                force_visible=item.is_interface_impl,
            )
        finally:
            self._in_block -= 1
        self._claim(item.id)
        if only_elisions(body):
            return ""
        return self._wrap(self._signature(item), body)

    def _render_interface(self, item: Item, parent_expanded: bool) -> str:
        expanded = self._expanded(item.id, parent_expanded)
        if self._wants_source(item) and not self.is_rendered(item.id):
            source = self._item_source(item)
            if source is not None:
                self._claim(item.id)
                self._claim_subtree(item)
                return source

        self._in_block += 1
        try:
            body = self._render_children(self.model.children(item.id), expanded, force_visible=True)
        finally:
            self._in_block -= 1
        first = self._claim(item.id)
        if not first and only_elisions(body):
            return ""
        header = self._signature(item)
        if first and self._shows_docs(item, expanded):
            header = self._with_docs(item, header)
        return self._wrap(header, body)

    def _render_function(self, item: Item, parent_expanded: bool) -> str:
        if not self._claim(item.id):
            return ""
        if self._wants_source(item):
            source = self._item_source(item)
            if source is not None:
                return source
        terminator = EMPTY_BODY if item.has_body else DECLARATION_TERMINATOR
        return self._with_docs(item, self._signature(item) + terminator)

    def _render_declaration(self, item: Item, parent_expanded: bool) -> str:
        if not self._claim(item.id):
            return ""
        if self._wants_source(item):
            source = self._item_source(item)
            if source is not None:
                return source
        return self._with_docs(item, self._signature(item))

    def _render_reexport(self, item: Item, parent_expanded: bool) -> str:
        if not self._claim(item.id):
            return ""
        target = self._concrete_target(item)
        if target is None or target.id in self._stack:
            return self._with_docs(item, self._signature(item))

        if item.glob:
            children = [
                child for child in self.model.children(target.id)
                if child.kind is not ItemKind.IMPLEMENTATION
            ]
            return self._render_children(children, parent_expanded)
        return self.render_item(target.id, force_visible=True, parent_expanded=parent_expanded)

    def _concrete_target(self, item: Item) -> Optional[Item]:
        """Follow a chain of re-exports to a real item; None on a dangling or cyclic chain."""
        seen = {item.id}
        target = self.model.reexport_target(item.id)
        while target is not None and target.kind is ItemKind.REEXPORT:
            if target.id in seen:
                return None
            seen.add(target.id)
            target = self.model.reexport_target(target.id)
        return target
