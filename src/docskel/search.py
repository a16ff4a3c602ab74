"""
Search index over a document model.

The index walks the model once, the same way the renderer does, and records
every item under every public path it can be reached by (its own path plus
re-export aliases). Searches match a ``|``-alternation pattern against the
selected text domains; matches feed a RenderSelection for the renderer.
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional

from docskel.document import DocumentModel
from docskel.errors import DocskelError
from docskel.models import Item, ItemKind, Span
from docskel.source import span_is_local

logger = logging.getLogger(__name__)

# Regex metacharacters escaped in queries; '|' is kept as alternation
_REGEX_META = frozenset("\\.+*?()[]{}^$#&-~")


class SearchDomain(enum.Flag):
    """Text domains a query can be matched against."""
    NAMES = enum.auto()
    PATHS = enum.auto()
    DOCS = enum.auto()
    SIGNATURES = enum.auto()

    @classmethod
    def default(cls) -> "SearchDomain":
        return cls.NAMES | cls.DOCS | cls.SIGNATURES

    @classmethod
    def all(cls) -> "SearchDomain":
        return cls.NAMES | cls.PATHS | cls.DOCS | cls.SIGNATURES

    @classmethod
    def parse(cls, selector: str) -> "SearchDomain":
        """
        Parse a comma-separated domain selector such as ``name,doc``.

        Raises:
            ValueError: If a domain name is unknown or the selector is empty
        """
        domains = cls(0)
        for raw in selector.split(","):
            token = raw.strip().lower()
            if not token:
                continue
            if token == "all":
                return cls.all()
            try:
                domains |= _DOMAIN_ALIASES[token]
            except KeyError:
                raise ValueError(
                    f"Unknown search domain '{raw.strip()}' "
                    f"(expected name, path, doc, signature or all)"
                ) from None
        if not domains:
            raise ValueError("Empty search domain selector")
        return domains


_DOMAIN_ALIASES: dict[str, SearchDomain] = {
    "name": SearchDomain.NAMES,
    "names": SearchDomain.NAMES,
    "path": SearchDomain.PATHS,
    "paths": SearchDomain.PATHS,
    "doc": SearchDomain.DOCS,
    "docs": SearchDomain.DOCS,
    "signature": SearchDomain.SIGNATURES,
    "signatures": SearchDomain.SIGNATURES,
}


def escape_regex_preserving_pipes(text: str) -> str:
    """Escape regex metacharacters except ``|``."""
    return "".join(f"\\{c}" if c in _REGEX_META else c for c in text)


def strip_symbols_preserving_pipes(text: str) -> str:
    """Keep only alphanumerics, whitespace, ``_`` and ``|``."""
    return "".join(c for c in text if c.isalnum() or c.isspace() or c in "_|")


def compile_alternation(query: str, case_sensitive: bool = False) -> Optional[re.Pattern]:
    """
    Compile ``a|b|c`` into a pattern matching any alternative literally.

    Empty alternatives are dropped; returns None if none remain.
    """
    alternatives = [a.strip() for a in query.split("|")]
    alternatives = [escape_regex_preserving_pipes(a) for a in alternatives if a]
    if not alternatives:
        return None
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile("|".join(alternatives), flags)


@dataclass(frozen=True)
class IndexEntry:
    """One item reachable under one path."""
    item_id: str
    kind: ItemKind
    path: tuple[str, ...]
    docs: str
    signature: str
    span: Optional[Span]
    ancestors: tuple[str, ...]
    canonical: bool = True

    @property
    def name(self) -> str:
        return self.path[-1] if self.path else ""

    @property
    def path_string(self) -> str:
        return "::".join(self.path)


@dataclass(frozen=True)
class SearchOptions:
    """Search parameters."""
    query: str
    domains: SearchDomain = field(default_factory=SearchDomain.default)
    case_sensitive: bool = False
    include_private: bool = False
    expand_containers: bool = True


@dataclass(frozen=True)
class SearchResult:
    """A search hit with the domains that matched."""
    entry: IndexEntry
    matched: SearchDomain

    @property
    def item_id(self) -> str:
        return self.entry.item_id

    @property
    def location(self) -> str:
        return self.entry.span.to_compact_string() if self.entry.span else ""

    def to_dict(self) -> dict:
        return {
            "id": self.entry.item_id,
            "kind": self.entry.kind.value,
            "path": self.entry.path_string,
            "location": self.location,
            "matched": [d.name.lower() for d in SearchDomain if d in self.matched],
        }


@dataclass
class RenderSelection:
    """
    Which items a render should emit.

    - matches: items that were asked for
    - context: items that may be rendered at all (matches plus ancestors)
    - expanded: containers whose every child renders
    - full_source: items rendered from their source span
    """
    matches: set[str] = field(default_factory=set)
    context: set[str] = field(default_factory=set)
    expanded: set[str] = field(default_factory=set)
    full_source: set[str] = field(default_factory=set)

    def merge(self, other: "RenderSelection") -> None:
        self.matches |= other.matches
        self.context |= other.context
        self.expanded |= other.expanded
        self.full_source |= other.full_source


class SearchIndex:
    """Path-aware index of the items visible at one privacy setting."""

    def __init__(self, model: DocumentModel, include_private: bool = False):
        self.model = model
        self.include_private = include_private
        self._entries: list[IndexEntry] = []
        self._followed: set[str] = set()
        self._walk(model.root, model.root.path, (), forced=True)
        logger.debug(
            "Indexed %d paths for %d items of %s",
            len(self._entries), len(model), model.package_name,
        )

    # --- Construction ---

    def _visible(self, item: Item, forced: bool) -> bool:
        if forced or self.include_private or item.kind is ItemKind.IMPLEMENTATION:
            return True
        return item.is_public

    def _add(self, item: Item, path: tuple[str, ...], ancestors: tuple[str, ...]) -> None:
        self._entries.append(IndexEntry(
            item_id=item.id,
            kind=item.kind,
            path=path,
            docs=item.docs,
            signature=item.signature,
            span=item.span,
            ancestors=ancestors,
            canonical=path == item.path,
        ))

    def _walk(
        self,
        item: Item,
        path: tuple[str, ...],
        ancestors: tuple[str, ...],
        forced: bool = False,
    ) -> None:
        if item.id in ancestors or not self._visible(item, forced):
            return

        if item.kind is ItemKind.REEXPORT:
            self._walk_reexport(item, path, ancestors)
            return

        # Inherent implementation blocks share their type's path
        if item.kind is not ItemKind.IMPLEMENTATION or item.interface is not None:
            self._add(item, path, ancestors)

        inner = ancestors + (item.id,)
        model = self.model
        if item.kind.is_module_like:
            for child in model.children(item.id):
                if child.kind is ItemKind.IMPLEMENTATION and child.for_type in model:
                    continue
                self._walk(child, self._child_path(path, child), inner)
        elif item.kind.is_type:
            for impl in model.implementations(item.id):
                self._walk(impl, self._child_path(path, impl), inner)
        elif item.kind is ItemKind.IMPLEMENTATION:
            for member in model.children(item.id):
                self._walk(member, path + (member.name,), inner, forced=item.is_interface_impl)
        elif item.kind is ItemKind.INTERFACE:
            for member in model.children(item.id):
                self._walk(member, path + (member.name,), inner, forced=True)

    def _child_path(self, parent_path: tuple[str, ...], child: Item) -> tuple[str, ...]:
        if child.kind is ItemKind.IMPLEMENTATION:
            if child.interface is None:
                return parent_path
            return parent_path + (child.path[-1],)
        return parent_path + (child.name,)

    def _walk_reexport(self, item: Item, path: tuple[str, ...], ancestors: tuple[str, ...]) -> None:
        target = self.model.reexport_target(item.id)
        if target is None:
            self._add(item, path, ancestors)
            return
        if item.id in self._followed:
            return
        self._followed.add(item.id)

        inner = ancestors + (item.id,)
        if item.glob:
            base = path[:-1]
            for child in self.model.children(target.id):
                if child.kind is ItemKind.IMPLEMENTATION:
                    continue
                self._walk(child, base + (child.name,), inner, forced=child.is_public)
        else:
            self._walk(target, path, inner, forced=True)

    # --- Queries ---

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries_for(self, item_id: str) -> list[IndexEntry]:
        return [e for e in self._entries if e.item_id == item_id]

    def primary_entry(self, item_id: str) -> Optional[IndexEntry]:
        """The canonical entry of an item, or its first alias."""
        entries = self.entries_for(item_id)
        for entry in entries:
            if entry.canonical:
                return entry
        return entries[0] if entries else None

    def search(self, options: SearchOptions) -> list[SearchResult]:
        """
        Match the query against every indexed entry.

        Results are deduplicated per item, in traversal order.

        Raises:
            DocskelError: If the query has no non-empty alternative
        """
        pattern = compile_alternation(options.query, options.case_sensitive)
        if pattern is None:
            raise DocskelError(f"Search query '{options.query}' is empty")
        signature_pattern = compile_alternation(
            strip_symbols_preserving_pipes(options.query), options.case_sensitive
        )

        results: list[SearchResult] = []
        seen: set[str] = set()
        for entry in self._entries:
            if entry.item_id in seen:
                continue
            matched = self._match(entry, options.domains, pattern, signature_pattern)
            if matched:
                seen.add(entry.item_id)
                results.append(SearchResult(entry=entry, matched=matched))

        logger.debug("Query %r matched %d items", options.query, len(results))
        return results

    @staticmethod
    def _match(
        entry: IndexEntry,
        domains: SearchDomain,
        pattern: re.Pattern,
        signature_pattern: Optional[re.Pattern],
    ) -> SearchDomain:
        matched = SearchDomain(0)
        if SearchDomain.NAMES in domains and pattern.search(entry.name):
            matched |= SearchDomain.NAMES
        if SearchDomain.PATHS in domains and pattern.search(entry.path_string):
            matched |= SearchDomain.PATHS
        if SearchDomain.DOCS in domains and entry.docs and pattern.search(entry.docs):
            matched |= SearchDomain.DOCS
        if (
            SearchDomain.SIGNATURES in domains
            and signature_pattern is not None
            and entry.signature
            and signature_pattern.search(strip_symbols_preserving_pipes(entry.signature))
        ):
            matched |= SearchDomain.SIGNATURES
        return matched


def build_render_selection(
    index: SearchIndex,
    hits: Iterable[IndexEntry],
    expand_containers: bool = True,
    full_source: Iterable[str] = (),
    package_root: Optional[Path] = None,
    expand_ancestors: bool = False,
) -> RenderSelection:
    """
    Turn matched entries into a RenderSelection.

    Ancestors of every hit join the context. With ``expand_containers``,
    matched containers expand and their whole indexed subtree joins the
    context. With ``expand_ancestors`` as well, so do the containers
    enclosing each hit, except the package root. Types whose source is
    requested pull in their implementation blocks (only the ones defined
    inside ``package_root`` when given).
    """
    selection = RenderSelection()
    model = index.model

    for entry in hits:
        selection.matches.add(entry.item_id)
        selection.context.add(entry.item_id)
        selection.context.update(entry.ancestors)
        if expand_containers and entry.kind.is_container:
            selection.expanded.add(entry.item_id)
        if expand_containers and expand_ancestors:
            selection.expanded.update(a for a in entry.ancestors if a != model.root_id)

    if selection.expanded:
        for entry in index:
            if any(a in selection.expanded for a in entry.ancestors):
                selection.context.add(entry.item_id)
                selection.context.update(entry.ancestors)
                if entry.kind.is_container:
                    selection.expanded.add(entry.item_id)

    for item_id in full_source:
        selection.full_source.add(item_id)
        item = model.get(item_id)
        if item is None or not item.kind.is_type:
            continue
        for impl in model.implementations(item_id):
            if package_root is not None and impl.span and not span_is_local(impl.span, package_root):
                continue
            selection.full_source.add(impl.id)
            selection.context.add(impl.id)
            selection.expanded.add(impl.id)
            for member in model.children(impl.id):
                selection.context.add(member.id)

    return selection
