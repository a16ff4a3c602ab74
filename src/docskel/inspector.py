"""
Single-shot package queries.

This module provides the PackageInspector class that coordinates one
render, search or listing over one package. It delegates to:
- SearchIndex: path-aware item index
- PathResolver: turns path specs into items
- Renderer: produces skeleton text
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from docskel.document import JsonModelSource, LoadedPackage
from docskel.errors import NoMatch
from docskel.listing import ListNode, build_list_tree, list_entries
from docskel.models import OutputFormat
from docskel.render import RenderContext, Renderer, format_output, join_blocks, raw_source_block
from docskel.resolver import PathResolver, Resolution
from docskel.search import (
    RenderSelection,
    SearchIndex,
    SearchOptions,
    SearchResult,
    build_render_selection,
)
from docskel.source import language_for_path, read_source_text, resolve_source_path

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    """Search hits and their rendering."""
    results: list[SearchResult]
    text: str


class PackageInspector:
    """
    Renders, searches and lists one package.

    Usage:
        inspector = PackageInspector.from_entrypoint("path/to/package")
        print(inspector.render("net::Client", implementation=True))

        outcome = inspector.search(SearchOptions(query="status"))
    """

    def __init__(
        self,
        package: LoadedPackage,
        include_private: bool = False,
        plain: bool = False,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
    ):
        self.package = package
        self.include_private = include_private
        self.plain = plain
        self.output_format = output_format
        self._init_components()

    @classmethod
    def from_entrypoint(
        cls,
        entrypoint: Path | str,
        source: Optional[JsonModelSource] = None,
        **kwargs,
    ) -> "PackageInspector":
        source = source or JsonModelSource()
        return cls(source.load(entrypoint), **kwargs)

    def _init_components(self) -> None:
        """Initialize the index and resolver for the current privacy setting."""
        self.index = SearchIndex(self.package.model, include_private=self.include_private)
        self.resolver = PathResolver(self.index, package_root=self.package.root)

    @property
    def model(self):
        return self.package.model

    def new_context(self, implementation: bool = False, raw_source: bool = False) -> RenderContext:
        return RenderContext(
            plain=self.plain,
            include_private=self.include_private,
            implementation=implementation,
            raw_source=raw_source,
        )

    # --- Resolution ---

    def resolve(self, spec: str) -> Resolution:
        """Resolve one path spec; NoMatch and AmbiguousMatch propagate."""
        return self.resolver.resolve(spec)

    def selection_for(
        self,
        resolutions: Iterable[Resolution],
        implementation: bool = False,
        expand_containers: bool = True,
    ) -> RenderSelection:
        resolutions = list(resolutions)
        full_source = [r.item_id for r in resolutions] if implementation else []
        return build_render_selection(
            self.index,
            [r.entry for r in resolutions],
            expand_containers=expand_containers,
            full_source=full_source,
            package_root=self.package.root,
        )

    # --- Rendering ---

    def render_selection(
        self,
        selection: Optional[RenderSelection],
        context: RenderContext,
    ) -> str:
        """Render a selection (or everything) and any requested raw files."""
        skeleton = Renderer(self.package, context, selection).render()
        blocks = []
        if context.raw_source and selection is not None:
            blocks.extend(self.raw_source_blocks(selection.matches))
        blocks.append(format_output(skeleton, self.output_format, self.model.language))
        return join_blocks(blocks)

    def raw_source_blocks(self, item_ids: Iterable[str]) -> list[str]:
        """
        Whole backing files of the given items, once per file.

        Raises:
            SourceUnavailable: If a backing file cannot be read
        """
        blocks = []
        seen: set[str] = set()
        for item_id in item_ids:
            item = self.model.get(item_id)
            if item is None or item.span is None or item.span.file in seen:
                continue
            seen.add(item.span.file)
            path = resolve_source_path(item.span.file, self.package.root)
            text = read_source_text(path).rstrip("\n")
            blocks.append(raw_source_block(
                item.span.file, text, language_for_path(path), self.output_format
            ))
        return blocks

    def render(
        self,
        spec: Optional[str] = None,
        implementation: bool = False,
        raw_source: bool = False,
        context: Optional[RenderContext] = None,
    ) -> str:
        """
        Render the whole package, or the item a spec resolves to.

        Args:
            spec: Item path; None renders the package
            implementation: Include source bodies of the target
            raw_source: Include the target's whole backing file
            context: Build-wide context to share with other renders

        Raises:
            NoMatch: If the spec resolves to nothing
            AmbiguousMatch: If the spec cannot be disambiguated
        """
        context = context or self.new_context(implementation, raw_source)
        selection = None
        if spec:
            resolution = self.resolve(spec)
            logger.debug("Resolved %s to %s via %s", spec, resolution.canonical_path, resolution.strategy)
            selection = self.selection_for([resolution], implementation=implementation)
        return self.render_selection(selection, context)

    # --- Search ---

    def search(
        self,
        options: SearchOptions,
        implementation: bool = False,
        raw_source: bool = False,
    ) -> SearchOutcome:
        """
        Search the package and render the hits.

        Raises:
            NoMatch: If nothing matches
        """
        index = self.index
        if options.include_private != self.include_private:
            index = SearchIndex(self.model, include_private=options.include_private)

        results = index.search(options)
        if not results:
            raise NoMatch(
                options.query,
                suggestions=self.resolver.suggest([options.query]),
                hint="Try other domains: --domains name,path,doc,signature",
            )

        selection = build_render_selection(
            index,
            [r.entry for r in results],
            expand_containers=options.expand_containers,
            full_source=[r.item_id for r in results] if implementation else [],
            package_root=self.package.root,
            expand_ancestors=True,
        )
        context = self.new_context(implementation, raw_source)
        context.include_private = options.include_private
        return SearchOutcome(results=results, text=self.render_selection(selection, context))

    # --- Listing ---

    def list(self, options: Optional[SearchOptions] = None) -> list[ListNode]:
        """Item tree of the package, optionally restricted to search hits."""
        item_ids = None
        if options is not None:
            item_ids = {r.item_id for r in self.index.search(options)}
        return build_list_tree(list_entries(self.index, item_ids))
