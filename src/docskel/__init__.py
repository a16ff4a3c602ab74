"""
docskel - Navigable API skeletons from package documentation models.

Loads a versioned JSON documentation model of a package, resolves and
searches item paths, renders declaration-only skeletons (optionally with
implementation bodies), and assembles curated skeleton documents across
invocations with skelebuild.
"""

__version__ = "0.1.0"

# Models
from docskel.models import (
    ItemKind,
    Visibility,
    OutputFormat,
    Span,
    Item,
)

# Errors
from docskel.errors import (
    DocskelError,
    NoMatch,
    AmbiguousMatch,
    SourceUnavailable,
    SchemaMismatch,
    InvalidEntryReference,
    StateCorrupted,
    PackageNotFound,
)

# Core functionality
from docskel.document import DocumentModel, JsonModelSource, LoadedPackage, load_document
from docskel.search import SearchDomain, SearchIndex, SearchOptions, SearchResult
from docskel.resolver import PathResolver, Resolution, TargetSpec
from docskel.render import RenderContext, Renderer, VisitedSet
from docskel.inspector import PackageInspector, SearchOutcome

# Source files
from docskel.source import read_source_text, slice_lines, slice_span

# Skelebuild
from docskel.skelebuild import SkeleBuilder, SkeleState, StateStore

__all__ = [
    # Version
    "__version__",
    # Enums
    "ItemKind",
    "Visibility",
    "OutputFormat",
    # Models
    "Span",
    "Item",
    # Errors
    "DocskelError",
    "NoMatch",
    "AmbiguousMatch",
    "SourceUnavailable",
    "SchemaMismatch",
    "InvalidEntryReference",
    "StateCorrupted",
    "PackageNotFound",
    # Document
    "DocumentModel",
    "JsonModelSource",
    "LoadedPackage",
    "load_document",
    # Search
    "SearchDomain",
    "SearchIndex",
    "SearchOptions",
    "SearchResult",
    # Resolver
    "PathResolver",
    "Resolution",
    "TargetSpec",
    # Render
    "RenderContext",
    "Renderer",
    "VisitedSet",
    # Inspector
    "PackageInspector",
    "SearchOutcome",
    # Source
    "read_source_text",
    "slice_lines",
    "slice_span",
    # Skelebuild
    "SkeleBuilder",
    "SkeleState",
    "StateStore",
]
