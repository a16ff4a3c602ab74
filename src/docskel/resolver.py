"""
Path resolution for user-supplied item paths.

Resolution runs an ordered chain of strategies; the first one producing
candidates wins:
- Exact: the path spec is an item's full path
- Package prefix: the leading segment is replaced by (or prefixed with) the
  model's root name, for packages whose root name differs from their
  on-disk name
- Suffix: the path spec is a segment-aligned suffix of an item's path; members
  of interface implementations also match without the interface segment

Candidates are ranked locally-defined first, then by kind and path length.
Inherent and interface members sharing a name on one type are never
guessed between.
"""
from __future__ import annotations

import difflib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

from docskel.constants import (
    COMMAND_NAME,
    FUZZY_MATCH_CUTOFF,
    KIND_RANK_MODULE,
    KIND_RANK_OTHER,
    KIND_RANK_PRIMARY,
    MAX_SUGGESTIONS,
    PATH_SEPARATOR,
)
from docskel.errors import AmbiguousMatch, NoMatch
from docskel.models import ItemKind
from docskel.search import IndexEntry, SearchIndex
from docskel.source import span_is_local

logger = logging.getLogger(__name__)

_QUALIFIED_FORM = re.compile(r"^<\s*(?P<type>[^<>]+?)\s+as\s+(?P<iface>[^<>]+?)\s*>(?:::(?P<rest>.+))?$")

# Leading segments that always mean "this package"
_SELF_SEGMENTS = frozenset({"crate", "self"})


def _looks_like_path(segment: str) -> bool:
    return (
        "/" in segment
        or "\\" in segment
        or segment in (".", "..")
        or segment.startswith("~")
        or segment.endswith(".json")
    )


def normalize_qualified_form(path: str) -> str:
    """
    Rewrite ``<Type as Interface>::member`` to ``Type::Interface::member``.

    Only the last segment of the interface path is kept, matching how
    interface members are laid out in item paths.
    """
    match = _QUALIFIED_FORM.match(path.strip())
    if not match:
        return path.strip()
    interface = match.group("iface").split(PATH_SEPARATOR)[-1]
    parts = [match.group("type"), interface]
    if match.group("rest"):
        parts.append(match.group("rest"))
    return PATH_SEPARATOR.join(parts)


@dataclass(frozen=True)
class TargetSpec:
    """A path spec split into an optional package entry point and an item path."""
    entrypoint: Optional[str]
    item_path: str

    def __str__(self) -> str:
        if self.entrypoint is None:
            return self.item_path
        if not self.item_path:
            return self.entrypoint
        return f"{self.entrypoint}{PATH_SEPARATOR}{self.item_path}"

    @property
    def segments(self) -> list[str]:
        path = normalize_qualified_form(self.item_path)
        return [s for s in path.split(PATH_SEPARATOR) if s]

    @classmethod
    def parse(cls, spec: str) -> "TargetSpec":
        """
        Parse ``[<package path>::]segment(::segment)*``.

        The package prefix is recognised only when the first segment looks
        like a filesystem path.
        """
        spec = spec.strip()
        if spec.startswith("<"):
            return cls(entrypoint=None, item_path=spec)
        head, sep, rest = spec.partition(PATH_SEPARATOR)
        if _looks_like_path(head):
            return cls(entrypoint=head, item_path=rest if sep else "")
        return cls(entrypoint=None, item_path=spec)


@dataclass(frozen=True)
class Resolution:
    """The outcome of resolving one spec."""
    spec: str
    entry: IndexEntry
    strategy: str

    @property
    def item_id(self) -> str:
        return self.entry.item_id

    @property
    def canonical_path(self) -> str:
        return self.entry.path_string


def kind_rank(kind: ItemKind) -> int:
    if kind.is_module_like:
        return KIND_RANK_MODULE
    if kind in (
        ItemKind.RECORD,
        ItemKind.SUM,
        ItemKind.INTERFACE,
        ItemKind.FUNCTION,
        ItemKind.ASSOCIATED_FUNCTION,
        ItemKind.CONSTANT,
        ItemKind.TYPE_ALIAS,
        ItemKind.MACRO,
    ):
        return KIND_RANK_PRIMARY
    return KIND_RANK_OTHER


# --- Strategies ---


class ResolutionStrategy:
    """One heuristic of the resolution chain."""
    name = "base"

    def candidates(self, segments: Sequence[str], resolver: "PathResolver") -> list[IndexEntry]:
        raise NotImplementedError


class ExactPathStrategy(ResolutionStrategy):
    name = "exact"

    def candidates(self, segments, resolver):
        wanted = tuple(segments)
        return [e for e in resolver.index if e.path == wanted]


class PackagePrefixStrategy(ResolutionStrategy):
    """Substitute or prepend the model's actual root name."""
    name = "package-prefix"

    def candidates(self, segments, resolver):
        root_name = resolver.index.model.root.name
        if not segments:
            return []
        # A leading segment naming a top-level item is not a package name
        top_level = {e.path[1] for e in resolver.index if len(e.path) == 2}
        rewrites: list[tuple[str, ...]] = []
        if segments[0] != root_name:
            if len(segments) > 1 and segments[0] not in top_level:
                rewrites.append((root_name,) + tuple(segments[1:]))
            if segments[0] not in _SELF_SEGMENTS:
                rewrites.append((root_name,) + tuple(segments))
        for rewrite in rewrites:
            found = [e for e in resolver.index if e.path == rewrite]
            if found:
                logger.debug("Rewrote %s as %s", "::".join(segments), "::".join(rewrite))
                return found
        return []


class SuffixStrategy(ResolutionStrategy):
    name = "suffix"

    def candidates(self, segments, resolver):
        wanted = tuple(segments)
        n = len(wanted)
        found = []
        for entry in resolver.index:
            if entry.path[-n:] == wanted:
                found.append(entry)
                continue
            alias = resolver.interface_elided_path(entry)
            if alias is not None and alias[-n:] == wanted:
                found.append(entry)
        return found


DEFAULT_STRATEGIES: tuple[ResolutionStrategy, ...] = (
    ExactPathStrategy(),
    PackagePrefixStrategy(),
    SuffixStrategy(),
)


class PathResolver:
    """
    Resolves path specs against one package's search index.

    Args:
        index: Index built at the privacy level the caller renders with
        package_root: Package root used to prefer locally defined items
        strategies: Resolution chain, tried in order
    """

    def __init__(
        self,
        index: SearchIndex,
        package_root: Optional[Path] = None,
        strategies: Iterable[ResolutionStrategy] = DEFAULT_STRATEGIES,
    ):
        self.index = index
        self.package_root = package_root
        self.strategies = tuple(strategies)

    # --- Helpers ---

    def is_local(self, entry: IndexEntry) -> bool:
        if self.package_root is None:
            return True
        return span_is_local(entry.span, self.package_root)

    def _owning_impl(self, entry: IndexEntry):
        if not entry.ancestors:
            return None
        impl = self.index.model.get(entry.ancestors[-1])
        if impl is None or impl.kind is not ItemKind.IMPLEMENTATION:
            return None
        return impl

    def interface_elided_path(self, entry: IndexEntry) -> Optional[tuple[str, ...]]:
        """``Type::member`` form of an interface member's ``Type::Interface::member`` path."""
        impl = self._owning_impl(entry)
        if impl is None or impl.interface is None or len(entry.path) < 2:
            return None
        return entry.path[:-2] + entry.path[-1:]

    def disambiguated_spec(self, entry: IndexEntry) -> str:
        """A spec that resolves to exactly this entry's item."""
        impl = self._owning_impl(entry)
        if impl is not None and impl.interface is not None and len(entry.path) >= 3:
            type_path = PATH_SEPARATOR.join(entry.path[:-2])
            return f"<{type_path} as {entry.path[-2]}>::{entry.path[-1]}"
        return entry.path_string

    def _rank(self, entry: IndexEntry) -> tuple:
        return (kind_rank(entry.kind), len(entry.path), not entry.canonical)

    # --- Resolution ---

    def resolve(self, spec: str) -> Resolution:
        """
        Resolve a spec to one item.

        Raises:
            NoMatch: If no strategy produces a candidate (carries suggestions)
            AmbiguousMatch: If candidates cannot be told apart
        """
        target = TargetSpec.parse(spec)
        segments = target.segments
        if not segments:
            raise NoMatch(spec, hint=f"Try: {COMMAND_NAME} list")

        for strategy in self.strategies:
            found = strategy.candidates(segments, self)
            if found:
                logger.debug("%s: strategy %s found %d candidates", spec, strategy.name, len(found))
                return Resolution(spec=spec, entry=self._choose(spec, found), strategy=strategy.name)

        suggestions = self.suggest(segments)
        if suggestions:
            hint = f"Try: {COMMAND_NAME} render {suggestions[0]}"
        else:
            hint = f'Try: {COMMAND_NAME} search "{segments[-1]}" --domains name,path'
        raise NoMatch(
            spec,
            suggestions=suggestions,
            attempted=[s.name for s in self.strategies],
            hint=hint,
        )

    def _choose(self, spec: str, found: list[IndexEntry]) -> IndexEntry:
        # One entry per item, keeping its best-ranked path
        best: dict[str, IndexEntry] = {}
        for entry in found:
            current = best.get(entry.item_id)
            if current is None or self._rank(entry) < self._rank(current):
                best[entry.item_id] = entry
        candidates = list(best.values())
        if len(candidates) == 1:
            return candidates[0]

        local = [c for c in candidates if self.is_local(c)]
        pool = local or candidates

        self._check_member_collision(spec, pool)

        pool.sort(key=lambda e: (self._rank(e)[:2], e.path_string))
        first, second = pool[0], pool[1] if len(pool) > 1 else None
        if second is not None and self._rank(first)[:2] == self._rank(second)[:2]:
            tied = [e for e in pool if self._rank(e)[:2] == self._rank(first)[:2]]
            if not local:
                raise AmbiguousMatch(
                    spec,
                    [self.disambiguated_spec(e) for e in tied],
                    hint=f"Try: {COMMAND_NAME} render {self.disambiguated_spec(first)}",
                )
            logger.warning(
                "'%s' matches %d items equally; using %s",
                spec, len(tied), first.path_string,
            )
        return first

    def _check_member_collision(self, spec: str, pool: list[IndexEntry]) -> None:
        """Raise when a type has an inherent and an interface member of the same name."""
        groups: dict[tuple[str, str], list[IndexEntry]] = {}
        for entry in pool:
            impl = self._owning_impl(entry)
            if impl is None or impl.for_type is None:
                continue
            groups.setdefault((impl.for_type, entry.name), []).append(entry)

        for members in groups.values():
            kinds = {self._owning_impl(m).interface is None for m in members}
            if len(kinds) > 1:
                specs = [self.disambiguated_spec(m) for m in members]
                raise AmbiguousMatch(
                    spec,
                    specs,
                    hint=f"Disambiguate with one of: {', '.join(specs)}",
                )

    def suggest(self, segments: Sequence[str], limit: int = MAX_SUGGESTIONS) -> list[str]:
        """Closest known paths for a failed spec."""
        if not segments:
            return []
        last = segments[-1].lower()
        ranked = []
        for entry in self.index:
            name = entry.name.lower()
            exact = name == last
            suffix = entry.path_string.lower().endswith(last)
            if exact or suffix or last in name:
                ranked.append((
                    not self.is_local(entry),
                    not exact,
                    not suffix,
                    len(entry.path),
                    entry.path_string,
                ))
        ranked.sort()

        suggestions: list[str] = []
        for *_, path_string in ranked:
            if path_string not in suggestions:
                suggestions.append(path_string)
            if len(suggestions) >= limit:
                return suggestions

        by_name: dict[str, str] = {}
        for entry in self.index:
            by_name.setdefault(entry.name, entry.path_string)
        for name in difflib.get_close_matches(
            segments[-1], list(by_name), n=limit, cutoff=FUZZY_MATCH_CUTOFF
        ):
            if by_name[name] not in suggestions:
                suggestions.append(by_name[name])
            if len(suggestions) >= limit:
                break
        return suggestions
