"""
Finding skelebuild entries by key, index, path or content.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from docskel.constants import COMMAND_NAME, MAX_LISTED_KEYS, PATH_SEPARATOR
from docskel.errors import AmbiguousMatch, InvalidEntryReference
from docskel.resolver import TargetSpec
from docskel.skelebuild.entries import (
    InjectionEntry,
    RawSourceEntry,
    SkelebuildEntry,
    TargetEntry,
    canonical_key,
    split_line_range,
)

STATUS_KEYS_HINT = f"Run: {COMMAND_NAME} skelebuild status --keys"

# Match quality, lower is better
_EXACT = 0
_SAME_ITEM = 1
_SUFFIX = 2
_CONTAINS = 3


def describe_entry(index: int, entry: SkelebuildEntry) -> str:
    return f"#{index}: [{entry.kind}] {entry.key or entry.summary}"


def known_keys(entries: Sequence[SkelebuildEntry], limit: int = MAX_LISTED_KEYS) -> list[str]:
    """The first few entries, formatted for error messages."""
    return [describe_entry(i, e) for i, e in enumerate(entries)][:limit]


def invalid_reference(reference: str, entries: Sequence[SkelebuildEntry]) -> InvalidEntryReference:
    return InvalidEntryReference(reference, known_keys(entries), hint=STATUS_KEYS_HINT)


def _item_path(spec: str) -> str:
    return TargetSpec.parse(spec).item_path


def target_match_quality(stored: str, spec: str) -> Optional[int]:
    """
    How well a stored target path matches a user spec, or None.

    A spec matches the stored path exactly, names the same item path, is a
    ``::``-suffix of it, or is contained in it.
    """
    if stored == spec:
        return _EXACT
    stored_item = _item_path(stored)
    spec_item = _item_path(spec)
    if not spec_item:
        return None
    if stored_item == spec_item:
        return _SAME_ITEM
    if stored_item.endswith(PATH_SEPARATOR + spec_item):
        return _SUFFIX
    if spec_item in stored_item:
        return _CONTAINS
    return None


def _raw_match_quality(entry: RawSourceEntry, spec: str, repo_root: Path, cwd: Path) -> Optional[int]:
    if spec in (entry.key, entry.canonical_key, entry.file):
        return _EXACT
    path_part, start, end = split_line_range(spec)
    key = canonical_key(path_part, repo_root, cwd)
    if key != entry.canonical_key:
        return None
    if start is None:
        return _SAME_ITEM
    if (start, end) == (entry.start_line, entry.end_line):
        return _EXACT
    return None


def _injection_match_quality(entry: InjectionEntry, spec: str) -> Optional[int]:
    if entry.label is not None and entry.label == spec:
        return _EXACT
    if entry.content == spec:
        return _EXACT
    if entry.content.startswith(spec):
        return _SUFFIX
    return None


def _parse_index(spec: str) -> Optional[int]:
    if spec.startswith("#") and spec[1:].isdigit():
        return int(spec[1:])
    return None


def find_entry(
    entries: Sequence[SkelebuildEntry],
    spec: str,
    repo_root: Path,
    cwd: Path,
    kinds: Optional[tuple[type, ...]] = None,
) -> int:
    """
    Index of the one entry a spec refers to.

    Args:
        entries: Entries to search
        spec: ``#N``, a key, a target path or suffix, a file path, or text
        repo_root: Root for canonical file keys
        cwd: Directory relative file paths are taken from
        kinds: Restrict matching to these entry classes

    Raises:
        InvalidEntryReference: If nothing matches
        AmbiguousMatch: If several entries match equally well
    """
    spec = spec.strip()
    index = _parse_index(spec)
    if index is not None:
        if index < len(entries) and (kinds is None or isinstance(entries[index], kinds)):
            return index
        raise invalid_reference(spec, entries)

    scored: list[tuple[int, int]] = []
    for i, entry in enumerate(entries):
        if kinds is not None and not isinstance(entry, kinds):
            continue
        if isinstance(entry, TargetEntry):
            quality = target_match_quality(entry.path, spec)
        elif isinstance(entry, RawSourceEntry):
            quality = _raw_match_quality(entry, spec, repo_root, cwd)
        else:
            quality = _injection_match_quality(entry, spec)
        if quality is not None:
            scored.append((quality, i))

    if not scored:
        raise invalid_reference(spec, entries)

    best = min(q for q, _ in scored)
    winners = [i for q, i in scored if q == best]
    if len(winners) > 1:
        raise AmbiguousMatch(
            spec,
            [describe_entry(i, entries[i]) for i in winners],
            hint="Refer to the entry by index, e.g. " + f"#{winners[0]}",
        )
    return winners[0]


def find_target(entries: Sequence[SkelebuildEntry], spec: str, repo_root: Path, cwd: Path) -> int:
    """Index of the target entry a spec refers to."""
    return find_entry(entries, spec, repo_root, cwd, kinds=(TargetEntry,))
