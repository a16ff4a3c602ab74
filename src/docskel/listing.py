"""
Hierarchical item listing.

Lists the items of a package as an indented tree of paths. Members of
types and interfaces (methods, associated constants) are left out to keep
the listing an overview.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from docskel.models import ItemKind
from docskel.search import IndexEntry, SearchIndex


@dataclass
class ListNode:
    """One listed item with its nested children."""
    entry: IndexEntry
    children: list["ListNode"] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.entry.kind.label

    def to_dict(self) -> dict:
        return {
            "kind": self.entry.kind.value,
            "path": self.entry.path_string,
            "location": self.entry.span.to_compact_string() if self.entry.span else None,
            "children": [c.to_dict() for c in self.children],
        }


def _is_member(entry: IndexEntry, index: SearchIndex) -> bool:
    if entry.kind in (ItemKind.ASSOCIATED_FUNCTION, ItemKind.IMPLEMENTATION):
        return True
    if not entry.ancestors:
        return False
    parent = index.model.get(entry.ancestors[-1])
    return parent is not None and parent.kind in (ItemKind.IMPLEMENTATION, ItemKind.INTERFACE)


def list_entries(index: SearchIndex, item_ids: Optional[set[str]] = None) -> list[IndexEntry]:
    """
    Entries worth listing, one per item, in traversal order.

    Args:
        index: Index of the package
        item_ids: Restrict the listing to these items (e.g. search hits)
    """
    seen: set[str] = set()
    entries = []
    for entry in index:
        if entry.item_id in seen or _is_member(entry, index):
            continue
        if item_ids is not None and entry.item_id not in item_ids:
            continue
        seen.add(entry.item_id)
        entries.append(entry)
    return entries


def build_list_tree(entries: Iterable[IndexEntry]) -> list[ListNode]:
    """Nest entries under the closest listed entry whose path is a prefix of theirs."""
    roots: list[ListNode] = []
    by_path: dict[tuple[str, ...], ListNode] = {}
    for entry in entries:
        node = ListNode(entry)
        parent = None
        prefix = entry.path[:-1]
        while prefix:
            parent = by_path.get(prefix)
            if parent is not None:
                break
            prefix = prefix[:-1]
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
        by_path.setdefault(entry.path, node)
    return roots


def format_list_tree(nodes: list[ListNode], depth: int = 0) -> list[str]:
    """Plain-text lines for a list tree, two spaces per level."""
    lines = []
    for node in nodes:
        location = f"  ({node.entry.span.to_compact_string()})" if node.entry.span else ""
        lines.append(f"{'  ' * depth}{node.label:<8} {node.entry.path_string}{location}")
        lines.extend(format_list_tree(node.children, depth + 1))
    return lines
