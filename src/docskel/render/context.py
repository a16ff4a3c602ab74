"""
Traversal state shared by renders.

A RenderContext lives for one build. Its VisitedSet is shared by every root
and every package rendered in that build, so an item reached twice renders
once, at the first position it was reached.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Hashable, Optional


class VisitedSet:
    """
    Set of already-rendered items with an atomic insert-and-check.

    Keys are ``(namespace, item_id)`` pairs; the namespace keeps identifiers
    of different packages apart.
    """

    def __init__(self):
        self._seen: set[Hashable] = set()
        self._lock = threading.Lock()

    def claim(self, namespace: str, item_id: str) -> bool:
        """Mark an item rendered; False if it already was."""
        key = (namespace, item_id)
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def contains(self, namespace: str, item_id: str) -> bool:
        with self._lock:
            return (namespace, item_id) in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)


@dataclass
class RenderContext:
    """
    Single-build render state.

    Attributes:
        visited: Items already rendered in this build
        plain: Flat output (no module wrappers) instead of nested containers
        include_private: Render non-public items
        implementation: Render function bodies from source when no selection
            says otherwise
        raw_source: Include whole backing files of rendered targets
        current_file: Source file of the last emitted label
        warnings: Recoverable problems met while rendering
    """
    visited: VisitedSet = field(default_factory=VisitedSet)
    plain: bool = False
    include_private: bool = False
    implementation: bool = False
    raw_source: bool = False
    current_file: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def drain_warnings(self) -> list[str]:
        drained, self.warnings = self.warnings, []
        return drained
