"""
Document model: one package's documentation snapshot.

Uses networkx as the single source of truth for relationships between items.
Edge types (identified by 'relation' attribute):
- 'contains': parent contains child
- 'reexports': re-export item aliases its target
- 'implements': implementation block belongs to a type

The model is immutable once built. Acquisition of the JSON document is done
by a model source (JsonModelSource here); the rest of the package only ever
sees DocumentModel plus the package root directory.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator, Optional

import networkx as nx

from docskel.constants import (
    DEFAULT_MODEL_LANGUAGE,
    DOC_MODEL_FILENAMES,
    DOC_MODEL_FORMAT_VERSION,
)
from docskel.errors import PackageNotFound, SchemaMismatch
from docskel.models import Item, ItemKind

logger = logging.getLogger(__name__)


class DocumentModel:
    """
    Immutable item store for one package.

    Item paths are derived here: an item's path is its parent's path plus its
    name. Members of an implementation block hang off the implemented type,
    and members of an interface implementation additionally carry the
    interface name (``pkg::Type::Interface::member``).
    """

    def __init__(
        self,
        items: dict[str, Item],
        root_id: str,
        package_name: Optional[str] = None,
        language: str = DEFAULT_MODEL_LANGUAGE,
    ):
        if root_id not in items:
            raise SchemaMismatch(f"Root item '{root_id}' is not in the model")

        self.root_id = root_id
        self.language = language
        self._order = {item_id: i for i, item_id in enumerate(items)}
        self._validate(items)

        paths: dict[str, tuple[str, ...]] = {}
        for item_id in items:
            self._compute_path(items, item_id, paths, ())
        self._items = {
            item_id: replace(item, path=paths[item_id])
            for item_id, item in items.items()
        }
        self.package_name = package_name or self._items[root_id].name

        self._graph = nx.DiGraph()
        for item in self._items.values():
            self._graph.add_node(item.id, kind=item.kind.value)
        for item in self._items.values():
            for child in item.children:
                self._graph.add_edge(item.id, child, relation="contains")
            if item.kind is ItemKind.REEXPORT and item.target in self._items:
                self._graph.add_edge(item.id, item.target, relation="reexports")
            if item.kind is ItemKind.IMPLEMENTATION and item.for_type in self._items:
                self._graph.add_edge(item.id, item.for_type, relation="implements")

    # --- Construction helpers ---

    def _validate(self, items: dict[str, Item]) -> None:
        for item in items.values():
            if item.id != self.root_id and item.parent is None:
                raise SchemaMismatch(f"Item '{item.id}' has no parent")
            if item.parent is not None and item.parent not in items:
                raise SchemaMismatch(
                    f"Item '{item.id}' names unknown parent '{item.parent}'"
                )
            for child in item.children:
                if child not in items:
                    raise SchemaMismatch(
                        f"Item '{item.id}' names unknown child '{child}'"
                    )
                if items[child].parent != item.id:
                    raise SchemaMismatch(
                        f"Child '{child}' of '{item.id}' declares parent "
                        f"'{items[child].parent}'"
                    )

    def _compute_path(
        self,
        items: dict[str, Item],
        item_id: str,
        paths: dict[str, tuple[str, ...]],
        stack: tuple[str, ...],
    ) -> tuple[str, ...]:
        if item_id in paths:
            return paths[item_id]
        if item_id in stack:
            raise SchemaMismatch(f"Parent chain of '{item_id}' is cyclic")
        stack = stack + (item_id,)
        item = items[item_id]

        if item.parent is None:
            path: tuple[str, ...] = (item.name,)
        elif item.kind is ItemKind.IMPLEMENTATION:
            if item.for_type in items:
                path = self._compute_path(items, item.for_type, paths, stack)
            else:
                path = self._compute_path(items, item.parent, paths, stack)
            if item.interface is not None:
                path = path + (self._interface_name(items, item),)
        else:
            path = self._compute_path(items, item.parent, paths, stack) + (item.name,)

        paths[item_id] = path
        return path

    @staticmethod
    def _interface_name(items: dict[str, Item], impl: Item) -> str:
        """Implementation blocks are named after their interface."""
        if impl.interface in items:
            return items[impl.interface].name
        return impl.name or impl.interface or ""

    # --- Lookup ---

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __getitem__(self, item_id: str) -> Item:
        return self._items[item_id]

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: Optional[str]) -> Optional[Item]:
        if item_id is None:
            return None
        return self._items.get(item_id)

    @property
    def root(self) -> Item:
        return self._items[self.root_id]

    def order(self, item_id: str) -> int:
        """Position of an item in the source document, for stable sorting."""
        return self._order.get(item_id, len(self._order))

    def children(self, item_id: str) -> list[Item]:
        item = self._items[item_id]
        return [self._items[c] for c in item.children]

    def parent(self, item_id: str) -> Optional[Item]:
        return self.get(self._items[item_id].parent)

    def implementations(self, type_id: str) -> list[Item]:
        """Implementation blocks of a type, inherent ones first."""
        impls = [
            self._items[source]
            for source, _, data in self._graph.in_edges(type_id, data=True)
            if data.get("relation") == "implements"
        ]
        impls.sort(key=lambda i: (i.interface is not None, self.order(i.id)))
        return impls

    def reexport_target(self, item_id: str) -> Optional[Item]:
        """The item a re-export aliases, when it is part of this model."""
        for _, target, data in self._graph.out_edges(item_id, data=True):
            if data.get("relation") == "reexports":
                return self._items[target]
        return None

    def subtree(self, item_id: str) -> set[str]:
        """All items contained (directly or through implementations) under an item."""
        contained = set()
        pending = [item_id]
        while pending:
            current = pending.pop()
            for _, child, data in self._graph.out_edges(current, data=True):
                if data.get("relation") == "contains" and child not in contained:
                    contained.add(child)
                    pending.append(child)
            for impl in self.implementations(current):
                if impl.id not in contained:
                    contained.add(impl.id)
                    pending.append(impl.id)
        contained.discard(item_id)
        return contained

    def reexport_cycles(self) -> list[list[str]]:
        """Cycles formed purely by re-export edges."""
        edges = [
            (u, v) for u, v, d in self._graph.edges(data=True)
            if d.get("relation") == "reexports"
        ]
        return [sorted(c) for c in nx.simple_cycles(nx.DiGraph(edges))]

    # --- Stats ---

    def count_by_kind(self) -> dict[str, int]:
        """Count items per kind."""
        counts: dict[str, int] = {}
        for _, data in self._graph.nodes(data=True):
            counts[data["kind"]] = counts.get(data["kind"], 0) + 1
        return counts

    # --- Serialization ---

    def to_dict(self) -> dict:
        """Export the model in its JSON input form."""
        return {
            "format_version": DOC_MODEL_FORMAT_VERSION,
            "package_name": self.package_name,
            "root": self.root_id,
            "language": self.language,
            "items": {item.id: item.to_dict() for item in self._items.values()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentModel":
        """
        Build a model from its JSON form.

        Raises:
            SchemaMismatch: If the version is unsupported or the tree is malformed
        """
        if not isinstance(data, dict):
            raise SchemaMismatch("Document model must be a JSON object")

        version = data.get("format_version")
        if version != DOC_MODEL_FORMAT_VERSION:
            raise SchemaMismatch(
                f"Unsupported document model format version {version!r} "
                f"(expected {DOC_MODEL_FORMAT_VERSION})"
            )

        raw_items = data.get("items")
        if not isinstance(raw_items, dict) or "root" not in data:
            raise SchemaMismatch("Document model needs 'root' and an 'items' object")

        items: dict[str, Item] = {}
        for item_id, raw in raw_items.items():
            try:
                items[str(item_id)] = Item.from_dict(item_id, raw)
            except (KeyError, TypeError, ValueError) as e:
                raise SchemaMismatch(f"Malformed item '{item_id}': {e}") from e

        return cls(
            items,
            str(data["root"]),
            package_name=data.get("package_name"),
            language=data.get("language") or DEFAULT_MODEL_LANGUAGE,
        )


def _read_model_json(filepath: Path) -> dict:
    try:
        with filepath.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
        raise PackageNotFound(f"Cannot read document model {filepath}: {e}") from e
    except json.JSONDecodeError as e:
        raise SchemaMismatch(f"{filepath} is not valid JSON: {e}") from e


def load_document(filepath: Path | str) -> DocumentModel:
    """
    Load a document model from a JSON file.

    Raises:
        PackageNotFound: If the file cannot be opened
        SchemaMismatch: If the content is not a supported document model
    """
    return DocumentModel.from_dict(_read_model_json(Path(filepath)))


@dataclass(frozen=True)
class LoadedPackage:
    """A document model together with the directory its spans resolve against."""
    model: DocumentModel
    root: Path
    entrypoint: str

    @property
    def name(self) -> str:
        return self.model.package_name


class JsonModelSource:
    """
    Locates and caches document models on disk.

    An entry point is either a model JSON file or a directory holding one
    of DOC_MODEL_FILENAMES. Spans resolve against the directory named by the
    model's ``package_root`` key (relative to the JSON file), or else the
    entry point directory (the JSON file's directory for a file entry point).
    """

    def __init__(self):
        self._cache: dict[Path, LoadedPackage] = {}

    def locate(self, entrypoint: Path | str) -> Path:
        """Find the model file for an entry point."""
        path = Path(entrypoint).expanduser()
        if path.is_file():
            return path.resolve()
        if path.is_dir():
            for name in DOC_MODEL_FILENAMES:
                candidate = path / name
                if candidate.is_file():
                    return candidate.resolve()
            raise PackageNotFound(
                f"No document model in {path} (looked for {', '.join(DOC_MODEL_FILENAMES)})"
            )
        raise PackageNotFound(f"Package entry point does not exist: {path}")

    def load(self, entrypoint: Path | str) -> LoadedPackage:
        model_file = self.locate(entrypoint)
        if model_file in self._cache:
            return self._cache[model_file]

        logger.debug("Loading document model %s", model_file)
        data = _read_model_json(model_file)
        model = DocumentModel.from_dict(data)
        entry = Path(entrypoint).expanduser()
        root = entry.resolve() if entry.is_dir() else model_file.parent
        declared_root = data.get("package_root") if isinstance(data, dict) else None
        if declared_root:
            root = (model_file.parent / declared_root).resolve()

        package = LoadedPackage(model=model, root=root, entrypoint=str(entrypoint))
        self._cache[model_file] = package
        return package
