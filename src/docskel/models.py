"""
Data models for documentation-model items.

All models are frozen dataclasses; one Item is shared by every index and
renderer built over its model.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ItemKind(Enum):
    """Closed set of documentation item kinds."""
    PACKAGE = "package"
    MODULE = "module"
    RECORD = "record"
    SUM = "sum"
    INTERFACE = "interface"
    FUNCTION = "function"
    ASSOCIATED_FUNCTION = "associated_function"
    CONSTANT = "constant"
    TYPE_ALIAS = "type_alias"
    MACRO = "macro"
    IMPLEMENTATION = "implementation"
    REEXPORT = "reexport"

    @property
    def label(self) -> str:
        """Short human-readable label used in listings."""
        return _KIND_LABELS[self]

    @property
    def is_module_like(self) -> bool:
        return self in (ItemKind.PACKAGE, ItemKind.MODULE)

    @property
    def is_type(self) -> bool:
        return self in (ItemKind.RECORD, ItemKind.SUM)

    @property
    def is_container(self) -> bool:
        """Kinds whose match expands to their whole subtree."""
        return self in (
            ItemKind.PACKAGE,
            ItemKind.MODULE,
            ItemKind.RECORD,
            ItemKind.SUM,
            ItemKind.INTERFACE,
            ItemKind.IMPLEMENTATION,
        )


_KIND_LABELS: dict[ItemKind, str] = {
    ItemKind.PACKAGE: "package",
    ItemKind.MODULE: "mod",
    ItemKind.RECORD: "struct",
    ItemKind.SUM: "enum",
    ItemKind.INTERFACE: "trait",
    ItemKind.FUNCTION: "fn",
    ItemKind.ASSOCIATED_FUNCTION: "method",
    ItemKind.CONSTANT: "const",
    ItemKind.TYPE_ALIAS: "type",
    ItemKind.MACRO: "macro",
    ItemKind.IMPLEMENTATION: "impl",
    ItemKind.REEXPORT: "use",
}


class Visibility(Enum):
    """Item visibility."""
    PUBLIC = "public"
    RESTRICTED = "restricted"
    PRIVATE = "private"


class OutputFormat(Enum):
    """Rendered output formats."""
    MARKDOWN = "markdown"
    SKELETON = "skeleton"


@dataclass(frozen=True)
class Span:
    """A package-relative source range. Immutable and hashable."""
    file: str
    start_line: int
    end_line: int
    start_column: int = 0
    end_column: int = 0

    def __str__(self) -> str:
        if self.end_line != self.start_line:
            return f"{self.file}:{self.start_line}-{self.end_line}"
        return f"{self.file}:{self.start_line}"

    @property
    def line_count(self) -> int:
        """Number of lines this span covers."""
        return self.end_line - self.start_line + 1

    def to_compact_string(self) -> str:
        return f"{self.file}:{self.start_line}"

    def to_dict(self) -> dict:
        """JSON-serializable representation."""
        return {
            "file": self.file,
            "start_line": self.start_line,
            "start_column": self.start_column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Span":
        """Reconstruct from dictionary."""
        start_line = int(data["start_line"])
        return cls(
            file=data["file"],
            start_line=start_line,
            end_line=int(data.get("end_line", start_line)),
            start_column=int(data.get("start_column", 0)),
            end_column=int(data.get("end_column", 0)),
        )


@dataclass(frozen=True)
class Item:
    """
    One node of a documentation model.

    ``path`` is filled in by the DocumentModel once the whole tree is known,
    so items read straight from JSON carry an empty path.

    Re-export items set ``target`` (the aliased item, when it is part of the
    model), ``source`` (the aliased path as written) and ``glob``.
    Implementation items set ``for_type`` and, for interface
    implementations, ``interface``; their children are the members.
    """
    id: str
    kind: ItemKind
    name: str
    visibility: Visibility = Visibility.PUBLIC
    docs: str = ""
    signature: str = ""
    span: Optional[Span] = None
    parent: Optional[str] = None
    children: tuple[str, ...] = ()
    path: tuple[str, ...] = ()
    has_body: bool = True
    target: Optional[str] = None
    source: Optional[str] = None
    glob: bool = False
    for_type: Optional[str] = None
    interface: Optional[str] = None
    attrs: tuple[str, ...] = field(default=(), compare=False)

    def __str__(self) -> str:
        return f"{self.kind.label}:{self.path_string or self.name}"

    @property
    def path_string(self) -> str:
        return "::".join(self.path)

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC

    @property
    def is_interface_impl(self) -> bool:
        return self.kind is ItemKind.IMPLEMENTATION and self.interface is not None

    def to_dict(self) -> dict:
        """JSON-serializable representation."""
        data: dict = {
            "kind": self.kind.value,
            "name": self.name,
            "visibility": self.visibility.value,
            "docs": self.docs,
            "signature": self.signature,
            "children": list(self.children),
        }
        if self.span:
            data["span"] = self.span.to_dict()
        if self.parent is not None:
            data["parent"] = self.parent
        if not self.has_body:
            data["has_body"] = False
        if self.attrs:
            data["attrs"] = list(self.attrs)
        if self.kind is ItemKind.REEXPORT:
            data["target"] = self.target
            data["source"] = self.source
            data["glob"] = self.glob
        if self.kind is ItemKind.IMPLEMENTATION:
            data["for_type"] = self.for_type
            data["interface"] = self.interface
        return data

    @classmethod
    def from_dict(cls, item_id: str, data: dict) -> "Item":
        """
        Reconstruct from the JSON form used in document models.

        Raises:
            ValueError: If the kind or visibility is unknown
            KeyError: If a required field is missing
        """
        span = data.get("span")
        return cls(
            id=str(item_id),
            kind=ItemKind(data["kind"]),
            name=data.get("name") or "",
            visibility=Visibility(data.get("visibility", "public")),
            docs=data.get("docs") or "",
            signature=data.get("signature") or "",
            span=Span.from_dict(span) if span else None,
            parent=_optional_id(data.get("parent")),
            children=tuple(str(c) for c in data.get("children", [])),
            has_body=bool(data.get("has_body", True)),
            target=_optional_id(data.get("target")),
            source=data.get("source"),
            glob=bool(data.get("glob", False)),
            for_type=_optional_id(data.get("for_type")),
            interface=_optional_id(data.get("interface")),
            attrs=tuple(data.get("attrs", [])),
        )


def _optional_id(value) -> Optional[str]:
    return None if value is None else str(value)
