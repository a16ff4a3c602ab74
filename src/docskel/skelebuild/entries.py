"""
Skelebuild entries and their keys.

Three kinds of entries make up a skeleton document:
- TargetEntry: an item path rendered through the Render Engine
- RawSourceEntry: a verbatim excerpt (or whole file) with a canonical key
- InjectionEntry: free text, keyed only when given a label

Canonical keys of file-backed entries are POSIX paths relative to the
repository root, so ``./a/b.rs``, ``a/b.rs`` and ``/repo/a/b.rs`` all name
the same entry.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from docskel.constants import STATUS_SUMMARY_WIDTH
from docskel.errors import DocskelError, SourceUnavailable
from docskel.source import read_source_text, slice_lines


@dataclass(frozen=True)
class TargetEntry:
    """A rendered item. Flags left as None follow the sticky defaults."""
    path: str
    implementation: Optional[bool] = None
    raw_source: Optional[bool] = None
    private: Optional[bool] = None

    kind = "target"

    @property
    def key(self) -> str:
        return self.path

    @property
    def summary(self) -> str:
        return self.path

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "path": self.path,
            "implementation": self.implementation,
            "raw_source": self.raw_source,
            "private": self.private,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TargetEntry":
        return cls(
            path=data["path"],
            implementation=data.get("implementation"),
            raw_source=data.get("raw_source"),
            private=data.get("private"),
        )


@dataclass(frozen=True)
class RawSourceEntry:
    """A verbatim file excerpt; no line range means the whole file."""
    file: str
    canonical_key: str
    text: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    kind = "raw_source"

    @property
    def key(self) -> str:
        if self.start_line is None:
            return self.canonical_key
        return f"{self.canonical_key}:{self.start_line}:{self.end_line}"

    @property
    def summary(self) -> str:
        return raw_source_summary(self.canonical_key, self.start_line, self.end_line)

    def read_current(self) -> str:
        """
        The excerpt as it reads on disk now.

        Raises:
            SourceUnavailable: If the file or range can no longer be read
        """
        text = read_source_text(self.file)
        if self.start_line is None:
            return text.rstrip("\n")
        return slice_lines(text, self.start_line, self.end_line or self.start_line, self.canonical_key)

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "file": self.file,
            "canonical_key": self.canonical_key,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RawSourceEntry":
        return cls(
            file=data["file"],
            canonical_key=data["canonical_key"],
            text=data.get("text", ""),
            start_line=data.get("start_line"),
            end_line=data.get("end_line"),
        )


@dataclass(frozen=True)
class InjectionEntry:
    """Free text placed between other entries."""
    content: str
    label: Optional[str] = None

    kind = "injection"

    @property
    def key(self) -> Optional[str]:
        return self.label

    @property
    def summary(self) -> str:
        text = self.content.replace("\n", "\\n")
        if len(text) > STATUS_SUMMARY_WIDTH:
            text = text[:STATUS_SUMMARY_WIDTH - 3] + "..."
        if self.label:
            return f"{self.label}: {text}"
        return text

    def to_dict(self) -> dict:
        return {"type": self.kind, "content": self.content, "label": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> "InjectionEntry":
        return cls(content=data["content"], label=data.get("label"))


SkelebuildEntry = Union[TargetEntry, RawSourceEntry, InjectionEntry]

_ENTRY_TYPES = {
    TargetEntry.kind: TargetEntry,
    RawSourceEntry.kind: RawSourceEntry,
    InjectionEntry.kind: InjectionEntry,
}


def entry_from_dict(data: dict) -> SkelebuildEntry:
    """
    Reconstruct an entry from its tagged dictionary.

    Raises:
        ValueError: If the type tag is unknown
        KeyError: If a required field is missing
    """
    entry_type = data.get("type")
    if entry_type not in _ENTRY_TYPES:
        raise ValueError(f"Unknown entry type {entry_type!r}")
    return _ENTRY_TYPES[entry_type].from_dict(data)


def raw_source_summary(key: str, start: Optional[int], end: Optional[int]) -> str:
    if start is None:
        return key
    if end is None or start == end:
        return f"{key}:{start}"
    return f"{key}:{start}:{end}"


# --- Keys and paths ---


def find_repo_root(start: Path | str) -> Path:
    """Nearest ancestor holding a .git entry, or ``start`` itself."""
    start = Path(start).resolve()
    for candidate in (start, *start.parents):
        if (candidate / ".git").exists():
            return candidate
    return start


def absolute_file(path: str | Path, cwd: Path | str) -> Path:
    """Absolute, normalized form of a user-supplied file path."""
    path = Path(path).expanduser()
    if not path.is_absolute():
        path = Path(cwd) / path
    return Path(os.path.normpath(path))


def canonical_key(path: str | Path, repo_root: Path | str, cwd: Path | str) -> str:
    """POSIX path relative to the repo root (absolute when outside it)."""
    absolute = absolute_file(path, cwd)
    root = Path(os.path.normpath(Path(repo_root).resolve()))
    if absolute.exists():
        absolute = absolute.resolve()
    try:
        return absolute.relative_to(root).as_posix()
    except ValueError:
        return absolute.as_posix()


def split_line_range(spec: str) -> tuple[str, Optional[int], Optional[int]]:
    """Split ``path[:start[:end]]``; ``path:N`` means the single line N."""
    spec = spec.strip()
    head, sep, last = spec.rpartition(":")
    if not sep or not last.isdigit():
        return spec, None, None
    inner_head, inner_sep, start = head.rpartition(":")
    if inner_sep and start.isdigit():
        return inner_head, int(start), int(last)
    return head, int(last), int(last)


def parse_raw_spec(
    spec: str,
    repo_root: Path | str,
    cwd: Path | str,
) -> RawSourceEntry:
    """
    Snapshot the file range named by ``path[:start[:end]]``.

    Raises:
        DocskelError: If the spec is empty or its line numbers are invalid
        SourceUnavailable: If the file cannot be read or the range is past its end
    """
    if not spec.strip():
        raise DocskelError("Raw source spec is empty")
    path_part, start, end = split_line_range(spec)
    file = absolute_file(path_part, cwd)
    if not file.is_file():
        raise SourceUnavailable(f"Raw source file not found: {file}")
    if start is not None:
        if start < 1 or end < 1:
            raise DocskelError("Raw source line numbers are 1-based (must be >= 1)")
        if start > end:
            raise DocskelError(f"Raw source start line {start} is after end line {end}")

    key = canonical_key(file, repo_root, cwd)
    text = read_source_text(file)
    if start is None:
        snapshot = text.rstrip("\n")
    else:
        snapshot = slice_lines(text, start, end, key)
        end = min(end, len(text.splitlines()))
    return RawSourceEntry(
        file=str(file.resolve()),
        canonical_key=key,
        text=snapshot,
        start_line=start,
        end_line=end,
    )


def unescape_inject_content(content: str) -> str:
    """
    Process ``\\n``, ``\\r``, ``\\t`` and ``\\\\`` escapes.

    Unknown escapes and a trailing backslash are kept as written.
    """
    out = []
    chars = iter(content)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            out.append("\\")
        elif nxt == "n":
            out.append("\n")
        elif nxt == "r":
            out.append("\r")
        elif nxt == "t":
            out.append("\t")
        elif nxt == "\\":
            out.append("\\")
        else:
            out.append("\\" + nxt)
    return "".join(out)
