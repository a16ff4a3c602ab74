"""
Source slicing for spans recorded in a document model.

Provides:
- Package-root-relative path resolution for spans
- Encoding-tolerant reading (UTF-8 with latin-1 fallback)
- 1-indexed inclusive line slicing with SourceUnavailable on bad ranges
"""
from __future__ import annotations

import logging
import os
import textwrap
from pathlib import Path
from typing import Callable, Optional, TypeVar

from docskel.constants import DEFAULT_CODE_BLOCK_LANGUAGE, LANGUAGE_EXTENSION_MAP
from docskel.errors import SourceUnavailable
from docskel.models import Span

logger = logging.getLogger(__name__)

# Exceptions that indicate file access problems (not encoding issues)
_FILE_ACCESS_ERRORS = (FileNotFoundError, PermissionError, IsADirectoryError)

T = TypeVar('T')


def _read_with_fallback(
    path: Path,
    reader: Callable[[object], T],
    encodings: tuple[str, ...] = ('utf-8', 'latin-1'),
) -> T:
    """
    Read a file using a reader function, trying multiple encodings.

    Args:
        path: Path to the file
        reader: Function that takes a file handle and returns the result
        encodings: Tuple of encodings to try in order

    Returns:
        Result from reader function

    Raises:
        SourceUnavailable: If the file is missing, unreadable or undecodable
    """
    for i, encoding in enumerate(encodings):
        try:
            with path.open('r', encoding=encoding) as f:
                return reader(f)
        except UnicodeDecodeError:
            if i < len(encodings) - 1:
                logger.debug(
                    "%s decode failed for %s, trying %s",
                    encoding, path, encodings[i + 1]
                )
                continue
            raise SourceUnavailable(f"Cannot decode {path}")
        except _FILE_ACCESS_ERRORS as e:
            raise SourceUnavailable(f"{type(e).__name__}: {path}") from e

    raise SourceUnavailable(f"Cannot read {path}")


def read_source_text(path: Path | str) -> str:
    """Read a whole source file."""
    return _read_with_fallback(Path(path), lambda f: f.read())


def resolve_source_path(file: str | Path, package_root: Path | str) -> Path:
    """
    Resolve a span file against the package root it was recorded for.

    Relative paths never resolve against the process working directory.
    When a span was recorded relative to an enclosing workspace
    (``crates/foo/src/lib.rs`` for a package rooted at ``crates/foo``),
    leading components are stripped until the file is found.

    Raises:
        SourceUnavailable: If no candidate exists
    """
    file_path = Path(file)
    root = Path(package_root)

    if file_path.is_absolute():
        if file_path.is_file():
            return file_path
        raise SourceUnavailable(f"Source file not found: {file_path}")

    parts = file_path.parts
    for start in range(len(parts)):
        candidate = root.joinpath(*parts[start:])
        if candidate.is_file():
            if start:
                logger.debug("Resolved %s as %s under %s", file, candidate, root)
            return candidate

    raise SourceUnavailable(f"Source file not found: {file} (package root {root})")


def span_is_local(span: Optional[Span], package_root: Path | str) -> bool:
    """Whether a span points inside the package root (without touching disk)."""
    if span is None:
        return False
    root = os.path.normpath(os.path.abspath(package_root))
    file_path = span.file
    if not os.path.isabs(file_path):
        file_path = os.path.join(root, file_path)
    file_path = os.path.normpath(file_path)
    return file_path == root or file_path.startswith(root + os.sep)


def slice_lines(text: str, start_line: int, end_line: int, label: str = "<source>") -> str:
    """
    Return lines ``start_line..end_line`` (1-indexed, inclusive) of ``text``.

    The end is clamped to the file length; a start past the end is an error.

    Raises:
        SourceUnavailable: If the range is empty or starts past the end
    """
    lines = text.splitlines()
    if start_line < 1 or end_line < start_line:
        raise SourceUnavailable(f"Invalid line range {start_line}-{end_line} for {label}")
    if start_line > len(lines):
        raise SourceUnavailable(
            f"Line {start_line} is past the end of {label} ({len(lines)} lines)"
        )
    end_line = min(end_line, len(lines))
    return "\n".join(lines[start_line - 1:end_line])


def slice_span(span: Span, package_root: Path | str) -> str:
    """Literal text of the lines a span covers."""
    path = resolve_source_path(span.file, package_root)
    return slice_lines(read_source_text(path), span.start_line, span.end_line, span.file)


def extract_item_source(span: Span, package_root: Path | str) -> str:
    """Span text with common indentation removed, ready to be nested."""
    return textwrap.dedent(slice_span(span, package_root)).strip("\n")


def language_for_path(path: str | Path) -> str:
    """Fenced code block language for a file, by extension."""
    return LANGUAGE_EXTENSION_MAP.get(Path(path).suffix.lower(), DEFAULT_CODE_BLOCK_LANGUAGE)
