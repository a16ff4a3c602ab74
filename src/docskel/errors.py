"""
Error taxonomy for docskel.

Every error a caller may need to tell apart has its own class. All of them
derive from DocskelError, which carries an optional ``hint``: the exact next
command that helps the user recover.
"""
from __future__ import annotations

from typing import Optional, Sequence


class DocskelError(Exception):
    """Base class for all docskel errors."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n{self.hint}"
        return self.message


class NoMatch(DocskelError):
    """Raised when a path spec or search query resolves to nothing."""

    def __init__(
        self,
        spec: str,
        suggestions: Sequence[str] = (),
        attempted: Sequence[str] = (),
        hint: Optional[str] = None,
    ):
        self.spec = spec
        self.suggestions = list(suggestions)
        self.attempted = list(attempted)

        lines = [f"No item matches '{spec}'"]
        if self.attempted:
            lines.append("Tried: " + ", ".join(self.attempted))
        if self.suggestions:
            lines.append("Did you mean:")
            lines.extend(f"  {s}" for s in self.suggestions)
        super().__init__("\n".join(lines), hint)


class AmbiguousMatch(DocskelError):
    """Raised when several candidates match and none can be preferred."""

    def __init__(self, spec: str, candidates: Sequence[str], hint: Optional[str] = None):
        self.spec = spec
        self.candidates = list(candidates)
        lines = [f"'{spec}' is ambiguous; candidates:"]
        lines.extend(f"  {c}" for c in self.candidates)
        super().__init__("\n".join(lines), hint)


class SourceUnavailable(DocskelError):
    """Raised when a span's file is missing, unreadable or out of range."""
    pass


class SchemaMismatch(DocskelError):
    """Raised when a document model has an unsupported version or shape."""
    pass


class InvalidEntryReference(DocskelError):
    """Raised when a skelebuild key or index does not name an entry."""

    def __init__(self, reference: str, known_keys: Sequence[str], hint: Optional[str] = None):
        self.reference = reference
        self.known_keys = list(known_keys)
        lines = [f"No entry matches '{reference}'"]
        if self.known_keys:
            lines.append(f"Available entry keys (first {len(self.known_keys)}):")
            lines.extend(f"  {k}" for k in self.known_keys)
        else:
            lines.append("The skeleton has no entries yet.")
        super().__init__("\n".join(lines), hint)


class StateCorrupted(DocskelError):
    """Raised when the persisted skelebuild state cannot be read back."""
    pass


class PackageNotFound(DocskelError):
    """Raised when no document model can be located for a package entry point."""
    pass
