"""
Persisted skelebuild state.

The state is one JSON file under the per-user state directory. Every
command loads it whole, mutates it in memory and writes it back through a
temporary file and an atomic rename. Concurrent invocations are not
isolated: the last writer wins.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import platformdirs

from docskel.constants import (
    DEFAULT_OUTPUT_PATH,
    ENV_STATE_FILE,
    STATE_APP_NAME,
    STATE_FILE_NAME,
    STATE_FILE_VERSION,
)
from docskel.errors import StateCorrupted
from docskel.skelebuild.entries import SkelebuildEntry, TargetEntry, entry_from_dict

logger = logging.getLogger(__name__)


def default_state_file() -> Path:
    """
    State file location.

    DOCSKEL_STATE_FILE wins; otherwise the file sits in the per-user state
    directory platformdirs reports for this platform.
    """
    override = os.environ.get(ENV_STATE_FILE)
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_state_dir(STATE_APP_NAME)) / STATE_FILE_NAME


@dataclass
class SkeleState:
    """
    Ordered entries, output destination and sticky configuration.

    Sticky defaults apply to targets whose own flags are unset.
    """
    output_path: str = DEFAULT_OUTPUT_PATH
    entries: list[SkelebuildEntry] = field(default_factory=list)
    plain: bool = True
    implementation: bool = True
    private: bool = True
    raw_source: bool = False
    auto_rebuild: bool = True
    package: Optional[str] = None

    def effective(self, entry: TargetEntry) -> TargetEntry:
        """A target with every unset flag replaced by its sticky default."""
        return TargetEntry(
            path=entry.path,
            implementation=self.implementation if entry.implementation is None else entry.implementation,
            raw_source=self.raw_source if entry.raw_source is None else entry.raw_source,
            private=self.private if entry.private is None else entry.private,
        )

    def reset(self, output_path: Optional[str] = None, plain: Optional[bool] = None) -> None:
        """Drop all entries, keeping sticky configuration unless overridden."""
        self.entries.clear()
        if output_path is not None:
            self.output_path = output_path
        if plain is not None:
            self.plain = plain

    def to_dict(self) -> dict:
        return {
            "version": STATE_FILE_VERSION,
            "output_path": self.output_path,
            "plain": self.plain,
            "implementation": self.implementation,
            "private": self.private,
            "raw_source": self.raw_source,
            "auto_rebuild": self.auto_rebuild,
            "package": self.package,
            "entries": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SkeleState":
        """
        Reconstruct state from its JSON form.

        Raises:
            StateCorrupted: If the data does not describe a valid state
        """
        if not isinstance(data, dict):
            raise StateCorrupted("Skelebuild state must be a JSON object")
        version = data.get("version", STATE_FILE_VERSION)
        if version != STATE_FILE_VERSION:
            raise StateCorrupted(f"Unsupported skelebuild state version {version!r}")
        try:
            entries = [entry_from_dict(e) for e in data.get("entries", [])]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateCorrupted(f"Malformed skelebuild entry: {e}") from e
        return cls(
            output_path=data.get("output_path") or DEFAULT_OUTPUT_PATH,
            entries=entries,
            plain=bool(data.get("plain", True)),
            implementation=bool(data.get("implementation", True)),
            private=bool(data.get("private", True)),
            raw_source=bool(data.get("raw_source", False)),
            auto_rebuild=bool(data.get("auto_rebuild", True)),
            package=data.get("package"),
        )


class StateStore:
    """Loads and atomically saves SkeleState at one path."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_state_file()

    def load(self, allow_corrupt: bool = False) -> SkeleState:
        """
        Load the state, or a fresh one if none was saved yet.

        Args:
            allow_corrupt: Return a fresh state instead of raising when the
                file is unreadable (used by an explicit reset)

        Raises:
            StateCorrupted: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            return SkeleState()
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return SkeleState.from_dict(json.load(f))
        except (OSError, json.JSONDecodeError, StateCorrupted) as e:
            if allow_corrupt:
                logger.warning("Discarding unreadable skelebuild state %s: %s", self.path, e)
                return SkeleState()
            raise StateCorrupted(
                f"Cannot read skelebuild state {self.path}: {e}",
                hint="Inspect or move the file, or start over with: docskel skelebuild reset",
            ) from e

    def save(self, state: SkeleState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Saved skelebuild state to %s", self.path)
