"""
Skelebuild commands.

Each command loads the persisted state, applies one mutation and saves the
state again before returning. ``status`` and ``preview`` never save and
never write the output document.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Sequence

from docskel.constants import START_MARKERS
from docskel.document import JsonModelSource
from docskel.errors import DocskelError
from docskel.inspector import PackageInspector
from docskel.resolver import Resolution, TargetSpec
from docskel.skelebuild.entries import (
    InjectionEntry,
    RawSourceEntry,
    SkelebuildEntry,
    TargetEntry,
    absolute_file,
    find_repo_root,
    parse_raw_spec,
    unescape_inject_content,
)
from docskel.skelebuild.matching import describe_entry, find_entry, find_target, invalid_reference
from docskel.skelebuild.rebuild import BuildResult, SkeletonRebuilder
from docskel.skelebuild.state import SkeleState, StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a mutating command."""
    message: str
    changed: bool = True


@dataclass(frozen=True)
class StatusEntry:
    index: int
    entry: SkelebuildEntry

    @property
    def kind(self) -> str:
        return self.entry.kind

    @property
    def key(self) -> Optional[str]:
        return self.entry.key


@dataclass(frozen=True)
class StatusReport:
    """Read-only view of the persisted state."""
    state_file: Path
    state: SkeleState
    entries: list[StatusEntry]

    def key_lines(self) -> list[str]:
        """Machine-readable ``index  type  key`` lines; unlabelled injections are skipped."""
        lines = []
        for item in self.entries:
            if item.key is None:
                continue
            label = "raw" if item.kind == RawSourceEntry.kind else item.kind
            lines.append(f"{item.index}  {label}  {item.key}")
        return lines


class SkeleBuilder:
    """
    Applies skelebuild commands to the persisted state.

    Usage:
        builder = SkeleBuilder(StateStore())
        builder.add(["./crates/tome::net::Client"])
        result = builder.rebuild()

    Args:
        store: Where the state is persisted
        source: Where document models are loaded from
        cwd: Directory relative paths are taken from
        allow_corrupt: Start from a fresh state if the saved one is unreadable
    """

    def __init__(
        self,
        store: StateStore,
        source: Optional[JsonModelSource] = None,
        cwd: Optional[Path] = None,
        allow_corrupt: bool = False,
    ):
        self.store = store
        self.source = source or JsonModelSource()
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.repo_root = find_repo_root(self.cwd)
        self.state = store.load(allow_corrupt=allow_corrupt)

    # --- Helpers ---

    @property
    def entries(self) -> list[SkelebuildEntry]:
        return self.state.entries

    def _save(self) -> None:
        self.store.save(self.state)

    def _summary(self, message: str) -> str:
        return f"{message} (output: {self.state.output_path}, entries: {len(self.entries)})"

    def _find(self, spec: str) -> int:
        return find_entry(self.entries, spec, self.repo_root, self.cwd)

    def _find_target(self, spec: str) -> int:
        return find_target(self.entries, spec, self.repo_root, self.cwd)

    def default_package(self) -> str:
        return self.state.package or str(self.cwd)

    def normalize_target(self, spec: str) -> str:
        """Stored form of a target: absolute package entry point plus item path."""
        parsed = TargetSpec.parse(spec)
        entrypoint = parsed.entrypoint or self.default_package()
        entrypoint = str(absolute_file(entrypoint, self.cwd))
        if not parsed.item_path:
            raise DocskelError(f"Target '{spec}' names a package but no item path")
        return str(TargetSpec(entrypoint=entrypoint, item_path=parsed.item_path))

    def validate_target(self, path: str, private: bool) -> Resolution:
        """Resolve a stored target path; resolution errors propagate."""
        spec = TargetSpec.parse(path)
        package = self.source.load(spec.entrypoint or self.default_package())
        return PackageInspector(package, include_private=private).resolve(spec.item_path)

    def _insert_position(
        self,
        after: Optional[str] = None,
        before: Optional[str] = None,
        after_target: Optional[str] = None,
        before_target: Optional[str] = None,
        at: Optional[int] = None,
    ) -> int:
        given = [x for x in (after, before, after_target, before_target, at) if x is not None]
        if len(given) > 1:
            raise DocskelError("Use only one of --at, --after, --before, --after-target, --before-target")
        if at is not None:
            if at < 0 or at > len(self.entries):
                raise invalid_reference(f"#{at}", self.entries)
            return at
        if after is not None:
            if after.strip().upper() in START_MARKERS:
                return 0
            return self._find(after) + 1
        if before is not None:
            return self._find(before)
        if after_target is not None:
            return self._find_target(after_target) + 1
        if before_target is not None:
            return self._find_target(before_target)
        return len(self.entries)

    # --- Commands ---

    def add(
        self,
        targets: Sequence[str],
        implementation: Optional[bool] = None,
        raw_source: Optional[bool] = None,
        private: Optional[bool] = None,
        validate: bool = True,
        strict: bool = False,
    ) -> CommandResult:
        """
        Append targets.

        A single target that fails validation raises. With several targets,
        failing ones are skipped with a warning, unless ``strict`` is set, in
        which case nothing is added.
        """
        pending: list[TargetEntry] = []
        failures: list[str] = []
        existing = {e.path for e in self.entries if isinstance(e, TargetEntry)}

        for spec in targets:
            path = self.normalize_target(spec)
            if path in existing or any(p.path == path for p in pending):
                logger.info("Target already present: %s", path)
                continue
            entry = TargetEntry(path, implementation=implementation, raw_source=raw_source, private=private)
            if validate:
                try:
                    self.validate_target(path, bool(self.state.effective(entry).private))
                except DocskelError as e:
                    if strict or len(targets) == 1:
                        raise
                    logger.warning("Skipping %s: %s", spec, e.message)
                    failures.append(spec)
                    continue
            pending.append(entry)

        if not pending:
            reason = f"skipped: {', '.join(failures)}" if failures else "target already exists"
            return CommandResult(self._summary(f"No change ({reason})"), changed=False)

        self.entries.extend(pending)
        self._save()
        message = f"Added {len(pending)} target(s)"
        if failures:
            message += f", skipped {len(failures)}: {', '.join(failures)}"
        return CommandResult(self._summary(message))

    def add_raw(self, specs: Sequence[str]) -> CommandResult:
        """Append file excerpts given as ``path[:start[:end]]``."""
        added = 0
        for spec in specs:
            entry = parse_raw_spec(spec, self.repo_root, self.cwd)
            if any(isinstance(e, RawSourceEntry) and e.key == entry.key for e in self.entries):
                logger.info("Raw source already present: %s", entry.key)
                continue
            self.entries.append(entry)
            added += 1

        if not added:
            return CommandResult(self._summary("No change (raw source already exists)"), changed=False)
        self._save()
        return CommandResult(self._summary(f"Added {added} raw source entr{'y' if added == 1 else 'ies'}"))

    def add_file(self, paths: Sequence[str]) -> CommandResult:
        """Append whole files."""
        return self.add_raw([str(absolute_file(p, self.cwd)) for p in paths])

    def inject(
        self,
        content: str,
        literal: bool = False,
        label: Optional[str] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
        after_target: Optional[str] = None,
        before_target: Optional[str] = None,
        at: Optional[int] = None,
    ) -> CommandResult:
        """Insert free text, by default at the end."""
        text = content if literal else unescape_inject_content(content)
        if label is not None and any(e.key == label for e in self.entries):
            raise DocskelError(f"An entry with key '{label}' already exists")

        position = self._insert_position(after, before, after_target, before_target, at)
        self.entries.insert(position, InjectionEntry(content=text, label=label))
        self._save()
        return CommandResult(self._summary(f"Injected text at #{position}"))

    def update(
        self,
        spec: str,
        implementation: Optional[bool] = None,
        raw_source: Optional[bool] = None,
        private: Optional[bool] = None,
    ) -> CommandResult:
        """Change per-target flags in place."""
        index = self._find_target(spec)
        entry = self.entries[index]
        changes = {
            name: value
            for name, value in (
                ("implementation", implementation),
                ("raw_source", raw_source),
                ("private", private),
            )
            if value is not None
        }
        updated = replace(entry, **changes)
        if updated == entry:
            return CommandResult(self._summary(f"No change to #{index}"), changed=False)
        self.entries[index] = updated
        self._save()
        return CommandResult(self._summary(f"Updated {describe_entry(index, updated)}"))

    def remove(self, spec: str) -> CommandResult:
        """Delete the entry a key, index or content refers to."""
        index = self._find(spec)
        entry = self.entries.pop(index)
        self._save()
        return CommandResult(self._summary(f"Removed {describe_entry(index, entry)}"))

    def reset(
        self,
        output_path: Optional[str] = None,
        plain: Optional[bool] = None,
        package: Optional[str] = None,
        implementation: Optional[bool] = None,
        private: Optional[bool] = None,
        raw_source: Optional[bool] = None,
        auto_rebuild: Optional[bool] = None,
    ) -> CommandResult:
        """Clear all entries; sticky settings persist unless overridden."""
        self.state.reset(output_path=output_path, plain=plain)
        if package is not None:
            self.state.package = str(absolute_file(package, self.cwd))
        for name, value in (
            ("implementation", implementation),
            ("private", private),
            ("raw_source", raw_source),
            ("auto_rebuild", auto_rebuild),
        ):
            if value is not None:
                setattr(self.state, name, value)
        self._save()
        return CommandResult(self._summary("Reset skeleton"))

    def status(self) -> StatusReport:
        return StatusReport(
            state_file=self.store.path,
            state=self.state,
            entries=[StatusEntry(i, e) for i, e in enumerate(self.entries)],
        )

    def preview(self) -> BuildResult:
        """The document a rebuild would write, without writing it."""
        return SkeletonRebuilder(self.state, source=self.source, cwd=self.cwd).build()

    def output_file(self) -> Path:
        return absolute_file(self.state.output_path, self.cwd)

    def rebuild(self) -> BuildResult:
        """Regenerate the output document from every entry."""
        result = self.preview()
        output = self.output_file()
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.text, encoding="utf-8")
        logger.debug("Wrote %s (%d warnings)", output, len(result.warnings))
        return result
