"""
Replaying skelebuild entries into one document.

Consecutive targets of the same package are rendered together, all targets
share one RenderContext (so an item reached by two targets is written once),
and an entry that fails becomes a warning block in place instead of
aborting the build.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from docskel.constants import WARNING_BLOCK_HEADER
from docskel.document import JsonModelSource
from docskel.errors import DocskelError, SourceUnavailable
from docskel.inspector import PackageInspector
from docskel.models import OutputFormat
from docskel.render import RenderContext, raw_source_block
from docskel.resolver import Resolution, TargetSpec
from docskel.search import RenderSelection
from docskel.skelebuild.entries import InjectionEntry, RawSourceEntry, TargetEntry
from docskel.skelebuild.state import SkeleState
from docskel.source import language_for_path

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """A rebuilt document and the problems met while building it."""
    text: str
    warnings: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.warnings


def warning_block(message: str) -> str:
    lines = [WARNING_BLOCK_HEADER]
    lines.extend(f"> {line}".rstrip() for line in message.strip().splitlines())
    return "\n".join(lines)


@dataclass
class _TargetGroup:
    inspector: PackageInspector
    targets: list[tuple[int, TargetEntry, Resolution]] = field(default_factory=list)


class SkeletonRebuilder:
    """
    Renders a SkeleState into Markdown.

    Args:
        state: The entries and sticky configuration to replay
        source: Where document models are loaded from
        cwd: Directory relative package entry points resolve against
    """

    def __init__(
        self,
        state: SkeleState,
        source: Optional[JsonModelSource] = None,
        cwd: Optional[Path] = None,
    ):
        self.state = state
        self.source = source or JsonModelSource()
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self._inspectors: dict[tuple[str, bool], PackageInspector] = {}
        self.context = RenderContext(plain=state.plain)
        self._blocks: list[str] = []
        self._warnings: list[str] = []

    # --- Helpers ---

    def _entrypoint(self, spec: TargetSpec) -> Path:
        entrypoint = spec.entrypoint or self.state.package or str(self.cwd)
        path = Path(entrypoint).expanduser()
        return path if path.is_absolute() else self.cwd / path

    def inspector_for(self, entrypoint: Path, private: bool) -> PackageInspector:
        key = (str(entrypoint), private)
        if key not in self._inspectors:
            self._inspectors[key] = PackageInspector(
                self.source.load(entrypoint),
                include_private=private,
                plain=self.state.plain,
                output_format=OutputFormat.MARKDOWN,
            )
        return self._inspectors[key]

    def _fail(self, index: int, what: str, error: DocskelError | str) -> None:
        message = f"Entry #{index} ({what}) could not be rendered:\n{error}"
        logger.warning("%s", message.replace("\n", " "))
        self._warnings.append(message)
        self._blocks.append(warning_block(message))

    def _drain_render_warnings(self) -> None:
        for message in self.context.drain_warnings():
            full = f"Source unavailable, showing declaration only: {message}"
            self._warnings.append(full)
            self._blocks.append(warning_block(full))

    # --- Replay ---

    def build(self) -> BuildResult:
        group: Optional[_TargetGroup] = None

        for index, entry in enumerate(self.state.entries):
            if isinstance(entry, TargetEntry):
                target = self.state.effective(entry)
                try:
                    spec = TargetSpec.parse(target.path)
                    inspector = self.inspector_for(self._entrypoint(spec), bool(target.private))
                    resolution = inspector.resolve(spec.item_path)
                except DocskelError as e:
                    self._flush(group)
                    group = None
                    self._fail(index, f"target {entry.path}", e)
                    continue

                if group is None or group.inspector is not inspector:
                    self._flush(group)
                    group = _TargetGroup(inspector)
                group.targets.append((index, target, resolution))
                continue

            self._flush(group)
            group = None
            if isinstance(entry, RawSourceEntry):
                self._emit_raw(index, entry)
            elif isinstance(entry, InjectionEntry):
                self._blocks.append(entry.content.strip("\n"))

        self._flush(group)
        text = "\n\n".join(b for b in self._blocks if b.strip())
        return BuildResult(text=text + "\n" if text else "", warnings=list(self._warnings))

    def _flush(self, group: Optional[_TargetGroup]) -> None:
        if group is None or not group.targets:
            return
        inspector = group.inspector
        selection = RenderSelection()
        for index, target, resolution in group.targets:
            selection.merge(inspector.selection_for([resolution], implementation=bool(target.implementation)))
            if target.raw_source:
                try:
                    self._blocks.extend(inspector.raw_source_blocks([resolution.item_id]))
                except SourceUnavailable as e:
                    self._fail(index, f"raw source of {target.path}", e)

        self.context.include_private = inspector.include_private
        self.context.raw_source = False
        self._blocks.append(inspector.render_selection(selection, self.context))
        self._drain_render_warnings()

    def _emit_raw(self, index: int, entry: RawSourceEntry) -> None:
        try:
            text = entry.read_current()
        except SourceUnavailable as e:
            self._fail(index, f"raw source {entry.summary}", e)
            text = entry.text
            if not text:
                return
        self._blocks.append(raw_source_block(
            entry.summary, text, language_for_path(entry.file), OutputFormat.MARKDOWN
        ))
