"""
Skelebuild: an incrementally assembled skeleton document.

Entries (targets, raw source excerpts and injected text) are kept in a
persisted, ordered state and replayed through the renderer on rebuild.
"""
from docskel.skelebuild.builder import CommandResult, SkeleBuilder, StatusReport
from docskel.skelebuild.entries import (
    InjectionEntry,
    RawSourceEntry,
    SkelebuildEntry,
    TargetEntry,
    canonical_key,
    parse_raw_spec,
    unescape_inject_content,
)
from docskel.skelebuild.matching import find_entry, find_target, target_match_quality
from docskel.skelebuild.rebuild import BuildResult, SkeletonRebuilder
from docskel.skelebuild.state import SkeleState, StateStore, default_state_file

__all__ = [
    # Commands
    "SkeleBuilder",
    "CommandResult",
    "StatusReport",
    # Entries
    "SkelebuildEntry",
    "TargetEntry",
    "RawSourceEntry",
    "InjectionEntry",
    "canonical_key",
    "parse_raw_spec",
    "unescape_inject_content",
    # Matching
    "find_entry",
    "find_target",
    "target_match_quality",
    # Rebuild
    "BuildResult",
    "SkeletonRebuilder",
    # State
    "SkeleState",
    "StateStore",
    "default_state_file",
]
