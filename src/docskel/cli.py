"""
Command-line interface for docskel
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape as rich_escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from docskel.constants import INCOMPLETE_BUILD_NOTICE
from docskel.document import JsonModelSource
from docskel.errors import DocskelError
from docskel.inspector import PackageInspector
from docskel.listing import format_list_tree
from docskel.models import OutputFormat
from docskel.render import join_blocks
from docskel.resolver import TargetSpec
from docskel.search import SearchDomain, SearchOptions
from docskel.skelebuild import BuildResult, CommandResult, SkeleBuilder, StateStore, StatusReport

logger = logging.getLogger(__name__)

# Rendered documents go to stdout, diagnostics to stderr
console = Console()
err_console = Console(stderr=True)


def _domains(value: str) -> SearchDomain:
    try:
        return SearchDomain.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def print_document(text: str) -> None:
    """Write rendered text verbatim so it can be piped."""
    console.out(text.rstrip("\n"), highlight=False)


def print_error(error: DocskelError) -> None:
    err_console.print(f"[bold red]Error:[/] {rich_escape(error.message)}")
    if error.hint:
        err_console.print(f"[dim]{rich_escape(error.hint)}[/]")


def print_build_warnings(result: BuildResult) -> None:
    for warning in result.warnings:
        err_console.print(f"[yellow]Warning:[/] {rich_escape(warning)}")
    if not result.complete:
        err_console.print(f"[bold yellow]{INCOMPLETE_BUILD_NOTICE}[/]")


# --- Single-shot commands ---


def _inspector(source: JsonModelSource, entrypoint: Optional[str], args: argparse.Namespace) -> PackageInspector:
    return PackageInspector(
        source.load(entrypoint or args.model or Path.cwd()),
        include_private=args.private,
        plain=args.plain,
        output_format=OutputFormat(args.format),
    )


def cmd_render(args: argparse.Namespace) -> int:
    source = JsonModelSource()
    if not args.targets:
        inspector = _inspector(source, None, args)
        print_document(inspector.render(implementation=args.implementation, raw_source=args.raw_source))
        return 0

    blocks = []
    contexts = {}
    for target in args.targets:
        spec = TargetSpec.parse(target)
        inspector = _inspector(source, spec.entrypoint, args)
        # One context per package keeps shared items rendered once
        key = str(inspector.package.root)
        if key not in contexts:
            contexts[key] = inspector.new_context(args.implementation, args.raw_source)
        blocks.append(inspector.render(
            spec.item_path or None,
            implementation=args.implementation,
            raw_source=args.raw_source,
            context=contexts[key],
        ))
    print_document(join_blocks(blocks))

    for context in contexts.values():
        for warning in context.drain_warnings():
            err_console.print(f"[yellow]Warning:[/] {rich_escape(warning)}")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    inspector = _inspector(JsonModelSource(), args.model, args)
    options = SearchOptions(
        query=args.query,
        domains=args.domains,
        case_sensitive=args.case_sensitive,
        include_private=args.private,
        expand_containers=not args.direct,
    )
    outcome = inspector.search(options, implementation=args.implementation, raw_source=args.raw_source)

    if args.json:
        console.out(json.dumps([r.to_dict() for r in outcome.results], indent=2), highlight=False)
        return 0

    err_console.print(f"[bold]{len(outcome.results)}[/] match(es) for [cyan]{rich_escape(args.query)}[/]")
    print_document(outcome.text)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    inspector = _inspector(JsonModelSource(), args.model, args)
    options = None
    if args.query:
        options = SearchOptions(query=args.query, domains=args.domains, include_private=args.private)
    nodes = inspector.list(options)

    if args.json:
        console.out(json.dumps([n.to_dict() for n in nodes], indent=2), highlight=False)
    else:
        print_document("\n".join(format_list_tree(nodes)))
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    package = JsonModelSource().load(args.model or Path.cwd())
    model = package.model

    summary = Text()
    summary.append("Package:  ", style="bold")
    summary.append(f"{model.package_name}\n", style="cyan bold")
    summary.append("Root:     ", style="bold")
    summary.append(f"{package.root}\n", style="dim")
    summary.append("Language: ", style="bold")
    summary.append(model.language, style="green")
    console.print(Panel(summary, title="[bold blue]Document Model[/]", border_style="blue"))

    table = Table(title="Items by Kind", show_header=True, header_style="bold magenta")
    table.add_column("Kind", style="cyan")
    table.add_column("Count", justify="right", style="bold")
    for kind, count in sorted(model.count_by_kind().items(), key=lambda kv: (-kv[1], kv[0])):
        table.add_row(kind, str(count))
    console.print(table)

    cycles = model.reexport_cycles()
    if cycles:
        console.print(f"\n[bold yellow]Re-export cycles:[/] {len(cycles)}")
        for cycle in cycles:
            paths = [model.get(i).path_string for i in cycle]
            console.print(f"  [dim]•[/] {rich_escape(' -> '.join(paths))}")
    return 0


# --- Skelebuild ---


def print_status(report: StatusReport, keys_only: bool) -> None:
    if keys_only:
        lines = report.key_lines()
        if lines:
            console.out("\n".join(lines), highlight=False)
        return

    state = report.state
    summary = Text()
    summary.append("State file: ", style="bold")
    summary.append(f"{report.state_file}\n", style="dim")
    summary.append("Output:     ", style="bold")
    summary.append(f"{state.output_path}\n", style="cyan")
    summary.append("Defaults:   ", style="bold")
    summary.append(
        f"plain={state.plain} implementation={state.implementation} "
        f"private={state.private} raw_source={state.raw_source} "
        f"auto_rebuild={state.auto_rebuild}"
    )
    if state.package:
        summary.append("\nPackage:    ", style="bold")
        summary.append(state.package, style="dim")
    console.print(Panel(summary, title="[bold blue]Skelebuild[/]", border_style="blue"))

    if not report.entries:
        console.print("[yellow]No entries.[/]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Entry")
    for item in report.entries:
        table.add_row(str(item.index), item.kind, rich_escape(item.entry.summary))
    console.print(table)


def _after_mutation(builder: SkeleBuilder, result: CommandResult, args: argparse.Namespace) -> int:
    console.print(f"[bold green]✓[/] {rich_escape(result.message)}")
    if not result.changed or not builder.state.auto_rebuild or args.no_rebuild:
        return 0
    build = builder.rebuild()
    console.print(f"[dim]Rebuilt {rich_escape(str(builder.output_file()))}[/]")
    print_build_warnings(build)
    return 0


def cmd_skelebuild(args: argparse.Namespace) -> int:
    store = StateStore(args.state_file)
    action = args.action
    builder = SkeleBuilder(store, allow_corrupt=(action == "reset"))

    if action == "status":
        print_status(builder.status(), args.keys)
        return 0

    if action == "preview":
        build = builder.preview()
        print_document(build.text)
        print_build_warnings(build)
        return 0

    if action == "rebuild":
        build = builder.rebuild()
        console.print(
            f"[bold green]✓[/] Wrote [underline]{rich_escape(str(builder.output_file()))}[/] "
            f"({len(builder.entries)} entries)"
        )
        print_build_warnings(build)
        return 0

    if action == "add":
        result = builder.add(
            args.targets,
            implementation=args.implementation,
            raw_source=args.raw_source,
            private=args.private,
            validate=not args.no_validate,
            strict=args.strict,
        )
    elif action == "add-raw":
        result = builder.add_raw(args.specs)
    elif action == "add-file":
        result = builder.add_file(args.paths)
    elif action == "inject":
        result = builder.inject(
            args.content,
            literal=args.literal,
            label=args.label,
            after=args.after,
            before=args.before,
            after_target=args.after_target,
            before_target=args.before_target,
            at=args.at,
        )
    elif action == "update":
        result = builder.update(
            args.target,
            implementation=args.implementation,
            raw_source=args.raw_source,
            private=args.private,
        )
    elif action == "remove":
        result = builder.remove(args.key)
    elif action == "reset":
        result = builder.reset(
            output_path=args.output,
            plain=args.plain,
            package=args.package,
            implementation=args.implementation,
            private=args.private,
            raw_source=args.raw_source,
            auto_rebuild=args.auto_rebuild,
        )
    else:
        raise DocskelError(f"Unknown skelebuild action: {action}")

    return _after_mutation(builder, result, args)


# --- Argument parsing ---


def _add_target_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--implementation",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include implementation bodies (default: sticky setting)"
    )
    parser.add_argument(
        "--raw-source",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include the whole backing source file"
    )
    parser.add_argument(
        "--private",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include private items"
    )


def _add_skelebuild_parser(subparsers) -> None:
    parser = subparsers.add_parser("skelebuild", help="Incrementally assemble a skeleton document")
    parser.add_argument(
        "--state-file",
        type=Path,
        help="State file (default: $DOCSKEL_STATE_FILE or the per-user state directory)"
    )
    parser.add_argument(
        "--no-rebuild",
        action="store_true",
        help="Don't rebuild the output after a mutating command"
    )
    actions = parser.add_subparsers(dest="action", required=True)

    add = actions.add_parser("add", help="Add one or more targets")
    add.add_argument("targets", nargs="+", help="Item paths, optionally prefixed with '<package>::'")
    _add_target_flags(add)
    add.add_argument("--no-validate", action="store_true", help="Store targets without resolving them")
    add.add_argument("--strict", action="store_true", help="Add nothing if any target fails")

    add_raw = actions.add_parser("add-raw", help="Add file excerpts as path[:start[:end]]")
    add_raw.add_argument("specs", nargs="+")

    add_file = actions.add_parser("add-file", help="Add whole files")
    add_file.add_argument("paths", nargs="+")

    inject = actions.add_parser("inject", help="Insert free text")
    inject.add_argument("content")
    inject.add_argument("--literal", action="store_true", help="Don't process \\n, \\t, \\r and \\\\ escapes")
    inject.add_argument("--label", help="Key to refer to this injection by")
    inject.add_argument("--after", help="Insert after the entry with this key (START inserts first)")
    inject.add_argument("--before", help="Insert before the entry with this key")
    inject.add_argument("--after-target", help="Insert after the target matching this spec")
    inject.add_argument("--before-target", help="Insert before the target matching this spec")
    inject.add_argument("--at", type=int, help="Insert at this index")

    update = actions.add_parser("update", help="Change the flags of a target")
    update.add_argument("target")
    _add_target_flags(update)

    remove = actions.add_parser("remove", help="Remove an entry by key, #index or content")
    remove.add_argument("key")

    reset = actions.add_parser("reset", help="Remove every entry")
    reset.add_argument("--output", help="Output document path")
    reset.add_argument("--plain", action=argparse.BooleanOptionalAction, default=None,
                       help="Flat output instead of nested modules")
    reset.add_argument("--package", help="Default package entry point for targets")
    _add_target_flags(reset)
    reset.add_argument("--auto-rebuild", action=argparse.BooleanOptionalAction, default=None,
                       help="Rebuild the output after every mutating command")

    status = actions.add_parser("status", help="Show entries and settings")
    status.add_argument("--keys", action="store_true", help="Machine-readable 'index type key' lines")

    actions.add_parser("preview", help="Print the document without writing it")
    actions.add_parser("rebuild", help="Write the document to the output path")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docskel",
        description="API skeletons from package documentation models"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging"
    )
    parser.add_argument(
        "--model",
        help="Document model file or package directory (default: current directory)"
    )
    parser.add_argument(
        "--private",
        action="store_true",
        help="Include private items"
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Flat output instead of nested modules"
    )
    parser.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.MARKDOWN.value,
        help="Output format (default: markdown)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Render the package or specific items")
    render.add_argument("targets", nargs="*", help="Item paths, optionally prefixed with '<package>::'")
    render.add_argument("--implementation", action="store_true", help="Include implementation bodies")
    render.add_argument("--raw-source", action="store_true", help="Include whole backing source files")

    search = subparsers.add_parser("search", help="Search items and render the matches")
    search.add_argument("query", help="Pattern; 'a|b' matches either")
    search.add_argument(
        "--domains",
        type=_domains,
        default=SearchDomain.default(),
        help="Comma-separated: name, path, doc, signature, all (default: name,doc,signature)"
    )
    search.add_argument("--case-sensitive", action="store_true")
    search.add_argument("--direct", action="store_true", help="Show only direct matches; containers collapsed")
    search.add_argument("--implementation", action="store_true", help="Include implementation bodies")
    search.add_argument("--raw-source", action="store_true", help="Include whole backing source files")
    search.add_argument("--json", action="store_true", help="Print matches as JSON instead of rendering")

    listing = subparsers.add_parser("list", help="List items as a tree")
    listing.add_argument("--query", help="Only list items matching this pattern")
    listing.add_argument("--domains", type=_domains, default=SearchDomain.default())
    listing.add_argument("--json", action="store_true", help="Print the tree as JSON")

    subparsers.add_parser("info", help="Summarize the document model")

    _add_skelebuild_parser(subparsers)
    return parser


COMMANDS = {
    "render": cmd_render,
    "search": cmd_search,
    "list": cmd_list,
    "info": cmd_info,
    "skelebuild": cmd_skelebuild,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args)
    except DocskelError as e:
        print_error(e)
        return 1


if __name__ == "__main__":
    exit(main())
