"""Command-line entry point.

Usage::

    blueprint-engine run blueprints/auth.json blueprints/db.yaml -C ./my-app
    blueprint-engine run auth.json --var useAuth=true --dry-run
    blueprint-engine validate blueprints/*.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from rich.markup import escape

from .actions import Blueprint
from .config import EngineConfig
from .context import ModuleInfo, ProjectContext, ProjectInfo
from .errors import BlueprintError
from .orchestrator import BlueprintOrchestrator, ExecutionReport
from .templates import TemplateProcessor
from .utils import (
    console,
    format_duration,
    print_banner,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)


def _parse_var(raw: str) -> tuple[str, Any]:
    """Split ``key=value``; the value is decoded as JSON when it parses."""
    if "=" not in raw:
        raise ValueError(f"Expected key=value, got {raw!r}")
    key, value = raw.split("=", 1)
    try:
        return key.strip(), json.loads(value)
    except json.JSONDecodeError:
        return key.strip(), value


def _load_blueprints(paths: list[str]) -> list[Blueprint]:
    blueprints: list[Blueprint] = []
    for raw_path in paths:
        path = Path(raw_path)
        if not path.is_file():
            console.print(f"[bold red]Error:[/bold red] Blueprint file not found: {escape(str(path))}")
            sys.exit(1)
        try:
            blueprints.append(Blueprint.load(path))
        except BlueprintError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(path.name)}: {escape(exc.message)}")
            sys.exit(1)
    return blueprints


def _template_strings(value: Any) -> list[str]:
    """Collect every string in *value*, mapping keys included (they are rendered too)."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return [s for k, v in value.items() for s in (*_template_strings(k), *_template_strings(v))]
    if isinstance(value, list):
        return [s for item in value for s in _template_strings(item)]
    return []


def _print_report(report: ExecutionReport, dry_run: bool, files: dict[str, str]) -> None:
    for result in report.results:
        console.print(f"  {escape(result.summary())}", highlight=False)
        for warning in result.warnings:
            print_warning(f"    {warning}")
        for error in result.errors:
            print_error(f"    {error}")

    rows = {
        "Blueprints": str(len(report.results)),
        "Files touched": str(len(report.files)),
        "Warnings": str(len(report.warnings)),
        "Errors": str(len(report.errors)),
        "Duration": format_duration(sum(r.duration for r in report.results)),
        "Written": "dry run" if dry_run else str(len(report.written)),
    }
    print_summary_table(rows, title="Blueprint run")

    if dry_run and report.success:
        for path in report.files:
            console.print(f"  [dim]would write[/dim] {escape(path)} ({len(files.get(path, ''))} chars)")

    if report.flush_error:
        print_error(f"Flush failed: {report.flush_error}")
        for path in report.written:
            console.print(f"  [dim]already written: {escape(path)}[/dim]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_run(args: argparse.Namespace) -> None:
    config = EngineConfig.from_env()
    updates: dict[str, Any] = {
        "strict_merge": args.strict or config.strict_merge,
        "verbose": args.verbose or config.verbose,
    }
    if args.project_root:
        updates["project_root"] = Path(args.project_root)
    if args.manifest:
        updates["manifest_path"] = args.manifest
    config = config.model_copy(update=updates)

    if not config.resolved_root.is_dir():
        console.print(f"[bold red]Error:[/bold red] Project root not found: {escape(str(config.resolved_root))}")
        sys.exit(1)

    try:
        variables = dict(_parse_var(raw) for raw in args.var)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    blueprints = _load_blueprints(args.blueprints)

    project = ProjectInfo(
        name=args.project_name or config.resolved_root.name,
        path=str(config.resolved_root),
    )
    module = ModuleInfo(id=args.module, parameters=variables) if args.module else None
    context = ProjectContext(project=project, module=module, variables=variables)

    print_banner(
        "Blueprint engine",
        escape(
            f"{len(blueprints)} blueprint(s) -> {config.resolved_root}"
            + (" (dry run)" if args.dry_run else "")
        ),
    )

    orchestrator = BlueprintOrchestrator(config=config)
    report = asyncio.run(
        orchestrator.execute_blueprints(blueprints, context, flush=not args.dry_run)
    )
    _print_report(report, args.dry_run, orchestrator.get_all_files())

    if report.success:
        console.print("[bold green]Blueprints applied successfully![/bold green]")
    elif report.flush_error:
        console.print("[bold red]Blueprint run failed while writing files.[/bold red]")
        sys.exit(1)
    else:
        console.print("[bold red]Blueprint run failed; no files were written.[/bold red]")
        sys.exit(1)


def cmd_validate(args: argparse.Namespace) -> None:
    processor = TemplateProcessor()
    problems = 0
    for blueprint in _load_blueprints(args.blueprints):
        for index, action in enumerate(blueprint.actions):
            fields = action.model_dump(exclude={"type", "condition"})
            for template in _template_strings(list(fields.values())):
                for problem in processor.validate(template):
                    problems += 1
                    print_error(f"{blueprint.id} action {index} ({action.type}): {problem}")
        if args.verbose:
            console.print(f"  {escape(blueprint.id)}: {len(blueprint.actions)} action(s)")

    if problems:
        console.print(f"[bold red]{problems} template problem(s) found.[/bold red]")
        sys.exit(1)
    print_success("All blueprints are valid.")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``python -m blueprint_engine``."""
    parser = argparse.ArgumentParser(
        prog="blueprint-engine",
        description="Blueprint engine -- apply declarative project blueprints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  blueprint-engine run auth.json\n"
            "  blueprint-engine run auth.json db.yaml -C ./my-app --project-name my-app\n"
            "  blueprint-engine run auth.json --module auth --var useAuth=true --dry-run\n"
            "  blueprint-engine validate auth.json db.yaml\n"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Execute blueprints against a project")
    run.add_argument(
        "blueprints",
        nargs="+",
        help="Blueprint files (JSON or YAML), executed in order",
    )
    run.add_argument(
        "--project-root", "-C",
        default=None,
        help="Project directory (default: $BLUEPRINT_PROJECT_ROOT or the current directory)",
    )
    run.add_argument(
        "--project-name",
        default=None,
        help="Project name exposed as project.name (default: the project directory name)",
    )
    run.add_argument(
        "--module",
        default=None,
        help="Module id exposed as module.id; --var values also become module.parameters",
    )
    run.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Template variable (repeatable; values are parsed as JSON when possible)",
    )
    run.add_argument(
        "--manifest",
        default=None,
        help="Package manifest path (default: package.json)",
    )
    run.add_argument(
        "--strict",
        action="store_true",
        help="Treat unparseable JSON/YAML during merges as fatal",
    )
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="Execute against the in-memory file tree and list the files without writing them",
    )
    run.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print each action as it runs",
    )
    run.set_defaults(func=cmd_run)

    validate = subparsers.add_parser("validate", help="Check blueprint files and their templates")
    validate.add_argument("blueprints", nargs="+", help="Blueprint files (JSON or YAML)")
    validate.add_argument("--verbose", "-v", action="store_true", help="List each blueprint")
    validate.set_defaults(func=cmd_validate)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
