#!/usr/bin/env python3
"""
Console interface for importing job application CSV files.
Runs the full import pipeline on a file and renders the detected mapping,
validation issues, duplicate groups and the import summary.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .core.config import settings
from .core.logging_config import configure_logging
from .domain.imports.orchestrator import run_import
from .domain.imports.templates import list_templates
from .schemas import ImportOptions, ImportProgress, ImportResult
from .utils.serialization import make_json_safe

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_IMPORT_FAILED = 1
EXIT_UNREADABLE = 2

ISSUE_DISPLAY_LIMIT = 25


class ImportConsole:
    """Renders import results with rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_progress(self, update: ImportProgress) -> None:
        self.console.print(f"[dim]{update.progress:>3}% {update.stage.value}: {update.message}[/dim]")

    def print_templates(self) -> None:
        table = Table(title="Available Templates")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Headers", style="dim")
        for template in list_templates():
            table.add_row(template.id, template.name, ", ".join(template.headers))
        self.console.print(table)

    def print_mapping(self, result: ImportResult) -> None:
        if result.detection is None:
            return
        table = Table(title="Detected Column Mapping")
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Column", style="white")
        table.add_column("Confidence", justify="right")
        for field, column in result.mapping.items():
            confidence = result.detection.confidence.get(field)
            shown = f"{confidence:.0%}" if confidence is not None else "manual"
            table.add_row(field, column, shown)
        self.console.print(table)

        for suggestion in result.detection.suggestions:
            self.console.print(f"[yellow]• {suggestion}[/yellow]")

    def print_issues(self, result: ImportResult) -> None:
        if result.validation is None:
            return
        issues = result.validation.errors + result.validation.warnings
        if not issues:
            return

        table = Table(title=f"Validation Issues ({len(issues)})")
        table.add_column("Row", justify="right", style="dim")
        table.add_column("Severity")
        table.add_column("Column", style="cyan")
        table.add_column("Message", style="white")
        for issue in issues[:ISSUE_DISPLAY_LIMIT]:
            style = "red" if issue.severity.value == "error" else "yellow"
            table.add_row(str(issue.row), f"[{style}]{issue.severity.value}[/{style}]", issue.column, issue.message)
        self.console.print(table)
        if len(issues) > ISSUE_DISPLAY_LIMIT:
            self.console.print(f"[dim]... {len(issues) - ISSUE_DISPLAY_LIMIT} more issues not shown[/dim]")

    def print_duplicates(self, result: ImportResult) -> None:
        if not result.duplicate_groups:
            return
        table = Table(title="Possible Duplicates")
        table.add_column("Group", style="cyan", no_wrap=True)
        table.add_column("Members", style="white")
        table.add_column("Confidence", justify="right")
        table.add_column("Reasons", style="dim")
        table.add_column("Suggestion")
        for group in result.duplicate_groups:
            table.add_row(
                group.id,
                ", ".join(member.ref for member in group.members),
                f"{group.confidence:.0%}",
                "; ".join(group.match_reasons),
                group.suggested_resolution.value,
            )
        self.console.print(table)

    def print_summary(self, result: ImportResult) -> None:
        summary = result.summary
        lines = [
            f"Rows read: {summary.total_rows}",
            f"Imported: {summary.successful_imports}",
            f"Skipped: {summary.skipped_rows}",
            f"Duplicates found: {summary.duplicates_found}",
            f"Issues resolved: {summary.issues_resolved}",
        ]
        if result.encoding is not None:
            lines.insert(0, f"Encoding: {result.encoding.encoding} ({result.encoding.confidence:.0%})")

        if result.success:
            self.console.print(Panel("\n".join(lines), title="Import Complete", border_style="green"))
        else:
            message = result.failure.message if result.failure else "Unknown error"
            kind = result.failure.kind.value if result.failure else "error"
            body = f"[red]❌ Import failed ({kind}):[/red]\n{message}\n\n" + "\n".join(lines)
            self.console.print(Panel(body, title="Import Failed", border_style="red"))

        for suggestion in summary.suggestions:
            if result.detection is not None and suggestion in result.detection.suggestions:
                continue
            self.console.print(f"[yellow]• {suggestion}[/yellow]")

    def print_result(self, result: ImportResult) -> None:
        self.print_mapping(result)
        self.print_issues(result)
        self.print_duplicates(result)
        self.print_summary(result)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="application-import",
        description="Import job applications from a CSV export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s applications.csv                     # Detect columns and import
  %(prog)s export.csv --template linkedin       # Map through a known template
  %(prog)s applications.csv --force --json      # Import valid rows, print JSON
  %(prog)s --list-templates                     # Show built-in templates
        """
    )

    parser.add_argument('file', nargs='?', help='CSV file to import')
    parser.add_argument('--template', help='Template ID to map columns with')
    parser.add_argument(
        '--force',
        action='store_true',
        help='Import rows without errors even when other rows failed validation'
    )
    parser.add_argument('--skip-validation', action='store_true', help='Convert rows without validating them')
    parser.add_argument('--no-duplicates', action='store_true', help='Skip duplicate detection')
    parser.add_argument('--json', action='store_true', help='Print the import result as JSON')
    parser.add_argument('--list-templates', action='store_true', help='List built-in templates and exit')
    parser.add_argument(
        '--log-level',
        default=settings.log_level,
        help=f'Log level (default: {settings.log_level})'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    import_console = ImportConsole()

    if args.list_templates:
        import_console.print_templates()
        return EXIT_OK

    if not args.file:
        parser.print_usage(sys.stderr)
        return EXIT_UNREADABLE

    try:
        with open(args.file, "rb") as handle:
            content = handle.read()
    except OSError as exc:
        import_console.console.print(f"[red]❌ Cannot read {args.file}: {exc.strerror or exc}[/red]")
        return EXIT_UNREADABLE
    logger.info(f"Read {len(content)} bytes from {args.file}")

    options = ImportOptions(
        template_id=args.template,
        skip_validation=args.skip_validation,
        force_import=args.force,
        detect_duplicates=not args.no_duplicates,
    )
    progress = None
    if not args.json:
        import_console.console.print(Text(f"Importing {args.file}", style="bold blue"))
        progress = import_console.print_progress
    result = run_import(content, options, progress_callback=progress)

    if args.json:
        print(json.dumps(make_json_safe(result), indent=2, ensure_ascii=False))
    else:
        import_console.print_result(result)

    return EXIT_OK if result.success else EXIT_IMPORT_FAILED


if __name__ == "__main__":
    sys.exit(main())
