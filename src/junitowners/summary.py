"""Summary of failed tests for humans and CI logs."""

import os
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .codeowners import join_path
from .config import ReportConfig
from .test_report import TestCase, TestReport


def format_failed_tests_markdown(
    report: TestReport,
    base_directory: str = "",
    repository_url: str | None = None,
    ref: str | None = None,
) -> str:
    """Render the failed tests as a Markdown table.

    Args:
        report: Test report.
        base_directory: Directory the test file names are relative to.
        repository_url: Repository URL. Test files are linked when both this
            and ``ref`` are given.
        ref: Commit or branch of the links.

    Returns:
        Markdown section, or an empty string when nothing failed.
    """
    failed_test_cases = report.failed_test_cases
    if not failed_test_cases:
        return ""

    lines = [
        "## Failed tests",
        "",
        "| Test case | Test file | Owner |",
        "| --- | --- | --- |",
    ]
    for test_case in failed_test_cases:
        test_file = test_case.filename
        if repository_url and ref:
            blob_path = join_path(base_directory, test_file)
            blob_url = f"{repository_url.rstrip('/')}/blob/{ref}/{blob_path}"
            test_file = f'<a href="{blob_url}">{test_file}</a>'
        lines.append(
            f"| <code>{_escape_cell(test_case.name)}</code> | {test_file} "
            f"| {'<br>'.join(test_case.owners)} |"
        )
    return "\n".join(lines) + "\n"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def format_failure_annotations(report: TestReport, base_directory: str = "") -> list[str]:
    """Render failed tests as GitHub Actions error annotations."""
    return [_annotation(test_case, base_directory) for test_case in report.failed_test_cases]


def _annotation(test_case: TestCase, base_directory: str) -> str:
    canonical_path = join_path(base_directory, test_case.filename)
    return f"::error file={canonical_path}::FAIL: ({','.join(test_case.owners)}) {test_case.name}"


def write_summary(
    report: TestReport,
    config: ReportConfig,
    console: Console | None = None,
) -> Path | None:
    """Print failed tests and append them to the job summary.

    The Markdown goes to ``config.summary_path``, or to the file named by
    ``GITHUB_STEP_SUMMARY`` when no path is configured.

    Args:
        report: Test report.
        config: Run configuration.
        console: Console used for output.

    Returns:
        Path of the summary file written to, or None.
    """
    console = console or Console(stderr=True)
    failed_test_cases = report.failed_test_cases

    table = Table(title="Test Files", show_header=True, header_style="bold cyan")
    table.add_column("Test file", style="bold")
    table.add_column("Owner")
    table.add_column("Test cases", justify="right")
    table.add_column("Time (s)", justify="right")
    for test_file in report.test_files:
        table.add_row(
            Text(test_file.filename),
            Text(", ".join(test_file.owners)),
            str(test_file.total_test_cases),
            f"{test_file.total_time:.3f}",
        )
    console.print(table)

    if failed_test_cases:
        console.print(f"[red]✗ {len(failed_test_cases)} test case(s) failed[/red]")
        for annotation in format_failure_annotations(report, config.test_case_base_directory):
            # Workflow commands must reach stdout unstyled.
            print(annotation)
    else:
        console.print("[green]✓ All test cases passed[/green]")

    summary_path = config.summary_path or os.environ.get("GITHUB_STEP_SUMMARY")
    if not summary_path:
        return None
    markdown = format_failed_tests_markdown(
        report,
        config.test_case_base_directory,
        repository_url=config.repository_url,
        ref=config.ref,
    )
    path = Path(summary_path)
    if markdown:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(markdown)
    return path
