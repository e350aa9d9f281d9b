"""Command-line entry point: JUnit XML reports in, owner-attributed report out."""

import argparse
import json
import sys
from pathlib import Path

from rich.console import Console

from .codeowners import create_finder
from .config import ConfigError, ReportConfig, load_config
from .discovery import discover_report_files
from .errors import JUnitReportError
from .summary import write_summary
from .test_report import TestReport, parse_test_report_files


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="junitowners",
        description="Attribute JUnit XML test results to CODEOWNERS owners.",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--junit-xml-path", help="Glob of the JUnit XML files")
    parser.add_argument(
        "--base-directory",
        dest="test_case_base_directory",
        help="Directory the file names in the reports are relative to",
    )
    parser.add_argument("--project-root", help="Repository root holding the CODEOWNERS file")
    parser.add_argument("--summary-path", help="Markdown file to append failed tests to")
    parser.add_argument("--json-output", help="File to write the report JSON to")
    return parser


def resolve_config(args: argparse.Namespace) -> ReportConfig:
    """Merge the configuration file with command-line overrides.

    Raises:
        ConfigError: If the configuration is missing or invalid.
    """
    values = load_config(args.config).model_dump() if args.config else {}
    for key in (
        "junit_xml_path",
        "test_case_base_directory",
        "project_root",
        "summary_path",
        "json_output",
    ):
        value = getattr(args, key)
        if value is not None:
            values[key] = value
    if not values.get("junit_xml_path"):
        raise ConfigError("A JUnit XML path is required (--junit-xml-path or junit_xml_path)")
    try:
        return ReportConfig(**values)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def run(config: ReportConfig, console: Console) -> TestReport:
    """Discover the reports, attribute owners and write the outputs."""
    report_files = discover_report_files(config.junit_xml_path, root=config.project_root)
    find_owners = create_finder(
        config.test_case_base_directory, project_root=config.project_root, console=console
    )
    report = parse_test_report_files(report_files, find_owners, console=console)

    if config.json_output:
        output_path = Path(config.json_output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)

    write_summary(report, config, console=console)
    return report


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console(stderr=True)
    try:
        config = resolve_config(args)
        run(config, console)
    except (ConfigError, JUnitReportError) as e:
        console.print(f"Error: {e}", style="red", markup=False)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
