"""Attribute JUnit XML test results to the owners declared in CODEOWNERS."""

from .codeowners import Matcher, Rule, create_finder, create_matcher, parse_rules
from .errors import (
    JUnitReportError,
    MissingFileAttributionError,
    StructuralValidationError,
    XmlSyntaxError,
)
from .junit_xml import JUnitDocument, parse_junit_xml
from .test_report import (
    TestCase,
    TestFile,
    TestReport,
    find_test_cases_from_junit_xml,
    group_test_cases_by_test_file,
    parse_test_report_files,
)

__all__ = [
    "JUnitDocument",
    "JUnitReportError",
    "Matcher",
    "MissingFileAttributionError",
    "Rule",
    "StructuralValidationError",
    "TestCase",
    "TestFile",
    "TestReport",
    "XmlSyntaxError",
    "create_finder",
    "create_matcher",
    "find_test_cases_from_junit_xml",
    "group_test_cases_by_test_file",
    "parse_junit_xml",
    "parse_rules",
    "parse_test_report_files",
]
