"""Test reports built from JUnit XML files, attributed to code owners."""

import posixpath
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console

from .errors import MissingFileAttributionError
from .junit_xml import JUnitDocument, JUnitTestCase, JUnitTestSuite, parse_junit_xml

FindOwners = Callable[[str], list[str]]


@dataclass(frozen=True)
class TestCase:
    """A single test case taken from a report."""

    __test__ = False

    name: str
    filename: str
    owners: tuple[str, ...]
    time: float
    success: bool
    failure_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "name": self.name,
            "filename": self.filename,
            "owners": list(self.owners),
            "time": self.time,
            "success": self.success,
        }
        if self.failure_message is not None:
            data["failureMessage"] = self.failure_message
        return data


@dataclass
class TestFile:
    """Test cases of one file, summed up."""

    __test__ = False

    filename: str
    owners: tuple[str, ...]
    total_time: float = 0.0
    total_test_cases: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "filename": self.filename,
            "owners": list(self.owners),
            "totalTime": self.total_time,
            "totalTestCases": self.total_test_cases,
        }


@dataclass
class TestReport:
    """Test files and test cases found in a set of reports."""

    __test__ = False

    test_files: list[TestFile] = field(default_factory=list)
    test_cases: list[TestCase] = field(default_factory=list)

    @property
    def failed_test_cases(self) -> list[TestCase]:
        return [test_case for test_case in self.test_cases if not test_case.success]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "testFiles": [test_file.to_dict() for test_file in self.test_files],
            "testCases": [test_case.to_dict() for test_case in self.test_cases],
        }


def parse_test_report_files(
    test_report_files: list[str | Path],
    find_owners: FindOwners,
    console: Console | None = None,
) -> TestReport:
    """Read JUnit XML files and build a test report.

    Files are read and parsed one after another, in the given order.

    Args:
        test_report_files: Paths of JUnit XML files.
        find_owners: Function returning the owners of a test file.
        console: Console used for progress output.

    Returns:
        TestReport with every test case and the per-file totals.

    Raises:
        JUnitReportError: If any report is malformed. No partial report is
            returned.
    """
    console = console or Console(stderr=True)
    console.rule(f"Parsing {len(test_report_files)} test report files")
    all_test_cases: list[TestCase] = []
    for test_report_file in test_report_files:
        console.print(f"Parsing the test report: {test_report_file}", markup=False)
        junit_xml = parse_junit_xml(Path(test_report_file).read_bytes())
        all_test_cases.extend(find_test_cases_from_junit_xml(junit_xml, find_owners))
    console.rule()
    console.print(f"Found {len(all_test_cases)} test cases in the test reports")

    return TestReport(
        test_files=group_test_cases_by_test_file(all_test_cases),
        test_cases=all_test_cases,
    )


def group_test_cases_by_test_file(test_cases: list[TestCase]) -> list[TestFile]:
    """Sum up test cases per file, in order of first occurrence.

    Owners of a file are those of its first test case.
    """
    test_files: dict[str, TestFile] = {}
    for test_case in test_cases:
        test_file = test_files.get(test_case.filename)
        if test_file is None:
            test_file = TestFile(filename=test_case.filename, owners=test_case.owners)
            test_files[test_case.filename] = test_file
        test_file.total_time += test_case.time
        test_file.total_test_cases += 1
    return list(test_files.values())


def find_test_cases_from_junit_xml(
    junit_xml: JUnitDocument, find_owners: FindOwners
) -> list[TestCase]:
    """Flatten the test cases of a document.

    Suites are visited depth-first, each suite's own cases before those of
    its nested suites.

    Args:
        junit_xml: Validated JUnit document.
        find_owners: Function returning the owners of a test file.

    Returns:
        Test cases in document order.

    Raises:
        MissingFileAttributionError: If a test case has no file name.
    """
    root = junit_xml.root_suites
    # Mocha and Cypress only put the file name on the first <testsuite>.
    root_suite_filename = root[0].file if root else None

    test_cases: list[TestCase] = []
    for test_suite in _walk_suites(root):
        for junit_test_case in test_suite.testcases:
            filename = posixpath.normpath(
                _determine_filename(junit_test_case, root_suite_filename)
            )
            test_cases.append(
                TestCase(
                    name=junit_test_case.name,
                    filename=filename,
                    owners=tuple(find_owners(filename)),
                    time=junit_test_case.time,
                    success=junit_test_case.failure is None and junit_test_case.error is None,
                    failure_message=_failure_message(junit_test_case),
                )
            )
    return test_cases


def _walk_suites(root: tuple[JUnitTestSuite, ...]) -> Iterator[JUnitTestSuite]:
    stack = list(reversed(root))
    while stack:
        test_suite = stack.pop()
        yield test_suite
        stack.extend(reversed(test_suite.testsuites))


def _determine_filename(test_case: JUnitTestCase, root_suite_filename: str | None) -> str:
    if test_case.file:
        return test_case.file
    if root_suite_filename:
        return root_suite_filename
    raise MissingFileAttributionError(test_case.name)


def _failure_message(test_case: JUnitTestCase) -> str | None:
    for payload in (test_case.failure, test_case.error):
        if payload is not None:
            message = payload.fold()
            if message is not None:
                return message
    return None
