"""Exceptions raised while reading JUnit XML test reports."""


class JUnitReportError(Exception):
    """Base class for errors caused by a malformed test report."""


class XmlSyntaxError(JUnitReportError):
    """The report is not well-formed XML."""


class StructuralValidationError(JUnitReportError):
    """The XML tree does not have the expected suite/case shape.

    Attributes:
        element: Name of the offending element (e.g. ``testcase``).
        path: Location of the element in the tree, e.g.
            ``testsuites.testsuite[0].testcase[2]``.
        reason: What is wrong with it.
    """

    def __init__(self, element: str, path: str, reason: str) -> None:
        self.element = element
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid <{element}> at {path}: {reason}")


class MissingFileAttributionError(JUnitReportError):
    """A test case has no ``file`` attribute and no root suite to inherit it from."""

    def __init__(self, test_case_name: str) -> None:
        self.test_case_name = test_case_name
        super().__init__(f'Element <testcase> must have "file" attribute (name={test_case_name})')
