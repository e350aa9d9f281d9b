"""JUnit XML parsing and structural validation.

Test runners disagree on the shape of JUnit XML. Some wrap suites in a
``<testsuites>`` envelope, some emit a bare ``<testsuite>`` root, suites may
nest, and failures come as text, as a ``message`` attribute or as several
sibling elements. Parsing happens in two steps:

1. ``load_junit_tree`` turns the XML into a loose tree of dicts, lists and
   strings. Attributes are keys prefixed with ``@_``, ``testsuite`` and
   ``testcase`` children are always lists, and ``time`` attributes are numbers.
2. ``validate_junit_tree`` checks that tree and converts it into frozen
   dataclasses, raising ``StructuralValidationError`` for anything that does
   not fit.
"""

import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET

from .errors import StructuralValidationError, XmlSyntaxError

# Elements that are lists even when they occur once.
ARRAY_ELEMENTS = frozenset({"testsuite", "testcase"})
# Elements whose ``time`` attribute is a duration in seconds.
TIMED_ELEMENTS = frozenset({"testsuites", "testsuite", "testcase"})

MAX_ELEMENT_DEPTH = 256
MAX_SUITE_DEPTH = 128


@dataclass(frozen=True)
class FailureText:
    """A ``<failure>`` or ``<error>`` element with only text content."""

    text: str

    def fold(self) -> str | None:
        return self.text


@dataclass(frozen=True)
class FailureDetail:
    """A ``<failure>`` or ``<error>`` element with attributes.

    Only the ``message`` attribute is kept; text content next to it is dropped.
    """

    message: str | None = None

    def fold(self) -> str | None:
        return self.message


@dataclass(frozen=True)
class FailureList:
    """Several ``<failure>`` or ``<error>`` siblings on one test case."""

    items: tuple[FailureText | FailureDetail, ...]

    def fold(self) -> str | None:
        return "\n".join(item.fold() or "" for item in self.items)


FailurePayload = FailureText | FailureDetail | FailureList


@dataclass(frozen=True)
class JUnitTestCase:
    """A validated ``<testcase>`` element."""

    name: str
    time: float
    file: str | None = None
    failure: FailurePayload | None = None
    error: FailurePayload | None = None


@dataclass(frozen=True)
class JUnitTestSuite:
    """A validated ``<testsuite>`` element."""

    testcases: tuple[JUnitTestCase, ...] = ()
    testsuites: tuple["JUnitTestSuite", ...] = ()
    file: str | None = None


@dataclass(frozen=True)
class JUnitDocument:
    """A validated JUnit XML document.

    Attributes:
        testsuites: Suites inside a ``<testsuites>`` envelope, or None when
            there is no envelope or it has no suites.
        testsuite: Suites at the document root, or None.
    """

    testsuites: tuple[JUnitTestSuite, ...] | None = None
    testsuite: tuple[JUnitTestSuite, ...] | None = None

    @property
    def root_suites(self) -> tuple[JUnitTestSuite, ...]:
        """Outermost suites, preferring the envelope."""
        if self.testsuites is not None:
            return self.testsuites
        if self.testsuite is not None:
            return self.testsuite
        return ()


def parse_junit_xml(xml: str | bytes) -> JUnitDocument:
    """Parse and validate a JUnit XML document.

    Args:
        xml: Raw XML content.

    Returns:
        The validated document.

    Raises:
        XmlSyntaxError: If the content is not well-formed XML.
        StructuralValidationError: If the document does not have the
            expected suite/case structure.
    """
    return validate_junit_tree(load_junit_tree(xml))


def load_junit_tree(xml: str | bytes) -> dict[str, Any]:
    """Parse XML into a loosely-typed tree.

    Args:
        xml: Raw XML content.

    Returns:
        Dictionary with the root element name as its only key.

    Raises:
        XmlSyntaxError: If the content is not well-formed XML or declares
            entities.
        StructuralValidationError: If elements are nested too deeply.
    """
    try:
        root = SafeET.fromstring(xml)
    except ET.ParseError as e:
        raise XmlSyntaxError(f"Malformed XML: {e}") from e
    except DefusedXmlException as e:
        raise XmlSyntaxError(f"Forbidden XML construct: {e}") from e

    tag = _local_name(root.tag)
    node = _element_to_node(root, tag, tag, depth=1)
    return {tag: [node] if tag in ARRAY_ELEMENTS else node}


def _local_name(name: str) -> str:
    # ElementTree spells namespaced names as "{uri}local".
    return name.rsplit("}", 1)[-1]


def _coerce_attribute(tag: str, name: str, value: str) -> Any:
    if name == "time" and tag in TIMED_ELEMENTS:
        # Some runners write an empty duration.
        if not value.strip():
            return 0.0
        try:
            number = float(value)
        except ValueError:
            return value
        if math.isfinite(number):
            return number
    return value


def _element_to_node(element: ET.Element, tag: str, path: str, depth: int) -> Any:
    if depth > MAX_ELEMENT_DEPTH:
        raise StructuralValidationError(
            tag, path, f"elements are nested deeper than {MAX_ELEMENT_DEPTH} levels"
        )

    node: dict[str, Any] = {}
    for key, value in element.attrib.items():
        name = _local_name(key)
        node[f"@_{name}"] = _coerce_attribute(tag, name, value)

    repeated: set[str] = set()
    text_parts = [element.text or ""]
    for child in element:
        text_parts.append(child.tail or "")
        child_tag = _local_name(child.tag)
        value = _element_to_node(child, child_tag, f"{path}.{child_tag}", depth + 1)
        if child_tag in ARRAY_ELEMENTS:
            node.setdefault(child_tag, []).append(value)
        elif child_tag in repeated:
            node[child_tag].append(value)
        elif child_tag in node:
            node[child_tag] = [node[child_tag], value]
            repeated.add(child_tag)
        else:
            node[child_tag] = value

    text = "".join(text_parts).strip()
    if not node:
        return text
    if text:
        node["#text"] = text
    return node


def validate_junit_tree(tree: Any) -> JUnitDocument:
    """Validate a loose tree and convert it into a JUnitDocument.

    Args:
        tree: Output of ``load_junit_tree``, or an equivalent dictionary.

    Returns:
        The validated document.

    Raises:
        StructuralValidationError: If any element has the wrong shape.
    """
    if not isinstance(tree, dict):
        raise StructuralValidationError(
            "document", "$", f"expected an element tree, got {_describe(tree)}"
        )

    envelope = None
    if "testsuites" in tree:
        testsuites = _as_element(tree["testsuites"], "testsuites", "testsuites")
        if "testsuite" in testsuites:
            envelope = _validate_suites(testsuites["testsuite"], "testsuites.testsuite", depth=1)

    top_level = None
    if "testsuite" in tree:
        top_level = _validate_suites(tree["testsuite"], "testsuite", depth=1)

    return JUnitDocument(testsuites=envelope, testsuite=top_level)


def _describe(value: Any) -> str:
    if isinstance(value, dict):
        return "an element"
    if isinstance(value, list):
        return "a list"
    if isinstance(value, str):
        return f"text {value!r}"
    if value is None:
        return "nothing"
    return f"{type(value).__name__} {value!r}"


def _as_element(value: Any, element: str, path: str) -> dict[str, Any]:
    # An empty element without attributes is loaded as "".
    if value == "":
        return {}
    if not isinstance(value, dict):
        raise StructuralValidationError(
            element, path, f"expected an element, got {_describe(value)}"
        )
    return value


def _optional_string(node: dict[str, Any], attribute: str, element: str, path: str) -> str | None:
    value = node.get(f"@_{attribute}")
    if value is not None and not isinstance(value, str):
        raise StructuralValidationError(
            element, path, f'attribute "{attribute}" must be a string, got {_describe(value)}'
        )
    return value


def _validate_suites(value: Any, path: str, depth: int) -> tuple[JUnitTestSuite, ...]:
    if not isinstance(value, list):
        raise StructuralValidationError(
            "testsuite", path, f"expected a list of suites, got {_describe(value)}"
        )
    return tuple(
        _validate_suite(item, f"{path}[{index}]", depth) for index, item in enumerate(value)
    )


def _validate_suite(value: Any, path: str, depth: int) -> JUnitTestSuite:
    if depth > MAX_SUITE_DEPTH:
        raise StructuralValidationError(
            "testsuite", path, f"suites are nested deeper than {MAX_SUITE_DEPTH} levels"
        )
    node = _as_element(value, "testsuite", path)
    file = _optional_string(node, "file", "testsuite", path)

    testcases: tuple[JUnitTestCase, ...] = ()
    if "testcase" in node:
        cases = node["testcase"]
        if not isinstance(cases, list):
            raise StructuralValidationError(
                "testcase",
                f"{path}.testcase",
                f"expected a list of test cases, got {_describe(cases)}",
            )
        testcases = tuple(
            _validate_case(case, f"{path}.testcase[{index}]") for index, case in enumerate(cases)
        )

    testsuites: tuple[JUnitTestSuite, ...] = ()
    if "testsuite" in node:
        testsuites = _validate_suites(node["testsuite"], f"{path}.testsuite", depth + 1)

    return JUnitTestSuite(testcases=testcases, testsuites=testsuites, file=file)


def _validate_case(value: Any, path: str) -> JUnitTestCase:
    if not isinstance(value, dict):
        raise StructuralValidationError(
            "testcase", path, f"expected an element with attributes, got {_describe(value)}"
        )

    if "@_name" not in value:
        raise StructuralValidationError("testcase", path, 'missing required attribute "name"')
    name = value["@_name"]
    if not isinstance(name, str):
        raise StructuralValidationError(
            "testcase", path, f'attribute "name" must be a string, got {_describe(name)}'
        )

    if "@_time" not in value:
        raise StructuralValidationError(
            "testcase", path, f'missing required attribute "time" (name={name})'
        )
    time = value["@_time"]
    if isinstance(time, bool) or not isinstance(time, (int, float)) or not math.isfinite(time):
        raise StructuralValidationError(
            "testcase",
            path,
            f'attribute "time" must be a number, got {_describe(time)} (name={name})',
        )
    if time < 0:
        raise StructuralValidationError(
            "testcase", path, f'attribute "time" must not be negative, got {time} (name={name})'
        )

    return JUnitTestCase(
        name=name,
        time=float(time),
        file=_optional_string(value, "file", "testcase", path),
        failure=_validate_failure(value, "failure", path),
        error=_validate_failure(value, "error", path),
    )


def _validate_failure(case: dict[str, Any], element: str, case_path: str) -> FailurePayload | None:
    if element not in case:
        return None
    value = case[element]
    path = f"{case_path}.{element}"
    if isinstance(value, list):
        return FailureList(
            items=tuple(
                _validate_failure_item(item, element, f"{path}[{index}]")
                for index, item in enumerate(value)
            )
        )
    return _validate_failure_item(value, element, path)


def _validate_failure_item(value: Any, element: str, path: str) -> FailureText | FailureDetail:
    if isinstance(value, str):
        return FailureText(text=value)
    if isinstance(value, dict):
        message = value.get("@_message")
        if message is not None and not isinstance(message, str):
            raise StructuralValidationError(
                element, path, f'attribute "message" must be a string, got {_describe(message)}'
            )
        return FailureDetail(message=message)
    raise StructuralValidationError(
        element, path, f"expected text, an element or a list of them, got {_describe(value)}"
    )
