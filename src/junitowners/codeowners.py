"""CODEOWNERS parsing and owner resolution for test files."""

import posixpath
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from .pattern import CompiledPattern, compile_pattern

# https://docs.github.com/en/repositories/managing-your-repositorys-settings-and-features/customizing-your-repository/about-code-owners#codeowners-file-location
CODEOWNERS_LOCATIONS = (".github/CODEOWNERS", "CODEOWNERS", "docs/CODEOWNERS")

Finder = Callable[[str], list[str]]

_LINE_BREAKS = re.compile(r"[\r\n]+")
_ORGANIZATION_PREFIX = re.compile(r"^@.+?/|^@")


@dataclass(frozen=True)
class Rule:
    """A single CODEOWNERS line."""

    pattern: str
    owners: tuple[str, ...] = ()


@dataclass(frozen=True)
class RuleMatcher:
    """A rule whose pattern has been compiled."""

    pattern: CompiledPattern
    owners: tuple[str, ...]

    def match(self, filename: str) -> bool:
        return self.pattern.match(filename)


def parse_rules(content: str) -> list[Rule]:
    """Parse CODEOWNERS content into rules, in file order.

    Everything from ``#`` to the end of a line is a comment. Lines without a
    pattern are skipped; a pattern without owners is kept with no owners.

    Args:
        content: Raw owners file text (LF or CRLF line breaks).

    Returns:
        List of rules in declaration order.
    """
    rules: list[Rule] = []
    for line in _LINE_BREAKS.split(content):
        tokens = line.split("#", 1)[0].split()
        if not tokens:
            continue
        rules.append(Rule(pattern=tokens[0], owners=tuple(tokens[1:])))
    return rules


def compile_rule(rule: Rule) -> RuleMatcher:
    """Compile the pattern of a rule."""
    return RuleMatcher(pattern=compile_pattern(rule.pattern), owners=rule.owners)


class Matcher:
    """Resolves a path to the owners declared for it.

    The last matching rule in the owners file takes precedence, so rules are
    kept in reverse declaration order and the first match wins.
    """

    def __init__(self, rules: list[Rule]) -> None:
        self._rule_matchers = [compile_rule(rule) for rule in rules]
        self._rule_matchers.reverse()

    def find_owners(self, filename: str) -> list[str]:
        """Find the owners of a path.

        Args:
            filename: Path relative to the repository root. A leading ``/``
                is optional.

        Returns:
            Owners of the last declared matching rule, or an empty list.
        """
        for rule_matcher in self._rule_matchers:
            if rule_matcher.match(filename):
                return list(rule_matcher.owners)
        return []


def create_matcher(codeowners_content: str) -> Matcher:
    """Build a Matcher from raw CODEOWNERS content."""
    return Matcher(parse_rules(codeowners_content))


def find_codeowners_file(project_root: str | Path = ".") -> Path | None:
    """Locate the owners file of a project.

    Args:
        project_root: Repository root directory.

    Returns:
        Path of the first existing owners file, or None if there is none.
    """
    root = Path(project_root)
    for location in CODEOWNERS_LOCATIONS:
        candidate = root / location
        if candidate.is_file():
            return candidate
    return None


def join_path(base_directory: str, filename: str) -> str:
    """Join path components and normalize the result, keeping every component."""
    joined = "/".join(part for part in (base_directory, filename) if part)
    return posixpath.normpath(joined) if joined else "."


def strip_organization(owner: str) -> str:
    """Turn ``@org/team`` or ``@user`` into ``team`` or ``user``."""
    return _ORGANIZATION_PREFIX.sub("", owner, count=1)


def create_finder(
    base_directory: str,
    project_root: str | Path = ".",
    console: Console | None = None,
) -> Finder:
    """Create a function returning the owners of a test file.

    Args:
        base_directory: Directory the test report file names are relative to,
            itself relative to the repository root.
        project_root: Repository root where the owners file is looked up.
        console: Console used for progress output.

    Returns:
        Function mapping a test file name to bare owner names. When the
        project has no owners file, the function always returns an empty list.
    """
    codeowners = find_codeowners_file(project_root)
    if codeowners is None:
        return lambda filename: []

    console = console or Console(stderr=True)
    console.print(f"Parsing {codeowners}", markup=False)
    matcher = create_matcher(codeowners.read_text(encoding="utf-8"))

    def find_owners(filename: str) -> list[str]:
        canonical_path = join_path(base_directory, filename)
        return [strip_organization(owner) for owner in matcher.find_owners(canonical_path)]

    return find_owners
