"""Glob patterns in the CODEOWNERS dialect, compiled to regular expressions.

The dialect is the one GitHub uses for CODEOWNERS:

- ``*`` matches any run of characters except ``/``
- ``**`` as a whole path segment matches any number of segments (including none)
- ``?`` matches a single character except ``/``
- ``[...]`` is a character class, ``[!...]`` or ``[^...]`` negates it
- dotfiles are matched like any other file
- braces, extglobs, comments and negation are not interpreted, so ``{``, ``}``,
  ``!``, ``#``, ``(`` and ``)`` match themselves
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class CompiledPattern:
    """A CODEOWNERS pattern compiled to an anchored regular expression."""

    source: str
    normalized: str
    regex: re.Pattern[str]

    def match(self, path: str) -> bool:
        """Check whether a path matches the pattern.

        Args:
            path: Path to test. A leading ``/`` is added when missing.

        Returns:
            True if the whole path matches.
        """
        if not path.startswith("/"):
            path = "/" + path
        return self.regex.fullmatch(path) is not None


def normalize_pattern(pattern: str) -> str:
    """Anchor a CODEOWNERS pattern at the repository root.

    Args:
        pattern: Pattern as written in the owners file.

    Returns:
        An absolute glob. Unanchored patterns match at any depth and directory
        patterns match everything below the directory.
    """
    if pattern.startswith("**"):
        pattern = f"/{pattern}"
    elif not pattern.startswith("/"):
        pattern = f"/**/{pattern}"
    if pattern.endswith("/"):
        pattern = f"{pattern}**"
    return pattern


def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile a CODEOWNERS pattern.

    Args:
        pattern: Pattern as written in the owners file.

    Returns:
        CompiledPattern matching normalized absolute paths.
    """
    normalized = normalize_pattern(pattern)
    return CompiledPattern(
        source=pattern,
        normalized=normalized,
        regex=re.compile(glob_to_regex(normalized)),
    )


def glob_to_regex(glob: str) -> str:
    """Translate an absolute glob into a regular expression source.

    Args:
        glob: Glob starting with ``/``.

    Returns:
        Regular expression source meant for ``re.fullmatch``.
    """
    segments = glob.split("/")
    regex = _translate_segment(segments[0])
    last_index = len(segments) - 1
    for index, segment in enumerate(segments[1:], start=1):
        if segment == "**":
            # A trailing globstar also matches the directory itself.
            regex += "(?:/.*)?" if index == last_index else "(?:/[^/]*)*"
        else:
            regex += "/" + _translate_segment(segment)
    return regex


def _translate_segment(segment: str) -> str:
    if segment == "*":
        return "[^/]+"

    parts: list[str] = []
    i = 0
    n = len(segment)
    while i < n:
        char = segment[i]
        if char == "*":
            while i < n and segment[i] == "*":
                i += 1
            parts.append("[^/]*")
            continue
        if char == "?":
            parts.append("[^/]")
        elif char == "[":
            end = _find_class_end(segment, i)
            if end < 0:
                parts.append(re.escape(char))
            else:
                parts.append(_translate_class(segment[i + 1 : end]))
                i = end
        elif char == "\\" and i + 1 < n:
            i += 1
            parts.append(re.escape(segment[i]))
        else:
            parts.append(re.escape(char))
        i += 1
    return "".join(parts)


def _find_class_end(segment: str, start: int) -> int:
    i = start + 1
    if i < len(segment) and segment[i] in "!^":
        i += 1
    # A leading "]" is part of the class.
    if i < len(segment) and segment[i] == "]":
        i += 1
    return segment.find("]", i)


def _translate_class(body: str) -> str:
    negate = body[:1] in ("!", "^")
    if negate:
        body = body[1:]
    body = body.replace("\\", "\\\\").replace("[", "\\[")
    if body.startswith("]"):
        body = "\\" + body
    return f"(?!/)[{'^' if negate else ''}{body}]"
