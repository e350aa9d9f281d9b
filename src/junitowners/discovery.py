"""Discovery of JUnit XML report files."""

import glob
from pathlib import Path


def discover_report_files(pattern: str, root: str | Path = ".") -> list[Path]:
    """Expand a glob into the report files it matches.

    Args:
        pattern: Glob, relative to ``root`` unless absolute. ``**`` matches
            any number of directories.
        root: Directory relative patterns are resolved against.

    Returns:
        Matching regular files, sorted, without duplicates.
    """
    matches = glob.glob(pattern, root_dir=root, recursive=True)
    files = {Path(root, match) for match in matches if Path(root, match).is_file()}
    return sorted(files)
