"""Configuration loading for junitowners runs."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# ${VAR} or ${VAR:-default}
_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")


class ConfigError(Exception):
    """The configuration file cannot be loaded."""


class ReportConfig(BaseModel):
    """Settings of a report run."""

    model_config = ConfigDict(extra="forbid")

    junit_xml_path: str = Field(description="Glob of the JUnit XML files to read")
    test_case_base_directory: str = Field(
        default="",
        description="Directory the file names in the reports are relative to",
    )
    project_root: str = Field(
        default=".",
        description="Repository root, where the CODEOWNERS file is looked up",
    )
    summary_path: str | None = Field(
        default=None,
        description="Markdown file to append the failed tests to",
    )
    repository_url: str | None = Field(
        default=None,
        description="Repository URL used to link test files, e.g. https://github.com/org/repo",
    )
    ref: str | None = Field(default=None, description="Commit or branch used in file links")
    json_output: str | None = Field(default=None, description="File to write the report JSON to")

    @field_validator("junit_xml_path")
    @classmethod
    def validate_junit_xml_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("junit_xml_path must not be empty")
        return v


def expand_env_vars(value: Any) -> Any:
    """Expand environment variable references in a parsed config value.

    Strings may reference ``${VAR}`` or ``${VAR:-default}``; dicts and lists
    are expanded recursively.

    Args:
        value: Parsed YAML value.

    Returns:
        The value with references replaced.

    Raises:
        ValueError: If a variable without default is not set.
    """
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(_substitute, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _substitute(match: re.Match[str]) -> str:
    name, default = match.group(1), match.group(2)
    value = os.environ.get(name)
    if value is not None:
        return value
    if default is not None:
        return default
    raise ValueError(f"Required environment variable '{name}' is not set")


def load_config(config_path: str | Path) -> ReportConfig:
    """Load a YAML configuration file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated ReportConfig.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    path = Path(config_path)
    try:
        raw_config = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    try:
        return ReportConfig(**expand_env_vars(raw_config))
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        raise ConfigError(_format_error(path, e)) from e


def _format_error(path: Path, error: ValueError) -> str:
    if not isinstance(error, ValidationError):
        return f"{path}: {error}"
    lines = [f"Invalid configuration in {path}:"]
    for detail in error.errors():
        field_path = ".".join(str(loc) for loc in detail["loc"])
        lines.append(f"  {field_path}: {detail['msg']}")
    return "\n".join(lines)
