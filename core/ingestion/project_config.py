"""Project descriptor loading.

Every ingested repository declares how it should be documented in a JSON
descriptor at its root. The descriptor is mandatory: without a valid parser
identifier the pipeline cannot know how to extract compounds.
"""

import asyncio
import json
from pathlib import Path, PurePosixPath
from typing import Any

import structlog
from pydantic import ValidationError

from .errors import ConfigError
from .models import ProjectConfig

logger = structlog.get_logger(__name__)

DESCRIPTOR_FILENAME = "docsmith.json"


def validate_ignore_pattern(pattern: str) -> None:
    """Check that an ignore pattern stays inside the working copy.

    Args:
        pattern: Glob pattern from the descriptor.

    Raises:
        ConfigError: If the pattern is empty, names the root itself, is
            absolute, walks up with ``..`` or uses ``**`` inside a path
            component.
    """
    stripped = pattern.strip()
    if not stripped:
        raise ConfigError("Ignore patterns must not be empty")

    posix = PurePosixPath(stripped.replace("\\", "/"))
    if posix.is_absolute() or stripped.startswith("~"):
        raise ConfigError(f"Ignore pattern must be relative: {pattern!r}")
    if ".." in posix.parts:
        raise ConfigError(f"Ignore pattern must not contain '..': {pattern!r}")
    if not posix.parts:
        raise ConfigError(f"Ignore pattern must not match the repository root: {pattern!r}")
    if any("**" in part and part != "**" for part in posix.parts):
        raise ConfigError(
            f"Ignore pattern may only use '**' as a whole path component: {pattern!r}"
        )


def parse_config(raw: Any, source: str = DESCRIPTOR_FILENAME) -> ProjectConfig:
    """Validate decoded descriptor content.

    Args:
        raw: Decoded JSON value.
        source: Name of the descriptor, used in error messages.

    Returns:
        The validated project configuration.

    Raises:
        ConfigError: If a required field is missing or has the wrong type.
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"{source} must contain a JSON object", path=source)

    try:
        config = ProjectConfig.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid {source}: {problems}", path=source) from e

    if not config.parser.strip():
        raise ConfigError(f"Invalid {source}: parser must not be blank", path=source)

    for pattern in config.ignore:
        validate_ignore_pattern(pattern)

    return config


async def read_config(repo_path: str | Path) -> ProjectConfig:
    """Read and validate the project descriptor of a working copy.

    Args:
        repo_path: Root of the working copy.

    Returns:
        The validated project configuration.

    Raises:
        ConfigError: If the descriptor is missing, unreadable, not valid JSON
            or fails validation.
    """
    descriptor = Path(repo_path) / DESCRIPTOR_FILENAME

    def _do_read() -> str:
        if not descriptor.is_file():
            raise ConfigError("Project descriptor not found", path=str(descriptor))
        try:
            return descriptor.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read project descriptor: {e}", path=str(descriptor)) from e

    content = await asyncio.get_running_loop().run_in_executor(None, _do_read)

    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(
            f"Project descriptor is not valid JSON: {e.msg} at line {e.lineno}",
            path=str(descriptor),
        ) from e

    config = parse_config(raw)

    logger.debug(
        "Loaded project descriptor",
        path=str(descriptor),
        parser=config.parser,
        ignore=len(config.ignore),
    )
    return config
