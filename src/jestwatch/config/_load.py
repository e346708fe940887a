"""Configuration discovery and loading."""

from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomli_w
from pydantic import ValidationError

from jestwatch.exceptions import ConfigLoadError, ConfigValidationError

from ._defaults import CONFIG_FILE_NAME, DEFAULT_CONFIG
from ._loader import deep_merge, parse_env_vars, read_toml_file
from ._models import Config

if TYPE_CHECKING:
    from collections.abc import Mapping


def find_config_file(project_root: Path) -> Path | None:
    """Return the configuration file in project_root, if there is one."""
    candidate = project_root / CONFIG_FILE_NAME
    return candidate if candidate.is_file() else None


def load_config(
    *,
    config_path: Path | None = None,
    project_root: Path | None = None,
    cli_overrides: "Mapping[str, Any] | None" = None,  # pyright: ignore[reportExplicitAny]
    environ: dict[str, str] | None = None,
) -> Config:
    """Load configuration from all sources.

    Sources are merged in increasing precedence: built-in defaults, the
    configuration file, JESTWATCH_* environment variables, CLI overrides.

    Args:
        config_path: Explicit configuration file. Must exist.
        project_root: Directory searched for jestwatch.toml. Defaults to the
            current working directory.
        cli_overrides: Nested configuration values from the command line.
        environ: Environment to read. Uses os.environ if None.

    Returns:
        The validated configuration.

    Raises:
        ConfigLoadError: If the file is missing or cannot be parsed.
        ConfigValidationError: If a value has the wrong type or range.
    """
    base_dir = project_root if project_root is not None else Path.cwd()
    data = deep_merge(DEFAULT_CONFIG, {})
    source: Path | None = None

    if config_path is not None:
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise ConfigLoadError(msg, path=config_path)
        source = config_path
        if project_root is None:
            base_dir = config_path.parent
    else:
        source = find_config_file(base_dir)

    if source is not None:
        data = deep_merge(data, read_toml_file(source))

    data = deep_merge(data, parse_env_vars(environ=environ))
    if cli_overrides:
        data = deep_merge(data, dict(cli_overrides))

    try:
        return Config.model_validate({**data, "base_dir": base_dir})
    except ValidationError as e:
        error = e.errors()[0]
        key = ".".join(str(part) for part in error["loc"])
        msg = f"Invalid configuration value for {key}: {error['msg']}"
        raise ConfigValidationError(
            msg,
            key=key,
            value=error.get("input"),
            source=str(source) if source is not None else None,
        ) from e


def dump_config(config: Config) -> str:
    """Render a configuration as TOML."""
    return tomli_w.dumps(config.model_dump(mode="json"))
