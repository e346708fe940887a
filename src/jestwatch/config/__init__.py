"""Configuration loading for jestwatch.

Configuration is read from ``jestwatch.toml`` in the project root (or an
explicit file), overridden by ``JESTWATCH_<SECTION>__<KEY>`` environment
variables and finally by command-line options.
"""

from ._defaults import CONFIG_FILE_NAME, DEFAULT_CONFIG
from ._load import dump_config, find_config_file, load_config
from ._loader import deep_merge, parse_env_vars, parse_string_value, read_toml_file
from ._models import (
    Config,
    LogFormat,
    LoggingConfig,
    LogLevel,
    RunnerConfig,
    WorkspaceConfig,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_CONFIG",
    "Config",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "RunnerConfig",
    "WorkspaceConfig",
    "deep_merge",
    "dump_config",
    "find_config_file",
    "load_config",
    "parse_env_vars",
    "parse_string_value",
    "read_toml_file",
]
