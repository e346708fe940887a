"""Default configuration values.

Used when no other configuration source provides a value. Kept as a
plain dict so it can be merged like any other source.
"""

from typing import Any

CONFIG_FILE_NAME = "jestwatch.toml"

DEFAULT_CONFIG: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
    "workspace": {
        "root_path": ".",
        "path_to_jest": "npx jest",
        "path_to_config": "",
    },
    "runner": {
        "run_all_tests_first": True,
        "shutdown_timeout": 5.0,
        "show_output": True,
    },
    "logging": {
        "level": "warning",
        "format": "text",
        "file": "",
        "max_bytes": 0,
        "backup_count": 0,
    },
}
