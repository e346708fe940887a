# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Raw configuration sources: TOML files and JESTWATCH_* environment variables.

Everything here works on plain nested dicts. Validation happens later, when
the merged dict is turned into a :class:`~jestwatch.config.Config`.
"""

import copy
import os
import tomllib
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import orjson

from jestwatch.exceptions import ConfigLoadError

if TYPE_CHECKING:
    from pathlib import Path

ENV_PREFIX = "JESTWATCH_"
SECTION_SEPARATOR = "__"

RawConfig = dict[str, Any]  # pyright: ignore[reportExplicitAny]


def read_toml_file(path: "Path") -> RawConfig:
    """Parse the TOML file at ``path``.

    A missing file raises FileNotFoundError so callers can tell "absent"
    apart from "broken"; a syntax error raises ConfigLoadError.
    """
    raw = path.read_bytes()
    try:
        return tomllib.loads(raw.decode("utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        # lineno and colno are only set on Python 3.14+
        raise ConfigLoadError(
            f"Invalid TOML in {path}: {e}",
            path=path,
            line=getattr(e, "lineno", None),
            column=getattr(e, "colno", None),
        ) from e


def deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    """Return ``base`` updated with ``override``, leaving both untouched.

    Tables merge key by key. Any other value in ``override``, lists
    included, replaces what ``base`` had.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def parse_string_value(value: str) -> Any:  # pyright: ignore[reportExplicitAny]
    """Turn an environment string into the TOML-ish value it spells.

    ``true``/``false`` in any case become booleans. Numbers, JSON arrays and
    JSON objects are decoded. Anything else stays a string.

    >>> parse_string_value("0.5")
    0.5
    >>> parse_string_value("npx jest")
    'npx jest'
    """
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        decoded = orjson.loads(value)
    except orjson.JSONDecodeError:
        return value
    if not isinstance(decoded, int | float | list | dict):
        return value
    return decoded


def set_nested_key(
    target: RawConfig,
    dotted_key: str,
    value: Any,  # pyright: ignore[reportExplicitAny]
) -> None:
    """Assign ``value`` at ``dotted_key``, creating tables along the way.

    A non-table found on the path is replaced by a table.
    """
    *sections, leaf = dotted_key.split(".")
    table = target
    for section in sections:
        child = table.get(section)
        if not isinstance(child, dict):
            child = table[section] = {}
        table = child
    table[leaf] = value


def parse_env_vars(
    prefix: str = ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> RawConfig:
    """Collect configuration overrides from environment variables.

    ``JESTWATCH_RUNNER__SHUTDOWN_TIMEOUT=2`` becomes
    ``{"runner": {"shutdown_timeout": 2}}``. Names without the double
    underscore section separator, such as JESTWATCH_DEBUG, are skipped.

    Args:
        prefix: Variable name prefix to look for.
        environ: Variables to scan. Defaults to ``os.environ``.
    """
    overrides: RawConfig = {}
    for name, raw in (os.environ if environ is None else environ).items():
        key = name.removeprefix(prefix)
        if key == name or SECTION_SEPARATOR not in key:
            continue
        dotted = key.replace(SECTION_SEPARATOR, ".").lower()
        set_nested_key(overrides, dotted, parse_string_value(raw))
    return overrides
