"""Resolve allocation constants from the environment or a run config file.

Lookup order for a constant ``NAME``:

1. ``CAPTIVE_LEDGER_NAME`` environment variable.
2. The constants table of the TOML file named by ``CAPTIVE_LEDGER_RUN_CONFIG``.
3. The constants table of ``captive_ledger/run_config.toml`` when it exists.
4. The default supplied by the caller.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, TypeVar

try:  # pragma: no cover - Python < 3.11 fallback
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - dependency fallback
    import tomli as tomllib  # type: ignore[import-not-found]


LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "CAPTIVE_LEDGER_"
RUN_CONFIG_ENV = "CAPTIVE_LEDGER_RUN_CONFIG"
_SECTION_PATHS: tuple[tuple[str, ...], ...] = (
    ("engine", "constants"),
    ("engine_constants",),
    ("constants",),
)
_TRUE_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_TOKENS = frozenset({"0", "false", "no", "off", ""})

T = TypeVar("T")


def _candidate_paths() -> Iterator[Path]:
    env_value = os.environ.get(RUN_CONFIG_ENV)
    if env_value:
        yield Path(env_value).expanduser()
    yield Path(__file__).resolve().parent / "run_config.toml"


def _read_toml(path: Path) -> Mapping[str, Any] | None:
    if not path.is_file():
        return None
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        LOGGER.debug("Unable to read run_config overrides from %s: %s", path, exc)
        return None


def _constants_table(data: Mapping[str, Any]) -> Mapping[str, Any]:
    for section_path in _SECTION_PATHS:
        cursor: Any = data
        for key in section_path:
            cursor = cursor.get(key) if isinstance(cursor, Mapping) else None
        if isinstance(cursor, Mapping) and cursor:
            return cursor
    return {}


@lru_cache(maxsize=1)
def _file_overrides() -> dict[str, Any]:
    """Return the first non-empty constants table found on disk."""

    for path in _candidate_paths():
        data = _read_toml(path)
        if data is None:
            continue
        table = _constants_table(data)
        if table:
            LOGGER.debug("Loaded %d constant override(s) from %s", len(table), path)
            return {str(key).upper(): value for key, value in table.items()}
    return {}


def as_bool(value: Any) -> bool:
    """Interpret TOML booleans and environment strings as a flag."""

    if isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    raise ValueError(f"not a boolean flag: {value!r}")


def raw_override(name: str) -> Any | None:
    """Return the unconverted override for ``name`` or ``None``."""

    env_key = f"{ENV_PREFIX}{name.upper()}"
    if env_key in os.environ:
        return os.environ[env_key]
    return _file_overrides().get(name.upper())


def get_constant(name: str, default: T, cast_func: Callable[[Any], T] | None = None) -> T:
    """Return ``name`` resolved against overrides falling back to ``default``."""

    raw = raw_override(name)
    if raw is None:
        return default

    converter: Callable[[Any], Any] = cast_func if cast_func is not None else type(default)
    try:
        return converter(raw)
    except (TypeError, ValueError) as exc:
        LOGGER.warning("Invalid override for %s=%r: %s", name, raw, exc)
        return default


def clear_cache() -> None:
    """Forget cached file overrides (primarily for use in tests)."""

    _file_overrides.cache_clear()


__all__ = ["ENV_PREFIX", "RUN_CONFIG_ENV", "as_bool", "clear_cache", "get_constant", "raw_override"]
