"""Typed access to ffsmart's environment overrides.

Environment variables sit between the config file and CLI flags in
precedence. They are read through EnvReader so that tests can pass a plain
dict instead of patching os.environ. A malformed value never aborts
startup: it is logged and treated as unset, letting the config file or
built-in default apply.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class EnvReader:
    """Reads FFSMART_* (and VAAPI_DEVICE) overrides from an environment.

    Blank values count as unset everywhere, so `FFSMART_TRIAL_RUNS=` in a
    systemd unit does not clobber the config file.

    Example:
        >>> EnvReader({"FFSMART_TRIAL_RUNS": "3"}).get_int("FFSMART_TRIAL_RUNS")
        3
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def _raw(self, var: str) -> str | None:
        value = self._env.get(var)
        if value is None:
            return None
        return value.strip() or None

    def _convert(
        self, var: str, convert: Callable[[str], _T], default: _T | None
    ) -> _T | None:
        value = self._raw(var)
        if value is None:
            return default
        try:
            return convert(value)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid %s", var, value, convert.__name__)
            return default

    def get_str(self, var: str, default: str | None = None) -> str | None:
        """Read a string, stripped of surrounding whitespace."""
        value = self._raw(var)
        return default if value is None else value

    def get_int(self, var: str, default: int | None = None) -> int | None:
        """Read an integer such as FFSMART_TRIAL_RUNS."""
        return self._convert(var, int, default)

    def get_float(self, var: str, default: float | None = None) -> float | None:
        """Read a number of seconds such as FFSMART_TRIAL_TIMEOUT."""
        return self._convert(var, float, default)

    def get_path(
        self, var: str, must_exist: bool = True, default: Path | None = None
    ) -> Path | None:
        """Read a filesystem path, expanding a leading ~.

        Args:
            var: Environment variable name.
            must_exist: Tool paths must point at something; a dangling one
                is logged and ignored so PATH lookup still works. Output
                paths such as the cache file pass False.
            default: Returned when unset or ignored.

        Returns:
            The path, or default.
        """
        value = self._raw(var)
        if value is None:
            return default

        path = Path(value).expanduser()
        if must_exist and not path.exists():
            logger.warning("Ignoring %s: %s does not exist", var, path)
            return default
        return path
