"""Reader for simple ``key = value`` configuration files."""

from __future__ import annotations

import math
import os
import re

_WHITESPACE = " \t\r\n"
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

_INT_PREFIX = re.compile(r"[ \t\n\r\f\v]*([+-]?[0-9]+)")
_FLOAT_PREFIX = re.compile(
    r"[ \t\n\r\f\v]*([+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)
_TRUE_WORDS = frozenset({"true", "1", "yes"})


class ConfigParser:
    """Key/value configuration with typed accessors and defaults.

    Blank lines and lines starting with ``#`` are skipped, as are lines with
    no ``=``. Keys and values are trimmed; the last occurrence of a key wins.
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def load(self, filepath: str | os.PathLike[str]) -> None:
        """Read entries from ``filepath``; raises ``OSError`` if it cannot be opened."""
        with open(filepath, encoding="utf-8", errors="replace") as handle:
            text = handle.read()
        for raw_line in text.split("\n"):
            line = raw_line.strip(_WHITESPACE)
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if sep:
                self._values[key.strip(_WHITESPACE)] = value.strip(_WHITESPACE)

    def get_string(self, key: str, default: str = "") -> str:
        return self._values.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        """Parse the leading integer of the value, or return ``default``."""
        value = self._values.get(key)
        if value is None:
            return default
        match = _INT_PREFIX.match(value)
        if not match:
            return default
        number = int(match.group(1))
        if not _INT32_MIN <= number <= _INT32_MAX:
            return default
        return number

    def get_double(self, key: str, default: float = 0.0) -> float:
        """Parse the leading floating-point number of the value, or return ``default``."""
        value = self._values.get(key)
        if value is None:
            return default
        match = _FLOAT_PREFIX.match(value)
        if not match:
            return default
        token = match.group(1)
        number = float(token)
        if math.isinf(number) and "inf" not in token.lower():
            return default
        return number

    def get_bool(self, key: str, default: bool = False) -> bool:
        """True for ``true``, ``1`` or ``yes`` (any case); False for any other value."""
        value = self._values.get(key)
        if value is None:
            return default
        return value.lower() in _TRUE_WORDS

    def has_key(self, key: str) -> bool:
        return key in self._values

    def __contains__(self, key: object) -> bool:
        return key in self._values