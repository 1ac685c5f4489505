"""Decode/encode configuration.

Callers pass plain dicts (``{"header": False, "delimiter": ";"}``); these are
normalised into ``DecodeOptions`` / ``EncodeOptions``. Keys the core does not
know about are kept in ``extra`` for the individual formats to read.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Union

DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_STREAMING_THRESHOLD = 8 * 1024 * 1024
DEFAULT_INFERENCE_WINDOW = 1000

DELIMITER_ALIASES = {
    "COMMA": ",",
    "TAB": "\t",
    "SEMICOLON": ";",
    "PIPE": "|",
    "SLASH": "/",
    "HASH": "#",
    "SPACE": " ",
}

_TRUE_TOKENS = {"true", "yes", "y", "1", ""}
_FALSE_TOKENS = {"false", "no", "n", "0"}


def _snake(key: str) -> str:
    key = key.replace("-", "_")
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


def to_bool(value: Any, default: bool) -> bool:
    """Interpret config values the way command-line extensions are written."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    token = str(value).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return default


def normalize_delimiter(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    alias = DELIMITER_ALIASES.get(str(value).upper())
    if alias is not None:
        return alias
    if value == "\\t":
        return "\t"
    if len(value) != 1:
        raise ValueError(f"delimiter must be a single character, got {value!r}")
    return value


class _ExtraMixin:
    extra: Dict[str, Any]

    def extra_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.extra.get(_snake(key))
        return default if value is None else str(value)

    def extra_bool(self, key: str, default: bool = False) -> bool:
        return to_bool(self.extra.get(_snake(key)), default)

    def extra_int(self, key: str, default: int = 0) -> int:
        value = self.extra.get(_snake(key))
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None):
        """Build options from a config mapping; camelCase and kebab-case keys accepted."""
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for raw_key, value in (config or {}).items():
            key = _snake(str(raw_key))
            if key in known:
                kwargs[key] = value
            else:
                extra[key] = value
        opts = cls(**kwargs)
        opts.extra.update(extra)
        opts._normalize()
        return opts

    def _normalize(self) -> None:  # pragma: no cover - overridden
        pass


@dataclass
class DecodeOptions(_ExtraMixin):
    header: bool = True
    delimiter: Optional[str] = None
    sheet: Optional[Union[str, int]] = None
    date_format: str = DEFAULT_DATE_FORMAT
    streaming: Optional[bool] = None
    streaming_threshold: int = DEFAULT_STREAMING_THRESHOLD
    best_effort: bool = False
    encoding: str = "utf-8-sig"
    extra: Dict[str, Any] = field(default_factory=dict)

    def _normalize(self) -> None:
        self.header = to_bool(self.header, True)
        self.best_effort = to_bool(self.best_effort, False)
        if self.streaming is not None:
            self.streaming = to_bool(self.streaming, False)
        self.delimiter = normalize_delimiter(self.delimiter)
        self.streaming_threshold = int(self.streaming_threshold)
        if isinstance(self.sheet, str) and self.sheet.strip().isdigit():
            self.sheet = int(self.sheet.strip())


@dataclass
class EncodeOptions(_ExtraMixin):
    pretty: bool = True
    header: bool = True
    delimiter: Optional[str] = None
    batch_size: int = 1
    infer_types: bool = True
    date_format: str = DEFAULT_DATE_FORMAT
    inference_window: int = DEFAULT_INFERENCE_WINDOW
    encoding: str = "utf-8"
    extra: Dict[str, Any] = field(default_factory=dict)

    def _normalize(self) -> None:
        self.pretty = to_bool(self.pretty, True)
        self.header = to_bool(self.header, True)
        self.infer_types = to_bool(self.infer_types, True)
        self.delimiter = normalize_delimiter(self.delimiter)
        self.batch_size = max(1, int(self.batch_size))
        self.inference_window = max(1, int(self.inference_window))


__all__ = [
    "DecodeOptions",
    "EncodeOptions",
    "DELIMITER_ALIASES",
    "DEFAULT_DATE_FORMAT",
    "normalize_delimiter",
    "to_bool",
]
