"""Decode handler option annotations into plain mappings."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import unquote

from .exceptions import OptionsParseError


def parse_options(raw: str) -> dict[str, Any]:
    """Parse a JSON object or an ``a=1&b=2`` query string.

    Query string keys and values are percent-decoded, ``=`` inside a value is
    preserved, and the last occurrence of a duplicated key wins. Values stay
    strings; a bare ``flag`` entry maps to ``""``.
    """
    if raw.startswith("{"):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise OptionsParseError(f"Invalid JSON options {raw!r}: {exc}") from exc

    options: dict[str, Any] = {}
    for part in raw.split("&"):
        key, _, value = part.partition("=")
        options[unquote(key)] = unquote(value)
    return options
