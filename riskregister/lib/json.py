"""Central JSON utilities using orjson."""

from __future__ import annotations

from typing import Any

import orjson

# orjson.JSONDecodeError subclasses ValueError
JSONDecodeError = ValueError


def dumps(obj: Any, *, indent: bool = False, sort_keys: bool = False) -> str:
    """Dump object to JSON string."""
    return dumps_bytes(obj, indent=indent, sort_keys=sort_keys).decode("utf-8")


def dumps_bytes(obj: Any, *, indent: bool = False, sort_keys: bool = False) -> bytes:
    """Dump object to UTF-8 JSON bytes."""
    option = 0
    if indent:
        option |= orjson.OPT_INDENT_2
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, option=option or None)


def loads(obj: str | bytes) -> Any:
    """Load object from JSON string or bytes."""
    return orjson.loads(obj)
