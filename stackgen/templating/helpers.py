"""Runtime helpers available to Handlebars-style templates.

Every function here receives values exactly as the template resolved them
(plain Python data, ``None`` for anything missing) and follows JavaScript
semantics where Handlebars would: ``[]``, ``""``, ``0`` and ``null`` are
falsy, ``{}`` is truthy, booleans print as ``true`` / ``false``.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

from jinja2 import Undefined


def normalize(value: Any) -> Any:
    """Map Jinja ``Undefined`` to ``None``; leave everything else alone."""
    if isinstance(value, Undefined):
        return None
    return value


def truthy(value: Any) -> bool:
    """Handlebars truthiness for ``#if`` / ``#unless`` and the logic helpers."""
    value = normalize(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, (str, list, tuple)):
        return len(value) > 0
    return True


def stringify(value: Any) -> str:
    """Render a resolved value the way Handlebars prints it."""
    value = normalize(value)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


# ---------------------------------------------------------------------------
# Scope resolution and iteration
# ---------------------------------------------------------------------------


def _get(obj: Any, key: str) -> tuple[bool, Any]:
    obj = normalize(obj)
    if obj is None:
        return False, None
    if isinstance(obj, Mapping):
        if key in obj:
            return True, obj[key]
        return False, None
    if isinstance(obj, (list, tuple, str)):
        if key == "length":
            return True, len(obj)
        if key.isdigit() and int(key) < len(obj) and not isinstance(obj, str):
            return True, obj[int(key)]
        return False, None
    if not key.startswith("_") and hasattr(obj, key):
        return True, getattr(obj, key)
    return False, None


def resolve(scopes: Sequence[Any], parts: Sequence[str], implicit: bool = False) -> Any:
    """Look up *parts* starting at ``scopes[0]``.

    With *implicit* set, the first segment is searched outward through the
    enclosing scopes until one defines it.  Returns ``None`` when any
    segment is missing.
    """
    if not parts:
        return normalize(scopes[0])
    candidates = scopes if implicit else scopes[:1]
    for scope in candidates:
        found, value = _get(scope, parts[0])
        if found:
            break
    else:
        return None
    for part in parts[1:]:
        found, value = _get(value, part)
        if not found:
            return None
    return normalize(value)


def each_items(value: Any) -> Iterator[tuple[Any, Any]]:
    """Yield ``(key, item)`` pairs for ``#each`` over a list or a mapping."""
    value = normalize(value)
    if isinstance(value, Mapping):
        yield from value.items()
    elif isinstance(value, (list, tuple)):
        yield from enumerate(value)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _eq(a: Any, b: Any) -> bool:
    a, b = normalize(a), normalize(b)
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _ne(a: Any, b: Any) -> bool:
    return not _eq(a, b)


def _and(*args: Any) -> bool:
    return all(truthy(arg) for arg in args)


def _or(*args: Any) -> bool:
    return any(truthy(arg) for arg in args)


def _not(value: Any) -> bool:
    return not truthy(value)


def _includes(collection: Any, item: Any) -> bool:
    collection, item = normalize(collection), normalize(item)
    if isinstance(collection, str):
        return isinstance(item, str) and item in collection
    if isinstance(collection, (list, tuple)):
        return any(_eq(entry, item) for entry in collection)
    if isinstance(collection, Mapping):
        return item in collection
    return False


def _concat(*args: Any) -> str:
    return "".join(stringify(arg) for arg in args)


def _default(value: Any, fallback: Any) -> Any:
    value = normalize(value)
    if value is None or value == "":
        return fallback
    return value


def _words(value: Any) -> list[str]:
    text = stringify(value)
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", text)
    return [word for word in re.split(r"[^A-Za-z0-9]+", text) if word]


def pascal_case(value: Any) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    return "".join(word[0].upper() + word[1:].lower() for word in _words(value))


def camel_case(value: Any) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = pascal_case(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def kebab_case(value: Any) -> str:
    """Convert ``SomeThing`` or ``some_thing`` to ``some-thing``."""
    return "-".join(word.lower() for word in _words(value))


def snake_case(value: Any) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    return "_".join(word.lower() for word in _words(value))


def _json(value: Any, indent: Any = None) -> str:
    value = normalize(value)
    return json.dumps(value, indent=indent if isinstance(indent, int) else None, default=str)


HELPERS: dict[str, Callable[..., Any]] = {
    "eq": _eq,
    "ne": _ne,
    "and": _and,
    "or": _or,
    "not": _not,
    "includes": _includes,
    "concat": _concat,
    "default": _default,
    "camelCase": camel_case,
    "pascalCase": pascal_case,
    "kebabCase": kebab_case,
    "snakeCase": snake_case,
    "json": _json,
}
