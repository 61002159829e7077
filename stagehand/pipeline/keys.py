"""
Cache key and invalidation prefix derivation.

Both functions are pure: they read the request and nothing else, so they are
safe to call from concurrent requests without coordination.
"""

import json
from typing import Optional

from stagehand.pipeline.requests import CacheKeyProvider, Request

_GLOB_SPECIALS = "\\*?[]"


def _canonical_json(value) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def derive_cache_key(request: Request) -> str:
    """
    Build the cache key for a request.

    Format: "<logical name>: <JSON list of "field:value" pairs>", pairs sorted
    by field name so declaration order never matters. Values are rendered as
    canonical JSON, so 5 and "5" produce different keys.
    """
    name = request.logical_name()
    if isinstance(request, CacheKeyProvider):
        return f"{name}: {request.cache_key()}"

    values = request.model_dump(mode="json")
    pairs = [f"{field}:{_canonical_json(values[field])}" for field in sorted(values)]
    return f"{name}: {json.dumps(pairs, ensure_ascii=False)}"


def _match_case(template: str, word: str) -> str:
    if template.isupper():
        return word.upper()
    if template[:1].isupper():
        return word.capitalize()
    return word.lower()


def derive_invalidation_prefix(logical_name: str) -> Optional[str]:
    """
    Map a command's logical name onto the query namespace it invalidates.

    "Items.Commands.UpdateItem" -> "Items.Queries."
    "shop.items.commands.update.UpdateItem" -> "shop.items.queries."

    The first "Commands" segment (case-insensitive, never the leading or the
    final segment) is the split point. Returns None when there is none.
    """
    segments = logical_name.split(".")
    for index in range(1, len(segments) - 1):
        segment = segments[index]
        if segment.lower() == "commands":
            queries = _match_case(segment, "queries")
            return ".".join(segments[:index] + [queries]) + "."
    return None


def escape_pattern(literal: str) -> str:
    """Escape Redis glob metacharacters so `literal` matches only itself."""
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIALS else ch for ch in literal)


def prefix_pattern(prefix: str) -> str:
    """Glob pattern matching every key that starts with `prefix`."""
    return f"{escape_pattern(prefix)}*"
