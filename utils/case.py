"""
Key-case conversion between the camelCase client payloads and the snake_case
stored sections. Admin-defined dynamic field names are never converted.
"""
from typing import Any, Iterable

from pydantic.alias_generators import to_camel, to_snake


def to_camel_key(s: str) -> str:
    """Convert a single snake_case key to camelCase (first letter lower). Keys without underscores are left alone."""
    return to_camel(s) if "_" in s else s


def to_snake_key(s: str) -> str:
    """Convert a single camelCase key to snake_case."""
    return to_snake(s)


def dict_keys_to_camel(obj: Any, preserve: Iterable[str] = ()) -> Any:
    """
    Recursively convert dict keys from snake_case to camelCase for API responses.
    Values under a key listed in `preserve` are copied without touching their keys.
    """
    keep = frozenset(preserve)
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            new_k = to_camel_key(k)
            out[new_k] = v if k in keep or new_k in keep else dict_keys_to_camel(v, keep)
        return out
    if isinstance(obj, list):
        return [dict_keys_to_camel(x, keep) for x in obj]
    return obj


def dict_keys_to_snake(obj: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case for API input normalization."""
    if isinstance(obj, dict):
        return {to_snake_key(k): dict_keys_to_snake(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [dict_keys_to_snake(x) for x in obj]
    return obj
