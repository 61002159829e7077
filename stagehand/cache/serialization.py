"""
Cache payload serialization.

Wire format: UTF-8 JSON with null-valued members omitted and no envelope.
Reference cycles are broken by dropping the member that would re-enter an
object already being serialized further up the same path.
"""

import dataclasses
import json
import types
from collections.abc import Mapping, Sequence
from typing import (
    Annotated,
    Any,
    Dict,
    Optional,
    Set,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel, TypeAdapter
from pydantic_core import to_jsonable_python

T = TypeVar("T")

_SKIP = object()


def _to_jsonable(value: Any, path: Set[int]) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, BaseModel):
        members = {name: getattr(value, name) for name in type(value).model_fields}
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        members = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    elif isinstance(value, Mapping):
        members = {str(k): v for k, v in value.items()}
    elif isinstance(value, (list, tuple, set, frozenset)):
        members = None
    else:
        return to_jsonable_python(value)

    marker = id(value)
    if marker in path:
        return _SKIP
    path.add(marker)
    try:
        if members is None:
            items = (_to_jsonable(item, path) for item in value)
            return [item for item in items if item is not _SKIP]
        out = {}
        for name, member in members.items():
            if member is None:
                continue
            converted = _to_jsonable(member, path)
            if converted is _SKIP or converted is None:
                continue
            out[name] = converted
        return out
    finally:
        path.discard(marker)


def to_jsonable(value: Any) -> Any:
    """Plain JSON-compatible structure for `value`, nulls omitted."""
    converted = _to_jsonable(value, set())
    return None if converted is _SKIP else converted


def serialize(value: Any) -> bytes:
    return json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


# ── Decoding ──────────────────────────────────────────────────────────────

_UNION_TYPES = (Union, getattr(types, "UnionType", Union))


def _unwrap_annotated(annotation: Any) -> Any:
    while get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    return annotation


def _is_nullable(annotation: Any) -> bool:
    annotation = _unwrap_annotated(annotation)
    if annotation is Any or annotation is None or annotation is type(None):
        return True
    return get_origin(annotation) in _UNION_TYPES and type(None) in get_args(annotation)


def _member_annotations(target: type) -> Optional[Dict[str, Any]]:
    if isinstance(target, type) and issubclass(target, BaseModel):
        return {name: info.annotation for name, info in target.model_fields.items()}
    if dataclasses.is_dataclass(target) and isinstance(target, type):
        hints = get_type_hints(target)
        return {f.name: hints.get(f.name, Any) for f in dataclasses.fields(target)}
    return None


def restore_nulls(data: Any, annotation: Any) -> Any:
    """
    Put back the null members serialize() left out, guided by `annotation`.

    A nullable member missing from an object payload was None when it was
    written, so it is restored as None before validation. Required nullable
    fields (Optional[X] without a default) would otherwise fail to validate.
    Nested models, dataclasses, sequences and mappings are walked as well.
    """
    annotation = _unwrap_annotated(annotation)
    origin = get_origin(annotation)

    if origin in _UNION_TYPES:
        candidates = [arg for arg in get_args(annotation) if arg is not type(None)]
        # Only an unambiguous Optional[X] can be walked
        if len(candidates) == 1:
            return restore_nulls(data, candidates[0])
        return data

    if isinstance(data, dict):
        if origin is not None and isinstance(origin, type) and issubclass(origin, Mapping):
            args = get_args(annotation)
            if len(args) == 2:
                for key, item in data.items():
                    data[key] = restore_nulls(item, args[1])
            return data

        members = _member_annotations(annotation)
        if members is None:
            return data
        for name, member_annotation in members.items():
            if name in data:
                data[name] = restore_nulls(data[name], member_annotation)
            elif _is_nullable(member_annotation):
                data[name] = None
        return data

    if isinstance(data, list) and origin in (list, tuple, set, frozenset, Sequence):
        args = get_args(annotation)
        if not args:
            return data
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            return [restore_nulls(item, arg) for item, arg in zip(data, args)] + data[len(args):]
        return [restore_nulls(item, args[0]) for item in data]

    return data


def deserialize(raw: bytes, target: Optional[Type[T]] = None) -> Any:
    """
    Decode a cached payload.

    Without `target` the plain JSON structure is returned; with one (a pydantic
    model, dataclass or any type pydantic understands) omitted null members are
    restored and the data is validated into it. Raises ValueError or
    pydantic.ValidationError on bad input.
    """
    data = json.loads(raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw)
    if target is None:
        return data
    return TypeAdapter(target).validate_python(restore_nulls(data, target))
