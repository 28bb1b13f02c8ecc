"""
Dataclass <-> JSON-primitive codec.

Staged documents are frozen dataclasses.  ``dump_document`` turns one into
plain JSON-compatible data (Decimals as strings, so no precision is lost);
``load_document`` rebuilds it from the type hints of the target class.
Used by the SQL document repository, which stores documents as JSON.

Supported field types: str, int, bool, Decimal, date, datetime, str-valued
Enums, nested dataclasses, ``tuple[X, ...]``, ``dict[str, X]`` and
``X | None``.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from functools import cache
from typing import Any, TypeVar

T = TypeVar("T")


def dump_document(obj: Any) -> Any:
    """Convert a dataclass (recursively) to JSON-compatible primitives."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: dump_document(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime | date):
        return obj.isoformat()
    if isinstance(obj, tuple | list):
        return [dump_document(v) for v in obj]
    if isinstance(obj, dict):
        return {str(k): dump_document(v) for k, v in obj.items()}
    return obj


@cache
def _hints(cls: type) -> dict[str, Any]:
    return typing.get_type_hints(cls)


def load_document(cls: type[T], data: Any) -> T:
    """Rebuild an instance of dataclass ``cls`` from ``dump_document`` output."""
    return _load(cls, data)


def _load(tp: Any, value: Any) -> Any:
    origin = typing.get_origin(tp)

    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if value is None:
            return None
        if len(args) != 1:
            raise TypeError(f"Unsupported union type: {tp}")
        return _load(args[0], value)

    if origin is tuple:
        args = typing.get_args(tp)
        item_type = args[0] if args else Any
        return tuple(_load(item_type, v) for v in value)

    if origin is dict:
        _, value_type = typing.get_args(tp)
        return {k: _load(value_type, v) for k, v in value.items()}

    if tp is Any or value is None:
        return value

    if isinstance(tp, type):
        if dataclasses.is_dataclass(tp):
            hints = _hints(tp)
            kwargs = {
                f.name: _load(hints[f.name], value[f.name])
                for f in dataclasses.fields(tp)
                if f.init and f.name in value
            }
            return tp(**kwargs)
        if issubclass(tp, Enum):
            return tp(value)
        if tp is Decimal:
            return Decimal(value)
        if tp is datetime:
            return datetime.fromisoformat(value)
        if tp is date:
            return date.fromisoformat(value)
        if tp in (str, int, bool, float):
            return value

    raise TypeError(f"Unsupported field type: {tp}")
