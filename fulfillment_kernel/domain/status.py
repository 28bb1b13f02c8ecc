"""
Status serialization -- one canonical wire form per status enum.

Every document status is a closed ``str`` Enum whose value is the canonical
lowercase snake_case token.  Backend responses historically mixed casing and
separators ("Partially Received", "IN-PROGRESS", "in_transit"); parsing folds
those variants onto the canonical token, then applies a per-enum alias table
for genuinely different words (the backend calls a completed picklist
"picked").  Anything that still does not match is rejected.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from typing import TypeVar

from fulfillment_kernel.exceptions import ValidationError

E = TypeVar("E", bound=Enum)

_SEPARATORS = re.compile(r"[\s\-]+")


def canonical_token(raw: str) -> str:
    """Fold case and separators: ``"Partially-Received "`` -> ``"partially_received"``."""
    return _SEPARATORS.sub("_", raw.strip().lower())


def parse_status(
    enum_cls: type[E],
    raw: str | E,
    aliases: Mapping[str, str] | None = None,
) -> E:
    """Parse a status from its wire or display form.

    Raises:
        ValidationError: if ``raw`` is not a string or names no member.
    """
    if isinstance(raw, enum_cls):
        return raw
    if not isinstance(raw, str):
        raise ValidationError(
            f"{enum_cls.__name__} must be a string, got {type(raw).__name__}",
            field="status",
            value=raw,
        )
    token = canonical_token(raw)
    if aliases:
        token = aliases.get(token, token)
    try:
        return enum_cls(token)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown {enum_cls.__name__}: {raw!r}", field="status", value=raw
        ) from exc


def serialize_status(status: Enum) -> str:
    """The single canonical wire form of a status."""
    return str(status.value)


def status_value(status: Enum | str) -> str:
    """Plain string value of a status member or string.

    Enum members hash by name, so sets and dict keys of plain strings must
    be looked up with the value, never the member.
    """
    return status.value if isinstance(status, Enum) else status
