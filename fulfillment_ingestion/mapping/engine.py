"""
Mapping engine: pure coercion between wire values and domain values.

Used by every normalizer.  Inbound helpers turn loosely typed JSON values
(integer ids, numbers as floats or strings, ISO dates with or without a
time part, mixed-case statuses) into domain values and raise
``UnexpectedResponseShapeError`` for anything they cannot map.  Outbound
helpers turn domain values back into the forms the backend accepts.
ZERO I/O.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar

from fulfillment_ingestion.domain.types import FieldAlias, WireShape
from fulfillment_kernel.domain.status import parse_status
from fulfillment_kernel.domain.values import has_exact_precision
from fulfillment_kernel.exceptions import (
    ReconciliationError,
    UnexpectedResponseShapeError,
    ValidationError,
)

E = TypeVar("E", bound=Enum)
T = TypeVar("T")

_NUMERIC_ID = re.compile(r"^-?\d+$")


# -----------------------------------------------------------------------------
# Structure
# -----------------------------------------------------------------------------


def require_mapping(payload: Any, shape: WireShape, field: str | None = None) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise UnexpectedResponseShapeError(
            shape.value,
            f"expected an object, got {type(payload).__name__}",
            field=field,
        )
    return payload


def require_list(value: Any, shape: WireShape, field: str) -> list[Any]:
    """A JSON array, or an empty list when the key was absent."""
    if value is None:
        return []
    if not isinstance(value, list | tuple):
        raise UnexpectedResponseShapeError(
            shape.value, f"expected an array, got {type(value).__name__}", field=field
        )
    return list(value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def has_any(raw: Mapping[str, Any], *keys: str) -> bool:
    """True when any of ``keys`` is present, even with a null value."""
    return any(key in raw for key in keys)


def pick(raw: Mapping[str, Any], alias: FieldAlias, shape: WireShape) -> Any:
    """Value of the first source key of ``alias`` that carries one."""
    for key in alias.sources:
        value = raw.get(key)
        if not _is_blank(value):
            return value
    if alias.required:
        raise UnexpectedResponseShapeError(
            shape.value,
            "missing required field (tried " + ", ".join(alias.sources) + ")",
            field=alias.target,
        )
    return alias.default


def pick_as(
    raw: Mapping[str, Any],
    alias: FieldAlias,
    shape: WireShape,
    coerce: Callable[[Any, WireShape, str], T],
) -> T | None:
    """``pick`` then ``coerce``; absent optional values stay ``None``."""
    value = pick(raw, alias, shape)
    if value is None:
        return None
    return coerce(value, shape, alias.target)


# -----------------------------------------------------------------------------
# Scalars
# -----------------------------------------------------------------------------


def coerce_id(value: Any, shape: WireShape, field: str) -> str:
    """Opaque string id.  The backend sends int64 ids; both forms map to str."""
    if isinstance(value, bool) or _is_blank(value):
        raise UnexpectedResponseShapeError(shape.value, f"invalid id {value!r}", field=field)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    raise UnexpectedResponseShapeError(
        shape.value, f"id must be a string or integer, got {type(value).__name__}", field=field
    )


def coerce_text(value: Any, shape: WireShape, field: str) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int | Decimal) and not isinstance(value, bool):
        return str(value)
    raise UnexpectedResponseShapeError(
        shape.value, f"expected text, got {type(value).__name__}", field=field
    )


def coerce_decimal(
    value: Any,
    shape: WireShape,
    field: str,
    places: int | None = None,
) -> Decimal:
    """Parse a number through ``Decimal(str(value))``.

    When ``places`` is given the value must already fit that precision;
    it is never rounded.
    """
    if isinstance(value, bool):
        raise UnexpectedResponseShapeError(shape.value, f"expected a number, got {value!r}", field=field)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int | float | str):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise UnexpectedResponseShapeError(
                shape.value, f"not a number: {value!r}", field=field
            ) from None
    else:
        raise UnexpectedResponseShapeError(
            shape.value, f"expected a number, got {type(value).__name__}", field=field
        )
    if not result.is_finite():
        raise UnexpectedResponseShapeError(shape.value, f"not a finite number: {value!r}", field=field)
    if places is not None and not has_exact_precision(result, places):
        raise UnexpectedResponseShapeError(
            shape.value,
            f"{result} has more than {places} fractional digits",
            field=field,
        )
    return result


def coerce_bool(value: Any, shape: WireShape, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        low = value.strip().lower()
        if low in ("true", "yes", "1", "active"):
            return True
        if low in ("false", "no", "0", "inactive"):
            return False
    raise UnexpectedResponseShapeError(shape.value, f"not a boolean: {value!r}", field=field)


def coerce_date(value: Any, shape: WireShape, field: str) -> date:
    """ISO date, or the date part of an ISO timestamp."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise UnexpectedResponseShapeError(shape.value, f"not an ISO date: {value!r}", field=field)


def coerce_datetime(value: Any, shape: WireShape, field: str) -> datetime:
    """ISO timestamp as an aware datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise UnexpectedResponseShapeError(
                shape.value, f"not an ISO timestamp: {value!r}", field=field
            ) from None
    else:
        raise UnexpectedResponseShapeError(
            shape.value, f"not an ISO timestamp: {value!r}", field=field
        )
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_wire_status(
    enum_cls: type[E],
    raw: Any,
    shape: WireShape,
    aliases: Mapping[str, str] | None = None,
    default: E | None = None,
) -> E:
    """Status from its wire form; absent statuses take ``default``."""
    if _is_blank(raw):
        if default is None:
            raise UnexpectedResponseShapeError(shape.value, "missing status", field="status")
        return default
    try:
        return parse_status(enum_cls, raw, aliases)
    except ValidationError as exc:
        raise UnexpectedResponseShapeError(shape.value, str(exc), field="status") from exc


# -----------------------------------------------------------------------------
# Consistency
# -----------------------------------------------------------------------------


def check_reconciles(
    raw: Mapping[str, Any],
    alias: FieldAlias,
    computed: Decimal,
    shape: WireShape,
) -> None:
    """Raise when the backend's own total disagrees with the recomputed one."""
    reported = pick(raw, alias, shape)
    if reported is None:
        return
    value = coerce_decimal(reported, shape, alias.target)
    if value != computed:
        raise UnexpectedResponseShapeError(
            shape.value,
            f"reported {value} but lines compute to {computed}",
            field=alias.target,
        )


def build(cls: type[T], shape: WireShape, **fields: Any) -> T:
    """Construct a domain object; invariant violations become shape errors."""
    try:
        return cls(**fields)
    except (ReconciliationError, ValidationError, ValueError) as exc:
        raise UnexpectedResponseShapeError(shape.value, str(exc)) from exc


# -----------------------------------------------------------------------------
# Outbound
# -----------------------------------------------------------------------------


def wire_id(value: str | None) -> int | str | None:
    """Numeric ids go back as integers; anything else stays a string."""
    if value is None:
        return None
    return int(value) if _NUMERIC_ID.match(value) else value


def wire_number(value: Decimal | None) -> int | str | None:
    """Integral values as ``int``; others as an exact decimal string.

    Payloads stay ``json.dumps``-able without a custom encoder, and the
    inbound coercion reads the string form back unchanged.
    """
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return format(value, "f")


def wire_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def compact(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is ``None``."""
    return {key: value for key, value in payload.items() if value is not None}
