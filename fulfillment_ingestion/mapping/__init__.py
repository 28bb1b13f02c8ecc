"""Mapping engine: pure wire-value coercion shared by the normalizers."""

from fulfillment_ingestion.mapping.engine import (
    build,
    check_reconciles,
    coerce_bool,
    coerce_date,
    coerce_datetime,
    coerce_decimal,
    coerce_id,
    coerce_text,
    compact,
    has_any,
    parse_wire_status,
    pick,
    pick_as,
    require_list,
    require_mapping,
    wire_date,
    wire_id,
    wire_number,
)

__all__ = [
    "build",
    "check_reconciles",
    "coerce_bool",
    "coerce_date",
    "coerce_datetime",
    "coerce_decimal",
    "coerce_id",
    "coerce_text",
    "compact",
    "has_any",
    "parse_wire_status",
    "pick",
    "pick_as",
    "require_list",
    "require_mapping",
    "wire_date",
    "wire_id",
    "wire_number",
]
