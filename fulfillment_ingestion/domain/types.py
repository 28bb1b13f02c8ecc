"""
fulfillment_ingestion.domain.types -- Pure frozen types for DTO normalization.

ZERO I/O.  A ``FieldAlias`` names one domain field and every wire spelling
the backend has used for it, in order of preference.  ``WireShape`` names
the response shapes the normalizers accept; it appears in every
``UnexpectedResponseShapeError`` so a failure says which mapping rejected
the payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class WireShape(str, Enum):
    """Backend response shapes with a dedicated normalizer."""

    ITEM = "item"
    WAREHOUSE = "warehouse"
    SUPPLIER = "supplier"
    CUSTOMER = "customer"
    REQUISITION = "requisition"
    PURCHASE_ORDER = "purchase_order"
    GOODS_RECEIPT = "goods_receipt"
    CONVERTED_ORDER = "converted_order"
    SALES_ORDER = "sales_order"
    PICKLIST = "picklist"
    SHIPMENT = "shipment"
    TRACKING_EVENT = "tracking_event"
    INVOICE = "invoice"


@dataclass(frozen=True)
class FieldAlias:
    """One domain field and its wire spellings.

    The first source key present with a non-empty value wins.  ``required``
    fields raise when no source key carries a value; optional fields fall
    back to ``default``.
    """

    target: str
    sources: tuple[str, ...]
    required: bool = False
    default: Any = None

    def __post_init__(self):
        if not self.sources:
            raise ValueError(f"FieldAlias {self.target!r} needs at least one source key")
