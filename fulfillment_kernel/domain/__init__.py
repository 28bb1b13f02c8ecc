"""
Pure domain layer.

Value objects and contracts with NO dependencies on storage, time or I/O.
All domain objects are immutable and deterministic.
"""

from fulfillment_kernel.domain.catalog import (
    CatalogLookup,
    Customer,
    Item,
    ReferenceSnapshot,
    Supplier,
    Warehouse,
)
from fulfillment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fulfillment_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from fulfillment_kernel.domain.documents import DocumentTotals, DocumentType, PricedLine
from fulfillment_kernel.domain.status import parse_status, serialize_status
from fulfillment_kernel.domain.workflow import (
    Guard,
    Transition,
    TransitionResult,
    Workflow,
)

__all__ = [
    "CatalogLookup",
    "Clock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Customer",
    "DeterministicClock",
    "DocumentTotals",
    "DocumentType",
    "Guard",
    "Item",
    "PricedLine",
    "ReferenceSnapshot",
    "Supplier",
    "SystemClock",
    "Transition",
    "TransitionResult",
    "Warehouse",
    "Workflow",
    "parse_status",
    "serialize_status",
]
