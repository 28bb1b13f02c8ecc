"""
Catalog reference data -- Items, Warehouses, Suppliers, Customers.

Reference entities are edited independently of the pipeline and looked up
by id through an injected ``CatalogLookup``.  Staged documents never hold
the entity itself; they capture a ``ReferenceSnapshot`` of its display
fields at creation time, so a historical purchase order still shows the
supplier name it was raised against after the supplier is renamed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from fulfillment_kernel.domain.values import ZERO


@dataclass(frozen=True)
class Item:
    """A stocked item."""
    id: str
    code: str
    name: str
    unit: str = "pcs"
    cost_price: Decimal = ZERO
    selling_price: Decimal = ZERO
    category: str | None = None
    default_warehouse_id: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Warehouse:
    """A storage location goods are received into and picked from."""
    id: str
    code: str
    name: str
    location: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Supplier:
    """A vendor purchase orders are raised against."""
    id: str
    code: str
    name: str
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    tax_id: str | None = None
    payment_terms: str | None = None
    credit_limit: Decimal | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Customer:
    """A party sales orders are taken from."""
    id: str
    code: str
    name: str
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    billing_address: str | None = None
    shipping_address: str | None = None
    tax_id: str | None = None
    payment_terms: str | None = None
    credit_limit: Decimal | None = None
    is_active: bool = True


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Display fields of a reference entity, frozen at document creation."""
    id: str
    code: str
    name: str

    @classmethod
    def of(cls, entity: Item | Warehouse | Supplier | Customer) -> ReferenceSnapshot:
        return cls(id=entity.id, code=entity.code, name=entity.name)


class CatalogLookup(Protocol):
    """Read-only access to reference data.

    Every method raises ``ReferenceNotFoundError`` for an unknown id.
    """

    def lookup_item(self, item_id: str) -> Item: ...

    def lookup_warehouse(self, warehouse_id: str) -> Warehouse: ...

    def lookup_supplier(self, supplier_id: str) -> Supplier: ...

    def lookup_customer(self, customer_id: str) -> Customer: ...
