"""
In-memory catalog.

Implements ``CatalogLookup`` over dictionaries of reference entities.  Used
by tests and by embedding callers that load reference data up front (for
example from normalized backend responses).
"""

from __future__ import annotations

from collections.abc import Iterable

from fulfillment_kernel.domain.catalog import Customer, Item, Supplier, Warehouse
from fulfillment_kernel.exceptions import ReferenceNotFoundError
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("services.catalog")


class InMemoryCatalog:
    """Reference data keyed by id."""

    def __init__(
        self,
        items: Iterable[Item] = (),
        warehouses: Iterable[Warehouse] = (),
        suppliers: Iterable[Supplier] = (),
        customers: Iterable[Customer] = (),
    ):
        self._items = {item.id: item for item in items}
        self._warehouses = {wh.id: wh for wh in warehouses}
        self._suppliers = {sup.id: sup for sup in suppliers}
        self._customers = {cust.id: cust for cust in customers}
        logger.debug(
            "catalog_loaded",
            extra={
                "item_count": len(self._items),
                "warehouse_count": len(self._warehouses),
                "supplier_count": len(self._suppliers),
                "customer_count": len(self._customers),
            },
        )

    def add(self, entity: Item | Warehouse | Supplier | Customer) -> None:
        """Insert or replace one reference entity."""
        if isinstance(entity, Item):
            self._items[entity.id] = entity
        elif isinstance(entity, Warehouse):
            self._warehouses[entity.id] = entity
        elif isinstance(entity, Supplier):
            self._suppliers[entity.id] = entity
        elif isinstance(entity, Customer):
            self._customers[entity.id] = entity
        else:
            raise TypeError(f"Not a catalog entity: {type(entity).__name__}")

    def lookup_item(self, item_id: str) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise ReferenceNotFoundError("item", item_id) from None

    def lookup_warehouse(self, warehouse_id: str) -> Warehouse:
        try:
            return self._warehouses[warehouse_id]
        except KeyError:
            raise ReferenceNotFoundError("warehouse", warehouse_id) from None

    def lookup_supplier(self, supplier_id: str) -> Supplier:
        try:
            return self._suppliers[supplier_id]
        except KeyError:
            raise ReferenceNotFoundError("supplier", supplier_id) from None

    def lookup_customer(self, customer_id: str) -> Customer:
        try:
            return self._customers[customer_id]
        except KeyError:
            raise ReferenceNotFoundError("customer", customer_id) from None
