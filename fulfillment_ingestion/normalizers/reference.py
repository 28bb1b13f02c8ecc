"""
Reference data normalizers: Item, Warehouse, Supplier, Customer.

Suppliers arrive in two shapes depending on the screen that created them:
``{id, code, name}`` from the purchasing API and ``{id, vendorName, ...}``
from the vendor master.  Customers use ``customerName`` or ``name``.
Codes fall back to the id when the payload carries none.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fulfillment_ingestion.domain.types import FieldAlias, WireShape
from fulfillment_ingestion.mapping.engine import (
    coerce_bool,
    coerce_decimal,
    coerce_id,
    coerce_text,
    pick,
    pick_as,
    require_mapping,
)
from fulfillment_ingestion.normalizers.common import optional_text
from fulfillment_kernel.domain.catalog import Customer, Item, Supplier, Warehouse
from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("ingestion.normalizers.reference")

_ID = FieldAlias("id", ("id",), required=True)
_CODE = FieldAlias("code", ("code",))
_ACTIVE = FieldAlias("is_active", ("active", "isActive", "status"), default=True)
_CONTACT = FieldAlias("contact_person", ("contactPerson", "contactPersonName"))
_EMAIL = FieldAlias("email", ("email",))
_PHONE = FieldAlias("phone", ("phone", "phoneNo"))
_TAX_ID = FieldAlias("tax_id", ("taxId", "gstin"))
_PAYMENT_TERMS = FieldAlias("payment_terms", ("paymentTerms",))
_CREDIT_LIMIT = FieldAlias("credit_limit", ("creditLimit",))

_ITEM_CODE = FieldAlias("code", ("sku", "code", "itemCode"))
_ITEM_NAME = FieldAlias("name", ("name", "itemName"), required=True)
_UNIT = FieldAlias("unit", ("unitMeasure", "unit", "uom"), default="pcs")
_COST_PRICE = FieldAlias("cost_price", ("costPrice",), default=ZERO)
_SELLING_PRICE = FieldAlias("selling_price", ("sellingPrice",), default=ZERO)
_CATEGORY = FieldAlias("category", ("category",))
_DEFAULT_WAREHOUSE = FieldAlias("default_warehouse_id", ("defaultWarehouseId", "warehouseId"))
_WAREHOUSE_NAME = FieldAlias("name", ("name", "warehouseName"), required=True)
_LOCATION = FieldAlias("location", ("location",))
_SUPPLIER_NAME = FieldAlias("name", ("name", "vendorName", "supplierName"), required=True)
_SUPPLIER_CODE = FieldAlias("code", ("code", "vendorCode", "supplierCode"))
_CUSTOMER_NAME = FieldAlias("name", ("customerName", "name"), required=True)
_CUSTOMER_CODE = FieldAlias("code", ("code", "customerCode"))
_SHIPPING_ADDRESS = FieldAlias("shipping_address", ("shippingAddress",))

_ADDRESS_PARTS = ("street", "city", "state", "postalCode", "country")


def _is_active(raw: Mapping[str, Any], shape: WireShape) -> bool:
    return coerce_bool(pick(raw, _ACTIVE, shape), shape, "is_active")


def _code(raw: Mapping[str, Any], shape: WireShape, alias: FieldAlias, entity_id: str) -> str:
    value = pick(raw, alias, shape)
    return coerce_text(value, shape, alias.target) if value is not None else entity_id


def _address(raw: Mapping[str, Any], shape: WireShape, key: str) -> str | None:
    """``key`` as given, else the street/city/... parts joined."""
    value = raw.get(key)
    if value:
        return coerce_text(value, shape, key)
    parts = [str(raw[part]).strip() for part in _ADDRESS_PARTS if raw.get(part)]
    return ", ".join(parts) or None


def normalize_item(payload: Any) -> Item:
    shape = WireShape.ITEM
    raw = require_mapping(payload, shape)
    item_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    return Item(
        id=item_id,
        code=_code(raw, shape, _ITEM_CODE, item_id),
        name=coerce_text(pick(raw, _ITEM_NAME, shape), shape, "name"),
        unit=coerce_text(pick(raw, _UNIT, shape), shape, "unit"),
        cost_price=coerce_decimal(pick(raw, _COST_PRICE, shape), shape, "cost_price"),
        selling_price=coerce_decimal(pick(raw, _SELLING_PRICE, shape), shape, "selling_price"),
        category=optional_text(raw, _CATEGORY, shape),
        default_warehouse_id=pick_as(raw, _DEFAULT_WAREHOUSE, shape, coerce_id),
        is_active=_is_active(raw, shape),
    )


def normalize_warehouse(payload: Any) -> Warehouse:
    shape = WireShape.WAREHOUSE
    raw = require_mapping(payload, shape)
    warehouse_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    return Warehouse(
        id=warehouse_id,
        code=_code(raw, shape, _CODE, warehouse_id),
        name=coerce_text(pick(raw, _WAREHOUSE_NAME, shape), shape, "name"),
        location=optional_text(raw, _LOCATION, shape),
        is_active=_is_active(raw, shape),
    )


def normalize_supplier(payload: Any) -> Supplier:
    """Supplier from either the ``name``/``code`` or the ``vendorName``/``id`` shape."""
    shape = WireShape.SUPPLIER
    raw = require_mapping(payload, shape)
    supplier_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    name = pick(raw, _SUPPLIER_NAME, shape)
    supplier = Supplier(
        id=supplier_id,
        code=_code(raw, shape, _SUPPLIER_CODE, supplier_id),
        name=coerce_text(name, shape, "name"),
        contact_person=optional_text(raw, _CONTACT, shape),
        email=optional_text(raw, _EMAIL, shape),
        phone=optional_text(raw, _PHONE, shape),
        address=_address(raw, shape, "address"),
        tax_id=optional_text(raw, _TAX_ID, shape),
        payment_terms=optional_text(raw, _PAYMENT_TERMS, shape),
        credit_limit=pick_as(raw, _CREDIT_LIMIT, shape, coerce_decimal),
        is_active=_is_active(raw, shape),
    )
    logger.debug("supplier_normalized", extra={"supplier_id": supplier_id})
    return supplier


def normalize_customer(payload: Any) -> Customer:
    """Customer from the ``customerName`` or ``name`` shape."""
    shape = WireShape.CUSTOMER
    raw = require_mapping(payload, shape)
    customer_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    name = pick(raw, _CUSTOMER_NAME, shape)
    billing = _address(raw, shape, "billingAddress")
    return Customer(
        id=customer_id,
        code=_code(raw, shape, _CUSTOMER_CODE, customer_id),
        name=coerce_text(name, shape, "name"),
        contact_person=optional_text(raw, _CONTACT, shape),
        email=optional_text(raw, _EMAIL, shape),
        phone=optional_text(raw, _PHONE, shape),
        billing_address=billing,
        shipping_address=optional_text(raw, _SHIPPING_ADDRESS, shape) or billing,
        tax_id=optional_text(raw, _TAX_ID, shape),
        payment_terms=optional_text(raw, _PAYMENT_TERMS, shape),
        credit_limit=pick_as(raw, _CREDIT_LIMIT, shape, coerce_decimal),
        is_active=_is_active(raw, shape),
    )
