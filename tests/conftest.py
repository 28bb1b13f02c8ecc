"""
Shared pytest fixtures for the fulfillment pipeline test suite.

Everything runs in memory: a deterministic clock, a small reference
catalog, an in-memory document repository and the three module services
wired to them.  The SQL repository tests build their own SQLite engine.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from fulfillment_kernel.domain.catalog import Customer, Item, Supplier, Warehouse
from fulfillment_kernel.domain.clock import DeterministicClock
from fulfillment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fulfillment_modules.invoicing.service import InvoicingService
from fulfillment_modules.purchasing.service import PurchasingService
from fulfillment_modules.sales.config import SalesConfig
from fulfillment_modules.sales.service import SalesService
from fulfillment_services.catalog import InMemoryCatalog
from fulfillment_services.document_store import InMemoryDocumentRepository
from fulfillment_services.workflow_executor import WorkflowExecutor

FIXED_NOW = datetime(2024, 3, 15, 9, 30, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture fulfillment_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, purchasing):
            purchasing.create_requisition(...)
            logs = captured_logs()
            assert any(r["message"] == "requisition_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fulfillment_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and reference data
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def catalog():
    """Two warehouses, four items, two suppliers (one inactive), one customer."""
    return InMemoryCatalog(
        items=[
            Item(
                id="ITEM-1", code="SR-12", name="Steel Rod 12mm",
                cost_price=Decimal("1200"), selling_price=Decimal("1500"),
                default_warehouse_id="WH-1",
            ),
            Item(
                id="ITEM-2", code="CW-4", name="Copper Wire 4mm",
                cost_price=Decimal("890"), selling_price=Decimal("1100"),
                default_warehouse_id="WH-1",
            ),
            Item(
                id="ITEM-3", code="GL-1", name="Safety Gloves",
                cost_price=Decimal("45"), selling_price=Decimal("60"),
                default_warehouse_id="WH-2",
            ),
            Item(
                id="ITEM-4", code="NW-1", name="Loose Washers",
                cost_price=Decimal("2.50"), selling_price=Decimal("4"),
            ),
            Item(
                id="ITEM-OLD", code="OLD", name="Discontinued Bolt",
                cost_price=Decimal("10"), is_active=False,
            ),
        ],
        warehouses=[
            Warehouse(id="WH-1", code="MAIN", name="Main Warehouse", location="Pune"),
            Warehouse(id="WH-2", code="EAST", name="East Depot", location="Kolkata"),
        ],
        suppliers=[
            Supplier(
                id="SUP-1", code="ACME", name="Acme Metals",
                payment_terms="Net 30",
            ),
            Supplier(id="SUP-9", code="GONE", name="Closed Vendor", is_active=False),
        ],
        customers=[
            Customer(
                id="CUST-1", code="BLD", name="Builders Ltd",
                billing_address="12 MG Road, Pune",
                shipping_address="Plot 7, MIDC, Pune",
                payment_terms="Net 15",
            ),
        ],
    )


# =============================================================================
# Repository and services
# =============================================================================


@pytest.fixture
def repository():
    return InMemoryDocumentRepository()


@pytest.fixture
def workflow_executor(clock):
    return WorkflowExecutor(clock=clock)


@pytest.fixture
def purchasing(repository, catalog, workflow_executor, clock):
    return PurchasingService(repository, catalog, workflow_executor=workflow_executor, clock=clock)


@pytest.fixture
def sales(repository, catalog, workflow_executor, clock):
    return SalesService(repository, catalog, workflow_executor=workflow_executor, clock=clock)


@pytest.fixture
def lenient_sales(repository, catalog, workflow_executor, clock):
    """Sales service that completes orders without settled invoices."""
    return SalesService(
        repository, catalog, workflow_executor=workflow_executor, clock=clock,
        config=SalesConfig(require_invoice_settlement=False),
    )


@pytest.fixture
def invoicing(repository, workflow_executor, clock):
    return InvoicingService(repository, workflow_executor=workflow_executor, clock=clock)


# =============================================================================
# Pipeline shortcuts
# =============================================================================


@pytest.fixture
def ordered_purchase_order(purchasing):
    """Return a factory placing a purchase order in status ``ordered``."""

    def _place(lines=None, supplier_id="SUP-1"):
        lines = lines or [{"item_id": "ITEM-1", "quantity": "200", "unit_price": "1200"}]
        order = purchasing.create_purchase_order(supplier_id, lines).unwrap()
        purchasing.submit_purchase_order(order.id).unwrap()
        purchasing.approve_purchase_order(order.id, approved_by="head-of-purchasing").unwrap()
        return purchasing.confirm_purchase_order(order.id).unwrap()

    return _place


@pytest.fixture
def confirmed_sales_order(sales):
    """Return a factory creating and confirming a sales order."""

    def _create(lines=None):
        lines = lines or [{"item_id": "ITEM-1", "quantity": "75"}]
        order = sales.create_sales_order("CUST-1", lines).unwrap()
        return sales.confirm_sales_order(order.id).unwrap()

    return _create


@pytest.fixture
def picked_order(sales, confirmed_sales_order):
    """Return a factory producing (order, completed picklist) fully picked."""

    def _pick(lines=None):
        order = confirmed_sales_order(lines)
        picklist = sales.generate_picklist(order.id).unwrap()
        for line in picklist.lines:
            sales.record_pick(picklist.id, line.id, line.ordered_quantity).unwrap()
        completed = sales.complete_picklist(picklist.id).unwrap()
        return order, completed

    return _pick
