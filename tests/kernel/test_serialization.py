"""Tests for the dataclass JSON codec (fulfillment_kernel/utils/serialization.py)."""

import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from fulfillment_kernel.domain.catalog import ReferenceSnapshot
from fulfillment_kernel.utils.serialization import dump_document, load_document
from fulfillment_modules.purchasing.models import POStatus, PurchaseOrder, PurchaseOrderLine
from fulfillment_modules.sales.models import (
    DeliveryTrackingEvent,
    Dispatch,
    DispatchStatus,
    TrackingStatus,
)


def _order() -> PurchaseOrder:
    return PurchaseOrder(
        id="po-1",
        document_no="PO-2024-001",
        supplier_id="SUP-1",
        order_date=date(2024, 3, 15),
        status=POStatus.PARTIALLY_RECEIVED,
        lines=(
            PurchaseOrderLine(
                id="po-1-1",
                item_id="ITEM-1",
                quantity=Decimal("200"),
                unit_price=Decimal("1200.00"),
                tax_percent=Decimal("18"),
                line_total=Decimal("283200.00"),
                item=ReferenceSnapshot("ITEM-1", "SR-12", "Steel Rod 12mm"),
                received_quantity=Decimal("150"),
                accepted_quantity=Decimal("150"),
            ),
        ),
        subtotal=Decimal("240000.00"),
        tax_amount=Decimal("43200.00"),
        total_amount=Decimal("283200.00"),
        supplier=ReferenceSnapshot("SUP-1", "ACME", "Acme Metals"),
    )


class TestDumpDocument:

    def test_primitives_only(self):
        data = dump_document(_order())
        assert data["status"] == "partially_received"
        assert data["order_date"] == "2024-03-15"
        assert data["total_amount"] == "283200.00"
        assert data["lines"][0]["item"] == {"id": "ITEM-1", "code": "SR-12", "name": "Steel Rod 12mm"}
        assert data["expected_date"] is None
        json.dumps(data)

    def test_decimal_precision_kept(self):
        data = dump_document(_order())
        assert data["lines"][0]["unit_price"] == "1200.00"


class TestLoadDocument:

    def test_purchase_order(self):
        order = _order()
        assert load_document(PurchaseOrder, json.loads(json.dumps(dump_document(order)))) == order

    def test_dispatch_with_tracking_history(self):
        dispatch = Dispatch(
            id="dsp-1",
            document_no="DSP-2024-001",
            picklist_id="pl-1",
            order_id="so-1",
            status=DispatchStatus.IN_TRANSIT,
            tracking=(
                DeliveryTrackingEvent(
                    id="ev-1", dispatch_id="dsp-1", status=TrackingStatus.DISPATCHED,
                    timestamp=datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc),
                ),
                DeliveryTrackingEvent(
                    id="ev-2", dispatch_id="dsp-1", status=TrackingStatus.IN_TRANSIT,
                    timestamp=datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc),
                    location="Nashik hub",
                ),
            ),
            estimated_delivery_date=date(2024, 3, 18),
        )
        loaded = load_document(Dispatch, dump_document(dispatch))
        assert loaded == dispatch
        assert loaded.tracking[1].timestamp.tzinfo is not None

    def test_missing_optional_fields_take_defaults(self):
        data = dump_document(_order())
        del data["notes"]
        del data["created_at"]
        assert load_document(PurchaseOrder, data).notes is None

    def test_unsupported_union_rejected(self):
        @dataclass(frozen=True)
        class Ambiguous:
            value: int | str

        with pytest.raises(TypeError):
            load_document(Ambiguous, {"value": 1})
