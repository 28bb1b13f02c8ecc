"""
Backend REST endpoints per document type and action.

Paths are relative to the API base URL.  Action endpoints are ``POST``
with an empty body unless noted; their responses are the updated
document in the same shape as ``get``.

    >>> endpoint_for(DocumentType.PURCHASE_ORDER, "confirm").path_for(id=42)
    '/purchase/orders/42/confirm'
"""

from __future__ import annotations

from dataclasses import dataclass
from string import Formatter

from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class Endpoint:
    method: str
    path: str

    @property
    def parameters(self) -> tuple[str, ...]:
        """Placeholder names in ``path``."""
        return tuple(name for _, name, _, _ in Formatter().parse(self.path) if name)

    def path_for(self, **params: object) -> str:
        missing = [name for name in self.parameters if name not in params]
        if missing:
            raise ValidationError(
                f"{self.method} {self.path} needs {', '.join(missing)}",
                field=missing[0],
            )
        return self.path.format(**{name: params[name] for name in self.parameters})


_REQUISITIONS = "/purchase/requisitions"
_ORDERS = "/purchase/orders"
_RECEIPTS = "/purchase/receipts"
_PURCHASE_INVOICES = "/purchase/invoices"
_SALES_ORDERS = "/sales/orders"
_PICKLISTS = "/warehouse/picklists"
_SHIPMENTS = "/warehouse/shipments"
_SALES_INVOICES = "/sales/invoices"


def _collection(base: str) -> dict[str, Endpoint]:
    return {
        "list": Endpoint("GET", base),
        "get": Endpoint("GET", base + "/{id}"),
        "create": Endpoint("POST", base),
        "update": Endpoint("PUT", base + "/{id}"),
    }


def _actions(base: str, **actions: str) -> dict[str, Endpoint]:
    return {name: Endpoint("POST", f"{base}/{{id}}/{segment}") for name, segment in actions.items()}


ENDPOINTS: dict[DocumentType, dict[str, Endpoint]] = {
    DocumentType.REQUISITION: {
        **_collection(_REQUISITIONS),
        **_actions(
            _REQUISITIONS,
            submit="submit",
            approve="approve",
            reject="reject",
            convert_to_po="convert-to-po",
        ),
    },
    DocumentType.PURCHASE_ORDER: {
        **_collection(_ORDERS),
        **_actions(_ORDERS, submit="submit", approve="approve", confirm="confirm", cancel="cancel"),
    },
    DocumentType.GOODS_RECEIPT: {
        "create": Endpoint("POST", _RECEIPTS),
        "by_order": Endpoint("GET", _RECEIPTS + "/purchase-order/{order_id}"),
    },
    DocumentType.PURCHASE_INVOICE: _collection(_PURCHASE_INVOICES),
    DocumentType.SALES_ORDER: {
        **_collection(_SALES_ORDERS),
        **_actions(_SALES_ORDERS, confirm="confirm", cancel="cancel"),
    },
    DocumentType.PICKLIST: {
        "list": Endpoint("GET", _PICKLISTS),
        "get": Endpoint("GET", _PICKLISTS + "/{id}"),
        # body: {"warehouseId": ...} when the order spans no single warehouse
        "from_sales_order": Endpoint("POST", _PICKLISTS + "/from-sales-order/{order_id}"),
        **_actions(_PICKLISTS, picked="picked", cancel="cancel"),
    },
    DocumentType.DISPATCH: {
        "list": Endpoint("GET", _SHIPMENTS),
        "get": Endpoint("GET", _SHIPMENTS + "/{id}"),
        # body: shipment_payload(details)
        "from_picklist": Endpoint("POST", _SHIPMENTS + "/from-picklist/{picklist_id}"),
        **_actions(
            _SHIPMENTS,
            dispatch="dispatch",
            in_transit="in-transit",
            delivered="delivered",
            cancel="cancel",
        ),
    },
    DocumentType.SALES_INVOICE: _collection(_SALES_INVOICES),
}


def endpoint_for(document_type: DocumentType, action: str) -> Endpoint:
    """The endpoint serving ``action`` on ``document_type``.

    Raises:
        ValidationError: the backend has no such endpoint.
    """
    try:
        return ENDPOINTS[document_type][action]
    except KeyError:
        raise ValidationError(
            f"No backend endpoint for {document_type.value} action {action!r}",
            field="action",
            value=action,
        ) from None
