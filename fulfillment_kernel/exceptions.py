"""
Typed exception hierarchy for the fulfillment pipeline.

Every error raised by the kernel, engines, modules, services and the DTO
normalizer is a subclass of ``FulfillmentError``. Callers catch by type,
never by message text.

Rules:
  1. Every class carries a ``code`` class attribute (stable, API-safe).
  2. Context is stored as instance attributes, not only in the message.
     The structured log formatter emits them as ``exc_<name>`` fields.

Hierarchy:

    FulfillmentError
    |
    +-- InvalidTransitionError          INVALID_TRANSITION
    |
    +-- ReconciliationError             RECONCILIATION_ERROR
    |   +-- OverReceiptError            OVER_RECEIPT
    |   +-- OverPickError               OVER_PICK
    |   +-- QuantityMismatchError       QUANTITY_MISMATCH
    |
    +-- ValidationError                 VALIDATION_ERROR
    |
    +-- UnexpectedResponseShapeError    UNEXPECTED_RESPONSE_SHAPE
    |
    +-- DocumentNotFoundError           DOCUMENT_NOT_FOUND
    +-- DuplicateDocumentError          DUPLICATE_DOCUMENT
    +-- ReferenceNotFoundError          REFERENCE_NOT_FOUND
    |
    +-- PreconditionFailedError         PRECONDITION_FAILED
    |   +-- AmbiguousWarehouseError     AMBIGUOUS_WAREHOUSE
    |   +-- ActivePicklistExistsError   ACTIVE_PICKLIST_EXISTS
    |   +-- ActiveDispatchExistsError   ACTIVE_DISPATCH_EXISTS
    |
    +-- OrchestrationFailure            ORCHESTRATION_FAILURE
    |
    +-- ConfigurationError              CONFIGURATION_ERROR

Recoverability:

    InvalidTransitionError, ReconciliationError, ValidationError and
    PreconditionFailedError are recoverable locally: the action is rejected
    and no document changes.

    UnexpectedResponseShapeError is a hard failure. The backend returned
    something the normalizer cannot map; guessing would corrupt totals.

    OrchestrationFailure reports which steps of a multi-step sequence were
    applied, which failed and which never ran, so the caller can compensate.
"""

from collections.abc import Sequence


class FulfillmentError(Exception):
    """Base exception for all fulfillment pipeline errors."""

    code: str = "FULFILLMENT_ERROR"


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class InvalidTransitionError(FulfillmentError):
    """A workflow rejected an action from the document's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        document_type: str,
        current_status: str,
        action: str,
        reason: str | None = None,
        document_id: str | None = None,
    ):
        self.document_type = document_type
        self.current_status = current_status
        self.action = action
        self.reason = reason
        self.document_id = document_id
        message = (
            f"Cannot {action} {document_type} in status '{current_status}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Quantity reconciliation
# ---------------------------------------------------------------------------


class ReconciliationError(FulfillmentError):
    """Base exception for quantity invariant violations."""

    code: str = "RECONCILIATION_ERROR"


class OverReceiptError(ReconciliationError):
    """Cumulative received quantity would exceed the ordered quantity."""

    code: str = "OVER_RECEIPT"

    def __init__(
        self,
        ordered: str,
        previously_received: str,
        received: str,
        line_id: str | None = None,
    ):
        self.ordered = ordered
        self.previously_received = previously_received
        self.received = received
        self.line_id = line_id
        super().__init__(
            f"Receiving {received} on top of {previously_received} "
            f"exceeds ordered quantity {ordered}"
            + (f" (line {line_id})" if line_id else "")
        )


class OverPickError(ReconciliationError):
    """Picked quantity exceeds the ordered quantity."""

    code: str = "OVER_PICK"

    def __init__(self, ordered: str, picked: str, line_id: str | None = None):
        self.ordered = ordered
        self.picked = picked
        self.line_id = line_id
        super().__init__(
            f"Picked quantity {picked} exceeds ordered quantity {ordered}"
            + (f" (line {line_id})" if line_id else "")
        )


class QuantityMismatchError(ReconciliationError):
    """Accepted plus rejected does not equal received."""

    code: str = "QUANTITY_MISMATCH"

    def __init__(
        self,
        received: str,
        accepted: str,
        rejected: str,
        line_id: str | None = None,
    ):
        self.received = received
        self.accepted = accepted
        self.rejected = rejected
        self.line_id = line_id
        super().__init__(
            f"Accepted {accepted} + rejected {rejected} "
            f"does not equal received {received}"
            + (f" (line {line_id})" if line_id else "")
        )


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class ValidationError(FulfillmentError):
    """Malformed input, e.g. a non-positive quantity."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, value: object = None):
        self.field = field
        self.value = value
        super().__init__(message)


# ---------------------------------------------------------------------------
# DTO normalization
# ---------------------------------------------------------------------------


class UnexpectedResponseShapeError(FulfillmentError):
    """A backend response cannot be mapped into the domain model."""

    code: str = "UNEXPECTED_RESPONSE_SHAPE"

    def __init__(self, shape: str, reason: str, field: str | None = None):
        self.shape = shape
        self.reason = reason
        self.field = field
        location = f"{shape}.{field}" if field else shape
        super().__init__(f"Unexpected {location} response: {reason}")


# ---------------------------------------------------------------------------
# Storage and reference data
# ---------------------------------------------------------------------------


class DocumentNotFoundError(FulfillmentError):
    """No document with the given id exists in the store."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"{document_type} not found: {document_id}")


class DuplicateDocumentError(FulfillmentError):
    """A document with the given id already exists in the store."""

    code: str = "DUPLICATE_DOCUMENT"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"{document_type} already exists: {document_id}")


class ReferenceNotFoundError(FulfillmentError):
    """A catalog lookup (item, warehouse, supplier, customer) found nothing."""

    code: str = "REFERENCE_NOT_FOUND"

    def __init__(self, reference_type: str, reference_id: str):
        self.reference_type = reference_type
        self.reference_id = reference_id
        super().__init__(f"{reference_type} not found: {reference_id}")


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class PreconditionFailedError(FulfillmentError):
    """A cross-document precondition of an orchestrated action does not hold."""

    code: str = "PRECONDITION_FAILED"


class AmbiguousWarehouseError(PreconditionFailedError):
    """Sales order lines resolve to more than one warehouse."""

    code: str = "AMBIGUOUS_WAREHOUSE"

    def __init__(self, order_id: str, warehouse_ids: Sequence[str]):
        self.order_id = order_id
        self.warehouse_ids = tuple(sorted(warehouse_ids))
        super().__init__(
            f"Sales order {order_id} spans multiple warehouses: "
            f"{', '.join(self.warehouse_ids)}"
        )


class ActivePicklistExistsError(PreconditionFailedError):
    """The sales order already has a picklist that is not cancelled."""

    code: str = "ACTIVE_PICKLIST_EXISTS"

    def __init__(self, order_id: str, picklist_id: str):
        self.order_id = order_id
        self.picklist_id = picklist_id
        super().__init__(
            f"Sales order {order_id} already has active picklist {picklist_id}"
        )


class ActiveDispatchExistsError(PreconditionFailedError):
    """The picklist already has a dispatch that is not cancelled."""

    code: str = "ACTIVE_DISPATCH_EXISTS"

    def __init__(self, picklist_id: str, dispatch_id: str):
        self.picklist_id = picklist_id
        self.dispatch_id = dispatch_id
        super().__init__(
            f"Picklist {picklist_id} already has active dispatch {dispatch_id}"
        )


class OrchestrationFailure(FulfillmentError):
    """A multi-step sequence could not be applied in full.

    ``steps_succeeded`` were applied and persist. When ``rolled_back`` is
    set nothing persists: steps that ran before the failure are listed in
    ``steps_rolled_back`` instead and ``steps_succeeded`` is empty.
    """

    code: str = "ORCHESTRATION_FAILURE"

    def __init__(
        self,
        action: str,
        steps_succeeded: Sequence[str],
        steps_failed: Sequence[str],
        steps_pending: Sequence[str] = (),
        reason: str | None = None,
        rolled_back: bool = False,
        steps_rolled_back: Sequence[str] = (),
    ):
        self.action = action
        self.steps_succeeded = tuple(steps_succeeded)
        self.steps_failed = tuple(steps_failed)
        self.steps_pending = tuple(steps_pending)
        self.reason = reason
        self.rolled_back = rolled_back
        self.steps_rolled_back = tuple(steps_rolled_back)
        super().__init__(
            f"{action} failed at {', '.join(self.steps_failed) or 'unknown step'}"
            + (f": {reason}" if reason else "")
        )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(FulfillmentError):
    """A configuration document is missing or malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)
