"""
Purchasing Workflows.

State machines for requisitions, purchase orders and goods receipts.
Every (status, action) pair not listed here is illegal.
"""

from fulfillment_kernel.domain.workflow import Guard, Transition, Workflow
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_LINES = Guard(
    name="has_lines",
    description="Document has at least one line",
)

NOTHING_RECEIVED = Guard(
    name="nothing_received",
    description="No goods received or pending receipt against the order",
)

QUANTITY_OUTSTANDING = Guard(
    name="quantity_outstanding",
    description="Some ordered quantity is still unreceived",
)

ALL_LINES_RECEIVED = Guard(
    name="all_lines_received",
    description="Every order line is fully received",
)

QUALITY_RESOLVED = Guard(
    name="quality_resolved",
    description="Every receipt line has a resolved quality status",
)

logger.info(
    "purchasing_workflow_guards_defined",
    extra={
        "guards": [
            HAS_LINES.name,
            NOTHING_RECEIVED.name,
            QUANTITY_OUTSTANDING.name,
            ALL_LINES_RECEIVED.name,
            QUALITY_RESOLVED.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Requisition Workflow
# -----------------------------------------------------------------------------

REQUISITION_WORKFLOW = Workflow(
    name="requisition",
    description="Purchase requisition lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending",
        "approved",
        "rejected",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "draft", action="edit_lines"),
        Transition("draft", "pending", action="submit", guard=HAS_LINES),
        Transition("pending", "approved", action="approve", guard=HAS_LINES),
        Transition("pending", "rejected", action="reject"),
        Transition("approved", "cancelled", action="cancel"),
    ),
    terminal_states=("rejected", "cancelled"),
)

logger.info(
    "purchasing_requisition_workflow_registered",
    extra={
        "workflow_name": REQUISITION_WORKFLOW.name,
        "state_count": len(REQUISITION_WORKFLOW.states),
        "transition_count": len(REQUISITION_WORKFLOW.transitions),
        "initial_state": REQUISITION_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending",
        "approved",
        "ordered",
        "partially_received",
        "received",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "draft", action="edit_lines"),
        Transition("draft", "pending", action="submit", guard=HAS_LINES),
        Transition("pending", "approved", action="approve"),
        Transition("approved", "ordered", action="confirm"),
        Transition("ordered", "partially_received", action="receive", guard=QUANTITY_OUTSTANDING),
        Transition("ordered", "received", action="receive", guard=ALL_LINES_RECEIVED),
        Transition("partially_received", "partially_received", action="receive", guard=QUANTITY_OUTSTANDING),
        Transition("partially_received", "received", action="receive", guard=ALL_LINES_RECEIVED),
        Transition("draft", "cancelled", action="cancel", guard=NOTHING_RECEIVED),
        Transition("pending", "cancelled", action="cancel", guard=NOTHING_RECEIVED),
        Transition("approved", "cancelled", action="cancel", guard=NOTHING_RECEIVED),
        Transition("ordered", "cancelled", action="cancel", guard=NOTHING_RECEIVED),
    ),
    terminal_states=("received", "cancelled"),
)

logger.info(
    "purchasing_po_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Goods Receipt Workflow
# -----------------------------------------------------------------------------

GOODS_RECEIPT_WORKFLOW = Workflow(
    name="goods_receipt",
    description="Goods receipt and inspection lifecycle",
    initial_state="pending",
    states=(
        "pending",
        "in_progress",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "in_progress", action="start"),
        Transition("pending", "in_progress", action="inspect"),
        Transition("in_progress", "in_progress", action="inspect"),
        Transition("in_progress", "completed", action="complete", guard=QUALITY_RESOLVED),
        Transition("pending", "cancelled", action="cancel"),
        Transition("in_progress", "cancelled", action="cancel"),
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "purchasing_goods_receipt_workflow_registered",
    extra={
        "workflow_name": GOODS_RECEIPT_WORKFLOW.name,
        "state_count": len(GOODS_RECEIPT_WORKFLOW.states),
        "transition_count": len(GOODS_RECEIPT_WORKFLOW.transitions),
        "initial_state": GOODS_RECEIPT_WORKFLOW.initial_state,
    },
)
