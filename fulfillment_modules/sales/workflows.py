"""
Sales Workflows.

State machines for sales orders, picklists, dispatches and the delivery
tracking history of a dispatch.  Every (status, action) pair not listed
here is illegal.
"""

from fulfillment_kernel.domain.workflow import Guard, Transition, Workflow
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.sales.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_LINES = Guard(
    name="has_lines",
    description="Document has at least one line",
)

ALL_LINES_PICKED = Guard(
    name="all_lines_picked",
    description="Every picklist line has a picked quantity recorded",
)

READY_FOR_COMPLETION = Guard(
    name="ready_for_completion",
    description="A dispatch is delivered and required invoices are settled",
)

logger.info(
    "sales_workflow_guards_defined",
    extra={
        "guards": [
            HAS_LINES.name,
            ALL_LINES_PICKED.name,
            READY_FOR_COMPLETION.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Sales Order Workflow
# -----------------------------------------------------------------------------

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "confirmed",
        "picked",
        "dispatched",
        "delivered",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "draft", action="edit_lines"),
        Transition("draft", "confirmed", action="confirm", guard=HAS_LINES),
        Transition("confirmed", "picked", action="mark_picked"),
        Transition("picked", "dispatched", action="dispatch"),
        Transition("dispatched", "delivered", action="complete", guard=READY_FOR_COMPLETION),
        Transition("dispatched", "picked", action="recall"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("confirmed", "cancelled", action="cancel"),
        Transition("picked", "cancelled", action="cancel"),
        Transition("dispatched", "cancelled", action="cancel"),
    ),
    terminal_states=("delivered", "cancelled"),
)

logger.info(
    "sales_order_workflow_registered",
    extra={
        "workflow_name": SALES_ORDER_WORKFLOW.name,
        "state_count": len(SALES_ORDER_WORKFLOW.states),
        "transition_count": len(SALES_ORDER_WORKFLOW.transitions),
        "initial_state": SALES_ORDER_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Picklist Workflow
# -----------------------------------------------------------------------------

PICKLIST_WORKFLOW = Workflow(
    name="picklist",
    description="Warehouse picklist lifecycle",
    initial_state="created",
    states=(
        "created",
        "in_progress",
        "on_hold",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("created", "in_progress", action="start"),
        Transition("created", "in_progress", action="record_pick"),
        Transition("in_progress", "in_progress", action="record_pick"),
        Transition("in_progress", "completed", action="complete", guard=ALL_LINES_PICKED),
        Transition("created", "on_hold", action="hold"),
        Transition("in_progress", "on_hold", action="hold"),
        Transition("on_hold", "in_progress", action="resume"),
        Transition("created", "cancelled", action="cancel"),
        Transition("in_progress", "cancelled", action="cancel"),
        Transition("on_hold", "cancelled", action="cancel"),
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "sales_picklist_workflow_registered",
    extra={
        "workflow_name": PICKLIST_WORKFLOW.name,
        "state_count": len(PICKLIST_WORKFLOW.states),
        "transition_count": len(PICKLIST_WORKFLOW.transitions),
        "initial_state": PICKLIST_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Dispatch Workflow
# -----------------------------------------------------------------------------

DISPATCH_WORKFLOW = Workflow(
    name="dispatch",
    description="Shipment lifecycle from picklist to customer",
    initial_state="created",
    states=(
        "created",
        "dispatched",
        "in_transit",
        "delivered",
        "cancelled",
    ),
    transitions=(
        Transition("created", "dispatched", action="dispatch"),
        Transition("dispatched", "in_transit", action="mark_in_transit"),
        Transition("in_transit", "delivered", action="deliver"),
        Transition("created", "cancelled", action="cancel"),
        Transition("dispatched", "cancelled", action="cancel"),
        Transition("in_transit", "cancelled", action="cancel"),
    ),
    terminal_states=("delivered", "cancelled"),
)

logger.info(
    "sales_dispatch_workflow_registered",
    extra={
        "workflow_name": DISPATCH_WORKFLOW.name,
        "state_count": len(DISPATCH_WORKFLOW.states),
        "transition_count": len(DISPATCH_WORKFLOW.transitions),
        "initial_state": DISPATCH_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Delivery Tracking Workflow
# -----------------------------------------------------------------------------

# Governs which tracking event may follow the latest one.  The first event
# of every history is ``dispatched``.
DELIVERY_TRACKING_WORKFLOW = Workflow(
    name="delivery_tracking",
    description="Sequence of delivery tracking events of one dispatch",
    initial_state="dispatched",
    states=(
        "dispatched",
        "in_transit",
        "out_for_delivery",
        "delivered",
        "failed",
    ),
    transitions=(
        Transition("dispatched", "in_transit", action="in_transit"),
        Transition("in_transit", "out_for_delivery", action="out_for_delivery"),
        Transition("in_transit", "delivered", action="deliver"),
        Transition("out_for_delivery", "delivered", action="deliver"),
        Transition("in_transit", "failed", action="fail"),
        Transition("out_for_delivery", "failed", action="fail"),
        Transition("failed", "in_transit", action="reattempt"),
    ),
    terminal_states=("delivered",),
)

logger.info(
    "sales_delivery_tracking_workflow_registered",
    extra={
        "workflow_name": DELIVERY_TRACKING_WORKFLOW.name,
        "state_count": len(DELIVERY_TRACKING_WORKFLOW.states),
        "transition_count": len(DELIVERY_TRACKING_WORKFLOW.transitions),
        "initial_state": DELIVERY_TRACKING_WORKFLOW.initial_state,
    },
)
