"""
Invoicing Workflows.

One state machine for purchase and sales invoices.  ``overdue`` is not a
state of the machine: it is derived from the due date when an invoice is
displayed (see ``fulfillment_engines.settlement``).
"""

from fulfillment_kernel.domain.workflow import Guard, Transition, Workflow
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.workflows")


HAS_LINES = Guard(
    name="has_lines",
    description="Invoice has at least one line",
)

FULLY_PAID = Guard(
    name="fully_paid",
    description="Paid amount equals the invoice total",
)

PARTIALLY_PAID = Guard(
    name="partially_paid",
    description="Paid amount is above zero and below the invoice total",
)

NO_PAYMENT = Guard(
    name="no_payment",
    description="Nothing has been paid against the invoice",
)

NOTHING_DUE = Guard(
    name="nothing_due",
    description="Invoice has lines and a zero total",
)

logger.info(
    "invoicing_workflow_guards_defined",
    extra={
        "guards": [
            HAS_LINES.name,
            FULLY_PAID.name,
            PARTIALLY_PAID.name,
            NO_PAYMENT.name,
            NOTHING_DUE.name,
        ],
    },
)


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Purchase and sales invoice lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending",
        "partially_paid",
        "paid",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "draft", action="edit_lines"),
        Transition("draft", "paid", action="issue", guard=NOTHING_DUE),
        Transition("draft", "pending", action="issue", guard=HAS_LINES),
        Transition("pending", "paid", action="record_payment", guard=FULLY_PAID),
        Transition("pending", "partially_paid", action="record_payment", guard=PARTIALLY_PAID),
        Transition("partially_paid", "paid", action="record_payment", guard=FULLY_PAID),
        Transition("partially_paid", "partially_paid", action="record_payment", guard=PARTIALLY_PAID),
        Transition("draft", "cancelled", action="cancel", guard=NO_PAYMENT),
        Transition("pending", "cancelled", action="cancel", guard=NO_PAYMENT),
    ),
    terminal_states=("paid", "cancelled"),
)

logger.info(
    "invoicing_invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)
