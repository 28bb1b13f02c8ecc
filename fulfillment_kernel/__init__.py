"""
Fulfillment Kernel

Shared foundation of the order-fulfillment pipeline:
- Typed exceptions with stable codes
- Structured JSON logging
- Pure domain value objects (amounts, statuses, workflows, catalog refs)
- Document storage schema for the SQL adapter
"""

__version__ = "0.1.0"
