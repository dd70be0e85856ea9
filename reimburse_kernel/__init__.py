"""
Reimbursement Kernel

Pure, synchronous core for itemized reimbursement requests moving through a
fixed Facilitator -> Coordinator -> PI -> Finance approval chain:
- Immutable request snapshots with an append-only audit trail
- Role-gated status transitions declared as one workflow table
- Typed, coded exceptions
- Whole-snapshot persistence through SQLAlchemy
"""

__version__ = "0.1.0"
