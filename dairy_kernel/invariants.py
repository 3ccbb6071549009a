"""
Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the reservation
engine, the request lifecycle and the settlement path. No configuration
switch may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across domain.reservation, the deduction ledger,
the settlement service and the operation surface's unit of work.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    RESERVATION_BOUNDS = "reservation_bounds"
    """0 <= reserved_quantity <= quantity_on_hand for every feed. Enforced by
    domain.reservation and by DB check constraints."""

    SINGLE_ACTIVE_DEDUCTION = "single_active_deduction"
    """At most one active feed_deduction per feed request. Enforced by
    DeductionLedger and a partial unique index."""

    ATOMIC_UNIT_OF_WORK = "atomic_unit_of_work"
    """A transition or settlement applies all of its writes or none.
    Enforced by dairy_services.unit_of_work."""

    SETTLED_IS_FINAL = "settled_is_final"
    """Processed deductions and paid revenue are never deleted or reopened.
    Enforced by DeductionLedger and SettlementService."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "dairy_services",
    "dairy_config",
)
