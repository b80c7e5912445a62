"""Lifecycle Graph — the static table of legal loan status edges.

Invariants:
    - Exactly 3 edges: proposed -> approved -> invested -> disbursed
    - disbursed is terminal (no outgoing edges)
    - All functions are PURE: no IO, no loan-specific data

Design Decisions:
    - approve and disburse go through attempt_transition; invest does not.
      The "invest" edge is advertised by valid_actions only, the actual move to
      invested happens inside Loan.add_investment once the loan is funded.
"""

from dataclasses import dataclass

from loan_service.core.domain_types import LoanAction, LoanStatus
from loan_service.core.errors import InvalidTransitionError


@dataclass(frozen=True)
class StateTransition:
    """One lifecycle edge."""
    from_status: LoanStatus
    to_status: LoanStatus
    action: LoanAction


TRANSITIONS: tuple[StateTransition, ...] = (
    StateTransition(LoanStatus.PROPOSED, LoanStatus.APPROVED, LoanAction.APPROVE),
    StateTransition(LoanStatus.APPROVED, LoanStatus.INVESTED, LoanAction.INVEST),
    StateTransition(LoanStatus.INVESTED, LoanStatus.DISBURSED, LoanAction.DISBURSE),
)


def valid_actions(current: LoanStatus) -> list[StateTransition]:
    """Edges leaving `current`, in declaration order. Empty for terminal states."""
    return [t for t in TRANSITIONS if t.from_status == current]


def can_transition(current: LoanStatus, target: LoanStatus) -> bool:
    return any(
        t.from_status == current and t.to_status == target
        for t in TRANSITIONS
    )


def attempt_transition(current: LoanStatus, target: LoanStatus) -> LoanStatus:
    """Return `target` if a single edge connects it to `current`.

    Raises:
        InvalidTransitionError: no such edge (includes skips and regressions).
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)
    return target
