"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - LoanId, InvestmentId wrap UUIDs — never use bare UUID in domain logic
    - Money is always Decimal, never float
    - All loan states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

LoanId = NewType("LoanId", UUID)
InvestmentId = NewType("InvestmentId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class LoanStatus(str, Enum):
    """Loan lifecycle states — maps to DB `status` column. Order is the lifecycle order."""
    PROPOSED = "proposed"
    APPROVED = "approved"
    INVESTED = "invested"
    DISBURSED = "disbursed"


class LoanAction(str, Enum):
    """Action names attached to lifecycle edges."""
    APPROVE = "approve"
    INVEST = "invest"
    DISBURSE = "disburse"
