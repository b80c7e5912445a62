"""Loan Aggregate — the loan entity, its owned records, and every guarded operation.

Invariants:
    - 0 <= total_invested <= principal_amount at all times
    - total_invested == sum(i.amount for i in investments) (no drift)
    - status only moves forward along the lifecycle graph, one edge at a time
    - approval details exist iff status != proposed
    - disbursement details exist iff status == disbursed
    - A rejected operation raises before touching any field (no partial effect)

Design Decisions:
    - Status is a tagged variant (Proposed | Approved | Invested | Disbursed) whose
      payload carries exactly the detail records that status requires
    - Identity comes from Loan.create, not from the storage layer
    - Timestamps injectable via `now` for deterministic tests
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal, InvalidOperation as DecimalInvalidOperation
from typing import ClassVar, Union
from uuid import uuid4

from loan_service.core.domain_types import InvestmentId, LoanId, LoanStatus
from loan_service.core.errors import (
    ErrorContext,
    InvalidOperationError,
    LimitExceededError,
    LoanValidationError,
)
from loan_service.core.lifecycle_graph import attempt_transition

DEFAULT_AGREEMENTS_BASE_URL = "https://example.com/agreements"

# (max_digits, decimal_places) of the stored columns
MONEY_PRECISION = (18, 2)
RATE_PRECISION = (9, 4)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: object, field_name: str) -> Decimal:
    """Coerce a caller-supplied number to Decimal. Floats go through str()."""
    if isinstance(value, bool):
        raise LoanValidationError(f"{field_name} must be a number", field_name)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (DecimalInvalidOperation, TypeError, ValueError):
            raise LoanValidationError(f"{field_name} must be a number", field_name)
    if not result.is_finite():
        raise LoanValidationError(f"{field_name} must be finite", field_name)
    return result


def _require_positive(
    value: object, field_name: str, precision: tuple[int, int] = MONEY_PRECISION,
) -> Decimal:
    """Positive and exactly representable at the given (max_digits, decimal_places)."""
    amount = to_decimal(value, field_name)
    if amount <= 0:
        raise LoanValidationError(f"{field_name} must be greater than 0", field_name)
    max_digits, places = precision
    if amount.adjusted() >= max_digits - places:
        raise LoanValidationError(f"{field_name} is too large", field_name)
    if amount != amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN):
        raise LoanValidationError(
            f"{field_name} allows at most {places} decimal places", field_name,
        )
    return amount


def agreement_letter_link(loan_id: LoanId, base_url: str = DEFAULT_AGREEMENTS_BASE_URL) -> str:
    """Deterministic agreement letter location for a funded loan."""
    return f"{base_url.rstrip('/')}/loan_{loan_id}_agreement.pdf"


# ─── Value Records ───────────────────────────────────────────────

@dataclass(frozen=True)
class ApprovalDetails:
    validator_proof_link: str
    validator_id: str
    approval_timestamp: datetime


@dataclass(frozen=True)
class DisbursementDetails:
    signed_agreement_link: str
    field_officer_id: str
    disbursement_timestamp: datetime


@dataclass(frozen=True)
class Investment:
    """One accepted investment installment. Never modified after creation."""
    id: InvestmentId
    loan_id: LoanId
    investor_id: str
    amount: Decimal
    created_at: datetime


# ─── Status Variants ─────────────────────────────────────────────

@dataclass(frozen=True)
class Proposed:
    status: ClassVar[LoanStatus] = LoanStatus.PROPOSED


@dataclass(frozen=True)
class Approved:
    approval: ApprovalDetails
    status: ClassVar[LoanStatus] = LoanStatus.APPROVED


@dataclass(frozen=True)
class Invested:
    approval: ApprovalDetails
    status: ClassVar[LoanStatus] = LoanStatus.INVESTED


@dataclass(frozen=True)
class Disbursed:
    approval: ApprovalDetails
    disbursement: DisbursementDetails
    status: ClassVar[LoanStatus] = LoanStatus.DISBURSED


LoanPhase = Union[Proposed, Approved, Invested, Disbursed]


# ─── Aggregate Root ──────────────────────────────────────────────

@dataclass
class Loan:
    """Loan aggregate root. Mutated in place by guarded operations only."""

    id: LoanId
    borrower_id: str
    principal_amount: Decimal
    rate: Decimal
    roi: Decimal
    created_at: datetime
    updated_at: datetime
    phase: LoanPhase = field(default_factory=Proposed)
    investments: list[Investment] = field(default_factory=list)
    total_invested: Decimal = Decimal("0")
    agreement_letter_link: str = ""
    version: int = 0

    @classmethod
    def create(
        cls,
        borrower_id: str,
        principal_amount: object,
        rate: object,
        roi: object,
        now: datetime | None = None,
    ) -> "Loan":
        """Factory: new loan in proposed status, zero investment, fresh id."""
        if not borrower_id or not borrower_id.strip():
            raise LoanValidationError("borrower_id is required", "borrower_id")
        stamp = now or _utcnow()
        return cls(
            id=LoanId(uuid4()),
            borrower_id=borrower_id,
            principal_amount=_require_positive(principal_amount, "principal_amount"),
            rate=_require_positive(rate, "rate", RATE_PRECISION),
            roi=_require_positive(roi, "roi", RATE_PRECISION),
            created_at=stamp,
            updated_at=stamp,
        )

    # --- Derived views --------------------------------------------------------

    @property
    def status(self) -> LoanStatus:
        return self.phase.status

    @property
    def approval_details(self) -> ApprovalDetails | None:
        return getattr(self.phase, "approval", None)

    @property
    def disbursement_details(self) -> DisbursementDetails | None:
        return getattr(self.phase, "disbursement", None)

    @property
    def is_funded(self) -> bool:
        return self.total_invested >= self.principal_amount

    @property
    def remaining_amount(self) -> Decimal:
        return self.principal_amount - self.total_invested

    # --- Guards ---------------------------------------------------------------

    def can_update(self) -> bool:
        return self.status == LoanStatus.PROPOSED

    def can_delete(self) -> bool:
        return self.status == LoanStatus.PROPOSED

    def can_approve(self) -> bool:
        return self.status == LoanStatus.PROPOSED

    def can_invest(self) -> bool:
        return self.status == LoanStatus.APPROVED

    def can_disburse(self) -> bool:
        # Funded re-check is redundant given the invariants; kept as a second guard.
        return self.status == LoanStatus.INVESTED and self.is_funded

    # --- Guarded operations ---------------------------------------------------

    def apply_updates(
        self,
        principal_amount: object | None = None,
        rate: object | None = None,
        roi: object | None = None,
        agreement_letter_link: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Edit terms of a proposed loan. Fields left as None are untouched."""
        if not self.can_update():
            raise InvalidOperationError(
                "can only update loans in proposed status", self._context(),
            )
        changes: dict[str, object] = {}
        if principal_amount is not None:
            changes["principal_amount"] = _require_positive(principal_amount, "principal_amount")
        if rate is not None:
            changes["rate"] = _require_positive(rate, "rate", RATE_PRECISION)
        if roi is not None:
            changes["roi"] = _require_positive(roi, "roi", RATE_PRECISION)
        if agreement_letter_link is not None:
            changes["agreement_letter_link"] = agreement_letter_link
        for name, value in changes.items():
            setattr(self, name, value)
        self._touch(now)

    def ensure_deletable(self) -> None:
        if not self.can_delete():
            raise InvalidOperationError(
                "can only delete loans in proposed status", self._context(),
            )

    def approve(
        self, validator_proof_link: str, validator_id: str, now: datetime | None = None,
    ) -> ApprovalDetails:
        """proposed -> approved. Not idempotent: a second call fails."""
        if not self.can_approve():
            raise InvalidOperationError(
                "can only approve loans in proposed status", self._context(),
            )
        attempt_transition(self.status, LoanStatus.APPROVED)
        stamp = now or _utcnow()
        approval = ApprovalDetails(
            validator_proof_link=validator_proof_link,
            validator_id=validator_id,
            approval_timestamp=stamp,
        )
        self.phase = Approved(approval=approval)
        self._touch(stamp)
        return approval

    def add_investment(
        self,
        investor_id: str,
        amount: object,
        agreements_base_url: str = DEFAULT_AGREEMENTS_BASE_URL,
        now: datetime | None = None,
    ) -> Investment:
        """Accept one installment; auto-advance to invested once funded.

        Raises:
            InvalidOperationError: loan is not approved.
            LoanValidationError: amount is not a positive number.
            LimitExceededError: the installment would push the total past the principal.
        """
        if not self.can_invest():
            raise InvalidOperationError(
                "loan is not in approved status", self._context(investor_id),
            )
        value = _require_positive(amount, "amount")
        if self.total_invested + value > self.principal_amount:
            raise LimitExceededError(
                "total investment amount would exceed loan principal",
                self._context(investor_id),
            )

        stamp = now or _utcnow()
        investment = Investment(
            id=InvestmentId(uuid4()),
            loan_id=self.id,
            investor_id=investor_id,
            amount=value,
            created_at=stamp,
        )
        self.investments.append(investment)
        self.total_invested += value

        if self.is_funded:
            # Only path into invested; the approval record carries over.
            self.phase = Invested(approval=self.phase.approval)
            self.agreement_letter_link = agreement_letter_link(self.id, agreements_base_url)
        self._touch(stamp)
        return investment

    def disburse(
        self, signed_agreement_link: str, field_officer_id: str, now: datetime | None = None,
    ) -> DisbursementDetails:
        """invested -> disbursed. Not idempotent: a second call fails."""
        if not self.can_disburse():
            raise InvalidOperationError(
                "can only disburse fully invested loans", self._context(),
            )
        attempt_transition(self.status, LoanStatus.DISBURSED)
        stamp = now or _utcnow()
        disbursement = DisbursementDetails(
            signed_agreement_link=signed_agreement_link,
            field_officer_id=field_officer_id,
            disbursement_timestamp=stamp,
        )
        self.phase = Disbursed(approval=self.phase.approval, disbursement=disbursement)
        self._touch(stamp)
        return disbursement

    # --- Helpers --------------------------------------------------------------

    def snapshot(self) -> "Loan":
        """Independent copy; investment records are immutable and shared."""
        return replace(self, investments=list(self.investments))

    def _touch(self, now: datetime | None) -> None:
        self.updated_at = now or _utcnow()

    def _context(self, investor_id: str | None = None) -> ErrorContext:
        return ErrorContext(loan_id=str(self.id), investor_id=investor_id)
