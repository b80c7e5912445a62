"""Loan Schemas — Pydantic models with field-level validation for API boundaries.

Invariants:
    - Money and rate fields are Decimal, strictly positive, and fit their columns
    - Identifier fields are stripped and non-empty
    - field_validator_proof must be an http(s) link that looks like an image
    - Responses mirror the aggregate: nested approval / investments / disbursement

Design Decisions:
    - Decimal serializes as a JSON string: no float rounding on money
    - to_loan_response() is the only Loan -> wire mapping
"""

from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from loan_service.core.domain_types import LoanStatus
from loan_service.core.lifecycle_graph import StateTransition
from loan_service.core.loan import Loan

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg")
IMAGE_PATH_SEGMENTS = ("/images/", "/photos/", "/img/", "/pics/", "/media/")

T = TypeVar("T")


def is_image_link(link: str) -> bool:
    """http(s) URL ending in an image extension or under an image-ish path."""
    try:
        parsed = urlparse(link)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    lowered = link.lower()
    if lowered.endswith(IMAGE_EXTENSIONS):
        return True
    return any(segment in lowered for segment in IMAGE_PATH_SEGMENTS)


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("cannot be empty or whitespace")
    return v


# --- Requests -----------------------------------------------------------------

class LoanCreate(BaseModel):
    """Loan creation — borrower plus positive terms."""
    borrower_id: str = Field(min_length=1, max_length=100)
    principal_amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    rate: Decimal = Field(gt=0, max_digits=9, decimal_places=4)
    roi: Decimal = Field(gt=0, max_digits=9, decimal_places=4)

    @field_validator("borrower_id")
    @classmethod
    def strip_borrower_id(cls, v: str) -> str:
        return _strip_required(v)


class LoanUpdate(BaseModel):
    """Partial update of a proposed loan. Omitted fields are left untouched."""
    principal_amount: Decimal | None = Field(None, gt=0, max_digits=18, decimal_places=2)
    rate: Decimal | None = Field(None, gt=0, max_digits=9, decimal_places=4)
    roi: Decimal | None = Field(None, gt=0, max_digits=9, decimal_places=4)
    agreement_letter_link: str | None = Field(None, max_length=2000)


class ApproveLoanRequest(BaseModel):
    field_validator_proof: str = Field(min_length=1, max_length=2000)
    field_validator_id: str = Field(min_length=1, max_length=100)

    @field_validator("field_validator_proof")
    @classmethod
    def check_image_link(cls, v: str) -> str:
        v = v.strip()
        if not is_image_link(v):
            raise ValueError("field_validator_proof must be a valid image URL")
        return v

    @field_validator("field_validator_id")
    @classmethod
    def strip_validator_id(cls, v: str) -> str:
        return _strip_required(v)


class InvestLoanRequest(BaseModel):
    investor_id: str = Field(min_length=1, max_length=100)
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)

    @field_validator("investor_id")
    @classmethod
    def strip_investor_id(cls, v: str) -> str:
        return _strip_required(v)


class DisburseLoanRequest(BaseModel):
    signed_agreement_link: str = Field(min_length=1, max_length=2000)
    field_officer_id: str = Field(min_length=1, max_length=100)

    @field_validator("signed_agreement_link", "field_officer_id")
    @classmethod
    def strip_fields(cls, v: str) -> str:
        return _strip_required(v)


# --- Responses ----------------------------------------------------------------

class ApprovalDetailsResponse(BaseModel):
    field_validator_proof: str
    field_validator_id: str
    approval_date: datetime


class DisbursementDetailsResponse(BaseModel):
    signed_agreement_link: str
    field_officer_id: str
    disbursement_date: datetime


class InvestmentResponse(BaseModel):
    id: UUID
    loan_id: UUID
    investor_id: str
    amount: Decimal
    created_at: datetime


class LoanResponse(BaseModel):
    """Loan response — the aggregate with its nested records."""
    id: UUID
    borrower_id: str
    principal_amount: Decimal
    rate: Decimal
    roi: Decimal
    agreement_letter_link: str
    status: LoanStatus
    approval_details: ApprovalDetailsResponse | None = None
    investments: list[InvestmentResponse] = []
    total_invested: Decimal
    disbursement_details: DisbursementDetailsResponse | None = None
    created_at: datetime
    updated_at: datetime


class TransitionResponse(BaseModel):
    from_state: LoanStatus
    to_state: LoanStatus
    action: str


class TransitionsResponse(BaseModel):
    current_state: LoanStatus
    transitions: list[TransitionResponse]


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every loan endpoint."""
    message: str
    data: T | None = None


def to_loan_response(loan: Loan) -> LoanResponse:
    approval = loan.approval_details
    disbursement = loan.disbursement_details
    return LoanResponse(
        id=loan.id,
        borrower_id=loan.borrower_id,
        principal_amount=loan.principal_amount,
        rate=loan.rate,
        roi=loan.roi,
        agreement_letter_link=loan.agreement_letter_link,
        status=loan.status,
        approval_details=ApprovalDetailsResponse(
            field_validator_proof=approval.validator_proof_link,
            field_validator_id=approval.validator_id,
            approval_date=approval.approval_timestamp,
        ) if approval else None,
        investments=[
            InvestmentResponse(
                id=i.id,
                loan_id=i.loan_id,
                investor_id=i.investor_id,
                amount=i.amount,
                created_at=i.created_at,
            )
            for i in loan.investments
        ],
        total_invested=loan.total_invested,
        disbursement_details=DisbursementDetailsResponse(
            signed_agreement_link=disbursement.signed_agreement_link,
            field_officer_id=disbursement.field_officer_id,
            disbursement_date=disbursement.disbursement_timestamp,
        ) if disbursement else None,
        created_at=loan.created_at,
        updated_at=loan.updated_at,
    )


def to_transitions_response(
    current: LoanStatus, transitions: list[StateTransition],
) -> TransitionsResponse:
    return TransitionsResponse(
        current_state=current,
        transitions=[
            TransitionResponse(
                from_state=t.from_status, to_state=t.to_status, action=t.action.value,
            )
            for t in transitions
        ],
    )
