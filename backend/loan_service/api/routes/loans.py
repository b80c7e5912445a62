"""Loan Routes — HTTP surface of the loan lifecycle.

Invariants:
    - Request bodies are validated by Pydantic before reaching the handler
    - Every handler delegates to exactly one LoanService operation
    - Domain errors propagate to the global LoanServiceError handler (no local mapping)
    - Unknown loan ids return 404 from every endpoint

Design Decisions:
    - LoanService built per request: repository bound to the request's session,
      lock registry shared through app.state
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from loan_service.config import get_settings
from loan_service.core.domain_types import LoanId, LoanStatus
from loan_service.infrastructure.database import get_db
from loan_service.infrastructure.loan_repository import SqlAlchemyLoanRepository
from loan_service.schemas.loan import (
    ApiResponse,
    ApproveLoanRequest,
    DisburseLoanRequest,
    InvestLoanRequest,
    LoanCreate,
    LoanResponse,
    LoanUpdate,
    TransitionsResponse,
    to_loan_response,
    to_transitions_response,
)
from loan_service.services.loan_service import LoanService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/loans", tags=["loans"])


def get_loan_service(
    request: Request, db: AsyncSession = Depends(get_db),
) -> LoanService:
    return LoanService(
        SqlAlchemyLoanRepository(db),
        request.app.state.loan_locks,
        agreements_base_url=get_settings().agreements_base_url,
    )


@router.get("", response_model=ApiResponse[list[LoanResponse]])
async def list_loans(
    status_filter: LoanStatus | None = Query(None, alias="status"),
    borrower_id: str | None = Query(None),
    service: LoanService = Depends(get_loan_service),
):
    """List loans, optionally filtered by status and borrower."""
    loans = await service.list_loans(status=status_filter, borrower_id=borrower_id)
    return ApiResponse(
        message="Loans retrieved successfully",
        data=[to_loan_response(loan) for loan in loans],
    )


@router.get("/{loan_id}", response_model=ApiResponse[LoanResponse])
async def get_loan(
    loan_id: UUID, service: LoanService = Depends(get_loan_service),
):
    loan = await service.get_loan(LoanId(loan_id))
    return ApiResponse(
        message="Loan retrieved successfully", data=to_loan_response(loan),
    )


@router.post(
    "", response_model=ApiResponse[LoanResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_loan(
    body: LoanCreate, service: LoanService = Depends(get_loan_service),
):
    """Create a new loan in proposed status."""
    loan = await service.create_loan(
        body.borrower_id, body.principal_amount, body.rate, body.roi,
    )
    return ApiResponse(
        message="Loan created successfully", data=to_loan_response(loan),
    )


@router.put("/{loan_id}", response_model=ApiResponse[LoanResponse])
async def update_loan(
    loan_id: UUID,
    body: LoanUpdate,
    service: LoanService = Depends(get_loan_service),
):
    """Edit terms of a proposed loan."""
    loan = await service.update_loan(
        LoanId(loan_id),
        principal_amount=body.principal_amount,
        rate=body.rate,
        roi=body.roi,
        agreement_letter_link=body.agreement_letter_link,
    )
    return ApiResponse(
        message="Loan updated successfully", data=to_loan_response(loan),
    )


@router.delete("/{loan_id}", response_model=ApiResponse[None])
async def delete_loan(
    loan_id: UUID, service: LoanService = Depends(get_loan_service),
):
    await service.delete_loan(LoanId(loan_id))
    return ApiResponse(message="Loan deleted successfully")


@router.put("/{loan_id}/approve", response_model=ApiResponse[LoanResponse])
async def approve_loan(
    loan_id: UUID,
    body: ApproveLoanRequest,
    service: LoanService = Depends(get_loan_service),
):
    loan = await service.approve_loan(
        LoanId(loan_id), body.field_validator_proof, body.field_validator_id,
    )
    return ApiResponse(
        message="Loan approved successfully", data=to_loan_response(loan),
    )


@router.put("/{loan_id}/invest", response_model=ApiResponse[LoanResponse])
async def invest_in_loan(
    loan_id: UUID,
    body: InvestLoanRequest,
    service: LoanService = Depends(get_loan_service),
):
    """Record one investment; the loan becomes invested once fully funded."""
    loan = await service.invest_in_loan(
        LoanId(loan_id), body.investor_id, body.amount,
    )
    return ApiResponse(
        message="Investment added successfully", data=to_loan_response(loan),
    )


@router.put("/{loan_id}/disburse", response_model=ApiResponse[LoanResponse])
async def disburse_loan(
    loan_id: UUID,
    body: DisburseLoanRequest,
    service: LoanService = Depends(get_loan_service),
):
    loan = await service.disburse_loan(
        LoanId(loan_id), body.signed_agreement_link, body.field_officer_id,
    )
    return ApiResponse(
        message="Loan disbursed successfully", data=to_loan_response(loan),
    )


@router.get(
    "/{loan_id}/transitions", response_model=ApiResponse[TransitionsResponse],
)
async def get_loan_transitions(
    loan_id: UUID, service: LoanService = Depends(get_loan_service),
):
    """Actions currently available for the loan. Read-only."""
    current, transitions = await service.get_valid_transitions(LoanId(loan_id))
    return ApiResponse(
        message="Valid transitions retrieved successfully",
        data=to_transitions_response(current, transitions),
    )
