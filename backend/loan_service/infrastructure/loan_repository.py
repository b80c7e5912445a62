"""Loan Repository — SQLAlchemy implementation of the LoanRepository protocol.

Invariants:
    - Maps LoanRecord <-> Loan; the status variant is rebuilt from embedded columns
    - save() and delete() are conditional on (id, version): a stale aggregate
      writes nothing and raises ConcurrencyError
    - Investment rows are insert-only; save() inserts the ones not yet stored
    - Every unknown id raises LoanNotFoundError
    - Every write commits or rolls back before returning

Design Decisions:
    - One repository per AsyncSession (per request)
    - populate_existing on reads: the identity map never serves a stale loan
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from loan_service.core.domain_types import InvestmentId, LoanId, LoanStatus
from loan_service.core.errors import ConcurrencyError, ErrorContext, LoanNotFoundError
from loan_service.core.loan import (
    ApprovalDetails,
    Approved,
    DisbursementDetails,
    Disbursed,
    Investment,
    Invested,
    Loan,
    LoanPhase,
    Proposed,
)
from loan_service.models.investment import InvestmentRecord
from loan_service.models.loan import LoanRecord

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _phase_from_record(record: LoanRecord) -> LoanPhase:
    status = LoanStatus(record.status)
    if status == LoanStatus.PROPOSED:
        return Proposed()
    approval = ApprovalDetails(
        validator_proof_link=record.validator_proof_link,
        validator_id=record.validator_id,
        approval_timestamp=_as_utc(record.approval_timestamp),
    )
    if status == LoanStatus.APPROVED:
        return Approved(approval=approval)
    if status == LoanStatus.INVESTED:
        return Invested(approval=approval)
    return Disbursed(
        approval=approval,
        disbursement=DisbursementDetails(
            signed_agreement_link=record.signed_agreement_link,
            field_officer_id=record.field_officer_id,
            disbursement_timestamp=_as_utc(record.disbursement_timestamp),
        ),
    )


def _to_domain(record: LoanRecord) -> Loan:
    return Loan(
        id=LoanId(record.id),
        borrower_id=record.borrower_id,
        principal_amount=record.principal_amount,
        rate=record.rate,
        roi=record.roi,
        created_at=_as_utc(record.created_at),
        updated_at=_as_utc(record.updated_at),
        phase=_phase_from_record(record),
        investments=[
            Investment(
                id=InvestmentId(inv.id),
                loan_id=LoanId(inv.loan_id),
                investor_id=inv.investor_id,
                amount=inv.amount,
                created_at=_as_utc(inv.created_at),
            )
            for inv in record.investments
        ],
        total_invested=record.total_invested,
        agreement_letter_link=record.agreement_letter_link,
        version=record.version,
    )


def _column_values(loan: Loan) -> dict:
    """Every mutable column of the loan row, for a full overwrite."""
    approval = loan.approval_details
    disbursement = loan.disbursement_details
    return {
        "principal_amount": loan.principal_amount,
        "rate": loan.rate,
        "roi": loan.roi,
        "status": loan.status.value,
        "total_invested": loan.total_invested,
        "agreement_letter_link": loan.agreement_letter_link,
        "validator_proof_link": approval.validator_proof_link if approval else None,
        "validator_id": approval.validator_id if approval else None,
        "approval_timestamp": approval.approval_timestamp if approval else None,
        "signed_agreement_link": disbursement.signed_agreement_link if disbursement else None,
        "field_officer_id": disbursement.field_officer_id if disbursement else None,
        "disbursement_timestamp": (
            disbursement.disbursement_timestamp if disbursement else None
        ),
        "updated_at": loan.updated_at,
    }


def _investment_record(investment: Investment) -> InvestmentRecord:
    return InvestmentRecord(
        id=investment.id,
        loan_id=investment.loan_id,
        investor_id=investment.investor_id,
        amount=investment.amount,
        created_at=investment.created_at,
    )


class SqlAlchemyLoanRepository:
    """LoanRepository backed by an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def create(self, loan: Loan) -> None:
        record = LoanRecord(
            id=loan.id,
            borrower_id=loan.borrower_id,
            created_at=loan.created_at,
            version=loan.version,
            **_column_values(loan),
        )
        record.investments = [_investment_record(i) for i in loan.investments]
        self._db.add(record)
        await self._db.commit()
        logger.debug("Loan row inserted", extra={"loan_id": str(loan.id)})

    async def find_by_id(self, loan_id: LoanId) -> Loan:
        result = await self._db.execute(
            select(LoanRecord)
            .where(LoanRecord.id == loan_id)
            .execution_options(populate_existing=True),
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise LoanNotFoundError(loan_id)
        return _to_domain(record)

    async def find_all(
        self,
        status: LoanStatus | None = None,
        borrower_id: str | None = None,
    ) -> list[Loan]:
        query = select(LoanRecord).order_by(LoanRecord.created_at.desc())
        if status is not None:
            query = query.where(LoanRecord.status == status.value)
        if borrower_id is not None:
            query = query.where(LoanRecord.borrower_id == borrower_id)
        result = await self._db.execute(
            query.execution_options(populate_existing=True),
        )
        return [_to_domain(r) for r in result.scalars().all()]

    async def save(self, loan: Loan) -> None:
        result = await self._db.execute(
            update(LoanRecord)
            .where(LoanRecord.id == loan.id, LoanRecord.version == loan.version)
            .values(**_column_values(loan), version=loan.version + 1)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount == 0:
            await self._reject_stale_write(loan)

        stored = await self._db.execute(
            select(InvestmentRecord.id).where(InvestmentRecord.loan_id == loan.id),
        )
        stored_ids = set(stored.scalars().all())
        for investment in loan.investments:
            if investment.id not in stored_ids:
                self._db.add(_investment_record(investment))

        await self._db.commit()
        loan.version += 1

    async def delete(self, loan: Loan) -> None:
        result = await self._db.execute(
            delete(LoanRecord)
            .where(LoanRecord.id == loan.id, LoanRecord.version == loan.version)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount == 0:
            await self._reject_stale_write(loan)
        # SQLite enforces ON DELETE CASCADE only with foreign_keys=ON
        await self._db.execute(
            delete(InvestmentRecord)
            .where(InvestmentRecord.loan_id == loan.id)
            .execution_options(synchronize_session=False),
        )
        await self._db.commit()

    async def _reject_stale_write(self, loan: Loan) -> None:
        """Conditional write matched no row: roll back, then raise not-found or conflict."""
        await self._db.rollback()
        if not await self._exists(loan.id):
            raise LoanNotFoundError(loan.id)
        raise ConcurrencyError(
            "loan was modified by another request; reload and retry",
            ErrorContext(loan_id=str(loan.id)),
        )

    async def _exists(self, loan_id: LoanId) -> bool:
        result = await self._db.execute(
            select(LoanRecord.id).where(LoanRecord.id == loan_id),
        )
        return result.scalar_one_or_none() is not None
