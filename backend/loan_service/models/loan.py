"""Loan ORM — persists the loan aggregate root.

Invariants:
    - id is UUID primary key, assigned by Loan.create (never by the database)
    - status is one of proposed / approved / invested / disbursed
    - approval_* columns are non-null iff status != proposed
    - disbursement_* columns are non-null iff status == disbursed
    - version increments on every save (optimistic concurrency)

Design Decisions:
    - Approval and disbursement records embedded as nullable columns, rebuilt into
      the status variant by the repository
    - Numeric(18, 2) for money, Numeric(9, 4) for rates: the aggregate rejects
      values these columns cannot hold exactly
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, String, Text, Integer, Numeric, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from loan_service.core.loan import MONEY_PRECISION, RATE_PRECISION
from loan_service.db.base import Base


class LoanRecord(Base):
    """Loan aggregate root — owns its investments."""
    __tablename__ = "loans"
    __table_args__ = (
        Index("ix_loans_status", "status"),
        Index("ix_loans_borrower_id", "borrower_id"),
        CheckConstraint(
            "total_invested >= 0 AND total_invested <= principal_amount",
            name="ck_loans_total_invested_within_principal",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True,
    )
    borrower_id: Mapped[str] = mapped_column(String(100), nullable=False)
    principal_amount: Mapped[Decimal] = mapped_column(
        Numeric(*MONEY_PRECISION), nullable=False,
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(*RATE_PRECISION), nullable=False)
    roi: Mapped[Decimal] = mapped_column(Numeric(*RATE_PRECISION), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="proposed",
    )
    total_invested: Mapped[Decimal] = mapped_column(
        Numeric(*MONEY_PRECISION), nullable=False, default=Decimal("0"),
    )
    agreement_letter_link: Mapped[str] = mapped_column(
        Text, nullable=False, default="",
    )

    # Approval (present once approved)
    validator_proof_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    validator_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approval_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # Disbursement (present once disbursed)
    signed_agreement_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    field_officer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    disbursement_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    investments: Mapped[list["InvestmentRecord"]] = relationship(
        "InvestmentRecord", back_populates="loan",
        cascade="all", passive_deletes=True, lazy="selectin",
        order_by="InvestmentRecord.created_at",
    )
