"""Initial schema — loans, investments.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "loans",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("borrower_id", sa.String(100), nullable=False),
        sa.Column("principal_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("rate", sa.Numeric(9, 4), nullable=False),
        sa.Column("roi", sa.Numeric(9, 4), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="proposed"),
        sa.Column("total_invested", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("agreement_letter_link", sa.Text, nullable=False, server_default=""),
        sa.Column("validator_proof_link", sa.Text, nullable=True),
        sa.Column("validator_id", sa.String(100), nullable=True),
        sa.Column("approval_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_agreement_link", sa.Text, nullable=True),
        sa.Column("field_officer_id", sa.String(100), nullable=True),
        sa.Column("disbursement_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "total_invested >= 0 AND total_invested <= principal_amount",
            name="ck_loans_total_invested_within_principal",
        ),
    )
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index("ix_loans_borrower_id", "loans", ["borrower_id"])

    op.create_table(
        "investments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "loan_id", UUID(as_uuid=True),
            sa.ForeignKey("loans.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("investor_id", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="ck_investments_amount_positive"),
    )
    op.create_index("ix_investments_loan_id", "investments", ["loan_id"])


def downgrade() -> None:
    op.drop_index("ix_investments_loan_id", table_name="investments")
    op.drop_table("investments")
    op.drop_index("ix_loans_borrower_id", table_name="loans")
    op.drop_index("ix_loans_status", table_name="loans")
    op.drop_table("loans")
