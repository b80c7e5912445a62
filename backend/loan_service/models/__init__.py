"""ORM Models — SQLAlchemy declarative models for loans and investments.

Invariants:
    - All models inherit from Base (db/base.py)
    - LoanRecord is the aggregate root; investments are scoped by loan_id

Design Decisions:
    - One file per entity
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from loan_service.models.loan import LoanRecord  # noqa: F401
from loan_service.models.investment import InvestmentRecord  # noqa: F401
