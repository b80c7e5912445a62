"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via constructor injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: implementations do IO, the aggregate logic using the
      loaded Loan stays synchronous
"""

from typing import Protocol

from loan_service.core.domain_types import LoanId, LoanStatus
from loan_service.core.loan import Loan


class LoanRepository(Protocol):
    """Contract for loan persistence — implemented by shell.

    find_by_id, save and delete raise LoanNotFoundError for unknown ids.
    save is a full overwrite guarded by `loan.version`: a stale version raises
    ConcurrencyError and writes nothing; on success `loan.version` is bumped.
    delete is guarded the same way, so a loan changed since it was loaded
    is never removed.
    """
    async def create(self, loan: Loan) -> None: ...
    async def find_by_id(self, loan_id: LoanId) -> Loan: ...
    async def find_all(
        self,
        status: LoanStatus | None = None,
        borrower_id: str | None = None,
    ) -> list[Loan]: ...
    async def save(self, loan: Loan) -> None: ...
    async def delete(self, loan: Loan) -> None: ...
