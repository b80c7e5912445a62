"""Loan Service — runs one guarded loan operation per call against an injected repository.

Invariants:
    - Every mutation runs load -> guard -> mutate -> save while holding the loan's lock
    - A rejected operation never reaches save() (persisted state unchanged)
    - Reads (get_loan, list_loans, get_valid_transitions) take no lock
    - Unknown ids surface as LoanNotFoundError from every operation

Design Decisions:
    - Repository and lock registry injected through the constructor, no module state
    - Business rules live on the Loan aggregate; this layer only orchestrates and logs
"""

import logging
from typing import Callable

from loan_service.core.domain_types import LoanId, LoanStatus
from loan_service.core.errors import LoanServiceError
from loan_service.core.lifecycle_graph import StateTransition, valid_actions
from loan_service.core.loan import DEFAULT_AGREEMENTS_BASE_URL, Loan
from loan_service.core.repository_protocols import LoanRepository
from loan_service.services.loan_locks import LoanLockRegistry

logger = logging.getLogger(__name__)


class LoanService:
    """Orchestrates the loan lifecycle over a LoanRepository."""

    def __init__(
        self,
        repository: LoanRepository,
        locks: LoanLockRegistry,
        agreements_base_url: str = DEFAULT_AGREEMENTS_BASE_URL,
    ):
        self._repo = repository
        self._locks = locks
        self._agreements_base_url = agreements_base_url

    # --- Reads ----------------------------------------------------------------

    async def get_loan(self, loan_id: LoanId) -> Loan:
        return await self._repo.find_by_id(loan_id)

    async def list_loans(
        self,
        status: LoanStatus | None = None,
        borrower_id: str | None = None,
    ) -> list[Loan]:
        return await self._repo.find_all(status=status, borrower_id=borrower_id)

    async def get_valid_transitions(
        self, loan_id: LoanId,
    ) -> tuple[LoanStatus, list[StateTransition]]:
        """Current status and the lifecycle edges leaving it. Side-effect free."""
        loan = await self._repo.find_by_id(loan_id)
        return loan.status, valid_actions(loan.status)

    # --- Writes ---------------------------------------------------------------

    async def create_loan(
        self, borrower_id: str, principal_amount: object, rate: object, roi: object,
    ) -> Loan:
        loan = Loan.create(borrower_id, principal_amount, rate, roi)
        await self._repo.create(loan)
        logger.info(
            f"Loan created for borrower {borrower_id}",
            extra={"loan_id": str(loan.id), "status": loan.status.value},
        )
        return loan

    async def update_loan(
        self,
        loan_id: LoanId,
        principal_amount: object | None = None,
        rate: object | None = None,
        roi: object | None = None,
        agreement_letter_link: str | None = None,
    ) -> Loan:
        return await self._mutate(
            loan_id, "update",
            lambda loan: loan.apply_updates(
                principal_amount=principal_amount,
                rate=rate,
                roi=roi,
                agreement_letter_link=agreement_letter_link,
            ),
        )

    async def delete_loan(self, loan_id: LoanId) -> None:
        async with self._locks.hold(loan_id):
            loan = await self._repo.find_by_id(loan_id)
            self._guard(loan, "delete", loan.ensure_deletable)
            await self._repo.delete(loan)
        logger.info("Loan deleted", extra={"loan_id": str(loan_id)})

    async def approve_loan(
        self, loan_id: LoanId, validator_proof_link: str, validator_id: str,
    ) -> Loan:
        return await self._mutate(
            loan_id, "approve",
            lambda loan: loan.approve(validator_proof_link, validator_id),
        )

    async def invest_in_loan(
        self, loan_id: LoanId, investor_id: str, amount: object,
    ) -> Loan:
        loan = await self._mutate(
            loan_id, "invest",
            lambda loan: loan.add_investment(
                investor_id, amount, agreements_base_url=self._agreements_base_url,
            ),
            investor_id=investor_id,
        )
        if loan.status == LoanStatus.INVESTED:
            logger.info(
                "Loan fully funded",
                extra={"loan_id": str(loan.id), "status": loan.status.value},
            )
        return loan

    async def disburse_loan(
        self, loan_id: LoanId, signed_agreement_link: str, field_officer_id: str,
    ) -> Loan:
        return await self._mutate(
            loan_id, "disburse",
            lambda loan: loan.disburse(signed_agreement_link, field_officer_id),
        )

    # --- Internals ------------------------------------------------------------

    async def _mutate(
        self,
        loan_id: LoanId,
        action: str,
        apply: Callable[[Loan], object],
        investor_id: str | None = None,
    ) -> Loan:
        async with self._locks.hold(loan_id):
            loan = await self._repo.find_by_id(loan_id)
            self._guard(loan, action, lambda: apply(loan), investor_id)
            await self._repo.save(loan)
        logger.info(
            f"Loan {action} committed",
            extra={
                "loan_id": str(loan.id),
                "investor_id": investor_id,
                "status": loan.status.value,
            },
        )
        return loan

    @staticmethod
    def _guard(
        loan: Loan,
        action: str,
        operation: Callable[[], object],
        investor_id: str | None = None,
    ) -> None:
        try:
            operation()
        except LoanServiceError as e:
            logger.warning(
                f"Loan {action} rejected: {e.message}",
                extra={
                    "loan_id": str(loan.id),
                    "investor_id": investor_id,
                    "error_code": e.code,
                    "status": loan.status.value,
                },
            )
            raise
