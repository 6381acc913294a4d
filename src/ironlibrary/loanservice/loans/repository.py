"""Loan repository: the persistence contract and its SQLAlchemy implementation.

Queries relative to "today" take the date as an argument so callers can
drive them from an injected clock.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db.models import Loan
from ..status import LoanStatus


class LoanRepository(ABC):
    """Storage operations over loan records."""

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    @abstractmethod
    def save(self, loan: Loan) -> Loan:
        """Insert or update a loan and return it with its id assigned."""
        pass

    @abstractmethod
    def find_by_id(self, loan_id: int) -> Optional[Loan]:
        pass

    @abstractmethod
    def delete(self, loan: Loan) -> None:
        pass

    @abstractmethod
    def find_all(self) -> list[Loan]:
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @abstractmethod
    def find_by_user_id(self, user_id: int) -> list[Loan]:
        pass

    @abstractmethod
    def find_by_book_id(self, book_id: int) -> list[Loan]:
        pass

    @abstractmethod
    def find_by_status(self, status: LoanStatus) -> list[Loan]:
        pass

    @abstractmethod
    def find_by_user_id_and_status(self, user_id: int, status: LoanStatus) -> list[Loan]:
        pass

    @abstractmethod
    def find_by_user_id_and_status_in(
        self, user_id: int, statuses: Iterable[LoanStatus]
    ) -> list[Loan]:
        pass

    @abstractmethod
    def find_by_book_id_and_status(self, book_id: int, status: LoanStatus) -> list[Loan]:
        pass

    @abstractmethod
    def find_by_loan_date_between(self, start: date, end: date) -> list[Loan]:
        """Loans started within ``[start, end]``."""
        pass

    @abstractmethod
    def find_overdue_loans(self, today: date) -> list[Loan]:
        """ACTIVE loans with a due date before ``today``."""
        pass

    @abstractmethod
    def find_loans_due_soon(self, today: date, end_date: date) -> list[Loan]:
        """ACTIVE loans due within ``[today, end_date]``."""
        pass

    @abstractmethod
    def count_active_loans_for_user(self, user_id: int) -> int:
        pass

    @abstractmethod
    def count_active_loans_for_book(self, book_id: int) -> int:
        pass

    @abstractmethod
    def has_active_loan_for_book(self, user_id: int, book_id: int) -> bool:
        pass

    @abstractmethod
    def get_loan_statistics(self) -> dict[LoanStatus, int]:
        """Loan counts grouped by status. Statuses without loans are absent."""
        pass


class SqlLoanRepository(LoanRepository):
    """LoanRepository bound to one SQLAlchemy session.

    Writes are flushed, not committed: the session owner decides the
    transaction boundary.
    """

    def __init__(self, session: Session):
        self.session = session

    def _all(self, stmt) -> list[Loan]:
        return list(self.session.execute(stmt).scalars().all())

    def _count(self, *criteria) -> int:
        stmt = select(func.count()).select_from(Loan)
        if criteria:
            stmt = stmt.where(*criteria)
        return self.session.execute(stmt).scalar() or 0

    def save(self, loan: Loan) -> Loan:
        self.session.add(loan)
        self.session.flush()
        return loan

    def find_by_id(self, loan_id: int) -> Optional[Loan]:
        return self.session.get(Loan, loan_id)

    def delete(self, loan: Loan) -> None:
        self.session.delete(loan)
        self.session.flush()

    def find_all(self) -> list[Loan]:
        return self._all(select(Loan).order_by(Loan.id))

    def count(self) -> int:
        return self._count()

    def find_by_user_id(self, user_id: int) -> list[Loan]:
        return self._all(
            select(Loan).where(Loan.user_id == user_id).order_by(Loan.loan_date.desc(), Loan.id)
        )

    def find_by_book_id(self, book_id: int) -> list[Loan]:
        return self._all(
            select(Loan).where(Loan.book_id == book_id).order_by(Loan.loan_date.desc(), Loan.id)
        )

    def find_by_status(self, status: LoanStatus) -> list[Loan]:
        return self._all(select(Loan).where(Loan.status == status).order_by(Loan.id))

    def find_by_user_id_and_status(self, user_id: int, status: LoanStatus) -> list[Loan]:
        return self._all(
            select(Loan)
            .where(Loan.user_id == user_id, Loan.status == status)
            .order_by(Loan.id)
        )

    def find_by_user_id_and_status_in(
        self, user_id: int, statuses: Iterable[LoanStatus]
    ) -> list[Loan]:
        return self._all(
            select(Loan)
            .where(Loan.user_id == user_id, Loan.status.in_(list(statuses)))
            .order_by(Loan.id)
        )

    def find_by_book_id_and_status(self, book_id: int, status: LoanStatus) -> list[Loan]:
        return self._all(
            select(Loan)
            .where(Loan.book_id == book_id, Loan.status == status)
            .order_by(Loan.id)
        )

    def find_by_loan_date_between(self, start: date, end: date) -> list[Loan]:
        return self._all(
            select(Loan)
            .where(Loan.loan_date >= start, Loan.loan_date <= end)
            .order_by(Loan.loan_date, Loan.id)
        )

    def find_overdue_loans(self, today: date) -> list[Loan]:
        return self._all(
            select(Loan)
            .where(Loan.status == LoanStatus.ACTIVE, Loan.due_date < today)
            .order_by(Loan.due_date, Loan.id)
        )

    def find_loans_due_soon(self, today: date, end_date: date) -> list[Loan]:
        return self._all(
            select(Loan)
            .where(
                Loan.status == LoanStatus.ACTIVE,
                Loan.due_date >= today,
                Loan.due_date <= end_date,
            )
            .order_by(Loan.due_date, Loan.id)
        )

    def count_active_loans_for_user(self, user_id: int) -> int:
        return self._count(Loan.user_id == user_id, Loan.status == LoanStatus.ACTIVE)

    def count_active_loans_for_book(self, book_id: int) -> int:
        return self._count(Loan.book_id == book_id, Loan.status == LoanStatus.ACTIVE)

    def has_active_loan_for_book(self, user_id: int, book_id: int) -> bool:
        return (
            self._count(
                Loan.user_id == user_id,
                Loan.book_id == book_id,
                Loan.status == LoanStatus.ACTIVE,
            )
            > 0
        )

    def get_loan_statistics(self) -> dict[LoanStatus, int]:
        stmt = select(Loan.status, func.count()).group_by(Loan.status)
        return {LoanStatus(status): count for status, count in self.session.execute(stmt).all()}
