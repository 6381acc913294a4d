"""Loan lifecycle service.

Creates, extends, returns and closes loans. User and book authority lives
in the two directory services; this service only keeps loan records and
enforces the borrowing rules around them.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..clients.base import DirectoryError
from ..clients.books import BookDirectory, BookInfo
from ..clients.users import UserDirectory, UserInfo
from ..clock import Clock, SystemClock
from ..db.models import NOTES_MAX_LENGTH, Loan
from ..db.schemas import EventReason
from ..db.sqlite import Database, get_db
from ..exceptions import (
    BookNotAvailableError,
    InvalidLoanArgumentError,
    LoanAlreadyReturnedError,
    LoanNotFoundError,
    UserNotValidError,
)
from ..status import INITIAL_STATUS, LoanStatus, ensure_transition
from .events import AvailabilityEventQueue
from .repository import LoanRepository, SqlLoanRepository
from .schemas import LoanStatistics, LoanUpdate

logger = logging.getLogger(__name__)

MIN_EXTENSION_DAYS = 1
MAX_EXTENSION_DAYS = 30


class LoanService:
    """Business rules for the loan lifecycle."""

    def __init__(
        self,
        users: UserDirectory,
        books: BookDirectory,
        db: Optional[Database] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize loan service.

        Args:
            users: User directory client
            books: Book directory client
            db: Database instance (uses global if not provided)
            clock: Source of "today" (system date if not provided)
        """
        self.users = users
        self.books = books
        self.db = db or get_db()
        self.clock = clock or SystemClock()
        self.events = AvailabilityEventQueue(self.db, books)

    def _repository(self, session: Session) -> LoanRepository:
        return SqlLoanRepository(session)

    def _get_loan(self, repo: LoanRepository, loan_id: int) -> Loan:
        loan = repo.find_by_id(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_loan(self, user_id: int, book_id: int, notes: Optional[str] = None) -> Loan:
        """Lend a book to a user.

        Checks run in order and stop at the first failure; nothing is
        written unless all of them pass.

        Args:
            user_id: User borrowing the book
            book_id: Book being borrowed
            notes: Optional free-text annotation

        Returns:
            The new ACTIVE loan

        Raises:
            UserNotValidError: User unknown, not allowed to borrow, or at the limit
            BookNotAvailableError: Book unknown, no copies, or copy count not updated
            InvalidLoanArgumentError: User already holds this book, or notes too long
        """
        logger.info("Creating loan - user: %s, book: %s", user_id, book_id)
        if notes is not None and len(notes) > NOTES_MAX_LENGTH:
            raise InvalidLoanArgumentError(
                f"Notes cannot be longer than {NOTES_MAX_LENGTH} characters"
            )

        user = self._validate_user(user_id)
        self._validate_book(book_id)

        today = self.clock.today()
        with self.db.get_session() as session:
            repo = self._repository(session)
            self._validate_user_limits(repo, user_id, user)

            if repo.has_active_loan_for_book(user_id, book_id):
                logger.warning("User %s already has book %s on loan", user_id, book_id)
                raise InvalidLoanArgumentError("User already has this book on loan")

            loan = Loan(
                user_id=user_id,
                book_id=book_id,
                loan_date=today,
                due_date=today + timedelta(days=user.loan_duration_days),
                status=INITIAL_STATUS,
                notes=notes,
            )

            try:
                self.books.adjust_availability(book_id, -1)
            except DirectoryError as e:
                logger.error("Could not update availability of book %s: %s", book_id, e)
                raise BookNotAvailableError("Could not update the book's availability") from e
            logger.info("Availability of book %s updated", book_id)

            try:
                repo.save(loan)
            except IntegrityError as e:
                session.rollback()
                self._compensate_decrement(user_id, book_id)
                raise InvalidLoanArgumentError("User already has this book on loan") from e

        logger.info("Loan created with ID: %s", loan.id)
        return loan

    def _compensate_decrement(self, user_id: int, book_id: int) -> None:
        """Queue a +1 for a decrement whose loan lost the race to be saved."""
        logger.warning(
            "Concurrent loan of book %s for user %s rejected by storage; "
            "queueing availability compensation",
            book_id,
            user_id,
        )
        with self.db.get_session() as session:
            event = self.events.enqueue(session, book_id, +1, EventReason.COMPENSATION)
            event_id = event.id
        self.events.dispatch(event_id)

    def _validate_user(self, user_id: int) -> UserInfo:
        try:
            user = self.users.get_user(user_id)
            valid = self.users.validate_user(user_id)
        except DirectoryError as e:
            logger.error("Error validating user %s: %s", user_id, e)
            raise UserNotValidError(f"User not valid or not found: {user_id}") from e

        if not valid or not user.can_borrow_books:
            logger.warning("User %s is not allowed to borrow books", user_id)
            raise UserNotValidError(f"User {user_id} is not allowed to borrow books")
        return user

    def _validate_book(self, book_id: int) -> BookInfo:
        try:
            book = self.books.get_book(book_id)
            available = self.books.is_available(book_id)
        except DirectoryError as e:
            logger.error("Error validating book %s: %s", book_id, e)
            raise BookNotAvailableError(f"Book not valid or not available: {book_id}") from e

        if not available or not book.is_available:
            logger.warning("Book %s has no copies available", book_id)
            raise BookNotAvailableError(f"Book {book_id} is not available for loan")
        return book

    def _validate_user_limits(self, repo: LoanRepository, user_id: int, user: UserInfo) -> None:
        active_loans = repo.count_active_loans_for_user(user_id)
        max_allowed = user.max_books_allowed

        if active_loans >= max_allowed:
            logger.warning(
                "User %s reached the loan limit (%s/%s)", user_id, active_loans, max_allowed
            )
            raise UserNotValidError(
                f"User has reached the limit of borrowed books ({active_loans}/{max_allowed})"
            )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def find_all_loans(self) -> list[Loan]:
        with self.db.get_session() as session:
            return self._repository(session).find_all()

    def find_loan_by_id(self, loan_id: int) -> Loan:
        with self.db.get_session() as session:
            return self._get_loan(self._repository(session), loan_id)

    def find_loans_by_user(self, user_id: int) -> list[Loan]:
        """All loans of a user. The user must be known to the directory."""
        try:
            self.users.get_user(user_id)
        except DirectoryError as e:
            raise UserNotValidError(f"User not valid or not found: {user_id}") from e

        with self.db.get_session() as session:
            return self._repository(session).find_by_user_id(user_id)

    def find_active_loans_for_user(self, user_id: int) -> list[Loan]:
        with self.db.get_session() as session:
            return self._repository(session).find_by_user_id_and_status(
                user_id, LoanStatus.ACTIVE
            )

    def find_loans_by_book(self, book_id: int) -> list[Loan]:
        """Loan history of a book. The book must be known to the directory."""
        try:
            self.books.get_book(book_id)
        except DirectoryError as e:
            raise BookNotAvailableError(f"Book not valid or not found: {book_id}") from e

        with self.db.get_session() as session:
            return self._repository(session).find_by_book_id(book_id)

    def find_loans_by_status(self, status: LoanStatus) -> list[Loan]:
        with self.db.get_session() as session:
            return self._repository(session).find_by_status(LoanStatus(status))

    def find_loans_between(self, start: date, end: date) -> list[Loan]:
        """Loans whose loan date falls within ``[start, end]``."""
        if end < start:
            raise InvalidLoanArgumentError("End date must not be before start date")
        with self.db.get_session() as session:
            return self._repository(session).find_by_loan_date_between(start, end)

    def find_loans_due_soon(self, days: int) -> list[Loan]:
        """ACTIVE loans due between today and ``days`` days from now."""
        if days < 0:
            raise InvalidLoanArgumentError("Days must not be negative")
        today = self.clock.today()
        with self.db.get_session() as session:
            return self._repository(session).find_loans_due_soon(
                today, today + timedelta(days=days)
            )

    def is_overdue(self, loan: Loan) -> bool:
        return loan.is_overdue_on(self.clock.today())

    # -------------------------------------------------------------------------
    # State changes
    # -------------------------------------------------------------------------

    def return_book(self, loan_id: int) -> Loan:
        """Close a loan as returned and give the copy back to the book directory.

        The copy count update happens after the return is committed; if the
        book directory rejects it the event stays FAILED for a later flush
        and the return still succeeds.
        """
        logger.info("Returning loan %s", loan_id)
        with self.db.get_session() as session:
            repo = self._repository(session)
            loan = self._get_loan(repo, loan_id)

            if not loan.can_be_returned:
                raise LoanAlreadyReturnedError("Loan was already returned or cancelled")
            ensure_transition(loan.status, LoanStatus.RETURNED)

            loan.return_date = self.clock.today()
            loan.status = LoanStatus.RETURNED
            repo.save(loan)
            event = self.events.enqueue(
                session, loan.book_id, +1, EventReason.RETURN, loan_id=loan.id
            )
            event_id = event.id

        self.events.dispatch(event_id)
        logger.info("Loan %s returned", loan_id)
        return loan

    def cancel_loan(self, loan_id: int) -> Loan:
        """Cancel an ACTIVE loan and give the copy back."""
        logger.info("Cancelling loan %s", loan_id)
        with self.db.get_session() as session:
            repo = self._repository(session)
            loan = self._get_loan(repo, loan_id)

            ensure_transition(loan.status, LoanStatus.CANCELLED)
            loan.status = LoanStatus.CANCELLED
            repo.save(loan)
            event = self.events.enqueue(
                session, loan.book_id, +1, EventReason.CANCEL, loan_id=loan.id
            )
            event_id = event.id

        self.events.dispatch(event_id)
        logger.info("Loan %s cancelled", loan_id)
        return loan

    def update_loan(self, loan_id: int, patch: LoanUpdate) -> Loan:
        """Change the due date and/or notes of a loan.

        Only fields set on the patch are written. The due date of a closed
        loan cannot be moved, and it can never precede the loan date.
        """
        logger.info("Updating loan %s", loan_id)
        update_data = patch.model_dump(exclude_unset=True)

        with self.db.get_session() as session:
            repo = self._repository(session)
            loan = self._get_loan(repo, loan_id)

            if "due_date" in update_data:
                due_date = update_data["due_date"]
                if due_date is None:
                    raise InvalidLoanArgumentError("Due date cannot be cleared")
                if due_date != loan.due_date and LoanStatus(loan.status).is_completed:
                    raise InvalidLoanArgumentError(
                        f"Cannot change the due date of a {loan.status.value} loan"
                    )
                if due_date < loan.loan_date:
                    raise InvalidLoanArgumentError("Due date cannot be before the loan date")
                loan.due_date = due_date

            if "notes" in update_data:
                loan.notes = update_data["notes"]

            repo.save(loan)

        logger.info("Loan %s updated", loan_id)
        return loan

    def extend_loan(self, loan_id: int, days: int) -> Loan:
        """Push the due date of an ACTIVE loan back by 1 to 30 days."""
        logger.info("Extending loan %s by %s days", loan_id, days)
        if days < MIN_EXTENSION_DAYS or days > MAX_EXTENSION_DAYS:
            raise InvalidLoanArgumentError(
                f"Extension days must be between {MIN_EXTENSION_DAYS} and {MAX_EXTENSION_DAYS}"
            )

        with self.db.get_session() as session:
            repo = self._repository(session)
            loan = self._get_loan(repo, loan_id)

            if loan.status != LoanStatus.ACTIVE:
                raise InvalidLoanArgumentError("Only active loans can be extended")

            loan.due_date = loan.due_date + timedelta(days=days)
            repo.save(loan)

        logger.info("Loan %s extended until %s", loan_id, loan.due_date)
        return loan

    def delete_loan(self, loan_id: int) -> None:
        """Delete a loan that is no longer active."""
        logger.info("Deleting loan %s", loan_id)
        with self.db.get_session() as session:
            repo = self._repository(session)
            loan = self._get_loan(repo, loan_id)

            if loan.status == LoanStatus.ACTIVE:
                raise InvalidLoanArgumentError(
                    "Cannot delete an active loan. It must be returned first."
                )
            repo.delete(loan)

        logger.info("Loan %s deleted", loan_id)

    def find_overdue_loans(self) -> list[Loan]:
        """Sweep ACTIVE loans past their due date into OVERDUE.

        This is the only place the ACTIVE -> OVERDUE transition happens.

        Returns:
            Every OVERDUE loan after the sweep, newly moved or not
        """
        today = self.clock.today()
        with self.db.get_session() as session:
            repo = self._repository(session)

            swept = 0
            for loan in repo.find_overdue_loans(today):
                ensure_transition(loan.status, LoanStatus.OVERDUE)
                loan.status = LoanStatus.OVERDUE
                repo.save(loan)
                swept += 1

            overdue = sorted(
                repo.find_by_status(LoanStatus.OVERDUE),
                key=lambda loan: (loan.due_date, loan.id),
            )

        logger.info("Overdue sweep: %s newly overdue, %s overdue in total", swept, len(overdue))
        return overdue

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_loan_statistics(self) -> LoanStatistics:
        with self.db.get_session() as session:
            repo = self._repository(session)
            return LoanStatistics.from_counts(repo.get_loan_statistics(), repo.count())
