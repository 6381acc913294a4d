"""Loan status values and the transitions allowed between them.

    ACTIVE  -> RETURNED | OVERDUE | CANCELLED
    OVERDUE -> RETURNED

RETURNED and CANCELLED are terminal. Every operation that changes a loan's
status goes through :func:`ensure_transition`.
"""

from enum import Enum

from .exceptions import InvalidLoanArgumentError


class LoanStatus(str, Enum):
    """Lifecycle state of a loan."""

    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"

    @property
    def display_name(self) -> str:
        return _DISPLAY[self][0]

    @property
    def description(self) -> str:
        return _DISPLAY[self][1]

    @property
    def allows_return(self) -> bool:
        """Whether the book can be handed back in this state."""
        return self in (LoanStatus.ACTIVE, LoanStatus.OVERDUE)

    @property
    def is_completed(self) -> bool:
        """Whether the loan is closed for good."""
        return self in (LoanStatus.RETURNED, LoanStatus.CANCELLED)


_DISPLAY = {
    LoanStatus.ACTIVE: ("Active", "The book is on loan"),
    LoanStatus.RETURNED: ("Returned", "The book has been returned"),
    LoanStatus.OVERDUE: ("Overdue", "The loan is past its due date"),
    LoanStatus.CANCELLED: ("Cancelled", "The loan was cancelled"),
}

INITIAL_STATUS = LoanStatus.ACTIVE

TRANSITIONS: dict[LoanStatus, frozenset[LoanStatus]] = {
    LoanStatus.ACTIVE: frozenset(
        {LoanStatus.RETURNED, LoanStatus.OVERDUE, LoanStatus.CANCELLED}
    ),
    LoanStatus.OVERDUE: frozenset({LoanStatus.RETURNED}),
    LoanStatus.RETURNED: frozenset(),
    LoanStatus.CANCELLED: frozenset(),
}


def can_transition(current: LoanStatus, target: LoanStatus) -> bool:
    """Check whether a loan in ``current`` may move to ``target``."""
    return target in TRANSITIONS[LoanStatus(current)]


def ensure_transition(current: LoanStatus, target: LoanStatus) -> None:
    """Raise InvalidLoanArgumentError unless the transition is allowed."""
    if not can_transition(current, target):
        raise InvalidLoanArgumentError(
            f"Cannot change loan status from {LoanStatus(current).value} "
            f"to {LoanStatus(target).value}"
        )
