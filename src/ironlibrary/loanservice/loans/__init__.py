"""Loan lifecycle module.

Provides functionality for:
- Creating loans within membership limits
- Returning, cancelling and extending loans
- The overdue sweep and due-soon lookups
- Loan statistics
"""

from .events import AvailabilityEventQueue, DispatchResult
from .repository import LoanRepository, SqlLoanRepository
from .schemas import LoanCreate, LoanResponse, LoanStatistics, LoanUpdate
from .service import LoanService

__all__ = [
    "AvailabilityEventQueue",
    "DispatchResult",
    "LoanCreate",
    "LoanRepository",
    "LoanResponse",
    "LoanService",
    "LoanStatistics",
    "LoanUpdate",
    "SqlLoanRepository",
]
