"""Loan service exceptions.

Each error carries the HTTP status an outer API would answer with.
"""


class LoanServiceError(Exception):
    """Base exception for loan lifecycle errors."""

    http_status = 500


class UserNotValidError(LoanServiceError):
    """User missing, inactive, rejected by the directory, or over the limit."""

    http_status = 403


class BookNotAvailableError(LoanServiceError):
    """Book missing, out of copies, or its availability could not be adjusted."""

    http_status = 409


class LoanNotFoundError(LoanServiceError):
    """Referenced loan does not exist."""

    http_status = 404

    def __init__(self, loan_id: int):
        self.loan_id = loan_id
        super().__init__(f"Loan not found with ID: {loan_id}")


class LoanAlreadyReturnedError(LoanServiceError):
    """Return attempted on a loan whose status does not allow it."""

    http_status = 409


class InvalidLoanArgumentError(LoanServiceError, ValueError):
    """Malformed request: bad extension days, duplicate loan, illegal transition."""

    http_status = 400
