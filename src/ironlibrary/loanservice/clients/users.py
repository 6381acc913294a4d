"""User directory client.

The user service owns user records and membership types; the loan service
only reads them. Membership decides how many books a user may hold and for
how long.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .base import DirectoryError, DirectoryHttpClient

# Maximum simultaneous active loans per membership. Unknown types cannot borrow.
MAX_BOOKS_BY_MEMBERSHIP = {
    "BASIC": 3,
    "PREMIUM": 10,
    "STUDENT": 5,
}
DEFAULT_MAX_BOOKS = 0

# Loan length in days per membership. Unknown types get the basic length.
LOAN_DAYS_BY_MEMBERSHIP = {
    "BASIC": 14,
    "PREMIUM": 30,
    "STUDENT": 21,
}
DEFAULT_LOAN_DAYS = 14


@dataclass
class UserInfo:
    """A user as reported by the user directory."""

    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    membership_type: Optional[str] = None
    is_active: Optional[bool] = None
    registration_date: Optional[date] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict) -> "UserInfo":
        """Create UserInfo from the user service JSON payload."""
        registration = data.get("registrationDate")
        return cls(
            id=int(data["id"]),
            name=data.get("name"),
            email=data.get("email"),
            membership_type=data.get("membershipType"),
            is_active=data.get("isActive"),
            registration_date=date.fromisoformat(registration) if registration else None,
            phone=data.get("phone"),
            address=data.get("address"),
        )

    @property
    def can_borrow_books(self) -> bool:
        return bool(self.is_active) and self.membership_type is not None

    @property
    def max_books_allowed(self) -> int:
        # Membership names are matched exactly; "premium" is an unknown type
        return MAX_BOOKS_BY_MEMBERSHIP.get(self.membership_type, DEFAULT_MAX_BOOKS)

    @property
    def loan_duration_days(self) -> int:
        return LOAN_DAYS_BY_MEMBERSHIP.get(self.membership_type, DEFAULT_LOAN_DAYS)


class UserDirectory(ABC):
    """Read access to the user directory."""

    @abstractmethod
    def get_user(self, user_id: int) -> UserInfo:
        """Fetch a user. Raises DirectoryError if it cannot be resolved."""
        pass

    @abstractmethod
    def validate_user(self, user_id: int) -> bool:
        """Ask the directory whether the user may borrow."""
        pass


class UserServiceClient(DirectoryHttpClient, UserDirectory):
    """HTTP client for the user service."""

    service_name = "user-service"

    def get_user(self, user_id: int) -> UserInfo:
        data = self._get_json(f"/api/users/{user_id}")
        if not isinstance(data, dict) or "id" not in data:
            raise DirectoryError(f"user-service returned an unexpected payload for user {user_id}")
        try:
            return UserInfo.from_api_response(data)
        except (KeyError, TypeError, ValueError) as e:
            raise DirectoryError(f"user-service returned a malformed user {user_id}: {e}") from e

    def validate_user(self, user_id: int) -> bool:
        data = self._get_json(f"/api/users/{user_id}/validate")
        if not isinstance(data, bool):
            raise DirectoryError(f"user-service returned a non-boolean validation for user {user_id}")
        return data
