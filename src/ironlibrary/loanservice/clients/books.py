"""Book directory client.

The book service owns the catalogue and copy counts. Loans take a copy
out (-1) and give it back (+1).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .base import DirectoryError, DirectoryHttpClient


@dataclass
class BookInfo:
    """A book as reported by the book directory."""

    id: int
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    category: Optional[str] = None
    total_copies: Optional[int] = None
    available_copies: Optional[int] = None

    @classmethod
    def from_api_response(cls, data: dict) -> "BookInfo":
        """Create BookInfo from the book service JSON payload."""
        return cls(
            id=int(data["id"]),
            title=data.get("title"),
            author=data.get("author"),
            isbn=data.get("isbn"),
            category=data.get("category"),
            total_copies=data.get("totalCopies"),
            available_copies=data.get("availableCopies"),
        )

    @property
    def is_available(self) -> bool:
        return self.available_copies is not None and self.available_copies > 0


class BookDirectory(ABC):
    """Read and copy-count access to the book directory."""

    @abstractmethod
    def get_book(self, book_id: int) -> BookInfo:
        """Fetch a book. Raises DirectoryError if it cannot be resolved."""
        pass

    @abstractmethod
    def is_available(self, book_id: int) -> bool:
        """Ask the directory whether at least one copy can be lent."""
        pass

    @abstractmethod
    def adjust_availability(self, book_id: int, delta: int) -> None:
        """Change the available copy count by ``delta``."""
        pass


class BookServiceClient(DirectoryHttpClient, BookDirectory):
    """HTTP client for the book service."""

    service_name = "book-service"

    def get_book(self, book_id: int) -> BookInfo:
        data = self._get_json(f"/api/books/{book_id}")
        if not isinstance(data, dict) or "id" not in data:
            raise DirectoryError(f"book-service returned an unexpected payload for book {book_id}")
        try:
            return BookInfo.from_api_response(data)
        except (KeyError, TypeError, ValueError) as e:
            raise DirectoryError(f"book-service returned a malformed book {book_id}: {e}") from e

    def is_available(self, book_id: int) -> bool:
        data = self._get_json(f"/api/books/{book_id}/available")
        if not isinstance(data, bool):
            raise DirectoryError(f"book-service returned a non-boolean availability for book {book_id}")
        return data

    def adjust_availability(self, book_id: int, delta: int) -> None:
        self._request(
            "PATCH", f"/api/books/{book_id}/availability", params={"copies": delta}
        )
