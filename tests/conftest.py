"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the loan service: an in-memory
database, a fixed clock, and directory doubles backed by small in-memory
registries of users and books.
"""

from datetime import date
from typing import Generator
from unittest.mock import MagicMock

import pytest

from ironlibrary.loanservice.clients import (
    BookDirectory,
    BookInfo,
    DirectoryNotFoundError,
    UserDirectory,
    UserInfo,
)
from ironlibrary.loanservice.clock import FixedClock
from ironlibrary.loanservice.config import reset_config
from ironlibrary.loanservice.db.sqlite import Database, reset_db
from ironlibrary.loanservice.loans import LoanService

TODAY = date(2025, 6, 15)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db() -> Generator[Database, None, None]:
    """Create an in-memory database for testing."""
    reset_db()
    reset_config()
    database = Database(":memory:")
    database.create_tables()
    yield database
    reset_db()


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to a known date."""
    return FixedClock(TODAY)


# ============================================================================
# Directory Fixtures
# ============================================================================


@pytest.fixture
def user_registry() -> dict[int, UserInfo]:
    """Users known to the fake user directory."""
    return {
        1: UserInfo(id=1, name="Ana Premium", membership_type="PREMIUM", is_active=True),
        2: UserInfo(id=2, name="Bruno Basic", membership_type="BASIC", is_active=True),
        3: UserInfo(id=3, name="Carla Student", membership_type="STUDENT", is_active=True),
        4: UserInfo(id=4, name="Dario Gold", membership_type="GOLD", is_active=True),
        5: UserInfo(id=5, name="Elena Inactive", membership_type="BASIC", is_active=False),
    }


@pytest.fixture
def book_registry() -> dict[int, BookInfo]:
    """Books known to the fake book directory. Copy counts change with loans."""
    return {
        book_id: BookInfo(
            id=book_id,
            title=f"Book {book_id}",
            author=f"Author {book_id}",
            total_copies=5,
            available_copies=5,
        )
        for book_id in range(1, 13)
    } | {
        99: BookInfo(id=99, title="Out Of Stock", total_copies=2, available_copies=0),
    }


@pytest.fixture
def users(user_registry) -> MagicMock:
    """User directory double answering from ``user_registry``."""
    directory = MagicMock(spec=UserDirectory)

    def get_user(user_id):
        if user_id not in user_registry:
            raise DirectoryNotFoundError(f"user-service: not found: {user_id}")
        return user_registry[user_id]

    def validate_user(user_id):
        return bool(get_user(user_id).is_active)

    directory.get_user.side_effect = get_user
    directory.validate_user.side_effect = validate_user
    return directory


@pytest.fixture
def books(book_registry) -> MagicMock:
    """Book directory double answering from ``book_registry``."""
    directory = MagicMock(spec=BookDirectory)

    def get_book(book_id):
        if book_id not in book_registry:
            raise DirectoryNotFoundError(f"book-service: not found: {book_id}")
        return book_registry[book_id]

    def is_available(book_id):
        return get_book(book_id).is_available

    def adjust_availability(book_id, delta):
        book = get_book(book_id)
        book.available_copies += delta

    directory.get_book.side_effect = get_book
    directory.is_available.side_effect = is_available
    directory.adjust_availability.side_effect = adjust_availability
    return directory


@pytest.fixture
def service(db, users, books, clock) -> LoanService:
    """LoanService wired to the in-memory database and directory doubles."""
    return LoanService(users=users, books=books, db=db, clock=clock)
