"""Clients for the user and book directory services."""

from .base import (
    DirectoryError,
    DirectoryHttpClient,
    DirectoryNotFoundError,
    RemoteUnavailableError,
)
from .books import BookDirectory, BookInfo, BookServiceClient
from .users import UserDirectory, UserInfo, UserServiceClient

__all__ = [
    "BookDirectory",
    "BookInfo",
    "BookServiceClient",
    "DirectoryError",
    "DirectoryHttpClient",
    "DirectoryNotFoundError",
    "RemoteUnavailableError",
    "UserDirectory",
    "UserInfo",
    "UserServiceClient",
]
