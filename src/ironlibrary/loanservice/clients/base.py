"""Shared HTTP plumbing for the user and book directory clients."""

from typing import Any, Optional

import requests


class DirectoryError(Exception):
    """Base exception for directory service errors."""

    pass


class RemoteUnavailableError(DirectoryError):
    """Raised when a directory cannot be reached or answers with a server error."""

    pass


class DirectoryNotFoundError(DirectoryError):
    """Raised when a directory reports the requested entity does not exist."""

    pass


class DirectoryHttpClient:
    """Thin requests wrapper that turns transport failures into DirectoryError."""

    service_name = "directory"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize client.

        Args:
            base_url: Root URL of the remote service
            timeout: Request timeout in seconds
            session: Preconfigured requests session (a new one by default)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "User-Agent": "IronLibrary-LoanService/0.1",
        })

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
    ) -> requests.Response:
        """Send a request with error handling."""
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method, url, params=params, timeout=self.timeout
            )
            response.raise_for_status()
            return response
        except requests.exceptions.Timeout:
            raise RemoteUnavailableError(f"{self.service_name} request timed out: {url}")
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 404:
                raise DirectoryNotFoundError(f"{self.service_name}: not found: {url}")
            if status is not None and status < 500:
                raise DirectoryError(f"{self.service_name} HTTP error: {status}")
            raise RemoteUnavailableError(f"{self.service_name} HTTP error: {status}")
        except requests.exceptions.RequestException as e:
            raise RemoteUnavailableError(f"{self.service_name} request failed: {e}")

    def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        response = self._request("GET", path, params=params)
        try:
            return response.json()
        except ValueError:
            raise DirectoryError(f"{self.service_name} returned invalid JSON for {path}")

    def close(self) -> None:
        self._session.close()
