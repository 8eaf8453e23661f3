"""HTTP client for the destination document store."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, BinaryIO

import httpx

from .config import config
from .exceptions import (
    ConfigError,
    DriveAPIError,
    DriveAuthenticationError,
    DriveConflictError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
)
from .models import DestinationEntry, DestinationListing

logger = logging.getLogger(__name__)


class DriveClient:
    """Client for the document store's items and files endpoints."""

    def __init__(
        self,
        api_url: str | None = None,
        token: str | None = None,
        company_id: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        upload_timeout: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the document store client.

        Args:
            api_url: Base URL of the store (uses config if not provided)
            token: Bearer token (uses config if not provided)
            company_id: Company id used in item URLs (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            upload_timeout: Timeout for blob uploads in seconds (default: 300.0)
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = (api_url or config.api_url or "").rstrip("/")
        self.token = token or config.token
        self.company_id = company_id or config.company_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self._transport = transport

        if not self.api_url:
            raise ConfigError(
                "API URL not configured. Please set CLOUDMIRROR_API_URL "
                "or run 'cloudmirror init'."
            )
        if not self.token:
            raise ConfigError(
                "Access token not configured. Please set CLOUDMIRROR_TOKEN "
                "or run 'cloudmirror init'."
            )
        if not self.company_id:
            raise ConfigError(
                "Company id not configured. Please set CLOUDMIRROR_COMPANY_ID "
                "or run 'cloudmirror init'."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def _documents_prefix(self) -> str:
        return f"/internal/services/documents/v1/companies/{self.company_id}"

    @property
    def _files_prefix(self) -> str:
        return f"/internal/services/files/v1/companies/{self.company_id}"

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Map an HTTP error to a DriveAPIError and decide whether to retry.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise DriveAuthenticationError(
                "Invalid access token or unauthorized access"
            ) from e
        elif status_code == 403:
            raise DrivePermissionError(
                "Access forbidden - check your permissions"
            ) from e
        elif status_code == 404:
            raise DriveNotFoundError("Item not found") from e
        elif status_code == 409:
            raise DriveConflictError("An item with this name already exists") from e
        elif status_code == 429:
            error = DriveRateLimitError("Rate limit exceeded - please try again later")
            return (error, attempt < self.max_retries)

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            pass

        error = DriveAPIError(error_msg)
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (error, should_retry)

    def _parse_json(self, response: httpx.Response) -> Any:
        content_type = response.headers.get("Content-Type", "")
        if not response.content:
            return {}
        if "application/json" not in content_type:
            if "text/html" in content_type:
                raise DriveAuthenticationError(
                    "Invalid access token - server returned HTML instead of JSON"
                )
            raise DriveInvalidResponseError(
                f"Unexpected response type: {content_type}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise DriveInvalidResponseError("Invalid JSON response from server") from e

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            DriveAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        last_exception: Exception | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return self._parse_json(response)

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error

                if should_retry:
                    delay = self._calculate_retry_delay(attempt)
                    if isinstance(error, DriveRateLimitError):
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after and retry_after.isdigit():
                            delay = float(retry_after)
                    logger.debug(
                        f"{method} {endpoint} failed ({error}), "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    continue
                raise error from e
            except DriveAPIError:
                raise
            except httpx.RequestError as e:
                error = DriveNetworkError(f"Network error: {e}")
                last_exception = error
                if attempt < self.max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"{method} {endpoint} network error, retrying")
                    time.sleep(delay)
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise DriveAPIError("Request failed after all retry attempts")

    # =========================
    # Item Operations
    # =========================

    def get_item(self, item_id: str) -> Any:
        """Get an item together with its children.

        Args:
            item_id: Item (folder) id

        Returns:
            Response with 'item' and 'children' keys
        """
        return self._request("GET", f"{self._documents_prefix}/item/{item_id}")

    def browse_children(self, parent_id: str) -> DestinationListing:
        """List the immediate children of a folder.

        Args:
            parent_id: Folder id

        Returns:
            DestinationListing split into folders and files
        """
        result = self.get_item(parent_id)
        children = result.get("children") if isinstance(result, dict) else None
        if not isinstance(children, list):
            raise DriveInvalidResponseError(
                f"Browse response for {parent_id} has no children list"
            )
        entries = [
            DestinationEntry.from_api(child)
            for child in children
            if isinstance(child, dict)
        ]
        return DestinationListing.from_children(entries)

    def _create_item(
        self, item: dict[str, Any], version: dict[str, Any] | None = None
    ) -> str:
        payload: dict[str, Any] = {"item": {"company_id": self.company_id, **item}}
        if version is not None:
            payload["version"] = version

        result = self._request("POST", f"{self._documents_prefix}/item", json=payload)
        item_id = result.get("id") if isinstance(result, dict) else None
        if not item_id:
            raise DriveInvalidResponseError(f"Create response has no id: {result}")
        return str(item_id)

    def create_entry(
        self, parent_id: str, name: str, is_directory: bool = True
    ) -> str:
        """Create an entry without content (a folder by default).

        Args:
            parent_id: Parent folder id
            name: Entry name
            is_directory: Whether the entry is a folder

        Returns:
            Id of the new entry

        Raises:
            DriveConflictError: If the entry already exists
        """
        return self._create_item(
            {"parent_id": parent_id, "name": name, "is_directory": is_directory}
        )

    def create_versioned_entry(
        self,
        blob_id: str,
        parent_id: str,
        name: str,
        size: int,
        content_type: str,
    ) -> str:
        """Create a file entry referencing a stored blob.

        Args:
            blob_id: Id returned by save_blob
            parent_id: Parent folder id
            name: File name
            size: File size in bytes
            content_type: MIME type

        Returns:
            Id of the new entry
        """
        extension = name.rsplit(".", 1)[-1] if "." in name else ""
        item = {
            "parent_id": parent_id,
            "name": name,
            "is_directory": False,
            "extension": extension,
            "size": size,
        }
        version = {
            "filename": name,
            "file_size": size,
            "file_metadata": {
                "source": "internal",
                "external_id": blob_id,
                "name": name,
                "mime": content_type,
                "size": size,
            },
        }
        return self._create_item(item, version)

    # =========================
    # File Operations
    # =========================

    def save_blob(
        self,
        stream: BinaryIO,
        filename: str,
        size: int,
        content_type: str,
    ) -> str:
        """Upload content as a new blob.

        The stream is read once and sent as it is read, so uploads are
        never retried here.

        Args:
            stream: Readable binary object (e.g. a RemoteStream)
            filename: File name stored with the blob
            size: Declared size in bytes
            content_type: MIME type

        Returns:
            Id of the stored blob

        Raises:
            DriveAPIError: If the upload fails
        """
        url = f"{self.api_url}{self._files_prefix}/files"
        params = {
            "thumbnail_sync": 0,
            "resumableChunkNumber": 1,
            "resumableTotalChunks": 1,
            "resumableTotalSize": size,
            "resumableFilename": filename,
            "resumableType": content_type,
        }
        client = self._get_client()

        try:
            response = client.post(
                url,
                params=params,
                files={"file": (filename, stream, content_type)},
                timeout=self.upload_timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error, _ = self._handle_http_error(e, self.max_retries)
            raise error from e
        except httpx.RequestError as e:
            raise DriveNetworkError(f"Network error during upload: {e}") from e

        result = self._parse_json(response)
        resource = result.get("resource") if isinstance(result, dict) else None
        blob_id = resource.get("id") if isinstance(resource, dict) else None
        if not blob_id:
            raise DriveInvalidResponseError(f"Upload response has no id: {result}")
        return str(blob_id)
