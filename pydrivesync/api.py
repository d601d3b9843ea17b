"""REST client for Drive-style remote storage."""

from __future__ import annotations

import json
import mimetypes
import os
import random
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any

import httpx

from .config import config
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveDownloadError,
    DriveFileNotFoundError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
    DriveUploadError,
)
from .models import RemoteEntry
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    FOLDER_MIME_TYPE,
    format_rfc3339_millis,
    local_mtime_millis,
    parse_rfc3339_millis,
)

ENTRY_FIELDS = "id, name, mimeType, modifiedTime"


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveClient:
    """Client for a Drive v3 compatible file storage API.

    Implements the ``RemoteStorage`` protocol used by the sync engine:
    entries are addressed by opaque ids, folders are entries with the
    folder MIME type, and trashed entries are never listed.
    """

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            access_token: Bearer token (uses config if not provided)
            api_url: Base URL of the service (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token or config.access_token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if not self.access_token:
            raise DriveConfigError(
                "Access token not configured. Please set "
                "PYDRIVESYNC_ACCESS_TOKEN or run 'pydrivesync init'."
            )

        self._client: httpx.Client | None = None

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.access_token}"},
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

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter to avoid thundering herd
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Map an HTTP error to an exception and decide whether to retry.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise DriveAuthenticationError(
                "Invalid or expired access token"
            ) from e
        elif status_code == 403:
            # Drive reports per-user rate limiting as 403 rateLimitExceeded
            if b"rateLimitExceeded" in (e.response.content or b""):
                return (
                    DriveRateLimitError("Rate limit exceeded"),
                    attempt < self.max_retries,
                )
            raise DrivePermissionError(
                "Access forbidden - check your permissions"
            ) from e
        elif status_code == 404:
            raise DriveNotFoundError("Resource not found") from e
        elif status_code == 429:
            error = DriveRateLimitError("Rate limit exceeded - please try again later")
            return (error, attempt < self.max_retries)

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    detail = error_data.get("error")
                    if isinstance(detail, dict):
                        detail = detail.get("message")
                    msg = detail or error_data.get("message")
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            pass

        error = DriveAPIError(error_msg)
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (error, should_retry)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: Path relative to the API base URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty bodies)

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

                if not response.content:
                    return {}
                content_type = response.headers.get("Content-Type", "")
                if "application/json" not in content_type:
                    raise DriveInvalidResponseError(
                        f"Unexpected response type: {content_type}"
                    )
                try:
                    return response.json()
                except ValueError as e:
                    raise DriveInvalidResponseError(
                        "Invalid JSON response from server"
                    ) from e

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error

                if should_retry:
                    delay = self._calculate_retry_delay(attempt)
                    if isinstance(error, DriveRateLimitError):
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after and retry_after.isdigit():
                            delay = float(retry_after)
                    time.sleep(delay)
                    continue
                raise error from e
            except DriveAPIError:
                raise
            except httpx.RequestError as e:
                error = DriveNetworkError(f"Network error: {e}")
                last_exception = error
                if attempt < self.max_retries:
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise DriveAPIError("Request failed after all retry attempts")

    # =========================
    # Listing and lookup
    # =========================

    def list_children(self, folder_id: str) -> list[RemoteEntry]:
        """List the non-trashed children of a folder.

        Args:
            folder_id: Remote folder id

        Returns:
            List of RemoteEntry objects (all pages)
        """
        entries: list[RemoteEntry] = []
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "q": f"'{_quote(folder_id)}' in parents and trashed=false",
                "fields": f"nextPageToken, files({ENTRY_FIELDS})",
                "pageSize": 1000,
            }
            if page_token:
                params["pageToken"] = page_token

            result = self._request("GET", "/drive/v3/files", params=params)
            for item in result.get("files", []):
                entries.append(RemoteEntry.from_api_response(item))

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return entries

    def get_modified_time(self, file_id: str) -> int | None:
        """Get the modification time of an entry.

        Args:
            file_id: Remote entry id

        Returns:
            Epoch milliseconds, or None if the entry does not exist
        """
        try:
            result = self._request(
                "GET", f"/drive/v3/files/{file_id}", params={"fields": "modifiedTime"}
            )
        except DriveNotFoundError:
            return None
        return parse_rfc3339_millis(result.get("modifiedTime"))

    def find_by_name(self, name: str, parent_id: str) -> str | None:
        """Find the id of a non-trashed child by exact name.

        Args:
            name: Entry name
            parent_id: Remote parent folder id

        Returns:
            Id of the first match, or None
        """
        query = (
            f"name='{_quote(name)}' and '{_quote(parent_id)}' in parents "
            "and trashed=false"
        )
        result = self._request(
            "GET",
            "/drive/v3/files",
            params={"q": query, "fields": "files(id)", "pageSize": 1},
        )
        files = result.get("files", [])
        return str(files[0]["id"]) if files else None

    # =========================
    # Mutations
    # =========================

    def create_folder(self, name: str, parent_id: str) -> str:
        """Create a folder.

        Args:
            name: Folder name
            parent_id: Remote parent folder id

        Returns:
            Id of the created folder
        """
        metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]}
        result = self._request(
            "POST", "/drive/v3/files", params={"fields": "id"}, json=metadata
        )
        if "id" not in result:
            raise DriveInvalidResponseError(f"Folder creation returned no id: {result}")
        return str(result["id"])

    def upload(
        self,
        local_path: Path,
        parent_folder_id: str,
        existing_id: str | None = None,
    ) -> str:
        """Upload a local file, creating or replacing the remote entry.

        The remote modifiedTime is set to the local modification time so
        that freshly synced pairs compare as equal.

        Args:
            local_path: File to upload
            parent_folder_id: Remote parent folder id (used on create)
            existing_id: Id of the entry to replace, or None to create

        Returns:
            Id of the created or updated entry
        """
        local_path = Path(local_path)
        if not local_path.is_file():
            raise DriveFileNotFoundError(str(local_path))

        try:
            content = local_path.read_bytes()
            mtime = local_mtime_millis(local_path)
        except OSError as e:
            raise DriveUploadError(f"Failed to read {local_path}: {e}") from e

        metadata: dict[str, Any] = {"modifiedTime": format_rfc3339_millis(mtime)}
        if existing_id is None:
            metadata["name"] = local_path.name
            metadata["parents"] = [parent_folder_id]

        mime_type = mimetypes.guess_type(local_path.name)[0] or "application/octet-stream"
        boundary = uuid.uuid4().hex
        body = b"".join(
            [
                f"--{boundary}\r\n".encode(),
                b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
                json.dumps(metadata).encode("utf-8"),
                f"\r\n--{boundary}\r\n".encode(),
                f"Content-Type: {mime_type}\r\n\r\n".encode(),
                content,
                f"\r\n--{boundary}--\r\n".encode(),
            ]
        )
        headers = {"Content-Type": f"multipart/related; boundary={boundary}"}
        params = {"uploadType": "multipart", "fields": "id"}

        if existing_id is None:
            result = self._request(
                "POST",
                "/upload/drive/v3/files",
                params=params,
                content=body,
                headers=headers,
            )
        else:
            result = self._request(
                "PATCH",
                f"/upload/drive/v3/files/{existing_id}",
                params=params,
                content=body,
                headers=headers,
            )

        if "id" not in result:
            raise DriveUploadError(f"Upload returned no id: {result}")
        return str(result["id"])

    def download(self, file_id: str, destination: Path) -> bool:
        """Download a file's content to a local path.

        Content is written to a temporary file next to the destination and
        moved into place, then the local mtime is set to the remote one.

        Args:
            file_id: Remote file id
            destination: Local target path

        Returns:
            True on success, False if the id denotes a folder
        """
        destination = Path(destination)
        meta = self._request(
            "GET",
            f"/drive/v3/files/{file_id}",
            params={"fields": "mimeType, modifiedTime"},
        )
        if meta.get("mimeType") == FOLDER_MIME_TYPE:
            return False

        url = f"{self.api_url}/drive/v3/files/{file_id}"
        client = self._get_client()
        tmp_name: str | None = None

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with client.stream("GET", url, params={"alt": "media"}) as response:
                response.raise_for_status()
                fd, tmp_name = tempfile.mkstemp(
                    dir=destination.parent, prefix=f".{destination.name}.", suffix=".part"
                )
                with os.fdopen(fd, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=65536):
                        f.write(chunk)
            os.replace(tmp_name, destination)
            tmp_name = None

            remote_mtime = parse_rfc3339_millis(meta.get("modifiedTime"))
            if remote_mtime:
                os.utime(destination, ns=(remote_mtime * 1_000_000,) * 2)
            return True

        except httpx.HTTPStatusError as e:
            raise DriveDownloadError(f"Download failed: {e}") from e
        except httpx.RequestError as e:
            raise DriveNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            raise DriveDownloadError(f"Failed to write file: {e}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def delete(self, file_id: str) -> bool:
        """Permanently delete an entry (folders are deleted recursively).

        Deleting an entry that no longer exists is not an error.

        Args:
            file_id: Remote entry id

        Returns:
            True once the entry is gone
        """
        try:
            self._request("DELETE", f"/drive/v3/files/{file_id}")
        except DriveNotFoundError:
            pass
        return True
