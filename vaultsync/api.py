"""API client for the Google Drive object store backing a vault."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, NoReturn

import httpx

from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
)
from .models import FOLDER_MIME_TYPE, RemoteObject

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"

ROOT_FOLDER_NAME = "obsidian"

LIST_FIELDS = "nextPageToken,files(id,name,modifiedTime,mimeType)"


class DriveClient:
    """Client for the remote object API.

    Objects live flat inside a single vault folder; an object's ``name`` is
    the full relative path of the file it stores. Calls are not retried:
    any failure is raised to the caller immediately.
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        api_url: str = DRIVE_API_URL,
        upload_url: str = DRIVE_UPLOAD_URL,
        timeout: float = 60.0,
        page_size: int = 1000,
    ):
        """Initialize Drive API client.

        Args:
            token_provider: Callable returning a valid access token
                (e.g. ``TokenManager.get_token``)
            api_url: Metadata API base URL
            upload_url: Media upload API base URL
            timeout: Request timeout in seconds (default: 60.0)
            page_size: Objects per listing page (default: 1000)
        """
        self.token_provider = token_provider
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
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

    def _raise_for_status(self, e: httpx.HTTPStatusError) -> NoReturn:
        """Translate an HTTP error into a DriveAPIError subclass."""
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
            raise DriveNotFoundError("Resource not found") from e
        elif status_code == 429:
            raise DriveRateLimitError(
                "Rate limit exceeded - please try again later"
            ) from e

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    error = error_data.get("error")
                    msg = error.get("message") if isinstance(error, dict) else error
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass
        raise DriveAPIError(error_msg) from e

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with the current bearer token.

        Raises:
            DriveAPIError: If the request fails
        """
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self.token_provider()}"
        client = self._get_client()
        try:
            response = client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            self._raise_for_status(e)
        except httpx.RequestError as e:
            raise DriveNetworkError(f"Network error: {e}") from e

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make a metadata API request and return the decoded JSON body."""
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        response = self._send(method, url, **kwargs)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise DriveInvalidResponseError("Invalid JSON response from server") from e

    # =========================
    # Listing
    # =========================

    def list_files(self, folder_id: str) -> list[RemoteObject]:
        """List every object inside a folder, following pagination.

        Args:
            folder_id: ID of the vault folder

        Returns:
            List of remote objects
        """
        objects: list[RemoteObject] = []
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "q": f"'{folder_id}' in parents and trashed = false",
                "fields": LIST_FIELDS,
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token

            result = self._request("GET", "/files", params=params)
            for item in result.get("files", []):
                objects.append(RemoteObject.from_api_response(item))

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(objects)} object(s) in folder {folder_id}")
        return objects

    def find_folder(self, name: str, parent_id: str | None = None) -> str | None:
        """Find a folder by name.

        Args:
            name: Folder name
            parent_id: Optional parent folder ID

        Returns:
            Folder ID or None if not found
        """
        query = f"mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        if parent_id:
            query += f" and '{parent_id}' in parents"
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "q": query,
                "fields": "nextPageToken,files(id,name)",
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token
            result = self._request("GET", "/files", params=params)
            for item in result.get("files", []):
                if item.get("name") == name:
                    return str(item["id"])
            page_token = result.get("nextPageToken")
            if not page_token:
                return None

    def create_folder(self, name: str, parent_id: str | None = None) -> str:
        """Create a folder and return its ID."""
        body: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            body["parents"] = [parent_id]
        result = self._request("POST", "/files", json=body)
        return str(result["id"])

    # =========================
    # Object content
    # =========================

    def get_file(self, file_id: str) -> bytes:
        """Download the content of an object.

        Args:
            file_id: Object ID

        Returns:
            Object content
        """
        url = f"{self.api_url}/files/{file_id}"
        response = self._send("GET", url, params={"alt": "media"})
        return response.content

    def create_file(self, name: str, data: bytes, parent_id: str | None) -> str:
        """Create a new object with the given name and content.

        Args:
            name: Object name (full relative path)
            data: Content to upload
            parent_id: ID of the vault folder

        Returns:
            ID of the new object
        """
        metadata: dict[str, Any] = {"name": name}
        if parent_id:
            metadata["parents"] = [parent_id]

        boundary = "vaultsync-boundary"
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode("utf-8")
        body += data + f"\r\n--{boundary}--".encode("utf-8")

        url = f"{self.upload_url}/files"
        response = self._send(
            "POST",
            url,
            params={"uploadType": "multipart", "fields": "id"},
            content=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        try:
            file_id = str(response.json()["id"])
        except (ValueError, KeyError) as e:
            raise DriveInvalidResponseError("Upload response did not contain an id") from e
        logger.debug(f"Created object {name} ({file_id})")
        return file_id

    def update_file(self, file_id: str, data: bytes) -> None:
        """Replace the content of an existing object."""
        url = f"{self.upload_url}/files/{file_id}"
        self._send(
            "PATCH",
            url,
            params={"uploadType": "media"},
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        logger.debug(f"Updated object {file_id}")

    def rename_file(self, file_id: str, new_name: str) -> str:
        """Rename an object and return its ID."""
        result = self._request(
            "PATCH", f"/files/{file_id}", json={"name": new_name}, params={"fields": "id"}
        )
        return str(result.get("id", file_id))

    def delete_file(self, file_id: str) -> bool:
        """Delete an object.

        Returns:
            True if deleted, False if it did not exist
        """
        try:
            self._request("DELETE", f"/files/{file_id}")
        except DriveNotFoundError:
            logger.debug(f"Object {file_id} already deleted")
            return False
        return True

    # =========================
    # Vault bootstrap
    # =========================

    def ensure_folder(self, name: str, parent_id: str | None = None) -> str:
        """Return the ID of a folder, creating it when missing."""
        folder_id = self.find_folder(name, parent_id)
        if folder_id:
            return folder_id
        logger.info(f"Folder {name} not found, creating it")
        return self.create_folder(name, parent_id)

    def ensure_vault_folder(self, vault_name: str, root_name: str = ROOT_FOLDER_NAME) -> str:
        """Locate or create ``{root_name}/{vault_name}`` and return the vault ID."""
        root_id = self.ensure_folder(root_name)
        return self.ensure_folder(vault_name, root_id)
