"""Google Drive folder listing for the exporter.

This module defines the item model returned by Drive, the static table of
export formats for Google-native documents, and a paginated lister for the
direct children of a folder.

Example:
    from drive_exporter.gdrive.discovery import ChildLister

    lister = ChildLister(service)
    for page in lister.iter_pages(folder_id, ctx):
        for item in page:
            print(item.name, item.mime_type)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import structlog
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import DriveAccessError, OperationCancelledError
from drive_exporter.gdrive.config import RetryConfig
from drive_exporter.gdrive.rate_limiter import RateLimiter
from drive_exporter.gdrive.retry import execute_with_retry, http_status

logger = structlog.get_logger()

# MIME type for folders
FOLDER_MIME = "application/vnd.google-apps.folder"

LIST_FIELDS = "nextPageToken, files(id, name, parents, mimeType, capabilities)"


@dataclass(frozen=True)
class ExportFormat:
    """Office format a Google-native document is exported to.

    Attributes:
        kind: Document kind (document, spreadsheet, presentation).
        extension: File extension written locally, without the dot.
        mime_type: MIME type requested from the export endpoint.
    """

    kind: str
    extension: str
    mime_type: str


# Google-native MIME type -> export format. Closed table, not configurable.
EXPORT_FORMATS: Dict[str, ExportFormat] = {
    "application/vnd.google-apps.document": ExportFormat(
        kind="document",
        extension="docx",
        mime_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ),
    "application/vnd.google-apps.spreadsheet": ExportFormat(
        kind="spreadsheet",
        extension="xlsx",
        mime_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ),
    "application/vnd.google-apps.presentation": ExportFormat(
        kind="presentation",
        extension="pptx",
        mime_type="application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ),
}


@dataclass
class DriveItem:
    """A file or folder listed from Google Drive.

    Attributes:
        id: Google Drive file ID.
        name: Display name.
        mime_type: Drive MIME type, used to classify the item.
        parents: IDs of the parent folders.
        capabilities: Capability flags reported by Drive for the caller.
    """

    id: str
    name: str
    mime_type: str
    parents: List[str] = field(default_factory=list)
    capabilities: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME

    @property
    def export_format(self) -> Optional[ExportFormat]:
        """Export format for this item, or None if it cannot be exported."""
        return EXPORT_FORMATS.get(self.mime_type)

    @property
    def display_path(self) -> str:
        """Parent IDs joined with the item ID, for progress output."""
        return "/".join(self.parents) + "/" + self.id

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DriveItem":
        """Create from a ``files`` entry of a Drive list response."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            parents=list(data.get("parents", [])),
            capabilities=dict(data.get("capabilities", {})),
        )


def _escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _credential_hint(error: Exception) -> str:
    if isinstance(error, RefreshError) or (isinstance(error, HttpError) and http_status(error) == 401):
        return " (the cached token was rejected; delete it from the token directory to authorize again)"
    return ""


class ChildLister:
    """Lists the direct children of a Drive folder, one page at a time.

    Listing covers all shared drives and excludes trashed items. Pages and
    the items within them are yielded in the order Drive returns them.
    """

    def __init__(
        self,
        service: Any,
        retry_config: Optional[RetryConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        page_size: int = 100,
    ) -> None:
        """Initialize the lister.

        Args:
            service: Authenticated Drive API service.
            retry_config: Backoff settings for retryable errors.
            rate_limiter: Optional rate limiter for API calls.
            page_size: Items requested per page.
        """
        self._service = service
        self._retry_config = retry_config or RetryConfig()
        self._rate_limiter = rate_limiter
        self._page_size = page_size

    def iter_pages(self, folder_id: str, ctx: CancellationContext) -> Iterator[List[DriveItem]]:
        """Yield pages of children of ``folder_id``.

        The context is checked before each page is requested and again after
        it returns, so cancellation takes effect at page boundaries.

        Raises:
            DriveAccessError: If a page cannot be listed.
            OperationCancelledError: If ``ctx`` is cancelled.
        """
        query = f"'{_escape_query_value(folder_id)}' in parents and trashed = false"
        page_token: Optional[str] = None
        page_number = 0

        while True:
            ctx.raise_if_cancelled()

            token = page_token
            try:
                response = execute_with_retry(
                    lambda: self._list_page(query, token, ctx),
                    ctx,
                    self._retry_config,
                    description="list folder",
                )
            except OperationCancelledError:
                raise
            except Exception as e:
                logger.error("folder_list_failed", folder_id=folder_id, error=str(e))
                raise DriveAccessError(
                    f"Unable to retrieve files of folder {folder_id}: {e}{_credential_hint(e)}",
                    resource_id=folder_id,
                ) from e

            ctx.raise_if_cancelled()

            items = [DriveItem.from_api(entry) for entry in response.get("files", [])]
            page_number += 1
            logger.debug("folder_page_listed", folder_id=folder_id, page=page_number, items=len(items))
            yield items

            page_token = response.get("nextPageToken")
            if not page_token:
                break

    def _list_page(self, query: str, page_token: Optional[str], ctx: CancellationContext) -> Dict[str, Any]:
        # Acquired per attempt so retried requests are counted too
        if self._rate_limiter is not None:
            self._rate_limiter.acquire(ctx)

        return (
            self._service.files()
            .list(
                q=query,
                corpora="allDrives",
                includeItemsFromAllDrives=True,
                supportsAllDrives=True,
                fields=LIST_FIELDS,
                pageSize=self._page_size,
                pageToken=page_token,
            )
            .execute()
        )
