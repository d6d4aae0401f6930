"""Google Drive document exporter.

This module exports Google-native documents to Office formats through the
Drive export endpoint. Converted bytes are streamed into a temporary file
beside the destination, which replaces the destination only once the export
has completed; a failed export leaves the destination untouched.

Example:
    from drive_exporter.gdrive.downloader import DocumentExporter

    exporter = DocumentExporter(service)
    exporter.export_to_file(item, item.export_format, Path("out/Plan.docx"), ctx)
"""

import os
import tempfile
from pathlib import Path
from typing import IO, Any, Optional

import structlog
from googleapiclient.errors import HttpError

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import (
    DriveExportError,
    FileTooLargeError,
    LocalIOError,
    OperationCancelledError,
)
from drive_exporter.gdrive.config import RetryConfig
from drive_exporter.gdrive.discovery import DriveItem, ExportFormat
from drive_exporter.gdrive.rate_limiter import RateLimiter
from drive_exporter.gdrive.retry import error_reasons, execute_with_retry

logger = structlog.get_logger()

EXPORT_LIMIT_REASON = "exportSizeLimitExceeded"


class DocumentExporter:
    """Exports Drive documents to local files.

    Each download attempt streams into a fresh temporary file, so a retried
    export never carries bytes over from an earlier partial attempt.
    """

    # Bytes fetched per request while streaming an export
    CHUNK_SIZE = 10 * 1024 * 1024

    def __init__(
        self,
        service: Any,
        retry_config: Optional[RetryConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        """Initialize the exporter.

        Args:
            service: Authenticated Google Drive API service.
            retry_config: Backoff settings for retryable errors.
            rate_limiter: Optional rate limiter for API calls.
        """
        self._service = service
        self._retry_config = retry_config or RetryConfig()
        self._rate_limiter = rate_limiter

    def export_to_file(
        self,
        item: DriveItem,
        export_format: ExportFormat,
        destination: Path,
        ctx: CancellationContext,
    ) -> int:
        """Export ``item`` as ``export_format`` into ``destination``.

        Returns:
            Number of bytes written.

        Raises:
            FileTooLargeError: If the document exceeds the export size limit.
            DriveExportError: If the export request fails.
            LocalIOError: If the destination file cannot be written.
            OperationCancelledError: If ``ctx`` is cancelled mid-download.
        """
        try:
            size = execute_with_retry(
                lambda: self._download_once(item, export_format, destination, ctx),
                ctx,
                self._retry_config,
                description="export document",
            )
        except (LocalIOError, OperationCancelledError):
            raise
        except Exception as e:
            raise self._export_error(item, export_format, e) from e

        logger.debug(
            "document_exported",
            file_id=item.id,
            path=str(destination),
            kind=export_format.kind,
            size_bytes=size,
        )
        return size

    def _download_once(
        self,
        item: DriveItem,
        export_format: ExportFormat,
        destination: Path,
        ctx: CancellationContext,
    ) -> int:
        # Every attempt is a separate request and counts against the limit
        if self._rate_limiter is not None:
            self._rate_limiter.acquire(ctx)

        try:
            handle = tempfile.NamedTemporaryFile(
                dir=destination.parent,
                prefix=f".{destination.name}.",
                suffix=".part",
                delete=False,
            )
        except OSError as e:
            raise LocalIOError(f"Unable to create file {destination}: {e}", path=destination) from e

        temp_path = Path(handle.name)
        completed = False
        try:
            with handle:
                request = self._service.files().export_media(
                    fileId=item.id,
                    mimeType=export_format.mime_type,
                )
                downloader = self._create_media_downloader(handle, request)

                done = False
                while not done:
                    ctx.raise_if_cancelled()
                    _, done = downloader.next_chunk()

                size = handle.tell()

            try:
                os.replace(temp_path, destination)
            except OSError as e:
                raise LocalIOError(f"Unable to create file {destination}: {e}", path=destination) from e
            completed = True
            return size
        finally:
            if not completed:
                temp_path.unlink(missing_ok=True)

    def _export_error(
        self, item: DriveItem, export_format: ExportFormat, error: Exception
    ) -> DriveExportError:
        """Map a failed export to the matching exporter error."""
        if isinstance(error, HttpError) and EXPORT_LIMIT_REASON in error_reasons(error):
            return FileTooLargeError(
                f"Document '{item.name}' exceeds the Drive export size limit",
                file_id=item.id,
                mime_type=export_format.mime_type,
            )

        logger.error("document_export_failed", file_id=item.id, name=item.name, error=str(error))
        return DriveExportError(
            f"Unable to download file '{item.name}': {error}",
            file_id=item.id,
            mime_type=export_format.mime_type,
        )

    def _create_media_downloader(self, handle: IO[bytes], request: Any) -> Any:
        """Create a MediaIoBaseDownload for streaming downloads."""
        from googleapiclient.http import MediaIoBaseDownload

        return MediaIoBaseDownload(handle, request, chunksize=self.CHUNK_SIZE)
