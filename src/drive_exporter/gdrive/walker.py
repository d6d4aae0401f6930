"""Recursive mirror of a Drive folder tree onto local disk.

The walker is synchronous and depth-first: a sub-folder is fully mirrored
before the next sibling is looked at, and children are handled in the order
Drive lists them. Any failure at any depth aborts the whole traversal; files
already written stay on disk.

Example:
    from drive_exporter.gdrive.walker import TreeWalker

    walker = TreeWalker(service, ctx)
    summary = walker.walk("1abc123xyz", Path("./mirror"))
    print(f"Exported {summary.downloaded} documents")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Set

import structlog
from rich.console import Console

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import LocalIOError, MaxDepthExceededError
from drive_exporter.gdrive.config import ExporterConfig
from drive_exporter.gdrive.discovery import ChildLister, DriveItem
from drive_exporter.gdrive.downloader import DocumentExporter
from drive_exporter.gdrive.rate_limiter import RateLimiter
from drive_exporter.naming import sanitize_name

logger = structlog.get_logger()


@dataclass
class WalkSummary:
    """Counts accumulated during one traversal.

    Attributes:
        folders: Folders mirrored, the root included.
        downloaded: Documents exported to local files.
        skipped: Items ignored (unsupported type or already visited folder).
        bytes_written: Total size of exported files.
    """

    folders: int = 0
    downloaded: int = 0
    skipped: int = 0
    bytes_written: int = 0


class TreeWalker:
    """Mirrors exportable documents below a Drive folder to a local directory."""

    def __init__(
        self,
        service: Any,
        ctx: CancellationContext,
        config: Optional[ExporterConfig] = None,
        console: Optional[Console] = None,
        lister: Optional[ChildLister] = None,
        exporter: Optional[DocumentExporter] = None,
    ) -> None:
        """Initialize the walker.

        Args:
            service: Authenticated Drive API service.
            ctx: Shared cancellation context.
            config: Exporter configuration (depth limit, retry, rate limit).
            console: Rich console receiving progress lines.
            lister: Override for the child lister.
            exporter: Override for the document exporter.
        """
        config = config or ExporterConfig()
        rate_limiter = RateLimiter(max_requests=config.rate_limit.requests_per_100_seconds)

        self._ctx = ctx
        self._max_depth = config.processing.max_folder_depth
        self._console = console or Console()
        self._lister = lister or ChildLister(
            service,
            retry_config=config.retry,
            rate_limiter=rate_limiter,
            page_size=config.processing.page_size,
        )
        self._exporter = exporter or DocumentExporter(
            service,
            retry_config=config.retry,
            rate_limiter=rate_limiter,
        )
        self._visited: Set[str] = set()
        self._summary = WalkSummary()

    def walk(self, root_folder_id: str, destination: Path) -> WalkSummary:
        """Mirror everything exportable below ``root_folder_id`` into ``destination``.

        Raises:
            DriveAccessError: If a folder cannot be listed.
            DriveExportError: If a document cannot be exported.
            LocalIOError: If a directory or file cannot be written.
            MaxDepthExceededError: If nesting exceeds the configured limit.
            OperationCancelledError: If the context is cancelled.
        """
        self._visited = set()
        self._summary = WalkSummary()

        self._walk_folder(root_folder_id, Path(destination), depth=0)

        logger.info(
            "walk_completed",
            root_folder_id=root_folder_id,
            folders=self._summary.folders,
            downloaded=self._summary.downloaded,
            skipped=self._summary.skipped,
        )
        return self._summary

    def _walk_folder(self, folder_id: str, destination: Path, depth: int) -> None:
        if depth > self._max_depth:
            raise MaxDepthExceededError(
                f"Folder {folder_id} is nested deeper than the limit of {self._max_depth}",
                folder_id=folder_id,
                depth=depth,
            )

        self._visited.add(folder_id)
        self._ensure_directory(destination)
        self._summary.folders += 1

        for page in self._lister.iter_pages(folder_id, self._ctx):
            for item in page:
                self._ctx.raise_if_cancelled()
                self._process_item(item, destination, depth)

    def _process_item(self, item: DriveItem, destination: Path, depth: int) -> None:
        self._print(f'Processing: "{item.display_path}" ({item.name})')

        if item.is_folder:
            if item.id in self._visited:
                logger.warning("folder_already_visited", folder_id=item.id, name=item.name)
                self._print(f"  -> skipping: {destination} (folder {item.id} already visited)")
                self._summary.skipped += 1
                return
            subfolder = destination / sanitize_name(item.name)
            self._print(f"  -> creating directory: {subfolder}")
            self._walk_folder(item.id, subfolder, depth + 1)
            return

        export_format = item.export_format
        if export_format is None:
            self._print(f"  -> skipping: {destination} (mime-type {item.mime_type})")
            self._summary.skipped += 1
            return

        target = destination / f"{sanitize_name(item.name)}.{export_format.extension}"
        self._print(f"  -> downloading: {target}")
        self._summary.bytes_written += self._exporter.export_to_file(
            item, export_format, target, self._ctx
        )
        self._summary.downloaded += 1

    def _ensure_directory(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalIOError(f"Unable to create download directory {path}: {e}", path=path) from e

    def _print(self, line: str) -> None:
        self._console.print(line, markup=False, highlight=False, soft_wrap=True)
