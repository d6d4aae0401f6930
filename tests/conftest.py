"""
Shared pytest fixtures for drive_exporter tests.

This module provides common fixtures used across test modules including:
- An in-memory fake of the Drive ``files()`` API
- Drive item payload builders
- Client secret and cancellation context fixtures
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from drive_exporter.cancellation import CancellationContext
from drive_exporter.gdrive.config import ExporterConfig
from drive_exporter.gdrive.discovery import FOLDER_MIME
from drive_exporter.gdrive.downloader import DocumentExporter

GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
GOOGLE_SHEET_MIME = "application/vnd.google-apps.spreadsheet"
GOOGLE_SLIDES_MIME = "application/vnd.google-apps.presentation"
PDF_MIME = "application/pdf"

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# ============================================================================
# Drive item builders
# ============================================================================


def folder_entry(item_id: str, name: str, parent: str = "root") -> Dict[str, Any]:
    """Build a ``files`` entry for a folder."""
    return {"id": item_id, "name": name, "mimeType": FOLDER_MIME, "parents": [parent]}


def file_entry(
    item_id: str, name: str, mime_type: str = GOOGLE_DOC_MIME, parent: str = "root"
) -> Dict[str, Any]:
    """Build a ``files`` entry for a non-folder item."""
    return {
        "id": item_id,
        "name": name,
        "mimeType": mime_type,
        "parents": [parent],
        "capabilities": {"canDownload": True},
    }


# ============================================================================
# Fake Drive service
# ============================================================================


class FakeRequest:
    """Request object whose ``execute`` defers to a callable."""

    def __init__(self, fn: Callable[[], Any]) -> None:
        self._fn = fn

    def execute(self) -> Any:
        return self._fn()


class FakeExportRequest:
    """Export request consumed by FakeMediaDownload."""

    def __init__(self, drive: "FakeDriveService", file_id: str, mime_type: str) -> None:
        self.drive = drive
        self.file_id = file_id
        self.mime_type = mime_type

    def fetch(self) -> bytes:
        return self.drive.export(self.file_id, self.mime_type)


class FakeMediaDownload:
    """Stand-in for MediaIoBaseDownload delivering the whole export in one chunk."""

    def __init__(self, handle: Any, request: FakeExportRequest) -> None:
        self._handle = handle
        self._request = request

    def next_chunk(self) -> Tuple[None, bool]:
        self._handle.write(self._request.fetch())
        return None, True


class FakeFiles:
    def __init__(self, drive: "FakeDriveService") -> None:
        self._drive = drive

    def list(self, **kwargs: Any) -> FakeRequest:
        return FakeRequest(lambda: self._drive.list_page(kwargs))

    def export_media(self, fileId: str, mimeType: str) -> FakeExportRequest:  # noqa: N803
        return FakeExportRequest(self._drive, fileId, mimeType)


class FakeDriveService:
    """In-memory Drive tree.

    ``folders`` maps a folder ID to its pages of ``files`` entries, and
    ``exports`` maps a file ID to the bytes its export returns. Every list
    and export call is appended to ``calls`` in order.
    """

    def __init__(self) -> None:
        self.folders: Dict[str, List[List[Dict[str, Any]]]] = {}
        self.exports: Dict[str, bytes] = {}
        self.export_errors: Dict[str, Exception] = {}
        self.list_errors: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.list_kwargs: List[Dict[str, Any]] = []
        self.on_list: Optional[Callable[[str], None]] = None
        self.on_export: Optional[Callable[[str], None]] = None

    def files(self) -> FakeFiles:
        return FakeFiles(self)

    def add_folder(self, folder_id: str, *pages: List[Dict[str, Any]]) -> None:
        self.folders[folder_id] = list(pages) or [[]]

    def list_page(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        folder_id = kwargs["q"].split("'")[1]
        page_token = kwargs.get("pageToken")
        self.calls.append(("list", folder_id, page_token or ""))
        self.list_kwargs.append(kwargs)

        if self.on_list is not None:
            self.on_list(folder_id)
        if folder_id in self.list_errors:
            raise self.list_errors[folder_id]

        pages = self.folders.get(folder_id, [[]])
        index = int(page_token or 0)
        response: Dict[str, Any] = {"files": pages[index]}
        if index + 1 < len(pages):
            response["nextPageToken"] = str(index + 1)
        return response

    def export(self, file_id: str, mime_type: str) -> bytes:
        self.calls.append(("export", file_id, mime_type))
        if self.on_export is not None:
            self.on_export(file_id)
        if file_id in self.export_errors:
            raise self.export_errors[file_id]
        return self.exports.get(file_id, b"")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_drive(monkeypatch: pytest.MonkeyPatch) -> FakeDriveService:
    """Fake Drive service with media downloads served from memory."""
    monkeypatch.setattr(
        DocumentExporter,
        "_create_media_downloader",
        lambda self, handle, request: FakeMediaDownload(handle, request),
    )
    return FakeDriveService()


@pytest.fixture
def ctx() -> CancellationContext:
    """Fresh, uncancelled context."""
    return CancellationContext()


@pytest.fixture
def fast_config() -> ExporterConfig:
    """Configuration with instant retries."""
    config = ExporterConfig()
    config.retry.initial_delay_seconds = 0.0
    config.retry.max_delay_seconds = 0.0
    return config


@pytest.fixture
def client_secrets_path(tmp_path: Path) -> Path:
    """Write an installed-app client secret file."""
    path = tmp_path / "client_secret.json"
    path.write_text(
        json.dumps(
            {
                "installed": {
                    "client_id": "client-123.apps.googleusercontent.com",
                    "client_secret": "shh",
                    "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                    "token_uri": "https://oauth2.googleapis.com/token",
                    "redirect_uris": ["http://localhost"],
                }
            }
        )
    )
    return path
