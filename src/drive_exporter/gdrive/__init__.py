"""Google Drive integration for the exporter.

This module provides:
- Authorizing with the Drive API (cached tokens or interactive OAuth2)
- Listing folder children across all shared drives
- Exporting Google-native documents to Office formats
- Mirroring a whole folder tree to local disk

Example:
    from drive_exporter.cancellation import signal_cancelling_context
    from drive_exporter.gdrive import TreeWalker, get_drive_service

    with signal_cancelling_context() as ctx:
        service = get_drive_service(ctx, Path("client_secret.json"), Path(".tokens"))
        summary = TreeWalker(service, ctx).walk("1abc123xyz", Path("./mirror"))
    print(f"Exported {summary.downloaded} documents")
"""

# Authorization
from drive_exporter.gdrive.auth import (
    AuthorizationFlow,
    CallbackServer,
    OAuth2Authenticator,
    load_client_config,
    scopes_for,
)

# Client
from drive_exporter.gdrive.client import build_drive_service, get_drive_service

# Configuration
from drive_exporter.gdrive.config import (
    AuthConfig,
    ExporterConfig,
    ProcessingConfig,
    RateLimitConfig,
    RetryConfig,
    load_config,
)

# Discovery
from drive_exporter.gdrive.discovery import (
    EXPORT_FORMATS,
    FOLDER_MIME,
    ChildLister,
    DriveItem,
    ExportFormat,
)

# Downloader
from drive_exporter.gdrive.downloader import DocumentExporter

# Errors
from drive_exporter.errors import (
    AuthenticationError,
    AuthorizationCancelledError,
    AuthorizationError,
    ConfigurationError,
    DriveAccessError,
    DriveExportError,
    ExporterError,
    FileTooLargeError,
    LocalIOError,
    MaxDepthExceededError,
    OperationCancelledError,
    TokenStoreError,
)

# Token cache
from drive_exporter.gdrive.token_store import StoredToken, TokenStore, token_filename

# Walker
from drive_exporter.gdrive.walker import TreeWalker, WalkSummary

__all__ = [
    # Authorization
    "AuthorizationFlow",
    "CallbackServer",
    "OAuth2Authenticator",
    "load_client_config",
    "scopes_for",
    # Client
    "build_drive_service",
    "get_drive_service",
    # Configuration
    "ExporterConfig",
    "AuthConfig",
    "ProcessingConfig",
    "RetryConfig",
    "RateLimitConfig",
    "load_config",
    # Discovery
    "ChildLister",
    "DriveItem",
    "ExportFormat",
    "EXPORT_FORMATS",
    "FOLDER_MIME",
    # Downloader
    "DocumentExporter",
    # Token cache
    "StoredToken",
    "TokenStore",
    "token_filename",
    # Walker
    "TreeWalker",
    "WalkSummary",
    # Errors
    "ExporterError",
    "ConfigurationError",
    "AuthenticationError",
    "AuthorizationError",
    "AuthorizationCancelledError",
    "TokenStoreError",
    "DriveAccessError",
    "DriveExportError",
    "FileTooLargeError",
    "LocalIOError",
    "MaxDepthExceededError",
    "OperationCancelledError",
]
