"""Authenticated Drive API client construction.

Example:
    from drive_exporter.gdrive.client import get_drive_service

    service = get_drive_service(
        ctx,
        client_secrets_path=Path("client_secret.json"),
        token_dir=Path(".tokens"),
    )
"""

import webbrowser
from pathlib import Path
from typing import Callable, Optional

import httplib2
import structlog
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import Resource, build
from rich.console import Console

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import AuthenticationError
from drive_exporter.gdrive.auth import OAuth2Authenticator
from drive_exporter.gdrive.config import ExporterConfig

logger = structlog.get_logger()

# Google Drive API version
DRIVE_API_VERSION = "v3"
DRIVE_API_SERVICE = "drive"


def build_drive_service(credentials: Credentials, timeout_seconds: Optional[float] = 60.0) -> Resource:
    """Wrap credentials in an authorized transport and build the Drive client.

    Args:
        credentials: OAuth2 credentials; refreshed transparently when expired
            and a refresh token is present.
        timeout_seconds: Socket timeout for every API request.

    Raises:
        AuthenticationError: If the Drive API service cannot be built.
    """
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout_seconds))
    try:
        service = build(
            DRIVE_API_SERVICE,
            DRIVE_API_VERSION,
            http=http,
            cache_discovery=False,
        )
    except Exception as e:
        logger.error("drive_service_build_failed", error=str(e))
        raise AuthenticationError(
            f"Unable to retrieve Drive client: {e}", auth_method="oauth2"
        ) from e

    logger.debug("drive_service_built", version=DRIVE_API_VERSION)
    return service


def get_drive_service(
    ctx: CancellationContext,
    client_secrets_path: Path,
    token_dir: Path,
    read: bool = True,
    write: bool = False,
    config: Optional[ExporterConfig] = None,
    console: Optional[Console] = None,
    browser_opener: Callable[[str], bool] = webbrowser.open,
) -> Resource:
    """Authorize (from cache or interactively) and return a Drive client."""
    config = config or ExporterConfig()
    authenticator = OAuth2Authenticator(
        client_secrets_path=client_secrets_path,
        token_dir=token_dir,
        read=read,
        write=write,
        config=config.auth,
        console=console,
        browser_opener=browser_opener,
    )
    credentials = authenticator.get_credentials(ctx)
    return build_drive_service(credentials, timeout_seconds=config.processing.http_timeout_seconds)
