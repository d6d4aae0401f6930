"""Local cache of OAuth2 tokens, one file per capability set.

Tokens live in a caller-supplied directory as ``token-r.json`` (read),
``token-w.json`` (write) or ``token-rw.json`` (both). Files are created on
the first successful authorization and never deleted by the exporter; delete
a file by hand to force a new consent flow.

Example:
    store = TokenStore(Path("~/.config/drive-exporter").expanduser())
    token = store.load(read=True, write=False)
    credentials = token.to_credentials(client_config)
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from google.oauth2.credentials import Credentials
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from drive_exporter.errors import TokenStoreError

logger = structlog.get_logger()

TOKEN_FILE_PREFIX = "token-"
TOKEN_FILE_SUFFIX = ".json"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


def token_filename(read: bool, write: bool) -> str:
    """Return the cache filename for a capability combination.

    Raises:
        ValueError: If neither capability is requested.
    """
    if not (read or write):
        raise ValueError("At least one of read or write capability is required")
    flags = ("r" if read else "") + ("w" if write else "")
    return f"{TOKEN_FILE_PREFIX}{flags}{TOKEN_FILE_SUFFIX}"


class StoredToken(BaseModel):
    """OAuth2 credential bundle as persisted on disk."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(description="Bearer access token")
    refresh_token: Optional[str] = Field(default=None, description="Long-lived refresh token")
    expiry: Optional[datetime] = Field(default=None, description="Access token expiry (UTC)")
    token_type: str = Field(default="Bearer")
    scope: str = Field(default="", description="Space-separated granted scopes")

    @field_validator("expiry")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            # google-auth reports naive datetimes in UTC
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def scopes(self) -> List[str]:
        return self.scope.split()

    @property
    def expired(self) -> bool:
        """True if an expiry is known and already in the past."""
        return self.expiry is not None and self.expiry <= datetime.now(timezone.utc)

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> "StoredToken":
        """Capture the persistable parts of google-auth credentials."""
        scopes = getattr(credentials, "granted_scopes", None) or credentials.scopes or []
        return cls(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expiry=credentials.expiry,
            scope=" ".join(scopes),
        )

    def to_credentials(
        self,
        client_config: Dict[str, Any],
        scopes: Optional[List[str]] = None,
    ) -> Credentials:
        """Build google-auth credentials able to refresh themselves.

        Args:
            client_config: The ``installed``/``web`` section of the client
                secret file (client_id, client_secret, token_uri).
            scopes: Scopes to attach when the token did not record any.
        """
        expiry = None
        if self.expiry is not None:
            expiry = self.expiry.astimezone(timezone.utc).replace(tzinfo=None)
        return Credentials(  # type: ignore[no-untyped-call]
            token=self.access_token,
            refresh_token=self.refresh_token,
            token_uri=client_config.get("token_uri", DEFAULT_TOKEN_URI),
            client_id=client_config.get("client_id"),
            client_secret=client_config.get("client_secret"),
            scopes=self.scopes or scopes,
            expiry=expiry,
        )


class TokenStore:
    """Reads and writes cached tokens keyed by capability."""

    def __init__(self, token_dir: Path) -> None:
        self._token_dir = Path(token_dir)

    @property
    def token_dir(self) -> Path:
        return self._token_dir

    def path_for(self, read: bool, write: bool) -> Path:
        return self._token_dir / token_filename(read, write)

    def load(self, read: bool, write: bool) -> StoredToken:
        """Load the cached token for a capability set.

        Raises:
            TokenStoreError: If the file is absent, unreadable or invalid.
        """
        path = self.path_for(read, write)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TokenStoreError(f"Unable to read token file {path}: {e}", path=path) from e

        try:
            token = StoredToken.model_validate_json(raw)
        except ValidationError as e:
            raise TokenStoreError(f"Invalid token file {path}: {e}", path=path) from e

        logger.debug("token_loaded", path=str(path), expired=token.expired)
        return token

    def save(self, token: StoredToken, read: bool, write: bool) -> Path:
        """Persist a token, replacing any previous file for the same capabilities.

        Returns:
            Path of the written file.

        Raises:
            TokenStoreError: If the directory or file cannot be written.
        """
        path = self.path_for(read, write)
        try:
            self._token_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(token.model_dump_json(indent=2))
        except OSError as e:
            raise TokenStoreError(f"Unable to save token to {path}: {e}", path=path) from e

        logger.info("token_saved", path=str(path))
        return path
