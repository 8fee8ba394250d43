"""Token storage for the primary access token.

Provides two storage backends:
1. KeychainStorage (attended mode): OS keychain via keyring library
   - macOS: Keychain
   - Windows: Credential Locker
   - Linux: Secret Service (GNOME Keyring, KDE Wallet)

2. FileStorage (containerized mode): plain JSON file
   - Lives in the container's token directory and disappears with it
   - Owner-only permissions (0o600, parent 0o700)

Both store a single TokenRecord, serialized as
{"accessToken": ..., "expiresAt": <ms since epoch>, "tenantHost": ...}.
Each save fully replaces the previous record (last write wins).
"""

from __future__ import annotations

__all__ = [
    "FileStorage",
    "KeychainStorage",
    "TokenRecord",
    "TokenStore",
    "get_token_storage_info",
    "now_ms",
]

import sys
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from aic_mcp.constants import KEYCHAIN_ACCOUNT, KEYCHAIN_SERVICE
from aic_mcp.exceptions import TokenStorageError

if TYPE_CHECKING:
    from aic_mcp.config import Mode


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


class TokenRecord(BaseModel):
    """Primary access token as persisted.

    Attributes:
        access_token: Bearer credential for the primary (broad-scope) token.
        expires_at: Absolute expiry, milliseconds since epoch.
        tenant_host: Hostname of the tenant the token was issued for.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="accessToken", min_length=1)
    expires_at: int = Field(alias="expiresAt")
    tenant_host: str = Field(alias="tenantHost", min_length=1)

    @property
    def is_expired(self) -> bool:
        """True once expires_at is at or before now."""
        return self.expires_at <= now_ms()

    @property
    def seconds_until_expiry(self) -> float:
        """Seconds until the token expires (negative if expired)."""
        return (self.expires_at - now_ms()) / 1000

    def is_for_tenant(self, tenant_host: str) -> bool:
        """Check whether the token was issued by the given tenant."""
        return self.tenant_host.lower() == tenant_host.lower()

    def to_json(self) -> str:
        """Serialize to JSON string for storage."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str) -> "TokenRecord":
        """Deserialize from JSON string."""
        return cls.model_validate_json(data)

    def __repr__(self) -> str:
        return (
            f"TokenRecord(access_token=<redacted>, expires_at={self.expires_at}, "
            f"tenant_host={self.tenant_host!r})"
        )


class TokenStore(ABC):
    """Abstract base class for token storage backends."""

    backend_name: str = "unknown"

    @abstractmethod
    def load(self) -> TokenRecord | None:
        """Load the stored record.

        Returns:
            TokenRecord if found, None if nothing is stored.

        Raises:
            TokenStorageError: If the backend fails or the record is corrupted.
        """

    @abstractmethod
    def save(self, record: TokenRecord) -> None:
        """Replace the stored record.

        Raises:
            TokenStorageError: If the write fails.
        """

    @abstractmethod
    def erase(self) -> None:
        """Delete the stored record. Missing record is not an error.

        Raises:
            TokenStorageError: If the delete fails.
        """

    @abstractmethod
    def exists(self) -> bool:
        """Check if a record is stored."""

    @abstractmethod
    def describe(self) -> dict[str, str]:
        """Backend details for status display."""


class KeychainStorage(TokenStore):
    """Token storage using OS keychain via keyring library."""

    backend_name = "keychain"

    def __init__(self, service: str = KEYCHAIN_SERVICE, account: str = KEYCHAIN_ACCOUNT) -> None:
        self._service = service
        self._account = account

    def load(self) -> TokenRecord | None:
        """Load record from keychain."""
        import keyring

        try:
            data = keyring.get_password(self._service, self._account)
        except Exception as e:
            raise TokenStorageError(f"Failed to access keychain: {e}") from e

        if data is None:
            return None

        try:
            return TokenRecord.from_json(data)
        except Exception as e:
            raise TokenStorageError(f"Failed to parse stored token (may be corrupted): {e}") from e

    def save(self, record: TokenRecord) -> None:
        """Save record to keychain."""
        import keyring

        try:
            keyring.set_password(self._service, self._account, record.to_json())
        except Exception as e:
            raise TokenStorageError(f"Failed to save token to keychain: {e}", record=record) from e

    def erase(self) -> None:
        """Delete record from keychain."""
        import keyring
        from keyring.errors import PasswordDeleteError

        try:
            keyring.delete_password(self._service, self._account)
        except PasswordDeleteError:
            # Nothing stored, that's fine
            pass
        except Exception as e:
            raise TokenStorageError(f"Failed to delete token from keychain: {e}") from e

    def exists(self) -> bool:
        """Check if a record exists in keychain."""
        import keyring

        try:
            return keyring.get_password(self._service, self._account) is not None
        except Exception:
            return False

    def describe(self) -> dict[str, str]:
        import keyring

        return {
            "backend": self.backend_name,
            "keyring_backend": type(keyring.get_keyring()).__name__,
            "service": self._service,
            "account": self._account,
        }


class FileStorage(TokenStore):
    """Token storage in a plain JSON file (containerized mode)."""

    backend_name = "file"

    def __init__(self, path: str | Path) -> None:
        self._storage_path = Path(path)

    @property
    def path(self) -> Path:
        return self._storage_path

    def load(self) -> TokenRecord | None:
        """Load record from file. Missing file means no record."""
        try:
            data = self._storage_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise TokenStorageError(f"Failed to read token file {self._storage_path}: {e}") from e

        try:
            return TokenRecord.from_json(data)
        except Exception as e:
            raise TokenStorageError(f"Failed to parse stored token (may be corrupted): {e}") from e

    def save(self, record: TokenRecord) -> None:
        """Write record to file with owner-only permissions."""
        try:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            if sys.platform != "win32":
                try:
                    self._storage_path.parent.chmod(0o700)
                except OSError:
                    pass  # Directory may be owned by the image, not us

            self._storage_path.write_text(record.to_json(), encoding="utf-8")
            if sys.platform != "win32":
                self._storage_path.chmod(0o600)
        except OSError as e:
            raise TokenStorageError(
                f"Failed to write token file {self._storage_path}: {e}", record=record
            ) from e

    def erase(self) -> None:
        """Delete the token file."""
        try:
            self._storage_path.unlink(missing_ok=True)
        except OSError as e:
            raise TokenStorageError(f"Failed to delete token file {self._storage_path}: {e}") from e

    def exists(self) -> bool:
        """Check if the token file exists."""
        return self._storage_path.exists()

    def describe(self) -> dict[str, str]:
        return {"backend": self.backend_name, "location": str(self._storage_path)}


def get_token_storage_info(mode: "Mode") -> dict[str, str]:
    """Get information about the storage backend selected for a mode.

    Useful for debugging and status display.

    Args:
        mode: Resolved process mode.

    Returns:
        Dict with 'backend' plus backend-specific location keys.
    """
    from aic_mcp.security.keyring_utils import is_keyring_available

    info = mode.storage.describe()
    if isinstance(mode.storage, KeychainStorage):
        info["available"] = "yes" if is_keyring_available() else "no"
    return info
