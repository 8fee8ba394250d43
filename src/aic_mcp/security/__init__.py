"""Host security checks (OS keychain availability)."""

from aic_mcp.security.keyring_utils import is_keyring_available

__all__ = ["is_keyring_available"]
