"""OS keychain availability check.

Attended mode keeps the primary token in the OS keychain. On hosts without
a usable keyring backend (headless Linux without Secret Service, for example)
every save would fail, so the CLI reports availability up front.
"""

from __future__ import annotations

__all__ = [
    "is_keyring_available",
]

from aic_mcp.constants import APP_NAME
from aic_mcp.telemetry.system.system_logger import get_system_logger


def is_keyring_available(probe_service_suffix: str = "probe") -> bool:
    """Check whether the keyring backend can store and return a secret.

    Writes, reads back and deletes a throwaway entry under
    "{APP_NAME}-{probe_service_suffix}", never the real token entry.

    Args:
        probe_service_suffix: Suffix for the probe service name.

    Returns:
        True if the round trip succeeded.
    """
    logger = get_system_logger()

    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring
        from keyring.errors import KeyringError

        backend = keyring.get_keyring()
        if isinstance(backend, FailKeyring):
            logger.debug(
                {
                    "event": "keyring_unavailable",
                    "reason": "fail_backend",
                    "message": "No usable keyring backend found",
                }
            )
            return False

        probe_service = f"{APP_NAME}-{probe_service_suffix}"
        keyring.set_password(probe_service, "availability-check", "ok")
        value = keyring.get_password(probe_service, "availability-check")
        keyring.delete_password(probe_service, "availability-check")
        return value == "ok"

    except KeyringError as e:
        logger.debug(
            {
                "event": "keyring_unavailable",
                "reason": "keyring_error",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return False
    except Exception as e:
        # DBus errors on Linux, permission problems; the check itself must not crash
        logger.debug(
            {
                "event": "keyring_unavailable",
                "reason": "unexpected_error",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return False
