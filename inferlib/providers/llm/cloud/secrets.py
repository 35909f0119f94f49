"""Credential storage used by the cloud client.

The cloud client never keeps an API key around: it asks a ``SecretStore``
for it right before each request. ``KeyringSecretStore`` uses the OS
keychain through the ``keyring`` library; ``InMemorySecretStore`` is meant
for tests and short-lived scripts.
"""

import logging
import threading
from typing import Dict, Optional, Protocol, runtime_checkable

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "inferlib"


@runtime_checkable
class SecretStore(Protocol):
    """Minimal key/value interface for secrets."""

    def load(self, key: str) -> Optional[str]: ...

    def save(self, key: str, value: str) -> bool: ...

    def delete(self, key: str) -> bool: ...


class KeyringSecretStore:
    """Secret store backed by the system keyring.

    Keyring failures (no backend, locked keychain, ...) are logged and
    reported as a missing secret, so callers that only probe for a key never
    see an exception.
    """

    def __init__(self, service: str = DEFAULT_SERVICE):
        self.service = service

    def load(self, key: str) -> Optional[str]:
        try:
            value = keyring.get_password(self.service, key)
        except KeyringError as e:
            logger.error(f"Keyring lookup failed for '{key}': {e}")
            return None
        return value or None

    def save(self, key: str, value: str) -> bool:
        try:
            keyring.set_password(self.service, key, value)
        except KeyringError as e:
            logger.error(f"Could not store '{key}' in keyring: {e}")
            return False
        logger.info(f"Stored secret '{key}' in keyring")
        return True

    def delete(self, key: str) -> bool:
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            return False
        except KeyringError as e:
            logger.error(f"Could not delete '{key}' from keyring: {e}")
            return False
        return True

    def __repr__(self) -> str:
        return f"KeyringSecretStore(service={self.service!r})"


class InMemorySecretStore:
    """Process-local secret store."""

    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        self._secrets: Dict[str, str] = dict(secrets or {})
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[str]:
        with self._lock:
            return self._secrets.get(key) or None

    def save(self, key: str, value: str) -> bool:
        with self._lock:
            self._secrets[key] = value
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._secrets.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        return self.load(key) is not None

    def __repr__(self) -> str:
        # Never show values
        return f"InMemorySecretStore(keys={sorted(self._secrets)!r})"
