"""Process-wide storage of the provider API key."""

from typing import Optional

from srt_translator.core import database as db
from srt_translator.logger import get_logger

logger = get_logger(__name__)

CREDENTIAL_KEY = "api_key"


class CredentialStore:
    """Get/set/clear of one opaque credential, persisted in app_config."""

    def __init__(self, key: str = CREDENTIAL_KEY):
        self.key = key

    def get(self) -> Optional[str]:
        value = db.get_app_config(self.key)
        return value or None

    def set(self, value: str) -> None:
        value = (value or "").strip()
        if not value:
            raise ValueError("Credential must not be empty")
        db.set_app_config(self.key, value)
        logger.info("API key saved")

    def clear(self) -> None:
        if db.delete_app_config(self.key):
            logger.info("API key cleared")

    def has_credential(self) -> bool:
        return self.get() is not None


class MemoryCredentialStore(CredentialStore):
    """Credential store kept in memory only (embedding and tests)."""

    def __init__(self, value: Optional[str] = None):
        super().__init__()
        self._value = value

    def get(self) -> Optional[str]:
        return self._value or None

    def set(self, value: str) -> None:
        value = (value or "").strip()
        if not value:
            raise ValueError("Credential must not be empty")
        self._value = value

    def clear(self) -> None:
        self._value = None
