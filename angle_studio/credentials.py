"""API key storage - injected into the orchestrator and edit sessions."""

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from .config import CREDENTIALS_FILE
from .errors import CredentialMissing

logger = logging.getLogger(__name__)

API_KEY_FIELD = "gemini_api_key"


class CredentialStore(Protocol):
    def get_api_key(self) -> str | None: ...


def has_api_key(store: CredentialStore) -> bool:
    return bool(store.get_api_key())


def require_api_key(store: CredentialStore) -> str:
    """Return the API key or raise CredentialMissing."""
    api_key = store.get_api_key()
    if not api_key:
        raise CredentialMissing()
    return api_key


class StaticCredentials:
    """A fixed key (or none) held in memory."""

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key

    def get_api_key(self) -> str | None:
        return self.api_key or None


class FileCredentialStore:
    """Key persisted to a JSON file readable only by the owner.

    Falls back to an environment variable when the file holds no key.
    """

    def __init__(self, path: str | Path = CREDENTIALS_FILE, env_var: str | None = "GEMINI_API_KEY"):
        self.path = Path(path)
        self.env_var = env_var

    def get_api_key(self) -> str | None:
        stored = self._read().get(API_KEY_FIELD)
        if stored:
            return stored
        if self.env_var:
            return os.getenv(self.env_var) or None
        return None

    def set_api_key(self, api_key: str) -> None:
        api_key = api_key.strip()
        if not api_key:
            raise ValueError("API key must not be empty")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = self._read()
        data[API_KEY_FIELD] = api_key
        # Create with 0600 before writing the secret
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(data, f)
        logger.info("Saved API key to %s", self.path)

    def delete_api_key(self) -> None:
        data = self._read()
        if API_KEY_FIELD not in data:
            return
        del data[API_KEY_FIELD]
        if data:
            with open(self.path, "w") as f:
                json.dump(data, f)
        else:
            self.path.unlink()
        logger.info("Deleted API key from %s", self.path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable credentials file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}
