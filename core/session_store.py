# core/session_store.py
"""
Durable per-browser-context storage for the authenticated session.

Two keys are kept, always written and cleared together:
    rentalinx_user             JSON snapshot of the signed-in account
    rentalinx_session_expiry   absolute expiry instant (ISO-8601)
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from pydantic import ValidationError

from core.errors import SessionStoreError
from models.auth import SessionUser


USER_KEY = "rentalinx_user"
EXPIRY_KEY = "rentalinx_session_expiry"
SESSION_KEYS = (USER_KEY, EXPIRY_KEY)


# ============================================================
# Key-value backends
# ============================================================
class MemoryStorage:
    """Process-local storage; used by tests and short-lived contexts."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_many(self, items: Dict[str, str]) -> None:
        self._data.update(items)

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStorage:
    """
    One JSON object per browser context, replaced atomically on every write
    so both session keys always land on disk together.
    """

    def __init__(self, path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise SessionStoreError(f"Cannot read {self.path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SessionStoreError(f"Corrupt session file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise SessionStoreError(f"Corrupt session file {self.path}: not an object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise SessionStoreError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if value is None else str(value)

    def set_many(self, items: Dict[str, str]) -> None:
        data = self._read_for_update()
        data.update(items)
        self._write(data)

    def remove_many(self, keys: Iterable[str]) -> None:
        data = self._read_for_update()
        for key in keys:
            data.pop(key, None)
        if data:
            self._write(data)
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise SessionStoreError(f"Cannot remove {self.path}: {e}") from e

    def _read_for_update(self) -> Dict[str, str]:
        # A corrupt file is overwritten rather than blocking every write.
        try:
            return self._read()
        except SessionStoreError:
            return {}


# ============================================================
# Expiry helpers
# ============================================================
def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_expiry(value: str) -> datetime:
    """
    Parse an ISO-8601 instant. ``Z`` suffixes are accepted; naive values are UTC.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_expiry(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def is_expired(expires_at: datetime, now: datetime) -> bool:
    """A session is valid only while its expiry is strictly in the future."""
    return expires_at <= now


# ============================================================
# Session Store
# ============================================================
class SessionStore:
    def __init__(self, storage):
        self.storage = storage

    def save(self, user: SessionUser, expires_at: datetime) -> None:
        try:
            self.storage.set_many({
                USER_KEY: user.model_dump_json(),
                EXPIRY_KEY: format_expiry(expires_at),
            })
        except SessionStoreError:
            raise
        except Exception as e:
            raise SessionStoreError(f"Failed to persist session: {e}") from e

    def load(self) -> Optional[Tuple[SessionUser, datetime]]:
        """
        Persisted session, or None when nothing is stored.
        Raises SessionStoreError when the record is partial or cannot be parsed.
        """
        try:
            raw_user = self.storage.get(USER_KEY)
            raw_expiry = self.storage.get(EXPIRY_KEY)
        except SessionStoreError:
            raise
        except Exception as e:
            raise SessionStoreError(f"Failed to read session: {e}") from e

        if not raw_user and not raw_expiry:
            return None
        if not raw_user or not raw_expiry:
            raise SessionStoreError("Incomplete session record")

        try:
            expires_at = parse_expiry(raw_expiry)
            user = SessionUser.model_validate_json(raw_user)
        except (ValueError, ValidationError) as e:
            raise SessionStoreError(f"Corrupt session record: {e}") from e

        return user, expires_at

    def clear(self) -> None:
        try:
            self.storage.remove_many(SESSION_KEYS)
        except SessionStoreError:
            raise
        except Exception as e:
            raise SessionStoreError(f"Failed to clear session: {e}") from e
