"""Visitor identity: a stable account id, or a locally persisted guest token.

The resolver plays the role of the browser's local storage on the client
side: it is the single place that decides which key partitions a visitor's
progress and favorites.
"""
from __future__ import annotations
import json
import logging
import os
import secrets
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from app.config import get_settings
from app.exceptions import IdentityError

logger = logging.getLogger(__name__)

USER_KEY = "user_id"
SESSION_KEY = "session_id"

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class Identity:
    """Exactly one of user_id / session_id."""

    user_id: str | None = None
    session_id: str | None = None

    def __post_init__(self):
        if bool(self.user_id) == bool(self.session_id):
            raise ValueError("Identity needs exactly one of user_id or session_id")

    @property
    def kind(self) -> str:
        return "user" if self.user_id else "guest"

    @property
    def owner_key(self) -> str:
        if self.user_id:
            return f"user:{self.user_id}"
        return f"guest:{self.session_id}"

    def as_params(self) -> dict[str, str]:
        if self.user_id:
            return {"userId": self.user_id}
        return {"sessionId": self.session_id}


def generate_session_id() -> str:
    """guest_<epoch millis>_<9 random base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"guest_{int(time.time() * 1000)}_{suffix}"


class IdentityStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryIdentityStorage:
    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileIdentityStorage:
    """JSON file of string keys, rewritten whole on every change."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            raise IdentityError(f"Cannot read identity file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise IdentityError(f"Identity file {self.path} is not a JSON object")
        return data

    def _dump(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise IdentityError(f"Cannot write identity file {self.path}: {e}") from e

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return str(value) if value else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class IdentityResolver:
    """Resolves the one identity everything else partitions on.

    An account id, when stored, is authoritative. Otherwise the stored guest
    token is reused, or a fresh one is minted and persisted. When storage is
    unusable the resolver falls back to an in-memory token that lives only as
    long as this resolver does.
    """

    def __init__(self, storage: IdentityStorage):
        self.storage = storage
        self._ephemeral_session: str | None = None
        self._ephemeral_user: str | None = None

    def resolve(self) -> Identity:
        try:
            user_id = self.storage.get(USER_KEY)
            if user_id:
                return Identity(user_id=user_id)
            if self._ephemeral_user:
                return Identity(user_id=self._ephemeral_user)
            session_id = self.storage.get(SESSION_KEY)
            if not session_id:
                session_id = generate_session_id()
                self.storage.set(SESSION_KEY, session_id)
                logger.info("Minted new guest session token")
            return Identity(session_id=session_id)
        except IdentityError as e:
            logger.warning(f"Identity storage unavailable, using ephemeral guest token: {e}")
            return self._fallback()

    def _fallback(self) -> Identity:
        if self._ephemeral_user:
            return Identity(user_id=self._ephemeral_user)
        if self._ephemeral_session is None:
            self._ephemeral_session = generate_session_id()
        return Identity(session_id=self._ephemeral_session)

    def login(self, user_id: str) -> Identity:
        # Guest progress is not merged into the account.
        try:
            self.storage.set(USER_KEY, user_id)
        except IdentityError as e:
            logger.warning(f"Could not persist account identity, keeping it for this session only: {e}")
            self._ephemeral_user = user_id
        return Identity(user_id=user_id)

    def logout(self) -> Identity:
        """Forget the account; the guest token is kept for guest tracking."""
        self._ephemeral_user = None
        try:
            self.storage.delete(USER_KEY)
        except IdentityError as e:
            logger.warning(f"Could not clear stored account identity: {e}")
        return self.resolve()


def default_resolver() -> IdentityResolver:
    return IdentityResolver(FileIdentityStorage(get_settings().identity_path))
