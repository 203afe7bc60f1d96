"""Password verifiers and signed session tokens for the credential service."""
from __future__ import annotations

import base64
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .config import DEFAULT_BCRYPT_ROUNDS, DEFAULT_SESSION_TTL
from .errors import SessionError
from .models import Role, User

logger = logging.getLogger("healthbridge.security")


class PasswordHasher:
    """Salted bcrypt verifiers with a fixed cost factor."""

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self._rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password must not be empty")
        return self._context.hash(password)

    def verify(self, password: str, hashed: Optional[str]) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(password, hashed)
        except ValueError:
            logger.warning("Stored password verifier could not be parsed")
            return False

    def dummy_verify(self) -> None:
        """Burn the time a real verification takes so unknown emails are not detectable."""

        self._context.dummy_verify()


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    role: Role
    issued_at: int


def _derive_fernet_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class SessionTokens:
    """Issue and validate signed, time-bounded session tokens."""

    def __init__(
        self,
        secret: str,
        *,
        ttl: int = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("A session secret must be provided")
        self._fernet = Fernet(_derive_fernet_key(secret))
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> int:
        return self._ttl

    def issue(self, user: User) -> str:
        payload = json.dumps({"uid": user.id, "role": user.role.value}).encode("utf-8")
        token = self._fernet.encrypt_at_time(payload, int(self._clock()))
        return token.decode("ascii")

    def resolve(self, token: str) -> SessionClaims:
        try:
            raw_token = token.encode("ascii")
        except UnicodeEncodeError as exc:
            raise SessionError() from exc

        now = int(self._clock())
        try:
            payload = self._fernet.decrypt_at_time(raw_token, ttl=self._ttl, current_time=now)
            issued_at = self._fernet.extract_timestamp(raw_token)
        except InvalidToken as exc:
            raise SessionError() from exc

        try:
            data = json.loads(payload)
            return SessionClaims(user_id=int(data["uid"]), role=Role(data["role"]), issued_at=issued_at)
        except (ValueError, KeyError, TypeError) as exc:
            raise SessionError() from exc


class SessionAuth:
    """FastAPI dependency resolving ``Authorization: Bearer`` session tokens."""

    def __init__(self, tokens: SessionTokens) -> None:
        self._tokens = tokens
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> SessionClaims:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise SessionError()
        return self._tokens.resolve(credentials.credentials)


__all__ = ["PasswordHasher", "SessionAuth", "SessionClaims", "SessionTokens"]
