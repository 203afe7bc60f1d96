"""Registration and login for HealthBridge accounts."""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from .database import Database
from .errors import (
    AuthenticationError,
    ConflictError,
    CredentialError,
    SessionError,
    UnexpectedError,
    ValidationError,
)
from .models import CitizenProfile, ProfileFields, Role, User
from .security import PasswordHasher, SessionClaims

logger = logging.getLogger("healthbridge.credentials")

SIGNUP_FIELDS_MESSAGE = "name, email and password required"
LOGIN_FIELDS_MESSAGE = "email and password required"


def _required(value: object) -> Optional[str]:
    # Stripped so " a@b.c" and "a@b.c" name one account; a blank name is treated as missing.
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


class CredentialService:
    """Create citizen accounts and verify login attempts against the store."""

    def __init__(self, database: Database, hasher: PasswordHasher) -> None:
        self._database = database
        self._hasher = hasher

    def register(
        self,
        name: object,
        email: object,
        password: object,
        profile: ProfileFields | None = None,
    ) -> User:
        """Create a citizen account together with its profile."""

        clean_name = _required(name)
        clean_email = _required(email)
        # Passwords keep their surrounding whitespace; only emptiness is rejected.
        if not clean_name or not clean_email or not isinstance(password, str) or not password:
            raise ValidationError(SIGNUP_FIELDS_MESSAGE)

        try:
            if self._database.email_exists(clean_email):
                logger.info("Rejected signup for an email that is already registered")
                raise ConflictError()

            password_hash = self._hasher.hash(password)
            user = self._database.create_citizen(
                clean_name,
                clean_email,
                password_hash,
                profile or ProfileFields(),
            )
        except CredentialError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure while registering a citizen")
            raise UnexpectedError() from exc

        logger.info("Registered citizen account %s", user.id)
        return user

    def create_account(self, name: str, email: str, password: str, role: Role) -> User:
        """Operator path for seeding accounts of any role."""

        clean_name = _required(name)
        clean_email = _required(email)
        if not clean_name or not clean_email or not password:
            raise ValidationError(SIGNUP_FIELDS_MESSAGE)

        if role is Role.CITIZEN:
            return self.register(clean_name, clean_email, password)

        if self._database.email_exists(clean_email):
            raise ConflictError()
        user = self._database.create_user(clean_name, clean_email, self._hasher.hash(password), role)
        logger.info("Created %s account %s", role.value, user.id)
        return user

    def authenticate(
        self,
        email: object,
        password: object,
    ) -> Tuple[User, Optional[CitizenProfile]]:
        """Verify credentials and return the public user with its profile."""

        clean_email = _required(email)
        if not clean_email or not isinstance(password, str) or not password:
            raise ValidationError(LOGIN_FIELDS_MESSAGE)

        try:
            record = self._database.get_credentials(clean_email)
            if record is None:
                self._hasher.dummy_verify()
                logger.warning("Failed login attempt")
                raise AuthenticationError()

            user, password_hash = record
            if not self._hasher.verify(password, password_hash):
                logger.warning("Failed login attempt")
                raise AuthenticationError()

            profile = self._profile_for(user)
        except CredentialError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure while authenticating")
            raise UnexpectedError() from exc

        logger.info("User %s signed in", user.id)
        return user, profile

    def resolve_session(self, claims: SessionClaims) -> Tuple[User, Optional[CitizenProfile]]:
        """Reload the identity behind a validated session token."""

        user = self._database.get_user(claims.user_id)
        if user is None or user.role is not claims.role:
            raise SessionError()
        return user, self._profile_for(user)

    def _profile_for(self, user: User) -> Optional[CitizenProfile]:
        if user.role is not Role.CITIZEN:
            return None
        return self._database.get_citizen_profile(user.id)


__all__ = [
    "CredentialService",
    "LOGIN_FIELDS_MESSAGE",
    "SIGNUP_FIELDS_MESSAGE",
]
