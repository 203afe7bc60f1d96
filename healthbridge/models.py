"""Domain models for citizen accounts and their profiles."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class Role(str, Enum):
    CITIZEN = "citizen"
    ADMINISTRATOR = "administrator"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class User:
    """Public view of an account. The password verifier never lives here."""

    id: int
    name: str
    email: str
    role: Role
    created_at: datetime

    def to_public(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CitizenProfile:
    """Optional demographic details owned by a citizen account."""

    id: int
    user_id: int
    dob: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    gender: Optional[str]
    created_at: datetime

    def to_public(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "dob": self.dob,
            "phone": self.phone,
            "address": self.address,
            "gender": self.gender,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ProfileFields:
    """Demographic inputs supplied at registration time."""

    dob: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[str] = None

    def normalised(self) -> "ProfileFields":
        # Blank inputs are stored as NULL, never as empty strings.
        return ProfileFields(
            dob=_clean(self.dob),
            phone=_clean(self.phone),
            address=_clean(self.address),
            gender=_clean(self.gender),
        )


__all__ = ["CitizenProfile", "ProfileFields", "Role", "User"]
