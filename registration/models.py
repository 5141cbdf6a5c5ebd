"""Domain models for the registration service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_registration_datetime(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(DATETIME_FORMAT)


def parse_registration_datetime(value: str) -> datetime:
    return datetime.strptime(value, DATETIME_FORMAT).replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class UserRecord:
    """A registered user as persisted in the user store."""

    id: str
    name: str
    email: str
    password_hash: str
    registered_at: datetime

    def to_dict(self) -> Dict[str, str]:
        """Return the persisted representation, keyed the way the store file expects."""

        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "password": self.password_hash,
            "registration_datetime": format_registration_datetime(self.registered_at),
        }

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "UserRecord":
        """Create a :class:`UserRecord` from a persisted mapping."""

        required_fields = {"id", "name", "email", "password", "registration_datetime"}
        missing = required_fields - data.keys()
        if missing:
            raise ValueError(f"Missing required user record fields: {', '.join(sorted(missing))}")

        for field in required_fields:
            if not isinstance(data[field], str) or not data[field]:
                raise ValueError(f"User record field '{field}' must be a non-empty string")

        return UserRecord(
            id=str(data["id"]),
            name=str(data["name"]),
            email=str(data["email"]),
            password_hash=str(data["password"]),
            registered_at=parse_registration_datetime(str(data["registration_datetime"])),
        )


__all__ = [
    "DATETIME_FORMAT",
    "UserRecord",
    "format_registration_datetime",
    "parse_registration_datetime",
]
