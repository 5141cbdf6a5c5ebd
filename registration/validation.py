"""Validation rules for registration form submissions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

PASSWORD_MIN_LENGTH = 8
SUBMISSION_METHOD = "POST"

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s.]+(?:\.[^@\s.]+)+$")
SPECIAL_CHARACTER_RE = re.compile(r"[^a-zA-Z0-9]")


class RegistrationError(Enum):
    """Every reason a registration request can be refused."""

    INVALID_METHOD = "Invalid access method. Please use the registration form"
    NAME_REQUIRED = "Error: The name field is required"
    EMAIL_REQUIRED = "Error: The email field is required"
    PASSWORD_REQUIRED = "Error: The password field is required"
    EMAIL_INVALID = "Error: The email format is not valid"
    PASSWORD_TOO_SHORT = f"Error: Password must be at least {PASSWORD_MIN_LENGTH} characters long"
    PASSWORD_NO_SPECIAL = "Error: Password must contain at least one special character (e.g., !@#$%^&*)"
    PASSWORD_NULL_CHARACTER = "Error: Password must not contain null characters"
    PASSWORD_REJECTED = "Error: This password cannot be used, please choose another one"
    EMAIL_TAKEN = "Error: A user with this email is already registered"
    ENCODING_FAILED = "Error: Could not encode data to JSON"
    SAVE_FAILED = "Error: Could not save data to file"

    @property
    def message(self) -> str:
        return self.value

    @property
    def is_persistence_error(self) -> bool:
        return self in {RegistrationError.ENCODING_FAILED, RegistrationError.SAVE_FAILED}


@dataclass(frozen=True)
class RegistrationSubmission:
    """Raw fields received from the registration form."""

    method: str
    name: str = ""
    email: str = ""
    password: str = ""

    def normalised(self) -> "RegistrationSubmission":
        """Trim the name and email; the password is kept verbatim."""

        return RegistrationSubmission(
            method=self.method.strip().upper(),
            name=self.name.strip(),
            email=self.email.strip(),
            password=self.password,
        )


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def validate_password(password: str) -> Optional[RegistrationError]:
    if len(password) < PASSWORD_MIN_LENGTH:
        return RegistrationError.PASSWORD_TOO_SHORT
    if not SPECIAL_CHARACTER_RE.search(password):
        return RegistrationError.PASSWORD_NO_SPECIAL
    if "\x00" in password:
        return RegistrationError.PASSWORD_NULL_CHARACTER
    return None


def validate_submission(submission: RegistrationSubmission) -> Optional[RegistrationError]:
    """Return the first rule ``submission`` breaks, or ``None`` when it is acceptable.

    The submission is expected to be normalised already. Checks run in a fixed
    order and stop at the first failure so the user sees a single message.
    """

    if submission.method != SUBMISSION_METHOD:
        return RegistrationError.INVALID_METHOD
    if not submission.name:
        return RegistrationError.NAME_REQUIRED
    if not submission.email:
        return RegistrationError.EMAIL_REQUIRED
    if not submission.password:
        return RegistrationError.PASSWORD_REQUIRED
    if not is_valid_email(submission.email):
        return RegistrationError.EMAIL_INVALID
    return validate_password(submission.password)


__all__ = [
    "EMAIL_RE",
    "PASSWORD_MIN_LENGTH",
    "RegistrationError",
    "RegistrationSubmission",
    "SUBMISSION_METHOD",
    "is_valid_email",
    "validate_password",
    "validate_submission",
]
