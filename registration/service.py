"""Registration handler: validate, hash, check uniqueness, append."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .models import UserRecord
from .security import hash_password
from .store import StoreEncodingError, StoreError, UserStore
from .validation import RegistrationError, RegistrationSubmission, validate_submission

logger = logging.getLogger("registration.service")

SUCCESS_MESSAGE = "Success! User registered successfully"


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _generate_user_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a registration attempt: either a new record or the reason it failed."""

    record: Optional[UserRecord] = None
    error: Optional[RegistrationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        return SUCCESS_MESSAGE

    @staticmethod
    def success(record: UserRecord) -> "RegistrationResult":
        return RegistrationResult(record=record)

    @staticmethod
    def failure(error: RegistrationError) -> "RegistrationResult":
        return RegistrationResult(error=error)


class RegistrationService:
    """Turn a form submission into a persisted :class:`UserRecord`."""

    def __init__(
        self,
        store: UserStore,
        *,
        clock: Callable[[], datetime] = _current_timestamp,
        id_factory: Callable[[], str] = _generate_user_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    @property
    def store(self) -> UserStore:
        return self._store

    def register(self, submission: RegistrationSubmission) -> RegistrationResult:
        submission = submission.normalised()
        error = validate_submission(submission)
        if error is not None:
            logger.info("Rejected registration: %s", error.name)
            return RegistrationResult.failure(error)

        try:
            password_hash = hash_password(submission.password)
        except ValueError as exc:
            logger.warning("Password hasher refused the submitted password: %s", exc)
            return RegistrationResult.failure(RegistrationError.PASSWORD_REJECTED)

        # The lock spans the uniqueness check and the save so concurrent
        # registrations for the same email cannot both succeed.
        with self._store.locked():
            if self._store.exists_by_email(submission.email):
                logger.warning("Registration refused for already registered email %s", submission.email)
                return RegistrationResult.failure(RegistrationError.EMAIL_TAKEN)

            record = UserRecord(
                id=self._id_factory(),
                name=submission.name,
                email=submission.email,
                password_hash=password_hash,
                registered_at=self._clock(),
            )

            try:
                self._store.append(record)
            except StoreEncodingError:
                logger.exception("Could not encode user store while registering %s", submission.email)
                return RegistrationResult.failure(RegistrationError.ENCODING_FAILED)
            except StoreError:
                logger.exception("Could not save user store at %s", self._store.path)
                return RegistrationResult.failure(RegistrationError.SAVE_FAILED)

        logger.info("Registered user %s <%s>", record.id, record.email)
        return RegistrationResult.success(record)


__all__ = ["RegistrationResult", "RegistrationService", "SUCCESS_MESSAGE"]
