"""Flat-file JSON persistence for registered users."""
from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import IO, Iterator, List, Optional, Sequence

from .models import UserRecord

logger = logging.getLogger("registration.store")


class StoreError(Exception):
    """Raised when the user store cannot be persisted."""


class StoreEncodingError(StoreError):
    """Raised when the user collection cannot be serialised."""


class StoreWriteError(StoreError):
    """Raised when the serialised collection cannot be written to disk."""


def resolve_store_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the user store."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.json").resolve(strict=False)


def encode_items(items: Sequence[object]) -> bytes:
    try:
        document = json.dumps(list(items), indent=4, ensure_ascii=False)
        return document.encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise StoreEncodingError(f"Could not encode {len(items)} user record(s)") from exc


class UserStore:
    """Whole-file JSON store: every save rewrites the complete collection."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock_path = path.with_name(path.name + ".lock")
        self._thread_lock = threading.RLock()
        self._lock_depth = 0
        self._lock_handle: Optional[IO[str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def initialize(self) -> None:
        """Create the store directory and an empty collection if nothing exists yet."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.locked():
            if not self._path.exists():
                self.save([])

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the advisory write lock; nested use within one thread is allowed."""

        with self._thread_lock:
            if self._lock_depth == 0:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                handle = open(self._lock_path, "a+", encoding="utf-8")
                try:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
                except OSError:
                    handle.close()
                    raise
                self._lock_handle = handle
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
                if self._lock_depth == 0 and self._lock_handle is not None:
                    handle, self._lock_handle = self._lock_handle, None
                    try:
                        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
                    finally:
                        handle.close()

    def _read_items(self) -> List[object]:
        """Return the raw JSON array held by the store, or an empty list when there is none."""

        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("User store %s is unreadable; treating it as empty: %s", self._path, exc)
            return []

        if not content.strip():
            return []

        try:
            payload = json.loads(content)
        except ValueError as exc:
            logger.warning("User store %s is not valid JSON; treating it as empty: %s", self._path, exc)
            return []

        if not isinstance(payload, list):
            logger.warning("User store %s does not contain a list of users; treating it as empty", self._path)
            return []
        return payload

    def load(self) -> List[UserRecord]:
        """Return every well-formed stored record; a missing or corrupt store counts as empty.

        Malformed entries inside an otherwise valid array are skipped here but
        stay in the file, see :meth:`append`.
        """

        records: List[UserRecord] = []
        for index, item in enumerate(self._read_items()):
            try:
                records.append(UserRecord.from_dict(item))  # type: ignore[arg-type]
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed record #%d in user store %s: %s", index, self._path, exc)
        return records

    def save(self, records: Sequence[UserRecord]) -> None:
        """Replace the stored collection with ``records``."""

        self._write(encode_items([record.to_dict() for record in records]))
        logger.debug("Saved %d user record(s) to %s", len(records), self._path)

    def append(self, record: UserRecord) -> None:
        """Add ``record`` after every existing entry, malformed ones included."""

        with self.locked():
            items = self._read_items()
            items.append(record.to_dict())
            self._write(encode_items(items))
        logger.debug("Appended user %s to %s", record.id, self._path)

    def exists_by_email(self, email: str) -> bool:
        return any(isinstance(item, dict) and item.get("email") == email for item in self._read_items())

    def _write(self, data: bytes) -> None:
        try:
            with self.locked():
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
                )
                try:
                    with os.fdopen(fd, "wb") as handle:
                        handle.write(data)
                        handle.flush()
                        os.fsync(handle.fileno())
                    os.replace(tmp_name, self._path)
                except BaseException:
                    with suppress(FileNotFoundError):
                        os.unlink(tmp_name)
                    raise
        except OSError as exc:
            raise StoreWriteError(f"Could not write user store {self._path}") from exc


__all__ = [
    "StoreEncodingError",
    "StoreError",
    "StoreWriteError",
    "UserStore",
    "encode_items",
    "resolve_store_path",
]
