from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from registration.models import UserRecord
from registration.store import StoreEncodingError, StoreWriteError, UserStore, resolve_store_path


def _record(email: str = "ana@example.com", name: str = "Ana Pérez") -> UserRecord:
    return UserRecord(
        id=f"id-{email}",
        name=name,
        email=email,
        password_hash="$2b$12$abcdefghijklmnopqrstuuJ0Hw5dQ6zqfJ2Gk1lVvQ0b1bJq1bJq1",
        registered_at=datetime(2024, 5, 17, 9, 30, 12, tzinfo=timezone.utc),
    )


@pytest.fixture()
def store(tmp_path: Path) -> UserStore:
    return UserStore(tmp_path / "data" / "users.json")


def test_missing_store_loads_as_empty(store: UserStore) -> None:
    assert store.load() == []
    assert not store.exists_by_email("ana@example.com")


@pytest.mark.parametrize("content", ["", "   \n", "{not json", "{\"id\": 1}", "[{\"id\": \"x\"}]", "[1, 2]"])
def test_corrupt_store_loads_as_empty(store: UserStore, content: str) -> None:
    store.path.parent.mkdir(parents=True)
    store.path.write_text(content, encoding="utf-8")
    assert store.load() == []


def test_save_writes_readable_json(store: UserStore) -> None:
    store.save([_record()])

    text = store.path.read_text(encoding="utf-8")
    assert "Ana Pérez" in text
    assert "\\u00e9" not in text
    assert text.startswith("[\n    {")

    payload = json.loads(text)
    assert payload == [
        {
            "id": "id-ana@example.com",
            "name": "Ana Pérez",
            "email": "ana@example.com",
            "password": _record().password_hash,
            "registration_datetime": "2024-05-17 09:30:12",
        }
    ]


def test_load_save_round_trip_is_byte_identical(store: UserStore) -> None:
    store.save([_record(), _record("bob@example.com", "Bob")])
    before = store.path.read_bytes()

    loaded = store.load()
    assert loaded == [_record(), _record("bob@example.com", "Bob")]

    store.save(loaded)
    assert store.path.read_bytes() == before


def test_exists_by_email_is_exact_match(store: UserStore) -> None:
    store.save([_record()])
    assert store.exists_by_email("ana@example.com")
    assert not store.exists_by_email("ANA@example.com")
    assert not store.exists_by_email("other@example.com")


def test_initialize_creates_empty_store_once(store: UserStore) -> None:
    store.initialize()
    assert json.loads(store.path.read_text(encoding="utf-8")) == []

    store.save([_record()])
    store.initialize()
    assert len(store.load()) == 1


def test_encoding_failure_leaves_store_untouched(store: UserStore) -> None:
    store.save([_record()])
    before = store.path.read_bytes()

    with pytest.raises(StoreEncodingError):
        store.save([_record(), _record("bad@example.com", name="bad \udcff name")])

    assert store.path.read_bytes() == before


def test_write_failure_raises_store_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    store = UserStore(blocker / "users.json")

    with pytest.raises(StoreWriteError):
        store.save([_record()])


def test_no_temporary_files_left_behind(store: UserStore) -> None:
    store.save([_record()])
    store.save([_record(), _record("bob@example.com", "Bob")])
    leftovers = [p.name for p in store.path.parent.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_lock_is_reentrant_and_serialises_threads(store: UserStore) -> None:
    events = []

    def worker() -> None:
        with store.locked():
            events.append("worker")

    with store.locked():
        with store.locked():
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join(timeout=0.2)
            assert thread.is_alive()
            events.append("main")

    thread.join(timeout=5)
    assert events == ["main", "worker"]


def test_resolve_store_path_defaults_to_data_directory() -> None:
    path = resolve_store_path(None)
    assert path.name == "users.json"
    assert path.parent.name == "data"


def test_resolve_store_path_expands_env_value(tmp_path: Path) -> None:
    assert resolve_store_path(str(tmp_path / "custom.json")) == (tmp_path / "custom.json").resolve()


def _seed_with_malformed_entry(store: UserStore) -> list:
    items = [_record(f"u{i}@example.com", f"User {i}").to_dict() for i in range(3)]
    broken = _record("broken@example.com", "Broken").to_dict()
    del broken["registration_datetime"]
    items.append(broken)
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text(json.dumps(items, indent=4, ensure_ascii=False), encoding="utf-8")
    return items


def test_malformed_entry_is_skipped_not_the_whole_store(store: UserStore, caplog) -> None:
    _seed_with_malformed_entry(store)

    with caplog.at_level("WARNING", logger="registration.store"):
        records = store.load()

    assert [record.email for record in records] == ["u0@example.com", "u1@example.com", "u2@example.com"]
    assert "Skipping malformed record #3" in caplog.text


def test_append_keeps_every_existing_entry(store: UserStore) -> None:
    items = _seed_with_malformed_entry(store)

    store.append(_record("new@example.com", "Newcomer"))

    payload = json.loads(store.path.read_text(encoding="utf-8"))
    assert payload[:4] == items
    assert payload[4]["email"] == "new@example.com"
    assert len(payload) == 5


def test_exists_by_email_sees_malformed_entries(store: UserStore) -> None:
    _seed_with_malformed_entry(store)
    assert store.exists_by_email("u0@example.com")
    assert store.exists_by_email("broken@example.com")
    assert not store.exists_by_email("nobody@example.com")


def test_append_to_missing_store_creates_it(store: UserStore) -> None:
    store.append(_record())
    assert store.load() == [_record()]
