"""Command-line interface for the registration service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from registration.config import Settings, load_settings
from registration.service import RegistrationService
from registration.store import UserStore, resolve_store_path
from registration.validation import RegistrationSubmission, SUBMISSION_METHOD

logger = logging.getLogger("registration.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User registration service utilities")
    parser.add_argument(
        "--store",
        default=None,
        help="Path to the JSON user store (defaults to REGISTRATION_STORE_PATH or the configured path)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve", host=None, port=None)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP registration service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: from configuration)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: from configuration)")

    subparsers.add_parser("init-store", help="Create an empty user store if none exists")
    subparsers.add_parser("list-users", help="List every registered user")

    add_parser = subparsers.add_parser("add-user", help="Register a user from the command line")
    add_parser.add_argument("name", help="Display name for the user")
    add_parser.add_argument("email", help="Unique email address")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-store", "list-users", "add-user"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help") or first == "--store" or first.startswith("--store="):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_store(settings: Settings, override: str | None) -> UserStore:
    path = resolve_store_path(override) if override else settings.store_path
    store = UserStore(path)
    store.initialize()
    logger.info("User store ready at %s", path)
    return store


def _serve(*, store: UserStore, settings: Settings, host: str | None, port: int | None) -> None:
    from registration.web import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting registration service on http://%s:%s", bind_host, bind_port)

    app = create_app(store=store, settings=settings)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")


def _list_users(store: UserStore) -> None:
    users = store.load()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<32}  {'Name':<24}  {'Email':<32}  Registered")
    print("-" * 110)
    for user in users:
        registered = user.registered_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:<32}  {user.name:<24}  {user.email:<32}  {registered}")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass("Password: ")
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _add_user(store: UserStore, name: str, email: str) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.", file=sys.stderr)
        return 1

    service = RegistrationService(store)
    result = service.register(
        RegistrationSubmission(method=SUBMISSION_METHOD, name=name, email=email, password=password)
    )
    if not result.ok or result.record is None:
        print(result.message, file=sys.stderr)
        return 1

    print(f"Created user {result.record.id}: {result.record.name} <{result.record.email}>")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    store = _load_store(settings, args.store)

    if args.command == "serve":
        _serve(store=store, settings=settings, host=args.host, port=args.port)
    elif args.command == "init-store":
        print(f"User store initialised at {store.path}.")
    elif args.command == "list-users":
        _list_users(store)
    elif args.command == "add-user":
        return _add_user(store, args.name, args.email)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
