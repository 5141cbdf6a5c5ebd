"""Configuration management for the registration service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from .store import resolve_store_path


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the registration web application."""

    store_path: Path
    trusted_proxies: List[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 8000

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        raw_store = data.get("store_path")
        if raw_store:
            candidate = Path(str(raw_store)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            store_path = candidate.resolve(strict=False)
        else:
            store_path = resolve_store_path(None)

        proxies = data.get("trusted_proxies", ["*"])
        if isinstance(proxies, str):
            proxies = [item.strip() for item in proxies.split(",") if item.strip()]
        if not isinstance(proxies, list):
            raise ValueError("'trusted_proxies' must be a list or a comma separated string")

        try:
            port = int(data.get("port", 8000))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid port in configuration: {data.get('port')!r}") from exc

        return Settings(
            store_path=store_path,
            trusted_proxies=[str(item) for item in proxies] or ["*"],
            host=str(data.get("host", "0.0.0.0")),
            port=port,
        )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "registration.yaml").resolve(strict=False)
    return candidate


def load_settings(config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from YAML, then apply environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("REGISTRATION_CONFIG"))

    raw: Dict[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw.update(loaded)

    if env.get("REGISTRATION_STORE_PATH"):
        raw["store_path"] = str(resolve_store_path(env["REGISTRATION_STORE_PATH"]))
    if env.get("REGISTRATION_TRUSTED_PROXIES"):
        raw["trusted_proxies"] = env["REGISTRATION_TRUSTED_PROXIES"]

    return Settings.from_dict(raw, base_path=path.parent)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
