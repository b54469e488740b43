"""Stored configuration: API keys, spelling groups, children and session settings."""
import os
from dataclasses import dataclass, asdict

from spelling_bee.db import DATA_DIR, get_record, put_record

DEFAULT_AUDIO_DIR = str(DATA_DIR / "blobs")

CONFIG = "config"
API_KEYS_ENV = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY"}

MIN_PAUSE_SECONDS = 5
MAX_PAUSE_SECONDS = 30


class ConfigError(ValueError):
    pass


@dataclass
class SessionSettings:
    pause_seconds: int = 10

    def __post_init__(self):
        if not MIN_PAUSE_SECONDS <= self.pause_seconds <= MAX_PAUSE_SECONDS:
            raise ConfigError(
                f"Pause must be between {MIN_PAUSE_SECONDS} and {MAX_PAUSE_SECONDS} seconds, "
                f"got {self.pause_seconds}"
            )


def get_api_keys(db_path: str) -> dict:
    """Stored keys, overridden by environment variables where set."""
    keys = get_record(db_path, CONFIG, "apiKeys") or {}
    for name, env in API_KEYS_ENV.items():
        if os.environ.get(env):
            keys[name] = os.environ[env]
    return keys


def save_api_keys(db_path: str, keys: dict) -> None:
    existing = get_record(db_path, CONFIG, "apiKeys") or {}
    existing.update({k: v.strip() for k, v in keys.items() if v and v.strip()})
    put_record(db_path, CONFIG, "apiKeys", existing)


def normalize_groups(groups: list[str]) -> list[str]:
    result = []
    for g in groups:
        name = g.strip().upper()
        if name and name not in result:
            result.append(name)
    return result


def get_groups(db_path: str) -> list[str]:
    record = get_record(db_path, CONFIG, "groups")
    return record.get("groups", []) if record else []


def save_groups(db_path: str, groups: list[str]) -> list[str]:
    cleaned = normalize_groups(groups)
    put_record(db_path, CONFIG, "groups", {"groups": cleaned})
    return cleaned


def get_children(db_path: str) -> list[str]:
    record = get_record(db_path, CONFIG, "children")
    return record.get("names", []) if record else []


def save_children(db_path: str, names: list[str]) -> list[str]:
    cleaned = sorted({n.strip() for n in names if n.strip()})
    put_record(db_path, CONFIG, "children", {"names": cleaned})
    return cleaned


def add_child(db_path: str, name: str) -> list[str]:
    return save_children(db_path, get_children(db_path) + [name])


def remove_child(db_path: str, name: str) -> list[str]:
    return save_children(db_path, [n for n in get_children(db_path) if n != name])


def get_session_settings(db_path: str) -> SessionSettings:
    record = get_record(db_path, CONFIG, "settings")
    return SessionSettings(**record) if record else SessionSettings()


def save_session_settings(db_path: str, settings: SessionSettings) -> None:
    put_record(db_path, CONFIG, "settings", asdict(settings))


def is_configured(db_path: str) -> bool:
    keys = get_api_keys(db_path)
    return bool(get_groups(db_path)) and bool(keys.get("anthropic")) and bool(keys.get("openai"))
