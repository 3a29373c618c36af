"""Client config store (JSON file) and server settings (environment)."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from capabilities import DEFAULT_LOCAL_DEV_HOSTS

DEFAULTS = {
    "api_key": "",
    "hotkey": "Key.alt_r",
    "server_url": "http://localhost:8000",
    "language": "en-US",
    "local_dev_hosts": list(DEFAULT_LOCAL_DEV_HOSTS),
    "token": "",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "voice_journal" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        return str(self._get("api_key")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        return str(self._get("hotkey"))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_server_url(self) -> str:
        return str(self._get("server_url"))

    def set_server_url(self, url: str) -> None:
        self._set("server_url", url)

    def get_language(self) -> str:
        return str(self._get("language"))

    def get_local_dev_hosts(self) -> tuple[str, ...]:
        value = self._get("local_dev_hosts")
        if not isinstance(value, list):
            return DEFAULT_LOCAL_DEV_HOSTS
        return tuple(str(h) for h in value)

    def get_token(self) -> str:
        return str(self._get("token"))

    def set_token(self, token: str) -> None:
        self._set("token", token)

    def _get(self, key: str) -> object:
        return self._read_all().get(key, DEFAULTS[key])

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


@dataclass
class ServerSettings:
    db_path: str = "journal.db"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "ServerSettings":
        load_dotenv(env_file)
        return cls(
            db_path=os.environ.get("JOURNAL_DB_PATH") or cls.db_path,
            host=os.environ.get("JOURNAL_HOST") or cls.host,
            port=int(os.environ.get("JOURNAL_PORT") or cls.port),
            log_level=(os.environ.get("JOURNAL_LOG_LEVEL") or cls.log_level).upper(),
        )
