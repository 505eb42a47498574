"""Simple JSON-based config store."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from models import TranscriberSettings

_DEFAULTS = TranscriberSettings()


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "wake_transcriber" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        return str(self._get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_wake_word(self) -> str:
        return str(self._get("wake_word", _DEFAULTS.wake_word))

    def set_wake_word(self, word: str) -> None:
        self._set("wake_word", word)

    def get_sleep_word(self) -> str:
        return str(self._get("sleep_word", _DEFAULTS.sleep_word))

    def set_sleep_word(self, word: str) -> None:
        self._set("sleep_word", word)

    def get_lang(self) -> str:
        return str(self._get("lang", _DEFAULTS.lang))

    def set_lang(self, lang: str) -> None:
        self._set("lang", lang)

    def get_continuous(self) -> bool:
        return bool(self._get("continuous", _DEFAULTS.continuous))

    def set_continuous(self, value: bool) -> None:
        self._set("continuous", value)

    def get_interim_results(self) -> bool:
        return bool(self._get("interim_results", _DEFAULTS.interim_results))

    def set_interim_results(self, value: bool) -> None:
        self._set("interim_results", value)

    def load_settings(self) -> TranscriberSettings:
        return TranscriberSettings(
            wake_word=self.get_wake_word(),
            sleep_word=self.get_sleep_word(),
            continuous=self.get_continuous(),
            interim_results=self.get_interim_results(),
            lang=self.get_lang(),
        )

    def save_settings(self, settings: TranscriberSettings) -> None:
        data = self._read_all()
        data.update(
            wake_word=settings.wake_word,
            sleep_word=settings.sleep_word,
            continuous=settings.continuous,
            interim_results=settings.interim_results,
            lang=settings.lang,
        )
        self._write_all(data)

    def _get(self, key: str, default: Any) -> Any:
        return self._read_all().get(key, default)

    def _set(self, key: str, value: Any) -> None:
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
