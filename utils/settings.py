"""
Settings Manager
Runtime overrides (models, reasoning/thinking loops, linger) persisted as JSON.

File lookup order:
  1) GSIO_SETTINGS_FILE
  2) ~/.config/gsio/settings.json
  3) .gsio/settings.json in the working directory
The first readable file wins. Writes go back to it, or to the first writable
candidate when there is none yet.
"""
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional


def settings_candidates() -> List[Path]:
    raw = [
        os.getenv("GSIO_SETTINGS_FILE", ""),
        "~/.config/gsio/settings.json",
        ".gsio/settings.json",
    ]
    unique: List[Path] = []
    for item in raw:
        if not item:
            continue
        path = Path(item).expanduser()
        if path not in unique:
            unique.append(path)
    return unique


class SettingsManager:
    """Process-wide singleton; the config.py getters read it on every call."""

    _instance: Optional["SettingsManager"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load()
        return cls._instance

    def _load(self):
        self.settings: Dict[str, Any] = {}
        candidates = settings_candidates()
        self._settings_path = candidates[0]
        for path in candidates:
            if not path.exists():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8") or "{}")
            except (OSError, ValueError) as e:
                # utils.logger imports config, which imports this module
                print(f"[Settings] Ignoring unreadable {path}: {e}", file=sys.stderr)
                continue
            if isinstance(data, dict):
                self.settings = data
                self._settings_path = path
                break

    def get(self, key: str, default: Any = None) -> Any:
        """Persisted override, or default (usually the env/config value)."""
        return self.settings.get(key, default)

    def set(self, key: str, value: Any):
        self.settings[key] = value
        self._save()

    def _save(self):
        payload = json.dumps(self.settings, indent=2, sort_keys=True)
        targets = [self._settings_path]
        targets.extend(p for p in settings_candidates() if p != self._settings_path)

        errors = []
        for path in targets:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp = path.with_name(path.name + ".tmp")
                tmp.write_text(payload, encoding="utf-8")
                tmp.replace(path)
            except OSError as e:
                errors.append(f"{path}: {e}")
                continue
            self._settings_path = path
            return

        raise RuntimeError("Failed to persist settings: " + "; ".join(errors))


settings = SettingsManager()
