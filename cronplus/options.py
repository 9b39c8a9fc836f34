from __future__ import annotations

from pathlib import Path
import os
import threading
from typing import Any, Dict, List

from filelock import FileLock
import yaml

from .config import load_config


class OptionStore:
    """Persistent network-wide key/value options.

    Every mutation re-reads the file while holding the file lock so that
    concurrent processes never overwrite each other's keys.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        if path is None:
            path = os.getenv("CRONPLUS_OPTIONS_PATH")
        if path is None:
            cfg = load_config()
            path = cfg.get("options_path")
        if path is None:
            path = Path.home() / ".cronplus" / "options.yml"
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_lock = FileLock(str(self.path) + ".lock")
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, Any]:
        if self.path.exists():
            with open(self.path, "r") as fh:
                data = yaml.safe_load(fh) or {}
                if isinstance(data, dict):
                    return data
        return {}

    def _save(self, data: Dict[str, Any]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as fh:
            yaml.safe_dump(data, fh)
        os.replace(tmp, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock, self._file_lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock, self._file_lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def delete(self, key: str) -> bool:
        with self._lock, self._file_lock:
            data = self._load()
            if key not in data:
                return False
            del data[key]
            self._save(data)
            return True

    def add_to_set(self, key: str, value: Any) -> List[Any]:
        """Add ``value`` to the list stored under ``key`` unless present.

        Returns the resulting list.
        """

        with self._lock, self._file_lock:
            data = self._load()
            current = data.get(key)
            members = list(current) if isinstance(current, list) else []
            if value not in members:
                members.append(value)
                data[key] = members
                self._save(data)
            return members
