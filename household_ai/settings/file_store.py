"""Crash-safe JSON file settings store based on atomic filesystem writes."""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
from threading import Lock
from typing import Any, Iterable

from .crypto import SecretCipher
from .store import SettingsStore, StoredValue, Tenant


class JsonFileSettingsStore(SettingsStore):
    """All tenants in one JSON document.

    Layout: ``{"tenants": {"<tenant>": {"<key>": {"value": ..., "encrypted": bool}}}}``.
    Tenant identifiers are stored as strings.
    """

    def __init__(self, path: Path, cipher: SecretCipher | None = None) -> None:
        super().__init__(cipher=cipher)
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def _read(self, tenant: Tenant, keys: Iterable[str]) -> dict[str, StoredValue]:
        with self._lock:
            section = self._load().get("tenants", {}).get(str(tenant), {})
        found: dict[str, StoredValue] = {}
        for key in keys:
            entry = section.get(key)
            if entry is not None:
                found[key] = StoredValue(value=str(entry["value"]), encrypted=bool(entry.get("encrypted", False)))
        return found

    def _write(self, tenant: Tenant, key: str, stored: StoredValue) -> None:
        with self._lock:
            payload = self._load()
            section = payload.setdefault("tenants", {}).setdefault(str(tenant), {})
            section[key] = {"value": stored.value, "encrypted": stored.encrypted}
            self._atomic_write_json(payload)

    def delete(self, tenant: Tenant, key: str) -> None:
        with self._lock:
            payload = self._load()
            section = payload.get("tenants", {}).get(str(tenant))
            if not section or key not in section:
                return
            del section[key]
            self._atomic_write_json(payload)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"tenants": {}}
        return json.loads(self.path.read_text(encoding="utf-8"))

    def _atomic_write_json(self, payload: dict[str, Any]) -> None:
        serialized = json.dumps(payload, indent=2, sort_keys=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            delete=False,
            dir=str(self.path.parent),
            suffix=".tmp",
        ) as handle:
            handle.write(serialized)
            handle.flush()
            os.fsync(handle.fileno())
            temp_path = Path(handle.name)
        os.replace(temp_path, self.path)
