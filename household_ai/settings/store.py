"""Tenant-scoped key/value settings store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Hashable, Iterable

from .crypto import SecretCipher


Tenant = Hashable


@dataclass(slots=True)
class StoredValue:
    """Raw persisted value; ``value`` holds ciphertext when ``encrypted`` is set."""

    value: str
    encrypted: bool = False


class SettingsStore(ABC):
    """Per-tenant string settings with optional at-rest encryption.

    Subclasses only implement raw access; encryption and decryption happen
    here so every backend treats secrets the same way.
    """

    def __init__(self, cipher: SecretCipher | None = None) -> None:
        self.cipher = cipher

    @abstractmethod
    def _read(self, tenant: Tenant, keys: Iterable[str]) -> dict[str, StoredValue]:
        """Return stored values for the keys that exist."""

    @abstractmethod
    def _write(self, tenant: Tenant, key: str, stored: StoredValue) -> None:
        """Insert or replace one value."""

    @abstractmethod
    def delete(self, tenant: Tenant, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    def get_many(self, tenant: Tenant, keys: Iterable[str]) -> dict[str, str | None]:
        keys = list(keys)
        raw = self._read(tenant, keys)
        return {key: self._decode(raw[key]) if key in raw else None for key in keys}

    def get(self, tenant: Tenant, key: str, default: str | None = None) -> str | None:
        value = self.get_many(tenant, [key])[key]
        return default if value is None else value

    def set(self, tenant: Tenant, key: str, value: str, *, encrypted: bool = False) -> None:
        if encrypted:
            if self.cipher is None:
                raise ValueError(f"Cannot store encrypted setting {key!r} without a cipher")
            self._write(tenant, key, StoredValue(value=self.cipher.encrypt(value), encrypted=True))
        else:
            self._write(tenant, key, StoredValue(value=value, encrypted=False))

    def _decode(self, stored: StoredValue) -> str | None:
        if not stored.encrypted:
            return stored.value
        if self.cipher is None or not stored.value:
            return None
        return self.cipher.decrypt(stored.value)


class InMemorySettingsStore(SettingsStore):
    """Thread-safe in-process store, used for tests and embedding."""

    def __init__(self, cipher: SecretCipher | None = None) -> None:
        super().__init__(cipher=cipher or SecretCipher.generate())
        self._data: dict[tuple[Tenant, str], StoredValue] = {}
        self._lock = Lock()

    def _read(self, tenant: Tenant, keys: Iterable[str]) -> dict[str, StoredValue]:
        with self._lock:
            return {key: self._data[(tenant, key)] for key in keys if (tenant, key) in self._data}

    def _write(self, tenant: Tenant, key: str, stored: StoredValue) -> None:
        with self._lock:
            self._data[(tenant, key)] = stored

    def delete(self, tenant: Tenant, key: str) -> None:
        with self._lock:
            self._data.pop((tenant, key), None)

    def raw(self, tenant: Tenant, key: str) -> StoredValue | None:
        """Persisted form of a value, ciphertext included."""
        with self._lock:
            return self._data.get((tenant, key))
