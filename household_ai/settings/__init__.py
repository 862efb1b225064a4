"""Settings store interface and bundled implementations."""

from .crypto import SECRET_KEY_ENV, SecretCipher
from .file_store import JsonFileSettingsStore
from .store import InMemorySettingsStore, SettingsStore, StoredValue, Tenant

__all__ = [
    "SECRET_KEY_ENV",
    "SecretCipher",
    "SettingsStore",
    "StoredValue",
    "Tenant",
    "InMemorySettingsStore",
    "JsonFileSettingsStore",
]
