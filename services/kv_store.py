"""
Key-value store backends.

The exception store and the second-tier attribute cache only need
string get/set by key. Backends:
    - MemoryStore: process-local dict (tests, ephemeral runs)
    - JsonFileStore: one JSON object on disk, rewritten on every set
    - SupabaseStore: rows of (key, value) in a Supabase table
"""

from abc import ABC, abstractmethod
import json
from pathlib import Path
from typing import Optional, Any, Union
import structlog

from config.settings import Settings, settings as default_settings
from exceptions import StorageError

logger = structlog.get_logger(__name__)


class KeyValueStore(ABC):
    """Abstract string key-value storage."""

    name: str = "abstract"

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            Stored string, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the backend cannot be written
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        pass


class MemoryStore(KeyValueStore):
    """In-memory store."""

    name = "memory"

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON file.

    The whole file is read on every get and rewritten on every set,
    matching the read-modify-write model of its callers.
    """

    name = "file"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("kv_file_read_failed", path=str(self.path), error=str(e))
            raise StorageError("read", str(e), details={"path": str(self.path)})

        if not isinstance(data, dict):
            raise StorageError("read", "store file is not a JSON object", details={"path": str(self.path)})
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error("kv_file_write_failed", path=str(self.path), error=str(e))
            raise StorageError("write", str(e), details={"path": str(self.path)})

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class SupabaseStore(KeyValueStore):
    """Store backed by a Supabase table with `key` and `value` columns."""

    name = "supabase"

    def __init__(self, client=None, table: Optional[str] = None):
        if client is None:
            from config.database import get_supabase_client
            client = get_supabase_client()
        self.db = client
        self.table = table or default_settings.supabase_kv_table

    def get(self, key: str) -> Optional[str]:
        try:
            response = (
                self.db.table(self.table)
                .select("value")
                .eq("key", key)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("kv_supabase_get_failed", key=key, error=str(e))
            raise StorageError("read", str(e), details={"key": key})

        if not response.data:
            return None
        return response.data[0].get("value")

    def set(self, key: str, value: str) -> None:
        try:
            self.db.table(self.table).upsert({"key": key, "value": value}).execute()
        except Exception as e:
            logger.error("kv_supabase_set_failed", key=key, error=str(e))
            raise StorageError("write", str(e), details={"key": key})

    def delete(self, key: str) -> None:
        try:
            self.db.table(self.table).delete().eq("key", key).execute()
        except Exception as e:
            logger.error("kv_supabase_delete_failed", key=key, error=str(e))
            raise StorageError("delete", str(e), details={"key": key})


def build_store(config: Optional[Settings] = None) -> KeyValueStore:
    """
    Create the store selected by STORE_BACKEND.

    Args:
        config: Settings to read from (defaults to the app settings)

    Returns:
        Configured backend
    """
    config = config or default_settings
    logger.info("building_kv_store", backend=config.store_backend)

    if config.store_backend == "memory":
        return MemoryStore()
    if config.store_backend == "supabase":
        return SupabaseStore(table=config.supabase_kv_table)
    return JsonFileStore(config.store_path)
