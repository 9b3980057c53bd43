"""Device-local cart snapshot storage."""
import json
import os
from pathlib import Path
from typing import Optional, Protocol, Sequence

from cartsync.db import RedisKeys
from cartsync.errors import ERROR_CORRUPT_SNAPSHOT, ERROR_STORE_WRITE, SerializationError, StoreWriteError
from cartsync.logging import get_logger
from .models import Cart, CartLineItem

logger = get_logger(__name__)

CART_LOCAL_DIR = os.environ.get("CART_LOCAL_DIR", str(Path.home() / ".cartsync"))


class BlobStore(Protocol):
    """Synchronous key-value store holding string blobs."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> object: ...

    def delete(self, key: str) -> object: ...


class FileBlobStore:
    """One JSON file per key inside a device directory."""

    def __init__(self, directory: str | Path = CART_LOCAL_DIR):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class LocalCartStore:
    """
    Reads and writes the guest cart as one serialized snapshot.

    load() never raises: missing or corrupt data reads as an empty cart.
    save() rewrites the whole snapshot.
    """

    def __init__(self, blob_store: BlobStore, key: str = RedisKeys.LOCAL_CART):
        self._blobs = blob_store
        self.key = key

    def load(self) -> list[CartLineItem]:
        try:
            raw = self._blobs.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to read local cart '{self.key}': {e}")
            return []

        if not raw:
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise SerializationError(f"expected a list, got {type(data).__name__}")
        except (json.JSONDecodeError, TypeError, SerializationError) as e:
            logger.warning(f"{ERROR_CORRUPT_SNAPSHOT} '{self.key}': {e}")
            return []

        items: list[CartLineItem] = []
        for entry in data:
            try:
                items.append(CartLineItem.from_dict(entry))
            except SerializationError as e:
                logger.warning(f"Skipping corrupt local cart entry: {e}")
        return list(Cart.of(items).items)

    def save(self, items: Sequence[CartLineItem]) -> None:
        try:
            payload = json.dumps([item.to_dict() for item in items])
            self._blobs.set(self.key, payload)
        except Exception as e:
            logger.error(f"Failed to save local cart '{self.key}': {e}")
            raise StoreWriteError(f"{ERROR_STORE_WRITE}: {e}") from e

    def clear(self) -> None:
        try:
            self._blobs.delete(self.key)
        except Exception as e:
            logger.error(f"Failed to clear local cart '{self.key}': {e}")
            raise StoreWriteError(f"{ERROR_STORE_WRITE}: {e}") from e
