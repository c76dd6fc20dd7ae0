"""
Keyed collection stores for BusLedger

A store keeps plain dict records grouped in named collections, each record
identified by its "id" key. JsonFileStore writes one JSON array per
collection (<data_dir>/<collection>.json); MemoryStore keeps everything in
process.
"""
from __future__ import annotations
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from errors import PartialCommitError, PersistenceError

logger = logging.getLogger(__name__)


class CollectionStore:
    """get_all / get_by_id / upsert / delete over named collections"""

    def get_all(self, collection: str) -> List[dict]:
        raise NotImplementedError

    def get_by_id(self, collection: str, item_id: str) -> Optional[dict]:
        for item in self.get_all(collection):
            if item.get("id") == item_id:
                return item
        return None

    def upsert(self, collection: str, item: dict) -> dict:
        raise NotImplementedError

    def delete(self, collection: str, item_id: str) -> bool:
        raise NotImplementedError


class MemoryStore(CollectionStore):
    def __init__(self, data: Optional[Dict[str, List[dict]]] = None):
        self._data: Dict[str, List[dict]] = copy.deepcopy(data) if data else {}

    def get_all(self, collection: str) -> List[dict]:
        return copy.deepcopy(self._data.get(collection, []))

    def upsert(self, collection: str, item: dict) -> dict:
        _require_id(item)
        items = self._data.setdefault(collection, [])
        _replace_or_append(items, copy.deepcopy(item))
        return item

    def delete(self, collection: str, item_id: str) -> bool:
        items = self._data.get(collection, [])
        kept = [i for i in items if i.get("id") != item_id]
        self._data[collection] = kept
        return len(kept) != len(items)


class JsonFileStore(CollectionStore):
    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def get_all(self, collection: str) -> List[dict]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as ex:
            raise PersistenceError(f"cannot read {path}: {ex}") from ex
        if not isinstance(data, list):
            raise PersistenceError(f"{path} does not hold a JSON array")
        logger.debug("read %d records from %s", len(data), collection)
        return data

    def _write(self, collection: str, items: List[dict]) -> None:
        path = self._path(collection)
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", delete=False, dir=self.data_dir, encoding="utf-8", suffix=".tmp"
            ) as tmp:
                tmp_name = tmp.name
                json.dump(items, tmp, ensure_ascii=False, indent=2)
                tmp.flush()
            os.replace(tmp_name, path)
        except OSError as ex:
            raise PersistenceError(f"cannot write {path}: {ex}") from ex
        finally:
            # gone after a successful replace
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
        logger.debug("wrote %d records to %s", len(items), collection)

    def upsert(self, collection: str, item: dict) -> dict:
        _require_id(item)
        items = self.get_all(collection)
        _replace_or_append(items, item)
        self._write(collection, items)
        return item

    def delete(self, collection: str, item_id: str) -> bool:
        items = self.get_all(collection)
        kept = [i for i in items if i.get("id") != item_id]
        if len(kept) == len(items):
            return False
        self._write(collection, kept)
        return True


def _require_id(item: dict) -> None:
    if not item.get("id"):
        raise PersistenceError("record has no id")


def _replace_or_append(items: List[dict], item: dict) -> None:
    for idx, existing in enumerate(items):
        if existing.get("id") == item.get("id"):
            items[idx] = item
            return
    items.append(item)


class UnitOfWork:
    """
    Collects writes and applies them in one commit.
    Each write is attempted on its own; failed ones are reported together.
    """

    def __init__(self, store: CollectionStore):
        self.store = store
        self._ops: List[Tuple[str, str, Optional[dict]]] = []

    def upsert(self, collection: str, item: dict) -> None:
        self._ops.append(("upsert", collection, item))

    def delete(self, collection: str, item_id: str) -> None:
        self._ops.append(("delete", collection, {"id": item_id}))

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> List[Tuple[str, str]]:
        """Apply all writes; returns (collection, id) of applied ones or raises PartialCommitError"""
        applied: List[Tuple[str, str]] = []
        failed: List[Tuple[str, str, str]] = []
        for op, collection, item in self._ops:
            item_id = str(item.get("id"))
            try:
                if op == "upsert":
                    self.store.upsert(collection, item)
                else:
                    self.store.delete(collection, item_id)
            except PersistenceError as ex:
                logger.warning("write %s %s/%s failed: %s", op, collection, item_id, ex)
                failed.append((collection, item_id, str(ex)))
            else:
                applied.append((collection, item_id))
        self._ops = []
        if failed:
            raise PartialCommitError(applied, failed)
        return applied
