"""In-memory record, asset and schema stores for local runs and tests."""

from __future__ import annotations

import copy
import hashlib
import uuid
from datetime import datetime, timezone
from typing import Dict, List

from app.adapters import Adapters
from app.models import Asset


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class MemoryRecordStore:
    def __init__(self) -> None:
        self._items: Dict[str, dict] = {}
        self.calls: List[tuple] = []

    async def find(self, record_id: str) -> dict:
        self.calls.append(("find", record_id))
        item = self._items.get(record_id)
        if item is None:
            raise KeyError("record not found")
        return copy.deepcopy(item)

    async def create(self, model_id: str, attrs: dict) -> dict:
        self.calls.append(("create", model_id))
        record_id = str(uuid.uuid4())
        item = copy.deepcopy(attrs)
        item["id"] = record_id
        item["type"] = "item"
        item["item_type"] = {"type": "item_type", "id": model_id}
        item["meta"] = {"status": "draft", "created_at": _now(), "updated_at": _now()}
        self._items[record_id] = item
        return copy.deepcopy(item)

    async def update(self, record_id: str, attrs: dict) -> dict:
        self.calls.append(("update", record_id))
        item = self._items.get(record_id)
        if item is None:
            raise KeyError("record not found")
        item.update(copy.deepcopy(attrs))
        item["meta"]["updated_at"] = _now()
        return copy.deepcopy(item)

    async def destroy(self, record_id: str) -> bool:
        self.calls.append(("destroy", record_id))
        if record_id not in self._items:
            raise KeyError("record not found")
        del self._items[record_id]
        return True

    async def list(self, model_id: str, limit: int = 500, version: str = "current") -> list[dict]:
        self.calls.append(("list", model_id))
        items = [i for i in self._items.values() if (i.get("item_type") or {}).get("id") == model_id]
        return [copy.deepcopy(i) for i in items[:limit]]


class MemoryAssetStore:
    """Content-addressed uploads; replacing content moves the bytes to a new address."""

    def __init__(self) -> None:
        self._assets: Dict[str, dict] = {}
        self._blobs: Dict[str, bytes] = {}
        self.calls: List[tuple] = []

    def _put(self, asset_id: str, filename: str, data: bytes) -> str:
        digest = hashlib.sha256(data).hexdigest()[:16]
        safe_name = filename.replace("..", "_").replace("/", "_")
        address = f"/{asset_id}/{uuid.uuid4().hex[:8]}_{digest}_{safe_name}"
        self._blobs[address] = data
        return address

    def _asset(self, item: dict) -> Asset:
        return Asset(id=item["id"], address=item["address"], url=f"memory://{item['address'].lstrip('/')}")

    async def create_from_content(self, data: bytes, filename: str) -> Asset:
        self.calls.append(("create_from_content", filename))
        asset_id = str(uuid.uuid4())
        item = {
            "id": asset_id,
            "filename": filename,
            "address": self._put(asset_id, filename, data),
            "created_at": _now(),
        }
        self._assets[asset_id] = item
        return self._asset(item)

    async def update_content(self, asset_id: str, address: str) -> None:
        self.calls.append(("update_content", asset_id))
        item = self._assets.get(asset_id)
        if item is None:
            raise KeyError("asset not found")
        data = self._blobs.get(address)
        if data is None:
            raise KeyError("content not found")
        old_address = item["address"]
        item["address"] = self._put(asset_id, item["filename"], data)
        self._blobs.pop(old_address, None)

    async def destroy(self, asset_id: str) -> None:
        self.calls.append(("destroy", asset_id))
        item = self._assets.pop(asset_id, None)
        if item is None:
            raise KeyError("asset not found")
        self._blobs.pop(item["address"], None)

    def get(self, asset_id: str) -> Asset | None:
        item = self._assets.get(asset_id)
        return self._asset(item) if item else None

    def read(self, asset_id: str) -> bytes | None:
        item = self._assets.get(asset_id)
        return self._blobs.get(item["address"]) if item else None

    def ids(self) -> list[str]:
        return list(self._assets.keys())


class MemorySchemaStore:
    def __init__(self) -> None:
        self._item_types: Dict[str, dict] = {}
        self._fields: Dict[str, List[dict]] = {}
        self.calls: List[tuple] = []

    async def find_by_api_key(self, api_key: str) -> dict | None:
        self.calls.append(("find_by_api_key", api_key))
        for item_type in self._item_types.values():
            if item_type.get("api_key") == api_key:
                return copy.deepcopy(item_type)
        return None

    async def create_item_type(self, attrs: dict) -> dict:
        self.calls.append(("create_item_type", attrs.get("api_key")))
        if any(t.get("api_key") == attrs.get("api_key") for t in self._item_types.values()):
            raise ValueError("api_key already taken")
        item = copy.deepcopy(attrs)
        item["id"] = str(uuid.uuid4())
        item["type"] = "item_type"
        self._item_types[item["id"]] = item
        return copy.deepcopy(item)

    async def update_item_type(self, item_type_id: str, attrs: dict, relationships: dict | None = None) -> dict:
        self.calls.append(("update_item_type", item_type_id))
        item = self._item_types.get(item_type_id)
        if item is None:
            raise KeyError("item type not found")
        item.update(copy.deepcopy(attrs))
        for name, rel in (relationships or {}).items():
            item[name] = copy.deepcopy(rel.get("data"))
        return copy.deepcopy(item)

    async def create_field(self, item_type_id: str, attrs: dict) -> dict:
        self.calls.append(("create_field", attrs.get("api_key")))
        if item_type_id not in self._item_types:
            raise KeyError("item type not found")
        field = copy.deepcopy(attrs)
        field["id"] = str(uuid.uuid4())
        field["type"] = "field"
        self._fields.setdefault(item_type_id, []).append(field)
        return copy.deepcopy(field)

    async def list_fields(self, item_type_id: str) -> list[dict]:
        self.calls.append(("list_fields", item_type_id))
        return [copy.deepcopy(f) for f in self._fields.get(item_type_id, [])]


def memory_adapters() -> Adapters:
    return Adapters(records=MemoryRecordStore(), assets=MemoryAssetStore(), schema=MemorySchemaStore())
