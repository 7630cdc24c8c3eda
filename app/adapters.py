"""Record, asset and schema store adapters backed by the CMA client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from svgkit.svg_markup import SVG_MIME_TYPE

from app.cma_client import CmaClient
from app.models import Asset, Credentials


class CmaRecordStore:
    def __init__(self, client: CmaClient) -> None:
        self._client = client

    async def find(self, record_id: str) -> dict:
        return await self._client.find_item(record_id, version="current")

    async def create(self, model_id: str, attrs: dict) -> dict:
        return await self._client.create_item(model_id, attrs)

    async def update(self, record_id: str, attrs: dict) -> dict:
        return await self._client.update_item(record_id, attrs)

    async def destroy(self, record_id: str) -> bool:
        await self._client.destroy_item(record_id)
        return True

    async def list(self, model_id: str, limit: int = 500, version: str = "current") -> list[dict]:
        return await self._client.list_items(model_id, limit=limit, version=version)


class CmaAssetStore:
    def __init__(self, client: CmaClient) -> None:
        self._client = client

    async def create_from_content(self, data: bytes, filename: str) -> Asset:
        upload = await self._client.create_upload(data, filename, mime_type=SVG_MIME_TYPE)
        return Asset(id=str(upload["id"]), address=str(upload.get("path") or ""), url=upload.get("url"))

    async def update_content(self, asset_id: str, address: str) -> None:
        await self._client.update_upload(asset_id, {"path": address})

    async def destroy(self, asset_id: str) -> None:
        await self._client.destroy_upload(asset_id)


class CmaSchemaStore:
    def __init__(self, client: CmaClient) -> None:
        self._client = client

    async def find_by_api_key(self, api_key: str) -> dict | None:
        for item_type in await self._client.list_item_types():
            if item_type.get("api_key") == api_key:
                return item_type
        return None

    async def create_item_type(self, attrs: dict) -> dict:
        return await self._client.create_item_type(attrs, skip_menu_item_creation=True)

    async def update_item_type(self, item_type_id: str, attrs: dict, relationships: dict | None = None) -> dict:
        return await self._client.update_item_type(item_type_id, attrs, relationships=relationships)

    async def create_field(self, item_type_id: str, attrs: dict) -> dict:
        return await self._client.create_field(item_type_id, attrs)

    async def list_fields(self, item_type_id: str) -> list[dict]:
        return await self._client.list_fields(item_type_id)


@dataclass
class Adapters:
    records: Any
    assets: Any
    schema: Any


AdapterFactory = Callable[[Credentials], Adapters]


def cma_adapters(credentials: Credentials) -> Adapters:
    client = CmaClient(credentials.api_token, environment=credentials.environment)
    return Adapters(
        records=CmaRecordStore(client),
        assets=CmaAssetStore(client),
        schema=CmaSchemaStore(client),
    )
