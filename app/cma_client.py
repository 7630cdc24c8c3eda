"""Async client for the DatoCMS Content Management API (JSON:API over httpx)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict
from urllib.parse import quote

import httpx

from app import config

logger = logging.getLogger("svgsync.cma")

_JSONAPI = "application/vnd.api+json"


class CmaError(RuntimeError):
    def __init__(self, message: str, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


def _flatten(resource: dict) -> dict:
    """Lift attributes and relationship identifiers to the top level."""
    if not isinstance(resource, dict):
        raise CmaError("cma_unexpected_resource")
    item: Dict[str, Any] = {"id": resource.get("id"), "type": resource.get("type")}
    item.update(resource.get("attributes") or {})
    for name, rel in (resource.get("relationships") or {}).items():
        data = rel.get("data") if isinstance(rel, dict) else None
        item[name] = {"type": data.get("type"), "id": data.get("id")} if isinstance(data, dict) else data
    if resource.get("meta") is not None:
        item["meta"] = resource.get("meta")
    return item


def _document(resource_type: str, attributes: dict, resource_id: str | None = None, relationships: dict | None = None) -> dict:
    data: Dict[str, Any] = {"type": resource_type, "attributes": attributes}
    if resource_id is not None:
        data["id"] = resource_id
    if relationships:
        data["relationships"] = relationships
    return {"data": data}


class CmaClient:
    def __init__(
        self,
        api_token: str,
        environment: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        poll_interval: float | None = None,
        poll_limit: int | None = None,
    ) -> None:
        self._api_token = api_token
        self._environment = environment
        self._base_url = (base_url or config.cma_base_url()).rstrip("/")
        self._timeout = timeout if timeout is not None else config.cma_timeout()
        self._transport = transport
        self._poll_interval = poll_interval if poll_interval is not None else config.job_poll_interval()
        self._poll_limit = poll_limit if poll_limit is not None else config.job_poll_limit()

    def _headers(self) -> dict:
        headers = {
            "Authorization": f"Bearer {self._api_token}",
            "Accept": "application/json",
            "Content-Type": _JSONAPI,
            "X-Api-Version": "3",
        }
        if self._environment:
            headers["X-Environment"] = self._environment
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _request(self, method: str, path: str, params: dict | None = None, body: dict | None = None) -> httpx.Response:
        url = f"{self._base_url}{path}"
        async with self._client() as client:
            res = await client.request(method, url, headers=self._headers(), params=params, json=body)
        logger.debug("cma_request method=%s path=%s status=%s", method, path, res.status_code)
        if res.status_code >= 400:
            raise CmaError(f"cma_request_failed:{method}:{path}:{res.status_code}", status=res.status_code, body=res.text)
        return res

    async def _resource(self, res: httpx.Response) -> dict:
        # Some writes answer 202 with a job instead of the resource.
        payload = res.json()
        data = payload.get("data") if isinstance(payload, dict) else None
        if isinstance(data, dict) and data.get("type") == "job":
            return await self._await_job(str(data.get("id")))
        return _flatten(data)

    async def _await_job(self, job_id: str) -> dict:
        for _ in range(self._poll_limit):
            async with self._client() as client:
                res = await client.get(f"{self._base_url}/job-results/{quote(job_id)}", headers=self._headers())
            if res.status_code == 404:
                await asyncio.sleep(self._poll_interval)
                continue
            if res.status_code >= 400:
                raise CmaError(f"cma_job_failed:{job_id}:{res.status_code}", status=res.status_code, body=res.text)
            attrs = ((res.json() or {}).get("data") or {}).get("attributes") or {}
            status = int(attrs.get("status") or 0)
            payload = attrs.get("payload") or {}
            if status >= 400:
                raise CmaError(f"cma_job_failed:{job_id}:{status}", status=status, body=str(payload))
            return _flatten(payload.get("data"))
        raise CmaError(f"cma_job_timeout:{job_id}")

    # ---- Items ----

    async def find_item(self, item_id: str, version: str = "current") -> dict:
        res = await self._request("GET", f"/items/{quote(item_id)}", params={"version": version})
        return _flatten(res.json().get("data"))

    async def list_items(self, item_type_id: str, limit: int = 500, version: str = "current") -> list[dict]:
        params = {"filter[type]": item_type_id, "page[limit]": str(limit), "version": version}
        res = await self._request("GET", "/items", params=params)
        return [_flatten(r) for r in res.json().get("data") or []]

    async def create_item(self, item_type_id: str, attributes: dict) -> dict:
        relationships = {"item_type": {"data": {"type": "item_type", "id": item_type_id}}}
        res = await self._request("POST", "/items", body=_document("item", attributes, relationships=relationships))
        return await self._resource(res)

    async def update_item(self, item_id: str, attributes: dict) -> dict:
        res = await self._request("PUT", f"/items/{quote(item_id)}", body=_document("item", attributes, resource_id=item_id))
        return await self._resource(res)

    async def destroy_item(self, item_id: str) -> None:
        await self._request("DELETE", f"/items/{quote(item_id)}")

    # ---- Uploads ----

    async def create_upload(self, data: bytes, filename: str, mime_type: str | None = None) -> dict:
        res = await self._request("POST", "/upload-requests", body=_document("upload_request", {"filename": filename}))
        request = res.json().get("data") or {}
        path = request.get("id")
        signed_url = (request.get("attributes") or {}).get("url")
        if not path or not signed_url:
            raise CmaError("cma_upload_request_invalid")
        headers = {"Content-Type": mime_type} if mime_type else {}
        async with self._client() as client:
            put = await client.put(signed_url, content=data, headers=headers)
        if put.status_code >= 400:
            raise CmaError(f"cma_upload_put_failed:{put.status_code}", status=put.status_code, body=put.text)
        res = await self._request("POST", "/uploads", body=_document("upload", {"path": path}))
        return await self._resource(res)

    async def update_upload(self, upload_id: str, attributes: dict) -> dict:
        res = await self._request("PUT", f"/uploads/{quote(upload_id)}", body=_document("upload", attributes, resource_id=upload_id))
        return await self._resource(res)

    async def destroy_upload(self, upload_id: str) -> None:
        await self._request("DELETE", f"/uploads/{quote(upload_id)}")

    # ---- Schema ----

    async def list_item_types(self) -> list[dict]:
        res = await self._request("GET", "/item-types")
        return [_flatten(r) for r in res.json().get("data") or []]

    async def create_item_type(self, attributes: dict, skip_menu_item_creation: bool = True) -> dict:
        params = {"skip_menu_item_creation": "true"} if skip_menu_item_creation else None
        res = await self._request("POST", "/item-types", params=params, body=_document("item_type", attributes))
        return await self._resource(res)

    async def update_item_type(self, item_type_id: str, attributes: dict, relationships: dict | None = None) -> dict:
        body = _document("item_type", attributes, resource_id=item_type_id, relationships=relationships)
        res = await self._request("PUT", f"/item-types/{quote(item_type_id)}", body=body)
        return await self._resource(res)

    async def create_field(self, item_type_id: str, attributes: dict) -> dict:
        res = await self._request("POST", f"/item-types/{quote(item_type_id)}/fields", body=_document("field", attributes))
        return await self._resource(res)

    async def list_fields(self, item_type_id: str) -> list[dict]:
        res = await self._request("GET", f"/item-types/{quote(item_type_id)}/fields")
        return [_flatten(r) for r in res.json().get("data") or []]
