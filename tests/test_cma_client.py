import json
import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

import httpx

from app.adapters import CmaAssetStore, CmaSchemaStore
from app.cma_client import CmaClient, CmaError

BASE = "https://cma.test"
SIGNED = "https://storage.test/signed-put"


class FakeCma:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.job_polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path == "/upload-requests":
            return httpx.Response(
                200,
                json={"data": {"type": "upload_request", "id": "/42/abc/logo.svg", "attributes": {"url": SIGNED}}},
            )
        if request.method == "PUT" and str(request.url) == SIGNED:
            return httpx.Response(200)
        if request.method == "POST" and path == "/uploads":
            return httpx.Response(202, json={"data": {"type": "job", "id": "job-1"}})
        if request.method == "GET" and path == "/job-results/job-1":
            self.job_polls += 1
            if self.job_polls < 2:
                return httpx.Response(404, json={})
            upload = {"type": "upload", "id": "up-1", "attributes": {"path": "/42/abc/logo.svg", "url": "https://cdn/logo.svg"}}
            return httpx.Response(
                200,
                json={"data": {"type": "job_result", "id": "job-1", "attributes": {"status": 201, "payload": {"data": upload}}}},
            )
        if request.method == "PUT" and path == "/uploads/up-1":
            body = json.loads(request.content)
            return httpx.Response(200, json={"data": {"type": "upload", "id": "up-1", "attributes": body["data"]["attributes"]}})
        if request.method == "GET" and path == "/items":
            item = {
                "type": "item",
                "id": "rec-1",
                "attributes": {"name": "logo"},
                "relationships": {"item_type": {"data": {"type": "item_type", "id": "model-1"}}},
            }
            return httpx.Response(200, json={"data": [item]})
        if request.method == "GET" and path == "/item-types":
            return httpx.Response(200, json={"data": [{"type": "item_type", "id": "it-9", "attributes": {"api_key": "plugin_svg"}}]})
        return httpx.Response(422, json={"data": [{"id": "INVALID_FIELD"}]})


class TestCmaClient(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.fake = FakeCma()
        self.client = CmaClient(
            "secret-token",
            environment="sandbox",
            base_url=BASE,
            timeout=5,
            transport=httpx.MockTransport(self.fake),
            poll_interval=0,
            poll_limit=5,
        )

    async def test_upload_flow_polls_job(self) -> None:
        upload = await self.client.create_upload(b"<svg/>", "logo.svg", mime_type="image/svg+xml")
        self.assertEqual(upload["id"], "up-1")
        self.assertEqual(upload["path"], "/42/abc/logo.svg")
        self.assertEqual(self.fake.job_polls, 2)

        steps = [(r.method, r.url.host, r.url.path) for r in self.fake.requests]
        self.assertEqual(steps[0], ("POST", "cma.test", "/upload-requests"))
        self.assertEqual(steps[1], ("PUT", "storage.test", "/signed-put"))
        self.assertEqual(steps[2], ("POST", "cma.test", "/uploads"))

        signed_put = self.fake.requests[1]
        self.assertNotIn("Authorization", signed_put.headers)
        self.assertEqual(signed_put.headers["Content-Type"], "image/svg+xml")
        self.assertEqual(signed_put.content, b"<svg/>")

        create = self.fake.requests[2]
        self.assertEqual(create.headers["Authorization"], "Bearer secret-token")
        self.assertEqual(create.headers["X-Api-Version"], "3")
        self.assertEqual(create.headers["X-Environment"], "sandbox")
        self.assertEqual(json.loads(create.content)["data"]["attributes"], {"path": "/42/abc/logo.svg"})

    async def test_list_items_filters_and_flattens(self) -> None:
        items = await self.client.list_items("model-1")
        params = self.fake.requests[0].url.params
        self.assertEqual(params["filter[type]"], "model-1")
        self.assertEqual(params["page[limit]"], "500")
        self.assertEqual(params["version"], "current")
        self.assertEqual(items, [{"id": "rec-1", "type": "item", "name": "logo", "item_type": {"type": "item_type", "id": "model-1"}}])

    async def test_error_status_raises(self) -> None:
        with self.assertRaises(CmaError) as ctx:
            await self.client.destroy_item("rec-1")
        self.assertEqual(ctx.exception.status, 422)
        self.assertIn("INVALID_FIELD", ctx.exception.body)

    async def test_job_timeout(self) -> None:
        self.client = CmaClient(
            "t", base_url=BASE, transport=httpx.MockTransport(lambda r: httpx.Response(404)), poll_interval=0, poll_limit=3
        )
        with self.assertRaises(CmaError):
            await self.client._await_job("job-x")

    async def test_asset_store_swaps_by_path(self) -> None:
        assets = CmaAssetStore(self.client)
        temp = await assets.create_from_content(b"<svg/>", "logo.svg")
        self.assertEqual(temp.address, "/42/abc/logo.svg")
        await assets.update_content("up-1", temp.address)
        update = self.fake.requests[-1]
        self.assertEqual(update.method, "PUT")
        self.assertEqual(json.loads(update.content)["data"], {"type": "upload", "attributes": {"path": "/42/abc/logo.svg"}, "id": "up-1"})

    async def test_schema_store_finds_by_api_key(self) -> None:
        schema = CmaSchemaStore(self.client)
        found = await schema.find_by_api_key("plugin_svg")
        self.assertEqual(found["id"], "it-9")
        self.assertIsNone(await schema.find_by_api_key("blog_post"))


if __name__ == "__main__":
    unittest.main()
