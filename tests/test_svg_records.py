import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from plugin_settings import PluginSettings

from app.adapters import Adapters
from app.errors import InvalidSvgError, RecordWriteFailure
from app.records_validation import validate_svg_input
from app.stores import MemoryAssetStore, MemoryRecordStore, MemorySchemaStore
from app.svg_records import SvgLibrary, selectable_svgs

MODEL_ID = "model-svg"
SVG = '<svg xmlns="http://www.w3.org/2000/svg"><circle r="4"/></svg>'


class RejectingRecordStore(MemoryRecordStore):
    async def create(self, model_id: str, attrs: dict) -> dict:
        self.calls.append(("create", model_id))
        raise RuntimeError("validation failed on svg_content")


class StubbornAssetStore(MemoryAssetStore):
    async def destroy(self, asset_id: str) -> None:
        self.calls.append(("destroy", asset_id))
        raise RuntimeError("upload in use")


def _adapters(records=None, assets=None) -> Adapters:
    return Adapters(records=records or MemoryRecordStore(), assets=assets or MemoryAssetStore(), schema=MemorySchemaStore())


class TestCreateManagedAsset(unittest.IsolatedAsyncioTestCase):
    async def test_upload_then_record(self) -> None:
        adapters = _adapters()
        record = await SvgLibrary(adapters, MODEL_ID).create_managed_asset(SVG, "badge")
        self.assertEqual(record.name, "badge")
        self.assertEqual(record.svg_type, "image")
        self.assertEqual(record.svg_content, SVG)
        upload_id = record.media_upload.upload_id
        self.assertEqual(adapters.assets.read(upload_id), SVG.encode("utf-8"))
        self.assertIsNotNone(record.media_upload.url)
        self.assertEqual(adapters.assets.calls, [("create_from_content", "badge.svg")])

    async def test_invalid_markup_makes_no_calls(self) -> None:
        adapters = _adapters()
        with self.assertRaises(InvalidSvgError):
            await SvgLibrary(adapters, MODEL_ID).create_managed_asset("<p>hi</p>", "badge")
        self.assertEqual(adapters.assets.calls, [])
        self.assertEqual(adapters.records.calls, [])

    async def test_record_failure_reports_orphaned_upload(self) -> None:
        adapters = _adapters(records=RejectingRecordStore())
        with self.assertRaises(RecordWriteFailure) as ctx:
            await SvgLibrary(adapters, MODEL_ID).create_managed_asset(SVG, "badge")
        orphan = ctx.exception.orphan_asset_id
        self.assertIsNotNone(orphan)
        self.assertEqual(adapters.assets.ids(), [orphan])


class TestRecordHelpers(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.adapters = _adapters()
        self.library = SvgLibrary(self.adapters, MODEL_ID)

    async def test_markup_only_record(self) -> None:
        record = await self.library.create_svg_record(SVG, "inline")
        self.assertEqual(record.svg_type, "svg")
        self.assertIsNone(record.media_upload)
        self.assertEqual(self.adapters.assets.calls, [])

    async def test_list_is_scoped_to_model(self) -> None:
        await self.library.create_svg_record(SVG, "one")
        await self.library.create_managed_asset(SVG, "two")
        await self.adapters.records.create("blog-post", {"title": "unrelated"})
        names = sorted(r.name for r in await self.library.list_svg_records())
        self.assertEqual(names, ["one", "two"])

    async def test_rename(self) -> None:
        record = await self.library.create_svg_record(SVG, "old")
        renamed = await self.library.rename_svg_record(record.id, "new")
        self.assertEqual(renamed.name, "new")
        self.assertEqual(renamed.svg_content, SVG)

    async def test_rename_missing_record(self) -> None:
        with self.assertRaises(RecordWriteFailure):
            await self.library.rename_svg_record("missing", "new")

    async def test_delete_removes_upload_and_record(self) -> None:
        record = await self.library.create_managed_asset(SVG, "gone")
        await self.library.delete_svg_record(record.id)
        self.assertEqual(self.adapters.assets.ids(), [])
        self.assertEqual(await self.library.list_svg_records(), [])

    async def test_delete_survives_upload_failure(self) -> None:
        adapters = _adapters(assets=StubbornAssetStore())
        library = SvgLibrary(adapters, MODEL_ID)
        record = await library.create_managed_asset(SVG, "sticky")
        await library.delete_svg_record(record.id)
        self.assertEqual(await library.list_svg_records(), [])
        self.assertEqual(len(adapters.assets.ids()), 1)


class TestSelectableSvgs(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = PluginSettings.from_parameters(
            {"svgs": [{"id": "a", "raw": SVG}, {"id": "b", "raw": SVG}, {"id": "c", "raw": SVG}]}
        )

    def test_legacy_entries_before_setup(self) -> None:
        picked = selectable_svgs(self.settings, [], {"showAllSvgs": False, "selectedSvgs": [{"id": "b"}]})
        self.assertEqual([p["id"] for p in picked], ["b"])
        everything = selectable_svgs(self.settings, [], {"showAllSvgs": True})
        self.assertEqual([p["id"] for p in everything], ["a", "b", "c"])

    def test_records_once_set_up(self) -> None:
        ready = self.settings.mark_ready(MODEL_ID)
        self.assertEqual(selectable_svgs(ready, [], {"showAllSvgs": True}), [])


class TestValidateSvgInput(unittest.TestCase):
    def test_create_requires_valid_content(self) -> None:
        errors, _ = validate_svg_input({"name": "x", "content": "<b/>"}, for_create=True)
        self.assertEqual([e["code"] for e in errors], ["INVALID_SVG"])
        errors, _ = validate_svg_input({"name": "x"}, for_create=True)
        self.assertEqual([e["code"] for e in errors], ["CONTENT_REQUIRED"])

    def test_create_cleans_fields(self) -> None:
        errors, cleaned = validate_svg_input(
            {"filename": "  logo ", "svg_content": SVG, "upload_to_media_library": True}, for_create=True
        )
        self.assertEqual(errors, [])
        self.assertEqual(cleaned, {"name": "logo", "content": SVG, "upload_to_media_library": True})

    def test_rename_requires_name(self) -> None:
        errors, _ = validate_svg_input({}, for_create=False)
        self.assertEqual(errors[0]["code"], "NAME_INVALID")
        errors, _ = validate_svg_input({"name": "x" * 300}, for_create=False)
        self.assertEqual(errors[0]["code"], "NAME_TOO_LONG")
        errors, _ = validate_svg_input([], for_create=False)
        self.assertEqual(errors[0]["code"], "INVALID_PAYLOAD")


if __name__ == "__main__":
    unittest.main()
