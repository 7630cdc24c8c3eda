"""SVG records of the managed model and their media uploads."""

from __future__ import annotations

import logging

from svgkit import is_svg, svg_bytes, svg_filename

from plugin_settings import LegacyEntry, PluginSettings

from app.adapters import Adapters
from app.errors import FetchFailure, InvalidSvgError, RecordWriteFailure, UploadFailure
from app.models import SVG_TYPE_IMAGE, SVG_TYPE_SVG, AssetRecord, AssetRef
from app.records_validation import item_type_id, svg_record_from_item

logger = logging.getLogger("svgsync.svg_records")

LIST_PAGE_LIMIT = 500


class SvgLibrary:
    def __init__(self, adapters: Adapters, model_id: str) -> None:
        self._records = adapters.records
        self._assets = adapters.assets
        self._model_id = model_id

    async def _create_record(self, attrs: dict, orphan_asset_id: str | None = None) -> AssetRecord:
        try:
            item = await self._records.create(self._model_id, attrs)
        except Exception as exc:
            if orphan_asset_id:
                # The upload stays behind; nothing compensates for it.
                logger.warning("record_create_failed orphan_asset_id=%s error=%s", orphan_asset_id, exc)
            else:
                logger.warning("record_create_failed error=%s", exc)
            raise RecordWriteFailure(f"record creation failed: {exc}", orphan_asset_id=orphan_asset_id) from exc
        return svg_record_from_item(item)

    async def create_managed_asset(self, content: str, filename: str) -> AssetRecord:
        """Upload the markup to the media library, then create a record pointing at it."""
        if not is_svg(content):
            raise InvalidSvgError("content is not well-formed SVG markup")
        try:
            asset = await self._assets.create_from_content(svg_bytes(content), svg_filename(filename))
        except Exception as exc:
            raise UploadFailure(f"upload failed: {exc}") from exc
        record = await self._create_record(
            {
                "name": filename,
                "svg_content": content,
                "svg_type": SVG_TYPE_IMAGE,
                "media_upload": {"upload_id": asset.id},
            },
            orphan_asset_id=asset.id,
        )
        if record.media_upload is not None and record.media_upload.url is None and asset.url:
            record.media_upload = AssetRef(upload_id=asset.id, url=asset.url)
        logger.info("svg_created record_id=%s asset_id=%s", record.id, asset.id)
        return record

    async def create_svg_record(self, content: str, filename: str) -> AssetRecord:
        if not is_svg(content):
            raise InvalidSvgError("content is not well-formed SVG markup")
        record = await self._create_record({"name": filename, "svg_content": content, "svg_type": SVG_TYPE_SVG})
        logger.info("svg_created record_id=%s asset_id=None", record.id)
        return record

    async def list_svg_records(self) -> list[AssetRecord]:
        items = await self._records.list(self._model_id, limit=LIST_PAGE_LIMIT, version="current")
        return [svg_record_from_item(i) for i in items if item_type_id(i) in (None, self._model_id)]

    async def get_svg_record(self, record_id: str) -> AssetRecord:
        try:
            item = await self._records.find(record_id)
        except Exception as exc:
            raise FetchFailure(f"could not load record {record_id}: {exc}") from exc
        return svg_record_from_item(item)

    async def rename_svg_record(self, record_id: str, name: str) -> AssetRecord:
        try:
            item = await self._records.update(record_id, {"name": name})
        except Exception as exc:
            raise RecordWriteFailure(f"rename failed: {exc}") from exc
        return svg_record_from_item(item)

    async def delete_svg_record(self, record_id: str) -> None:
        record = await self.get_svg_record(record_id)
        if record.media_upload is not None:
            try:
                await self._assets.destroy(record.media_upload.upload_id)
            except Exception as exc:
                logger.warning("upload_delete_failed record_id=%s asset_id=%s error=%s", record_id, record.media_upload.upload_id, exc)
        try:
            await self._records.destroy(record_id)
        except Exception as exc:
            raise RecordWriteFailure(f"delete failed: {exc}") from exc
        logger.info("svg_deleted record_id=%s", record_id)


def selectable_svgs(settings: PluginSettings, records: list[AssetRecord], field_params: dict | None = None) -> list[dict]:
    """What a field picker offers: records once set up, legacy entries before."""
    if records or settings.setup_complete:
        return [r.to_dict() for r in records]
    params = field_params or {}
    entries: list[LegacyEntry] = list(settings.legacy_entries)
    if not params.get("showAllSvgs"):
        selected = params.get("selectedSvgs") or []
        wanted = {s.get("id") for s in selected if isinstance(s, dict)}
        entries = [e for e in entries if e.id in wanted]
    return [e.to_dict() for e in entries]
