"""Keeps the media upload behind an SVG record in step with its markup.

The upload is swapped in place: a temporary upload receives the new bytes,
the existing upload is pointed at the temporary one's storage path, and the
temporary upload is deleted. Other records reference the upload by id, so
the id must survive the swap.

Nothing here raises past ``sync_asset_from_source``; every failure is logged
and reported in the returned ``SyncResult``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from svgkit import is_svg, svg_bytes, svg_filename

from mutation_payload import MutationEvent, make_mutation_payload, parse_mutation_payload

from app.adapters import AdapterFactory
from app.errors import FetchFailure, OrphanResource, UploadFailure, ValidationSkip
from app.models import AssetRecord, AssetRef, Credentials
from app.records_validation import item_type_id, svg_record_from_item

logger = logging.getLogger("svgsync.media_sync")

SYNC_SYNCED = "synced"
SYNC_SKIPPED = "skipped"
SYNC_FAILED = "failed"


@dataclass(frozen=True)
class SyncContext:
    managed_model_id: str
    adapter_factory: AdapterFactory


@dataclass(frozen=True)
class SyncResult:
    status: str
    code: str | None = None
    record_id: str | None = None
    asset_id: str | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != SYNC_FAILED


async def swap_asset_content(assets, asset_id: str, content: str, filename: str) -> OrphanResource | None:
    """Replace the bytes behind ``asset_id`` without changing the id.

    Returns the orphaned temporary upload when it could not be deleted.
    """
    try:
        temp = await assets.create_from_content(svg_bytes(content), filename)
    except Exception as exc:
        raise UploadFailure(f"temporary upload failed: {exc}") from exc

    update_error: Exception | None = None
    try:
        await assets.update_content(asset_id, temp.address)
    except Exception as exc:
        update_error = exc

    orphan = None
    try:
        await assets.destroy(temp.id)
    except Exception as exc:
        orphan = OrphanResource(f"temporary upload could not be deleted: {exc}", resource_id=temp.id)
        logger.warning("sync_orphan_resource temp_asset_id=%s asset_id=%s error=%s", temp.id, asset_id, exc)

    if update_error is not None:
        raise UploadFailure(f"replacing content of {asset_id} failed: {update_error}") from update_error
    return orphan


async def _resolve_target(event: MutationEvent, records) -> tuple[AssetRef | None, str | None]:
    attrs = event.attributes
    name = attrs.name.value if attrs.name.is_set else None
    if attrs.media_upload.is_set:
        ref = attrs.media_upload.value
        return AssetRef(upload_id=ref.upload_id, url=ref.url), name
    if attrs.media_upload.is_cleared or not event.is_update:
        return None, name
    # Upsert payloads only carry changed fields; the stored record has the rest.
    try:
        item = await records.find(event.record_id)
    except Exception as exc:
        raise FetchFailure(f"could not load record {event.record_id}: {exc}") from exc
    stored = svg_record_from_item(item)
    return stored.media_upload, name or stored.name


async def _sync(event: MutationEvent, credentials: Credentials, context: SyncContext) -> SyncResult:
    if event.model_id != context.managed_model_id:
        logger.debug("sync_skipped reason=model_mismatch model_id=%s", event.model_id)
        return SyncResult(SYNC_SKIPPED, "MODEL_MISMATCH", record_id=event.record_id)

    content_change = event.attributes.svg_content
    content = content_change.value if content_change.is_set else None
    if not is_svg(content):
        raise ValidationSkip("svg_content missing or not well-formed")

    adapters = context.adapter_factory(credentials)
    ref, name = await _resolve_target(event, adapters.records)
    if ref is None:
        logger.debug("sync_skipped reason=no_asset_reference record_id=%s", event.record_id)
        return SyncResult(SYNC_SKIPPED, "NO_ASSET_REFERENCE", record_id=event.record_id)

    # Once the temporary upload exists the sequence runs to the end.
    orphan = await asyncio.shield(swap_asset_content(adapters.assets, ref.upload_id, content, svg_filename(name)))
    logger.info("sync_swapped record_id=%s asset_id=%s", event.record_id, ref.upload_id)
    return SyncResult(
        SYNC_SYNCED,
        orphan.code if orphan else None,
        record_id=event.record_id,
        asset_id=ref.upload_id,
        detail=str(orphan) if orphan else None,
    )


async def sync_asset_from_source(event: MutationEvent, credentials: Credentials, context: SyncContext) -> SyncResult:
    record_id = getattr(event, "record_id", None)
    try:
        return await _sync(event, credentials, context)
    except ValidationSkip as exc:
        logger.debug("sync_skipped reason=invalid_svg record_id=%s", record_id)
        return SyncResult(SYNC_SKIPPED, exc.code, record_id=record_id)
    except (FetchFailure, UploadFailure) as exc:
        logger.warning("sync_failed code=%s record_id=%s error=%s", exc.code, record_id, exc.message)
        return SyncResult(SYNC_FAILED, exc.code, record_id=record_id, detail=exc.message)
    except Exception as exc:
        logger.exception("sync_unexpected_error record_id=%s", record_id)
        return SyncResult(SYNC_FAILED, "INTERNAL_ERROR", record_id=record_id, detail=str(exc))


def event_for_record(record: AssetRecord, model_id: str | None) -> MutationEvent:
    attributes = {"name": record.name, "svg_content": record.svg_content}
    if record.media_upload is not None:
        attributes["media_upload"] = record.media_upload.to_field_value()
    return parse_mutation_payload(make_mutation_payload(attributes, record_id=record.id, model_id=model_id))


async def sync_stored_record(record_id: str, credentials: Credentials, context: SyncContext) -> SyncResult:
    """Manual "sync media" for one record, using its stored markup."""
    try:
        item = await context.adapter_factory(credentials).records.find(record_id)
    except Exception as exc:
        logger.warning("sync_failed code=FETCH_FAILURE record_id=%s error=%s", record_id, exc)
        return SyncResult(SYNC_FAILED, FetchFailure.code, record_id=record_id, detail=str(exc))
    record = svg_record_from_item(item)
    return await sync_asset_from_source(event_for_record(record, item_type_id(item)), credentials, context)
