"""Moves SVGs embedded in the plugin settings into managed records."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List

import anyio

from svgkit import is_svg

from plugin_settings import LegacyEntry, PluginSettings, SettingsConflictError

from app.adapters import Adapters
from app.errors import InvalidSvgError, RecordWriteFailure, SetupIncompleteError
from app.models import AssetRecord
from app.records_validation import svg_record_from_item

logger = logging.getLogger("svgsync.migration")

UNTITLED = "Untitled SVG"
PERSIST_ATTEMPTS = 3


@dataclass(frozen=True)
class MigratedRecord:
    entry_index: int
    entry_id: str
    record: AssetRecord


@dataclass(frozen=True)
class MigrationFailure:
    entry_index: int
    entry_id: str
    code: str
    message: str


@dataclass
class MigrationReport:
    migrated: List[MigratedRecord] = field(default_factory=list)
    failures: List[MigrationFailure] = field(default_factory=list)
    alert: str | None = None

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "migrated": [{"entry_id": m.entry_id, "record": m.record.to_dict()} for m in self.migrated],
            "failures": [
                {"entry_id": f.entry_id, "code": f.code, "message": f.message} for f in self.failures
            ],
            "failure_count": self.failure_count,
        }


def _record_attrs(entry: LegacyEntry) -> dict:
    attrs = {
        "name": entry.filename or UNTITLED,
        "svg_content": entry.raw,
        "svg_type": entry.kind,
    }
    if entry.has_asset_ref:
        # The upload already exists; the record points at it instead of re-uploading.
        attrs["media_upload"] = {"upload_id": entry.image_id}
    return attrs


async def _migrate(entries: Iterable[LegacyEntry], records, model_id: str) -> MigrationReport:
    report = MigrationReport()
    for idx, entry in enumerate(entries):
        try:
            if not is_svg(entry.raw):
                raise InvalidSvgError("legacy entry is not well-formed SVG markup")
            try:
                item = await records.create(model_id, _record_attrs(entry))
            except Exception as exc:
                raise RecordWriteFailure(f"record creation failed: {exc}") from exc
        except (InvalidSvgError, RecordWriteFailure) as exc:
            logger.warning("migration_entry_failed index=%s entry_id=%s code=%s", idx, entry.id, exc.code)
            report.failures.append(MigrationFailure(idx, entry.id, exc.code, exc.message))
            continue
        report.migrated.append(MigratedRecord(idx, entry.id, svg_record_from_item(item)))
    return report


async def migrate_legacy_entries(entries: Iterable[LegacyEntry], records, model_id: str) -> list[AssetRecord]:
    """Create one record per entry; failed entries are logged and left out.

    Does not remove anything from the settings and does not skip entries that
    were migrated before. ``run_legacy_migration`` prunes after a run.
    """
    report = await _migrate(entries, records, model_id)
    return [m.record for m in report.migrated]


def _without_migrated(settings: PluginSettings, migrated: Iterable[LegacyEntry]) -> PluginSettings:
    """Drop one entry per migrated (id, raw) pair from a fresh read of the settings."""
    pending = Counter((e.id, e.raw) for e in migrated)
    drop = []
    for idx, entry in enumerate(settings.legacy_entries):
        key = (entry.id, entry.raw)
        if pending[key] > 0:
            pending[key] -= 1
            drop.append(idx)
    return settings.without_entries(drop)


async def _prune_migrated(settings_store, settings: PluginSettings, report: MigrationReport, actor: dict | None) -> int:
    migrated = [settings.legacy_entries[m.entry_index] for m in report.migrated]
    before = settings
    after = settings.without_entries(m.entry_index for m in report.migrated)
    for attempt in range(1, PERSIST_ATTEMPTS + 1):
        try:
            await anyio.to_thread.run_sync(lambda: settings_store.persist(before, after, "legacy_migration", actor))
            return len(after.legacy_entries)
        except SettingsConflictError:
            logger.warning("migration_settings_conflict attempt=%s", attempt)
        before = await anyio.to_thread.run_sync(settings_store.get)
        after = _without_migrated(before, migrated)
    # The records exist but the blob still lists their entries; a plain re-run would duplicate them.
    report.alert = (
        f"Migrated {len(migrated)} SVGs but could not update the plugin settings; "
        "remove the migrated entries before running the migration again"
    )
    logger.warning("migration_prune_failed migrated=%s attempts=%s", len(migrated), PERSIST_ATTEMPTS)
    return len(before.legacy_entries)


async def run_legacy_migration(settings_store, adapters: Adapters, actor: dict | None = None) -> MigrationReport:
    settings = await anyio.to_thread.run_sync(settings_store.get)
    if not settings.is_ready:
        raise SetupIncompleteError("the SVG model has not been set up yet")
    if not settings.legacy_entries:
        return MigrationReport()
    report = await _migrate(settings.legacy_entries, adapters.records, settings.managed_model_id)
    remaining = len(settings.legacy_entries)
    if report.migrated:
        remaining = await _prune_migrated(settings_store, settings, report, actor)
    logger.info(
        "migration_finished migrated=%s failed=%s remaining=%s",
        len(report.migrated),
        report.failure_count,
        remaining,
    )
    return report
