"""Postgres-backed plugin settings store."""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from svgkit import settings_fingerprint

from plugin_settings import DEFAULT_MAX_BYTES, PluginSettings, check_persist

from app.db import execute, fetch_all, fetch_one, get_conn

logger = logging.getLogger("svgsync.stores_db")

_SITE_ID: ContextVar[str] = ContextVar("site_id", default="default")

SCHEMA_SQL = """
create table if not exists plugin_settings (
    site_id text primary key,
    parameters jsonb not null,
    updated_at timestamptz not null
);
create table if not exists plugin_settings_audit (
    audit_id text primary key,
    site_id text not null,
    audit jsonb not null,
    created_at timestamptz not null
);
"""


def _json_dumps(value: object) -> str:
    return json.dumps(value, default=str)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def get_site_id() -> str:
    return _SITE_ID.get()


def set_site_id(value: str):
    return _SITE_ID.set(value)


def reset_site_id(token) -> None:
    _SITE_ID.reset(token)


def _ensure_json(value):
    if isinstance(value, str):
        return json.loads(value)
    return value


def ensure_schema() -> None:
    with get_conn() as conn:
        execute(conn, SCHEMA_SQL, query_name="plugin_settings.ensure_schema")


class DbSettingsStore:
    """Same contract as ``plugin_settings.SettingsStore``, one row per site."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self._max_bytes = max_bytes

    def get(self) -> PluginSettings:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select parameters from plugin_settings where site_id=%s",
                [get_site_id()],
                query_name="plugin_settings.get",
            )
        return PluginSettings.from_parameters(_ensure_json(row["parameters"]) if row else {})

    def persist(
        self,
        before: PluginSettings,
        after: PluginSettings,
        reason: str = "update",
        actor: dict | None = None,
    ) -> PluginSettings:
        site_id = get_site_id()
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select parameters from plugin_settings where site_id=%s for update",
                [site_id],
                query_name="plugin_settings.lock",
            )
            current = PluginSettings.from_parameters(_ensure_json(row["parameters"]) if row else {})
            check_persist(current, before, after, self._max_bytes)
            execute(
                conn,
                """
                insert into plugin_settings (site_id, parameters, updated_at)
                values (%s,%s,%s)
                on conflict (site_id) do update set parameters=excluded.parameters, updated_at=excluded.updated_at
                """,
                [site_id, _json_dumps(after.to_parameters()), _now()],
                query_name="plugin_settings.upsert",
            )
            audit_id = str(uuid.uuid4())
            audit = {
                "id": audit_id,
                "reason": reason,
                "actor": actor,
                "before": before.to_parameters(),
                "after": after.to_parameters(),
                "fingerprint": settings_fingerprint(after.to_parameters()),
                "at": _now(),
            }
            execute(
                conn,
                """
                insert into plugin_settings_audit (audit_id, site_id, audit, created_at)
                values (%s,%s,%s,%s)
                """,
                [audit_id, site_id, _json_dumps(audit), _now()],
                query_name="plugin_settings_audit.insert",
            )
        logger.info("settings_persisted site_id=%s reason=%s", site_id, reason)
        return after

    def history(self) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select audit from plugin_settings_audit where site_id=%s
                order by created_at asc
                """,
                [get_site_id()],
                query_name="plugin_settings_audit.history",
            )
        return [_ensure_json(r["audit"]) for r in rows]
