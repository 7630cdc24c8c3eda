"""Pre-commit item upsert hook."""

from __future__ import annotations

import dataclasses
import logging

from mutation_payload import PayloadValidationError, parse_mutation_payload

from plugin_settings import PluginSettings

from app.adapters import AdapterFactory
from app.background import BackgroundTasks
from app.media_sync import SyncContext, sync_asset_from_source
from app.models import Credentials

logger = logging.getLogger("svgsync.hooks")


def on_before_item_upsert(
    payload,
    credentials: Credentials,
    environment: str | None,
    settings: PluginSettings,
    runner: BackgroundTasks,
    adapter_factory: AdapterFactory,
) -> bool:
    """Schedule a media sync for the upsert and allow it straight away.

    The host never waits on the upload; the result only shows up in the logs.
    """
    if not settings.is_ready:
        return True
    try:
        event = parse_mutation_payload(payload)
    except PayloadValidationError as exc:
        logger.debug("hook_payload_rejected code=%s path=%s", exc.code, exc.path)
        return True
    if environment and environment != credentials.environment:
        credentials = dataclasses.replace(credentials, environment=environment)
    context = SyncContext(managed_model_id=settings.managed_model_id, adapter_factory=adapter_factory)
    runner.spawn(f"sync:{event.record_id or 'new'}", sync_asset_from_source(event, credentials, context))
    return True
