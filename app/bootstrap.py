"""Recovers the pointer to the managed SVG model after lost settings."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import anyio

from app.provisioning import SCHEMA_KEY

logger = logging.getLogger("svgsync.bootstrap")

UNINITIALIZED = "uninitialized"
READY = "ready"


class BootstrapReconciler:
    def __init__(self, settings_store, schema) -> None:
        self._settings = settings_store
        self._schema = schema

    async def _mark_ready(self, settings, model_id: str, reason: str) -> None:
        after = settings.mark_ready(model_id)
        await anyio.to_thread.run_sync(lambda: self._settings.persist(settings, after, reason))

    async def reconcile(self) -> str:
        settings = await anyio.to_thread.run_sync(self._settings.get)
        if settings.is_ready:
            return READY
        try:
            existing = await self._schema.find_by_api_key(SCHEMA_KEY)
        except Exception as exc:
            logger.warning("bootstrap_probe_failed schema_key=%s error=%s", SCHEMA_KEY, exc)
            return UNINITIALIZED
        if not existing:
            logger.info("bootstrap_model_missing schema_key=%s", SCHEMA_KEY)
            return UNINITIALIZED
        model_id = str(existing["id"])
        await self._mark_ready(settings, model_id, "bootstrap_recovered")
        logger.info("bootstrap_recovered model_id=%s", model_id)
        return READY

    async def complete_setup(self, provisioner: Callable[[object], Awaitable[str]]) -> str:
        """Explicit setup: create the model, then record it in the settings."""
        state = await self.reconcile()
        if state == READY:
            return READY
        settings = await anyio.to_thread.run_sync(self._settings.get)
        model_id = await provisioner(self._schema)
        await self._mark_ready(settings, model_id, "setup_completed")
        logger.info("setup_completed model_id=%s", model_id)
        return READY
