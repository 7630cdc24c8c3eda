"""HTTP surface for the SVG sync service."""

from __future__ import annotations

import logging
import time

import anyio
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from plugin_settings import SettingsConflictError, SettingsStore, SettingsTooLargeError

from app import config
from app.adapters import cma_adapters
from app.auth import ApiSecretMiddleware
from app.background import BackgroundTasks
from app.bootstrap import BootstrapReconciler
from app.db import close_pool
from app.errors import FetchFailure, InvalidSvgError, RecordWriteFailure, SetupIncompleteError, UploadFailure
from app.hooks import on_before_item_upsert
from app.media_sync import SYNC_SYNCED, SyncContext, sync_stored_record
from app.migration import run_legacy_migration
from app.models import Credentials
from app.provisioning import provision_svg_model
from app.records_validation import validate_svg_input
from app.stores import memory_adapters
from app.stores_db import DbSettingsStore, ensure_schema, reset_site_id, set_site_id
from app.svg_records import SvgLibrary, selectable_svgs

app = FastAPI(title="SVG Sync")
logger = logging.getLogger("svgsync")
logging.basicConfig(level=logging.INFO)

_CORS_ORIGINS = {"https://admin.datocms.com", "https://plugins-cdn.datocms.com"} | config.cors_origins()

USE_DB = config.use_db()
DISABLE_AUTH = config.auth_disabled()
logger.info("auth_disabled=%s use_db=%s memory_stores=%s", DISABLE_AUTH, USE_DB, config.memory_stores())

if USE_DB:
    settings_store = DbSettingsStore(max_bytes=config.settings_max_bytes())
else:
    settings_store = SettingsStore(max_bytes=config.settings_max_bytes())

if config.memory_stores():
    _memory = memory_adapters()

    def adapter_factory(credentials: Credentials):
        return _memory

else:
    adapter_factory = cma_adapters

background = BackgroundTasks()


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
        "alert": message,
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(
    payload: dict,
    notice: str | None = None,
    warnings: list | None = None,
    status: int = 200,
    alert: str | None = None,
) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    if notice:
        body["notice"] = notice
    if alert:
        body["alert"] = alert
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _credentials(request: Request) -> Credentials | None:
    token = (request.headers.get("X-Dato-Api-Token") or "").strip()
    if not token:
        return None
    environment = (request.headers.get("X-Dato-Environment") or "").strip() or None
    return Credentials(api_token=token, environment=environment)


def _missing_credentials() -> JSONResponse:
    return _error_response("CREDENTIALS_REQUIRED", "An API token is required", path="X-Dato-Api-Token", status=401)


async def _settings():
    return await anyio.to_thread.run_sync(settings_store.get)


async def _library(credentials: Credentials) -> SvgLibrary:
    settings = await _settings()
    if not settings.is_ready:
        raise SetupIncompleteError("the SVG model has not been set up yet")
    return SvgLibrary(adapter_factory(credentials), settings.managed_model_id)


class SiteContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        token = set_site_id((request.headers.get("X-Dato-Site-Id") or "").strip() or "default")
        try:
            return await call_next(request)
        finally:
            reset_site_id(token)


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    total_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s total_ms=%.1f", request.method, request.url.path, response.status_code, total_ms)
    return response


@app.exception_handler(SetupIncompleteError)
async def setup_incomplete_handler(request: Request, exc: SetupIncompleteError):
    return _error_response(exc.code, exc.message, status=409)


@app.exception_handler(SettingsConflictError)
async def settings_conflict_handler(request: Request, exc: SettingsConflictError):
    return _error_response(exc.code, exc.message, status=409)


@app.exception_handler(SettingsTooLargeError)
async def settings_too_large_handler(request: Request, exc: SettingsTooLargeError):
    return _error_response(exc.code, exc.message, detail={"size": exc.size, "limit": exc.limit}, status=413)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response("INTERNAL_ERROR", "Unexpected server error", detail={"error": str(exc)}, status=500)


app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(_CORS_ORIGINS),
    allow_origin_regex=r"http://localhost:\d+|http://127\.0\.0\.1:\d+",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SiteContextMiddleware)
if not DISABLE_AUTH:
    if not config.api_secret():
        raise RuntimeError("SVGSYNC_API_SECRET is required for auth")
    app.add_middleware(ApiSecretMiddleware, secret=config.api_secret())


@app.on_event("startup")
async def _startup() -> None:
    if USE_DB:
        await anyio.to_thread.run_sync(ensure_schema)


@app.on_event("shutdown")
async def _shutdown() -> None:
    pending = background.pending()
    if pending:
        logger.info("shutdown_draining tasks=%s", pending)
    await background.drain()
    if USE_DB:
        close_pool()


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/settings")
async def get_settings() -> JSONResponse:
    settings = await _settings()
    return _ok_response({"settings": settings.to_parameters(), "ready": settings.is_ready})


@app.get("/settings/history")
async def get_settings_history() -> JSONResponse:
    history = await anyio.to_thread.run_sync(settings_store.history)
    return _ok_response({"history": history})


@app.post("/boot")
async def boot(request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    reconciler = BootstrapReconciler(settings_store, adapter_factory(credentials).schema)
    state = await reconciler.reconcile()
    settings = await _settings()
    return _ok_response({"state": state, "settings": settings.to_parameters()})


@app.post("/setup")
async def setup(request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    reconciler = BootstrapReconciler(settings_store, adapter_factory(credentials).schema)
    try:
        state = await reconciler.complete_setup(provision_svg_model)
    except (SettingsConflictError, SettingsTooLargeError):
        raise
    except Exception as exc:
        logger.warning("setup_failed error=%s", exc)
        return _error_response("SETUP_FAILED", f"Could not create the SVG model: {exc}", status=502)
    settings = await _settings()
    return _ok_response({"state": state, "settings": settings.to_parameters()}, notice="SVG model is ready")


@app.post("/hooks/before-item-upsert")
async def before_item_upsert(request: Request) -> JSONResponse:
    credentials = _credentials(request)
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    # The hook must never block the host's save.
    if credentials is not None and payload is not None:
        try:
            settings = await _settings()
            on_before_item_upsert(
                payload,
                credentials,
                credentials.environment,
                settings,
                background,
                adapter_factory,
            )
        except Exception as exc:
            logger.warning("hook_failed error=%s", exc)
    return JSONResponse({"ok": True, "allow": True})


@app.get("/svgs")
async def list_svgs(request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    library = await _library(credentials)
    try:
        records = await library.list_svg_records()
    except Exception as exc:
        logger.warning("svg_list_failed error=%s", exc)
        return _error_response("FETCH_FAILURE", "Could not load SVGs", detail={"error": str(exc)}, status=502)
    return _ok_response({"svgs": [r.to_dict() for r in records]})


@app.post("/svgs")
async def create_svg(request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    try:
        body = await request.json()
    except ValueError:
        body = None
    errors, cleaned = validate_svg_input(body, for_create=True)
    if errors:
        return JSONResponse(
            {"ok": False, "errors": errors, "warnings": [], "alert": errors[0]["message"]},
            status_code=400,
        )
    library = await _library(credentials)
    name = cleaned.get("name") or "Untitled SVG"
    try:
        if cleaned.get("upload_to_media_library"):
            record = await library.create_managed_asset(cleaned["content"], name)
        else:
            record = await library.create_svg_record(cleaned["content"], name)
    except InvalidSvgError as exc:
        return _error_response(exc.code, exc.message, path="content")
    except UploadFailure as exc:
        return _error_response(exc.code, "Could not upload the SVG to the media library", detail={"error": exc.message}, status=502)
    except RecordWriteFailure as exc:
        detail = {"error": exc.message, "orphan_asset_id": exc.orphan_asset_id}
        return _error_response(exc.code, "Could not save the SVG", detail=detail, status=502)
    return _ok_response({"svg": record.to_dict()}, notice="SVG saved", status=201)


@app.patch("/svgs/{record_id}")
async def rename_svg(record_id: str, request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    try:
        body = await request.json()
    except ValueError:
        body = None
    errors, cleaned = validate_svg_input(body, for_create=False)
    if errors:
        return JSONResponse(
            {"ok": False, "errors": errors, "warnings": [], "alert": errors[0]["message"]},
            status_code=400,
        )
    library = await _library(credentials)
    try:
        record = await library.rename_svg_record(record_id, cleaned["name"])
    except RecordWriteFailure as exc:
        return _error_response(exc.code, "Could not rename the SVG", detail={"error": exc.message}, status=502)
    return _ok_response({"svg": record.to_dict()}, notice="SVG renamed")


@app.delete("/svgs/{record_id}")
async def delete_svg(record_id: str, request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    library = await _library(credentials)
    try:
        await library.delete_svg_record(record_id)
    except FetchFailure as exc:
        return _error_response(exc.code, "SVG not found", detail={"error": exc.message}, status=404)
    except RecordWriteFailure as exc:
        return _error_response(exc.code, "Could not delete the SVG", detail={"error": exc.message}, status=502)
    return _ok_response({"deleted": record_id}, notice="SVG deleted")


@app.post("/svgs/{record_id}/sync")
async def sync_svg(record_id: str, request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    settings = await _settings()
    if not settings.is_ready:
        raise SetupIncompleteError("the SVG model has not been set up yet")
    context = SyncContext(managed_model_id=settings.managed_model_id, adapter_factory=adapter_factory)
    result = await sync_stored_record(record_id, credentials, context)
    payload = {"status": result.status, "code": result.code, "record_id": result.record_id, "asset_id": result.asset_id}
    if not result.ok:
        return _error_response(result.code or "SYNC_FAILED", "Could not update the media library", detail={"error": result.detail}, status=502)
    if result.status == SYNC_SYNCED:
        return _ok_response(payload, notice="Media library updated")
    return _ok_response(payload, notice="Nothing to sync")


@app.post("/migrations/legacy")
async def migrate_legacy(request: Request) -> JSONResponse:
    credentials = _credentials(request)
    if credentials is None:
        return _missing_credentials()
    report = await run_legacy_migration(settings_store, adapter_factory(credentials), actor={"source": "api"})
    payload = report.to_dict()
    alerts = []
    warnings = []
    if report.failure_count:
        message = f"{report.failure_count} SVGs could not be migrated"
        alerts.append(message)
        warnings.append({"code": "PARTIAL_MIGRATION", "message": message})
    if report.alert:
        alerts.append(report.alert)
        warnings.append({"code": "SETTINGS_NOT_PRUNED", "message": report.alert})
    notice = f"Migrated {len(report.migrated)} SVGs" if report.migrated or not alerts else None
    return _ok_response(payload, notice=notice, warnings=warnings, alert=". ".join(alerts) or None)


@app.get("/field/svgs")
async def field_svgs(request: Request, show_all: bool = True) -> JSONResponse:
    credentials = _credentials(request)
    settings = await _settings()
    records = []
    if settings.is_ready and credentials is not None:
        try:
            records = await SvgLibrary(adapter_factory(credentials), settings.managed_model_id).list_svg_records()
        except Exception as exc:
            logger.warning("svg_list_failed error=%s", exc)
            return _error_response("FETCH_FAILURE", "Could not load SVGs", detail={"error": str(exc)}, status=502)
    selected = [{"id": i} for i in request.query_params.getlist("selected")]
    params = {"showAllSvgs": show_all, "selectedSvgs": selected}
    return _ok_response({"svgs": selectable_svgs(settings, records, params)})
