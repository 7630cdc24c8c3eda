"""Error taxonomy for sync, migration and setup operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SvgSyncError(Exception):
    message: str
    code: str = "SVG_SYNC_ERROR"

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message}"


@dataclass
class ValidationSkip(SvgSyncError):
    code: str = "VALIDATION_SKIP"


@dataclass
class InvalidSvgError(ValidationSkip):
    code: str = "INVALID_SVG"


@dataclass
class FetchFailure(SvgSyncError):
    code: str = "FETCH_FAILURE"


@dataclass
class UploadFailure(SvgSyncError):
    code: str = "UPLOAD_FAILURE"


@dataclass
class OrphanResource(SvgSyncError):
    code: str = "ORPHAN_RESOURCE"
    resource_id: str | None = None


@dataclass
class RecordWriteFailure(SvgSyncError):
    code: str = "RECORD_WRITE_FAILURE"
    orphan_asset_id: str | None = None


@dataclass
class SetupIncompleteError(SvgSyncError):
    code: str = "SETUP_INCOMPLETE"

