"""Plugin settings value and in-memory store with compare-and-set persistence."""

from __future__ import annotations

import copy
import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from svgkit import canonical_size, settings_fingerprint

DEFAULT_MAX_BYTES = 64 * 1024

KEY_SETUP_COMPLETE = "isSetupComplete"
KEY_MODEL_ID = "svgModelId"
KEY_LEGACY = "svgs"
_OWN_KEYS = (KEY_SETUP_COMPLETE, KEY_MODEL_ID, KEY_LEGACY)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class SettingsError(Exception):
    message: str
    code: str = "SETTINGS_ERROR"

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message}"


@dataclass
class SettingsConflictError(SettingsError):
    code: str = "SETTINGS_CONFLICT"


@dataclass
class SettingsTooLargeError(SettingsError):
    code: str = "SETTINGS_TOO_LARGE"
    size: int = 0
    limit: int = 0


@dataclass(frozen=True)
class LegacyEntry:
    """One SVG embedded in the settings blob by earlier plugin versions."""

    id: str
    raw: str
    filename: str | None = None
    kind: str = "svg"
    image_id: str | None = None
    url: str | None = None
    # (value,) as read from the blob, written back unchanged; empty for entries built in code.
    source: tuple = field(default=(), compare=False, repr=False)

    @property
    def has_asset_ref(self) -> bool:
        return bool(self.image_id)

    @classmethod
    def from_dict(cls, value: Any) -> "LegacyEntry":
        if not isinstance(value, dict):
            return cls(id="", raw="", source=(copy.deepcopy(value),))
        raw = value.get("raw")
        filename = value.get("filename")
        image_id = value.get("imageId")
        url = value.get("url")
        return cls(
            id=str(value.get("id") or ""),
            raw=raw if isinstance(raw, str) else "",
            filename=filename if isinstance(filename, str) and filename else None,
            kind="image" if value.get("type") == "image" else "svg",
            image_id=image_id if isinstance(image_id, str) and image_id else None,
            url=url if isinstance(url, str) and url else None,
            source=(copy.deepcopy(value),),
        )

    def to_dict(self) -> Any:
        if self.source:
            return copy.deepcopy(self.source[0])
        item: Dict[str, Any] = {"id": self.id, "raw": self.raw, "type": self.kind}
        if self.filename is not None:
            item["filename"] = self.filename
        if self.image_id is not None:
            item["imageId"] = self.image_id
        if self.url is not None:
            item["url"] = self.url
        return item


@dataclass(frozen=True)
class PluginSettings:
    setup_complete: bool = False
    managed_model_id: str | None = None
    legacy_entries: tuple = ()
    extra: dict = field(default_factory=dict)

    @property
    def is_ready(self) -> bool:
        return self.setup_complete and bool(self.managed_model_id)

    @classmethod
    def from_parameters(cls, params: Any) -> "PluginSettings":
        if not isinstance(params, dict):
            params = {}
        model_id = params.get(KEY_MODEL_ID)
        legacy = params.get(KEY_LEGACY)
        return cls(
            setup_complete=params.get(KEY_SETUP_COMPLETE) is True,
            managed_model_id=model_id if isinstance(model_id, str) and model_id else None,
            legacy_entries=tuple(LegacyEntry.from_dict(e) for e in legacy) if isinstance(legacy, list) else (),
            extra={k: copy.deepcopy(v) for k, v in params.items() if k not in _OWN_KEYS},
        )

    def to_parameters(self) -> dict:
        params = copy.deepcopy(self.extra)
        params[KEY_SETUP_COMPLETE] = self.setup_complete
        params[KEY_MODEL_ID] = self.managed_model_id
        params[KEY_LEGACY] = [e.to_dict() for e in self.legacy_entries]
        return params

    def mark_ready(self, model_id: str) -> "PluginSettings":
        return dataclasses.replace(self, setup_complete=True, managed_model_id=model_id)

    def without_entries(self, indexes: Iterable[int]) -> "PluginSettings":
        drop = set(indexes)
        kept = tuple(e for idx, e in enumerate(self.legacy_entries) if idx not in drop)
        return dataclasses.replace(self, legacy_entries=kept)


def check_persist(current: PluginSettings, before: PluginSettings, after: PluginSettings, max_bytes: int) -> None:
    """Raise unless ``before`` matches ``current`` and ``after`` fits the ceiling."""
    if current.to_parameters() != before.to_parameters():
        raise SettingsConflictError("settings changed since they were read")
    size = canonical_size(after.to_parameters())
    # Shrinking an oversized blob must stay possible, so only growth is refused.
    if size > max_bytes and size > canonical_size(before.to_parameters()):
        raise SettingsTooLargeError(
            f"settings would be {size} bytes, limit is {max_bytes}",
            size=size,
            limit=max_bytes,
        )


class SettingsStore:
    def __init__(self, initial: PluginSettings | None = None, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self._current = initial or PluginSettings()
        self._max_bytes = max_bytes
        self._audit: List[dict] = []

    def get(self) -> PluginSettings:
        return self._current

    def persist(
        self,
        before: PluginSettings,
        after: PluginSettings,
        reason: str = "update",
        actor: dict | None = None,
    ) -> PluginSettings:
        check_persist(self._current, before, after, self._max_bytes)
        self._audit.append(
            {
                "id": str(uuid.uuid4()),
                "reason": reason,
                "actor": copy.deepcopy(actor),
                "before": before.to_parameters(),
                "after": after.to_parameters(),
                "fingerprint": settings_fingerprint(after.to_parameters()),
                "at": _now(),
            }
        )
        self._current = after
        return after

    def history(self) -> list[dict]:
        return list(self._audit)
