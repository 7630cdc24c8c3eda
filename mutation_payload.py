"""Strict validation of pre-commit item upsert payloads.

The host hands the hook a JSON:API document whose attribute bag only
contains the fields that changed. Recognised fields are tagged as absent,
set or cleared; anything else is listed in ``ignored_fields`` and never
probed further.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict

FIELD_ABSENT = "absent"
FIELD_SET = "set"
FIELD_CLEARED = "cleared"

RECOGNISED_FIELDS = ("name", "svg_content", "media_upload")


@dataclass
class PayloadError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return self.message


@dataclass
class PayloadValidationError(PayloadError):
    code: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


def _raise(code: str, message: str, path: str | None = None) -> None:
    raise PayloadValidationError(code=code, message=message, path=path)


@dataclass(frozen=True)
class FieldChange:
    state: str = FIELD_ABSENT
    value: Any = None

    @property
    def is_set(self) -> bool:
        return self.state == FIELD_SET

    @property
    def is_cleared(self) -> bool:
        return self.state == FIELD_CLEARED


@dataclass(frozen=True)
class UploadRef:
    upload_id: str
    url: str | None = None


@dataclass(frozen=True)
class MutationAttributes:
    name: FieldChange = field(default_factory=FieldChange)
    svg_content: FieldChange = field(default_factory=FieldChange)
    media_upload: FieldChange = field(default_factory=FieldChange)
    ignored_fields: tuple = ()


@dataclass(frozen=True)
class MutationEvent:
    record_id: str | None
    model_id: str | None
    attributes: MutationAttributes

    @property
    def is_update(self) -> bool:
        return self.record_id is not None


def _string_change(attrs: Dict[str, Any], key: str) -> FieldChange:
    if key not in attrs:
        return FieldChange()
    value = attrs[key]
    if value is None:
        return FieldChange(FIELD_CLEARED)
    if not isinstance(value, str):
        _raise("ATTRIBUTE_INVALID", f"{key} must be string or null", f"data.attributes.{key}")
    return FieldChange(FIELD_SET, value)


def _upload_change(attrs: Dict[str, Any]) -> FieldChange:
    if "media_upload" not in attrs:
        return FieldChange()
    value = attrs["media_upload"]
    if value is None:
        return FieldChange(FIELD_CLEARED)
    path = "data.attributes.media_upload"
    if not isinstance(value, dict):
        _raise("MEDIA_UPLOAD_INVALID", "media_upload must be object or null", path)
    upload_id = value.get("upload_id")
    if not isinstance(upload_id, str) or not upload_id:
        _raise("MEDIA_UPLOAD_INVALID", "media_upload.upload_id must be non-empty string", f"{path}.upload_id")
    url = value.get("url")
    if url is not None and not isinstance(url, str):
        _raise("MEDIA_UPLOAD_INVALID", "media_upload.url must be string or null", f"{path}.url")
    return FieldChange(FIELD_SET, UploadRef(upload_id=upload_id, url=url))


def _model_id(data: Dict[str, Any]) -> str | None:
    relationships = data.get("relationships")
    if relationships is None:
        return None
    if not isinstance(relationships, dict):
        _raise("RELATIONSHIPS_INVALID", "relationships must be object", "data.relationships")
    item_type = relationships.get("item_type")
    if item_type is None:
        return None
    if not isinstance(item_type, dict) or not isinstance(item_type.get("data"), dict):
        _raise("ITEM_TYPE_INVALID", "item_type must wrap a data object", "data.relationships.item_type")
    model_id = item_type["data"].get("id")
    if not isinstance(model_id, str) or not model_id:
        _raise("ITEM_TYPE_INVALID", "item_type.data.id must be non-empty string", "data.relationships.item_type.data.id")
    return model_id


def parse_mutation_payload(payload: Any) -> MutationEvent:
    if not isinstance(payload, dict):
        _raise("PAYLOAD_INVALID", "payload must be object")
    data = payload.get("data")
    if not isinstance(data, dict):
        _raise("DATA_INVALID", "data must be object", "data")

    resource_type = data.get("type")
    if resource_type is not None and resource_type != "item":
        _raise("DATA_TYPE_INVALID", "data.type must be 'item'", "data.type")

    record_id = data.get("id")
    if record_id is not None and (not isinstance(record_id, str) or not record_id):
        _raise("RECORD_ID_INVALID", "data.id must be non-empty string or absent", "data.id")

    attrs = data.get("attributes")
    if attrs is None:
        attrs = {}
    if not isinstance(attrs, dict):
        _raise("ATTRIBUTES_INVALID", "attributes must be object", "data.attributes")

    attributes = MutationAttributes(
        name=_string_change(attrs, "name"),
        svg_content=_string_change(attrs, "svg_content"),
        media_upload=_upload_change(attrs),
        ignored_fields=tuple(sorted(k for k in attrs if k not in RECOGNISED_FIELDS)),
    )
    return MutationEvent(record_id=record_id, model_id=_model_id(data), attributes=attributes)


def make_mutation_payload(attributes: dict, record_id: str | None = None, model_id: str | None = None) -> dict:
    data: Dict[str, Any] = {"type": "item", "attributes": copy.deepcopy(attributes)}
    if record_id is not None:
        data["id"] = record_id
    if model_id is not None:
        data["relationships"] = {"item_type": {"data": {"type": "item_type", "id": model_id}}}
    payload = {"data": data}
    parse_mutation_payload(payload)
    return payload
