"""Record normalization and input validation for SVG records."""

from __future__ import annotations

from typing import Any

from svgkit import is_svg

from app.models import SVG_TYPE_IMAGE, SVG_TYPE_SVG, SVG_TYPES, AssetRecord, AssetRef

MAX_NAME_LENGTH = 255


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> dict:
    return {"code": code, "message": message, "path": path, "detail": detail}


def asset_ref_from_value(value: Any) -> AssetRef | None:
    if not isinstance(value, dict):
        return None
    upload_id = value.get("upload_id")
    if not isinstance(upload_id, str) or not upload_id:
        return None
    url = value.get("url")
    return AssetRef(upload_id=upload_id, url=url if isinstance(url, str) else None)


def item_type_id(item: dict) -> str | None:
    # Flattened CMA items carry item_type directly; raw JSON:API ones nest it.
    rel = item.get("item_type")
    if isinstance(rel, dict) and isinstance(rel.get("id"), str):
        return rel["id"]
    if isinstance(rel, str):
        return rel
    relationships = item.get("relationships")
    if isinstance(relationships, dict):
        data = (relationships.get("item_type") or {}).get("data")
        if isinstance(data, dict) and isinstance(data.get("id"), str):
            return data["id"]
    return None


def svg_record_from_item(item: dict) -> AssetRecord:
    attrs = item.get("attributes") if isinstance(item.get("attributes"), dict) else item
    media = asset_ref_from_value(attrs.get("media_upload"))
    svg_type = attrs.get("svg_type")
    if svg_type not in SVG_TYPES:
        svg_type = SVG_TYPE_IMAGE if media else SVG_TYPE_SVG
    name = attrs.get("name")
    content = attrs.get("svg_content")
    return AssetRecord(
        id=str(item.get("id")),
        name=name if isinstance(name, str) and name else "Untitled",
        svg_content=content if isinstance(content, str) else "",
        svg_type=svg_type,
        media_upload=media,
    )


def validate_svg_input(data: Any, for_create: bool) -> tuple[list[dict], dict]:
    """Validate a create/rename request body; returns (errors, cleaned)."""
    if not isinstance(data, dict):
        return [_issue("INVALID_PAYLOAD", "Request body must be an object")], {}
    errors: list[dict] = []
    cleaned: dict = {}

    name = data.get("name", data.get("filename"))
    if name is not None or not for_create:
        if not isinstance(name, str) or not name.strip():
            errors.append(_issue("NAME_INVALID", "name must be a non-empty string", "name"))
        elif len(name.strip()) > MAX_NAME_LENGTH:
            errors.append(_issue("NAME_TOO_LONG", f"name must be at most {MAX_NAME_LENGTH} characters", "name"))
        else:
            cleaned["name"] = name.strip()

    if for_create:
        content = data.get("content", data.get("svg_content"))
        if not isinstance(content, str) or not content.strip():
            errors.append(_issue("CONTENT_REQUIRED", "content is required", "content"))
        elif not is_svg(content):
            errors.append(_issue("INVALID_SVG", "content is not well-formed SVG markup", "content"))
        else:
            cleaned["content"] = content
        upload = data.get("upload_to_media_library", False)
        if not isinstance(upload, bool):
            errors.append(_issue("UPLOAD_FLAG_INVALID", "upload_to_media_library must be a boolean", "upload_to_media_library"))
        else:
            cleaned["upload_to_media_library"] = upload

    return errors, cleaned
