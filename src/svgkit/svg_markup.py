"""Well-formedness checks for SVG markup."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any

SVG_MIME_TYPE = "image/svg+xml"


def _local_name(tag: str) -> str:
    # "{http://www.w3.org/2000/svg}svg" -> "svg"
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def is_svg(value: Any) -> bool:
    """True when ``value`` parses as XML whose root element is ``<svg>``."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not text or "<svg" not in text.lower():
        return False
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return False
    return _local_name(root.tag).lower() == "svg"


def svg_filename(name: str | None, default: str = "untitled") -> str:
    base = (name or "").strip() or default
    base = base.replace("..", "_").replace("/", "_").replace("\\", "_")
    if base.lower().endswith(".svg"):
        return base
    return f"{base}.svg"


def svg_bytes(content: str) -> bytes:
    return content.encode("utf-8")
