"""Canonical encoding of plugin settings blobs.

The host stores plugin parameters as one JSON document with a hard size
ceiling, so sizes and fingerprints are always computed on the canonical form.
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any


class SettingsCodecTypeError(TypeError):
    """Raised when a settings value cannot be stored as plain JSON."""


def _check(value: Any, path: str = "$") -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SettingsCodecTypeError(f"Non-string key at {path}: {type(key).__name__}")
            _check(item, f"{path}.{key}")
        return
    if isinstance(value, (list, tuple)):
        for idx, item in enumerate(value):
            _check(item, f"{path}[{idx}]")
        return
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Non-finite float at {path}: {value!r}")
    if value is None or isinstance(value, (str, int, float, bool)):
        return
    raise SettingsCodecTypeError(f"Unsupported type at {path}: {type(value).__name__}")


def canonical_dumps(value: Any) -> str:
    """Serialize with sorted keys, no whitespace and non-ASCII preserved."""
    _check(value)
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def canonical_size(value: Any) -> int:
    """Size in UTF-8 bytes of the canonical encoding."""
    return len(canonical_dumps(value).encode("utf-8"))


def settings_fingerprint(value: Any) -> str:
    digest = hashlib.sha256(canonical_dumps(value).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"
