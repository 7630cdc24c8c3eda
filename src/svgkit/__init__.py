"""SVG sync kernel utilities."""

from .settings_codec import SettingsCodecTypeError, canonical_dumps, canonical_size, settings_fingerprint
from .svg_markup import is_svg, svg_bytes, svg_filename

__all__ = [
    "SettingsCodecTypeError",
    "canonical_dumps",
    "canonical_size",
    "settings_fingerprint",
    "is_svg",
    "svg_bytes",
    "svg_filename",
]
