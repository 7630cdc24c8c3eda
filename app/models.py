"""Value types shared by the record, asset and sync layers."""

from __future__ import annotations

from dataclasses import dataclass

SVG_TYPE_SVG = "svg"
SVG_TYPE_IMAGE = "image"
SVG_TYPES = (SVG_TYPE_SVG, SVG_TYPE_IMAGE)


@dataclass(frozen=True)
class Credentials:
    api_token: str
    environment: str | None = None

    def __repr__(self) -> str:
        return f"Credentials(api_token=<redacted>, environment={self.environment!r})"


@dataclass(frozen=True)
class AssetRef:
    """Reference from a record's file field to a media library upload."""

    upload_id: str
    url: str | None = None

    def to_field_value(self) -> dict:
        return {"upload_id": self.upload_id}


@dataclass(frozen=True)
class Asset:
    id: str
    address: str
    url: str | None = None


@dataclass
class AssetRecord:
    id: str
    name: str
    svg_content: str
    svg_type: str = SVG_TYPE_SVG
    media_upload: AssetRef | None = None

    def to_dict(self) -> dict:
        media = None
        if self.media_upload is not None:
            media = {"upload_id": self.media_upload.upload_id, "url": self.media_upload.url}
        return {
            "id": self.id,
            "name": self.name,
            "svg_content": self.svg_content,
            "svg_type": self.svg_type,
            "media_upload": media,
        }
