"""Creates the managed SVG model and its fields."""

from __future__ import annotations

import logging

from app.models import SVG_TYPES

logger = logging.getLogger("svgsync.provisioning")

SCHEMA_KEY = "plugin_svg"
MODEL_NAME = "Plugin SVG"

FIELDS = (
    {
        "label": "Name",
        "api_key": "name",
        "field_type": "string",
        "validators": {"required": {}},
        "appearance": {"editor": "single_line", "parameters": {"heading": True}, "addons": []},
    },
    {
        "label": "SVG Content",
        "api_key": "svg_content",
        "field_type": "text",
        "validators": {"required": {}},
        "appearance": {"editor": "textarea", "parameters": {}, "addons": []},
    },
    {
        "label": "SVG Type",
        "api_key": "svg_type",
        "field_type": "string",
        "validators": {"enum": {"values": list(SVG_TYPES)}},
        "appearance": {"editor": "single_line", "parameters": {"heading": False}, "addons": []},
    },
    {
        "label": "Media Upload",
        "api_key": "media_upload",
        "field_type": "file",
        "validators": {},
        "appearance": {"editor": "file", "parameters": {}, "addons": []},
    },
)


async def provision_svg_model(schema) -> str:
    """Create the model, its fields and title field; return the model id."""
    item_type = await schema.create_item_type(
        {
            "name": MODEL_NAME,
            "api_key": SCHEMA_KEY,
            "singleton": False,
            "sortable": False,
            "modular_block": False,
            "collection_appearance": "table",
        }
    )
    model_id = str(item_type["id"])
    title_field_id = None
    for attrs in FIELDS:
        created = await schema.create_field(model_id, dict(attrs))
        if attrs["api_key"] == "name":
            title_field_id = str(created["id"])
    await schema.update_item_type(
        model_id,
        {},
        relationships={"title_field": {"data": {"type": "field", "id": title_field_id}}},
    )
    logger.info("model_provisioned model_id=%s", model_id)
    return model_id
