"""
Shared schema base and response envelope.
"""

from typing import Any, Optional
from pydantic import BaseModel
from tripfleet.app.domain.mapping import snake_to_camel


class CamelModel(BaseModel):
    """Base for API schemas: camelCase on the wire, snake_case in Python."""

    class Config:
        alias_generator = snake_to_camel
        populate_by_name = True
        from_attributes = True


def dump(model: Any) -> Any:
    """Serialise a schema (or list of schemas) to camelCase JSON-ready data."""
    if isinstance(model, BaseModel):
        return model.model_dump(by_alias=True, mode="json")
    if isinstance(model, list):
        return [dump(item) for item in model]
    return model


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope ``{success, data?, message?}``."""
    body = {"success": True}
    if data is not None:
        body["data"] = dump(data)
    if message:
        body["message"] = message
    return body


class PaginationMeta(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool
