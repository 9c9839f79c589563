"""
Collection Index Integration - DTOs (Data Transfer Objects)

Pydantic models mirroring collection-index.json as published by the
collection repository build. Used to validate a freshly downloaded index
before it is accepted into cache, and to read entries when browsing.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError

from .errors import IndexValidationError


class IndexEntry(BaseModel):
    """One element record inside the index (persona, skill, template...)."""
    model_config = ConfigDict(extra="allow")

    path: str
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    author: Optional[str] = None
    tags: List[str] = []
    sha: Optional[str] = None
    created: Optional[str] = None


class IndexMetadata(BaseModel):
    """Build statistics emitted by the index generator."""
    model_config = ConfigDict(extra="allow")

    build_time_ms: Optional[float] = None
    file_count: Optional[int] = None
    skipped_files: Optional[int] = None
    categories: Optional[int] = None
    nodejs_version: Optional[str] = None
    builder_version: Optional[str] = None


class CollectionIndex(BaseModel):
    """
    Required top-level structure of the index document.

    Only the shape is checked here; the raw dict is what gets cached and
    served, so unknown keys are allowed and preserved.
    """
    model_config = ConfigDict(extra="allow")

    version: StrictStr
    generated: StrictStr
    total_elements: Union[StrictInt, StrictFloat]
    index: Dict[str, Any]
    metadata: Dict[str, Any]


_FIELD_MESSAGES = {
    "version": "missing or invalid version",
    "generated": "missing or invalid generated timestamp",
    "total_elements": "missing or invalid total_elements",
    "index": "missing or invalid index object",
    "metadata": "missing or invalid metadata",
}


def validate_index(raw: Any) -> Dict[str, Any]:
    """
    Validate the top-level structure of a downloaded index.

    Returns the input dict untouched; raises IndexValidationError naming the
    first offending field.
    """
    if not isinstance(raw, dict):
        raise IndexValidationError("Invalid index: not an object")

    try:
        CollectionIndex.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else ""
        message = _FIELD_MESSAGES.get(field, f"invalid field {field}")
        raise IndexValidationError(f"Invalid index: {message}") from e

    return raw
