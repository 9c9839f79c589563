"""
Collection Browser - read-only views over the cached collection index.

Browsing never fails hard: when the index cannot be obtained `browse`
returns None and `search` returns an empty list, so callers can fall back
to another source.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from dollhouse.core.services.collection.index_manager import CollectionIndexManager
from dollhouse.integrations.collection.errors import CollectionIndexError
from dollhouse.integrations.collection.types import IndexEntry

logger = logging.getLogger(__name__)

COLLECTION_REPO = "DollhouseMCP/collection"
SECTIONS = ("library", "showcase", "catalog")

# Element types the MCP tools can act on; memories and ensembles stay hidden.
MCP_SUPPORTED_TYPES = ("personas", "skills", "agents", "templates")


class CollectionIndexBrowser:
    """Browse and search the collection through CollectionIndexManager."""

    def __init__(self, manager: CollectionIndexManager, repo: str = COLLECTION_REPO):
        self.manager = manager
        self.repo = repo

    async def _load_index(self) -> Optional[Dict[str, Any]]:
        try:
            return await self.manager.get_index()
        except CollectionIndexError as e:
            logger.debug("Failed to browse from collection index: %s", e)
            return None

    async def browse(
        self, section: Optional[str] = None, element_type: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        List sections, element types, or files of one element type.

        Returns dict with:
        - items: GitHub-contents-like file entries
        - categories: element type directories (library without type)
        - sections: top-level sections (no section given)
        """
        index = await self._load_index()
        if index is None:
            return None

        if not section:
            sections = [{"name": name, "type": "dir"} for name in SECTIONS]
            return {"items": [], "categories": [], "sections": sections}

        if section == "library" and not element_type:
            return {"items": [], "categories": self._content_types(index)}

        entries = self._entries_for(index, section, element_type)
        return {"items": [self._to_github_item(e) for e in entries], "categories": []}

    async def search(
        self, query: str, element_type: Optional[str] = None, limit: int = 20
    ) -> List[Dict[str, Any]]:
        """Case-insensitive match on name, description and tags."""
        needle = (query or "").strip().lower()
        if not needle:
            return []

        index = await self._load_index()
        if index is None:
            return []

        matches: List[Dict[str, Any]] = []
        for type_name, raw_entries in index.get("index", {}).items():
            if element_type and type_name != element_type:
                continue
            for entry in self._parse_entries(raw_entries):
                haystack = [entry.name, entry.description or "", *entry.tags]
                if any(needle in field.lower() for field in haystack):
                    matches.append(entry.model_dump())
                    if len(matches) >= limit:
                        return matches
        return matches

    # --- Helpers ---

    def _content_types(self, index: Dict[str, Any]) -> List[Dict[str, str]]:
        names = [name for name in index.get("index", {}) if name in MCP_SUPPORTED_TYPES]
        return [{"name": name, "type": "dir"} for name in names]

    def _entries_for(
        self, index: Dict[str, Any], section: str, element_type: Optional[str]
    ) -> List[IndexEntry]:
        # Only the library section is indexed.
        if section != "library" or not element_type:
            return []
        return self._parse_entries(index.get("index", {}).get(element_type, []))

    @staticmethod
    def _parse_entries(raw_entries: Any) -> List[IndexEntry]:
        if not isinstance(raw_entries, list):
            return []
        entries: List[IndexEntry] = []
        for raw in raw_entries:
            try:
                entries.append(IndexEntry.model_validate(raw))
            except ValidationError:
                logger.debug("Skipping malformed index entry: %r", raw)
        return entries

    def _to_github_item(self, entry: IndexEntry) -> Dict[str, Any]:
        name = entry.name if entry.name.endswith(".md") else f"{entry.name}.md"
        return {
            "name": name,
            "path": entry.path,
            "sha": entry.sha,
            "type": "file",
            "url": f"https://api.github.com/repos/{self.repo}/contents/{entry.path}",
            "html_url": f"https://github.com/{self.repo}/blob/main/{entry.path}",
        }
