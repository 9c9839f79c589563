"""Tests for index-backed collection browsing."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from conftest import make_index
from dollhouse.core.services.collection.browser import CollectionIndexBrowser
from dollhouse.integrations.collection.errors import CollectionIndexUnavailable


def _browser(index=None, error=None) -> CollectionIndexBrowser:
    manager = MagicMock()
    manager.get_index = AsyncMock(return_value=index if index is not None else make_index(), side_effect=error)
    return CollectionIndexBrowser(manager, repo="example/collection")


class TestBrowse:
    def test_top_level_sections(self):
        result = asyncio.run(_browser().browse())
        assert [s["name"] for s in result["sections"]] == ["library", "showcase", "catalog"]
        assert result["items"] == []

    def test_library_lists_supported_types_only(self):
        result = asyncio.run(_browser().browse("library"))
        names = [c["name"] for c in result["categories"]]
        assert names == ["personas", "skills"]
        assert "memories" not in names

    def test_library_type_lists_files(self):
        result = asyncio.run(_browser().browse("library", "personas"))
        assert result["categories"] == []
        item = result["items"][0]
        assert item["name"] == "Creative Writer.md"
        assert item["path"] == "library/personas/creative-writer.md"
        assert item["sha"] == "abc123"
        assert item["type"] == "file"
        assert item["url"] == "https://api.github.com/repos/example/collection/contents/library/personas/creative-writer.md"
        assert item["html_url"] == "https://github.com/example/collection/blob/main/library/personas/creative-writer.md"

    def test_unknown_type_and_other_sections_are_empty(self):
        browser = _browser()
        assert asyncio.run(browser.browse("library", "ensembles"))["items"] == []
        assert asyncio.run(browser.browse("showcase"))["items"] == []

    def test_malformed_entries_are_skipped(self):
        index = make_index()
        index["index"]["skills"].append({"description": "no name or path"})
        result = asyncio.run(_browser(index).browse("library", "skills"))
        assert len(result["items"]) == 1

    def test_unavailable_index_returns_none(self):
        browser = _browser(error=CollectionIndexUnavailable("HTTP 503: Service Unavailable"))
        assert asyncio.run(browser.browse("library")) is None


class TestSearch:
    def test_matches_name_description_and_tags(self):
        browser = _browser()
        assert [e["name"] for e in asyncio.run(browser.search("writer"))] == ["Creative Writer"]
        assert [e["name"] for e in asyncio.run(browser.search("PULL REQUESTS"))] == ["code-review"]
        assert [e["name"] for e in asyncio.run(browser.search("fiction"))] == ["Creative Writer"]

    def test_type_filter_and_limit(self):
        browser = _browser()
        assert asyncio.run(browser.search("e", element_type="skills")) == [
            e for e in asyncio.run(browser.search("e")) if e["type"] == "skill"
        ]
        assert len(asyncio.run(browser.search("e", limit=1))) == 1

    def test_blank_query_and_unavailable_index(self):
        assert asyncio.run(_browser().search("   ")) == []
        browser = _browser(error=CollectionIndexUnavailable("down"))
        assert asyncio.run(browser.search("writer")) == []
