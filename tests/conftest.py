"""Shared test fixtures for the collection index tests."""
import asyncio
import copy
import sys
from pathlib import Path

import pytest

# Ensure the project root is in sys.path so that `dollhouse.*` imports work
# when running pytest from the repo root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from dollhouse.integrations.collection.client import FetchResponse  # noqa: E402

SAMPLE_INDEX = {
    "version": "1.2.3",
    "generated": "2025-08-22T12:00:00.000Z",
    "total_elements": 3,
    "index": {
        "personas": [
            {
                "path": "library/personas/creative-writer.md",
                "type": "persona",
                "name": "Creative Writer",
                "description": "An imaginative storyteller",
                "version": "1.0.0",
                "author": "dollhouse",
                "tags": ["writing", "fiction"],
                "sha": "abc123",
                "created": "2025-08-22T10:00:00.000Z",
            }
        ],
        "skills": [
            {
                "path": "library/skills/code-review.md",
                "type": "skill",
                "name": "code-review",
                "description": "Reviews pull requests",
                "tags": ["engineering"],
                "sha": "def456",
            }
        ],
        "memories": [
            {
                "path": "library/memories/session-notes.md",
                "type": "memory",
                "name": "Session Notes",
                "sha": "ghi789",
            }
        ],
    },
    "metadata": {
        "build_time_ms": 1000,
        "file_count": 3,
        "skipped_files": 0,
        "categories": 3,
        "nodejs_version": "18.17.0",
        "builder_version": "1.0.0",
    },
}


class Clock:
    """Manual epoch-millisecond clock."""

    def __init__(self, start_ms: float = 1_755_864_000_000.0) -> None:
        self.now = start_ms

    def now_ms(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += float(ms)


class FakeIndexClient:
    """
    Stand-in for CollectionIndexClient.

    Each call consumes the next scripted outcome; the last one repeats.
    Exceptions are raised, FetchResponses returned.
    """

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = []

    def script(self, *outcomes) -> None:
        self.outcomes = list(outcomes)

    async def fetch_index(self, etag=None, last_modified=None):
        self.calls.append({"etag": etag, "last_modified": last_modified})
        await asyncio.sleep(0)  # yield like a real network call
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self) -> None:
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_index(**overrides):
    data = copy.deepcopy(SAMPLE_INDEX)
    data.update(overrides)
    return data


def ok(data=None, etag=None, last_modified=None) -> FetchResponse:
    return FetchResponse(200, data if data is not None else make_index(), etag, last_modified)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture(autouse=True)
def _no_fetch_timeout_env(monkeypatch):
    monkeypatch.delenv("COLLECTION_FETCH_TIMEOUT", raising=False)
