"""
Pytest fixtures for LoreVault retrieval tests.

Provides sample lorebooks, prebuilt catalogs and planner helpers.
"""

import json

import pytest

from lorevault.llm import MockPlanner, PlannerResponse, PlannerToolCall
from lorevault.lore import LoreEntry, extract_wikilinks
from lorevault.tools import CatalogInput, create_retrieval_tool_catalog


def _make_entry(
    uid: int,
    title: str,
    content: str = "",
    keys: list[str] | None = None,
    secondary: list[str] | None = None,
    order: int = 0,
) -> LoreEntry:
    return LoreEntry(
        uid=uid,
        comment=title,
        content=content,
        key=keys or [],
        keysecondary=secondary or [],
        order=order,
        wikilinks=extract_wikilinks(content),
    )


@pytest.fixture
def make_entry():
    """Factory for lore entries with wikilinks derived from content."""
    return _make_entry


@pytest.fixture
def world_entries():
    """Small linked world: Alice -> Sunreach, Bob; Sunreach -> The Council."""
    return [
        _make_entry(
            1, "Alice",
            "Alice is a ranger from [[Sunreach]]. She travels with [[Bob]].",
            keys=["alice"], order=100,
        ),
        _make_entry(
            2, "Bob",
            "Bob is a blacksmith who knows [[Alice]].",
            keys=["bob"], secondary=["smith"], order=50,
        ),
        _make_entry(
            3, "Sunreach",
            "Sunreach is a coastal city ruled by [[The Council|the council]].",
            keys=["sunreach", "city"], order=80,
        ),
        _make_entry(
            4, "The Council",
            "The Council governs Sunreach from the harbor hall.",
            keys=["council"], order=10,
        ),
    ]


@pytest.fixture
def other_entries():
    """A second scope sharing uid 1 with the world scope."""
    return [
        _make_entry(1, "Alice Prime", "A different Alice from another book.", keys=["alice"], order=5),
    ]


@pytest.fixture
def catalog(world_entries, other_entries):
    """Catalog over the world and other scopes."""
    return create_retrieval_tool_catalog([
        CatalogInput(scope="world", entries=world_entries),
        CatalogInput(scope="other", entries=other_entries),
    ])


@pytest.fixture
def world_catalog(world_entries):
    """Catalog over the world scope only."""
    return create_retrieval_tool_catalog([CatalogInput(scope="world", entries=world_entries)])


@pytest.fixture
def all_scopes():
    return {"world", "other"}


@pytest.fixture
def lorebook_file(tmp_path):
    """World-info JSON file on disk."""
    path = tmp_path / "world.json"
    path.write_text(json.dumps({
        "entries": {
            "0": {
                "uid": 1,
                "comment": "Alice",
                "content": "Alice is a ranger from [[Sunreach]].",
                "key": ["alice"],
                "order": 100,
                "disable": False,
            },
            "1": {
                "uid": 3,
                "comment": "Sunreach",
                "content": "Sunreach is a coastal city.",
                "key": ["sunreach"],
                "order": 80,
            },
        },
    }), encoding="utf-8")
    return path


def _tool_call(name: str, call_id: str = "", **arguments) -> PlannerToolCall:
    return PlannerToolCall(
        id=call_id or f"call-{name}",
        name=name,
        arguments_json=json.dumps(arguments),
    )


@pytest.fixture
def tool_call():
    """Factory for planner tool calls with JSON-encoded arguments."""
    return _tool_call


@pytest.fixture
def tool_response():
    """Factory for a planner turn requesting the given calls."""
    def make(*calls: PlannerToolCall) -> PlannerResponse:
        return PlannerResponse(tool_calls=list(calls), finish_reason="tool_calls")
    return make


@pytest.fixture
def stop_response():
    return PlannerResponse(assistant_text="Done.", finish_reason="stop")


@pytest.fixture
def mock_planner():
    """Planner that stops immediately unless given scripted responses."""
    return MockPlanner()
