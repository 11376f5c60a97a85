"""
Lore entry schema and lorebook loading.

Lorebooks use the world-info JSON layout: an ``entries`` object keyed by
entry id (or a plain list of entries). Only the fields retrieval needs are
modelled; everything else in the file is ignored.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .links import extract_wikilinks

logger = logging.getLogger(__name__)


class LorebookLoadError(Exception):
    """Raised when a lorebook file cannot be read or parsed."""


class LoreEntry(BaseModel):
    """
    A single lore entry.

    ``comment`` is the entry title. ``order`` is the ranking weight;
    higher values are more important.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    uid: int
    comment: str = ""
    content: str = ""
    key: list[str] = Field(default_factory=list)
    keysecondary: list[str] = Field(default_factory=list)
    order: int = 0
    wikilinks: list[str] = Field(default_factory=list)


def _raw_entries(data: object) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        entries = data.get("entries", {})
        if isinstance(entries, dict):
            return list(entries.values())
        if isinstance(entries, list):
            return entries
    raise LorebookLoadError("Lorebook must be a list of entries or an object with 'entries'")


def parse_lorebook(data: object, derive_links: bool = True) -> list[LoreEntry]:
    """
    Parse decoded lorebook JSON into entries.

    Args:
        data: Decoded JSON document
        derive_links: Extract wikilinks from content for entries that
                      carry none

    Returns:
        Entries in file order
    """
    entries: list[LoreEntry] = []
    for index, raw in enumerate(_raw_entries(data)):
        try:
            entry = LoreEntry.model_validate(raw)
        except ValidationError as e:
            raise LorebookLoadError(f"Invalid entry at position {index}: {e}") from e

        if derive_links and not entry.wikilinks:
            links = extract_wikilinks(entry.content)
            if links:
                entry = entry.model_copy(update={"wikilinks": links})
        entries.append(entry)

    return entries


def load_lorebook(path: Path | str, derive_links: bool = True) -> list[LoreEntry]:
    """Load lore entries from a lorebook JSON file."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise LorebookLoadError(f"Cannot read lorebook {path}: {e}") from e

    entries = parse_lorebook(data, derive_links=derive_links)
    logger.debug("Loaded %d entries from %s", len(entries), path)
    return entries
