"""Lore entry models, wikilink parsing and scope helpers."""

from .links import (
    extract_wikilinks,
    get_link_basename,
    normalize_link_target,
    space_variants,
)
from .models import LoreEntry, LorebookLoadError, load_lorebook, parse_lorebook
from .scoping import get_scope_label, normalize_scope

__all__ = [
    # Models
    "LoreEntry",
    "LorebookLoadError",
    "load_lorebook",
    "parse_lorebook",
    # Links
    "extract_wikilinks",
    "get_link_basename",
    "normalize_link_target",
    "space_variants",
    # Scopes
    "get_scope_label",
    "normalize_scope",
]
