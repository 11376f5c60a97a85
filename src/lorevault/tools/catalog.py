"""
Retrieval tool catalog.

An immutable, per-request index over scoped lore entries. Besides the
lookup tables, every entry carries its neighbor keys: other entries in the
same scope that its wikilinks resolve to.

The catalog is built fresh for each retrieval request and never mutated.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from ..lore.links import get_link_basename, normalize_link_target, space_variants
from ..lore.models import LoreEntry
from ..lore.scoping import normalize_scope

logger = logging.getLogger(__name__)


CATALOG_KEY_SEPARATOR = "\x00"


def make_catalog_key(scope: str, uid: int) -> str:
    """Composite catalog key for an entry; unique per (scope, uid)."""
    return f"{scope}{CATALOG_KEY_SEPARATOR}{uid}"


def normalize_text(value: str) -> str:
    return value.strip().lower()


def unique_sorted(values: list[str]) -> list[str]:
    return sorted(set(values))


@dataclass(frozen=True)
class CatalogInput:
    """Entries belonging to one scope."""
    scope: str
    entries: list[LoreEntry]


@dataclass(frozen=True)
class CatalogEntry:
    """A lore entry with precomputed search fields and link neighbors."""
    key: str
    scope: str
    uid: int
    entry: LoreEntry
    normalized_title: str
    normalized_keywords: tuple[str, ...]
    normalized_content: str
    neighbors: tuple[str, ...] = ()

    @property
    def title(self) -> str:
        return self.entry.comment

    @property
    def order(self) -> int:
        return self.entry.order


@dataclass(frozen=True)
class RetrievalToolCatalog:
    """
    Lookup tables over catalog entries.

    - entries_by_key: entry per composite key
    - keys_by_scope: sorted keys per scope
    - keys_by_uid: sorted keys per uid, across scopes
    """
    entries_by_key: Mapping[str, CatalogEntry] = field(
        default_factory=lambda: MappingProxyType({})
    )
    keys_by_scope: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    keys_by_uid: Mapping[int, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __len__(self) -> int:
        return len(self.entries_by_key)

    @property
    def scopes(self) -> list[str]:
        """Known scopes, sorted."""
        return sorted(self.keys_by_scope)

    def get(self, key: str) -> CatalogEntry | None:
        return self.entries_by_key.get(key)

    def has_scope(self, scope: str) -> bool:
        return scope in self.keys_by_scope


def _build_target_index(entries: list[CatalogEntry]) -> dict[str, list[str]]:
    """
    Map every link target form to the keys of the entries it names.

    Titles, primary keys and secondary keys all register as targets, along
    with their basename and space variants.
    """
    target_index: dict[str, list[str]] = {}

    def add_target(target: str, key: str) -> None:
        normalized = normalize_link_target(target)
        if not normalized:
            return
        existing = target_index.setdefault(normalized, [])
        if key not in existing:
            existing.append(key)
            existing.sort()

    for item in entries:
        terms = [item.entry.comment, *item.entry.key, *item.entry.keysecondary]
        for term in terms:
            normalized = normalize_link_target(term)
            if not normalized:
                continue
            add_target(normalized, item.key)
            basename = get_link_basename(normalized)
            if basename and basename != normalized:
                add_target(basename, item.key)
            for variant in space_variants(normalized):
                add_target(variant, item.key)

    return target_index


def _resolve_neighbors(
    item: CatalogEntry,
    target_index: dict[str, list[str]],
    entries_by_key: dict[str, CatalogEntry],
) -> tuple[str, ...]:
    neighbors: set[str] = set()
    for wikilink in item.entry.wikilinks:
        normalized = normalize_link_target(wikilink)
        if not normalized:
            continue
        candidates = [
            *target_index.get(normalized, []),
            *target_index.get(get_link_basename(normalized), []),
        ]
        neighbors.update(c for c in candidates if c != item.key)

    return tuple(sorted(
        neighbors,
        key=lambda k: (-entries_by_key[k].order, entries_by_key[k].uid),
    ))


def create_retrieval_tool_catalog(inputs: list[CatalogInput]) -> RetrievalToolCatalog:
    """
    Build a catalog from per-scope entry lists.

    Scopes are normalized and processed in sorted order, entries by
    ascending uid, so equal inputs give an identical catalog regardless of
    input order. Links only resolve within a scope; unresolvable links are
    dropped.
    """
    entries_by_key: dict[str, CatalogEntry] = {}
    entries_by_scope: dict[str, dict[str, CatalogEntry]] = {}

    sorted_inputs = sorted(inputs, key=lambda i: normalize_scope(i.scope))
    for catalog_input in sorted_inputs:
        scope = normalize_scope(catalog_input.scope)
        scope_entries = entries_by_scope.setdefault(scope, {})
        for entry in sorted(catalog_input.entries, key=lambda e: e.uid):
            key = make_catalog_key(scope, entry.uid)
            keywords = [normalize_text(k) for k in (*entry.key, *entry.keysecondary)]
            item = CatalogEntry(
                key=key,
                scope=scope,
                uid=entry.uid,
                entry=entry,
                normalized_title=normalize_text(entry.comment),
                normalized_keywords=tuple(unique_sorted([k for k in keywords if k])),
                normalized_content=normalize_text(entry.content),
            )
            entries_by_key[key] = item
            scope_entries[key] = item

    link_count = 0
    for scope_entries in entries_by_scope.values():
        target_index = _build_target_index(list(scope_entries.values()))
        for key, item in scope_entries.items():
            neighbors = _resolve_neighbors(item, target_index, entries_by_key)
            link_count += len(neighbors)
            entries_by_key[key] = replace(item, neighbors=neighbors)

    keys_by_scope = {
        scope: tuple(sorted(scope_entries))
        for scope, scope_entries in entries_by_scope.items()
        if scope_entries
    }
    keys_by_uid: dict[int, list[str]] = {}
    for key, item in entries_by_key.items():
        keys_by_uid.setdefault(item.uid, []).append(key)

    logger.debug(
        "Built retrieval catalog: %d entries, %d scopes, %d links",
        len(entries_by_key), len(keys_by_scope), link_count,
    )

    return RetrievalToolCatalog(
        entries_by_key=MappingProxyType(entries_by_key),
        keys_by_scope=MappingProxyType(keys_by_scope),
        keys_by_uid=MappingProxyType({
            uid: tuple(sorted(keys)) for uid, keys in keys_by_uid.items()
        }),
    )
