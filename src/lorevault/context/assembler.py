"""
Context assembly for retrieved entries.

Renders selected catalog entries into one markdown document that fits a
token budget. Sections that do not fit are skipped whole; later, smaller
sections may still fit.
"""

from dataclasses import dataclass, field

from ..lore.scoping import get_scope_label
from ..tools.catalog import CatalogEntry, RetrievalToolCatalog
from .tokenizer import estimate_tokens


CONTEXT_HEADING = "## Tool Retrieval Context"
SECTION_SEPARATOR = "\n\n---\n\n"
MIN_TOKEN_BUDGET = 32


@dataclass
class AssembledContext:
    """An assembled context document and its usage."""
    markdown: str = ""
    used_tokens: int = 0
    selected_items: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.selected_items


def item_label(item: CatalogEntry) -> str:
    """Display label for a selected entry: ``[scope] Title``."""
    return f"[{get_scope_label(item.scope)}] {item.title}"


def render_section(item: CatalogEntry) -> str:
    """Render one entry as a markdown section."""
    return "\n".join([
        f"### {item_label(item)}",
        f"UID: {item.uid}",
        f"Keys: {', '.join(item.entry.key) or '-'}",
        "",
        item.entry.content.strip(),
    ])


def assemble_context(
    catalog: RetrievalToolCatalog,
    selected_keys: list[str],
    max_entries: int,
    token_budget: int,
) -> AssembledContext:
    """
    Assemble selected entries into a bounded markdown document.

    Args:
        catalog: Catalog the keys refer to
        selected_keys: Keys in priority order, already deduplicated
        max_entries: Maximum keys considered (at least 1)
        token_budget: Token budget for the whole document. Budgets below
                      MIN_TOKEN_BUDGET (32) are raised to it, so a smaller
                      budget can be exceeded by up to that floor.

    Returns:
        AssembledContext; empty with zero usage if nothing fits
    """
    limit = max(1, max_entries)
    budget = max(MIN_TOKEN_BUDGET, token_budget)
    sections: list[str] = []
    selected_items: list[str] = []
    used_tokens = estimate_tokens(f"{CONTEXT_HEADING}\n")

    for key in selected_keys[:limit]:
        item = catalog.get(key)
        if item is None:
            continue

        section = render_section(item)
        section_tokens = estimate_tokens(section)
        if used_tokens + section_tokens > budget:
            continue

        used_tokens += section_tokens
        sections.append(section)
        selected_items.append(item_label(item))

    if not sections:
        return AssembledContext()

    return AssembledContext(
        markdown="\n\n".join([CONTEXT_HEADING, SECTION_SEPARATOR.join(sections)]),
        used_tokens=used_tokens,
        selected_items=selected_items,
    )
