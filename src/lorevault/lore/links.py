"""
Wikilink parsing for lore content.

Link targets follow the Obsidian convention: ``[[Target]]``,
``[[folder/Target|Alias]]``, ``[[Target#Heading]]``.
"""

import re


WIKILINK_PATTERN = re.compile(r"\[\[([^\]|]+)(?:\|[^\]]+)?\]\]")


def normalize_link_target(target: str) -> str:
    """
    Normalize a raw link target.

    Converts backslashes to forward slashes and drops heading/block
    references and a trailing ``.md`` suffix. Case is preserved.
    """
    normalized = target.strip().replace("\\", "/")
    normalized = re.sub(r"#.*$", "", normalized)
    normalized = re.sub(r"\.md$", "", normalized, flags=re.IGNORECASE)
    return normalized.strip()


def get_link_basename(target: str) -> str:
    """Last path segment of a normalized link target."""
    normalized = normalize_link_target(target)
    parts = [part for part in normalized.split("/") if part]
    return parts[-1] if parts else normalized


def space_variants(target: str) -> list[str]:
    """Hyphen and underscore spellings of a target that contains spaces."""
    if " " not in target:
        return []
    return [target.replace(" ", "-"), target.replace(" ", "_")]


def extract_wikilinks(content: str) -> list[str]:
    """
    Extract link targets from markdown content.

    Each target contributes its normalized form, its basename and its
    space variants as aliases. Order is first-seen, without duplicates.
    """
    links: list[str] = []

    for match in WIKILINK_PATTERN.finditer(content):
        link = normalize_link_target(match.group(1))
        if not link:
            continue

        links.append(link)

        base = get_link_basename(link)
        if base != link:
            links.append(base)

        links.extend(space_variants(link))

    return list(dict.fromkeys(links))
