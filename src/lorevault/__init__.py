"""
LoreVault retrieval tools.

Builds an in-memory catalog over scoped lore entries and lets a planner
model gather context through bounded tool calls.
"""

__version__ = "0.1.0"
