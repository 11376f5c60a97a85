"""
Context control for retrieval results.

Handles token estimation and bounded context assembly.
"""

from .tokenizer import CHARS_PER_TOKEN, estimate_tokens
from .assembler import (
    AssembledContext,
    CONTEXT_HEADING,
    assemble_context,
    item_label,
    render_section,
)

__all__ = [
    # Tokenizer
    "CHARS_PER_TOKEN",
    "estimate_tokens",
    # Assembler
    "AssembledContext",
    "CONTEXT_HEADING",
    "assemble_context",
    "item_label",
    "render_section",
]
