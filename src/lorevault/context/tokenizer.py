"""
Token estimation.

Retrieval budgets use a fixed character-based estimate so results are
identical everywhere, with or without a tokenizer installed.
"""

import math


# ~4 chars per token for English prose
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """
    Estimate tokens in text as ceil(len / 4), never less than 1.

    Args:
        text: The text to estimate

    Returns:
        Estimated token count
    """
    return max(1, math.ceil(len(text) / CHARS_PER_TOKEN))
