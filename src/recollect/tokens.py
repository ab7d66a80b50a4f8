"""Token estimation for budgeting decisions.

A fixed characters-per-token ratio is used everywhere. The estimate that
decides whether something fits rounds up, so the assembled prompt errs
toward under-filling the model's real limit.
"""

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the token cost of text, rounding up.

    Args:
        text: The text to measure.

    Returns:
        0 for empty text, otherwise at least 1.
    """
    if not text:
        return 0
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


def estimate_display_tokens(text: str) -> int:
    """Estimate tokens for display only, rounding down (minimum 1)."""
    if not text:
        return 0
    return max(1, len(text) // CHARS_PER_TOKEN)
