"""Topic list cleanup."""


def parse_comma_separated(text: str) -> list[str]:
    """Split a comma list, trimming items and dropping empty ones."""
    return [item.strip() for item in text.split(",") if item.strip()]


def dedupe_topics(topics: list[str]) -> list[str]:
    """Drop topics subsumed by a more specific sibling.

    A topic is dropped when a strictly longer topic contains it, unless it
    itself contains a strictly shorter topic (then it is a valid specific
    term in the middle of a chain and is kept). Comparison is
    case-insensitive; input order is preserved.

    Example:
        >>> dedupe_topics(["SwiftUI", "SwiftUI Navigation", "Combine"])
        ['SwiftUI Navigation', 'Combine']
    """
    lowered = [(topic, topic.lower()) for topic in topics]
    result = []

    for topic, lower in lowered:
        dominated = any(
            other != topic and lower in other_lower and len(other_lower) > len(lower)
            for other, other_lower in lowered
        )
        dominates = any(
            other != topic and other_lower in lower and len(lower) > len(other_lower)
            for other, other_lower in lowered
        )
        if dominated and not dominates:
            continue
        result.append(topic)

    return result
