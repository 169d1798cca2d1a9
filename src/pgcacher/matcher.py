"""Wildcard matching for include/exclude file filters."""

WILDCARDS = ("*", "?")


def wildcard_match(text: str, pattern: str) -> bool:
    """
    Match text against a wildcard pattern.

    '*' matches any run of characters (including none) and '?' matches
    exactly one. Every other character is literal. A pattern without
    wildcards is a plain substring test, so "rfy" matches
    "github.com/rfyiamcool". With wildcards the whole text must match the
    whole pattern.

    Args:
        text: String to test, usually a file path
        pattern: Wildcard pattern

    Returns:
        True if the text matches
    """
    if not any(w in pattern for w in WILDCARDS):
        return pattern in text

    n, m = len(text), len(pattern)

    # matches[i][j]: first i chars of text match first j chars of pattern
    matches = [[False] * (m + 1) for _ in range(n + 1)]
    matches[0][0] = True
    for j in range(1, m + 1):
        if pattern[j - 1] == "*":
            matches[0][j] = matches[0][j - 1]

    for i in range(1, n + 1):
        for j in range(1, m + 1):
            p = pattern[j - 1]
            if p == "*":
                matches[i][j] = matches[i - 1][j] or matches[i][j - 1]
            elif p == "?" or p == text[i - 1]:
                matches[i][j] = matches[i - 1][j - 1]

    return matches[n][m]
