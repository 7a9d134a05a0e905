"""Brace-balanced block extraction from raw dump text."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class BalancedMatch:
    """A balanced span found in a larger text.

    ``start`` and ``end`` index the opening and closing braces, so
    ``text[start:end + 1]`` is the full span including both braces.
    """
    start: int
    end: int
    pre: str
    body: str
    post: str


def balanced(text: str, open_char: str = "{", close_char: str = "}") -> Optional[BalancedMatch]:
    """
    Find the first opening brace and its matching close.

    Args:
        text: Text to scan
        open_char: Opening delimiter
        close_char: Closing delimiter

    Returns:
        BalancedMatch, or None if there is no opening brace or the text
        ends before the braces balance.
    """
    start = text.find(open_char)
    if start == -1:
        return None

    depth = 0
    for pos in range(start, len(text)):
        char = text[pos]
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return BalancedMatch(
                    start=start,
                    end=pos,
                    pre=text[:start],
                    body=text[start + 1:pos],
                    post=text[pos + 1:],
                )
    return None


def find_block(text: str, token: str) -> Optional[BalancedMatch]:
    """
    Locate the brace block that follows the first occurrence of token.

    Scanning starts at the token's trailing colon, so the first ``{`` after
    the token opens the block. Offsets in the returned match are relative to
    that colon.
    """
    idx = text.find(token)
    if idx == -1:
        return None
    return balanced(text[idx + max(len(token) - 1, 0):])
