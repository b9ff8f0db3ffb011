"""Natural ordering for file names.

Digit runs are compared as integers so that ``file2`` sorts before
``file10``. Comparison is case-insensitive.
"""

import re

_DIGITS = re.compile(r"(\d+)")


def natural_key(name: str) -> list[str | int]:
    """Build a sort key for natural ordering.

    ``re.split`` with a capturing group alternates text and digit chunks,
    always starting with text, so keys compare element-wise without
    mixing ``str`` and ``int`` at the same position.

    Args:
        name: File name to build the key for

    Returns:
        Alternating list of lowercased text chunks and integers
    """
    chunks = _DIGITS.split(name.lower())
    return [int(chunk) if i % 2 else chunk for i, chunk in enumerate(chunks)]


def natural_less(a: str, b: str) -> bool:
    """Return True if ``a`` sorts strictly before ``b`` in natural order."""
    return natural_key(a) < natural_key(b)
