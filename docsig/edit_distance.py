"""
Edit Distance
=============
Levenshtein distance over arbitrary unit sequences (strings, lists of
words, tuples of tokens).
"""

from __future__ import annotations

from typing import Hashable, Sequence


def distance(a: Sequence[Hashable], b: Sequence[Hashable]) -> int:
    """
    Minimum number of single-unit insertions, deletions and substitutions
    turning `a` into `b`.

    Runs the classic dynamic program one row at a time, keeping only the
    previous row, sized on the shorter input.
    """
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, unit_a in enumerate(a, start=1):
        current = [i]
        for j, unit_b in enumerate(b, start=1):
            if unit_a == unit_b:
                current.append(previous[j - 1])
            else:
                current.append(
                    1 + min(previous[j], current[j - 1], previous[j - 1])
                )
        previous = current

    return previous[-1]
