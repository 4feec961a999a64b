"""
Bastion - Username Similarity
=============================

Scores how alike the usernames in a join window are.

DESIGN:
    Two signals feed one ratio over all username pairs:
    - pairs whose normalized Levenshtein similarity exceeds
      NAME_PAIR_SIMILARITY (e.g. "raider_a" / "raider_b")
    - consecutive numeric suffixes on a shared alphabetic prefix
      (user1, user2, user3), counted only when more than one exists

Author: حَـــــنَّـــــا
"""

import re
from collections import defaultdict
from typing import Dict, List, Sequence

from bastion.core.constants import NAME_PAIR_SIMILARITY


SEQUENTIAL_NAME = re.compile(r"^([a-zA-Z]+)(\d+)$")


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    """
    Normalized similarity in [0, 1]; two empty names are identical.

    Computed as (len(longer) - distance) / len(longer).
    """
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - edit_distance(a, b)) / longer


def count_sequential_pairs(usernames: Sequence[str]) -> int:
    """Count adjacent numbers (difference of 1) per alphabetic prefix."""
    groups: Dict[str, List[int]] = defaultdict(list)
    for name in usernames:
        match = SEQUENTIAL_NAME.match(name)
        if match:
            groups[match.group(1)].append(int(match.group(2)))

    matches = 0
    for numbers in groups.values():
        numbers.sort()
        matches += sum(1 for low, high in zip(numbers, numbers[1:]) if high - low == 1)
    return matches


def username_similarity(usernames: Sequence[str]) -> float:
    """
    Share of username pairs that look related, capped at 1.0.

    Returns:
        0.0 for fewer than two names.
    """
    n = len(usernames)
    if n < 2:
        return 0.0

    similar = 0
    sequential = count_sequential_pairs(usernames)
    if sequential > 1:
        similar += sequential

    for i in range(n):
        for j in range(i + 1, n):
            if name_similarity(usernames[i], usernames[j]) > NAME_PAIR_SIMILARITY:
                similar += 1

    pairs = n * (n - 1) / 2
    return min(1.0, similar / pairs)


__all__ = [
    "edit_distance",
    "name_similarity",
    "count_sequential_pairs",
    "username_similarity",
]
