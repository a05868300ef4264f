"""
Canonical pair keys for met-history and teammate-history.

A pair is always stored as (min_id, max_id) so (A, B) and (B, A) collapse
to the same key and set membership is a plain hash lookup.
"""
from itertools import combinations
from typing import Iterable, List, Tuple

PairKey = Tuple[str, str]


def pair_key(a: str, b: str) -> PairKey:
    """Return the canonical (min, max) key for an unordered pair."""
    if a == b:
        raise ValueError(f"A pair needs two distinct ids, got {a!r} twice")
    return (a, b) if a < b else (b, a)


# Team pairs and player pairs share the same representation
team_pair_key = pair_key
player_pair_key = pair_key


def pairs_within(ids: Iterable[str]) -> List[PairKey]:
    """All unordered pairs inside one group (e.g. the members of a team)."""
    return [pair_key(a, b) for a, b in combinations(list(ids), 2)]
