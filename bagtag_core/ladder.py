"""Read-side helpers over the player registry."""
from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from .types import DIVISIONS
from .models import Player


def _tag_sort_key(player: Player) -> tuple[int, int, str, str]:
    # Untagged players sort after every tagged one.
    if player.tag is None:
        return (1, 0, player.name.lower(), player.player_id)
    return (0, player.tag, player.name.lower(), player.player_id)


def build_leaderboard(players: Iterable[Player], division: str | None = None) -> list[Player]:
    """Active players ordered by tag, optionally limited to one division."""
    rows = [
        p for p in players
        if p.is_active and (division is None or p.division == division)
    ]
    rows.sort(key=_tag_sort_key)
    return rows


def leaderboard_by_division(
    players: Iterable[Player], divisions: Sequence[str] = DIVISIONS
) -> dict[str, list[Player]]:
    """Leaderboard per division in the given division order; empty divisions are omitted."""
    grouped: dict[str, list[Player]] = defaultdict(list)
    for p in build_leaderboard(players):
        grouped[p.division].append(p)
    return {d: grouped[d] for d in divisions if grouped.get(d)}


def find_duplicate_tags(players: Iterable[Player]) -> dict[int, list[str]]:
    """Tags held by more than one Active player, mapped to the holders' ids."""
    holders: dict[int, list[str]] = defaultdict(list)
    for p in players:
        if p.is_active and p.tag is not None:
            holders[p.tag].append(p.player_id)
    return {tag: ids for tag, ids in sorted(holders.items()) if len(ids) > 1}


__all__ = ["build_leaderboard", "leaderboard_by_division", "find_duplicate_tags"]
