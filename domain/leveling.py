from __future__ import annotations

from typing import Tuple

from .models import LevelRewards


RANK_TITLES = (
    "Newcomer",
    "Rookie",
    "Regular",
    "Card Shark",
    "High Roller",
    "Whale",
    "VIP",
    "Legend",
)

BASE_DAILY_BONUS = 25
DAILY_BONUS_PER_LEVEL = 5


def next_level_requirement(level: int) -> int:
    """Experience needed to leave `level`."""

    return level * 100


def apply_experience(level: int, experience: int, amount: int) -> Tuple[int, int]:
    """
    Add `amount` experience and resolve any level-ups.

    Returns `(level, experience)` with `0 <= experience <
    next_level_requirement(level)`. A single large gain can cross several
    levels; each step uses the requirement of the level being left.
    """

    exp = experience + max(0, amount)
    lvl = level
    while exp >= next_level_requirement(lvl):
        exp -= next_level_requirement(lvl)
        lvl += 1
    return lvl, exp


def level_rewards(level: int) -> LevelRewards:
    index = min(max(level, 1) - 1, len(RANK_TITLES) - 1)
    return LevelRewards(
        daily_bonus=BASE_DAILY_BONUS + (level - 1) * DAILY_BONUS_PER_LEVEL,
        title=RANK_TITLES[index],
    )
