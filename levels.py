"""Level curve — maps cumulative points to a level, title and progress."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

LEVEL_TIERS: list[tuple[int, str]] = [
    (0, "Starter"),
    (120, "Word Scout"),
    (280, "Phrase Builder"),
    (520, "Context Rider"),
    (860, "Fluency Challenger"),
    (1300, "League Climber"),
    (1850, "Lexi Captain"),
    (2500, "Master Linguist"),
]


@dataclass
class LevelInfo:
    level: int
    title: str
    min_points: int
    next_min_points: Optional[int]
    progress_percent: int
    points_into_level: int
    points_to_next: Optional[int]

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "title": self.title,
            "min_points": self.min_points,
            "next_min_points": self.next_min_points,
            "progress_percent": self.progress_percent,
            "points_into_level": self.points_into_level,
            "points_to_next": self.points_to_next,
        }


def get_level_info(points: int, tiers: list[tuple[int, str]] = LEVEL_TIERS) -> LevelInfo:
    points = max(0, int(points))
    tier_index = 0
    for index, (min_points, _) in enumerate(tiers):
        if points >= min_points:
            tier_index = index

    min_points, title = tiers[tier_index]
    into_level = points - min_points
    if tier_index + 1 < len(tiers):
        next_min = tiers[tier_index + 1][0]
        span = max(1, next_min - min_points)
        progress = min(100, max(0, round(into_level / span * 100)))
        to_next: Optional[int] = max(0, next_min - points)
    else:
        next_min = None
        progress = 100
        to_next = None

    return LevelInfo(
        level=tier_index + 1,
        title=title,
        min_points=min_points,
        next_min_points=next_min,
        progress_percent=progress,
        points_into_level=into_level,
        points_to_next=to_next,
    )
