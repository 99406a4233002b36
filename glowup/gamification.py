"""Points, levels and badges."""
from enum import Enum
from typing import Dict, Optional, Tuple

POINTS_PER_LEVEL = 150

# Index 0 is level 1; anything past the end is the final tier
LEVEL_TITLES: Tuple[str, ...] = (
    "Newbie",
    "Explorer",
    "Helper",
    "Advisor",
    "Stylist",
    "Expert",
    "Guru",
    "Master",
    "Legend",
    "Glow Master",
)
MAX_TITLED_LEVEL = len(LEVEL_TITLES)


class ActionKind(str, Enum):
    """Community actions that earn points."""
    RESPONSE = "response"
    REQUEST = "request"
    UPVOTE = "upvote"
    HELP = "help"
    ACHIEVEMENT = "achievement"

    @property
    def count_field(self) -> str:
        return f"{self.value}_count"

    @property
    def stat_field(self) -> Optional[str]:
        return ACTION_STAT_FIELDS[self]


ACTION_STAT_FIELDS: Dict[ActionKind, Optional[str]] = {
    ActionKind.RESPONSE: "responses_given",
    ActionKind.REQUEST: "requests_posted",
    ActionKind.UPVOTE: "upvotes_received",
    ActionKind.HELP: "helped_people",
    ActionKind.ACHIEVEMENT: None,
}


def calculate_level(points: int) -> int:
    """Level for a points total: fixed-width buckets of POINTS_PER_LEVEL, starting at 1."""
    if points < 0:
        raise ValueError(f"points must be non-negative, got {points}")
    return points // POINTS_PER_LEVEL + 1


def badge_for_level(level: int) -> str:
    """Badge title for a level, clamped to the top tier."""
    if level < 1:
        raise ValueError(f"level must be at least 1, got {level}")
    return LEVEL_TITLES[min(level, MAX_TITLED_LEVEL) - 1]


def level_progress(points: int) -> Dict[str, object]:
    """
    Describe how far a points total is into its current level.

    Args:
        points: Current points total

    Returns:
        Dict with level, badge, next badge and the points needed to level up
    """
    level = calculate_level(points)
    points_into_level = points % POINTS_PER_LEVEL
    next_level_points = level * POINTS_PER_LEVEL

    return {
        "points": points,
        "level": level,
        "badge": badge_for_level(level),
        "next_badge": badge_for_level(level + 1),
        "points_into_level": points_into_level,
        "points_per_level": POINTS_PER_LEVEL,
        "next_level_points": next_level_points,
        "points_to_next_level": next_level_points - points,
        "progress_percentage": round(points_into_level / POINTS_PER_LEVEL * 100, 2),
    }
