"""Profile records: creation, lookup, points awards and rankings."""
from typing import List, Optional
from datetime import datetime, timezone
import logging

from pydantic import ValidationError

from .errors import ConcurrentUpdateError
from .gamification import ActionKind, badge_for_level, calculate_level, level_progress
from .kv_store import KVStore
from .models import LeaderboardEntry, ProgressResponse, UserProfile

logger = logging.getLogger(__name__)

USER_KEY_PREFIX = "user:"

WRITE_MODE_OPTIMISTIC = "optimistic"
WRITE_MODE_LAST_WRITE_WINS = "last_write_wins"


def profile_key(user_id: str) -> str:
    return f"{USER_KEY_PREFIX}{user_id}"


def apply_award(profile: UserProfile, points: int, action: ActionKind) -> UserProfile:
    """
    Return a copy of profile with points added and counters bumped.

    Level and badge are always recomputed from the new total.
    """
    updated = profile.model_copy(deep=True)
    updated.points = profile.points + points

    setattr(updated, action.count_field, getattr(profile, action.count_field) + 1)
    if action.stat_field:
        setattr(updated, action.stat_field, getattr(profile, action.stat_field) + 1)

    updated.level = calculate_level(updated.points)
    updated.badge = badge_for_level(updated.level)
    updated.version = profile.version + 1
    return updated


class ProfileService:
    """Business logic over profile records in the key-value store."""

    def __init__(
        self,
        store: KVStore,
        write_mode: str = WRITE_MODE_OPTIMISTIC,
        max_retries: int = 3
    ):
        """
        Initialize profile service.

        Args:
            store: Key-value store holding ``user:<id>`` records
            write_mode: ``optimistic`` for version-checked writes, or
                ``last_write_wins`` for plain read-modify-write
            max_retries: Extra attempts after a version conflict
        """
        if write_mode not in (WRITE_MODE_OPTIMISTIC, WRITE_MODE_LAST_WRITE_WINS):
            raise ValueError(f"Unknown write mode: {write_mode}")
        self.store = store
        self.write_mode = write_mode
        self.max_retries = max_retries

    async def create_profile(self, user_id: str, username: str, email: str) -> UserProfile:
        """Write the initial profile for a new account."""
        profile = UserProfile(
            id=user_id,
            username=username,
            email=email,
            created_at=datetime.now(timezone.utc).isoformat()
        )
        await self.store.set(profile_key(user_id), profile.model_dump())
        logger.info(f"Profile created: user_id={user_id}, username={username}")
        return profile

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """Get a profile by user id, or None if there is none."""
        data = await self.store.get(profile_key(user_id))
        if data is None:
            return None
        return UserProfile.model_validate(data)

    async def award_points(
        self,
        user_id: str,
        points: int,
        action: ActionKind
    ) -> Optional[UserProfile]:
        """
        Add points for an action and persist the recomputed profile.

        Awards are additive, so repeating a call adds the points again.

        Returns:
            Updated profile, or None if the user has no profile

        Raises:
            ConcurrentUpdateError: optimistic mode could not land the write
                within max_retries extra attempts
        """
        if self.write_mode == WRITE_MODE_LAST_WRITE_WINS:
            return await self._award_last_write_wins(user_id, points, action)

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            data = await self.store.get(profile_key(user_id))
            if data is None:
                return None

            expected_version = data.get("version")
            current = UserProfile.model_validate(data)
            updated = apply_award(current, points, action)

            if await self.store.compare_and_set(
                profile_key(user_id),
                updated.model_dump(),
                expected_version
            ):
                logger.info(
                    f"Awarded {points} points to {user_id} for {action.value}: "
                    f"total={updated.points}, level={updated.level}"
                )
                return updated

            logger.warning(
                f"Version conflict awarding points to {user_id} "
                f"(attempt {attempt}/{attempts})"
            )

        raise ConcurrentUpdateError(user_id, attempts)

    async def _award_last_write_wins(
        self,
        user_id: str,
        points: int,
        action: ActionKind
    ) -> Optional[UserProfile]:
        # Concurrent calls for one user can overwrite each other here
        current = await self.get_profile(user_id)
        if current is None:
            return None

        updated = apply_award(current, points, action)
        await self.store.set(profile_key(user_id), updated.model_dump())
        logger.info(
            f"Awarded {points} points to {user_id} for {action.value}: "
            f"total={updated.points}, level={updated.level}"
        )
        return updated

    async def get_progress(self, user_id: str) -> Optional[ProgressResponse]:
        """Get level progress for a user."""
        profile = await self.get_profile(user_id)
        if profile is None:
            return None
        return ProgressResponse(user_id=user_id, **level_progress(profile.points))

    async def get_leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        """Get top users by points."""
        records = await self.store.get_by_prefix(USER_KEY_PREFIX)

        profiles = []
        for key, value in records:
            try:
                profiles.append(UserProfile.model_validate(value))
            except ValidationError as e:
                logger.warning(f"Skipping malformed profile record {key}: {e.error_count()} errors")

        profiles.sort(key=lambda p: (-p.points, p.username))

        return [
            LeaderboardEntry(
                rank=rank,
                id=p.id,
                username=p.username,
                points=p.points,
                level=p.level,
                badge=p.badge,
                helped_people=p.helped_people
            )
            for rank, p in enumerate(profiles[:limit], start=1)
        ]
