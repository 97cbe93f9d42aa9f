"""Read access to planning activity (profiles, roadmaps, milestones, tasks, expenses)."""

from collections.abc import Iterator
from typing import Any

import structlog

from twogether.models.activity import (
    Expense,
    Milestone,
    NotificationPreferences,
    Roadmap,
    Task,
    UserActivity,
    UserProfile,
)
from twogether.repositories.base import BaseRepository

logger = structlog.get_logger()


class UserProfileRepository(BaseRepository[UserProfile]):
    """Repository for user profiles."""

    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        super().__init__(UserProfile, table_name, region_name)

    def get_by_id(self, user_id: str) -> UserProfile | None:
        return self.get(pk=f"USER#{user_id}", sk="PROFILE")

    def iter_items(self, page_size: int = 100) -> Iterator[dict[str, Any]]:
        """Iterate every raw profile item, one GSI1 page at a time.

        Items are left unparsed so a caller can handle one malformed
        profile without losing the rest.
        """
        last_key = None
        while True:
            items, last_key = self.query_items(
                pk="PROFILES",
                index_name="GSI1",
                limit=page_size,
                last_key=last_key,
            )
            yield from items
            if not last_key:
                return

    def create_profile(self, profile: UserProfile) -> UserProfile:
        return self.create(profile, gsi_keys=profile.get_gsi1_keys())


class RoadmapRepository(BaseRepository[Roadmap]):
    """Repository for roadmaps, stored under their owner."""

    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        super().__init__(Roadmap, table_name, region_name)

    def list_by_user(self, user_id: str) -> list[Roadmap]:
        return self.query_all(pk=f"USER#{user_id}", sk_begins_with="ROADMAP#")


class MilestoneRepository(BaseRepository[Milestone]):
    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        super().__init__(Milestone, table_name, region_name)

    def list_by_roadmap(self, roadmap_id: str) -> list[Milestone]:
        return self.query_all(pk=f"ROADMAP#{roadmap_id}", sk_begins_with="MILESTONE#")


class TaskRepository(BaseRepository[Task]):
    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        super().__init__(Task, table_name, region_name)

    def list_by_roadmap(self, roadmap_id: str) -> list[Task]:
        return self.query_all(pk=f"ROADMAP#{roadmap_id}", sk_begins_with="TASK#")


class ExpenseRepository(BaseRepository[Expense]):
    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        super().__init__(Expense, table_name, region_name)

    def list_by_roadmap(self, roadmap_id: str) -> list[Expense]:
        return self.query_all(pk=f"ROADMAP#{roadmap_id}", sk_begins_with="EXPENSE#")


class ActivityRepository:
    """Read-only projection of everything the weekly digest aggregates.

    Store errors (botocore ClientError) propagate; malformed items surface
    as pydantic ValidationError from model parsing. Profiles are handed out
    raw so the caller can parse them one at a time.
    """

    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        """Initialize activity repository.

        Args:
            table_name: DynamoDB table name.
            region_name: Optional AWS region override.
        """
        self.profiles = UserProfileRepository(table_name, region_name)
        self.roadmaps = RoadmapRepository(table_name, region_name)
        self.milestones = MilestoneRepository(table_name, region_name)
        self.tasks = TaskRepository(table_name, region_name)
        self.expenses = ExpenseRepository(table_name, region_name)

    def iter_profile_items(self) -> Iterator[dict[str, Any]]:
        return self.profiles.iter_items()

    def get_preferences(self, user_id: str) -> NotificationPreferences:
        """Get a user's notification preferences, defaulting to all enabled."""
        profile = self.profiles.get_by_id(user_id)
        if profile is None:
            return NotificationPreferences()
        return profile.notification_preferences

    def list_roadmaps(self, user_id: str) -> list[Roadmap]:
        return self.roadmaps.list_by_user(user_id)

    def load_activity(self, profile: UserProfile, roadmaps: list[Roadmap]) -> UserActivity:
        """Fetch milestones, tasks and expenses for the given roadmaps."""
        activity = UserActivity(profile=profile, roadmaps=roadmaps)
        for roadmap in roadmaps:
            activity.milestones.extend(self.milestones.list_by_roadmap(roadmap.id))
            activity.tasks.extend(self.tasks.list_by_roadmap(roadmap.id))
            activity.expenses.extend(self.expenses.list_by_roadmap(roadmap.id))

        logger.debug(
            "Loaded user activity",
            user_id=profile.id,
            roadmaps=len(roadmaps),
            milestones=len(activity.milestones),
            tasks=len(activity.tasks),
            expenses=len(activity.expenses),
        )
        return activity
