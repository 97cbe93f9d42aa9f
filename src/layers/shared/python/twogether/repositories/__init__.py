"""Repository classes for DynamoDB data access."""

from twogether.repositories.activity import (
    ActivityRepository,
    ExpenseRepository,
    MilestoneRepository,
    RoadmapRepository,
    TaskRepository,
    UserProfileRepository,
)
from twogether.repositories.base import BaseRepository
from twogether.repositories.email_queue import EmailQueueRepository

__all__ = [
    "ActivityRepository",
    "BaseRepository",
    "EmailQueueRepository",
    "ExpenseRepository",
    "MilestoneRepository",
    "RoadmapRepository",
    "TaskRepository",
    "UserProfileRepository",
]
