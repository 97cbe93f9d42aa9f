"""Weekly digest record models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel as PydanticBaseModel, EmailStr, Field, field_validator

from twogether.models.base import ensure_utc


class BudgetStatus(str, Enum):
    """Budget health derived from all-time spend against total allocation."""

    ON_TRACK = "on_track"
    WARNING = "warning"
    OVER_BUDGET = "over_budget"


class TaskSummary(PydanticBaseModel):
    """Task line shown in a digest."""

    id: str | None = None
    title: str
    due_date: datetime | None = None

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class DreamProgress(PydanticBaseModel):
    """Progress of one roadmap.

    ``progress_change`` is always 0 until prior-week snapshots are stored.
    """

    title: str
    progress_percentage: int = Field(default=0, ge=0)
    progress_change: int = 0


class DigestRecord(PydanticBaseModel):
    """Per-user weekly activity snapshot.

    Not stored on its own; it is serialized into the template data of a
    ``weekly_digest`` queue item.
    """

    user_id: str
    email: EmailStr
    partner1_name: str = "Partner 1"
    partner2_name: str = "Partner 2"
    tasks_completed: list[TaskSummary] = Field(default_factory=list)
    tasks_due: list[TaskSummary] = Field(default_factory=list)
    tasks_overdue: list[TaskSummary] = Field(default_factory=list)
    dreams: list[DreamProgress] = Field(default_factory=list)
    budget_spent: float = 0.0
    budget_remaining: float = 0.0
    budget_status: BudgetStatus = BudgetStatus.ON_TRACK

    @property
    def has_activity(self) -> bool:
        """True when at least one task list is non-empty."""
        return bool(self.tasks_completed or self.tasks_due or self.tasks_overdue)
