"""Planning activity models read by the weekly digest.

These entities are owned by the application; the email pipeline only reads
them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel as PydanticBaseModel, EmailStr, Field, field_validator

from twogether.models.base import BaseModel, ensure_utc


class NotificationPreferences(PydanticBaseModel):
    """Per-user email notification switches. Everything defaults to on."""

    email_enabled: bool = True
    email_weekly_digest: bool = True
    email_task_assigned: bool = True
    email_task_completed: bool = True
    email_nudges: bool = True
    email_partner_activity: bool = True

    def allows(self, email_type: str) -> bool:
        """Check whether an email of the given type may be queued for this user."""
        if not self.email_enabled:
            return False

        switch = {
            "task_assigned": self.email_task_assigned,
            "task_completed": self.email_task_completed,
            "nudge": self.email_nudges,
            "partner_joined": self.email_partner_activity,
            "weekly_digest": self.email_weekly_digest,
        }
        return switch.get(email_type, True)

    @property
    def wants_weekly_digest(self) -> bool:
        return self.email_enabled and self.email_weekly_digest


class UserProfile(BaseModel):
    """Application user profile.

    Key Pattern:
        PK: USER#{id}
        SK: PROFILE
        GSI1PK: PROFILES
        GSI1SK: {id}
    """

    _pk_prefix: ClassVar[str] = "USER#"
    _sk_prefix: ClassVar[str] = "PROFILE"

    email: EmailStr = Field(..., description="Primary email address")
    full_name: str | None = Field(None, description="Display name")
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)

    def get_pk(self) -> str:
        return f"USER#{self.id}"

    def get_sk(self) -> str:
        return "PROFILE"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for listing all profiles."""
        return {"GSI1PK": "PROFILES", "GSI1SK": self.id}


class Roadmap(BaseModel):
    """A couple's planning roadmap (a "dream").

    Key Pattern:
        PK: USER#{user_id}
        SK: ROADMAP#{id}
    """

    _pk_prefix: ClassVar[str] = "USER#"
    _sk_prefix: ClassVar[str] = "ROADMAP#"

    user_id: str = Field(..., description="Owning user ID")
    title: str = Field(..., description="Roadmap title")
    partner1_name: str | None = None
    partner2_name: str | None = None

    def get_pk(self) -> str:
        return f"USER#{self.user_id}"

    def get_sk(self) -> str:
        return f"ROADMAP#{self.id}"


class Milestone(BaseModel):
    """Roadmap milestone with recorded progress and budget allocation.

    Key Pattern:
        PK: ROADMAP#{roadmap_id}
        SK: MILESTONE#{id}
    """

    _pk_prefix: ClassVar[str] = "ROADMAP#"
    _sk_prefix: ClassVar[str] = "MILESTONE#"

    roadmap_id: str
    title: str
    progress_percentage: float = Field(default=0.0, ge=0)
    budget_amount: float = Field(default=0.0)

    def get_pk(self) -> str:
        return f"ROADMAP#{self.roadmap_id}"

    def get_sk(self) -> str:
        return f"MILESTONE#{self.id}"


class Task(BaseModel):
    """Task under a milestone.

    Key Pattern:
        PK: ROADMAP#{roadmap_id}
        SK: TASK#{id}
    """

    _pk_prefix: ClassVar[str] = "ROADMAP#"
    _sk_prefix: ClassVar[str] = "TASK#"

    roadmap_id: str
    milestone_id: str | None = None
    title: str
    completed: bool = False
    completed_at: datetime | None = None
    due_date: datetime | None = None

    @field_validator("completed_at", "due_date")
    @classmethod
    def _dates_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    def get_pk(self) -> str:
        return f"ROADMAP#{self.roadmap_id}"

    def get_sk(self) -> str:
        return f"TASK#{self.id}"


class Expense(BaseModel):
    """Recorded expense against a roadmap. ``created_at`` is the spend time.

    Key Pattern:
        PK: ROADMAP#{roadmap_id}
        SK: EXPENSE#{id}
    """

    _pk_prefix: ClassVar[str] = "ROADMAP#"
    _sk_prefix: ClassVar[str] = "EXPENSE#"

    roadmap_id: str
    amount: float = 0.0
    description: str | None = None

    def get_pk(self) -> str:
        return f"ROADMAP#{self.roadmap_id}"

    def get_sk(self) -> str:
        return f"EXPENSE#{self.id}"


@dataclass
class UserActivity:
    """Everything the digest needs for one user, fetched up front."""

    profile: UserProfile
    roadmaps: list[Roadmap] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
