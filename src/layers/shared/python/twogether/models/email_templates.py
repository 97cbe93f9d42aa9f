"""Template payloads for queued emails.

Each email type carries its own payload schema. ``TemplateData`` is the
union of all of them, discriminated on ``email_type``.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel as PydanticBaseModel, Field, TypeAdapter

from twogether.models.digest import DigestRecord, TaskSummary


class EmailType(str, Enum):
    """Email template types."""

    PARTNER_INVITE = "partner_invite"
    PARTNER_JOINED = "partner_joined"
    ASSESSMENT_INVITE = "assessment_invite"
    WELCOME = "welcome"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    NUDGE = "nudge"
    WEEKLY_DIGEST = "weekly_digest"
    OVERDUE_REMINDER = "overdue_reminder"


class PartnerInviteData(PydanticBaseModel):
    email_type: Literal["partner_invite"] = "partner_invite"
    inviter_name: str = "Your partner"
    inviter_email: str | None = None
    dream_title: str
    share_code: str
    invite_url: str
    message: str | None = None


class PartnerJoinedData(PydanticBaseModel):
    email_type: Literal["partner_joined"] = "partner_joined"
    partner_name: str = "Your partner"
    dream_title: str
    dashboard_url: str


class AssessmentInviteData(PydanticBaseModel):
    email_type: Literal["assessment_invite"] = "assessment_invite"
    inviter_name: str = "Your partner"
    partner_name: str = "there"
    invite_url: str
    session_code: str


class WelcomeData(PydanticBaseModel):
    email_type: Literal["welcome"] = "welcome"
    name: str = "there"
    dashboard_url: str


class TaskAssignedData(PydanticBaseModel):
    email_type: Literal["task_assigned"] = "task_assigned"
    assignee_name: str = "there"
    assigner_name: str = "Your partner"
    task_title: str
    task_description: str | None = None
    due_date: datetime | None = None
    milestone_title: str | None = None
    dream_title: str | None = None
    task_url: str
    unsubscribe_url: str | None = None


class TaskCompletedData(PydanticBaseModel):
    email_type: Literal["task_completed"] = "task_completed"
    completer_name: str = "Your partner"
    task_title: str
    dream_title: str | None = None
    task_url: str
    unsubscribe_url: str | None = None


class NudgeData(PydanticBaseModel):
    email_type: Literal["nudge"] = "nudge"
    recipient_name: str = "there"
    sender_name: str = "Your partner"
    task_title: str
    nudge_message: str | None = None
    dream_title: str | None = None
    task_url: str
    unsubscribe_url: str | None = None


class OverdueReminderData(PydanticBaseModel):
    email_type: Literal["overdue_reminder"] = "overdue_reminder"
    overdue_count: int = Field(..., ge=1)
    tasks: list[TaskSummary] = Field(default_factory=list)
    dashboard_url: str


class WeeklyDigestData(DigestRecord):
    """Digest record plus the links rendered in the email."""

    email_type: Literal["weekly_digest"] = "weekly_digest"
    dashboard_url: str
    unsubscribe_url: str

    @classmethod
    def from_digest(cls, record: DigestRecord, app_url: str) -> "WeeklyDigestData":
        """Build the queue payload for a digest record."""
        base = app_url.rstrip("/")
        return cls(
            **record.model_dump(),
            dashboard_url=f"{base}/dashboard",
            unsubscribe_url=f"{base}/settings?tab=notifications",
        )


TemplateData = Annotated[
    Union[
        PartnerInviteData,
        PartnerJoinedData,
        AssessmentInviteData,
        WelcomeData,
        TaskAssignedData,
        TaskCompletedData,
        NudgeData,
        WeeklyDigestData,
        OverdueReminderData,
    ],
    Field(discriminator="email_type"),
]

_template_adapter: TypeAdapter[TemplateData] = TypeAdapter(TemplateData)


def parse_template_data(email_type: str | EmailType, data: dict[str, Any] | None) -> TemplateData:
    """Validate a raw payload against the schema for ``email_type``.

    Raises:
        pydantic.ValidationError: If the type is unknown or the payload
            does not match its schema.
    """
    payload = dict(data or {})
    payload["email_type"] = email_type.value if isinstance(email_type, EmailType) else email_type
    return _template_adapter.validate_python(payload)
