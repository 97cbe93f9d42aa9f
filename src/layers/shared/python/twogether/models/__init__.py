"""Pydantic models for the email pipeline."""

from twogether.models.activity import (
    Expense,
    Milestone,
    NotificationPreferences,
    Roadmap,
    Task,
    UserActivity,
    UserProfile,
)
from twogether.models.base import BaseModel, TimestampMixin
from twogether.models.digest import BudgetStatus, DigestRecord, DreamProgress, TaskSummary
from twogether.models.email_queue import EmailQueueItem, EmailStatus
from twogether.models.email_templates import (
    EmailType,
    TemplateData,
    WeeklyDigestData,
    parse_template_data,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    # Activity
    "Expense",
    "Milestone",
    "NotificationPreferences",
    "Roadmap",
    "Task",
    "UserActivity",
    "UserProfile",
    # Digest
    "BudgetStatus",
    "DigestRecord",
    "DreamProgress",
    "TaskSummary",
    # Email queue
    "EmailQueueItem",
    "EmailStatus",
    "EmailType",
    "TemplateData",
    "WeeklyDigestData",
    "parse_template_data",
]
