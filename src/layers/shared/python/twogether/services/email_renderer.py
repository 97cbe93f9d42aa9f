"""Branded subject, HTML and plain-text rendering for each email type."""

from collections.abc import Callable
from html import escape
from typing import Any

from pydantic import BaseModel as PydanticBaseModel, Field

from twogether.models.digest import BudgetStatus, TaskSummary
from twogether.models.email_templates import (
    AssessmentInviteData,
    EmailType,
    NudgeData,
    OverdueReminderData,
    PartnerInviteData,
    PartnerJoinedData,
    TaskAssignedData,
    TaskCompletedData,
    TemplateData,
    WeeklyDigestData,
    WelcomeData,
    parse_template_data,
)

BASE_STYLES = """
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #2D2926; margin: 0; padding: 0; background-color: #FDFCF8; }
.container { max-width: 600px; margin: 0 auto; background: white; }
.header { background: linear-gradient(135deg, #F59E0B 0%, #EA580C 100%); padding: 32px; text-align: center; }
.header h1 { color: white; margin: 0; font-size: 24px; font-weight: 600; }
.header p { color: rgba(255,255,255,0.9); margin: 8px 0 0; font-size: 14px; }
.content { padding: 32px; }
.section-title { font-size: 14px; text-transform: uppercase; letter-spacing: 1px; color: #6B5E54; font-weight: 600; }
.card { background: #FAF7F2; border-radius: 12px; padding: 20px; margin: 16px 0; border: 1px solid #E8E2DA; }
.button { display: inline-block; background: #2D2926; color: white !important; padding: 14px 28px; border-radius: 8px; text-decoration: none; font-weight: 600; margin: 16px 0; }
.footer { padding: 24px 32px; background: #FAF7F2; text-align: center; font-size: 12px; color: #6B5E54; border-top: 1px solid #E8E2DA; }
.task-item { padding: 12px 0; border-bottom: 1px solid #E8E2DA; }
.progress-bar { background: #E8E2DA; border-radius: 999px; height: 8px; overflow: hidden; margin-top: 8px; }
.progress-fill { background: linear-gradient(90deg, #F59E0B, #EA580C); height: 100%; border-radius: 999px; }
"""

BUDGET_LABELS = {
    BudgetStatus.ON_TRACK: "On track",
    BudgetStatus.WARNING: "Getting close to your budget",
    BudgetStatus.OVER_BUDGET: "Over budget",
}


class RenderedEmail(PydanticBaseModel):
    """Fully rendered message ready for a transport."""

    from_email: str
    subject: str
    html: str
    text: str
    tags: dict[str, str] = Field(default_factory=dict)


def _button(url: str, label: str) -> str:
    return f'<div style="text-align: center;"><a href="{escape(url)}" class="button">{escape(label)}</a></div>'


def _due_label(task: TaskSummary) -> str:
    return task.due_date.strftime("%a %b %d") if task.due_date else ""


def _money(amount: float) -> str:
    return f"€{amount:,.2f}"


class EmailRenderer:
    """Render queue payloads into complete emails.

    Each email type picks one of three sender identities (team,
    notifications, digest) on the configured sending domain.
    """

    def __init__(self, sender_domain: str, brand_name: str = "TwogetherForward"):
        self.sender_domain = sender_domain
        self.brand_name = brand_name
        self.senders = {
            "team": f"{brand_name} Team <team@{sender_domain}>",
            "notifications": f"{brand_name} <notifications@{sender_domain}>",
            "digest": f"{brand_name} Weekly <digest@{sender_domain}>",
        }
        self._renderers: dict[str, tuple[str, Callable]] = {
            "partner_invite": ("team", self._partner_invite),
            "partner_joined": ("team", self._partner_joined),
            "assessment_invite": ("team", self._assessment_invite),
            "welcome": ("team", self._welcome),
            "task_assigned": ("notifications", self._task_assigned),
            "task_completed": ("notifications", self._task_completed),
            "nudge": ("notifications", self._nudge),
            "weekly_digest": ("digest", self._weekly_digest),
            "overdue_reminder": ("notifications", self._overdue_reminder),
        }

    def render(self, email_type: str, template_data: TemplateData | dict[str, Any]) -> RenderedEmail:
        """Render one email.

        Args:
            email_type: Email template type.
            template_data: Typed payload, or a raw dict validated against
                the schema for ``email_type``.

        Raises:
            ValueError: If the type has no renderer or does not match the payload.
            pydantic.ValidationError: If a raw payload fails validation.
        """
        email_type = email_type.value if isinstance(email_type, EmailType) else email_type
        if email_type not in self._renderers:
            raise ValueError(f"Unknown email type: {email_type}")

        if isinstance(template_data, dict):
            data = parse_template_data(email_type, template_data)
        else:
            data = template_data
        if data.email_type != email_type:
            raise ValueError(f"template_data is for '{data.email_type}', not '{email_type}'")

        sender, renderer = self._renderers[email_type]
        subject, title, tagline, body_html, text, footer = renderer(data)

        return RenderedEmail(
            from_email=self.senders[sender],
            subject=subject,
            html=self._layout(title, tagline, body_html, footer),
            text=f"{text.strip()}\n\n--\n{self.brand_name} - Plan your future, together",
            tags={"type": email_type},
        )

    def _layout(self, title: str, tagline: str | None, body_html: str, footer_html: str | None) -> str:
        tagline_html = f"<p>{escape(tagline)}</p>" if tagline else ""
        footer = footer_html or ""
        return (
            "<!DOCTYPE html>"
            f"<html><head><style>{BASE_STYLES}</style></head><body>"
            '<div class="container">'
            f'<div class="header"><h1>{escape(title)}</h1>{tagline_html}</div>'
            f'<div class="content">{body_html}</div>'
            f'<div class="footer"><p>{escape(self.brand_name)} - Plan your future, together</p>{footer}</div>'
            "</div></body></html>"
        )

    @staticmethod
    def _unsubscribe(url: str | None, label: str) -> str | None:
        if not url:
            return None
        return f'<p><a href="{escape(url)}" style="color: #6B5E54;">{escape(label)}</a></p>'

    # -------------------------------------------------------------------------
    # Per-type renderers: (subject, title, tagline, body_html, text, footer_html)
    # -------------------------------------------------------------------------

    def _partner_invite(self, data: PartnerInviteData):
        message_html = (
            f'<p style="color: #6B5E54; margin: 0;">"{escape(data.message)}"</p>' if data.message else ""
        )
        body = (
            "<p>Hi there,</p>"
            f"<p><strong>{escape(data.inviter_name)}</strong> has invited you to join their dream:</p>"
            f'<div class="card"><h2 style="margin: 0 0 8px;">{escape(data.dream_title)}</h2>{message_html}</div>'
            + _button(data.invite_url, "Accept Invitation")
            + f"<p>Or use this code: <strong>{escape(data.share_code)}</strong></p>"
        )
        text = (
            f"{data.inviter_name} invited you to join their dream on {self.brand_name}!\n\n"
            f"Dream: {data.dream_title}\n"
            + (f'Message: "{data.message}"\n' if data.message else "")
            + f"\nAccept the invitation: {data.invite_url}\nOr use code: {data.share_code}\n\n"
            "This invite expires in 7 days."
        )
        subject = f"{data.inviter_name} invited you to join their dream on {self.brand_name}"
        footer = "<p>This invite expires in 7 days.</p>"
        return subject, "You're Invited!", "Someone special wants to plan the future with you", body, text, footer

    def _partner_joined(self, data: PartnerJoinedData):
        body = (
            f"<p><strong>{escape(data.partner_name)}</strong> accepted your invitation and joined:</p>"
            f'<div class="card"><h2 style="margin: 0;">{escape(data.dream_title)}</h2></div>'
            "<p>You can now assign tasks to each other, track progress together and nudge each other when needed.</p>"
            + _button(data.dashboard_url, "View Your Dream")
        )
        text = (
            f"{data.partner_name} joined your dream: {data.dream_title}\n\n"
            f"View your dream: {data.dashboard_url}"
        )
        subject = f"{data.partner_name} joined your dream: {data.dream_title}"
        return subject, "Your Partner Joined!", "Time to start planning together", body, text, None

    def _assessment_invite(self, data: AssessmentInviteData):
        body = (
            f"<p>Hi {escape(data.partner_name)},</p>"
            f"<p><strong>{escape(data.inviter_name)}</strong> wants to take a relationship alignment test with you.</p>"
            '<div class="card"><p style="margin: 0;">Takes about 15-20 minutes. Complete it on your own device '
            "and get personalized insights together.</p></div>"
            + _button(data.invite_url, "Start the Test")
            + f"<p>Or enter this code: <strong>{escape(data.session_code)}</strong></p>"
        )
        text = (
            f"Hi {data.partner_name},\n\n"
            f"{data.inviter_name} wants to take a relationship alignment test with you on {self.brand_name}!\n\n"
            f"Start the test: {data.invite_url}\nOr enter this code: {data.session_code}\n\n"
            "This session expires in 7 days."
        )
        subject = f"{data.inviter_name} wants to take a relationship alignment test with you"
        return subject, "Alignment Test Invite", None, body, text, "<p>This session expires in 7 days.</p>"

    def _welcome(self, data: WelcomeData):
        body = (
            f"<p>Hi {escape(data.name)},</p>"
            "<p>Welcome aboard! Start by creating your first dream and inviting your partner.</p>"
            + _button(data.dashboard_url, "Get Started")
        )
        text = f"Hi {data.name},\n\nWelcome aboard!\n\nGet started: {data.dashboard_url}"
        subject = f"Welcome to {self.brand_name}! Let's plan your future together"
        return subject, f"Welcome to {self.brand_name}", None, body, text, None

    def _task_assigned(self, data: TaskAssignedData):
        details = ""
        if data.task_description:
            details += f'<p style="color: #6B5E54; margin: 0;">{escape(data.task_description)}</p>'
        if data.due_date:
            details += f'<p style="color: #F59E0B; margin: 8px 0 0;">Due: {data.due_date.strftime("%a %b %d")}</p>'
        body = (
            f"<p><strong>{escape(data.assigner_name)}</strong> assigned you a task:</p>"
            f'<div class="card"><h3 style="margin: 0 0 8px;">{escape(data.task_title)}</h3>{details}</div>'
            + _button(data.task_url, "View Task")
        )
        text = (
            f"{data.assigner_name} assigned you a task: {data.task_title}\n"
            + (f"Due: {data.due_date.strftime('%a %b %d')}\n" if data.due_date else "")
            + f"\nView task: {data.task_url}"
        )
        footer = self._unsubscribe(data.unsubscribe_url, "Unsubscribe from task notifications")
        return f"New task assigned: {data.task_title}", "New Task Assigned", None, body, text, footer

    def _task_completed(self, data: TaskCompletedData):
        body = (
            f"<p><strong>{escape(data.completer_name)}</strong> completed a task:</p>"
            f'<div class="card"><h3 style="margin: 0;">{escape(data.task_title)}</h3></div>'
            + _button(data.task_url, "See Progress")
        )
        text = f"{data.completer_name} completed: {data.task_title}\n\nSee progress: {data.task_url}"
        footer = self._unsubscribe(data.unsubscribe_url, "Unsubscribe from task notifications")
        return f"Task completed: {data.task_title}", "Task Completed", None, body, text, footer

    def _nudge(self, data: NudgeData):
        message_html = (
            f'<p style="color: #6B5E54; margin: 0; font-style: italic;">"{escape(data.nudge_message)}"</p>'
            if data.nudge_message
            else ""
        )
        body = (
            f"<p><strong>{escape(data.sender_name)}</strong> is checking in on you:</p>"
            f'<div class="card"><h3 style="margin: 0 0 8px;">{escape(data.task_title)}</h3>{message_html}</div>'
            + _button(data.task_url, "Take Action")
        )
        text = (
            f"{data.sender_name} nudged you about: {data.task_title}\n"
            + (f'"{data.nudge_message}"\n' if data.nudge_message else "")
            + f"\nTake action: {data.task_url}"
        )
        footer = self._unsubscribe(data.unsubscribe_url, "Unsubscribe from nudges")
        return f"{data.sender_name} nudged you about: {data.task_title}", "Friendly Nudge", None, body, text, footer

    def _overdue_reminder(self, data: OverdueReminderData):
        plural = "s" if data.overdue_count > 1 else ""
        items = "".join(f'<div class="task-item">! {escape(t.title)}</div>' for t in data.tasks)
        body = (
            f"<p>You have {data.overdue_count} overdue task{plural}:</p>"
            f'<div class="card">{items}</div>'
            + _button(data.dashboard_url, "Catch Up")
        )
        text = (
            f"You have {data.overdue_count} overdue task{plural}:\n"
            + "\n".join(f"! {t.title}" for t in data.tasks)
            + f"\n\nView dashboard: {data.dashboard_url}"
        )
        subject = f"Reminder: {data.overdue_count} task{plural} overdue"
        return subject, "Overdue Tasks", None, body, text, None

    def _weekly_digest(self, data: WeeklyDigestData):
        if data.tasks_completed:
            completed_html = "".join(
                f'<div class="task-item"><span style="color: #22C55E;">&#10003;</span> {escape(t.title)}</div>'
                for t in data.tasks_completed
            )
        else:
            completed_html = '<p style="color: #6B5E54;">No tasks completed this week. You\'ve got this!</p>'

        if data.tasks_due:
            due_html = "".join(
                f'<div class="task-item"><span style="color: #F59E0B;">&rarr;</span> {escape(t.title)} '
                f'<span style="color: #6B5E54;">(Due {_due_label(t)})</span></div>'
                for t in data.tasks_due
            )
        else:
            due_html = '<p style="color: #6B5E54;">Nothing due next week. Enjoy the breather!</p>'

        overdue_html = ""
        if data.tasks_overdue:
            overdue_html = '<p class="section-title">Overdue</p>' + "".join(
                f'<div class="task-item"><span style="color: #EF4444;">!</span> {escape(t.title)}</div>'
                for t in data.tasks_overdue
            )

        dreams_html = "".join(
            f'<div class="card"><strong>{escape(d.title)}</strong> {d.progress_percentage}%'
            f'<div class="progress-bar"><div class="progress-fill" style="width: {min(d.progress_percentage, 100)}%;"></div></div></div>'
            for d in data.dreams
        )

        budget_html = (
            '<div class="card">'
            f"<p>Spent this week: <strong>{_money(data.budget_spent)}</strong></p>"
            f"<p>Remaining: <strong>{_money(data.budget_remaining)}</strong></p>"
            f"<p>{BUDGET_LABELS[BudgetStatus(data.budget_status)]}</p>"
            "</div>"
        )

        body = (
            f'<p class="section-title">Completed this week ({len(data.tasks_completed)})</p>{completed_html}'
            f'<p class="section-title">Coming up next week</p>{due_html}'
            f"{overdue_html}"
            f'<p class="section-title">Dream progress</p>{dreams_html}'
            f'<p class="section-title">Budget</p>{budget_html}'
            + _button(data.dashboard_url, "Open Dashboard")
        )

        completed_text = "\n".join(f"✓ {t.title}" for t in data.tasks_completed) or "None this week"
        due_text = "\n".join(f"→ {t.title} (Due {_due_label(t)})" for t in data.tasks_due) or "Nothing scheduled"
        overdue_text = (
            "OVERDUE:\n" + "\n".join(f"! {t.title}" for t in data.tasks_overdue) + "\n\n"
            if data.tasks_overdue
            else ""
        )
        text = (
            f"Your Week in Review - {data.partner1_name} & {data.partner2_name}\n\n"
            f"TASKS COMPLETED: {len(data.tasks_completed)}\n{completed_text}\n\n"
            f"COMING UP NEXT WEEK:\n{due_text}\n\n"
            f"{overdue_text}"
            f"BUDGET:\nSpent this week: {_money(data.budget_spent)}\n"
            f"Remaining: {_money(data.budget_remaining)}\n\n"
            f"View dashboard: {data.dashboard_url}\n"
            f"Unsubscribe: {data.unsubscribe_url}"
        )

        subject = f"Your Week in Review: {len(data.tasks_completed)} tasks completed"
        footer = self._unsubscribe(data.unsubscribe_url, "Unsubscribe from weekly digest")
        tagline = f"{data.partner1_name} & {data.partner2_name}"
        return subject, "Your Week in Review", tagline, body, text, footer
