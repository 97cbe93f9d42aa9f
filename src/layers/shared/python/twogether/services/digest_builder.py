"""Weekly digest aggregation.

Turns each eligible user's planning activity into a ``DigestRecord``:
tasks completed in the past window, tasks due in the next window, overdue
tasks, per-roadmap progress and budget health.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from twogether.config import EmailPipelineConfig
from twogether.models.activity import Expense, Milestone, Roadmap, Task, UserActivity, UserProfile
from twogether.models.base import ensure_utc, utc_now
from twogether.models.digest import BudgetStatus, DigestRecord, DreamProgress, TaskSummary
from twogether.repositories.activity import ActivityRepository

logger = structlog.get_logger()

# Per-user data problems that skip the user instead of aborting the run.
# pydantic's ValidationError is a ValueError.
USER_DATA_ERRORS = (ValueError, TypeError, KeyError)


@dataclass
class DigestRunStats:
    """Counters for one digest run."""

    total_users: int = 0
    eligible: int = 0
    built: int = 0
    suppressed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def compute_budget_status(total_spent: float, total_budget: float) -> BudgetStatus:
    """Classify all-time spend against the total allocation.

    Over 100% is over budget, over 80% is a warning. With no budget
    allocated the status is always on track.
    """
    if total_budget <= 0:
        return BudgetStatus.ON_TRACK
    if total_spent > total_budget:
        return BudgetStatus.OVER_BUDGET
    if total_spent * 100 > total_budget * 80:
        return BudgetStatus.WARNING
    return BudgetStatus.ON_TRACK


def compute_dream_progress(roadmap: Roadmap, milestones: list[Milestone]) -> DreamProgress:
    """Average milestone progress for one roadmap, rounded to a whole percent."""
    own = [m for m in milestones if m.roadmap_id == roadmap.id]
    if not own:
        average = 0.0
    else:
        average = sum(m.progress_percentage for m in own) / len(own)
    # No prior-week snapshot is stored, so there is nothing to diff against
    return DreamProgress(title=roadmap.title, progress_percentage=round(average), progress_change=0)


def _summary(task: Task) -> TaskSummary:
    return TaskSummary(id=task.id, title=task.title, due_date=task.due_date)


def select_completed(tasks: list[Task], start: datetime, end: datetime) -> list[TaskSummary]:
    """Tasks completed within ``[start, end]``, in completion order."""
    done = [t for t in tasks if t.completed and t.completed_at and start <= t.completed_at <= end]
    done.sort(key=lambda t: t.completed_at)
    return [_summary(t) for t in done]


def select_due(tasks: list[Task], start: datetime, end: datetime) -> list[TaskSummary]:
    """Open tasks due within ``[start, end]``, soonest first."""
    due = [t for t in tasks if not t.completed and t.due_date and start <= t.due_date <= end]
    due.sort(key=lambda t: t.due_date)
    return [_summary(t) for t in due]


def select_overdue(tasks: list[Task], now: datetime) -> list[TaskSummary]:
    """Open tasks whose due date has passed, oldest first."""
    overdue = [t for t in tasks if not t.completed and t.due_date and t.due_date < now]
    overdue.sort(key=lambda t: t.due_date)
    return [_summary(t) for t in overdue]


def sum_expenses(expenses: list[Expense], start: datetime | None = None, end: datetime | None = None) -> float:
    """Sum expense amounts, optionally limited to ``[start, end]``."""
    total = 0.0
    for expense in expenses:
        if start is not None and expense.created_at < start:
            continue
        if end is not None and expense.created_at > end:
            continue
        total += expense.amount or 0.0
    return total


def build_record(activity: UserActivity, window_end: datetime, window_days: int = 7) -> DigestRecord:
    """Aggregate one user's activity into a digest record.

    Args:
        activity: Everything fetched for the user.
        window_end: End of the look-back window and start of the look-ahead window.
        window_days: Length of both windows.

    Returns:
        DigestRecord, possibly with no task activity.
    """
    window = timedelta(days=window_days)
    window_start = window_end - window
    lookahead_end = window_end + window

    first = activity.roadmaps[0]
    total_budget = sum(m.budget_amount or 0.0 for m in activity.milestones)
    total_spent = sum_expenses(activity.expenses)

    return DigestRecord(
        user_id=activity.profile.id,
        email=activity.profile.email,
        partner1_name=first.partner1_name or "Partner 1",
        partner2_name=first.partner2_name or "Partner 2",
        tasks_completed=select_completed(activity.tasks, window_start, window_end),
        tasks_due=select_due(activity.tasks, window_end, lookahead_end),
        tasks_overdue=select_overdue(activity.tasks, window_end),
        dreams=[compute_dream_progress(r, activity.milestones) for r in activity.roadmaps],
        budget_spent=sum_expenses(activity.expenses, window_start, window_end),
        budget_remaining=total_budget - total_spent,
        budget_status=compute_budget_status(total_spent, total_budget),
    )


class DigestBuilder:
    """Produce weekly digest records for every eligible user."""

    def __init__(self, activity_repo: ActivityRepository, config: EmailPipelineConfig):
        self.activity_repo = activity_repo
        self.config = config

    def build_digests(
        self,
        window_end: datetime | None = None,
        stats: DigestRunStats | None = None,
    ) -> Iterator[DigestRecord]:
        """Lazily yield one digest per eligible user with activity.

        Users who opted out, own no roadmap, or have no task activity are
        skipped. A store failure propagates and ends the run; bad data for a
        single user is logged and that user is skipped.

        Args:
            window_end: Reference time (defaults to now).
            stats: Optional counters updated as the run progresses.

        Yields:
            DigestRecord for each user worth emailing.
        """
        window_end = ensure_utc(window_end) if window_end else utc_now()
        stats = stats if stats is not None else DigestRunStats()

        logger.info("Building weekly digests", window_end=window_end.isoformat())

        for item in self.activity_repo.iter_profile_items():
            stats.total_users += 1
            user_id = item.get("id") or item.get("PK", "unknown")

            try:
                profile = UserProfile.from_dynamodb(item)
                if not profile.notification_preferences.wants_weekly_digest:
                    continue

                roadmaps = self.activity_repo.list_roadmaps(profile.id)
                if not roadmaps:
                    logger.debug("Skipping user without roadmaps", user_id=profile.id)
                    continue

                stats.eligible += 1
                activity = self.activity_repo.load_activity(profile, roadmaps)
                record = build_record(activity, window_end, self.config.digest_window_days)
            except USER_DATA_ERRORS as e:
                stats.failed += 1
                stats.errors.append(f"{user_id}: {type(e).__name__}: {e}")
                logger.warning("Skipping user with malformed data", user_id=user_id, error=str(e))
                continue

            if not record.has_activity:
                stats.suppressed += 1
                logger.debug("Skipping user with no activity", user_id=profile.id)
                continue

            stats.built += 1
            yield record

        logger.info(
            "Weekly digests built",
            total_users=stats.total_users,
            eligible=stats.eligible,
            built=stats.built,
            suppressed=stats.suppressed,
            failed=stats.failed,
        )
