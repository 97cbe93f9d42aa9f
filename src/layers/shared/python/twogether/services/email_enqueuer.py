"""Queue outbound emails, honouring per-user notification preferences."""

from datetime import datetime
from typing import Any

import structlog

from twogether.models.email_queue import EmailQueueItem
from twogether.models.email_templates import EmailType, TemplateData, parse_template_data
from twogether.repositories.activity import ActivityRepository
from twogether.repositories.email_queue import EmailQueueRepository

logger = structlog.get_logger()


class EmailEnqueuer:
    """Create pending queue items for the worker to send."""

    def __init__(self, queue_repo: EmailQueueRepository, activity_repo: ActivityRepository):
        self.queue_repo = queue_repo
        self.activity_repo = activity_repo

    def enqueue(
        self,
        recipient_email: str,
        template_data: TemplateData,
        recipient_user_id: str | None = None,
        scheduled_for: datetime | None = None,
        check_preferences: bool = True,
    ) -> EmailQueueItem | None:
        """Queue one email.

        When the recipient is a known user, their notification preferences
        decide whether this type of email may be sent at all.

        Args:
            recipient_email: Destination address.
            template_data: Typed payload; its ``email_type`` selects the template.
            recipient_user_id: Recipient user, if known.
            scheduled_for: Earliest send time (defaults to now).
            check_preferences: Skip the preference lookup when False.

        Returns:
            The pending item, or None if the user opted out.

        Raises:
            pydantic.ValidationError: If the recipient address is invalid.
            ConflictError: If the generated ID already exists.
        """
        email_type = template_data.email_type

        if recipient_user_id and check_preferences:
            preferences = self.activity_repo.get_preferences(recipient_user_id)
            if not preferences.allows(email_type):
                logger.info(
                    "Email suppressed by notification preferences",
                    user_id=recipient_user_id,
                    email_type=email_type,
                )
                return None

        item = EmailQueueItem(
            recipient_email=recipient_email,
            recipient_user_id=recipient_user_id,
            email_type=email_type,
            template_data=template_data,
            scheduled_for=scheduled_for,
        )
        return self.queue_repo.enqueue(item)

    def enqueue_raw(
        self,
        recipient_email: str,
        email_type: str | EmailType,
        data: dict[str, Any] | None,
        **kwargs: Any,
    ) -> EmailQueueItem | None:
        """Validate an untyped payload for ``email_type`` and queue it."""
        return self.enqueue(recipient_email, parse_template_data(email_type, data), **kwargs)
