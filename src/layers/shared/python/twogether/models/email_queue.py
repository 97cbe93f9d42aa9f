"""Email queue item model."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import EmailStr, Field, field_validator, model_validator

from twogether.models.base import BaseModel, ensure_utc, sortable_timestamp, utc_now
from twogether.models.email_templates import EmailType, TemplateData


class EmailStatus(str, Enum):
    """Queue item lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


TERMINAL_STATUSES = (EmailStatus.SENT, EmailStatus.FAILED)


def queue_index_keys(status: EmailStatus | str, anchor: datetime, item_id: str) -> dict[str, str]:
    """Build the GSI1 keys that place an item in its status partition."""
    if isinstance(status, EmailStatus):
        status = status.value
    return {
        "GSI1PK": f"EMAIL_QUEUE#{status}",
        "GSI1SK": f"{sortable_timestamp(anchor)}#{item_id}",
    }


class EmailQueueItem(BaseModel):
    """One outbound email request.

    Only the queue worker changes ``status``, ``provider_message_id`` and
    ``error_detail``; recipient, type and template data are fixed at enqueue
    time.

    Key Pattern:
        PK: EMAIL#{id}
        SK: META
        GSI1PK: EMAIL_QUEUE#{status}
        GSI1SK: {scheduled_for | lease_expires_at | processed_at}#{id}
    """

    _pk_prefix: ClassVar[str] = "EMAIL#"
    _sk_prefix: ClassVar[str] = "META"

    recipient_email: EmailStr = Field(..., description="Destination address")
    recipient_user_id: str | None = Field(None, description="Recipient user, if known")
    email_type: EmailType = Field(..., description="Template discriminator")
    template_data: TemplateData = Field(..., description="Payload for the template")
    status: EmailStatus = Field(default=EmailStatus.PENDING)
    scheduled_for: datetime = Field(..., description="Earliest time the item may be claimed")

    # Claim bookkeeping
    claim_token: str | None = None
    claimed_at: datetime | None = None
    lease_expires_at: datetime | None = None
    attempts: int = Field(default=0, ge=0)

    # Outcome
    provider_message_id: str | None = None
    error_detail: str | None = None
    processed_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        """Default ``scheduled_for`` to enqueue time and tag raw payloads."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("created_at") is None:
            data["created_at"] = utc_now()
        if data.get("scheduled_for") is None:
            data["scheduled_for"] = data["created_at"]

        email_type = data.get("email_type")
        template_data = data.get("template_data")
        if isinstance(template_data, dict) and "email_type" not in template_data and email_type:
            tag = email_type.value if isinstance(email_type, EmailType) else email_type
            data["template_data"] = {**template_data, "email_type": tag}
        elif email_type is None and template_data is not None:
            data["email_type"] = (
                template_data.get("email_type")
                if isinstance(template_data, dict)
                else template_data.email_type
            )
        return data

    @model_validator(mode="after")
    def _payload_matches_type(self) -> "EmailQueueItem":
        if self.template_data.email_type != self.email_type:
            raise ValueError(
                f"template_data is for '{self.template_data.email_type}', "
                f"not '{self.email_type}'"
            )
        return self

    @field_validator("scheduled_for", "claimed_at", "lease_expires_at", "processed_at")
    @classmethod
    def _times_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def get_pk(self) -> str:
        """Get partition key: EMAIL#{id}."""
        return f"EMAIL#{self.id}"

    def get_sk(self) -> str:
        """Get sort key: META."""
        return "META"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for listing items by status in time order."""
        if self.status == EmailStatus.PENDING:
            anchor = self.scheduled_for
        elif self.status == EmailStatus.PROCESSING:
            anchor = self.lease_expires_at or self.updated_at
        else:
            anchor = self.processed_at or self.updated_at
        return queue_index_keys(self.status, anchor, self.id)
