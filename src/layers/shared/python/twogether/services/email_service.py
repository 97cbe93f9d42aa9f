"""Email sending through Amazon SES."""

from typing import Any

import boto3
import structlog
from botocore.exceptions import ClientError

logger = structlog.get_logger()


class EmailError(Exception):
    """Custom exception for email-related errors."""

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        """Initialize EmailError.

        Args:
            message: Error message.
            code: Error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class EmailService:
    """Thin wrapper around the SES ``send_email`` call."""

    def __init__(
        self,
        region_name: str | None = None,
        configuration_set: str | None = None,
    ):
        """Initialize Email service.

        Args:
            region_name: AWS region for SES.
            configuration_set: Optional SES configuration set for tracking.
        """
        self.region_name = region_name or "us-east-1"
        self.configuration_set = configuration_set
        self._client = None

    @property
    def client(self):
        """Get SES client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("ses", region_name=self.region_name)
        return self._client

    def send_email(
        self,
        to: str | list[str],
        subject: str,
        from_email: str,
        body_text: str | None = None,
        body_html: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send an email.

        Args:
            to: Recipient email address(es).
            subject: Email subject.
            from_email: Sender, optionally with a display name.
            body_text: Plain text body.
            body_html: HTML body.
            tags: Message tags for tracking.

        Returns:
            Dict with message_id and status.

        Raises:
            EmailError: If the request is incomplete or SES rejects it.
        """
        if not from_email:
            raise EmailError("Sender email address is required", code="SENDER_MISSING")

        if not to:
            raise EmailError("Recipient email address is required", code="RECIPIENT_MISSING")

        if not body_text and not body_html:
            raise EmailError("Email body is required", code="BODY_MISSING")

        if isinstance(to, str):
            to = [to]

        logger.info(
            "Sending email",
            to=to,
            from_email=from_email,
            subject=subject[:50] + "..." if len(subject) > 50 else subject,
            has_html=bool(body_html),
        )

        body: dict[str, Any] = {}
        if body_text:
            body["Text"] = {"Data": body_text, "Charset": "UTF-8"}
        if body_html:
            body["Html"] = {"Data": body_html, "Charset": "UTF-8"}

        kwargs: dict[str, Any] = {
            "Source": from_email,
            "Destination": {"ToAddresses": to},
            "Message": {
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": body,
            },
        }

        if self.configuration_set:
            kwargs["ConfigurationSetName"] = self.configuration_set

        if tags:
            kwargs["Tags"] = [{"Name": k, "Value": v} for k, v in tags.items()]

        try:
            response = self.client.send_email(**kwargs)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]

            logger.error(
                "SES send failed",
                error_code=error_code,
                error_message=error_message,
                to=to,
            )

            raise EmailError(
                f"Failed to send email: {error_message}",
                code=error_code,
                details={"aws_error": error_message},
            ) from e

        logger.info("Email sent successfully", message_id=response["MessageId"])

        return {
            "message_id": response["MessageId"],
            "status": "sent",
            "to": to,
            "from": from_email,
            "subject": subject,
        }
