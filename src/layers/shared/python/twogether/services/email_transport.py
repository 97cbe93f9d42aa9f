"""Send transports used by the queue worker and the direct-send API.

A transport takes ``(recipient, email_type, template_data)``, renders the
message and hands it to a provider. Provider rejections come back as a
failed ``SendResult``; anything else (network errors, bad payloads) raises.
"""

from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from twogether.config import EmailPipelineConfig
from twogether.models.email_templates import TemplateData
from twogether.services.email_renderer import EmailRenderer
from twogether.services.email_service import EmailError, EmailService

logger = structlog.get_logger()


@dataclass
class SendResult:
    """Outcome of one send attempt."""

    success: bool
    id: str | None = None
    error: str | None = None

    @classmethod
    def sent(cls, message_id: str | None) -> "SendResult":
        """Create a successful result carrying the provider message ID."""
        return cls(success=True, id=message_id)

    @classmethod
    def failed(cls, error: str) -> "SendResult":
        """Create a provider-rejected result."""
        return cls(success=False, error=error)


class EmailTransport(Protocol):
    def send(
        self,
        recipient: str,
        email_type: str,
        template_data: TemplateData | dict[str, Any],
    ) -> SendResult: ...


class SesEmailTransport:
    """Render and send through Amazon SES."""

    def __init__(self, email_service: EmailService, renderer: EmailRenderer):
        self.email_service = email_service
        self.renderer = renderer

    def send(
        self,
        recipient: str,
        email_type: str,
        template_data: TemplateData | dict[str, Any],
    ) -> SendResult:
        rendered = self.renderer.render(email_type, template_data)

        try:
            result = self.email_service.send_email(
                to=recipient,
                subject=rendered.subject,
                from_email=rendered.from_email,
                body_text=rendered.text,
                body_html=rendered.html,
                tags=rendered.tags,
            )
        except EmailError as e:
            return SendResult.failed(f"{e.code}: {e.message}" if e.code else e.message)

        return SendResult.sent(result.get("message_id"))


class HttpEmailTransport:
    """Render and POST to a Resend-compatible HTTP email API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        renderer: EmailRenderer,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        """Initialize HTTP transport.

        Args:
            api_url: Provider endpoint accepting the send request.
            api_key: Bearer token for the provider.
            renderer: Renderer producing subject and bodies.
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client.
        """
        self.api_url = api_url
        self.api_key = api_key
        self.renderer = renderer
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Get HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def send(
        self,
        recipient: str,
        email_type: str,
        template_data: TemplateData | dict[str, Any],
    ) -> SendResult:
        rendered = self.renderer.render(email_type, template_data)

        payload = {
            "from": rendered.from_email,
            "to": [recipient],
            "subject": rendered.subject,
            "html": rendered.html,
            "text": rendered.text,
            "tags": [{"name": k, "value": v} for k, v in rendered.tags.items()],
        }

        response = self.client.post(
            self.api_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            body = response.json()
        except ValueError:
            body = {"text": response.text}

        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            message = body.get("message") or body.get("error") or body.get("text")
            logger.warning(
                "Email provider rejected send",
                status_code=response.status_code,
                email_type=email_type,
                error=message,
            )
            return SendResult.failed(str(message) if message else f"HTTP {response.status_code}")

        # A 2xx without an id is passed through; the worker records it as malformed
        message_id = body.get("id")
        logger.info("Email sent via HTTP provider", message_id=message_id, email_type=email_type)
        return SendResult.sent(message_id)


def build_transport(config: EmailPipelineConfig) -> EmailTransport:
    """Create the transport selected by ``config.transport``."""
    renderer = EmailRenderer(config.sender_domain, config.brand_name)

    if config.transport == "http":
        return HttpEmailTransport(
            api_url=config.email_api_url,
            api_key=config.email_api_key or "",
            renderer=renderer,
            timeout=config.email_api_timeout,
        )

    return SesEmailTransport(
        EmailService(region_name=config.aws_region, configuration_set=config.ses_configuration_set),
        renderer,
    )
