"""Tests for send transports and the SES email service."""

import json
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

from twogether.config import EmailPipelineConfig
from twogether.models.email_templates import TaskAssignedData
from twogether.services.email_renderer import EmailRenderer
from twogether.services.email_service import EmailError, EmailService
from twogether.services.email_transport import (
    HttpEmailTransport,
    SendResult,
    SesEmailTransport,
    build_transport,
)

TASK = TaskAssignedData(task_title="Book venue", task_url="https://app.example.com/t/1")


@pytest.fixture
def renderer():
    return EmailRenderer("example.com")


def _client_error(code="MessageRejected", message="Email address is not verified."):
    return ClientError({"Error": {"Code": code, "Message": message}}, "SendEmail")


class TestEmailService:
    def _service(self, client):
        service = EmailService(region_name="us-east-1", configuration_set="tracking")
        service._client = client
        return service

    def test_send_email(self):
        client = MagicMock()
        client.send_email.return_value = {"MessageId": "ses-123"}
        service = self._service(client)

        result = service.send_email(
            to="sam@example.com",
            subject="Hello",
            from_email="TwogetherForward <team@example.com>",
            body_text="Hi",
            body_html="<p>Hi</p>",
            tags={"type": "welcome"},
        )

        assert result["message_id"] == "ses-123"
        kwargs = client.send_email.call_args.kwargs
        assert kwargs["Destination"] == {"ToAddresses": ["sam@example.com"]}
        assert kwargs["ConfigurationSetName"] == "tracking"
        assert kwargs["Tags"] == [{"Name": "type", "Value": "welcome"}]
        assert kwargs["Message"]["Body"]["Html"]["Data"] == "<p>Hi</p>"

    def test_missing_body(self):
        service = self._service(MagicMock())

        with pytest.raises(EmailError) as exc_info:
            service.send_email(to="sam@example.com", subject="Hello", from_email="team@example.com")

        assert exc_info.value.code == "BODY_MISSING"

    def test_client_error_wrapped(self):
        client = MagicMock()
        client.send_email.side_effect = _client_error()
        service = self._service(client)

        with pytest.raises(EmailError) as exc_info:
            service.send_email(to="sam@example.com", subject="Hi", from_email="team@example.com", body_text="Hi")

        assert exc_info.value.code == "MessageRejected"


class TestSesEmailTransport:
    def test_success(self, renderer):
        email_service = MagicMock()
        email_service.send_email.return_value = {"message_id": "ses-1", "status": "sent"}

        result = SesEmailTransport(email_service, renderer).send("sam@example.com", "task_assigned", TASK)

        assert result == SendResult(success=True, id="ses-1")
        kwargs = email_service.send_email.call_args.kwargs
        assert kwargs["to"] == "sam@example.com"
        assert kwargs["subject"] == "New task assigned: Book venue"
        assert kwargs["from_email"] == "TwogetherForward <notifications@example.com>"

    def test_ses_rejection_is_failed_result(self, renderer):
        email_service = MagicMock()
        email_service.send_email.side_effect = EmailError(
            "Failed to send email: Email address is not verified.", code="MessageRejected"
        )

        result = SesEmailTransport(email_service, renderer).send("sam@example.com", "task_assigned", TASK)

        assert result.success is False
        assert result.error == "MessageRejected: Failed to send email: Email address is not verified."

    def test_render_errors_raise(self, renderer):
        with pytest.raises(ValueError):
            SesEmailTransport(MagicMock(), renderer).send("sam@example.com", "unknown", {})


class TestHttpEmailTransport:
    def _transport(self, renderer, handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return HttpEmailTransport(
            api_url="https://api.mail.example.com/emails",
            api_key="secret-key",
            renderer=renderer,
            client=client,
        )

    def test_success(self, renderer):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "re_123"})

        result = self._transport(renderer, handler).send("sam@example.com", "task_assigned", TASK)

        assert result == SendResult(success=True, id="re_123")
        assert captured["auth"] == "Bearer secret-key"
        assert captured["body"]["to"] == ["sam@example.com"]
        assert captured["body"]["subject"] == "New task assigned: Book venue"
        assert captured["body"]["tags"] == [{"name": "type", "value": "task_assigned"}]
        assert set(captured["body"]) == {"from", "to", "subject", "html", "text", "tags"}

    def test_non_2xx_is_failed_result(self, renderer):
        def handler(request):
            return httpx.Response(422, json={"name": "validation_error", "message": "Invalid `to` field"})

        result = self._transport(renderer, handler).send("sam@example.com", "task_assigned", TASK)

        assert result.success is False
        assert result.error == "Invalid `to` field"

    def test_non_json_error_body(self, renderer):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        result = self._transport(renderer, handler).send("sam@example.com", "task_assigned", TASK)

        assert result.success is False
        assert result.error == "Bad Gateway"

    def test_2xx_without_id(self, renderer):
        def handler(request):
            return httpx.Response(200, json={"ok": True})

        result = self._transport(renderer, handler).send("sam@example.com", "task_assigned", TASK)

        assert result.success is True
        assert result.id is None

    def test_network_error_raises(self, renderer):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(httpx.ConnectError):
            self._transport(renderer, handler).send("sam@example.com", "task_assigned", TASK)


class TestBuildTransport:
    def test_defaults_to_ses(self, config):
        transport = build_transport(config)

        assert isinstance(transport, SesEmailTransport)
        assert transport.renderer.sender_domain == "example.com"

    def test_http(self):
        config = EmailPipelineConfig(transport="http", email_api_key="secret-key", email_api_timeout=5)

        transport = build_transport(config)

        assert isinstance(transport, HttpEmailTransport)
        assert transport.api_key == "secret-key"
        assert transport.timeout == 5
