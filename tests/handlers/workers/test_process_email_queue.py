"""Tests for the email queue processor Lambda."""

import json
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from twogether.models.email_queue import EmailQueueItem, EmailStatus
from twogether.models.email_templates import NudgeData
from twogether.services.email_transport import SendResult


def _body(response):
    return json.loads(response["body"])


class TestProcessEmailQueueHandler:
    """Tests for process_email_queue.handler."""

    def test_options(self, api_gateway_event, lambda_context):
        from process_email_queue import handler

        response = handler(api_gateway_event(method="OPTIONS"), lambda_context)

        assert response["statusCode"] == 200
        assert response["body"] == ""
        assert response["headers"]["Access-Control-Allow-Origin"] == "*"

    @patch("process_email_queue.build_transport")
    @patch("process_email_queue.EmailQueueRepository")
    def test_empty_queue(self, mock_repo_cls, mock_build_transport, lambda_context):
        from process_email_queue import handler

        mock_repo = MagicMock()
        mock_repo.release_stale_claims.return_value = 0
        mock_repo.claim_pending.return_value = []
        mock_repo_cls.return_value = mock_repo

        response = handler({}, lambda_context)

        assert response["statusCode"] == 200
        assert _body(response) == {
            "success": True,
            "processed": 0,
            "sent": 0,
            "failed": 0,
            "errors": [],
            "reclaimed": 0,
        }
        assert mock_repo.claim_pending.call_args.kwargs["batch_size"] == 50

    @patch("process_email_queue.build_transport")
    @patch("process_email_queue.EmailQueueRepository")
    def test_batch_size_from_body(self, mock_repo_cls, mock_build_transport, api_gateway_event, lambda_context):
        from process_email_queue import handler

        mock_repo = MagicMock()
        mock_repo.release_stale_claims.return_value = 0
        mock_repo.claim_pending.return_value = []
        mock_repo_cls.return_value = mock_repo

        handler(api_gateway_event(body={"batch_size": 7}), lambda_context)

        assert mock_repo.claim_pending.call_args.kwargs["batch_size"] == 7

    @patch("process_email_queue.build_transport")
    @patch("process_email_queue.EmailQueueRepository")
    def test_batch_size_from_schedule_as_string(self, mock_repo_cls, mock_build_transport, lambda_context):
        from process_email_queue import handler

        mock_repo = MagicMock()
        mock_repo.release_stale_claims.return_value = 0
        mock_repo.claim_pending.return_value = []
        mock_repo_cls.return_value = mock_repo

        handler({"batch_size": "12"}, lambda_context)

        assert mock_repo.claim_pending.call_args.kwargs["batch_size"] == 12

    def test_invalid_batch_size(self, api_gateway_event, lambda_context):
        from process_email_queue import handler

        for bad in (0, -3, "many", 10_000):
            response = handler(api_gateway_event(body={"batch_size": bad}), lambda_context)

            assert response["statusCode"] == 400
            assert _body(response)["success"] is False

    def test_invalid_json(self, api_gateway_event, lambda_context):
        from process_email_queue import handler

        response = handler(api_gateway_event(body="{not json"), lambda_context)

        assert response["statusCode"] == 400

    @patch("process_email_queue.build_transport")
    @patch("process_email_queue.EmailQueueRepository")
    def test_store_failure(self, mock_repo_cls, mock_build_transport, lambda_context):
        from process_email_queue import handler

        mock_repo = MagicMock()
        mock_repo.release_stale_claims.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "Table not found"}},
            "Query",
        )
        mock_repo_cls.return_value = mock_repo

        response = handler({}, lambda_context)

        assert response["statusCode"] == 500
        body = _body(response)
        assert body["success"] is False
        assert "Table not found" in body["error"]

    @patch("process_email_queue.build_transport")
    def test_drains_store(self, mock_build_transport, dynamodb_table, lambda_context):
        from process_email_queue import handler
        from twogether.repositories.email_queue import EmailQueueRepository

        repo = EmailQueueRepository("twogether-test", "us-east-1")
        ok = repo.enqueue(
            EmailQueueItem(
                recipient_email="ok@example.com",
                template_data=NudgeData(task_title="x", task_url="https://app.example.com/t/1"),
            )
        )
        bad = repo.enqueue(
            EmailQueueItem(
                recipient_email="bad@example.com",
                template_data=NudgeData(task_title="y", task_url="https://app.example.com/t/2"),
            )
        )

        transport = MagicMock()
        transport.send.side_effect = lambda recipient, email_type, data: (
            SendResult.sent("msg-ok") if recipient == "ok@example.com" else SendResult.failed("mailbox full")
        )
        mock_build_transport.return_value = transport

        response = handler({"batch_size": 10}, lambda_context)
        body = _body(response)

        assert response["statusCode"] == 200
        assert (body["processed"], body["sent"], body["failed"]) == (2, 1, 1)
        assert body["errors"] == ["bad@example.com: provider error: mailbox full"]
        assert repo.get_by_id(ok.id).status == EmailStatus.SENT.value
        failed = repo.get_by_id(bad.id)
        assert failed.status == EmailStatus.FAILED.value
        assert failed.error_detail == "provider error: mailbox full"

        # Terminal items are not touched by later runs
        again = _body(handler({"batch_size": 10}, lambda_context))
        assert again["processed"] == 0
        assert repo.get_by_id(bad.id).error_detail == "provider error: mailbox full"
