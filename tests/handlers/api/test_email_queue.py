"""Tests for the email queue API handler."""

import json

from twogether.models.activity import NotificationPreferences, UserProfile


def _body(response):
    return json.loads(response["body"])


NUDGE = {
    "to": "sam@example.com",
    "type": "nudge",
    "data": {"sender_name": "Alex", "task_title": "Call caterer", "task_url": "https://app.example.com/t/1"},
}


class TestEmailQueueHandler:
    """Tests for api.email_queue.handler."""

    def test_options(self, api_gateway_event, lambda_context):
        from api.email_queue import handler

        response = handler(api_gateway_event(method="OPTIONS"), lambda_context)

        assert response["statusCode"] == 200
        assert response["body"] == ""

    def test_queues_email(self, dynamodb_table, api_gateway_event, lambda_context):
        from api.email_queue import handler
        from twogether.repositories.email_queue import EmailQueueRepository

        response = handler(api_gateway_event(body=NUDGE), lambda_context)

        assert response["statusCode"] == 201
        body = _body(response)
        assert body["queued"] is True
        assert body["item"]["status"] == "pending"
        assert body["item"]["template_data"]["sender_name"] == "Alex"

        stored = EmailQueueRepository("twogether-test", "us-east-1").get_by_id(body["item"]["id"])
        assert stored.recipient_email == "sam@example.com"

    def test_scheduled_for(self, dynamodb_table, api_gateway_event, lambda_context):
        from api.email_queue import handler

        response = handler(
            api_gateway_event(body={**NUDGE, "scheduled_for": "2030-01-01T08:00:00Z"}),
            lambda_context,
        )

        assert response["statusCode"] == 201
        assert _body(response)["item"]["scheduled_for"].startswith("2030-01-01T08:00:00")

    def test_suppressed_by_preferences(self, dynamodb_table, api_gateway_event, lambda_context):
        from api.email_queue import handler
        from twogether.repositories.activity import UserProfileRepository

        UserProfileRepository("twogether-test", "us-east-1").create_profile(
            UserProfile(
                id="user-1",
                email="sam@example.com",
                notification_preferences=NotificationPreferences(email_nudges=False),
            )
        )

        response = handler(api_gateway_event(body={**NUDGE, "user_id": "user-1"}), lambda_context)

        assert response["statusCode"] == 200
        assert _body(response) == {"success": True, "queued": False}

    def test_missing_fields(self, api_gateway_event, lambda_context):
        from api.email_queue import handler

        response = handler(api_gateway_event(body={"data": {}}), lambda_context)

        assert response["statusCode"] == 400
        fields = [e["field"] for e in _body(response)["details"]["errors"]]
        assert fields == ["to", "type"]

    def test_invalid_recipient(self, dynamodb_table, api_gateway_event, lambda_context):
        from api.email_queue import handler

        response = handler(api_gateway_event(body={**NUDGE, "to": "not-an-email"}), lambda_context)

        assert response["statusCode"] == 400

    def test_invalid_scheduled_for(self, api_gateway_event, lambda_context):
        from api.email_queue import handler

        response = handler(api_gateway_event(body={**NUDGE, "scheduled_for": "tomorrow"}), lambda_context)

        assert response["statusCode"] == 400

    def test_invalid_json(self, api_gateway_event, lambda_context):
        from api.email_queue import handler

        response = handler(api_gateway_event(body="{oops"), lambda_context)

        assert response["statusCode"] == 400
