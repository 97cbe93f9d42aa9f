"""Pytest configuration and fixtures."""

import json
import os
from datetime import datetime, timezone

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "twogether-test"
os.environ["STAGE"] = "test"
os.environ["APP_URL"] = "https://app.example.com"
os.environ["EMAIL_SENDER_DOMAIN"] = "example.com"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"


@pytest.fixture(autouse=True)
def fresh_config():
    """Re-read configuration from the environment for every test."""
    from twogether.config import reset_config

    reset_config()
    yield
    reset_config()


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="twogether-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def now():
    """Fixed reference time (a Sunday morning)."""
    return datetime(2024, 6, 16, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    """Config with test defaults."""
    from twogether.config import EmailPipelineConfig

    return EmailPipelineConfig(
        table_name="twogether-test",
        stage="test",
        app_url="https://app.example.com",
        sender_domain="example.com",
    )


@pytest.fixture
def sample_digest_data():
    """Create a sample weekly digest payload."""
    from twogether.models.digest import DigestRecord, DreamProgress, TaskSummary
    from twogether.models.email_templates import WeeklyDigestData

    record = DigestRecord(
        user_id="user-1",
        email="alex@example.com",
        partner1_name="Alex",
        partner2_name="Sam",
        tasks_completed=[TaskSummary(id="t1", title="Book venue")],
        tasks_due=[
            TaskSummary(
                id="t2",
                title="Send invitations",
                due_date=datetime(2024, 6, 18, tzinfo=timezone.utc),
            )
        ],
        dreams=[DreamProgress(title="Our Wedding", progress_percentage=40)],
        budget_spent=120.0,
        budget_remaining=880.0,
    )
    return WeeklyDigestData.from_digest(record, "https://app.example.com")


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event."""
    def _create_event(
        method: str = "POST",
        path: str = "/",
        path_params: dict = None,
        query_params: dict = None,
        body: dict = None,
    ):
        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": body if isinstance(body, str) else (
                json.dumps(body) if body else None
            ),
            "headers": {
                "Authorization": "Bearer test-token",
                "Content-Type": "application/json",
            },
        }

    return _create_event


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    class MockContext:
        function_name = "test-function"
        memory_limit_in_mb = 256
        invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        aws_request_id = "test-request-id"

        def get_remaining_time_in_millis(self):
            return 30000

    return MockContext()
