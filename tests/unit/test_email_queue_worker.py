"""Tests for EmailQueueWorker."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from twogether.models.email_queue import EmailQueueItem, EmailStatus
from twogether.models.email_templates import NudgeData
from twogether.services.email_queue_worker import EmailQueueWorker
from twogether.services.email_transport import SendResult
from twogether.utils.exceptions import ConflictError, ValidationError


def _claimed(recipient, item_id=None, lease_expires_at=None):
    kwargs = {"id": item_id} if item_id else {}
    return EmailQueueItem(
        recipient_email=recipient,
        template_data=NudgeData(task_title="Call caterer", task_url="https://app.example.com/t/1"),
        status=EmailStatus.PROCESSING,
        claim_token="claim-1",
        attempts=1,
        lease_expires_at=lease_expires_at,
        **kwargs,
    )


@pytest.fixture
def queue_repo():
    repo = MagicMock()
    repo.release_stale_claims.return_value = 0
    repo.claim_pending.return_value = []
    return repo


@pytest.fixture
def transport():
    return MagicMock()


@pytest.fixture
def worker(queue_repo, transport, config):
    return EmailQueueWorker(queue_repo, transport, config)


class TestDrainQueue:
    def test_empty_queue_is_a_no_op(self, worker, queue_repo, transport):
        first = worker.drain_queue(10)
        second = worker.drain_queue(10)

        for result in (first, second):
            assert result.processed == 0
            assert result.sent == 0
            assert result.failed == 0
            assert result.errors == []
        transport.send.assert_not_called()
        queue_repo.mark_sent.assert_not_called()
        queue_repo.mark_failed.assert_not_called()

    def test_default_batch_size(self, worker, queue_repo, config):
        worker.drain_queue()

        queue_repo.claim_pending.assert_called_once_with(
            batch_size=config.default_batch_size,
            lease_seconds=config.claim_timeout_seconds,
        )

    def test_batch_size_passed_to_claim(self, worker, queue_repo):
        worker.drain_queue(3)

        assert queue_repo.claim_pending.call_args.kwargs["batch_size"] == 3

    @pytest.mark.parametrize("bad", [0, -1, 501, "ten", 2.5, True])
    def test_invalid_batch_size(self, worker, queue_repo, bad):
        with pytest.raises(ValidationError):
            worker.drain_queue(bad)

        queue_repo.claim_pending.assert_not_called()

    def test_successful_send(self, worker, queue_repo, transport):
        item = _claimed("alex@example.com")
        queue_repo.claim_pending.return_value = [item]
        transport.send.return_value = SendResult.sent("msg-1")

        result = worker.drain_queue(5)

        transport.send.assert_called_once_with("alex@example.com", "nudge", item.template_data)
        queue_repo.mark_sent.assert_called_once_with(item.id, "claim-1", "msg-1")
        assert (result.processed, result.sent, result.failed) == (1, 1, 0)

    def test_error_isolation(self, worker, queue_repo, transport):
        items = [_claimed("one@example.com"), _claimed("two@example.com"), _claimed("three@example.com")]
        queue_repo.claim_pending.return_value = items
        transport.send.side_effect = [
            SendResult.sent("msg-1"),
            RuntimeError("connection reset"),
            SendResult.sent("msg-3"),
        ]

        result = worker.drain_queue(3)

        assert result.processed == 3
        assert result.sent == 2
        assert result.failed == 1
        assert result.errors == ["two@example.com: exception: RuntimeError: connection reset"]
        assert queue_repo.mark_sent.call_count == 2
        queue_repo.mark_failed.assert_called_once_with(
            items[1].id, "claim-1", "exception: RuntimeError: connection reset"
        )

    def test_provider_error(self, worker, queue_repo, transport):
        item = _claimed("alex@example.com")
        queue_repo.claim_pending.return_value = [item]
        transport.send.return_value = SendResult.failed("Domain not verified")

        result = worker.drain_queue(1)

        queue_repo.mark_failed.assert_called_once_with(item.id, "claim-1", "provider error: Domain not verified")
        assert result.errors == ["alex@example.com: provider error: Domain not verified"]

    @pytest.mark.parametrize(
        "response,detail",
        [
            (SendResult(success=True, id=None), "malformed response: success without message id"),
            ({"id": "msg-1"}, "malformed response: expected SendResult, got dict"),
        ],
    )
    def test_malformed_response(self, worker, queue_repo, transport, response, detail):
        item = _claimed("alex@example.com")
        queue_repo.claim_pending.return_value = [item]
        transport.send.return_value = response

        result = worker.drain_queue(1)

        queue_repo.mark_failed.assert_called_once_with(item.id, "claim-1", detail)
        assert result.failed == 1

    def test_lost_claim_is_logged_not_raised(self, worker, queue_repo, transport):
        items = [_claimed("one@example.com"), _claimed("two@example.com")]
        queue_repo.claim_pending.return_value = items
        transport.send.return_value = SendResult.sent("msg")
        queue_repo.mark_sent.side_effect = [ConflictError("lease lost"), None]

        result = worker.drain_queue(2)

        assert result.processed == 2
        assert result.sent == 2
        assert queue_repo.mark_sent.call_count == 2

    def test_expired_lease_is_not_sent(self, worker, queue_repo, transport):
        now = datetime.now(timezone.utc)
        stale = _claimed("late@example.com", lease_expires_at=now - timedelta(seconds=1))
        live = _claimed("alex@example.com", lease_expires_at=now + timedelta(minutes=5))
        queue_repo.claim_pending.return_value = [stale, live]
        transport.send.return_value = SendResult.sent("msg-1")

        result = worker.drain_queue(2)

        transport.send.assert_called_once_with("alex@example.com", "nudge", live.template_data)
        queue_repo.mark_sent.assert_called_once_with(live.id, "claim-1", "msg-1")
        queue_repo.mark_failed.assert_not_called()
        assert (result.processed, result.sent, result.failed) == (1, 1, 0)

    def test_lease_running_out_mid_batch_stops_sending(self, worker, queue_repo, transport):
        claimed_at = datetime(2024, 6, 16, 9, 0, tzinfo=timezone.utc)
        lease = claimed_at + timedelta(seconds=60)
        items = [
            _claimed("one@example.com", lease_expires_at=lease),
            _claimed("two@example.com", lease_expires_at=lease),
        ]
        queue_repo.claim_pending.return_value = items
        transport.send.return_value = SendResult.sent("msg-1")

        # The first send takes longer than the lease
        clock = [claimed_at, lease + timedelta(seconds=1)]
        with patch("twogether.services.email_queue_worker.utc_now", side_effect=clock):
            result = worker.drain_queue(2)

        assert transport.send.call_count == 1
        assert transport.send.call_args.args[0] == "one@example.com"
        assert result.processed == 1
        assert result.sent == 1

    def test_store_failure_propagates(self, worker, queue_repo):
        from botocore.exceptions import ClientError

        queue_repo.claim_pending.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "Query",
        )

        with pytest.raises(ClientError):
            worker.drain_queue(1)

    def test_reports_reclaimed(self, worker, queue_repo):
        queue_repo.release_stale_claims.return_value = 2

        result = worker.drain_queue(1)

        assert result.reclaimed == 2
        assert result.to_dict()["reclaimed"] == 2


class TestDrainQueueWithStore:
    """Worker against the mocked table."""

    def test_successive_drains_never_share_items(self, dynamodb_table, config):
        from twogether.repositories.email_queue import EmailQueueRepository

        repo = EmailQueueRepository(table_name="twogether-test", region_name="us-east-1")
        for n in range(4):
            repo.enqueue(
                EmailQueueItem(
                    recipient_email=f"user{n}@example.com",
                    template_data=NudgeData(task_title="x", task_url="https://app.example.com/t/1"),
                )
            )

        sent_to: list[str] = []
        transport = MagicMock()

        def send(recipient, email_type, template_data):
            sent_to.append(recipient)
            return SendResult.sent(f"msg-{recipient}")

        transport.send.side_effect = send

        first = EmailQueueWorker(repo, transport, config).drain_queue(2)
        second = EmailQueueWorker(repo, transport, config).drain_queue(2)
        third = EmailQueueWorker(repo, transport, config).drain_queue(2)

        assert (first.sent, second.sent, third.processed) == (2, 2, 0)
        assert sorted(sent_to) == [f"user{n}@example.com" for n in range(4)]

        items, _ = repo.list_by_status(EmailStatus.SENT)
        assert len(items) == 4
        assert all(i.provider_message_id for i in items)
