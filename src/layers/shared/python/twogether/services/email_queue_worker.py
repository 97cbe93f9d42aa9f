"""Drain the email queue: claim, send, record."""

from dataclasses import dataclass, field

import structlog

from twogether.config import EmailPipelineConfig
from twogether.models.base import utc_now
from twogether.models.email_queue import EmailQueueItem
from twogether.repositories.email_queue import EmailQueueRepository
from twogether.services.email_transport import EmailTransport, SendResult
from twogether.utils.exceptions import ConflictError, ValidationError

logger = structlog.get_logger()


@dataclass
class DrainResult:
    """Summary of one drain pass."""

    processed: int = 0
    sent: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    reclaimed: int = 0

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "errors": list(self.errors),
            "reclaimed": self.reclaimed,
        }


class EmailQueueWorker:
    """Claims pending emails in bounded batches and sends them one by one.

    Every claimed item ends in ``sent`` or ``failed`` unless its lease runs
    out before it is sent, in which case it is left for a later drain to
    reclaim. A failure in one item never stops the rest of the batch. Failed
    items are not retried.
    """

    def __init__(
        self,
        queue_repo: EmailQueueRepository,
        transport: EmailTransport,
        config: EmailPipelineConfig,
    ):
        self.queue_repo = queue_repo
        self.transport = transport
        self.config = config

    def _resolve_batch_size(self, batch_size: int | None) -> int:
        if batch_size is None:
            return self.config.default_batch_size

        if isinstance(batch_size, bool) or not isinstance(batch_size, int):
            raise ValidationError(
                "batch_size must be an integer",
                errors=[{"field": "batch_size", "message": "must be an integer"}],
            )
        if batch_size < 1 or batch_size > self.config.max_batch_size:
            raise ValidationError(
                f"batch_size must be between 1 and {self.config.max_batch_size}",
                errors=[
                    {
                        "field": "batch_size",
                        "message": f"must be between 1 and {self.config.max_batch_size}",
                    }
                ],
            )
        return batch_size

    def drain_queue(self, batch_size: int | None = None) -> DrainResult:
        """Process one batch of due pending emails.

        Args:
            batch_size: Maximum items to claim (defaults to config).

        Returns:
            DrainResult with counts and per-item error strings.

        Raises:
            ValidationError: If batch_size is not a positive integer within limits.
            botocore.exceptions.ClientError: If the queue store is unavailable.
        """
        batch_size = self._resolve_batch_size(batch_size)
        result = DrainResult()

        result.reclaimed = self.queue_repo.release_stale_claims()

        items = self.queue_repo.claim_pending(
            batch_size=batch_size,
            lease_seconds=self.config.claim_timeout_seconds,
        )
        if not items:
            logger.info("No pending emails", reclaimed=result.reclaimed)
            return result

        logger.info("Processing email batch", count=len(items), batch_size=batch_size)

        for item in items:
            if self._lease_expired(item):
                # Another worker may already have reclaimed it
                logger.warning(
                    "Claim lease expired before send, leaving item for reclaim",
                    item_id=item.id,
                    lease_expires_at=item.lease_expires_at.isoformat(),
                )
                continue
            self._process_item(item, result)

        logger.info(
            "Email batch complete",
            processed=result.processed,
            sent=result.sent,
            failed=result.failed,
            reclaimed=result.reclaimed,
        )
        return result

    @staticmethod
    def _lease_expired(item: EmailQueueItem) -> bool:
        return item.lease_expires_at is not None and item.lease_expires_at <= utc_now()

    def _process_item(self, item: EmailQueueItem, result: DrainResult) -> None:
        message_id, error_detail = self._dispatch(item)
        result.processed += 1

        try:
            if error_detail is None:
                self.queue_repo.mark_sent(item.id, item.claim_token, message_id)
            else:
                self.queue_repo.mark_failed(item.id, item.claim_token, error_detail)
        except ConflictError as e:
            logger.warning(
                "Lost claim before recording outcome",
                item_id=item.id,
                claim_token=item.claim_token,
                error=e.message,
            )

        if error_detail is None:
            result.sent += 1
            logger.info("Email sent", item_id=item.id, email_type=item.email_type, message_id=message_id)
        else:
            result.failed += 1
            result.errors.append(f"{item.recipient_email}: {error_detail}")
            logger.warning(
                "Email failed",
                item_id=item.id,
                email_type=item.email_type,
                recipient=item.recipient_email,
                error=error_detail,
            )

    def _dispatch(self, item: EmailQueueItem) -> tuple[str | None, str | None]:
        """Send one item.

        Returns:
            Tuple of (provider message ID, error detail); exactly one is set.
        """
        try:
            send_result = self.transport.send(item.recipient_email, item.email_type, item.template_data)
        except Exception as e:
            logger.exception("Transport raised while sending email", item_id=item.id)
            return None, f"exception: {type(e).__name__}: {e}"

        if not isinstance(send_result, SendResult):
            return None, f"malformed response: expected SendResult, got {type(send_result).__name__}"
        if not send_result.success:
            return None, f"provider error: {send_result.error or 'unknown error'}"
        if not send_result.id:
            return None, "malformed response: success without message id"
        return send_result.id, None
