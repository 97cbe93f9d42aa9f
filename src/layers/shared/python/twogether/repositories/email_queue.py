"""Repository for the outbound email queue.

Every state change is a conditional UpdateItem, so at most one worker can move
an item out of ``pending`` and only the claim holder can finish it.
"""

from datetime import datetime, timedelta
from typing import Any

import structlog
from botocore.exceptions import ClientError
from pydantic import ValidationError as PydanticValidationError

from twogether.models.base import generate_ulid, sortable_timestamp, utc_now
from twogether.models.email_queue import EmailQueueItem, EmailStatus, queue_index_keys
from twogether.repositories.base import BaseRepository, is_conditional_check_failure
from twogether.utils.exceptions import ConflictError

logger = structlog.get_logger()

MAX_ERROR_DETAIL_LENGTH = 2000


def _cutoff(now: datetime) -> str:
    """Upper bound for GSI1SK values anchored at or before ``now``."""
    # "~" sorts after every ULID character
    return f"{sortable_timestamp(now)}#~"


class EmailQueueRepository(BaseRepository[EmailQueueItem]):
    """Repository for email queue items."""

    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        """Initialize email queue repository.

        Args:
            table_name: DynamoDB table name.
            region_name: Optional AWS region override.
        """
        super().__init__(EmailQueueItem, table_name, region_name)

    def get_by_id(self, item_id: str) -> EmailQueueItem | None:
        return self.get(pk=f"EMAIL#{item_id}", sk="META")

    def enqueue(self, item: EmailQueueItem) -> EmailQueueItem:
        """Insert a new pending item.

        Raises:
            ValueError: If the item is not pending.
            ConflictError: If an item with the same ID exists.
        """
        if item.status != EmailStatus.PENDING:
            raise ValueError(f"New queue items must be pending, got '{item.status}'")

        self.create(item, gsi_keys=item.get_gsi1_keys())

        logger.info(
            "Email queued",
            item_id=item.id,
            email_type=item.email_type,
            recipient=item.recipient_email,
        )
        return item

    def list_by_status(
        self,
        status: EmailStatus | str,
        limit: int = 100,
        last_key: dict | None = None,
    ) -> tuple[list[EmailQueueItem], dict | None]:
        """List items in a status partition, oldest anchor first."""
        status_value = status.value if isinstance(status, EmailStatus) else status
        return self.query(
            pk=f"EMAIL_QUEUE#{status_value}",
            index_name="GSI1",
            limit=limit,
            last_key=last_key,
        )

    # -------------------------------------------------------------------------
    # Claiming
    # -------------------------------------------------------------------------

    def claim_pending(
        self,
        batch_size: int,
        lease_seconds: int,
        now: datetime | None = None,
    ) -> list[EmailQueueItem]:
        """Claim up to ``batch_size`` due pending items, oldest first.

        Candidates come from the pending partition of GSI1; each is claimed
        with an UpdateItem conditioned on ``status = pending``. Candidates
        another worker claimed first are skipped.

        Args:
            batch_size: Maximum number of items to claim.
            lease_seconds: How long the claim is held before it may be released.
            now: Current time (defaults to now).

        Returns:
            Claimed items in queue order, with status ``processing``.
        """
        now = now or utc_now()
        claim_token = generate_ulid()
        lease_expires_at = now + timedelta(seconds=lease_seconds)

        claimed: list[EmailQueueItem] = []
        last_key = None

        while len(claimed) < batch_size:
            kwargs: dict[str, Any] = {
                "IndexName": "GSI1",
                "KeyConditionExpression": "GSI1PK = :pk AND GSI1SK <= :cutoff",
                "ExpressionAttributeValues": {
                    ":pk": f"EMAIL_QUEUE#{EmailStatus.PENDING.value}",
                    ":cutoff": _cutoff(now),
                },
                "ScanIndexForward": True,
                "Limit": batch_size - len(claimed),
            }
            if last_key:
                kwargs["ExclusiveStartKey"] = last_key

            try:
                response = self.table.query(**kwargs)
            except ClientError as e:
                logger.error("Failed to query pending emails", error=str(e))
                raise

            for raw in response.get("Items", []):
                item = self._claim_one(raw["id"], claim_token, now, lease_expires_at)
                if item is not None:
                    claimed.append(item)

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break

        if claimed:
            logger.info(
                "Claimed pending emails",
                count=len(claimed),
                batch_size=batch_size,
                claim_token=claim_token,
            )
        return claimed

    def _claim_one(
        self,
        item_id: str,
        claim_token: str,
        now: datetime,
        lease_expires_at: datetime,
    ) -> EmailQueueItem | None:
        """Move one item from pending to processing.

        Returns:
            The claimed item, or None if it was no longer pending or could
            not be parsed.
        """
        index_keys = queue_index_keys(EmailStatus.PROCESSING.value, lease_expires_at, item_id)
        try:
            response = self.table.update_item(
                Key=self._build_key(f"EMAIL#{item_id}", "META"),
                UpdateExpression=(
                    "SET #status = :processing, claim_token = :token, claimed_at = :now, "
                    "lease_expires_at = :lease, updated_at = :now, "
                    "GSI1PK = :gsi1pk, GSI1SK = :gsi1sk "
                    "ADD attempts :one"
                ),
                ConditionExpression="#status = :pending",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":processing": EmailStatus.PROCESSING.value,
                    ":pending": EmailStatus.PENDING.value,
                    ":token": claim_token,
                    ":now": now.isoformat(),
                    ":lease": lease_expires_at.isoformat(),
                    ":gsi1pk": index_keys["GSI1PK"],
                    ":gsi1sk": index_keys["GSI1SK"],
                    ":one": 1,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.debug("Email already claimed by another worker", item_id=item_id)
                return None
            logger.error("Failed to claim email", item_id=item_id, error=str(e))
            raise

        try:
            return EmailQueueItem.from_dynamodb(response["Attributes"])
        except PydanticValidationError as e:
            logger.warning("Malformed queue item", item_id=item_id, error=str(e))
            self._finish(
                item_id,
                claim_token,
                EmailStatus.FAILED,
                {"error_detail": f"malformed queue item: {e.error_count()} validation error(s)"},
                now,
            )
            return None

    def release_stale_claims(self, now: datetime | None = None) -> int:
        """Return items whose claim lease has expired to ``pending``.

        The update is conditioned on the expired claim token, so an item that
        its worker finished in the meantime is left alone.

        Returns:
            Number of items released.
        """
        now = now or utc_now()
        released = 0
        last_key = None

        while True:
            kwargs: dict[str, Any] = {
                "IndexName": "GSI1",
                "KeyConditionExpression": "GSI1PK = :pk AND GSI1SK <= :cutoff",
                "ExpressionAttributeValues": {
                    ":pk": f"EMAIL_QUEUE#{EmailStatus.PROCESSING.value}",
                    ":cutoff": _cutoff(now),
                },
            }
            if last_key:
                kwargs["ExclusiveStartKey"] = last_key

            try:
                response = self.table.query(**kwargs)
            except ClientError as e:
                logger.error("Failed to query stale claims", error=str(e))
                raise

            for raw in response.get("Items", []):
                if self._release_one(raw, now):
                    released += 1

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break

        if released:
            logger.warning("Released stale email claims", count=released)
        return released

    def _release_one(self, raw: dict[str, Any], now: datetime) -> bool:
        item_id = raw["id"]
        anchor = datetime.fromisoformat(raw.get("scheduled_for") or raw["created_at"])
        index_keys = queue_index_keys(EmailStatus.PENDING.value, anchor, item_id)

        try:
            self.table.update_item(
                Key=self._build_key(f"EMAIL#{item_id}", "META"),
                UpdateExpression=(
                    "SET #status = :pending, updated_at = :now, GSI1PK = :gsi1pk, GSI1SK = :gsi1sk "
                    "REMOVE claim_token, claimed_at, lease_expires_at"
                ),
                ConditionExpression="#status = :processing AND claim_token = :token",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":pending": EmailStatus.PENDING.value,
                    ":processing": EmailStatus.PROCESSING.value,
                    ":token": raw.get("claim_token", ""),
                    ":now": now.isoformat(),
                    ":gsi1pk": index_keys["GSI1PK"],
                    ":gsi1sk": index_keys["GSI1SK"],
                },
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            logger.error("Failed to release stale claim", item_id=item_id, error=str(e))
            raise

        logger.info("Stale claim released", item_id=item_id, claim_token=raw.get("claim_token"))
        return True

    # -------------------------------------------------------------------------
    # Terminal transitions
    # -------------------------------------------------------------------------

    def mark_sent(
        self,
        item_id: str,
        claim_token: str,
        provider_message_id: str,
        now: datetime | None = None,
    ) -> None:
        """Record a successful send.

        Raises:
            ConflictError: If the item is not processing under this claim.
        """
        self._finish(
            item_id,
            claim_token,
            EmailStatus.SENT,
            {"provider_message_id": provider_message_id},
            now or utc_now(),
        )

    def mark_failed(
        self,
        item_id: str,
        claim_token: str,
        error_detail: str,
        now: datetime | None = None,
    ) -> None:
        """Record a failed send. Failed items are never retried.

        Raises:
            ConflictError: If the item is not processing under this claim.
        """
        self._finish(
            item_id,
            claim_token,
            EmailStatus.FAILED,
            {"error_detail": error_detail[:MAX_ERROR_DETAIL_LENGTH]},
            now or utc_now(),
        )

    def _finish(
        self,
        item_id: str,
        claim_token: str,
        status: EmailStatus,
        fields: dict[str, str],
        now: datetime,
    ) -> None:
        index_keys = queue_index_keys(status.value, now, item_id)

        set_parts = [
            "#status = :status",
            "processed_at = :now",
            "updated_at = :now",
            "GSI1PK = :gsi1pk",
            "GSI1SK = :gsi1sk",
        ]
        values: dict[str, Any] = {
            ":status": status.value,
            ":processing": EmailStatus.PROCESSING.value,
            ":token": claim_token,
            ":now": now.isoformat(),
            ":gsi1pk": index_keys["GSI1PK"],
            ":gsi1sk": index_keys["GSI1SK"],
        }
        for name, value in fields.items():
            set_parts.append(f"{name} = :{name}")
            values[f":{name}"] = value

        try:
            self.table.update_item(
                Key=self._build_key(f"EMAIL#{item_id}", "META"),
                UpdateExpression=f"SET {', '.join(set_parts)} REMOVE lease_expires_at",
                ConditionExpression="#status = :processing AND claim_token = :token",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                raise ConflictError(
                    f"Email '{item_id}' is no longer claimed by this worker",
                    details={"item_id": item_id, "status": status.value},
                )
            logger.error("Failed to update email status", item_id=item_id, status=status.value, error=str(e))
            raise

        logger.debug("Email status updated", item_id=item_id, status=status.value)
