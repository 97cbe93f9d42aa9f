"""Weekly digest Lambda.

Triggered by EventBridge every Sunday at 09:00 UTC. Builds a digest for every
eligible user with activity and queues one ``weekly_digest`` email each; the
queue processor sends them.
"""

import json
from datetime import datetime
from typing import Any

import structlog
from botocore.exceptions import ClientError
from pydantic import ValidationError as PydanticValidationError

from twogether.config import get_config
from twogether.models.email_templates import WeeklyDigestData
from twogether.repositories.activity import ActivityRepository
from twogether.repositories.email_queue import EmailQueueRepository
from twogether.services.digest_builder import DigestBuilder, DigestRunStats
from twogether.services.email_enqueuer import EmailEnqueuer
from twogether.utils.exceptions import ValidationError
from twogether.utils.responses import error, get_cors_headers, options, success, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Build and queue weekly digests.

    Accepts an optional ISO 8601 ``window_end`` (defaults to now).
    """
    config = get_config()
    headers = get_cors_headers(config.cors_allowed_origin)

    if (event.get("httpMethod") or "").upper() == "OPTIONS":
        return options(headers)

    stats = DigestRunStats()
    queued = 0

    try:
        window_end = _get_window_end(event)

        activity_repo = ActivityRepository(config.table_name, config.aws_region)
        builder = DigestBuilder(activity_repo, config)
        enqueuer = EmailEnqueuer(
            EmailQueueRepository(config.table_name, config.aws_region),
            activity_repo,
        )

        for record in builder.build_digests(window_end=window_end, stats=stats):
            try:
                # Preferences were already checked while building
                enqueuer.enqueue(
                    recipient_email=record.email,
                    template_data=WeeklyDigestData.from_digest(record, config.app_url),
                    recipient_user_id=record.user_id,
                    check_preferences=False,
                )
            except PydanticValidationError as e:
                stats.failed += 1
                stats.errors.append(f"{record.user_id}: ValidationError: {e}")
                logger.warning("Digest could not be queued", user_id=record.user_id, error=str(e))
                continue
            queued += 1

    except ValidationError as e:
        return validation_error(e.errors, headers)
    except ClientError as e:
        logger.exception("Weekly digest store failure", error=str(e), queued=queued)
        return error(str(e), 500, headers=headers)
    except Exception as e:
        logger.exception("Weekly digest failed", error=str(e), queued=queued)
        return error(str(e), 500, headers=headers)

    logger.info("Weekly digest run complete", queued=queued, failed=stats.failed)

    return success(
        {
            "success": True,
            "total_users": stats.total_users,
            "eligible": stats.eligible,
            "queued": queued,
            "suppressed": stats.suppressed,
            "failed": stats.failed,
            "errors": stats.errors,
        },
        headers=headers,
    )


def _get_window_end(event: dict[str, Any]) -> datetime | None:
    raw_body = event.get("body")
    if raw_body:
        try:
            body = json.loads(raw_body)
        except json.JSONDecodeError:
            raise ValidationError([{"field": "body", "message": "Invalid JSON body"}])
        if not isinstance(body, dict):
            raise ValidationError([{"field": "body", "message": "Body must be a JSON object"}])
    else:
        body = event

    value = body.get("window_end")
    if not value:
        return None

    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError([{"field": "window_end", "message": "Must be an ISO 8601 timestamp"}])
