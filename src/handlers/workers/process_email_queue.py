"""Email queue processor Lambda.

Triggered every few minutes by EventBridge (or invoked over HTTP). Releases
expired claims, claims a batch of due pending emails and sends each one.
"""

import json
from typing import Any

import structlog
from botocore.exceptions import ClientError

from twogether.config import get_config
from twogether.repositories.email_queue import EmailQueueRepository
from twogether.services.email_queue_worker import EmailQueueWorker
from twogether.services.email_transport import build_transport
from twogether.utils.exceptions import ValidationError
from twogether.utils.responses import error, get_cors_headers, options, success, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Drain one batch of the email queue.

    Accepts ``batch_size`` in the JSON body (HTTP) or at the top level of the
    event (schedule).
    """
    config = get_config()
    headers = get_cors_headers(config.cors_allowed_origin)

    if (event.get("httpMethod") or "").upper() == "OPTIONS":
        return options(headers)

    try:
        batch_size = _get_batch_size(event)

        worker = EmailQueueWorker(
            queue_repo=EmailQueueRepository(config.table_name, config.aws_region),
            transport=build_transport(config),
            config=config,
        )
        result = worker.drain_queue(batch_size)

    except ValidationError as e:
        return validation_error(e.errors, headers)
    except ClientError as e:
        logger.exception("Email queue store failure", error=str(e))
        return error(str(e), 500, headers=headers)
    except Exception as e:
        logger.exception("Email queue processor failed", error=str(e))
        return error(str(e), 500, headers=headers)

    return success({"success": True, **result.to_dict()}, headers=headers)


def _get_batch_size(event: dict[str, Any]) -> int | None:
    """Read ``batch_size`` from the request body or the raw event.

    Raises:
        ValidationError: If the body is not valid JSON or batch_size is not an integer.
    """
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

    batch_size = body.get("batch_size")
    if batch_size is None:
        return None

    # Schedules and query strings may pass numbers as strings
    if isinstance(batch_size, str) and batch_size.strip().lstrip("-").isdigit():
        batch_size = int(batch_size)
    return batch_size
