"""Email queue API handler.

Lets application flows queue an email for the queue processor to send.
"""

import json
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from twogether.config import get_config
from twogether.repositories.activity import ActivityRepository
from twogether.repositories.email_queue import EmailQueueRepository
from twogether.services.email_enqueuer import EmailEnqueuer
from twogether.utils.exceptions import ConflictError, ValidationError
from twogether.utils.responses import created, error, get_cors_headers, options, success, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle email queue requests.

    Routes:
        POST /emails/queue   {to, type, data, user_id?, scheduled_for?}
    """
    config = get_config()
    headers = get_cors_headers(config.cors_allowed_origin)
    http_method = (event.get("httpMethod") or "").upper()

    if http_method == "OPTIONS":
        return options(headers)
    if http_method != "POST":
        return error("Method not allowed", 405, headers=headers)

    try:
        body = json.loads(event.get("body") or "{}")
        if not isinstance(body, dict):
            raise ValidationError([{"field": "body", "message": "Body must be a JSON object"}])
        return queue_email(config, body, headers)

    except json.JSONDecodeError:
        return error("Invalid JSON body", 400, headers=headers)
    except PydanticValidationError as e:
        return validation_error(e.errors(include_url=False, include_context=False), headers)
    except ValidationError as e:
        return validation_error(e.errors, headers)
    except ConflictError as e:
        return error(e.message, 409, error_code=e.code, headers=headers)
    except Exception as e:
        logger.exception("Email queue handler error", error=str(e))
        return error("Internal server error", 500, headers=headers)


def queue_email(config, body: dict, headers: dict) -> dict:
    """Validate the request and queue the email."""
    missing = [name for name in ("to", "type") if not body.get(name)]
    if missing:
        raise ValidationError([{"field": name, "message": "Field required"} for name in missing])

    scheduled_for = None
    if body.get("scheduled_for"):
        try:
            scheduled_for = datetime.fromisoformat(str(body["scheduled_for"]).replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError([{"field": "scheduled_for", "message": "Must be an ISO 8601 timestamp"}])

    activity_repo = ActivityRepository(config.table_name, config.aws_region)
    enqueuer = EmailEnqueuer(
        EmailQueueRepository(config.table_name, config.aws_region),
        activity_repo,
    )

    item = enqueuer.enqueue_raw(
        body["to"],
        body["type"],
        body.get("data"),
        recipient_user_id=body.get("user_id"),
        scheduled_for=scheduled_for,
    )

    if item is None:
        return success({"success": True, "queued": False}, headers=headers)

    return created({"success": True, "queued": True, "item": item.model_dump(mode="json")}, headers=headers)
