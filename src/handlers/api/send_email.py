"""Direct send API handler.

Renders and sends one email immediately, bypassing the queue.
"""

import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from twogether.config import get_config
from twogether.models.email_templates import parse_template_data
from twogether.services.email_transport import build_transport
from twogether.utils.exceptions import ValidationError
from twogether.utils.responses import error, get_cors_headers, options, success, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle send-email requests.

    Routes:
        POST /emails/send   {to, type, data}
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

        to = body.get("to")
        email_type = body.get("type")
        if not to or not email_type:
            raise ValidationError(
                "Missing required fields: to, type",
                errors=[
                    {"field": name, "message": "Field required"}
                    for name in ("to", "type")
                    if not body.get(name)
                ],
            )

        template_data = parse_template_data(email_type, body.get("data"))
        result = build_transport(config).send(to, email_type, template_data)

    except json.JSONDecodeError:
        return error("Invalid JSON body", 400, headers=headers)
    except PydanticValidationError as e:
        return validation_error(e.errors(include_url=False, include_context=False), headers)
    except ValidationError as e:
        return error(e.message, 400, error_code=e.code, details={"errors": e.errors}, headers=headers)
    except Exception as e:
        logger.exception("Send email handler error", error=str(e))
        return error("Internal server error", 500, headers=headers)

    if not result.success or not result.id:
        logger.warning("Direct send failed", email_type=email_type, error=result.error)
        return error(result.error or "Email provider returned no message id", 400, headers=headers)

    logger.info("Email sent directly", email_type=email_type, message_id=result.id)
    return success({"success": True, "id": result.id}, headers=headers)
