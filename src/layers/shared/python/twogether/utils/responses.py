"""API response helper functions."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel

DEFAULT_ALLOWED_ORIGIN = "*"


def get_cors_headers(allowed_origin: str | None = None) -> dict:
    """Get CORS headers for the configured origin."""
    return {
        "Access-Control-Allow-Origin": allowed_origin or DEFAULT_ALLOWED_ORIGIN,
        "Access-Control-Allow-Headers": "authorization,x-client-info,apikey,content-type",
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
        "Content-Type": "application/json",
    }


CORS_HEADERS = get_cors_headers()


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for objects not serializable by default."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, PydanticBaseModel):
        return obj.model_dump(mode="json")
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _serialize(data: Any) -> str:
    """Serialize data to JSON string."""
    return json.dumps(data, default=_json_serializer)


def success(data: Any, status_code: int = 200, headers: dict | None = None) -> dict:
    """Create a successful API response.

    Args:
        data: Response data (dict, list, or Pydantic model).
        status_code: HTTP status code (default 200).
        headers: Response headers. Defaults to CORS_HEADERS.

    Returns:
        API Gateway response dict.
    """
    if isinstance(data, PydanticBaseModel):
        body = data.model_dump(mode="json")
    else:
        body = data

    return {
        "statusCode": status_code,
        "headers": headers or CORS_HEADERS,
        "body": _serialize(body),
    }


def created(data: Any, headers: dict | None = None) -> dict:
    """Create a 201 Created response."""
    return success(data, status_code=201, headers=headers)


def options(headers: dict | None = None) -> dict:
    """Acknowledge a CORS pre-flight request with an empty 200."""
    return {
        "statusCode": 200,
        "headers": headers or CORS_HEADERS,
        "body": "",
    }


def error(
    message: str,
    status_code: int = 500,
    error_code: str | None = None,
    details: dict | None = None,
    headers: dict | None = None,
) -> dict:
    """Create an error API response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        error_code: Machine-readable error code.
        details: Additional error details.
        headers: Response headers. Defaults to CORS_HEADERS.

    Returns:
        API Gateway response dict.
    """
    body: dict[str, Any] = {
        "success": False,
        "error": message,
    }

    if error_code:
        body["error_code"] = error_code
    if details:
        body["details"] = details

    return {
        "statusCode": status_code,
        "headers": headers or CORS_HEADERS,
        "body": _serialize(body),
    }


def validation_error(errors: list[dict], headers: dict | None = None) -> dict:
    """Create a validation error response.

    Args:
        errors: List of validation errors with field and message.
        headers: Response headers.

    Returns:
        API Gateway response dict.
    """
    return error(
        message="Validation failed",
        status_code=400,
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
        headers=headers,
    )
