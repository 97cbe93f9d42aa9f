"""Service classes for business logic."""

from twogether.services.digest_builder import DigestBuilder, DigestRunStats
from twogether.services.email_enqueuer import EmailEnqueuer
from twogether.services.email_queue_worker import DrainResult, EmailQueueWorker
from twogether.services.email_renderer import EmailRenderer, RenderedEmail
from twogether.services.email_service import EmailError, EmailService
from twogether.services.email_transport import (
    EmailTransport,
    HttpEmailTransport,
    SendResult,
    SesEmailTransport,
    build_transport,
)

__all__ = [
    "DigestBuilder",
    "DigestRunStats",
    "DrainResult",
    "EmailEnqueuer",
    "EmailError",
    "EmailQueueWorker",
    "EmailRenderer",
    "EmailService",
    "EmailTransport",
    "HttpEmailTransport",
    "RenderedEmail",
    "SendResult",
    "SesEmailTransport",
    "build_transport",
]
