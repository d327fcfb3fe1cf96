"""Background task definitions for asynchronous processing."""

import asyncio
import logging

from celery import Task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tutorlink.core.celery_app import celery_app
from tutorlink.core.config import get_pricing_policy, get_settings
from tutorlink.core.exceptions import ExternalServiceError
from tutorlink.providers.email import BrevoEmailClient

logger = logging.getLogger(__name__)


@celery_app.task(name="send_templated_email", bind=True)
def send_templated_email(
    self: Task,
    to_email: str,
    to_name: str | None,
    template: str,
    params: dict,
) -> dict:
    """
    Deliver a transactional email through Brevo.

    Queued only after the database transaction that triggered it has
    committed, so a failed workflow never sends mail.

    Args:
        to_email: Recipient email address
        to_name: Recipient display name
        template: Template name, e.g. "contact_initiated"
        params: JSON-serializable template parameters

    Returns:
        dict: Result with success status and message
    """
    client = BrevoEmailClient(get_settings())
    delivered = client.configured
    try:
        client.send(to_email, to_name, template, params)
    except ExternalServiceError as e:
        message = f"Email '{template}' to {to_email} failed: {e.message}"
        logger.error("[EMAIL TASK %s] %s", self.request.id, message)
        return {
            "success": False,
            "message": message,
            "task_id": self.request.id,
        }

    message = f"Email '{template}' to {to_email} {'sent' if delivered else 'skipped'}"
    logger.info("[EMAIL TASK %s] %s", self.request.id, message)

    return {
        "success": delivered,
        "message": message,
        "task_id": self.request.id,
    }


@celery_app.task(name="expire_stale_payments", bind=True)
def expire_stale_payments(self: Task) -> dict:
    """
    Mark pending payments older than the expiry window as expired.

    Scheduled hourly by Celery beat.

    Returns:
        dict: Result with the number of expired payments
    """
    from tutorlink.services.payment_service import PaymentService

    async def _run() -> int:
        # Each task run owns its event loop, so it gets its own engine
        engine = create_async_engine(get_settings().database_url, poolclass=NullPool)
        session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        try:
            async with session_maker() as session:
                async with session.begin():
                    return await PaymentService(get_pricing_policy()).expire_stale_payments(
                        session
                    )
        finally:
            await engine.dispose()

    expired = asyncio.run(_run())
    message = f"Expired {expired} stale pending payments"
    logger.info("[PAYMENT SWEEP %s] %s", self.request.id, message)

    return {
        "success": True,
        "message": message,
        "task_id": self.request.id,
        "expired": expired,
    }
