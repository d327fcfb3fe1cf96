"""Post-commit notification dispatch.

Call only after the unit of work that produced the event has committed.
"""

import logging
from typing import Any

from tutorlink.worker import send_templated_email

logger = logging.getLogger(__name__)


def dispatch_email(
    to_email: str | None,
    to_name: str | None,
    template: str,
    params: dict[str, Any],
) -> bool:
    """Queue a templated email. Returns False when nothing was queued.

    The triggering operation has already succeeded, so a broker failure
    is logged and not raised.
    """
    if not to_email:
        logger.warning("Email '%s' not queued: recipient has no address", template)
        return False
    try:
        send_templated_email.delay(
            to_email=to_email,
            to_name=to_name,
            template=template,
            params=params,
        )
    except Exception:
        logger.error("Failed to queue email '%s' to %s", template, to_email, exc_info=True)
        return False
    return True
