"""
The single place that decides how external billing calls are made.

Calls are awaited in-line (no background tasks) but their outcome is
discarded: a failure is logged and never raised, retried or queued.
"""

import logging
from collections.abc import Awaitable

logger = logging.getLogger(__name__)


async def fire_and_forget(call: Awaitable[object], description: str) -> None:
    try:
        await call
    except Exception as e:
        logger.warning(f"Billing call '{description}' failed (ignored): {e}")
