"""
Best-effort persistence and the usage-event append path.

Every engine writes through `save_quietly` so a storage failure is logged and
the in-memory result still reaches the caller. Usage events are appended and
forwarded to the subscription state machine through `UsageRecorder`.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from lingoflow.domain.models import UsageEvent
from lingoflow.domain.ports import Store

logger = logging.getLogger(__name__)


def save_quietly(store: Store, entity: Any) -> bool:
    """Persist `entity`, logging instead of raising on failure."""
    try:
        store.save(entity)
        return True
    except Exception as e:
        logger.error(f"Failed to persist {type(entity).__name__} id={entity.id}: {e}")
        return False


class UsageEventProcessor(ABC):
    """Anything that reacts to a usage event (the state machine, in practice)."""

    @abstractmethod
    async def process(self, event: UsageEvent) -> Any:
        pass


class NoopProcessor(UsageEventProcessor):
    async def process(self, event: UsageEvent) -> None:
        return None


class UsageRecorder:
    """Appends usage events to the store and forwards them for processing."""

    def __init__(self, store: Store, processor: UsageEventProcessor):
        self._store = store
        self._processor = processor

    async def record(self, event: UsageEvent) -> UsageEvent:
        """
        Append `event`, then forward it synchronously.

        The event is forwarded even when the append fails; no derived state
        is rolled back.
        """
        save_quietly(self._store, event)
        logger.debug(f"Recorded {event.type.value} event {event.id} for {event.account_id}")
        await self._processor.process(event)
        return event
