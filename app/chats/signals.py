import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict, Set


class MessageSignal:
    """
    Per-chat wake-up channel for long-polling readers.

    A reader subscribes before it queries, so a message written between the
    query and the wait still wakes it.
    """

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Event]] = defaultdict(set)

    @asynccontextmanager
    async def subscribe(self, chat_id):
        key = str(chat_id)
        wake = asyncio.Event()
        self._subscribers[key].add(wake)
        try:
            yield wake
        finally:
            subscribers = self._subscribers.get(key)
            if subscribers is not None:
                subscribers.discard(wake)
                if not subscribers:
                    del self._subscribers[key]

    def publish(self, chat_id) -> int:
        """Wake every reader waiting on the chat. Returns how many were woken."""
        subscribers = self._subscribers.get(str(chat_id), ())
        for wake in subscribers:
            wake.set()
        return len(subscribers)

    def waiting(self, chat_id) -> int:
        return len(self._subscribers.get(str(chat_id), ()))


message_signal = MessageSignal()
