"""
Change Feed

In-process publish/subscribe of ChangeEvents. Storage publishes on the
feed after every confirmed write; balance trackers subscribe to it.
"""

from collections.abc import Callable

import structlog

from household_ledger.models.events import ChangeEvent


ChangeHandler = Callable[[ChangeEvent], None]


class ChangeFeed:
    """
    Delivers each published event to every subscriber, in subscription order.

    A failing subscriber is logged and skipped; the remaining
    subscribers still receive the event.
    """

    def __init__(self):
        self._handlers: list[ChangeHandler] = []
        self._logger = structlog.get_logger(__name__)

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """
        Register a handler.

        Returns a callable that removes the handler again.
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                self._logger.error(
                    "change_handler_failed",
                    collection=event.collection.value,
                    kind=event.kind.value,
                    error=str(e),
                    exc_info=True,
                )

    def publish_all(self, events: list[ChangeEvent]) -> None:
        for event in events:
            self.publish(event)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
