"""
Translation Events

Observer hub for queued/completed notifications. Notifications are
best-effort: a failing subscriber is logged and never breaks a worker.
"""
from typing import Callable, List

from loguru import logger

from .models import TranslationCompleted, TranslationQueued

QueuedHandler = Callable[[TranslationQueued], None]
CompletedHandler = Callable[[TranslationCompleted], None]


class TranslationEvents:
    """Subscribe to pipeline lifecycle events"""

    def __init__(self, log=None):
        self._log = log or logger.bind(component="translation_events")
        self._queued: List[QueuedHandler] = []
        self._completed: List[CompletedHandler] = []

    def subscribe_queued(self, handler: QueuedHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it"""
        self._queued.append(handler)
        return lambda: self._remove(self._queued, handler)

    def subscribe_completed(self, handler: CompletedHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it"""
        self._completed.append(handler)
        return lambda: self._remove(self._completed, handler)

    def emit_queued(self, event: TranslationQueued) -> None:
        for handler in list(self._queued):
            try:
                handler(event)
            except Exception as e:
                self._log.warning(f"TranslationQueued handler failed: {e}")

    def emit_completed(self, event: TranslationCompleted) -> None:
        for handler in list(self._completed):
            try:
                handler(event)
            except Exception as e:
                self._log.warning(f"TranslationCompleted handler failed: {e}")

    @staticmethod
    def _remove(handlers: list, handler) -> None:
        if handler in handlers:
            handlers.remove(handler)
