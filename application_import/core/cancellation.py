import threading
import logging

from .exceptions import ImportCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation flag shared between the caller and a running import.

    Long loops call ``raise_if_cancelled`` between units of work; another
    thread may call ``cancel`` at any time.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            logger.info(f"Cancellation requested: {reason}")
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise ImportCancelledError(stage)
