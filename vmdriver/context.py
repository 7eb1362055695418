"""Connection context shared by every remote call of one operation sequence."""

from __future__ import annotations

import threading
from typing import Optional

from vmdriver.exceptions import CancellationFailure


class Context:
    """Service instance, target datacenter and a cancellation flag.

    The context is read-only for the operations that receive it; the only
    mutation is ``cancel()``, which wakes every wait currently blocked on it.
    """

    def __init__(self, service_instance, datacenter=None) -> None:
        self.service_instance = service_instance
        self.datacenter = datacenter
        self._cancelled = threading.Event()

    @property
    def content(self):
        return self.service_instance.RetrieveContent()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def check(self) -> None:
        if self._cancelled.is_set():
            raise CancellationFailure("Operation cancelled")

    def wait(self, seconds: Optional[float]) -> None:
        """Sleep up to ``seconds``; raise CancellationFailure as soon as the context is cancelled."""
        if self._cancelled.wait(seconds):
            raise CancellationFailure("Operation cancelled while waiting")
