"""
Cooperative cancellation for schema operations.

A token wraps a threading.Event. Strategies check it before each statement,
so a cancelled operation stops between statements and never mid-statement.
"""
import threading

from schemakit.exceptions import OperationCancelled


class CancellationToken:
    """Cancellation flag shared between a caller and a running operation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout=timeout)

    def raise_if_cancelled(self, where: str = '') -> None:
        """Raise OperationCancelled if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelled(f'Operation cancelled{" before " + where if where else ""}')
