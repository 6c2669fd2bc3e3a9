"""Cancellation token for cooperative cancellation."""

import threading


class CancelToken:
    """Thread-safe cancellation token using threading.Event.

    Tokens are single-use - once cancelled, create a new token for the
    next run. The CLI cancels the token from its SIGINT handler; tests
    cancel it directly.

    Example:
        >>> token = CancelToken()
        >>> # In the intake loop:
        >>> if token.is_cancelled:
        ...     break  # Stop starting new items
        >>> # From a signal handler or another thread:
        >>> token.cancel()
    """

    __slots__ = ("_event",)

    def __init__(self) -> None:
        """Initialize a new cancellation token (not cancelled)."""
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal that no new work should be started.

        Thread-safe and safe to call from a signal handler.
        """
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._event.is_set()
