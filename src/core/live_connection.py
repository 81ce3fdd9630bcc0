#!/usr/bin/env -S python3 -B -u
"""
Auxiliary Live-Data Connection Manager

Owns the optional live channel used by a geolocation source for the whole
session. The channel is opened on entry and released exactly once on exit,
whatever way the session ends. Operator interrupts are delivered through a
CancellationToken and observed at checkpoints between probe runs.
"""

import signal
import threading
from contextlib import contextmanager
from typing import Callable, Iterable, Optional, Protocol

from fasttrace.core.exceptions import LiveConnectionError, TracerouteError
from fasttrace.core.structured_logging import get_logger


class LiveChannelHandle(Protocol):
    def close(self) -> None:
        ...


class CancellationToken:
    """Thread-safe one-shot cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@contextmanager
def interrupt_listener(token: CancellationToken, signals: Iterable[int] = (signal.SIGINT,)):
    """
    Cancel the token when one of the given signals arrives.

    Previous handlers are restored on exit. Only usable from the main thread.
    """
    previous = {}

    def _handler(signum, frame):
        token.cancel()

    for signum in signals:
        previous[signum] = signal.signal(signum, _handler)
    try:
        yield token
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


class LiveConnectionManager:
    """
    Scoped owner of the live channel.

    With no opener the manager does nothing and yields None.

    Attributes:
        opener: Callable returning an open channel, or None
        token: Cancellation token observed by checkpoint()
        release_count: Number of times the channel has been released
    """

    def __init__(self, opener: Optional[Callable[[], LiveChannelHandle]],
                 token: Optional[CancellationToken] = None):
        self.opener = opener
        self.token = token or CancellationToken()
        self.channel: Optional[LiveChannelHandle] = None
        self.release_count = 0
        self.logger = get_logger(__name__)

    @property
    def required(self) -> bool:
        return self.opener is not None

    @property
    def is_open(self) -> bool:
        return self.channel is not None

    def open(self) -> Optional[LiveChannelHandle]:
        """
        Open the channel once.

        Raises:
            LiveConnectionError: If the opener fails
        """
        if not self.required or self.channel is not None:
            return self.channel
        try:
            self.channel = self.opener()
        except TracerouteError:
            raise
        except Exception as e:
            raise LiveConnectionError("live geolocation service", str(e), cause=e) from e
        self.logger.info("Live geolocation channel opened")
        return self.channel

    def release(self) -> None:
        """Close the channel; later calls are no-ops."""
        if self.channel is None:
            return
        channel, self.channel = self.channel, None
        self.release_count += 1
        try:
            channel.close()
        except Exception as e:
            self.logger.warning(f"Error while closing live geolocation channel: {e}")
        else:
            self.logger.info("Live geolocation channel closed")

    def checkpoint(self) -> bool:
        """Return False once the session has been interrupted."""
        if not self.token.cancelled:
            return True
        self.logger.info("Interrupt received, releasing live channel")
        self.release()
        return False

    def __enter__(self) -> Optional[LiveChannelHandle]:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
