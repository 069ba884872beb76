"""Bounded pool of worker channels.

Worker channels are for short administrative work: asserting queues and
single-shot sends. Each one is checked out by exactly one caller at a time,
and must come back through exactly one of :meth:`ChannelPool.release` (it is
still good) or :meth:`ChannelPool.destroy` (something went wrong while it was
held, so it is not to be trusted again).
"""

from __future__ import annotations

import collections
import contextlib
import threading
from typing import Deque, Iterator, Optional

import pika.exceptions
from loguru import logger

from .. import config
from ..errors import ClientClosedError
from .connection import Connection


class ChannelPool:
    """Hand out channels on a shared :class:`Connection`, creating them on
    demand up to *maximum* and blocking callers once that many are out."""

    def __init__(
        self,
        connection: Connection,
        maximum: int = config.pool_maximum,
        minimum: int = config.pool_minimum,
    ):
        if maximum < 1:
            raise ValueError("pool maximum must be at least 1")

        self.connection = connection
        self.maximum = maximum
        self.minimum = min(minimum, maximum)
        self.closed = False

        self._idle: Deque = collections.deque()
        self._size = 0
        self._condition = threading.Condition()

    @property
    def size(self) -> int:
        """Number of channels currently owned by the pool, idle or not."""
        return self._size

    @property
    def available(self) -> int:
        return len(self._idle)

    def acquire(self, timeout: Optional[float] = None):
        """Check out a channel, waiting up to *timeout* seconds for one to
        come free if the pool is at capacity."""

        with self._condition:
            while True:
                if self.closed:
                    raise ClientClosedError()

                while self._idle:
                    channel = self._idle.popleft()
                    if channel.is_open:
                        return channel
                    self._size -= 1

                if self._size < self.maximum:
                    self._size += 1
                    break

                if not self._condition.wait(timeout):
                    raise TimeoutError("no worker channel available")

        try:
            channel = self._create()
        except BaseException:
            with self._condition:
                self._size -= 1
                self._condition.notify()
            raise

        return channel

    def release(self, channel) -> None:
        """Return a healthy channel for reuse."""

        with self._condition:
            if self.closed or not channel.is_open:
                self._size -= 1
                self._condition.notify()
                return

            self._idle.append(channel)
            self._condition.notify()

    def destroy(self, channel) -> None:
        """Permanently remove a channel that failed while checked out."""

        with self._condition:
            self._size -= 1
            self._condition.notify()

        if channel.is_open:
            self.connection.threadsafe(self._close, channel)

    @contextlib.contextmanager
    def worker(self) -> Iterator:
        """Check out a channel for the duration of a ``with`` block. It is
        released if the block completes and destroyed if it raises."""

        channel = self.acquire()

        try:
            yield channel
        except BaseException:
            self.destroy(channel)
            raise
        else:
            self.release(channel)

    def fill(self) -> None:
        """Make sure at least *minimum* channels exist and sit idle."""

        created = list()

        with self._condition:
            wanted = max(0, self.minimum - self._size)
            self._size += wanted

        try:
            for _ in range(wanted):
                created.append(self._create())
        finally:
            with self._condition:
                self._size -= wanted - len(created)
                self._idle.extend(created)
                self._condition.notify_all()

    def drain(self) -> None:
        """Close every idle channel and refuse further checkouts. Channels
        still checked out are dropped as they come back."""

        with self._condition:
            self.closed = True
            idle = list(self._idle)
            self._idle.clear()
            self._size -= len(idle)
            self._condition.notify_all()

        for channel in idle:
            if channel.is_open:
                self.connection.threadsafe(self._close, channel)

    def _create(self):
        channel = self.connection.channel()
        logger.debug(f"Worker channel {channel.channel_number} opened")
        return channel

    @staticmethod
    def _close(channel) -> None:
        # Errors closing an abandoned channel belong to whatever was using it.
        try:
            channel.close()
        except pika.exceptions.AMQPError as e:
            logger.debug(f"Worker channel {channel.channel_number} closed with {e!r}")


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
