"""Broker connection lifecycle.

A pika ``BlockingConnection`` is not thread safe: it, and every channel
created from it, may only be used from the thread that drives its I/O. A
:class:`Connection` therefore owns one dedicated thread that opens the
connection, declares the exchange, and then services broker traffic for the
lifetime of the client. Work from any other thread is handed to that thread
with ``add_callback_threadsafe`` and the caller blocks on a future until it
has run.
"""

from __future__ import annotations

import concurrent.futures
import threading
from typing import Any, Callable, List, Optional

import pika
import pika.exceptions
from loguru import logger

from ..errors import ClientClosedError, ConnectionLostError, NotConnectedError


class Connection:
    """One broker connection, its exchange, and the thread that drives it."""

    poll_interval = 1.0
    join_timeout = 10.0

    def __init__(self, url: str, exchange: str):
        self.url = url
        self.exchange = exchange

        self.closing = False
        self.closed = False
        self.error: Optional[ConnectionLostError] = None

        self._lock = threading.Lock()
        self._connecting: Optional[concurrent.futures.Future] = None
        self._connection: Optional[pika.BlockingConnection] = None
        self._thread: Optional[threading.Thread] = None
        self._finished = False
        self._calls: set = set()
        self._lost: List[Callable[[Exception], None]] = []

    @property
    def is_open(self) -> bool:
        connection = self._connection
        if connection is None or self.closing or self._finished:
            return False
        return connection.is_open

    def in_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def on_lost(self, callback: Callable[[Exception], None]) -> None:
        """Register *callback* to be invoked, on the connection thread, if
        the connection dies without :meth:`close` having been called."""
        self._lost.append(callback)

    def connect(self, timeout: Optional[float] = None) -> "Connection":
        """Connect and declare the exchange. Concurrent callers share the
        same attempt; if it fails every one of them sees the failure, and a
        later call starts a fresh attempt."""

        with self._lock:
            self._check()
            future = self._connecting
            if future is None:
                future = concurrent.futures.Future()
                self._connecting = future
                self._thread = threading.Thread(
                    target=self._run,
                    args=(future,),
                    name=f"temit-connection-{self.exchange}",
                    daemon=True,
                )
                self._thread.start()

        future.result(timeout)
        self._check()
        return self

    def close(self) -> None:
        """Tear the connection down. Anything still waiting on the
        connection thread fails with :class:`ClientClosedError`; consumers
        are not given a chance to finish what they are doing."""

        with self._lock:
            if self.closing:
                return
            self.closing = True
            thread = self._thread
            connection = self._connection

        if connection is not None and not self._finished:
            # Wake the loop so it notices the closing flag promptly.
            try:
                connection.add_callback_threadsafe(lambda: None)
            except pika.exceptions.AMQPError as e:
                logger.debug(f"Connection to {self.url} already gone while closing: {e!r}")

        if thread is not None and thread is not threading.current_thread():
            thread.join(self.join_timeout)

        self.closed = True
        logger.debug(f"Connection to {self.url} closed")

    def call(self, function: Callable[..., Any], *args, **kwargs) -> Any:
        """Run *function* on the connection thread and return its result,
        raising whatever it raised."""

        if self.in_thread():
            return function(*args, **kwargs)

        self.connect()
        connection = self._connection

        future: concurrent.futures.Future = concurrent.futures.Future()

        def invoke() -> None:
            if future.done():
                return
            try:
                result = function(*args, **kwargs)
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(result)

        with self._lock:
            self._check()
            self._calls.add(future)

        try:
            connection.add_callback_threadsafe(invoke)
            return future.result()
        finally:
            with self._lock:
                self._calls.discard(future)

    def threadsafe(self, function: Callable[..., Any], *args, **kwargs) -> None:
        """Schedule *function* on the connection thread without waiting for
        it. Broker errors it raises are logged rather than allowed to break
        the connection thread."""

        def invoke() -> None:
            try:
                function(*args, **kwargs)
            except pika.exceptions.AMQPError as e:
                if not self.closing:
                    logger.opt(exception=e).warning(f"Deferred broker operation {function!r} failed")

        if self.in_thread():
            invoke()
            return

        connection = self._connection
        if connection is None or self.closing or self._finished:
            logger.debug(f"Dropping deferred broker operation {function!r}; connection is down")
            return

        try:
            connection.add_callback_threadsafe(invoke)
        except pika.exceptions.AMQPError as e:
            if not self.closing:
                logger.opt(exception=e).warning(f"Could not schedule broker operation {function!r}")

    def call_later(self, delay: float, callback: Callable[[], Any]):
        """Schedule *callback* after *delay* seconds. Connection thread
        only; returns a handle for :meth:`remove_timeout`."""
        return self._established().call_later(delay, callback)

    def remove_timeout(self, handle) -> None:
        """Cancel a timer from :meth:`call_later`. Connection thread only."""
        self._established().remove_timeout(handle)

    def channel(self):
        """Open a new channel on the shared connection."""
        return self.call(self._channel)

    def _channel(self):
        return self._established().channel()

    def _established(self) -> pika.BlockingConnection:
        connection = self._connection
        if connection is None:
            raise NotConnectedError()
        return connection

    def _check(self) -> None:
        if self.closing:
            raise ClientClosedError()
        if self.error is not None:
            raise self.error

    def _open(self) -> pika.BlockingConnection:
        connection = pika.BlockingConnection(pika.URLParameters(self.url))

        try:
            channel = connection.channel()
            channel.exchange_declare(
                exchange=self.exchange,
                exchange_type="topic",
                durable=True,
                internal=False,
                auto_delete=False,
            )
            channel.close()
        except Exception:
            if connection.is_open:
                connection.close()
            raise

        return connection

    def _run(self, future: concurrent.futures.Future) -> None:
        try:
            connection = self._open()
        except Exception as e:
            logger.debug(f"Connection to {self.url} failed: {e!r}")
            with self._lock:
                self._connecting = None
            future.set_exception(e)
            return

        self._connection = connection
        logger.debug(f"Connected to {self.url}, exchange {self.exchange!r} declared")
        future.set_result(connection)

        self._loop(connection)

    def _loop(self, connection: pika.BlockingConnection) -> None:
        error: Optional[Exception] = None

        try:
            while not self.closing and connection.is_open:
                connection.process_data_events(time_limit=self.poll_interval)
        except Exception as e:
            error = e

        with self._lock:
            closing = self.closing
            if closing:
                lost: Exception = ClientClosedError()
            else:
                message = f"connection to {self.url} lost: {error!r}" if error else None
                lost = ConnectionLostError(message)
                self.error = lost

            self._finished = True
            calls = list(self._calls)
            self._calls.clear()

        if not closing:
            logger.opt(exception=error).error(f"Connection to {self.url} lost")

        if connection.is_open:
            try:
                connection.close()
            except pika.exceptions.AMQPError as e:
                logger.debug(f"Error closing connection to {self.url}: {e!r}")

        for future in calls:
            if not future.done():
                future.set_exception(lost)

        if not closing:
            for callback in list(self._lost):
                callback(lost)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
