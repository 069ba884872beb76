""" Request/reply correlation. Every Requester call is represented by a
    :class:`PendingRequest`, and the client's :class:`Replies` instance
    routes inbound replies and broker returns to the matching one by message
    id. A pending request settles exactly once: whichever of the reply, the
    broker return, the timer, or a fatal failure gets there first wins, and
    the request is forgotten immediately afterward.
"""

import threading

from loguru import logger

from .errors import (
    InvalidConsumerMessageError,
    RemoteError,
    ReplyConsumerCancelledError,
    RequesterNoRouteError,
    RequesterTimeoutError,
)
from .protocol import message


class PendingRequest:
    """ Caller-side handle for an in-flight request. The caller blocks in
        :func:`wait` until the request settles.

        :ivar id: The message id, which doubles as the correlation id.
        :ivar timer: Handle for the timeout timer, if one is running.
    """

    def __init__(self, replies, id):

        self.id = id
        self.replies = replies
        self.timer = None

        self.result = None
        self.error = None
        self.settled = False

        self._event = threading.Event()
        self._lock = threading.Lock()


    def poll(self):
        """ Return True if the request has settled, otherwise False.
        """

        return self._event.is_set()


    def wait(self, timeout=None):
        """ Block until the request settles, then return the reply or raise
            the error it settled with. The request's own timeout is enforced
            by its timer; *timeout* here only bounds how long this particular
            call to :func:`wait` is willing to block, and raises
            :class:`TimeoutError` without settling the request.
        """

        if not self._event.wait(timeout):
            raise TimeoutError('request %s still pending' % (self.id))

        if self.error is not None:
            raise self.error

        return self.result


    def expire(self):
        """ Timer callback: settle with a timeout.
        """

        self.timer = None
        self.settle(error=RequesterTimeoutError())


    def settle(self, result=None, error=None):
        """ Record the outcome of this request. Only the first call has any
            effect; the return value indicates whether this call was it.
        """

        with self._lock:
            if self.settled:
                return False
            self.settled = True

        self.result = result
        self.error = error

        timer = self.timer
        self.timer = None
        connection = self.replies.connection

        if timer is not None and connection.in_thread():
            connection.remove_timeout(timer)

        self.replies.discard(self.id)
        self._event.set()
        return True


# end of class PendingRequest



class Replies:
    """ The reply dispatcher shared by every Requester on a client. Its
        methods double as the pika callbacks for the direct reply-to
        consumer, the broker's unroutable-message returns, and consumer
        cancellation, all of which run on the connection thread.

        A reply without a correlation id, or one that cannot be decoded,
        means something on the exchange is not speaking our protocol. That
        is fatal: every pending request fails, and so does every later
        attempt to register one.
    """

    def __init__(self, connection):

        self.connection = connection
        self.error = None

        self._pending = dict()
        self._lock = threading.Lock()


    def __len__(self):
        return len(self._pending)


    def __contains__(self, id):
        return id in self._pending


    def register(self, id):
        """ Create and track a :class:`PendingRequest` for message *id*.
        """

        with self._lock:
            if self.error is not None:
                raise self.error

            pending = PendingRequest(self, id)
            self._pending[id] = pending

        return pending


    def discard(self, id):
        with self._lock:
            self._pending.pop(id, None)


    def get(self, id):
        with self._lock:
            return self._pending.get(id)


    def on_reply(self, channel, method, properties, body):

        correlation_id = properties.correlation_id

        if not correlation_id:
            self.fail(InvalidConsumerMessageError('reply received without a correlation id'))
            return

        try:
            error, result = message.decode_reply(body)
        except InvalidConsumerMessageError as e:
            self.fail(e)
            return

        pending = self.get(correlation_id)

        if pending is None:
            # The caller is gone: timed out, most likely.
            logger.debug(f"Discarding reply to settled request {correlation_id}")
            return

        if error is not None:
            pending.settle(error=RemoteError(error))
        else:
            pending.settle(result=result)


    def on_return(self, channel, method, properties, body):
        """ The broker could not route a mandatory request to any queue.
        """

        pending = self.get(properties.message_id)

        if pending is not None:
            pending.settle(error=RequesterNoRouteError())


    def on_cancel(self, method_frame):
        self.fail(ReplyConsumerCancelledError())


    def fail(self, error, expected=False):
        """ Fail every pending request with *error*, and refuse new ones.
            An *expected* failure, such as the client closing, is not
            reported as an error.
        """

        with self._lock:
            if self.error is None:
                self.error = error
            pending = list(self._pending.values())
            self._pending.clear()

        if expected:
            logger.debug(f"Reply dispatcher closed with {len(pending)} requests pending")
        else:
            logger.error(f"Reply dispatcher failed: {error}")

        for request in pending:
            request.settle(error=error)


# end of class Replies


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
