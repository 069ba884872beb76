""" Requesters call endpoints and wait for the answer.

    A request is published to the exchange as a mandatory message, so that
    the broker hands it back if nothing is bound to receive it, with the
    broker's direct reply-to pseudo-queue as its reply address. The calling
    thread then blocks on a :class:`temit.session.PendingRequest` until the
    reply arrives, the broker returns the message as unroutable, or the
    timeout expires, whichever happens first.
"""

from . import config
from .component import Component
from .errors import ReplyConsumerDiedError
from .protocol import message
from .transport import base


def waiting(timeout):
    """ Interpret *timeout* as a request timeout in milliseconds. The value
        also becomes the request's message expiration, which the broker
        refuses if it is negative.
    """

    timeout = config.milliseconds(timeout)

    if timeout < 0:
        raise ValueError('timeout cannot be negative')

    return timeout


class Requester(Component):
    """ Make requests of the :class:`temit.Endpoint` instances handling
        *event*.

        *priority* (1 to 10) lets a request jump ahead of lower priority
        requests already queued. *timeout* is how long to wait for an answer:
        milliseconds, a :class:`datetime.timedelta`, or a string such as
        ``'30s'`` or ``'50ms'``. A timeout of zero waits forever, which is
        not recommended. Both can be overridden per call.
    """

    kind = 'requester'

    def __init__(self, client, event, priority=None, timeout=config.timeout):

        Component.__init__(self, client, event)

        self.priority = config.priority(priority)
        self.timeout = waiting(timeout)


    def send(self, argument=None, priority=None, timeout=None):
        """ Request a response for *argument* and block until it arrives.
            Raises :class:`temit.errors.RequesterTimeoutError` if no reply
            came in time, :class:`temit.errors.RequesterNoRouteError` if no
            endpoint was listening, or :class:`temit.errors.RemoteError` if
            the endpoint's handler raised.
        """

        pending = self.request(argument, priority=priority, timeout=timeout)
        return pending.wait()


    def request(self, argument=None, priority=None, timeout=None):
        """ Publish a request for *argument* without waiting for the answer,
            returning the :class:`temit.session.PendingRequest` to wait on.
            This allows one thread to keep several requests in flight.
        """

        if priority is None:
            priority = self.priority
        else:
            priority = config.priority(priority)

        if timeout is None:
            timeout = self.timeout
        else:
            timeout = waiting(timeout)

        body = message.encode_call(argument)

        self.open()

        id = message.generate_id()
        properties = base.request_properties(
            id, self.client.name, message.timestamp(), priority, timeout)

        replies = self.client.replies
        pending = replies.register(id)

        try:
            self.client.connection.call(self._publish, pending, body, properties, timeout)
        except Exception:
            replies.discard(id)
            raise

        return pending


    def _bootstrap(self):

        Component._bootstrap(self)
        self.channel = self.client.publish_channel(self.event)


    def _publish(self, pending, body, properties, timeout):
        """ Publish the request and start its timer. Runs on the connection
            thread, so nothing can settle the request in between.
        """

        if not self.channel.is_open:
            error = ReplyConsumerDiedError()
            self.fail(error)
            raise error

        self.channel.basic_publish(
            exchange=self.client.exchange,
            routing_key=self.event,
            body=body,
            properties=properties,
            mandatory=True,
        )

        if timeout and not pending.settled:
            pending.timer = self.client.connection.call_later(timeout / 1000, pending.expire)


# end of class Requester


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
