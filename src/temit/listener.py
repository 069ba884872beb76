""" Listeners receive emissions. By default a listener is buffered: it
    consumes a durable queue named for the event, the client and the
    listener's group, which keeps collecting emissions while the listener is
    offline and is shared round-robin by every listener with the same client
    name and group. An unbuffered listener instead gets an exclusive,
    broker-named queue that exists only while it is listening.
"""

from loguru import logger

from . import config
from .consumer import Consumer
from .errors import ClientClosedError
from .transport import base


class Listener(Consumer):
    """ Handle emissions of *event*. *group* names what this listener does,
        much like a function name.

        Buffered listeners acknowledge each message once the handler has
        finished with it, whether it returned or raised; only a message that
        cannot be decoded is nacked, without requeueing, so the broker's
        dead-letter policy (if any) applies. With *requeue* set, a handler
        that raises nacks its message back onto the queue to be delivered
        again. Unbuffered listeners consume without acknowledgements.

        Unless *lazy* is set the listener opens itself immediately. If that
        fails the error is logged and the listener is returned unopened;
        call :func:`open` to try again.
    """

    kind = 'listener'

    def __init__(self, client, event, group, handler, buffer=True,
                 prefetch=config.prefetch, lazy=False, requeue=False):

        if not group:
            raise ValueError('a listener group is required')

        self.group = group
        self.buffer = bool(buffer)
        self.lazy = bool(lazy)
        self.requeue = bool(requeue)

        self.auto_ack = not self.buffer
        self.exclusive = not self.buffer

        Consumer.__init__(self, client, event, handler, prefetch)

        if not self.lazy:
            try:
                self.open()
            except ClientClosedError:
                raise
            except Exception as e:
                logger.warning(f"{self!r} could not open, call open() to retry: {e!r}")


    def _assert_queue(self, worker):

        if self.buffer:
            queue = base.listener_queue(self.event, self.client.name, self.group)
        else:
            # An empty name asks the broker to generate one.
            queue = ''

        ok = worker.queue_declare(
            queue=queue,
            exclusive=not self.buffer,
            durable=self.buffer,
            auto_delete=not self.buffer,
            arguments=self.queue_arguments,
        )

        return ok.method.queue


    def _reject(self, channel, method, error):

        logger.warning(f"{self!r} rejected an undecodable message: {error}")

        if self.buffer:
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)


    def _settle(self, channel, method, properties, error, result):

        if error is not None:
            logger.warning(f"{self!r} handler failed: {_describe(error)}")

        if not self.buffer:
            return

        connection = self.client.connection

        if error is not None and self.requeue:
            connection.threadsafe(channel.basic_nack, delivery_tag=method.delivery_tag, requeue=True)
        else:
            connection.threadsafe(channel.basic_ack, delivery_tag=method.delivery_tag)


# end of class Listener



def _describe(error):
    try:
        return '%s: %s' % (error['name'], error['message'])
    except (KeyError, TypeError):
        return repr(error)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
