""" Queue consumption shared by :class:`temit.Endpoint` and
    :class:`temit.Listener`.

    Bootstrapping a consumer asserts its queue with a pool worker, then opens
    the consumer's own channel, applies prefetch, binds the queue to the
    exchange under the event name, and starts consuming. Deliveries arrive on
    the connection thread; they are decoded there and the handler is run on
    the client's worker threads so that a slow handler, or one that makes
    requests of its own, never stalls the connection.
"""

from loguru import logger

from . import handlers
from .component import Component
from .errors import ConsumerCancelledError, InvalidConsumerMessageError
from .protocol import message
from .transport.base import MAX_PRIORITY


class Consumer(Component):
    """ Abstract consumer. Subclasses decide how the queue is asserted
        (:func:`_assert_queue`), what happens to an undecodable delivery
        (:func:`_reject`), and what happens once the handler has produced
        its ``(error, result)`` pair (:func:`_settle`).

        :ivar queue: The name of the consumed queue, once known.
        :ivar prefetch: Messages the broker may push before any are settled;
            zero means no limit.
    """

    auto_ack = True
    exclusive = False

    def __init__(self, client, event, handler, prefetch):

        Component.__init__(self, client, event)

        self.handler = handlers.wrap(handler)
        self.prefetch = int(prefetch or 0)
        self.queue = None
        self.consumer_tag = None

        client.track(self)


    @property
    def queue_arguments(self):
        return {'x-max-priority': MAX_PRIORITY}


    def _bootstrap(self):

        Component._bootstrap(self)
        connection = self.client.connection

        with self.client.pool.worker() as worker:
            queue = connection.call(self._assert_queue, worker)

        self.queue = queue
        self.channel = connection.call(self._consume, queue)


    def _assert_queue(self, worker):
        """ Declare the queue using *worker*, returning its name. Runs on the
            connection thread.
        """

        raise NotImplementedError('subclasses must implement _assert_queue()')


    def _consume(self, queue):
        """ Open this consumer's own channel and start consuming *queue*.
            Runs on the connection thread.
        """

        channel = self.client.connection._channel()

        try:
            if self.prefetch:
                channel.basic_qos(prefetch_count=self.prefetch, global_qos=True)

            channel.queue_bind(queue=queue, exchange=self.client.exchange, routing_key=self.event)
            channel.add_on_cancel_callback(self._on_cancel)

            self.consumer_tag = channel.basic_consume(
                queue=queue,
                on_message_callback=self._on_message,
                auto_ack=self.auto_ack,
                exclusive=self.exclusive,
            )
        except Exception:
            if channel.is_open:
                channel.close()
            raise

        return channel


    def _teardown(self, channel):

        if not channel.is_open:
            return

        if self.consumer_tag is not None:
            channel.basic_cancel(self.consumer_tag)

        channel.close()


    def _on_cancel(self, method_frame):
        """ The broker cancelled our consumer, most likely because someone
            deleted the queue out from under us.
        """

        self.fail(ConsumerCancelledError())


    def _on_message(self, channel, method, properties, body):

        if self.client.closing:
            return

        try:
            argument = message.decode_call(body)
        except InvalidConsumerMessageError as e:
            self._reject(channel, method, e)
            return

        envelope = message.envelope(method, properties)

        try:
            self.client.workers.submit(self._dispatch, channel, method, properties, envelope, argument)
        except RuntimeError:
            # The worker pool shuts down with the client.
            logger.debug(f"{self!r} dropped message {envelope.id}; client is shutting down")


    def _dispatch(self, channel, method, properties, envelope, argument):
        """ Run the handler and settle the delivery. Runs on a worker thread,
            where there is nobody to raise to.
        """

        error, result = self.handler(envelope, argument)

        try:
            self._settle(channel, method, properties, error, result)
        except Exception as e:
            if not self.client.closing:
                logger.opt(exception=e).error(f"{self!r} could not settle message {envelope.id}")


    def _reject(self, channel, method, error):
        raise NotImplementedError('subclasses must implement _reject()')


    def _settle(self, channel, method, properties, error, result):
        raise NotImplementedError('subclasses must implement _settle()')


# end of class Consumer


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
