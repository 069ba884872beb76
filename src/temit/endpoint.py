""" Endpoints answer requests. An endpoint consumes a shared, auto-deleting
    queue named after its event, so every endpoint for the same event shares
    the load round-robin. Deliveries are auto-acknowledged: the broker
    forgets a request as soon as it hands it over, and a request in flight
    when an endpoint dies is lost; the requester finds out by timing out.
"""

from loguru import logger

from . import config
from . import json
from .consumer import Consumer
from .protocol import message
from .transport import base


class Endpoint(Consumer):
    """ Respond to :class:`temit.Requester` calls for *event*. The *handler*
        is called with an :class:`temit.Envelope` and the request argument;
        what it returns goes back to the requester, and what it raises goes
        back as the error. A non-callable *handler* is static data, returned
        for every request. Call :func:`open` to start consuming.
    """

    kind = 'endpoint'
    auto_ack = True
    exclusive = False

    def __init__(self, client, event, handler, prefetch=config.prefetch):
        Consumer.__init__(self, client, event, handler, prefetch)


    def _assert_queue(self, worker):

        worker.queue_declare(
            queue=self.event,
            exclusive=False,
            durable=False,
            auto_delete=True,
            arguments=self.queue_arguments,
        )

        return self.event


    def _reject(self, channel, method, error):
        # Nothing to nack with auto-ack, so the message is simply dropped.
        logger.warning(f"{self!r} dropped an undecodable request: {error}")


    def _settle(self, channel, method, properties, error, result):

        reply_to = properties.reply_to

        if not reply_to:
            return

        try:
            body = message.encode_reply(error, result)
        except (TypeError, json.EncodeError) as e:
            body = message.encode_reply(message.serialize_error(e), None)

        reply = base.reply_properties(properties, self.client.name, message.timestamp())
        connection = self.client.connection

        with self.client.pool.worker() as worker:
            connection.call(
                worker.basic_publish,
                exchange='',
                routing_key=reply_to,
                body=body,
                properties=reply,
            )


# end of class Endpoint


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
