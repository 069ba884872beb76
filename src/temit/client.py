""" The :class:`Client` is the root object for a service talking through
    temit. It owns everything the components it creates have in common: the
    broker connection and its thread, the pool of worker channels, the
    publish channels that requesters send on (each of which also consumes
    replies), the reply dispatcher, and the worker threads that run handlers.
"""

import concurrent.futures
import threading
import weakref

from loguru import logger

from . import config
from .emitter import Emitter
from .endpoint import Endpoint
from .errors import (
    ClientClosedError,
    ConsumerDiedError,
    ReplyConsumerDiedError,
)
from .listener import Listener
from .requester import Requester
from .session import Replies
from .transport.base import REPLY_TO
from .transport.connection import Connection
from .transport.pool import ChannelPool


class Client:
    """ Connect a service named *name* to the broker at *url*, sending its
        traffic through the topic exchange *exchange*. Both default to the
        ``TEMIT_URL`` and ``TEMIT_EXCHANGE`` environment variables, or to
        ``amqp://localhost`` and ``temit``.

        Nothing touches the network until :func:`connect` is called, or
        until a component needs the connection. Once :func:`close` has been
        called the client, and every component created from it, is finished
        with; create a new client to carry on.

        *workers* is the number of threads available to run endpoint and
        listener handlers.
    """

    def __init__(self, name, url=None, exchange=None, workers=config.workers,
                 pool_maximum=config.pool_maximum, pool_minimum=config.pool_minimum):

        if not name:
            raise ValueError('a client name is required')

        self.name = name
        self.url = url or config.url
        self.exchange = exchange or config.exchange

        self.connection = Connection(self.url, self.exchange)
        self.pool = ChannelPool(self.connection, pool_maximum, pool_minimum)
        self.replies = Replies(self.connection)
        self.workers = concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix='temit-%s' % (name))

        self.publish_channels = dict()
        self._publish_lock = threading.Lock()
        self._consumers = weakref.WeakSet()

        self.connection.on_lost(self._lost)


    def __repr__(self):
        return '<Client %r %s %r>' % (self.name, self.url, self.exchange)


    @property
    def closing(self):
        return self.connection.closing


    def connect(self, timeout=None):
        """ Connect to the broker and declare the exchange, if that has not
            happened yet. Concurrent callers share a single attempt.
        """

        self.connection.connect(timeout)
        self.pool.fill()
        return self


    def close(self):
        """ Close the connection. Pending requests fail with
            :class:`temit.errors.ClientClosedError`; consumers stop where
            they are, without waiting for running handlers to finish.
        """

        if self.connection.closing:
            return

        logger.debug(f"Closing {self!r}")

        self.connection.close()
        self.pool.drain()
        self.replies.fail(ClientClosedError(), expected=True)
        self.workers.shutdown(wait=False)

        with self._publish_lock:
            self.publish_channels.clear()


    def track(self, consumer):
        """ Remember *consumer* so that it can be told if the connection
            dies underneath it.
        """

        self._consumers.add(consumer)


    def publish_channel(self, event):
        """ Return the long-lived publishing channel for *event*, creating it
            if necessary. Each of these channels consumes the direct reply-to
            pseudo-queue, since the broker only delivers replies to the
            channel that published the request.
        """

        with self._publish_lock:
            if self.closing:
                raise ClientClosedError()

            try:
                channel = self.publish_channels[event]
            except KeyError:
                channel = self.connection.call(self._open_publish_channel)
                self.publish_channels[event] = channel
                return channel

        if not channel.is_open:
            raise ReplyConsumerDiedError()

        return channel


    def create_requester(self, event, priority=None, timeout=config.timeout):
        """ Return a new :class:`temit.Requester` for *event*.
        """

        return Requester(self, event, priority=priority, timeout=timeout)


    def create_endpoint(self, event, handler, prefetch=config.prefetch):
        """ Return a new :class:`temit.Endpoint` answering requests for
            *event* with *handler*. Call its ``open()`` method to start.
        """

        return Endpoint(self, event, handler, prefetch=prefetch)


    def create_emitter(self, event, priority=None, delay=None):
        """ Return a new :class:`temit.Emitter` for *event*.
        """

        return Emitter(self, event, priority=priority, delay=delay)


    def create_listener(self, event, group, handler, buffer=True,
                        prefetch=config.prefetch, lazy=False, requeue=False):
        """ Return a new :class:`temit.Listener` handling emissions of
            *event* with *handler*. *group* identifies what the listener
            does; listeners sharing a client name and group share the work.
        """

        return Listener(self, event, group, handler, buffer=buffer,
                        prefetch=prefetch, lazy=lazy, requeue=requeue)


    def _open_publish_channel(self):
        """ Runs on the connection thread.
        """

        channel = self.connection._channel()

        channel.add_on_return_callback(self.replies.on_return)
        channel.add_on_cancel_callback(self.replies.on_cancel)
        channel.basic_consume(
            queue=REPLY_TO,
            on_message_callback=self.replies.on_reply,
            auto_ack=True,
            exclusive=True,
        )

        logger.debug(f"Publish channel {channel.channel_number} consuming {REPLY_TO}")
        return channel


    def _lost(self, error):
        """ The connection died without being asked to. Everything built on
            it is dead too.
        """

        self.replies.fail(ReplyConsumerDiedError())

        for consumer in list(self._consumers):
            consumer.fail(ConsumerDiedError())


# end of class Client


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
