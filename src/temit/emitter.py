""" Emitters publish events to listeners, now or later.

    An immediate emission is published straight to the exchange. A delayed
    or scheduled emission is instead sent directly to a bucket queue that
    nothing consumes: the bucket dead-letters into the exchange, under the
    event's routing key, once its messages expire. Emissions due at the same
    moment share a bucket rather than provisioning a queue each. Buckets
    expire on their own a while after they were last used.
"""

import collections
import datetime

import pika.exceptions
from loguru import logger

from . import config
from .component import Component
from .protocol import message
from .transport import base


Bucket = collections.namedtuple('Bucket', ('queue', 'arguments', 'expiration'))
Bucket.__doc__ = """ A bucket queue to assert. *expiration*, in milliseconds,
    is set for scheduled emissions only, which need a per-message expiry
    because messages sharing the bucket were enqueued at different times.
"""


def bucket(exchange, event, now, delay=None, schedule=None):
    """ Work out the bucket queue for an emission sent at *now* (milliseconds
        since the epoch) with a relative *delay* or an absolute *schedule*,
        both in milliseconds. Returns None if the emission should go out
        immediately.

        Delayed emissions with the same delay sent within the same
        delay-sized window of time share a bucket, which expires every
        message after exactly that delay. Scheduled emissions share a bucket
        with everything else scheduled for the same instant.
    """

    if schedule is not None:
        expiration = schedule - now

        if expiration <= 0:
            return None

        key = str(schedule)
        expires = expiration + config.bucket_grace
        ttl = None

    elif delay:
        window = now - (now % delay)
        key = '%d@%d' % (delay, window)
        expires = delay + config.bucket_grace
        ttl = delay
        expiration = None

    else:
        return None

    arguments = dict()
    arguments['x-dead-letter-exchange'] = exchange
    arguments['x-dead-letter-routing-key'] = event
    arguments['x-expires'] = expires

    if ttl is not None:
        arguments['x-message-ttl'] = ttl

    queue = base.bucket_queue(exchange, event, key)
    return Bucket(queue, arguments, expiration)



def timing(delay):
    """ Split a *delay* option into ``(delay, schedule)`` milliseconds. A
        :class:`datetime.datetime` is an absolute schedule; anything else is
        a relative duration.
    """

    if delay is None:
        return None, None

    if isinstance(delay, datetime.datetime):
        return None, int(delay.timestamp() * 1000)

    delay = config.milliseconds(delay)

    if delay < 0:
        raise ValueError('delay cannot be negative')

    return delay, None



class Emitter(Component):
    """ Emit *event* to every listener group subscribed to it.

        *priority* (1 to 10) orders emissions within a listener's queue.
        *delay* postpones the emission: a duration (milliseconds, a
        :class:`datetime.timedelta`, or a string such as ``'30 seconds'``)
        delays it relative to when it is sent, and a
        :class:`datetime.datetime` schedules it for that moment. Both can be
        overridden per call.
    """

    kind = 'emitter'

    def __init__(self, client, event, priority=None, delay=None):

        Component.__init__(self, client, event)

        self.priority = config.priority(priority)
        self.delay, self.schedule = timing(delay)


    def send(self, argument=None, priority=None, delay=None):
        """ Emit *argument*. Returns once the broker has it; nothing comes
            back from the listeners.
        """

        # Delays are measured from the moment of the call.
        now = message.timestamp()

        if priority is None:
            priority = self.priority
        else:
            priority = config.priority(priority)

        if delay is None:
            delay, schedule = self.delay, self.schedule
        else:
            delay, schedule = timing(delay)

        body = message.encode_call(argument)

        self.open()

        properties = base.emission_properties(
            message.generate_id(), self.client.name, message.timestamp(), priority)

        target = bucket(self.client.exchange, self.event, now, delay, schedule)

        if target is not None:
            self._assert_bucket(target)

            if target.expiration is not None:
                properties.expiration = str(target.expiration)

        connection = self.client.connection

        with self.client.pool.worker() as worker:
            if target is None:
                connection.call(
                    worker.basic_publish,
                    exchange=self.client.exchange,
                    routing_key=self.event,
                    body=body,
                    properties=properties,
                )
            else:
                # Straight into the bucket, bypassing routing; dead-lettering
                # is what delivers it later.
                connection.call(
                    worker.basic_publish,
                    exchange='',
                    routing_key=target.queue,
                    body=body,
                    properties=properties,
                )


    def _assert_bucket(self, target):

        connection = self.client.connection

        try:
            with self.client.pool.worker() as worker:
                connection.call(
                    worker.queue_declare,
                    queue=target.queue,
                    exclusive=False,
                    durable=True,
                    auto_delete=True,
                    arguments=target.arguments,
                )
        except pika.exceptions.ChannelClosedByBroker as e:
            # A schedule bucket asserted earlier asked for a longer x-expires,
            # measured from an earlier moment; it lasts until the same instant.
            if target.expiration is None or e.reply_code != base.PRECONDITION_FAILED:
                raise

            logger.debug(f"Reusing schedule bucket {target.queue}")


# end of class Emitter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
