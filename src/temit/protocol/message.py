""" Message bodies and the :class:`Envelope` handed to handlers.

    A call or emission body is the JSON encoding of a single-element array
    holding the one logical argument. A reply body is the JSON encoding of
    an ``[error, result]`` pair. These shapes are the wire contract shared
    with every other service on the exchange, so they are enforced rather
    than generalized.
"""

import dataclasses
import datetime
import time
import traceback
import uuid

from .. import json
from ..errors import InvalidConsumerMessageError, RemoteError


@dataclasses.dataclass(frozen=True)
class Envelope:
    """ The metadata accompanying an inbound call or emission.

        :ivar id: The message id, unique per call.
        :ivar event: The routing key the message arrived with.
        :ivar sender: The name of the :class:`temit.Client` that sent it.
        :ivar sent: When it was sent, if the sender said.
        :ivar context: Scratch space for passing data between stages handling
            this one message. It is never transmitted.
    """

    id: str
    event: str
    sender: str
    sent: datetime.datetime = None
    context: dict = dataclasses.field(default_factory=dict, compare=False)


# end of class Envelope



def generate_id():
    """ Return a new, globally unique message id.
    """

    return uuid.uuid4().hex



def timestamp():
    """ Milliseconds since the epoch, which is what the AMQP timestamp
        property carries between temit services.
    """

    return int(time.time() * 1000)



def encode_call(argument):
    return json.dumps([argument])



def decode_call(body):
    """ Return the single argument from a call or emission *body*. Anything
        other than a one-element JSON array raises
        :class:`temit.errors.InvalidConsumerMessageError`.
    """

    try:
        data = json.loads(body)
    except json.DecodeError as e:
        raise InvalidConsumerMessageError('undecodable message body: %s' % (e,))

    if not isinstance(data, list) or len(data) != 1:
        raise InvalidConsumerMessageError('message body must be a one-element array')

    return data[0]



def encode_reply(error, result):
    return json.dumps([error, result])



def decode_reply(body):
    """ Return the ``(error, result)`` pair from a reply *body*. Missing
        members default to None.
    """

    try:
        data = json.loads(body)
    except json.DecodeError as e:
        raise InvalidConsumerMessageError('undecodable reply body: %s' % (e,))

    if not isinstance(data, list):
        raise InvalidConsumerMessageError('reply body must be an array')

    data = list(data[:2])
    while len(data) < 2:
        data.append(None)

    return tuple(data)



def envelope(method, properties):
    """ Build the read-only :class:`Envelope` for an inbound delivery, given
        the pika *method* and *properties* for that delivery.
    """

    sent = properties.timestamp

    if sent:
        sent = datetime.datetime.fromtimestamp(sent / 1000, tz=datetime.timezone.utc)
    else:
        sent = None

    return Envelope(
        id=properties.message_id,
        event=method.routing_key,
        sender=properties.app_id,
        sent=sent,
    )



def serialize_error(error):
    """ Convert an exception into the JSON-friendly mapping that travels as
        the error half of a reply. A :class:`temit.errors.RemoteError` is
        passed through in its original form so that errors relayed across
        several services arrive intact.
    """

    if isinstance(error, RemoteError) and error.error is not None:
        return error.error

    stack = ''.join(traceback.format_exception(type(error), error, error.__traceback__))

    serialized = dict()
    serialized['name'] = type(error).__name__
    serialized['message'] = str(error)
    serialized['stack'] = stack
    return serialized


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
