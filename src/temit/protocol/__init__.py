"""
temit Protocol Layer
====================

Message bodies, the :class:`Envelope` passed to handlers, message ids and
error serialization. Nothing here knows about pika or the broker; the
transport layer maps these onto AMQP properties and frames.

Dependencies only flow downward:

    Components (requester, endpoint, emitter, listener)
        -> Protocol (this package)
        -> Transport (connection thread, channel pool)
"""

from . import message
from .message import Envelope


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
