""" RabbitMQ-backed microservice messaging.

    A :class:`Client` connects a named service to a topic exchange, and
    creates the four kinds of component that talk through it:

    * :class:`Requester` calls an :class:`Endpoint` and waits for the answer;
    * :class:`Emitter` sends events, immediately or later, to every group of
      :class:`Listener` instances subscribed to them.

    Services find each other by event name through the broker's routing; no
    separate registry is involved.
"""

# Utility components.

from . import config
from . import errors
from . import json

# Submodules used by multiple other components.

from . import protocol
from . import transport
from .protocol import Envelope

# Primary public-facing interfaces.

from .client import Client
from .emitter import Emitter
from .endpoint import Endpoint
from .listener import Listener
from .requester import Requester
from .session import PendingRequest

__version__ = '0.1.2'

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
