"""Transport layer: the broker connection and its channels."""

from .base import REPLY_TO, MAX_PRIORITY
from .connection import Connection
from .pool import ChannelPool


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
