""" Normalize consumer handlers. Whatever a handler does, the consumer sees
    an ``(error, result)`` pair: a raised exception lands in the error slot,
    serialized for the wire, and anything returned (None included) is the
    result. A handler that is not callable is static data and is returned
    as-is for every message.
"""

from .errors import HandlerRequiredError
from .protocol.message import serialize_error


def wrap(handler):
    """ Return a function taking ``(envelope, argument)`` and returning an
        ``(error, result)`` pair on behalf of *handler*.
    """

    if handler is None:
        raise HandlerRequiredError()

    if not callable(handler):
        def static(envelope, argument):
            return None, handler

        return static

    def wrapped(envelope, argument):
        try:
            result = handler(envelope, argument)
        except Exception as e:
            return serialize_error(e), None

        return None, result

    wrapped.__wrapped__ = handler
    return wrapped


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
