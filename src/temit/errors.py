"""Exceptions raised by temit.

Every class carries a default message; passing a message to the constructor
replaces it.
"""

from __future__ import annotations

from typing import Any, Optional


class TemitError(Exception):
    """Base class for all temit errors."""

    default = "temit error."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default
        super().__init__(self.message)

    @property
    def name(self) -> str:
        return type(self).__name__


class NotConnectedError(TemitError):
    default = (
        "An action was attempted before a connection to an AMQP node was attempted."
    )


class ClientClosedError(TemitError):
    default = "The client has been closed; create a new client to continue."


class ConnectionLostError(TemitError):
    default = "The connection to the AMQP node was lost unexpectedly."


class ReplyConsumerDiedError(TemitError):
    default = (
        "Reply consumer died; this is most likely due to the AMQP connection dying"
    )


class ReplyConsumerCancelledError(TemitError):
    default = (
        "Reply consumer cancelled unexpectedly; this was most probably done "
        "via RabbitMQ's Management UI."
    )


class RequesterTimeoutError(TemitError):
    default = "Request timed out."


class RequesterNoRouteError(TemitError):
    default = "Request found no endpoints to route to, so failed"


class InvalidConsumerMessageError(TemitError):
    default = "Invalid consumer message received."


class ConsumerDiedError(TemitError):
    default = (
        "Consumer died; this is most likely due to the AMQP connection dying"
    )


class ConsumerCancelledError(TemitError):
    default = (
        "Consumer cancelled unexpectedly; this was most probably done via "
        "RabbitMQ's Management UI."
    )


class HandlerRequiredError(TemitError):
    default = "At least one handler is required for a consumer."


class RemoteError(TemitError):
    """An error raised by a remote handler and carried back in a reply.

    *error* is the decoded error half of the reply, normally a mapping with
    ``name``, ``message`` and ``stack`` keys; other values are kept as-is
    and stringified for the message.
    """

    default = "Remote handler failed."

    def __init__(self, error: Any = None):
        self.error = error
        self.stack: Optional[str] = None
        self.remote_name = "Error"

        if isinstance(error, dict):
            message = error.get("message")
            self.remote_name = error.get("name") or self.remote_name
            self.stack = error.get("stack")
        elif error is None:
            message = None
        else:
            message = str(error)

        super().__init__(message)

    @property
    def name(self) -> str:
        return self.remote_name


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
