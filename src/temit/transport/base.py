"""AMQP wire contract.

Queue names, property layouts and queue arguments that every temit service
on an exchange has to agree on live here, so the components never spell
them out themselves.
"""

from __future__ import annotations

from typing import Optional

import pika


# The broker's built-in direct reply-to pseudo-queue.
REPLY_TO = "amq.rabbitmq.reply-to"

MAX_PRIORITY = 10
PERSISTENT = 2

# AMQP reply code for a redeclaration with inequivalent arguments.
PRECONDITION_FAILED = 406


def listener_queue(event: str, name: str, group: str) -> str:
    return f"{event}:l:{name}:{group}"


def bucket_queue(exchange: str, event: str, key: str) -> str:
    return f"d:{exchange}:{event}:{key}"


def request_properties(
    message_id: str,
    app_id: str,
    timestamp: int,
    priority: Optional[int] = None,
    expiration: Optional[int] = None,
) -> pika.BasicProperties:
    """Properties for a request expecting a reply on the direct reply-to
    pseudo-queue."""

    properties = pika.BasicProperties(
        message_id=message_id,
        app_id=app_id,
        timestamp=timestamp,
        correlation_id=message_id,
        reply_to=REPLY_TO,
    )

    if priority:
        properties.priority = priority
    if expiration:
        properties.expiration = str(expiration)

    return properties


def emission_properties(
    message_id: str,
    app_id: str,
    timestamp: int,
    priority: Optional[int] = None,
) -> pika.BasicProperties:
    """Properties for a fire-and-forget, persistent emission."""

    properties = pika.BasicProperties(
        message_id=message_id,
        app_id=app_id,
        timestamp=timestamp,
        delivery_mode=PERSISTENT,
    )

    if priority:
        properties.priority = priority

    return properties


def reply_properties(
    request: pika.BasicProperties, app_id: str, timestamp: int
) -> pika.BasicProperties:
    """Properties for a reply to *request*; the correlation id is carried
    over so the requester can match it up."""

    return pika.BasicProperties(
        message_id=request.message_id,
        correlation_id=request.correlation_id or request.message_id,
        app_id=app_id,
        timestamp=timestamp,
    )


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
