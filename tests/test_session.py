""" Exercise the reply dispatcher in isolation. The connection is a stand-in
    that claims every call is made from the connection thread, which is
    where the dispatcher's pika callbacks normally run.
"""

import pika
import pytest

from temit import errors
from temit.session import Replies


class Connection:

    def __init__(self):
        self.removed = list()

    def in_thread(self):
        return True

    def remove_timeout(self, handle):
        self.removed.append(handle)


def reply(replies, id, body):
    properties = pika.BasicProperties(correlation_id=id)
    replies.on_reply(None, None, properties, body)


def test_settles_once():

    replies = Replies(Connection())
    pending = replies.register('one')

    assert 'one' in replies
    assert pending.poll() == False

    assert pending.settle(result=1) == True
    assert pending.settle(error=errors.RequesterTimeoutError()) == False

    assert pending.poll() == True
    assert pending.wait() == 1
    assert 'one' not in replies
    assert len(replies) == 0


def test_timer_removed_on_settle():

    connection = Connection()
    replies = Replies(connection)

    pending = replies.register('one')
    pending.timer = 'handle'

    reply(replies, 'one', b'[null,"ok"]')

    assert pending.wait(0) == 'ok'
    assert pending.timer is None
    assert connection.removed == ['handle']


def test_remote_error():

    replies = Replies(Connection())
    pending = replies.register('one')

    reply(replies, 'one', b'[{"name":"ValueError","message":"boom","stack":"..."},null]')

    with pytest.raises(errors.RemoteError) as caught:
        pending.wait(0)

    assert caught.value.name == 'ValueError'
    assert caught.value.message == 'boom'


def test_unknown_reply_ignored():

    replies = Replies(Connection())
    pending = replies.register('one')

    reply(replies, 'someone-else', b'[null,1]')

    assert replies.error is None
    assert pending.poll() == False


def test_expire():

    replies = Replies(Connection())
    pending = replies.register('one')

    pending.expire()

    with pytest.raises(errors.RequesterTimeoutError):
        pending.wait(0)

    # A reply that shows up too late goes nowhere.
    reply(replies, 'one', b'[null,1]')

    with pytest.raises(errors.RequesterTimeoutError):
        pending.wait(0)

    assert replies.error is None


def test_wait_timeout_leaves_request_pending():

    replies = Replies(Connection())
    pending = replies.register('one')

    with pytest.raises(TimeoutError):
        pending.wait(0.01)

    assert pending.settled == False
    assert 'one' in replies


def test_return():

    replies = Replies(Connection())
    pending = replies.register('one')

    properties = pika.BasicProperties(message_id='one', correlation_id='one')
    replies.on_return(None, None, properties, b'[1]')

    with pytest.raises(errors.RequesterNoRouteError):
        pending.wait(0)


def test_invalid_reply_is_fatal():

    replies = Replies(Connection())
    first = replies.register('one')
    second = replies.register('two')

    reply(replies, None, b'[null,1]')

    for pending in (first, second):
        with pytest.raises(errors.InvalidConsumerMessageError):
            pending.wait(0)

    with pytest.raises(errors.InvalidConsumerMessageError):
        replies.register('three')


def test_undecodable_reply_is_fatal():

    replies = Replies(Connection())
    pending = replies.register('one')

    reply(replies, 'one', b'{"not": "a reply"}')

    with pytest.raises(errors.InvalidConsumerMessageError):
        pending.wait(0)


def test_cancel():

    replies = Replies(Connection())
    pending = replies.register('one')

    replies.on_cancel(None)

    with pytest.raises(errors.ReplyConsumerCancelledError):
        pending.wait(0)


def test_closed():

    replies = Replies(Connection())
    pending = replies.register('one')

    replies.fail(errors.ClientClosedError(), expected=True)

    with pytest.raises(errors.ClientClosedError):
        pending.wait(0)

    with pytest.raises(errors.ClientClosedError):
        replies.register('two')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
