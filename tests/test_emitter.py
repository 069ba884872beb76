import datetime
import queue
import time

import pytest

from temit import config
from temit.emitter import bucket, timing
from temit.errors import ClientClosedError
from temit.protocol import message


def utc_now():
    return datetime.datetime.now(datetime.timezone.utc)


def collector():

    received = queue.Queue()

    def handler(envelope, argument):
        received.put((time.time(), argument))

    return handler, received


def test_immediate_bucket():

    assert bucket('ex', 'jobs.run', 10000) is None
    assert bucket('ex', 'jobs.run', 10000, delay=0) is None


def test_delay_bucket():

    target = bucket('ex', 'jobs.run', 10500, delay=1000)

    assert target.queue == 'd:ex:jobs.run:1000@10000'
    assert target.expiration is None
    assert target.arguments == {
        'x-dead-letter-exchange': 'ex',
        'x-dead-letter-routing-key': 'jobs.run',
        'x-expires': 1000 + config.bucket_grace,
        'x-message-ttl': 1000,
    }


def test_delay_windows():

    first = bucket('ex', 'jobs.run', 10000, delay=1000)
    last = bucket('ex', 'jobs.run', 10999, delay=1000)
    following = bucket('ex', 'jobs.run', 11000, delay=1000)

    # Emissions sent within the same window share a bucket.
    assert first == last
    assert first.queue != following.queue

    # Different delays never share, even if their windows line up.
    other = bucket('ex', 'jobs.run', 10000, delay=2000)
    assert other.queue != first.queue


def test_schedule_bucket():

    target = bucket('ex', 'jobs.run', 1000, schedule=5000)

    assert target.queue == 'd:ex:jobs.run:5000'
    assert target.expiration == 4000
    assert target.arguments == {
        'x-dead-letter-exchange': 'ex',
        'x-dead-letter-routing-key': 'jobs.run',
        'x-expires': 4000 + config.bucket_grace,
    }

    # Everything scheduled for the same instant shares the bucket.
    assert bucket('ex', 'jobs.run', 2000, schedule=5000).queue == target.queue


def test_past_schedule():

    assert bucket('ex', 'jobs.run', 5000, schedule=5000) is None
    assert bucket('ex', 'jobs.run', 6000, schedule=5000) is None


def test_timing():

    assert timing(None) == (None, None)
    assert timing('2s') == (2000, None)
    assert timing(datetime.timedelta(minutes=1)) == (60000, None)

    when = datetime.datetime(2030, 1, 1, tzinfo=datetime.timezone.utc)
    assert timing(when) == (None, int(when.timestamp() * 1000))

    with pytest.raises(ValueError):
        timing(-5)

    with pytest.raises(ValueError):
        timing('eventually')


def test_immediate(broker, client, exchange):

    handler, received = collector()
    client.create_listener('jobs.run', 'workers', handler)

    client.create_emitter('jobs.run').send({'job': 1})

    assert received.get(timeout=2)[1] == {'job': 1}
    assert broker.buckets(exchange, 'jobs.run') == []

    published = broker.published[-1]
    assert published.exchange == exchange
    assert published.properties.delivery_mode == 2


def test_delay(broker, client, exchange):

    handler, received = collector()
    client.create_listener('jobs.run', 'workers', handler)

    emitter = client.create_emitter('jobs.run', delay='100ms')

    begin = time.time()
    emitter.send('later')

    arrived, argument = received.get(timeout=2)

    assert argument == 'later'
    assert arrived - begin >= 0.09

    buckets = broker.buckets(exchange, 'jobs.run')
    assert len(buckets) == 1

    declared = broker.queue(buckets[0])
    assert declared.arguments['x-message-ttl'] == 100
    assert declared.durable == True
    assert declared.bindings == set()
    assert declared.consumers == []

    assert len(broker.dead_lettered) == 1


def test_delay_bucket_reuse(broker, client, exchange):

    emitter = client.create_emitter('jobs.run', delay='1h')

    emitter.send(1)
    emitter.send(2)

    buckets = broker.buckets(exchange, 'jobs.run')
    assert len(buckets) == 1
    assert len(broker.queue(buckets[0]).ready) == 2

    # A different delay needs a different bucket.
    emitter.send(3, delay='2h')
    assert len(broker.buckets(exchange, 'jobs.run')) == 2


def test_delay_bucket_windows(broker, client, exchange, monkeypatch):

    clock = [1700000000500]
    monkeypatch.setattr(message, 'timestamp', lambda: clock[0])

    emitter = client.create_emitter('jobs.run', delay='1s')

    emitter.send(1)
    clock[0] += 300
    emitter.send(2)

    assert broker.buckets(exchange, 'jobs.run') == [
        'd:%s:jobs.run:1000@1700000000000' % (exchange),
    ]

    clock[0] += 2000
    emitter.send(3)

    assert len(broker.buckets(exchange, 'jobs.run')) == 2


def test_schedule(broker, client, exchange):

    handler, received = collector()
    client.create_listener('jobs.run', 'workers', handler)

    emitter = client.create_emitter('jobs.run')

    begin = time.time()
    emitter.send('on time', delay=utc_now() + datetime.timedelta(milliseconds=150))

    arrived, argument = received.get(timeout=2)

    assert argument == 'on time'
    assert arrived - begin >= 0.13


def test_schedule_bucket_reuse(broker, client, exchange):

    when = utc_now() + datetime.timedelta(hours=1)
    emitter = client.create_emitter('jobs.run', delay=when)

    emitter.send(1)
    emitter.send(2)

    buckets = broker.buckets(exchange, 'jobs.run')
    assert buckets == ['d:%s:jobs.run:%d' % (exchange, int(when.timestamp() * 1000))]

    bucketed = broker.queue(buckets[0]).ready
    assert len(bucketed) == 2

    # Each message expires on its own, at the scheduled instant.
    for queued in bucketed:
        assert 0 < int(queued.properties.expiration) <= 3600000


def test_past_schedule_sent_now(broker, client, exchange):

    handler, received = collector()
    client.create_listener('jobs.run', 'workers', handler)

    emitter = client.create_emitter('jobs.run')
    emitter.send('overdue', delay=utc_now() - datetime.timedelta(seconds=1))

    assert received.get(timeout=2)[1] == 'overdue'
    assert broker.buckets(exchange, 'jobs.run') == []


def test_priority(broker, client):

    emitter = client.create_emitter('jobs.run', priority=4)
    emitter.send(1)
    emitter.send(2, priority=9)

    priorities = [published.properties.priority for published in broker.published]
    assert priorities == [4, 9]

    with pytest.raises(ValueError):
        emitter.send(3, priority=20)


def test_closed(client):

    emitter = client.create_emitter('jobs.run')
    client.close()

    with pytest.raises(ClientClosedError):
        emitter.send(1)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
