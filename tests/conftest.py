import pika
import pytest

import fakebroker
import temit


@pytest.fixture
def broker(monkeypatch):
    """ Replace the network with an in-memory broker for the duration of a
        test. Every temit connection opened during the test talks to it.
    """

    broker = fakebroker.Broker()
    monkeypatch.setattr(pika, 'BlockingConnection', broker.connect)

    yield broker

    broker.shutdown()


@pytest.fixture
def exchange():
    return 'temit-test'


@pytest.fixture
def make_client(broker, exchange):
    """ Factory for clients connected to the in-memory broker. Every client
        made this way is closed when the test finishes.
    """

    clients = list()

    def make(name='test', **kwargs):
        client = temit.Client(name, url='amqp://localhost', exchange=exchange, **kwargs)
        clients.append(client)
        return client

    yield make

    for client in clients:
        client.close()


@pytest.fixture
def client(make_client):
    return make_client('test')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
