""" Lifecycle shared by every temit component. A component starts out not
    bootstrapped; :func:`Component.open` runs its bootstrap exactly once no
    matter how many threads call it at the same time, and every caller
    shares the outcome. A failed bootstrap puts the component back where it
    started so that :func:`Component.open` can be tried again.
"""

import concurrent.futures
import enum
import threading

from loguru import logger

from .errors import ClientClosedError


class State(enum.Enum):
    CREATED = 'created'
    BOOTSTRAPPING = 'bootstrapping'
    BOOTSTRAPPED = 'bootstrapped'
    FAILED = 'failed'
    CLOSED = 'closed'



class Component:
    """ Base class for requesters, endpoints, emitters and listeners. The
        *client* is the :class:`temit.Client` providing the connection,
        channel pool and reply dispatcher; *event* is the routing key this
        component sends to or receives from.

        :ivar state: Where this component is in its lifecycle.
        :ivar error: The fatal error that stopped this component, if any.
        :ivar channel: The component's own long-lived channel, if it has one.
    """

    kind = 'component'

    def __init__(self, client, event):

        if not event:
            raise ValueError('an event name is required')

        self.client = client
        self.event = event
        self.state = State.CREATED
        self.error = None
        self.channel = None

        self._bootstrapped = None
        self._lock = threading.Lock()


    def __repr__(self):
        return '<%s %r %s>' % (type(self).__name__, self.event, self.state.value)


    @property
    def ready(self):
        return self.state is State.BOOTSTRAPPED


    def open(self, timeout=None):
        """ Bootstrap this component if that has not already happened, and
            return it once it is ready. Setup errors are raised here, and
            leave the component ready for another attempt.
        """

        with self._lock:
            self._check()

            future = self._bootstrapped
            owner = future is None

            if owner:
                future = concurrent.futures.Future()
                self._bootstrapped = future
                self.state = State.BOOTSTRAPPING

        if not owner:
            future.result(timeout)
            self._check()
            return self

        try:
            self._bootstrap()
        except Exception as e:
            with self._lock:
                self._bootstrapped = None
                if self.state is State.BOOTSTRAPPING:
                    self.state = State.CREATED

            logger.debug(f"Bootstrapping {self!r} failed: {e!r}")
            future.set_exception(e)
            raise

        with self._lock:
            closed = self.state is State.CLOSED
            if self.state is State.BOOTSTRAPPING:
                self.state = State.BOOTSTRAPPED

        # Closed while bootstrapping; the close found no channel to release.
        if closed and self.channel is not None and self.client.connection.is_open:
            self.client.connection.call(self._teardown, self.channel)

        logger.debug(f"Bootstrapped {self!r}")
        future.set_result(self)
        self._check()
        return self


    def close(self):
        """ Stop this component. It refuses any further work; create a new
            one to carry on.
        """

        with self._lock:
            if self.state is State.CLOSED:
                return
            self.state = State.CLOSED
            channel = self.channel

        if channel is not None and self.client.connection.is_open:
            self.client.connection.call(self._teardown, channel)

        logger.debug(f"Closed {self!r}")


    def fail(self, error):
        """ Record a fatal *error*. Nothing owned by this component can be
            trusted after this point, so every later operation raises it.
        """

        with self._lock:
            if self.state is State.CLOSED or self.error is not None:
                return
            self.error = error
            self.state = State.FAILED

        if not self.client.closing:
            logger.error(f"{self!r} failed: {error}")


    def _bootstrap(self):
        """ Subclasses put their broker setup here.
        """

        self.client.connect()


    def _teardown(self, channel):
        """ Release the component's own channel. Runs on the connection
            thread.
        """

        pass


    def _check(self):

        if self.client.closing:
            raise ClientClosedError()

        if self.error is not None:
            raise self.error

        if self.state is State.CLOSED:
            raise ClientClosedError('this %s has been closed' % (self.kind))


# end of class Component


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
