"""
Changes connections safely while their endpoints are live.

The control plane refuses to change or delete a connection while either end is running. Each change is
therefore a sequence: stop the source, stop the destination, make the change, then start the source
and the destination again. Source always comes before destination.

Each sequence holds the cross resource lock from start to finish, so that two sequences sharing
an endpoint cannot interleave. Events are fired after the lock is released, so a handler may
start another sequence.
"""
import logging
from contextlib import contextmanager

from flowcontrol.convergence import StatePoller
from flowcontrol.drain import QueueDrainer
from flowcontrol.endpoints import endpoint_for
from flowcontrol.entities import Connection
from flowcontrol.events import EndpointStoppedEvent, EndpointStartedEvent, EndpointRestartFailedEvent, \
    ConnectionCreatedEvent, ConnectionUpdatedEvent, ConnectionDeletedEvent, QueueDrainedEvent
from flowcontrol.locking import cross_resource_lock, CrossResourceLock
from flowcontrol.store import EntityStore
from flowcontrol.support.events import EventSource
from flowcontrol.transport.base import NotFound, FlowControlError, UnsupportedEndpointKind

logger = logging.getLogger(__name__)


class ConnectionChoreographer:
    """
    Creates, updates and deletes connections, stopping and restarting their endpoints around each change.

    Restarting is best effort: once both endpoints have been stopped they are always started again,
    whether or not the change succeeded, and a failure to start one is logged and reported through
    an EndpointRestartFailedEvent rather than raised. The endpoints are started even if they were stopped
    before the change.
    """

    def __init__(self, store: EntityStore, poller: StatePoller, drainer: QueueDrainer,
                 lock: CrossResourceLock=cross_resource_lock, endpoint_factory=endpoint_for, log=logger):
        """
        :param endpoint_factory: resolves an EndpointHandle to an Endpoint, given the handle,
            store and poller.
        """
        self.store = store
        self.poller = poller
        self.drainer = drainer
        self.lock = lock
        self.endpoint_factory = endpoint_factory
        self.logger = log
        self.events = EventSource()

    def create_connection(self, connection: Connection):
        """
        Creates the connection, then starts its source and destination.
        :return: the connection, as created
        """
        with self._sequence("create connection") as fire:
            self.store.create(connection)
            self.logger.info("created connection %s" % connection.id)
            fire(ConnectionCreatedEvent(connection))
            try:
                endpoints = self._endpoints(connection)
            except UnsupportedEndpointKind as e:
                self.logger.warning("not starting the endpoints of connection %s: %s" % (connection.id, e))
                return connection
            self._start(connection, endpoints, fire)
            return connection

    def update_connection(self, desired: Connection):
        """
        Changes a connection to match the desired one.
        The connection is fetched afresh rather than trusting the revision or endpoints of the
        one given. The endpoints are stopped, the fields of the desired connection applied and sent,
        and the endpoints started again.
        :param desired: the connection with the fields wanted. Only the id is used to identify it.
        :return: the updated connection. The desired connection is updated to match.
        raises NotFound when the connection no longer exists
        raises if either endpoint could not be stopped. The connection is then not changed.
        """
        with self._sequence("update connection %s" % desired.id) as fire:
            self.logger.info("updating connection %s" % desired.id)
            connection = self.store.get(Connection, desired.id)
            endpoints = self._endpoints(connection)
            self._stop(connection, endpoints, fire)
            try:
                connection.apply_fields(desired)
                self.store.update(connection)
            finally:
                self._start(connection, endpoints, fire)
            self.logger.info("updated connection %s to revision %d" % (connection.id, connection.version))
            fire(ConnectionUpdatedEvent(connection))
            desired.assign(connection.to_json())
            return connection

    def delete_connection(self, connection_or_id):
        """
        Deletes a connection, dropping any queued data first.
        The connection is fetched again after its queue has been drained, so the delete carries
        the revision current at that point.
        :param connection_or_id: the connection, or its id.
        :return: the deleted connection, or None when it no longer existed.
        raises if either endpoint could not be stopped. The connection is then not deleted.
        """
        connection_id = getattr(connection_or_id, 'id', connection_or_id)
        with self._sequence("delete connection %s" % connection_id) as fire:
            self.logger.info("deleting connection %s" % connection_id)
            try:
                connection = self.store.get(Connection, connection_id)
            except NotFound:
                self.logger.info("connection %s has already been deleted" % connection_id)
                return None
            endpoints = self._endpoints(connection)
            self._stop(connection, endpoints, fire)
            try:
                finished = self.drainer.drain(connection)
                fire(QueueDrainedEvent(connection, finished))
                self.store.refresh(connection)
                self.store.delete(connection)
            finally:
                self._start(connection, endpoints, fire)
            self.logger.info("deleted connection %s" % connection_id)
            fire(ConnectionDeletedEvent(connection))
            return connection

    @contextmanager
    def _sequence(self, operation):
        """
        Holds the lock for the sequence. Events raised during the sequence are queued, and fired
        in order once the lock has been released, whether or not the sequence succeeded.
        """
        fired = []
        try:
            with self.lock.held(operation):
                yield fired.append
        finally:
            self.events.fire_all(fired)

    def _endpoints(self, connection):
        """ resolves both ends, source first, before any is acted on. """
        return [(handle, self.endpoint_factory(handle, self.store, self.poller))
                for handle in (connection.source, connection.destination)]

    def _stop(self, connection, endpoints, fire):
        for handle, endpoint in endpoints:
            self.logger.debug("stopping %s of connection %s" % (endpoint, connection.id))
            endpoint.stop()
            fire(EndpointStoppedEvent(connection, handle))

    def _start(self, connection, endpoints, fire):
        for handle, endpoint in endpoints:
            try:
                endpoint.start()
            except FlowControlError as e:
                self.logger.warning("unable to start %s of connection %s: %s" % (endpoint, connection.id, e))
                fire(EndpointRestartFailedEvent(connection, handle, e))
            except Exception as e:
                self.logger.exception("unexpected error starting %s of connection %s" % (endpoint, connection.id))
                fire(EndpointRestartFailedEvent(connection, handle, e))
            else:
                fire(EndpointStartedEvent(connection, handle))
