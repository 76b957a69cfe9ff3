"""
The entry point for managing a flow.

FlowClient ties the entity store, state poller, queue drainer and connection choreographer together
over one transport, configured from Settings.
"""
import logging
import time

from flowcontrol.choreography import ConnectionChoreographer
from flowcontrol.config.settings import Settings, load_settings
from flowcontrol.convergence import StatePoller
from flowcontrol.drain import QueueDrainer
from flowcontrol.entities import Entity, Processor, Port, ControllerService, Connection, ComponentState, \
    ServiceState
from flowcontrol.locking import cross_resource_lock, CrossResourceLock
from flowcontrol.store import EntityStore
from flowcontrol.transport.base import Transport
from flowcontrol.transport.http import HttpTransport

logger = logging.getLogger(__name__)


class FlowClient:
    """
    Single entity operations go straight to the control plane, and do not take the cross resource lock.
    Connection operations stop and restart the connection's endpoints while holding the lock.
    """

    def __init__(self, transport: Transport, settings: Settings=None, lock: CrossResourceLock=cross_resource_lock,
                 clock=time.monotonic, sleep=time.sleep, log=logger):
        settings = settings or Settings()
        self.transport = transport
        self.settings = settings
        self.logger = log
        self.store = EntityStore(transport)
        self.poller = StatePoller(self.store, settings.convergence.poll_interval, settings.convergence.timeout,
                                  clock, sleep)
        self.drainer = QueueDrainer(transport, settings.drain.poll_interval, settings.drain.max_attempts, clock, sleep)
        self.choreographer = ConnectionChoreographer(self.store, self.poller, self.drainer, lock)

    @classmethod
    def connect(cls, settings: Settings=None, **kwargs):
        """
        Creates a client that talks to the control plane over HTTP.
        :param settings: the settings to use. By default these are loaded from the configuration files
            and environment.
        """
        settings = settings or load_settings()
        logger.info("connecting to %s" % settings.client)
        return cls(HttpTransport(settings.client), settings, **kwargs)

    @property
    def events(self):
        """ the EventSource for connection choreography events. """
        return self.choreographer.events

    def close(self):
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # entities

    def create(self, entity: Entity):
        return self.store.create(entity)

    def get(self, entity_class, entity_id):
        return self.store.get(entity_class, entity_id)

    def update(self, entity: Entity):
        return self.store.update(entity)

    def delete(self, entity: Entity):
        return self.store.delete(entity)

    # state transitions

    def start_processor(self, processor: Processor, timeout=None):
        return self.poller.request_transition(processor, ComponentState.RUNNING, timeout)

    def stop_processor(self, processor: Processor, timeout=None):
        return self.poller.request_transition(processor, ComponentState.STOPPED, timeout)

    def start_port(self, port: Port, timeout=None):
        return self.poller.request_transition(port, ComponentState.RUNNING, timeout)

    def stop_port(self, port: Port, timeout=None):
        return self.poller.request_transition(port, ComponentState.STOPPED, timeout)

    def disable_port(self, port: Port, timeout=None):
        return self.poller.request_transition(port, ComponentState.DISABLED, timeout)

    def enable_controller_service(self, service: ControllerService, timeout=None):
        return self.poller.request_transition(service, ServiceState.ENABLED, timeout)

    def disable_controller_service(self, service: ControllerService, timeout=None):
        return self.poller.request_transition(service, ServiceState.DISABLED, timeout)

    # connections

    def create_connection(self, connection: Connection):
        return self.choreographer.create_connection(connection)

    def update_connection(self, connection: Connection):
        return self.choreographer.update_connection(connection)

    def delete_connection(self, connection_or_id):
        return self.choreographer.delete_connection(connection_or_id)

    def drain_connection(self, connection: Connection):
        """
        Drops the data queued on a connection, without stopping its endpoints.
        :return: True if the queue was seen to be emptied.
        """
        return self.drainer.drain(connection)

    def list_connections(self, group_id):
        return self.store.list_connections(group_id)

    # tenants

    def find_user_ids(self, identity):
        return self.store.find_user_ids(identity)

    def find_user_group_ids(self, identity):
        return self.store.find_user_group_ids(identity)
