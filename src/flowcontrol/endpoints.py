"""
The ends of a connection, as something that can be stopped and started.

An EndpointHandle only names a component. endpoint_for() resolves the handle to an Endpoint for
its kind, which knows how to stop and start that kind of component.
"""
import logging
from abc import abstractmethod

from flowcontrol.convergence import StatePoller
from flowcontrol.entities import EndpointHandle, EndpointKind, ComponentState, RemotePortState, Processor, \
    InputPort, OutputPort, RemoteProcessGroup
from flowcontrol.store import EntityStore
from flowcontrol.transport.base import UnsupportedEndpointKind

logger = logging.getLogger(__name__)


class Endpoint:
    def __init__(self, handle: EndpointHandle, store: EntityStore, poller: StatePoller, log=logger):
        self.handle = handle
        self.store = store
        self.poller = poller
        self.logger = log

    @abstractmethod
    def stop(self):
        """ stops the component, returning once it is observed stopped. """
        raise NotImplementedError

    @abstractmethod
    def start(self):
        """ starts the component, returning once it is observed running. """
        raise NotImplementedError

    def __str__(self):
        return "%s %s" % (self.handle.kind, self.handle.id)


class StatefulEndpoint(Endpoint):
    """
    A component with a RUNNING/STOPPED state of its own. The component is fetched afresh each time,
    so the transition carries the current revision.
    """
    entity_class = None

    def _transition(self, state):
        entity = self.store.get(self.entity_class, self.handle.id)
        self.poller.request_transition(entity, state)
        self.logger.debug("%s is %s" % (self, state))
        return entity

    def stop(self):
        return self._transition(ComponentState.STOPPED)

    def start(self):
        return self._transition(ComponentState.RUNNING)


class ProcessorEndpoint(StatefulEndpoint):
    entity_class = Processor


class InputPortEndpoint(StatefulEndpoint):
    entity_class = InputPort


class OutputPortEndpoint(StatefulEndpoint):
    entity_class = OutputPort


class RemotePortEndpoint(Endpoint):
    """
    A port on a remote process group. Its run status is set through the remote process group that
    owns it, the handle's group, and is not polled for.
    """

    def _set_run_status(self, state):
        remote_group = self.store.get(RemoteProcessGroup, self.handle.group_id)
        self.store.set_remote_port_state(remote_group, self.handle, state)
        self.logger.debug("%s is %s" % (self, state))
        return remote_group

    def stop(self):
        return self._set_run_status(RemotePortState.STOPPED)

    def start(self):
        return self._set_run_status(RemotePortState.TRANSMITTING)


class RemoteInputPortEndpoint(RemotePortEndpoint):
    pass


class RemoteOutputPortEndpoint(RemotePortEndpoint):
    pass


class FunnelEndpoint(Endpoint):
    """ Funnels have no state, and are always ready. """

    def stop(self):
        pass

    def start(self):
        pass


endpoint_kinds = {
    EndpointKind.PROCESSOR: ProcessorEndpoint,
    EndpointKind.INPUT_PORT: InputPortEndpoint,
    EndpointKind.OUTPUT_PORT: OutputPortEndpoint,
    EndpointKind.REMOTE_INPUT_PORT: RemoteInputPortEndpoint,
    EndpointKind.REMOTE_OUTPUT_PORT: RemoteOutputPortEndpoint,
    EndpointKind.FUNNEL: FunnelEndpoint,
}


def endpoint_for(handle: EndpointHandle, store: EntityStore, poller: StatePoller) -> Endpoint:
    """
    Resolves a handle to the endpoint for its kind.
    raises UnsupportedEndpointKind when the kind is not known
    """
    endpoint_class = endpoint_kinds.get(handle.kind)
    if endpoint_class is None:
        raise UnsupportedEndpointKind(handle.kind)
    return endpoint_class(handle, store, poller)
