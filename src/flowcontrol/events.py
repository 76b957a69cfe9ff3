"""
Events fired as a connection choreography progresses.

Handlers are registered on ConnectionChoreographer.events, and are called on the thread running the
choreography, while the cross resource lock is held. Each event can be dispatched to a
ChoreographyEventVisitor through apply().
"""
from abc import abstractmethod

from flowcontrol.entities import Connection, EndpointHandle
from flowcontrol.support.mixins import StringerMixin


class ChoreographyEvent(StringerMixin):
    """
    The base class for choreography events.
    :param connection: the connection being acted on, as last fetched.
    """
    def __init__(self, connection: Connection):
        self.connection = connection

    @abstractmethod
    def apply(self, visitor: 'ChoreographyEventVisitor'):
        raise NotImplementedError()


class EndpointEvent(ChoreographyEvent):
    def __init__(self, connection: Connection, handle: EndpointHandle):
        super().__init__(connection)
        self.handle = handle


class EndpointStoppedEvent(EndpointEvent):
    def apply(self, visitor):
        return visitor.endpoint_stopped(self)


class EndpointStartedEvent(EndpointEvent):
    def apply(self, visitor):
        return visitor.endpoint_started(self)


class EndpointRestartFailedEvent(EndpointEvent):
    """
    An endpoint could not be started again after the connection changed. The change itself
    is not undone.
    """
    def __init__(self, connection, handle, error):
        super().__init__(connection, handle)
        self.error = error

    def apply(self, visitor):
        return visitor.endpoint_restart_failed(self)


class ConnectionCreatedEvent(ChoreographyEvent):
    def apply(self, visitor):
        return visitor.connection_created(self)


class ConnectionUpdatedEvent(ChoreographyEvent):
    def apply(self, visitor):
        return visitor.connection_updated(self)


class ConnectionDeletedEvent(ChoreographyEvent):
    def apply(self, visitor):
        return visitor.connection_deleted(self)


class QueueDrainedEvent(ChoreographyEvent):
    """
    :param finished: whether the drop request was seen to finish.
    """
    def __init__(self, connection, finished):
        super().__init__(connection)
        self.finished = finished

    def apply(self, visitor):
        return visitor.queue_drained(self)


class ChoreographyEventVisitor:
    """
    A visitor to handle the various types of events.
    """

    def endpoint_stopped(self, event: EndpointStoppedEvent):
        """
        notifies that an endpoint was observed stopped.
        """

    def endpoint_started(self, event: EndpointStartedEvent):
        """
        notifies that an endpoint was started again.
        """

    def endpoint_restart_failed(self, event: EndpointRestartFailedEvent):
        """
        notifies that an endpoint could not be started again.
        """

    def connection_created(self, event: ConnectionCreatedEvent):
        pass

    def connection_updated(self, event: ConnectionUpdatedEvent):
        pass

    def connection_deleted(self, event: ConnectionDeletedEvent):
        pass

    def queue_drained(self, event: QueueDrainedEvent):
        """
        notifies that the connection's queue was drained, or that the attempt gave up.
        """
