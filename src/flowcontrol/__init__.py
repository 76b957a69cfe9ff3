"""
Flow control for a NiFi style dataflow control plane.

- Entities: processors, ports, funnels, controller services, process groups and connections. Each
  carries a revision, the control plane's optimistic concurrency token. Every mutation must carry
  the revision last seen, and the entity takes on the new revision from the response.
- EntityStore: one call per operation - create, get, update, delete, and state-only updates.
- StatePoller: a state transition is accepted at once but applied later, so every transition
  is followed by polling until the new state is observed, or a deadline passes.
- Endpoints: either end of a connection, resolved by kind to something that can be stopped and
  started. Funnels have no state. Remote ports are switched through their remote process group.
- QueueDrainer: drops the data queued on a connection through a server side drop request,
  which is polled and then always deleted.
- ConnectionChoreographer: connections can only be changed with both ends stopped, and only deleted
  once empty. Each change stops the source then the destination, makes the change, and starts
  them again, all while holding the cross resource lock.
- FlowClient: the above, over HTTP, configured from the 'flowcontrol' configuration files.

All calls block the calling thread. To run operations concurrently, run them on separate threads;
operations touching connections are serialized by the lock.
"""
from flowcontrol.transport.base import FlowControlError, TransportError, RemoteRejected, NotFound, Conflict, \
    ConvergenceTimeout, UnsupportedEndpointKind

__all__ = ['FlowControlError', 'TransportError', 'RemoteRejected', 'NotFound', 'Conflict', 'ConvergenceTimeout',
           'UnsupportedEndpointKind']
