"""
An in-memory control plane, for tests and dry runs.

The simulation behaves like the real control plane in the ways the choreography depends upon:
- every mutation must carry the current revision, or it is rejected with 409, and bumps the revision
- state transitions are accepted immediately but only applied after a number of reads
- requesting the state an entity is already in is rejected with 409
- a connection cannot be changed or deleted while either endpoint is running, nor deleted
  while data is queued
- drop requests finish after a number of polls, emptying the queue, and stay until deleted

All calls are recorded in `calls` as (method, path, body) tuples.
"""
import copy
import itertools
import logging
import threading
from urllib.parse import parse_qsl

from flowcontrol.entities import Entity, EndpointKind, ComponentState, ServiceState, RemotePortState
from flowcontrol.transport.base import Transport, Response

logger = logging.getLogger(__name__)

# the resource type that holds each kind of stateful endpoint
endpoint_resource_types = {
    EndpointKind.PROCESSOR: 'processors',
    EndpointKind.INPUT_PORT: 'input-ports',
    EndpointKind.OUTPUT_PORT: 'output-ports',
}

initial_states = {
    'processors': ComponentState.STOPPED,
    'input-ports': ComponentState.STOPPED,
    'output-ports': ComponentState.STOPPED,
    'controller-services': ServiceState.DISABLED,
}


class SimulatedControlPlane(Transport):
    """
    :param transition_reads: the number of reads of an entity, after a state transition is requested,
        that still show the old state. 0 applies transitions immediately.
    :param drop_polls: the number of polls of a drop request before it reports finished.
    """

    def __init__(self, transition_reads=0, drop_polls=0, log=logger):
        self.transition_reads = transition_reads
        self.drop_polls = drop_polls
        self.logger = log
        self.components = {}        # resource type -> {id: entity json}
        self.pending = {}           # entity id -> [desired state, reads remaining]
        self.queued = {}            # connection id -> number of queued flow files
        self.drop_requests = {}     # request id -> [connection id, polls remaining, finished]
        self.remote_ports = {}      # (remote process group id, port id) -> run status
        self.calls = []
        self._failures = {}         # (method, path) -> [Response or exception, ...]
        self._ids = itertools.count(1)
        self._guard = threading.RLock()

    # --- setup and inspection

    def add(self, entity: Entity, state=None):
        """
        Adds an entity directly, bypassing the API. The entity is assigned an id if it has none.
        :return: the entity, updated with the simulated representation
        """
        with self._guard:
            body = entity.to_json()
            component = body['component']
            if not component.get('id'):
                component['id'] = self._new_id(entity.resource_type)
            if state or entity.resource_type in initial_states:
                component['state'] = state or component.get('state') or initial_states[entity.resource_type]
            stored = {'id': component['id'], 'revision': {'version': 1}, 'component': component}
            self.components.setdefault(entity.resource_type, {})[component['id']] = stored
            return entity.assign(copy.deepcopy(stored))

    def state_of(self, resource_type, entity_id):
        return self._find(resource_type, entity_id)['component'].get('state')

    def version_of(self, resource_type, entity_id):
        return self._find(resource_type, entity_id)['revision']['version']

    def exists(self, resource_type, entity_id):
        return entity_id in self.components.get(resource_type, {})

    def queue(self, connection_id, count):
        """ sets the number of flow files queued on a connection. """
        self.queued[connection_id] = count

    def fail_next(self, method, path, status=500, body='simulated failure', error=None):
        """
        Makes the next call with the given method and path (without query) fail, either
        with a status or by raising the given error.
        """
        with self._guard:
            self._failures.setdefault((method, path), []).append(error or Response(status, body))

    def calls_to(self, method=None):
        return [c for c in self.calls if method is None or c[0] == method]

    # --- Transport

    def invoke(self, method, path, body=None) -> Response:
        with self._guard:
            self.calls.append((method, path, copy.deepcopy(body)))
            route, _, query = path.partition('?')
            failure = self._next_failure(method, route)
            if isinstance(failure, Exception):
                raise failure
            if failure is not None:
                return failure
            response = self._dispatch(method, route.split('/'), self._parse_query(query), body)
            self.logger.debug("%s %s -> %d" % (method, path, response.status))
            return Response(response.status, copy.deepcopy(response.body))

    def _next_failure(self, method, route):
        failures = self._failures.get((method, route))
        return failures.pop(0) if failures else None

    @staticmethod
    def _parse_query(query):
        return dict(parse_qsl(query))

    def _dispatch(self, method, segments, query, body):
        if segments[0] == 'flowfile-queues' and len(segments) >= 3:
            return self._drop_request(method, segments[1], segments[3] if len(segments) > 3 else None)
        if segments[0] == 'process-groups' and len(segments) == 3:
            if method == 'POST':
                return self._create(segments[2], body, segments[1])
            if method == 'GET' and segments[2] == 'connections':
                return self._list_connections(segments[1])
        if segments[0] == 'remote-process-groups' and len(segments) == 5 and method == 'PUT':
            return self._remote_run_status(segments[1], segments[3], body)
        if segments[0] == 'tenants' and len(segments) >= 2:
            if segments[1] == 'search-results' and method == 'GET':
                return self._search_tenants(query.get('q', ''))
            return self._dispatch_entity(method, '/'.join(segments[:2]), segments[2:], query, body)
        if segments == ['controller', 'reporting-tasks'] and method == 'POST':
            return self._create('reporting-tasks', body)
        if len(segments) == 2:
            return self._dispatch_entity(method, segments[0], segments[1:], query, body)
        return Response(400, 'unsupported call %s %s' % (method, '/'.join(segments)))

    def _dispatch_entity(self, method, resource_type, rest, query, body):
        if not rest and method == 'POST':
            return self._create(resource_type, body)
        if len(rest) == 1:
            entity_id = rest[0]
            if method == 'GET':
                return self._get(resource_type, entity_id)
            if method == 'PUT':
                return self._put(resource_type, entity_id, body)
            if method == 'DELETE':
                return self._delete(resource_type, entity_id, int(query.get('version', -1)))
        return Response(400, 'unsupported call %s %s' % (method, resource_type))

    # --- entities

    def _new_id(self, resource_type):
        return "%s-%d" % (resource_type.split('/')[-1], next(self._ids))

    def _find(self, resource_type, entity_id):
        return self.components.get(resource_type, {}).get(entity_id)

    def _create(self, resource_type, body, parent_group_id=None):
        component = dict(body.get('component') or {})
        identity = component.get('identity')
        if identity and any(t['component'].get('identity') == identity
                            for t in self.components.get(resource_type, {}).values()):
            return Response(409, '%s already exists' % identity)
        component['id'] = self._new_id(resource_type)
        if parent_group_id:
            component['parentGroupId'] = parent_group_id
        if resource_type in initial_states:
            component.setdefault('state', initial_states[resource_type])
        stored = {'id': component['id'], 'revision': {'version': 1}, 'component': component}
        self.components.setdefault(resource_type, {})[component['id']] = stored
        return Response(201, stored)

    def _get(self, resource_type, entity_id):
        stored = self._find(resource_type, entity_id)
        if stored is None:
            return Response(404, 'Unable to find component with id %s' % entity_id)
        self._advance_transition(stored)
        return Response(200, stored)

    def _advance_transition(self, stored):
        pending = self.pending.get(stored['id'])
        if pending is None:
            return
        if pending[1] > 0:
            pending[1] -= 1
            return
        stored['component']['state'] = pending[0]
        del self.pending[stored['id']]

    def _stale(self, stored, version):
        return stored['revision']['version'] != version

    def _bump(self, stored):
        stored['revision']['version'] += 1

    def _put(self, resource_type, entity_id, body):
        stored = self._find(resource_type, entity_id)
        if stored is None:
            return Response(404, 'Unable to find component with id %s' % entity_id)
        if self._stale(stored, (body.get('revision') or {}).get('version')):
            return Response(409, '%s is not the most up-to-date revision' % (body.get('revision') or {}))
        component = body.get('component') or {}
        if set(component) == {'id', 'state'}:
            return self._transition(stored, component['state'])
        if resource_type == 'connections':
            running = self._running_endpoint(stored['component'])
            if running:
                return Response(409, 'Cannot update connection because %s is currently running' % running)
        stored['component'].update(component)
        stored['component']['id'] = entity_id
        self._bump(stored)
        return Response(200, stored)

    def _transition(self, stored, state):
        pending = self.pending.get(stored['id'])
        if pending is None and stored['component'].get('state') == state:
            return Response(409, '%s is already %s' % (stored['id'], state))
        if self.transition_reads:
            self.pending[stored['id']] = [state, self.transition_reads]
        else:
            self.pending.pop(stored['id'], None)
            stored['component']['state'] = state
        self._bump(stored)
        return Response(200, stored)

    def _delete(self, resource_type, entity_id, version):
        stored = self._find(resource_type, entity_id)
        if stored is None:
            return Response(404, 'Unable to find component with id %s' % entity_id)
        if self._stale(stored, version):
            return Response(409, '%d is not the most up-to-date revision' % version)
        if resource_type == 'connections':
            running = self._running_endpoint(stored['component'])
            if running:
                return Response(409, 'Cannot delete connection because %s is currently running' % running)
            if self.queued.get(entity_id):
                return Response(409, 'Cannot delete connection because its queue is not empty')
        del self.components[resource_type][entity_id]
        self.pending.pop(entity_id, None)
        return Response(200, stored)

    def _running_endpoint(self, component):
        for end in (component.get('source'), component.get('destination')):
            if not end:
                continue
            kind = end.get('type')
            if kind in endpoint_resource_types:
                stored = self._find(endpoint_resource_types[kind], end.get('id'))
                if stored is not None and stored['component'].get('state') == ComponentState.RUNNING:
                    return end.get('id')
            elif kind in (EndpointKind.REMOTE_INPUT_PORT, EndpointKind.REMOTE_OUTPUT_PORT):
                if self.remote_ports.get((end.get('groupId'), end.get('id'))) == RemotePortState.TRANSMITTING:
                    return end.get('id')
        return None

    def _search_tenants(self, identity):
        def matching(resource_type):
            return [{'id': t['id'], 'component': t['component']}
                    for t in self.components.get(resource_type, {}).values()
                    if identity.lower() in (t['component'].get('identity') or '').lower()]
        return Response(200, {'users': matching('tenants/users'), 'userGroups': matching('tenants/user-groups')})

    def _list_connections(self, group_id):
        connections = [c for c in self.components.get('connections', {}).values()
                       if c['component'].get('parentGroupId') == group_id]
        return Response(200, {'connections': connections})

    def _remote_run_status(self, group_id, port_id, body):
        stored = self._find('remote-process-groups', group_id)
        if stored is None:
            return Response(404, 'Unable to find remote process group with id %s' % group_id)
        if self._stale(stored, (body.get('revision') or {}).get('version')):
            return Response(409, 'not the most up-to-date revision')
        self.remote_ports[(group_id, port_id)] = body.get('state')
        self._bump(stored)
        return Response(200, {'revision': stored['revision'],
                              'remoteProcessGroupPort': {'id': port_id,
                                                         'transmitting': body.get('state') ==
                                                         RemotePortState.TRANSMITTING}})

    # --- drop requests

    def _drop_request(self, method, connection_id, request_id):
        if request_id is None:
            if method != 'POST':
                return Response(400, 'unsupported call')
            if not self.exists('connections', connection_id):
                return Response(404, 'Unable to find connection with id %s' % connection_id)
            request_id = self._new_id('drop-request')
            self.drop_requests[request_id] = [connection_id, self.drop_polls, False]
            self._advance_drop(request_id, 0)
            return Response(202, self._drop_json(request_id))
        if request_id not in self.drop_requests:
            return Response(404, 'Unable to find drop request with id %s' % request_id)
        if method == 'GET':
            self._advance_drop(request_id, 1)
            return Response(200, self._drop_json(request_id))
        if method == 'DELETE':
            body = self._drop_json(request_id)
            del self.drop_requests[request_id]
            return Response(200, body)
        return Response(400, 'unsupported call')

    def _advance_drop(self, request_id, polls):
        request = self.drop_requests[request_id]
        request[1] -= polls
        if request[1] <= 0 and not request[2]:
            request[2] = True
            self.queued[request[0]] = 0

    def _drop_json(self, request_id):
        connection_id, _, finished = self.drop_requests[request_id]
        return {'dropRequest': {'id': request_id, 'finished': finished,
                                'percentCompleted': 100 if finished else 0,
                                'state': 'Completed successfully' if finished else 'Dropping FlowFiles'}}
