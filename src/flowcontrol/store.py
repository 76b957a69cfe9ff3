import logging
from urllib.parse import quote

from flowcontrol.entities import Entity, Connection, RemoteProcessGroup, EndpointHandle, EndpointKind, Revision
from flowcontrol.transport.base import Transport, check_response

logger = logging.getLogger(__name__)


class EntityStore:
    """
    Reads and writes entities on the control plane.

    Each method performs exactly one call. On success, the entity passed in is overwritten with the
    representation returned by the control plane, so the caller always holds the latest revision.
    Rejections are raised as NotFound (404), Conflict (409) or RemoteRejected (any other status),
    and are never retried here - retrying a mutation with a refreshed revision could apply a
    change the caller no longer intends.
    """

    def __init__(self, transport: Transport, log=logger):
        self.transport = transport
        self.logger = log

    def _call(self, method, path, body=None):
        response = self.transport.invoke(method, path, body)
        return check_response(response, method, path).body

    def create(self, entity: Entity):
        """ creates the entity, usually in its parent process group. """
        entity.assign(self._call('POST', entity.creation_path, entity.to_json()))
        self.logger.debug("created %s %s at revision %d" % (entity.resource_type, entity.id, entity.version))
        return entity

    def get(self, entity_class, entity_id):
        """
        Fetches an entity.
        :param entity_class: the Entity subclass to fetch, e.g. Processor.
        :return: a new instance of entity_class
        """
        return entity_class().assign(self._call('GET', "%s/%s" % (entity_class.resource_type, entity_id)))

    def refresh(self, entity: Entity):
        """ re-reads the entity in place. """
        return entity.assign(self._call('GET', entity.path))

    def update(self, entity: Entity):
        """ sends the entity's full representation, with the revision last observed. """
        entity.assign(self._call('PUT', entity.path, entity.to_json()))
        self.logger.debug("updated %s %s to revision %d" % (entity.resource_type, entity.id, entity.version))
        return entity

    def delete(self, entity: Entity):
        """
        Deletes the entity. The revision must be the current one, or the control plane rejects the
        call with a Conflict.
        """
        body = self._call('DELETE', "%s?version=%d" % (entity.path, entity.version))
        if isinstance(body, dict):
            entity.assign(body)
        self.logger.debug("deleted %s %s" % (entity.resource_type, entity.id))
        return entity

    def set_state(self, entity: Entity, state):
        """
        Requests a state transition, sending only the id, state and revision so that other fields
        are not touched. The control plane applies the transition asynchronously.
        """
        entity.assign(self._call('PUT', entity.path, entity.state_update(state)))
        return entity

    def list_connections(self, group_id):
        """ retrieves the connections in a process group. """
        body = self._call('GET', "process-groups/%s/connections" % group_id)
        return [Connection.from_json(c) for c in (body or {}).get('connections', [])]

    def set_remote_port_state(self, remote_group: RemoteProcessGroup, handle: EndpointHandle, state):
        """
        Sets the run status of a port on a remote process group. The revision is that of the
        remote process group, which is updated from the response.
        """
        ports = 'input-ports' if handle.kind == EndpointKind.REMOTE_INPUT_PORT else 'output-ports'
        path = "%s/%s/%s/run-status" % (remote_group.path, ports, handle.id)
        body = self._call('PUT', path, {'revision': remote_group.revision.to_json(), 'state': state})
        if isinstance(body, dict) and 'revision' in body:
            remote_group.revision = Revision.from_json(body['revision'])
        return remote_group

    def find_user_ids(self, identity):
        """ the ids of the users whose identity matches. """
        return self._search_tenants(identity, 'users')

    def find_user_group_ids(self, identity):
        """ the ids of the user groups whose identity matches. """
        return self._search_tenants(identity, 'userGroups')

    def _search_tenants(self, identity, kind):
        body = self._call('GET', "tenants/search-results?q=%s" % quote(identity, safe=''))
        return [t['id'] for t in (body or {}).get(kind) or []]
