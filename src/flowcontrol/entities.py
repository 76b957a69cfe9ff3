"""
The revisioned entity model.

Every component in the flow is an Entity: an id, the id of the process group that contains it,
an operational state for those components that have one, and a Revision. The revision is the
optimistic concurrency token - the control plane rejects any mutation that does not carry the
revision it currently holds. Each entity knows how to render itself as the JSON the control
plane expects ({"revision": ..., "component": ...}) and how to take on the representation the
control plane returns, which is how a new revision is captured after each call.

Entities hold no reference to the control plane; reading and writing them is the job of
the EntityStore.
"""
from flowcontrol.support.mixins import CommonEqualityMixin, StringerMixin


class ComponentState(object):
    """ Operational states of processors and ports. """
    RUNNING = 'RUNNING'
    STOPPED = 'STOPPED'
    DISABLED = 'DISABLED'


class ServiceState(object):
    """ Operational states of controller services. ENABLING and DISABLING are transient. """
    ENABLED = 'ENABLED'
    DISABLED = 'DISABLED'
    ENABLING = 'ENABLING'
    DISABLING = 'DISABLING'


class RemotePortState(object):
    """ Run status of a port on a remote process group. """
    TRANSMITTING = 'TRANSMITTING'
    STOPPED = 'STOPPED'


class EndpointKind(object):
    """ The kinds of component that can be at either end of a connection. """
    PROCESSOR = 'PROCESSOR'
    INPUT_PORT = 'INPUT_PORT'
    OUTPUT_PORT = 'OUTPUT_PORT'
    REMOTE_INPUT_PORT = 'REMOTE_INPUT_PORT'
    REMOTE_OUTPUT_PORT = 'REMOTE_OUTPUT_PORT'
    FUNNEL = 'FUNNEL'


def cleanup_none_properties(properties):
    """
    Removes properties with no value, as the control plane returns unset properties as null.
    >>> cleanup_none_properties({'a': None, 'b': '1'})
    {'b': '1'}
    """
    if properties:
        for k in [k for k, v in properties.items() if v is None]:
            del properties[k]
    return properties


class Revision(CommonEqualityMixin, StringerMixin):
    def __init__(self, version=0, client_id=None):
        self.version = version
        self.client_id = client_id

    def to_json(self):
        result = {'version': self.version}
        if self.client_id:
            result['clientId'] = self.client_id
        return result

    @classmethod
    def from_json(cls, body):
        return cls(body.get('version', 0), body.get('clientId'))


class Position(CommonEqualityMixin, StringerMixin):
    def __init__(self, x=0.0, y=0.0):
        self.x = x
        self.y = y

    def to_json(self):
        return {'x': self.x, 'y': self.y}

    @classmethod
    def from_json(cls, body):
        return cls(body.get('x', 0.0), body.get('y', 0.0)) if body else cls()


class Entity(CommonEqualityMixin, StringerMixin):
    """
    A component managed by the control plane.

    Subclasses define the URL segments used to address them:
    - resource_type: the segment for an existing entity, e.g. /processors/{id}
    - collection: the segment under the parent process group used to create one,
        e.g. /process-groups/{parent}/processors
    and render/assign their own fields via _fields_json() and _assign_fields().
    Entities that live outside any process group, such as tenants, override creation_path instead.
    """
    resource_type = None
    collection = None

    def __init__(self, id=None, parent_group_id=None, revision=None, state=None):
        self.id = id
        self.parent_group_id = parent_group_id
        self.revision = revision or Revision()
        self.state = state

    @property
    def version(self):
        return self.revision.version

    @property
    def path(self):
        return "%s/%s" % (self.resource_type, self.id)

    @property
    def creation_path(self):
        return "process-groups/%s/%s" % (self.parent_group_id, self.collection)

    def component_json(self):
        component = {}
        if self.parent_group_id:
            component['parentGroupId'] = self.parent_group_id
        if self.id:
            component['id'] = self.id
        if self.state:
            component['state'] = self.state
        component.update(self._fields_json())
        return component

    def to_json(self):
        return {'revision': self.revision.to_json(), 'component': self.component_json()}

    def state_update(self, state):
        """
        The minimal body that requests a state transition, leaving all other fields as they are.
        """
        return {'revision': self.revision.to_json(), 'component': {'id': self.id, 'state': state}}

    def assign(self, body):
        """
        Overwrites this entity with a representation returned by the control plane.
        Fields not present in the representation are left unchanged.
        :return: this entity
        """
        if 'revision' in body:
            self.revision = Revision.from_json(body['revision'])
        component = body.get('component') or {}
        self.id = component.get('id', body.get('id', self.id))
        self.parent_group_id = component.get('parentGroupId', self.parent_group_id)
        self.state = component.get('state', self.state)
        self._assign_fields(component)
        return self

    @classmethod
    def from_json(cls, body):
        return cls().assign(body)

    def _fields_json(self):
        return {}

    def _assign_fields(self, component):
        pass


class ProcessorConfig(CommonEqualityMixin, StringerMixin):
    def __init__(self, scheduling_strategy='TIMER_DRIVEN', scheduling_period='0 sec', execution_node='ALL',
                 concurrently_schedulable_task_count=1, properties=None, auto_terminated_relationships=None):
        self.scheduling_strategy = scheduling_strategy
        self.scheduling_period = scheduling_period
        self.execution_node = execution_node
        self.concurrently_schedulable_task_count = concurrently_schedulable_task_count
        self.properties = properties if properties is not None else {}
        self.auto_terminated_relationships = auto_terminated_relationships or []

    def to_json(self):
        return {
            'schedulingStrategy': self.scheduling_strategy,
            'schedulingPeriod': self.scheduling_period,
            'executionNode': self.execution_node,
            'concurrentlySchedulableTaskCount': self.concurrently_schedulable_task_count,
            'properties': dict(self.properties),
            'autoTerminatedRelationships': list(self.auto_terminated_relationships),
        }

    def assign(self, body):
        self.scheduling_strategy = body.get('schedulingStrategy', self.scheduling_strategy)
        self.scheduling_period = body.get('schedulingPeriod', self.scheduling_period)
        self.execution_node = body.get('executionNode', self.execution_node)
        self.concurrently_schedulable_task_count = body.get('concurrentlySchedulableTaskCount',
                                                            self.concurrently_schedulable_task_count)
        if 'properties' in body:
            self.properties = cleanup_none_properties(dict(body['properties'] or {}))
        if 'autoTerminatedRelationships' in body:
            self.auto_terminated_relationships = list(body['autoTerminatedRelationships'] or [])
        return self


class Processor(Entity):
    resource_type = 'processors'
    collection = 'processors'

    def __init__(self, id=None, parent_group_id=None, revision=None, state=None, name=None, type=None,
                 position=None, config=None):
        super().__init__(id, parent_group_id, revision, state)
        self.name = name
        self.type = type
        self.position = position or Position()
        self.config = config or ProcessorConfig()
        self.relationships = []     # [{'name':..., 'autoTerminate':...}] as reported by the control plane

    def _fields_json(self):
        fields = {'position': self.position.to_json(), 'config': self.config.to_json()}
        if self.name:
            fields['name'] = self.name
        if self.type:
            fields['type'] = self.type
        return fields

    def _assign_fields(self, component):
        self.name = component.get('name', self.name)
        self.type = component.get('type', self.type)
        if 'position' in component:
            self.position = Position.from_json(component['position'])
        self.config.assign(component.get('config') or {})
        if 'relationships' in component:
            self.relationships = list(component['relationships'] or [])
            self.config.auto_terminated_relationships = [r['name'] for r in self.relationships
                                                         if r.get('autoTerminate')]


class Port(Entity):
    """ An input or output port. Use InputPort or OutputPort, or Port.for_type(). """
    port_type = None

    def __init__(self, id=None, parent_group_id=None, revision=None, state=None, name=None, comments='',
                 position=None):
        super().__init__(id, parent_group_id, revision, state)
        self.name = name
        self.comments = comments
        self.position = position or Position()

    @staticmethod
    def for_type(port_type):
        """
        Retrieves the port class for a port type.
        raises ValueError for anything other than INPUT_PORT or OUTPUT_PORT
        """
        for cls in (InputPort, OutputPort):
            if cls.port_type == port_type:
                return cls
        raise ValueError("invalid port type : %s" % port_type)

    def _fields_json(self):
        return {'name': self.name, 'type': self.port_type, 'comments': self.comments,
                'position': self.position.to_json()}

    def _assign_fields(self, component):
        self.name = component.get('name', self.name)
        self.comments = component.get('comments', self.comments)
        if 'position' in component:
            self.position = Position.from_json(component['position'])


class InputPort(Port):
    resource_type = 'input-ports'
    collection = 'input-ports'
    port_type = EndpointKind.INPUT_PORT


class OutputPort(Port):
    resource_type = 'output-ports'
    collection = 'output-ports'
    port_type = EndpointKind.OUTPUT_PORT


class Funnel(Entity):
    """ Merges connections. A funnel has no operational state. """
    resource_type = 'funnels'
    collection = 'funnels'

    def __init__(self, id=None, parent_group_id=None, revision=None, position=None):
        super().__init__(id, parent_group_id, revision)
        self.position = position or Position()

    def _fields_json(self):
        return {'position': self.position.to_json()}

    def _assign_fields(self, component):
        if 'position' in component:
            self.position = Position.from_json(component['position'])


class ControllerService(Entity):
    resource_type = 'controller-services'
    collection = 'controller-services'

    def __init__(self, id=None, parent_group_id=None, revision=None, state=None, name=None, type=None,
                 properties=None):
        super().__init__(id, parent_group_id, revision, state)
        self.name = name
        self.type = type
        self.properties = properties if properties is not None else {}

    def _fields_json(self):
        fields = {'properties': dict(self.properties)}
        if self.name:
            fields['name'] = self.name
        if self.type:
            fields['type'] = self.type
        return fields

    def _assign_fields(self, component):
        self.name = component.get('name', self.name)
        self.type = component.get('type', self.type)
        if 'properties' in component:
            self.properties = cleanup_none_properties(dict(component['properties'] or {}))


class ProcessGroup(Entity):
    resource_type = 'process-groups'
    collection = 'process-groups'

    def __init__(self, id=None, parent_group_id=None, revision=None, name=None, position=None):
        super().__init__(id, parent_group_id, revision)
        self.name = name
        self.position = position or Position()

    def _fields_json(self):
        return {'name': self.name, 'position': self.position.to_json()}

    def _assign_fields(self, component):
        self.name = component.get('name', self.name)
        if 'position' in component:
            self.position = Position.from_json(component['position'])


class RemoteProcessGroup(Entity):
    """ A reference to a process group on another instance, reached through site to site. """
    resource_type = 'remote-process-groups'
    collection = 'remote-process-groups'

    def __init__(self, id=None, parent_group_id=None, revision=None, name=None, position=None, target_uris=None,
                 transport_protocol='RAW'):
        super().__init__(id, parent_group_id, revision)
        self.name = name
        self.position = position or Position()
        self.target_uris = target_uris
        self.transport_protocol = transport_protocol

    def _fields_json(self):
        return {'name': self.name, 'position': self.position.to_json(), 'targetUris': self.target_uris,
                'transportProtocol': self.transport_protocol}

    def _assign_fields(self, component):
        self.name = component.get('name', self.name)
        if 'position' in component:
            self.position = Position.from_json(component['position'])
        self.target_uris = component.get('targetUris', self.target_uris)
        self.transport_protocol = component.get('transportProtocol', self.transport_protocol)


class ReportingTask(Entity):
    """ A task reporting on the instance as a whole. Reporting tasks are created on the controller. """
    resource_type = 'reporting-tasks'

    def __init__(self, id=None, revision=None, state=None, name=None, type=None, comments='',
                 scheduling_strategy='TIMER_DRIVEN', scheduling_period='5 mins', properties=None):
        super().__init__(id, None, revision, state)
        self.name = name
        self.type = type
        self.comments = comments
        self.scheduling_strategy = scheduling_strategy
        self.scheduling_period = scheduling_period
        self.properties = properties if properties is not None else {}

    @property
    def creation_path(self):
        return 'controller/reporting-tasks'

    def _fields_json(self):
        fields = {'comments': self.comments, 'schedulingStrategy': self.scheduling_strategy,
                  'schedulingPeriod': self.scheduling_period, 'properties': dict(self.properties)}
        if self.name:
            fields['name'] = self.name
        if self.type:
            fields['type'] = self.type
        return fields

    def _assign_fields(self, component):
        self.name = component.get('name', self.name)
        self.type = component.get('type', self.type)
        self.comments = component.get('comments', self.comments)
        self.scheduling_strategy = component.get('schedulingStrategy', self.scheduling_strategy)
        self.scheduling_period = component.get('schedulingPeriod', self.scheduling_period)
        if 'properties' in component:
            self.properties = cleanup_none_properties(dict(component['properties'] or {}))


class Tenant(Entity):
    """
    A user or user group allowed access to the control plane. Tenants are identified by their
    identity, e.g. a certificate DN, and belong to the instance rather than a process group.
    """

    def __init__(self, id=None, revision=None, identity=None):
        super().__init__(id, None, revision)
        self.identity = identity

    @property
    def creation_path(self):
        return self.resource_type

    def _fields_json(self):
        return {'identity': self.identity} if self.identity else {}

    def _assign_fields(self, component):
        self.identity = component.get('identity', self.identity)


class User(Tenant):
    resource_type = 'tenants/users'


class UserGroup(Tenant):
    resource_type = 'tenants/user-groups'

    def __init__(self, id=None, revision=None, identity=None, users=None):
        super().__init__(id, revision, identity)
        self.users = list(users or [])     # user ids

    def _fields_json(self):
        fields = super()._fields_json()
        fields['users'] = [{'id': u} for u in self.users]
        return fields

    def _assign_fields(self, component):
        super()._assign_fields(component)
        if 'users' in component:
            self.users = [u.get('id') for u in component['users'] or []]


class EndpointHandle(CommonEqualityMixin, StringerMixin):
    """
    Identifies one end of a connection without holding the component itself.
    The kind is kept as given, so that a kind this library doesn't know is only
    reported when the endpoint is acted upon.
    :param group_id: the process group containing the component. For remote ports,
        this is the remote process group.
    """
    def __init__(self, kind, id, group_id=None):
        self.kind = kind
        self.id = id
        self.group_id = group_id

    def to_json(self):
        return {'type': self.kind, 'id': self.id, 'groupId': self.group_id}

    @classmethod
    def from_json(cls, body):
        return cls(body.get('type'), body.get('id'), body.get('groupId'))


class Connection(Entity):
    """
    A queue between two endpoints. The endpoints and relationships can only be changed while
    both endpoints are stopped, and the connection can only be deleted once its queue is empty.
    """
    resource_type = 'connections'
    collection = 'connections'

    def __init__(self, id=None, parent_group_id=None, revision=None, source: EndpointHandle=None,
                 destination: EndpointHandle=None, selected_relationships=(), back_pressure_object_threshold=10000,
                 back_pressure_data_size_threshold='1 GB', bends=None):
        super().__init__(id, parent_group_id, revision)
        self.source = source
        self.destination = destination
        self.selected_relationships = set(selected_relationships)
        self.back_pressure_object_threshold = back_pressure_object_threshold
        self.back_pressure_data_size_threshold = back_pressure_data_size_threshold
        self.bends = list(bends or [])

    def apply_fields(self, desired: 'Connection'):
        """
        Copies the caller controlled fields from another connection, keeping the id, parent
        and revision of this one.
        :return: this connection
        """
        self.source = desired.source or self.source
        self.destination = desired.destination or self.destination
        self.selected_relationships = set(desired.selected_relationships)
        self.back_pressure_object_threshold = desired.back_pressure_object_threshold
        self.back_pressure_data_size_threshold = desired.back_pressure_data_size_threshold
        self.bends = list(desired.bends)
        return self

    def _fields_json(self):
        return {
            'source': self.source.to_json() if self.source else None,
            'destination': self.destination.to_json() if self.destination else None,
            'selectedRelationships': sorted(self.selected_relationships),
            'backPressureObjectThreshold': self.back_pressure_object_threshold,
            'backPressureDataSizeThreshold': self.back_pressure_data_size_threshold,
            'bends': [b.to_json() for b in self.bends],
        }

    def _assign_fields(self, component):
        if component.get('source'):
            self.source = EndpointHandle.from_json(component['source'])
        if component.get('destination'):
            self.destination = EndpointHandle.from_json(component['destination'])
        if 'selectedRelationships' in component:
            self.selected_relationships = set(component['selectedRelationships'] or [])
        self.back_pressure_object_threshold = component.get('backPressureObjectThreshold',
                                                            self.back_pressure_object_threshold)
        self.back_pressure_data_size_threshold = component.get('backPressureDataSizeThreshold',
                                                               self.back_pressure_data_size_threshold)
        if 'bends' in component:
            self.bends = [Position.from_json(b) for b in component['bends'] or []]


class DropRequest(CommonEqualityMixin, StringerMixin):
    """ A server side job that empties a connection's queue. """

    def __init__(self, id=None, finished=False, percent_completed=0, state=None):
        self.id = id
        self.finished = finished
        self.percent_completed = percent_completed
        self.state = state

    @classmethod
    def from_json(cls, body):
        request = body.get('dropRequest') or {}
        return cls(request.get('id'), request.get('finished', False), request.get('percentCompleted', 0),
                   request.get('state'))
