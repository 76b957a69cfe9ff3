import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, equal_to, calling, raises, has_length, contains_exactly

from flowcontrol.entities import Processor, Revision, Connection, EndpointHandle, EndpointKind, RemoteProcessGroup, \
    Funnel, User, UserGroup, ReportingTask
from flowcontrol.store import EntityStore
from flowcontrol.transport.base import Response, NotFound, Conflict, RemoteRejected


def processor_json(version, state='STOPPED', id='p1'):
    return {'revision': {'version': version}, 'component': {'id': id, 'parentGroupId': 'root', 'state': state}}


class EntityStoreTest(unittest.TestCase):

    def setUp(self):
        self.transport = Mock()
        self.sut = EntityStore(self.transport)

    def respond(self, status, body=None):
        self.transport.invoke.return_value = Response(status, body)

    def test_create_posts_to_parent_group(self):
        self.respond(201, processor_json(1))
        processor = Processor(parent_group_id='root', name='gen')
        result = self.sut.create(processor)
        method, path, body = self.transport.invoke.call_args[0]
        assert_that(method, is_('POST'))
        assert_that(path, is_('process-groups/root/processors'))
        assert_that(body['revision'], is_({'version': 0}))
        assert_that(result, is_(processor))
        assert_that(processor.id, is_('p1'))
        assert_that(processor.version, is_(1))

    def test_get_returns_new_instance(self):
        self.respond(200, processor_json(4, 'RUNNING'))
        result = self.sut.get(Processor, 'p1')
        self.transport.invoke.assert_called_with('GET', 'processors/p1', None)
        assert_that(result.state, is_('RUNNING'))
        assert_that(result.version, is_(4))

    def test_get_missing_raises_not_found(self):
        self.respond(404, 'Unable to find component')
        assert_that(calling(self.sut.get).with_args(Processor, 'p1'), raises(NotFound))

    def test_refresh_updates_in_place(self):
        self.respond(200, processor_json(9))
        processor = Processor('p1', 'root', Revision(2))
        self.sut.refresh(processor)
        assert_that(processor.version, is_(9))

    def test_update_captures_new_revision(self):
        self.respond(200, processor_json(3))
        processor = Processor('p1', 'root', Revision(2), name='gen')
        self.sut.update(processor)
        method, path, body = self.transport.invoke.call_args[0]
        assert_that((method, path), is_(('PUT', 'processors/p1')))
        assert_that(body['revision'], is_({'version': 2}))
        assert_that(processor.version, is_(3))

    def test_stale_update_raises_conflict_and_keeps_revision(self):
        self.respond(409, 'not the most up-to-date revision')
        processor = Processor('p1', 'root', Revision(2))
        assert_that(calling(self.sut.update).with_args(processor), raises(Conflict))
        assert_that(processor.version, is_(2))
        assert_that(self.transport.invoke.call_count, is_(1))

    def test_other_status_raises_remote_rejected(self):
        self.respond(500, 'boom')
        assert_that(calling(self.sut.refresh).with_args(Processor('p1')), raises(RemoteRejected))

    def test_delete_sends_version(self):
        self.respond(200, {'revision': {'version': 6}, 'component': {'id': 'f1'}})
        self.sut.delete(Funnel('f1', 'root', Revision(5)))
        self.transport.invoke.assert_called_with('DELETE', 'funnels/f1?version=5', None)

    def test_delete_tolerates_empty_body(self):
        self.respond(200, None)
        funnel = Funnel('f1', 'root', Revision(5))
        self.sut.delete(funnel)
        assert_that(funnel.version, is_(5))

    def test_set_state_sends_only_state(self):
        self.respond(200, processor_json(8, 'RUNNING'))
        processor = Processor('p1', 'root', Revision(7), 'STOPPED', name='gen')
        self.sut.set_state(processor, 'RUNNING')
        self.transport.invoke.assert_called_with(
            'PUT', 'processors/p1', {'revision': {'version': 7}, 'component': {'id': 'p1', 'state': 'RUNNING'}})
        assert_that(processor.version, is_(8))

    def test_list_connections(self):
        source = EndpointHandle(EndpointKind.PROCESSOR, 'a', 'root')
        destination = EndpointHandle(EndpointKind.FUNNEL, 'f', 'root')
        connection = Connection('c1', 'root', Revision(1), source, destination, ['success'])
        self.respond(200, {'connections': [connection.to_json()]})
        result = self.sut.list_connections('root')
        self.transport.invoke.assert_called_with('GET', 'process-groups/root/connections', None)
        assert_that(result, has_length(1))
        assert_that(result[0], is_(equal_to(connection)))

    def test_list_connections_empty(self):
        self.respond(200, {})
        assert_that(self.sut.list_connections('root'), is_([]))

    def test_set_remote_port_state(self):
        self.respond(200, {'revision': {'version': 4}, 'remoteProcessGroupPort': {'id': 'rp'}})
        group = RemoteProcessGroup('rpg', 'root', Revision(3))
        handle = EndpointHandle(EndpointKind.REMOTE_INPUT_PORT, 'rp', 'rpg')
        self.sut.set_remote_port_state(group, handle, 'TRANSMITTING')
        self.transport.invoke.assert_called_with(
            'PUT', 'remote-process-groups/rpg/input-ports/rp/run-status',
            {'revision': {'version': 3}, 'state': 'TRANSMITTING'})
        assert_that(group.version, is_(4))

    def test_set_remote_output_port_state(self):
        self.respond(200, {})
        group = RemoteProcessGroup('rpg', 'root', Revision(3))
        handle = EndpointHandle(EndpointKind.REMOTE_OUTPUT_PORT, 'rp', 'rpg')
        self.sut.set_remote_port_state(group, handle, 'STOPPED')
        assert_that(self.transport.invoke.call_args[0][1],
                    is_('remote-process-groups/rpg/output-ports/rp/run-status'))
        assert_that(group.version, is_(3))

    def test_create_tenant_at_top_level(self):
        self.respond(201, {'revision': {'version': 1}, 'component': {'id': 'u1', 'identity': 'alice'}})
        user = self.sut.create(User(identity='alice'))
        assert_that(self.transport.invoke.call_args[0][:2], is_(('POST', 'tenants/users')))
        assert_that(user.id, is_('u1'))

    def test_create_reporting_task_on_controller(self):
        self.respond(201, {'revision': {'version': 1}, 'component': {'id': 'r1'}})
        self.sut.create(ReportingTask(name='monitor'))
        assert_that(self.transport.invoke.call_args[0][1], is_('controller/reporting-tasks'))

    def test_delete_user_group(self):
        self.respond(200, {})
        self.sut.delete(UserGroup('g1', Revision(4)))
        self.transport.invoke.assert_called_with('DELETE', 'tenants/user-groups/g1?version=4', None)

    def test_find_user_ids(self):
        self.respond(200, {'users': [{'id': 'u1'}, {'id': 'u2'}], 'userGroups': [{'id': 'g1'}]})
        assert_that(self.sut.find_user_ids('CN=alice, OU=flow'), is_(['u1', 'u2']))
        self.transport.invoke.assert_called_with('GET', 'tenants/search-results?q=CN%3Dalice%2C%20OU%3Dflow', None)

    def test_find_user_group_ids(self):
        self.respond(200, {'users': [{'id': 'u1'}], 'userGroups': [{'id': 'g1'}]})
        assert_that(self.sut.find_user_group_ids('ops'), is_(['g1']))

    def test_find_with_no_match(self):
        self.respond(200, {'users': [], 'userGroups': []})
        assert_that(self.sut.find_user_ids('nobody'), is_([]))

    def test_each_operation_is_one_call(self):
        self.respond(200, processor_json(2))
        processor = Processor('p1', 'root', Revision(1))
        self.sut.refresh(processor)
        self.sut.set_state(processor, 'RUNNING')
        assert_that([c[0][0] for c in self.transport.invoke.call_args_list], contains_exactly('GET', 'PUT'))
