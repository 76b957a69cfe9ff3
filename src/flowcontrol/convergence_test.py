import unittest

from hamcrest import assert_that, is_, calling, raises, has_length, contains_exactly, has_properties

from flowcontrol.convergence import StatePoller
from flowcontrol.entities import Processor, ControllerService, InputPort, Revision
from flowcontrol.simulation import SimulatedControlPlane
from flowcontrol.store import EntityStore
from flowcontrol.support.polling_test import FakeClock
from flowcontrol.transport.base import ConvergenceTimeout, TransportError, RemoteRejected


class StatePollerTest(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.plane = SimulatedControlPlane()
        self.store = EntityStore(self.plane)
        self.sut = StatePoller(self.store, interval=1, timeout=10, clock=self.clock, sleep=self.clock.sleep)
        self.processor = self.plane.add(Processor('p1', 'root', name='gen'))

    def methods(self):
        return [c[0] for c in self.plane.calls]

    def test_transition_converges(self):
        result = self.sut.request_transition(self.processor, 'RUNNING')
        assert_that(result, is_(self.processor))
        assert_that(self.processor.state, is_('RUNNING'))
        assert_that(self.methods(), contains_exactly('PUT', 'GET'))

    def test_state_flipping_after_n_ticks_within_timeout(self):
        self.plane.transition_reads = 3
        self.sut.request_transition(self.processor, 'RUNNING', timeout=3.5)
        assert_that(self.processor.state, is_('RUNNING'))
        assert_that(self.clock.now, is_(3))

    def test_state_flipping_after_n_ticks_beyond_timeout(self):
        self.plane.transition_reads = 3
        assert_that(calling(self.sut.request_transition).with_args(self.processor, 'RUNNING', timeout=2.5),
                    raises(ConvergenceTimeout))
        assert_that(self.processor.state, is_('STOPPED'))
        assert_that(self.clock.now, is_(2))

    def test_timeout_reports_last_observed_state(self):
        self.plane.transition_reads = 100
        try:
            self.sut.request_transition(self.processor, 'RUNNING', timeout=2)
            self.fail("expected a timeout")
        except ConvergenceTimeout as e:
            assert_that(e, has_properties(entity_id='p1', desired_state='RUNNING', observed_state='STOPPED'))

    def test_conflict_on_transition_is_benign(self):
        self.plane.add(Processor('p2', 'root'), state='RUNNING')
        processor = Processor('p2', 'root', Revision(1))
        self.sut.request_transition(processor, 'RUNNING')
        assert_that(processor.state, is_('RUNNING'))
        assert_that(self.methods(), contains_exactly('PUT', 'GET'))

    def test_other_rejections_of_the_transition_propagate(self):
        self.plane.fail_next('PUT', 'processors/p1', 500)
        assert_that(calling(self.sut.request_transition).with_args(self.processor, 'RUNNING'),
                    raises(RemoteRejected))
        assert_that(self.methods(), contains_exactly('PUT'))

    def test_failed_polls_are_retried(self):
        self.plane.fail_next('GET', 'processors/p1', error=TransportError('connection reset'))
        self.plane.fail_next('GET', 'processors/p1', 404)
        self.sut.request_transition(self.processor, 'RUNNING')
        assert_that(self.processor.state, is_('RUNNING'))
        assert_that(self.plane.calls_to('GET'), has_length(3))
        assert_that(self.clock.sleeps, is_([1, 1]))

    def test_timeout_when_no_poll_succeeds(self):
        for _ in range(5):
            self.plane.fail_next('GET', 'processors/p1', error=TransportError('connection refused'))
        try:
            self.sut.await_state(self.processor, 'RUNNING', timeout=3)
            self.fail("expected a timeout")
        except ConvergenceTimeout as e:
            assert_that(e.observed_state, is_(None))

    def test_await_does_not_request(self):
        self.plane.transition_reads = 1
        self.store.set_state(self.processor, 'RUNNING')
        self.sut.await_state(self.processor, 'RUNNING')
        assert_that(self.methods(), contains_exactly('PUT', 'GET', 'GET'))

    def test_service_vocabulary(self):
        service = self.plane.add(ControllerService(parent_group_id='root', name='pool'))
        self.sut.request_transition(service, 'ENABLED')
        assert_that(service.state, is_('ENABLED'))
        self.sut.request_transition(service, 'DISABLED')
        assert_that(self.plane.state_of('controller-services', service.id), is_('DISABLED'))

    def test_port_disable(self):
        port = self.plane.add(InputPort(parent_group_id='root', name='in'))
        self.sut.request_transition(port, 'DISABLED')
        assert_that(port.state, is_('DISABLED'))

    def test_default_timeout(self):
        self.plane.transition_reads = 100
        assert_that(calling(self.sut.request_transition).with_args(self.processor, 'RUNNING'),
                    raises(ConvergenceTimeout))
        assert_that(self.clock.now, is_(10))
