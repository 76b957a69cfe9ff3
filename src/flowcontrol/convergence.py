"""
Waits for state transitions to be applied.

The control plane accepts a transition as soon as it is requested, but applies it some time later.
A 2xx response to a transition therefore only means "accepted": every transition is followed by
polling until the new state is observed.
"""
import logging
import time

from flowcontrol.entities import Entity
from flowcontrol.store import EntityStore
from flowcontrol.support.polling import DeadlinePolling
from flowcontrol.transport.base import Conflict, ConvergenceTimeout, FlowControlError

logger = logging.getLogger(__name__)


class StatePoller:
    """
    Requests state transitions and waits for them to converge.
    The poller doesn't know the state vocabulary of any entity - the desired state given is simply
    compared against the state fetched, so it serves processors, ports and controller services alike.
    """

    def __init__(self, store: EntityStore, interval=1.0, timeout=120.0, clock=time.monotonic, sleep=time.sleep,
                 log=logger):
        """
        :param interval: the time in seconds between polls
        :param timeout: the default time in seconds to wait for a state to be observed
        """
        self.store = store
        self.interval = interval
        self.timeout = timeout
        self.clock = clock
        self.sleep = sleep
        self.logger = log

    def request_transition(self, entity: Entity, desired_state, timeout=None):
        """
        Requests the entity move to the desired state, and waits for it to get there.
        A Conflict in response to the request usually means the entity is already in the desired
        state, and is not an error.
        :return: the entity, as last fetched
        raises ConvergenceTimeout when the state is not observed in time
        """
        try:
            self.store.set_state(entity, desired_state)
        except Conflict as e:
            self.logger.warning("transition of %s to %s conflicts, awaiting the state anyway: %s" %
                                (entity.path, desired_state, e))
        return self.await_state(entity, desired_state, timeout)

    def await_state(self, entity: Entity, desired_state, timeout=None):
        """
        Polls the entity until it reports the desired state. Failed fetches are retried on the next poll.
        The entity is overwritten with each successful fetch.
        :param timeout: overrides the default timeout
        :return: the entity, as last fetched
        raises ConvergenceTimeout when the deadline passes first. The entity shows the state last observed.
        """
        timeout = self.timeout if timeout is None else timeout
        observed = None
        for attempt in DeadlinePolling(self.interval, timeout, self.clock, self.sleep):
            try:
                self.store.refresh(entity)
            except FlowControlError as e:
                self.logger.debug("poll %d of %s failed, will retry: %s" % (attempt, entity.path, e))
                continue
            observed = entity.state
            if observed == desired_state:
                self.logger.debug("%s reached %s after %d polls" % (entity.path, desired_state, attempt + 1))
                return entity
        raise ConvergenceTimeout(entity.id, desired_state, observed)
