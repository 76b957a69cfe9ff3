"""
Empties a connection's queue before it is deleted.

The control plane won't discard queued data implicitly. Instead a drop request is submitted,
which runs on the server, and is polled until it reports finished. The drop request is
not cleaned up by the control plane, so it is always deleted afterwards, whether it finished or not.
"""
import logging
import time

from flowcontrol.entities import Connection, DropRequest
from flowcontrol.support.polling import AttemptPolling
from flowcontrol.transport.base import Transport, FlowControlError, check_response

logger = logging.getLogger(__name__)


class QueueDrainer:

    def __init__(self, transport: Transport, interval=3.0, max_attempts=10, clock=time.monotonic, sleep=time.sleep,
                 log=logger):
        """
        :param interval: the time in seconds between polls of the drop request
        :param max_attempts: the number of polls before giving up on the drop request
        """
        self.transport = transport
        self.interval = interval
        self.max_attempts = max_attempts
        self.clock = clock
        self.sleep = sleep
        self.logger = log

    def _call(self, method, path):
        return check_response(self.transport.invoke(method, path), method, path).body

    def drain(self, connection: Connection):
        """
        Drops all data queued on the connection.
        :return: True if the drop request was seen to finish, False if it had not finished after the
            last attempt. Deciding whether to go ahead regardless is left to the caller.
        raises if the drop request could not be submitted
        """
        requests = "flowfile-queues/%s/drop-requests" % connection.id
        request = DropRequest.from_json(self._call('POST', requests))
        path = "%s/%s" % (requests, request.id)
        self.logger.debug("submitted drop request %s for connection %s" % (request.id, connection.id))
        try:
            finished = request.finished or self._await_finished(path)
        except BaseException:
            self._delete_after_failure(path)
            raise
        self._call('DELETE', path)
        if not finished:
            self.logger.warning("drop request %s for connection %s did not finish after %d attempts" %
                                (request.id, connection.id, self.max_attempts))
        return finished

    def _await_finished(self, path):
        for attempt in AttemptPolling(self.interval, self.max_attempts, self.clock, self.sleep):
            try:
                request = DropRequest.from_json(self._call('GET', path))
            except FlowControlError as e:
                self.logger.debug("poll %d of %s failed: %s" % (attempt, path, e))
                continue
            if request.finished:
                return True
            self.logger.info("dropping queued data %s, %d%% complete" % (path, request.percent_completed))
        return False

    def _delete_after_failure(self, path):
        try:
            self._call('DELETE', path)
        except FlowControlError:
            self.logger.exception("unable to delete drop request %s" % path)
