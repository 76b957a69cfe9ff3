"""
Serializes operations that touch more than one resource.

Changing a connection means stopping and restarting its endpoints, and two such operations
sharing an endpoint would otherwise interleave - one restarting an endpoint the other has just
stopped. All such operations hold the same lock for their whole sequence.

Single entity operations don't take the lock. Callers must not act on an endpoint
while a locked operation is using it; this is not detected.
"""
import logging
import threading
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class CrossResourceLock:
    def __init__(self, name, log=logger):
        self.name = name
        self.logger = log
        self._lock = threading.Lock()

    @contextmanager
    def held(self, operation):
        """
        Holds the lock for the duration of the with block. The lock is released however the block exits.
        :param operation: describes what the lock is held for, for logging.
        """
        self.logger.debug("%s waiting for lock %s" % (operation, self.name))
        with self._lock:
            self.logger.debug("%s acquired lock %s" % (operation, self.name))
            try:
                yield self
            finally:
                self.logger.debug("%s released lock %s" % (operation, self.name))

    def locked(self):
        return self._lock.locked()

    def __str__(self):
        return "CrossResourceLock(%s)" % self.name


# the process wide lock, used unless another is given
cross_resource_lock = CrossResourceLock('cross-resource')
