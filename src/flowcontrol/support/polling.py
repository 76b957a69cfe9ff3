"""
Polling schedules used when waiting on the control plane.

A schedule is iterable: each value yielded is the (zero based) attempt number, and the
schedule sleeps between attempts. The caller stops iterating as soon as it has seen
what it was waiting for. When iteration ends on its own, the schedule is exhausted.

Both the clock and the sleep function are injectable so that tests can run
without waiting in real time.
"""
import time


class PollingSchedule:
    """ A single poll, no waiting. """

    def __init__(self, interval=0, clock=time.monotonic, sleep=time.sleep):
        """
        :param interval: The time in seconds between polls.
        :param clock: Returns the current time in seconds.
        :param sleep: Called with the number of seconds to wait between polls.
        """
        self.interval = interval
        self.clock = clock
        self.sleep = sleep

    def __iter__(self):
        yield 0


class DeadlinePolling(PollingSchedule):
    """
    Polls at a fixed interval until a deadline has passed. The deadline is measured from
    the start of iteration.
    A poll is only scheduled if it can happen before the deadline, so
    the last poll is never later than the timeout.
    """

    def __init__(self, interval, timeout, clock=time.monotonic, sleep=time.sleep):
        super().__init__(interval, clock, sleep)
        self.timeout = timeout

    def __iter__(self):
        deadline = self.clock() + self.timeout
        attempt = 0
        while True:
            yield attempt
            attempt += 1
            if self.clock() + self.interval > deadline:
                return
            self.sleep(self.interval)


class AttemptPolling(PollingSchedule):
    """
    Polls at a fixed interval for a bounded number of attempts.
    There is no backoff - the interval is the same between each attempt.
    """

    def __init__(self, interval, max_attempts, clock=time.monotonic, sleep=time.sleep):
        super().__init__(interval, clock, sleep)
        self.max_attempts = max_attempts

    def __iter__(self):
        for attempt in range(self.max_attempts):
            if attempt:
                self.sleep(self.interval)
            yield attempt
