from unittest import TestCase
from unittest.mock import Mock

from hamcrest import assert_that, is_, equal_to, empty

from flowcontrol.support.polling import PollingSchedule, DeadlinePolling, AttemptPolling


class FakeClock:
    """ A clock that only moves when something sleeps. """

    def __init__(self, now=0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def deadline_polling(self, interval, timeout):
        return DeadlinePolling(interval, timeout, clock=self, sleep=self.sleep)

    def attempt_polling(self, interval, max_attempts):
        return AttemptPolling(interval, max_attempts, clock=self, sleep=self.sleep)


class PollingScheduleTest(TestCase):
    def test_single_attempt(self):
        sleep = Mock()
        assert_that(list(PollingSchedule(sleep=sleep)), is_([0]))
        sleep.assert_not_called()


class DeadlinePollingTest(TestCase):
    def setUp(self):
        self.clock = FakeClock(100)

    def test_polls_until_deadline(self):
        sut = self.clock.deadline_polling(1, 5)
        assert_that(list(sut), is_([0, 1, 2, 3, 4, 5]))
        assert_that(self.clock.now, is_(105))

    def test_does_not_poll_past_the_deadline(self):
        sut = self.clock.deadline_polling(2, 5)
        assert_that(list(sut), is_([0, 1, 2]))
        assert_that(self.clock.sleeps, is_([2, 2]))

    def test_zero_timeout_polls_once(self):
        sut = self.clock.deadline_polling(1, 0)
        assert_that(list(sut), is_([0]))
        assert_that(self.clock.sleeps, is_(empty()))

    def test_stopping_early_does_not_sleep(self):
        sut = self.clock.deadline_polling(1, 10)
        for attempt in sut:
            if attempt == 2:
                break
        assert_that(self.clock.sleeps, is_([1, 1]))

    def test_deadline_starts_with_iteration(self):
        sut = self.clock.deadline_polling(1, 2)
        self.clock.now = 500
        assert_that(len(list(sut)), is_(3))


class AttemptPollingTest(TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def test_bounded_attempts(self):
        sut = self.clock.attempt_polling(3, 10)
        assert_that(list(sut), is_(list(range(10))))
        assert_that(self.clock.sleeps, is_(equal_to([3] * 9)))

    def test_no_attempts(self):
        assert_that(list(self.clock.attempt_polling(3, 0)), is_(empty()))
