import threading


class EventSource(object):
    """
    Dispatches events to registered handlers on the thread that fires them.

    Choreography sequences run on the caller's thread, so handlers may be added and removed
    while another thread is firing. The handler list is guarded, and each fire
    works on a snapshot of it.
    """

    def __init__(self):
        self._handlers = []
        self._guard = threading.Lock()

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        with self._guard:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        with self._guard:
            if handler in self._handlers:
                self._handlers.remove(handler)
        return self

    def handlers(self):
        with self._guard:
            return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        for handler in self.handlers():
            handler(*args, **kwargs)

    def fire_all(self, events):
        for e in events:
            self.fire(e)
