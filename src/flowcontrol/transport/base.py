import logging
from abc import abstractmethod
from collections import namedtuple

logger = logging.getLogger(__name__)


class FlowControlError(Exception):
    """ Base class for all errors raised by the flow control library. """


class TransportError(FlowControlError):
    """ The call could not be completed - network failure, timeout or a malformed response. """


class RemoteRejected(FlowControlError):
    """
    The control plane answered, but rejected the call.
    :param status_code: the HTTP status returned
    :param body: the response body, as returned by the control plane
    """
    def __init__(self, status_code, body=None, message=None):
        super().__init__(message or "the call has failed with the code of %d, the result is %s" % (status_code, body))
        self.status_code = status_code
        self.body = body


class NotFound(RemoteRejected):
    """ The entity does not exist. """


class Conflict(RemoteRejected):
    """
    The call conflicts with the entity's current server side state - either the revision
    given is stale, or the entity is not in a state that permits the request.
    """


class ConvergenceTimeout(FlowControlError):
    """
    The desired state was not observed before the deadline.
    :param observed_state: the last state seen, or None if no poll succeeded.
    """
    def __init__(self, entity_id, desired_state, observed_state=None):
        super().__init__("timed out waiting for %s to reach state %s (last observed %s)" %
                         (entity_id, desired_state, observed_state))
        self.entity_id = entity_id
        self.desired_state = desired_state
        self.observed_state = observed_state


class UnsupportedEndpointKind(FlowControlError):
    """ A connection endpoint has a kind that cannot be stopped or started. """
    def __init__(self, kind):
        super().__init__("not supported connection source/destination type: %s" % kind)
        self.kind = kind


Response = namedtuple('Response', ['status', 'body'])


def check_response(response: Response, method, path):
    """
    Maps a non-success response onto the error taxonomy.
    :return: the response, when the status is 2xx
    """
    status = response.status
    if status < 300:
        return response
    logger.debug("%s %s rejected with %d: %s" % (method, path, status, response.body))
    if status == 404:
        raise NotFound(status, response.body)
    if status == 409:
        raise Conflict(status, response.body)
    raise RemoteRejected(status, response.body)


class Transport:
    """ Issues calls to the control plane. """

    @abstractmethod
    def invoke(self, method, path, body=None) -> Response:
        """
        Performs a single call.
        :param method: The HTTP method.
        :param path: The path relative to the API base, including any query string.
        :param body: A JSON serializable body, or None for no body.
        :return: the Response. Non-success statuses are returned, not raised.
        raises TransportError if the call could not be completed.
        """
        raise NotImplementedError

    def close(self):
        """ Releases any resources held by this transport. """
